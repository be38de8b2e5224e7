import sys, pathlib
sys.path.append(str(pathlib.Path(__file__).resolve().parents[1] / "backend"))

from sqlalchemy import text
from slotbook.config import settings
from slotbook.database import SessionLocal, engine, init_db
from slotbook.models.tables import Bookings, Customers


def main():
    url = settings.resolved_database_url
    if url.startswith("sqlite:///"):
        pathlib.Path(url.replace("sqlite:///", "", 1)).parent.mkdir(parents=True, exist_ok=True)

    print(f"Using DB: {url}")
    init_db(engine)

    db = SessionLocal()
    try:
        print("DB OK:", db.execute(text("SELECT 1")).scalar())
        print("Customers:", db.query(Customers).count())
        print("Bookings:", db.query(Bookings).count())
    finally:
        db.close()


if __name__ == "__main__":
    main()
