from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from .config import settings
from .models.tables import Base


def make_engine(url: str):
    """
    SQLAlchemy engine for the booking store.

    SQLite needs check_same_thread=False: FastAPI serves requests from a
    thread pool. An in-memory database is pinned to one connection.
    """
    if not url.startswith("sqlite"):
        return create_engine(url)
    if url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(url, connect_args={"check_same_thread": False})


def make_session_factory(engine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
    )


def init_db(engine) -> None:
    """Create the customers/bookings tables if missing."""
    Base.metadata.create_all(bind=engine)


engine = make_engine(settings.resolved_database_url)
SessionLocal = make_session_factory(engine)

