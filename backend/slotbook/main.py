# backend/slotbook/main.py

import logging

from fastapi import Depends, FastAPI

from .config import settings
from .context import AppContext, get_context
from .routers import admin, availability, bookings, customers

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)

app = FastAPI(title="Slot Booking API")

app.include_router(availability.router)
app.include_router(bookings.router)
app.include_router(customers.router)
app.include_router(admin.router)


@app.get("/health")
def health(ctx: AppContext = Depends(get_context)):
    redis_ok = None
    if ctx.redis is not None:
        try:
            redis_ok = ctx.redis.ping()
        except Exception as e:
            logger.warning(f"Redis ping failed: {e}")
            redis_ok = False
    return {"status": "ok", "redis": redis_ok}
