# backend/slotbook/config.py

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[2]  # repository root


class Settings(BaseSettings):
    database_url: str = "sqlite:///./data/booking.db"
    redis_url: str | None = None

    # Tabular store: "sql" (SQLAlchemy) or "sheets" (Google Sheets)
    store_backend: Literal["sql", "sheets"] = "sql"
    spreadsheet_id: str | None = None
    customers_sheet: str = "Customers"
    bookings_sheet: str = "Bookings"

    # Google credentials
    google_service_account_file: str | None = None
    google_api_key: str | None = None  # read-only REST fallback

    # Calendars (source may list several ids separated by commas)
    source_calendar_id: str = ""
    booking_calendar_id: str = ""
    timezone: str = "Asia/Taipei"

    business_open: str = "09:00"
    business_close: str = "21:00"
    slot_duration_hours: float = 2.0
    min_advance_hours: int = 3
    max_range_days: int = 62

    # Commit lock: "local" (threading) or "redis"
    lock_backend: Literal["local", "redis"] = "local"
    lock_timeout_seconds: float = 30.0
    calendar_timeout_seconds: float = 10.0

    # Pagination estimation
    average_daily_events: int = 8
    buffer_multiplier: float = 1.5
    max_estimation_days: int = 90
    page_size: int = 100
    min_page_size: int = 20
    max_page_size: int = 250
    max_pages: int = 20

    # Cache TTLs (seconds)
    config_cache_ttl: int = 300
    store_cache_ttl: int = 600
    customer_cache_ttl: int = 300
    booking_cache_ttl: int = 300
    events_cache_ttl: int = 300

    notifications_enabled: bool = True
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        extra="ignore",
    )

    @property
    def resolved_database_url(self) -> str:
        url = self.database_url
        if url.startswith("sqlite:///./"):
            relative_path = url.replace("sqlite:///./", "")
            absolute_path = BASE_DIR / relative_path
            return f"sqlite:///{absolute_path}"
        return url

    @property
    def source_calendar_ids(self) -> list[str]:
        return [c.strip() for c in self.source_calendar_id.split(",") if c.strip()]


settings = Settings()
