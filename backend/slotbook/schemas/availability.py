# backend/slotbook/schemas/availability.py
"""
Pydantic schemas for availability API.
"""

from datetime import date, datetime
from pydantic import BaseModel


class ConflictEventRead(BaseModel):
    """Booking-calendar event overlapping a slot."""
    id: str
    title: str
    start: datetime
    end: datetime
    all_day: bool = False
    calendar_id: str


class SlotAvailabilityRead(BaseModel):
    time: str
    available: bool
    conflict_count: int = 0
    conflicts: list[ConflictEventRead] = []
    period: str | None = None


class DayAvailabilityRead(BaseModel):
    date: date
    slots: dict[str, SlotAvailabilityRead]
    error: str | None = None


class UpstreamErrorRead(BaseModel):
    code: str
    error: str
    calendar_id: str | None = None


class CheckAvailabilityResponse(BaseModel):
    """Response for GET /availability/check."""
    date: date
    slots: dict[str, SlotAvailabilityRead]
    upstream_errors: list[UpstreamErrorRead] = []


class BatchAvailabilityResponse(BaseModel):
    """Response for GET /availability/batch (keys are YYYY-MM-DD)."""
    start_date: date
    end_date: date
    days: dict[str, DayAvailabilityRead]
    upstream_errors: list[UpstreamErrorRead] = []


class TimeSlotRead(BaseModel):
    time: str
    period: str
    period_label: str
    source: str


class AvailableSlotsResponse(BaseModel):
    """Bookable slots of one day."""
    date: date
    slots: list[TimeSlotRead]
    upstream_errors: list[UpstreamErrorRead] = []
