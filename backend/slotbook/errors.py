# backend/slotbook/errors.py
"""
Error taxonomy for the availability and booking engine.

Input errors (InvalidDateFormat, RangeTooLarge, ValidationError) are rejected
immediately. LockTimeout is transient and retryable. SlotConflict is a business
outcome. UpstreamUnavailable never reaches the slot-display path as a failure.
"""


class BookingEngineError(Exception):
    """Base class for engine errors."""

    code = "engine_error"
    retryable = False

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code

    def to_dict(self) -> dict:
        return {"code": self.code, "error": self.message, "retryable": self.retryable}


class UpstreamUnavailable(BookingEngineError):
    code = "upstream_unavailable"
    retryable = True

    def __init__(self, message: str = "", calendar_id: str | None = None):
        super().__init__(message)
        self.calendar_id = calendar_id

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["calendar_id"] = self.calendar_id
        return data


class InvalidDateFormat(BookingEngineError):
    code = "invalid_date_format"


class RangeTooLarge(BookingEngineError):
    code = "range_too_large"

    def __init__(self, days: int, max_days: int):
        super().__init__(f"Date range of {days} days exceeds the maximum of {max_days} days")
        self.days = days
        self.max_days = max_days


class LockTimeout(BookingEngineError):
    code = "lock_timeout"
    retryable = True

    def __init__(self, waited_seconds: float):
        super().__init__(f"Booking system busy, lock not acquired within {waited_seconds:g}s")
        self.waited_seconds = waited_seconds


class SlotConflict(BookingEngineError):
    code = "slot_conflict"

    def __init__(self, date_str: str, time_str: str, conflicts: list | None = None):
        super().__init__(f"Time slot {date_str} {time_str} is no longer available")
        self.date = date_str
        self.time = time_str
        self.conflicts = conflicts or []

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["conflicts"] = [c.to_dict() for c in self.conflicts]
        return data


class ValidationError(BookingEngineError):
    code = "validation_error"

    def __init__(self, message: str, fields: dict[str, str] | None = None):
        super().__init__(message)
        self.fields = fields or {}

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["fields"] = self.fields
        return data
