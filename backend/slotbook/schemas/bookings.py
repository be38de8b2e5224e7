# backend/slotbook/schemas/bookings.py

from pydantic import BaseModel, Field, field_validator


class BookingCreate(BaseModel):
    user_id: str
    name: str
    phone: str
    date: str
    time: str
    services: str = ""
    removal: str = ""
    extension: str = ""
    remarks: str = ""

    # Issued and verified upstream; only presence is checked here
    csrf_token: str = Field(min_length=1)

    @field_validator("services", mode="before")
    @classmethod
    def join_services(cls, value):
        if isinstance(value, list):
            return ", ".join(str(v) for v in value if v)
        return value or ""


class BookingRead(BaseModel):
    booking_id: str | None = None
    user_id: str
    name: str
    phone: str
    date: str
    time: str
    services: str
    removal: str = ""
    extension: str = ""
    remarks: str = ""
    created_at: str
    event_id: str = ""


class BookingCommitResponse(BaseModel):
    success: bool
    booking_id: str | None = None
    error: str | None = None
    code: str | None = None
    warnings: list[str] = []
