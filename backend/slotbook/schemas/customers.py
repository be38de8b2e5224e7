# backend/slotbook/schemas/customers.py

from pydantic import BaseModel, Field


class CustomerSave(BaseModel):
    line_user_id: str = ""
    name: str
    phone: str
    csrf_token: str = Field(min_length=1)


class CustomerRead(BaseModel):
    line_user_id: str
    name: str
    phone: str
    created_at: str
    last_booking: str = ""
    total_bookings: int = 0


class CustomerVerifyResponse(BaseModel):
    verified: bool
    customer: CustomerRead | None = None
