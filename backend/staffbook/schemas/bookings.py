# backend/staffbook/schemas/bookings.py

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class BookingCreate(BaseModel):
    service_id: int
    staff_id: int

    # Local to `timezone` (the client's timezone)
    date: str = Field(description="YYYY-MM-DD")
    time: str = Field(description="HH:MM")
    timezone: str

    client_name: str
    client_email: str
    client_phone: Optional[str] = None
    notes: Optional[str] = None


class BookingCancel(BaseModel):
    note: Optional[str] = None


class BookingReschedule(BaseModel):
    # Local to the business timezone
    new_date: str = Field(description="YYYY-MM-DD")
    new_time: str = Field(description="HH:MM")
    note: Optional[str] = None


class BookingMutationRead(BaseModel):
    booking_id: int
    message: str

    start_utc: datetime
    end_utc: datetime

    warnings: list[str] = []

    model_config = {"from_attributes": True}
