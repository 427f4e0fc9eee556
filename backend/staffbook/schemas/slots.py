# backend/staffbook/schemas/slots.py
"""
Pydantic schemas for slots API.
"""

from datetime import date
from pydantic import BaseModel, Field


class SlotRead(BaseModel):
    """Single bookable start time."""
    time: str = Field(description="Start time 'HH:MM' in the business timezone")
    staff_id: int
    staff_name: str

    model_config = {"from_attributes": True}


class SlotsResponse(BaseModel):
    """Available start times of a service on a local date."""
    service_id: int
    date: date
    timezone: str
    staff_id: int | None = None
    slots: list[SlotRead]

    model_config = {"from_attributes": True}
