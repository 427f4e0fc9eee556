# backend/staffbook/schemas/availability.py

from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class AvailabilityCheckRequest(BaseModel):
    staff_id: int
    start_utc: datetime
    end_utc: datetime
    exclude_booking_id: Optional[int] = None


class AvailabilityCheckResponse(BaseModel):
    available: bool
    reasons: list[str] = []

    model_config = {"from_attributes": True}
