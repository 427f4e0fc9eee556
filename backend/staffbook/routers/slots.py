# backend/staffbook/routers/slots.py
"""
Slots API endpoints.

GET /slots - bookable start times of a service on a local date
"""

from datetime import date
from fastapi import APIRouter, Depends, Query

from ..config import Settings, get_settings
from ..dependencies import get_calendar, get_uow
from ..repos.sql import SqlUnitOfWork
from ..schemas.slots import SlotRead, SlotsResponse
from ..services.external_calendar import ExternalCalendarAdapter
from ..services.slots import list_slots


router = APIRouter(prefix="/slots", tags=["slots"])


@router.get("", response_model=SlotsResponse)
def get_slots(
    service_id: int,
    target_date: date = Query(..., alias="date"),
    staff_id: int | None = None,
    uow: SqlUnitOfWork = Depends(get_uow),
    calendar: ExternalCalendarAdapter = Depends(get_calendar),
    settings: Settings = Depends(get_settings),
):
    """Available start times (business timezone), one entry per time."""
    with uow:
        slots = list_slots(
            uow.directory,
            uow.bookings,
            calendar,
            service_id=service_id,
            target_date=target_date,
            timezone=settings.business_timezone,
            staff_id=staff_id,
        )

    return SlotsResponse(
        service_id=service_id,
        date=target_date,
        timezone=settings.business_timezone,
        staff_id=staff_id,
        slots=[SlotRead.model_validate(slot) for slot in slots],
    )
