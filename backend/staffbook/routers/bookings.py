# backend/staffbook/routers/bookings.py
# Writes only; reads and deletes are handled by the admin tools.

from fastapi import APIRouter, Depends, status

from ..config import Settings, get_settings
from ..dependencies import get_calendar, get_uow
from ..redis_client import redis_client
from ..repos.sql import SqlUnitOfWork
from ..schemas.bookings import (
    BookingCancel,
    BookingCreate,
    BookingMutationRead,
    BookingReschedule,
)
from ..services import bookings as booking_service
from ..services.external_calendar import ExternalCalendarAdapter

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post("", response_model=BookingMutationRead, status_code=status.HTTP_201_CREATED)
def create_booking(
    data: BookingCreate,
    uow: SqlUnitOfWork = Depends(get_uow),
    calendar: ExternalCalendarAdapter = Depends(get_calendar),
    settings: Settings = Depends(get_settings),
):
    result = booking_service.create_booking(
        uow,
        calendar,
        booking_service.BookingDraft(**data.model_dump()),
        settings.business_timezone,
        redis=redis_client,
    )
    return BookingMutationRead.model_validate(result)


@router.put("/{id}/cancel", response_model=BookingMutationRead)
def cancel_booking(
    id: int,
    data: BookingCancel | None = None,
    uow: SqlUnitOfWork = Depends(get_uow),
    calendar: ExternalCalendarAdapter = Depends(get_calendar),
):
    result = booking_service.cancel_booking(
        uow,
        calendar,
        id,
        note=data.note if data else None,
        redis=redis_client,
    )
    return BookingMutationRead.model_validate(result)


@router.put("/{id}/reschedule", response_model=BookingMutationRead)
def reschedule_booking(
    id: int,
    data: BookingReschedule,
    uow: SqlUnitOfWork = Depends(get_uow),
    calendar: ExternalCalendarAdapter = Depends(get_calendar),
    settings: Settings = Depends(get_settings),
):
    result = booking_service.reschedule_booking(
        uow,
        calendar,
        id,
        data.new_date,
        data.new_time,
        settings.business_timezone,
        note=data.note,
        redis=redis_client,
    )
    return BookingMutationRead.model_validate(result)
