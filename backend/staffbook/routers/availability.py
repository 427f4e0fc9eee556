# backend/staffbook/routers/availability.py

from fastapi import APIRouter, Depends

from ..config import Settings, get_settings
from ..dependencies import get_calendar, get_uow
from ..domain import AvailabilityRequest
from ..repos.sql import SqlUnitOfWork
from ..schemas.availability import AvailabilityCheckRequest, AvailabilityCheckResponse
from ..services.availability_check import check_availability
from ..services.external_calendar import ExternalCalendarAdapter

router = APIRouter(prefix="/availability", tags=["availability"])


@router.post("/check", response_model=AvailabilityCheckResponse)
def check(
    data: AvailabilityCheckRequest,
    uow: SqlUnitOfWork = Depends(get_uow),
    calendar: ExternalCalendarAdapter = Depends(get_calendar),
    settings: Settings = Depends(get_settings),
):
    """Advisory check; nothing is locked or written."""
    request = AvailabilityRequest(
        staff_id=data.staff_id,
        start_utc=data.start_utc,
        end_utc=data.end_utc,
        evaluation_timezone=settings.business_timezone,
        exclude_booking_id=data.exclude_booking_id,
    )
    with uow:
        decision = check_availability(request, uow.directory, uow.bookings, calendar)

    return AvailabilityCheckResponse(available=decision.available, reasons=list(decision.reasons))
