# backend/staffbook/services/availability_check.py
"""
Availability decision for one staff member and one UTC interval.

The check is a fixed sequence of stages:

1. Staff exists and is active
2. Request lies inside the staff member's working hours (business timezone)
3. No overlapping confirmed booking
4. No overlapping event in the linked external calendar (fail closed)

Each stage returns either an updated context (continue) or a terminal
AvailabilityDecision. The first decision wins; later stages are not run.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, Union
from zoneinfo import ZoneInfo

from ..domain import AvailabilityDecision, AvailabilityRequest, StaffAvailabilityProfile
from ..errors import ValidationError
from ..repos.base import BookingStore, StaffDirectory
from .busy_sources import any_overlap, external_busy, stored_busy
from .external_calendar import UNVERIFIABLE, BusyResult, ExternalCalendarAdapter
from .slots.calculator import minutes_from_local_midnight
from .slots.config import format_time_of_day, resolve_timezone

logger = logging.getLogger(__name__)

REASON_TIMEZONE = "Server configuration error [Timezone]."
REASON_STAFF = "Staff member not found or inactive."
REASON_DAY_OFF = "Staff member does not work on the selected day."
REASON_BOOKING_CONFLICT = "Conflicts with another booking in the schedule."
REASON_CALENDAR_UNVERIFIED = "Could not verify Google Calendar availability."
REASON_CALENDAR_CONFLICT = "Conflicts with an event in the staff's Google Calendar."


@dataclass(frozen=True)
class _CheckContext:
    request: AvailabilityRequest
    directory: StaffDirectory
    bookings: BookingStore
    calendar: ExternalCalendarAdapter | None
    profile: StaffAvailabilityProfile | None = None
    tz: ZoneInfo | None = None
    external_result: BusyResult | None = None


StageResult = Union[_CheckContext, AvailabilityDecision]
Stage = Callable[[_CheckContext], StageResult]


def check_availability(
    request: AvailabilityRequest,
    directory: StaffDirectory,
    bookings: BookingStore,
    calendar: ExternalCalendarAdapter | None = None,
    profile: StaffAvailabilityProfile | None = None,
    external_result: BusyResult | None = None,
) -> AvailabilityDecision:
    """
    Decide whether the requested interval can be booked.

    Args:
        request: Staff, UTC interval, business timezone, optional booking to ignore
        directory: Staff/working-hours lookups
        bookings: Stored bookings
        calendar: External calendar adapter (used only for linked staff)
        profile: Already loaded staff profile; fetched once if omitted
        external_result: Busy intervals fetched earlier for this interval
            (e.g. before taking row locks); replaces the adapter call

    Returns:
        AvailabilityDecision; reasons are empty iff available.

    Raises:
        ValidationError: naive datetimes or an empty/inverted interval
    """
    _validate_interval(request.start_utc, request.end_utc)

    context = _CheckContext(
        request=request,
        directory=directory,
        bookings=bookings,
        calendar=calendar,
        profile=profile,
        external_result=external_result,
    )

    log_prefix = f"[check_availability staff={request.staff_id}]"
    for stage in STAGES:
        result = stage(context)
        if isinstance(result, AvailabilityDecision):
            logger.info(f"{log_prefix} unavailable: {' '.join(result.reasons)}")
            return result
        context = result

    logger.info(
        f"{log_prefix} available: {request.start_utc.isoformat()} - {request.end_utc.isoformat()}"
    )
    return AvailabilityDecision.ok()


# ── Stages ───────────────────────────────────────────────────────────────


def _timezone_stage(context: _CheckContext) -> StageResult:
    tz = resolve_timezone(context.request.evaluation_timezone)
    if tz is None:
        logger.error(
            f"Evaluation timezone not set or invalid: {context.request.evaluation_timezone!r}"
        )
        return AvailabilityDecision.rejected(REASON_TIMEZONE)
    return replace(context, tz=tz)


def _staff_stage(context: _CheckContext) -> StageResult:
    profile = context.profile
    if profile is None:
        profile = context.directory.get_staff_profile(context.request.staff_id)
    if profile is None or not profile.is_active:
        return AvailabilityDecision.rejected(REASON_STAFF)
    return replace(context, profile=profile)


def _working_hours_stage(context: _CheckContext) -> StageResult:
    request, tz = context.request, context.tz

    local_start = request.start_utc.astimezone(tz)
    local_date = local_start.date()
    weekday = local_start.isoweekday()

    interval = context.directory.get_working_interval(request.staff_id, weekday)
    if interval is None:
        return AvailabilityDecision.rejected(REASON_DAY_OFF)

    start_minute = minutes_from_local_midnight(request.start_utc, local_date, tz)
    end_minute = minutes_from_local_midnight(request.end_utc, local_date, tz, round_up=True)

    if start_minute < interval.start_minute or end_minute > interval.end_minute:
        return AvailabilityDecision.rejected(
            "Time slot falls outside staff working hours "
            f"({format_time_of_day(interval.start_minute)} - "
            f"{format_time_of_day(interval.end_minute)} {request.evaluation_timezone})."
        )
    return context


def _stored_bookings_stage(context: _CheckContext) -> StageResult:
    request = context.request
    busy = stored_busy(
        context.bookings,
        request.staff_id,
        request.start_utc,
        request.end_utc,
        request.exclude_booking_id,
    )
    if any_overlap(busy, request.start_utc, request.end_utc):
        return AvailabilityDecision.rejected(REASON_BOOKING_CONFLICT)
    return context


def _external_calendar_stage(context: _CheckContext) -> StageResult:
    request, profile = context.request, context.profile
    if not profile.external_calendar_linked:
        return context

    busy = context.external_result
    if busy is None:
        if context.calendar is None:
            logger.warning(f"No calendar adapter to verify staff {profile.staff_id}")
            busy = UNVERIFIABLE
        else:
            busy = external_busy(context.calendar, profile, request.start_utc, request.end_utc)

    if busy is UNVERIFIABLE:
        return AvailabilityDecision.rejected(REASON_CALENDAR_UNVERIFIED)
    if any_overlap(busy, request.start_utc, request.end_utc):
        return AvailabilityDecision.rejected(REASON_CALENDAR_CONFLICT)
    return context


STAGES: tuple[Stage, ...] = (
    _timezone_stage,
    _staff_stage,
    _working_hours_stage,
    _stored_bookings_stage,
    _external_calendar_stage,
)


def _validate_interval(start_utc: datetime, end_utc: datetime) -> None:
    if start_utc.tzinfo is None or end_utc.tzinfo is None:
        raise ValidationError("Booking times must be timezone-aware.")
    if end_utc <= start_utc:
        raise ValidationError("Booking end must be after its start.")
