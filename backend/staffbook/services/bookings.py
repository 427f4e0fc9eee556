# backend/staffbook/services/bookings.py
"""
Booking write path: create, cancel, reschedule.

Every write is one unit of work:
  lock rows -> re-run the availability check -> write -> commit
External calendar busy times are fetched before any lock is taken, and the
calendar mirror (create/patch/delete event) runs only after commit. Mirror
failures become warnings on an otherwise successful result.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable

from redis import Redis

from ..domain import (
    STATUS_CANCELLED,
    STATUS_CONFIRMED,
    AvailabilityRequest,
    CalendarEvent,
    MutationResult,
    NewBooking,
    ServiceInfo,
    StaffAvailabilityProfile,
)
from ..errors import BookingError, ConflictError, NotFoundError, TransactionError, ValidationError
from ..repos.base import UnitOfWork
from .availability_check import check_availability
from .busy_sources import external_busy
from .events import emit_event
from .external_calendar import UNVERIFIABLE, BusyResult, ExternalCalendarAdapter
from .slots.config import INVALID_TIME, parse_time_of_day, resolve_timezone

logger = logging.getLogger(__name__)

WARN_CREATE_EVENT = "Failed to create Google Calendar event."
WARN_LINK_EVENT = "Google Calendar event was created but could not be linked to the booking."
WARN_UPDATE_EVENT = "Failed to update Google Calendar event."
WARN_DELETE_EVENT = "Failed to delete Google Calendar event."


@dataclass(frozen=True)
class BookingDraft:
    """Client booking request; date/time are local to the client's timezone."""
    service_id: int
    staff_id: int
    date: str  # "YYYY-MM-DD"
    time: str  # "HH:MM"
    timezone: str
    client_name: str
    client_email: str
    client_phone: str | None = None
    notes: str | None = None


# ── Create ───────────────────────────────────────────────────────────────


def create_booking(
    uow: UnitOfWork,
    calendar: ExternalCalendarAdapter | None,
    draft: BookingDraft,
    business_timezone: str | None,
    redis: Redis | None = None,
) -> MutationResult:
    """
    Create a confirmed booking if the slot is still free.

    Raises:
        ValidationError: missing fields, bad date/time, unknown timezone,
            staff not offering the service
        NotFoundError: service or staff missing/inactive
        ConflictError: slot unavailable (reasons from the availability check)
        TransactionError: persistence failure; nothing was written
    """
    log_prefix = f"[create_booking staff={draft.staff_id} service={draft.service_id}]"

    if not draft.client_name or not draft.client_email:
        raise ValidationError("Missing required booking fields.")
    client_tz = resolve_timezone(draft.timezone)
    if client_tz is None:
        raise ValidationError(f"Invalid timezone provided: {draft.timezone}")
    _require_timezone(business_timezone)
    local_start = _parse_local_datetime(draft.date, draft.time, client_tz)

    with _transaction(uow, log_prefix):
        # Unlocked reads: enough to compute the interval and ask the
        # external calendar before any row lock is held.
        service = _require_service(uow, draft.service_id)
        profile = _require_staff(uow, draft.staff_id)
        start_utc, end_utc = _utc_interval(local_start, service.duration_minutes)
        prefetched = _prefetch_external(calendar, profile, start_utc, end_utc)

        service = _require_service(uow, draft.service_id, with_lock=True)
        profile = _require_staff(uow, draft.staff_id, with_lock=True)
        if not uow.directory.staff_provides_service(profile.staff_id, service.service_id):
            raise ValidationError("Staff member does not provide the selected service.")

        locked_start, locked_end = _utc_interval(local_start, service.duration_minutes)
        external = _reuse_prefetch(
            prefetched, profile, (start_utc, end_utc), (locked_start, locked_end), log_prefix
        )
        start_utc, end_utc = locked_start, locked_end

        decision = check_availability(
            AvailabilityRequest(
                staff_id=profile.staff_id,
                start_utc=start_utc,
                end_utc=end_utc,
                evaluation_timezone=business_timezone,
            ),
            uow.directory,
            uow.bookings,
            profile=profile,
            external_result=external,
        )
        if not decision.available:
            logger.info(f"{log_prefix} rejected: {' '.join(decision.reasons)}")
            raise ConflictError(decision.reasons)

        customer_id = uow.bookings.find_or_create_customer(
            draft.client_name, draft.client_email, draft.client_phone
        )
        booking_id = uow.bookings.insert(
            NewBooking(
                staff_id=profile.staff_id,
                service_id=service.service_id,
                start_utc=start_utc,
                end_utc=end_utc,
                client_name=draft.client_name,
                client_email=draft.client_email,
                client_phone=draft.client_phone,
                notes=draft.notes,
                booking_timezone=draft.timezone,
                status=STATUS_CONFIRMED,
                customer_id=customer_id,
            )
        )
        uow.commit()

    logger.info(f"{log_prefix} booking {booking_id} committed: {start_utc.isoformat()}")

    warnings = []
    if profile.external_calendar_linked and calendar is not None:
        event = CalendarEvent(
            summary=f"{service.name} with {draft.client_name}",
            description=_event_description(booking_id, draft),
            start_utc=start_utc,
            end_utc=end_utc,
        )
        event_id = _best_effort(
            log_prefix, "create event",
            lambda: calendar.create_event(profile.external_calendar_ref, event),
        )
        if event_id is _FAILED:
            warnings.append(WARN_CREATE_EVENT)
        elif not _link_event(uow, booking_id, event_id, log_prefix):
            warnings.append(WARN_LINK_EVENT)

    emit_event(redis, "booking_created", {
        "booking_id": booking_id,
        "staff_id": profile.staff_id,
        "service_id": service.service_id,
        "start_utc": start_utc.isoformat(),
        "end_utc": end_utc.isoformat(),
    })

    return MutationResult(
        booking_id=booking_id,
        message="Booking confirmed successfully!",
        start_utc=start_utc,
        end_utc=end_utc,
        warnings=tuple(warnings),
    )


# ── Cancel ───────────────────────────────────────────────────────────────


def cancel_booking(
    uow: UnitOfWork,
    calendar: ExternalCalendarAdapter | None,
    booking_id: int,
    note: str | None = None,
    redis: Redis | None = None,
    now: datetime | None = None,
) -> MutationResult:
    """
    Cancel a booking that is not in a terminal state.

    Raises:
        NotFoundError: booking does not exist
        ConflictError: booking already cancelled/completed/no-show
        TransactionError: persistence failure
    """
    log_prefix = f"[cancel_booking {booking_id}]"
    now = now or datetime.now(timezone.utc)

    with _transaction(uow, log_prefix):
        booking = uow.bookings.get_booking(booking_id, with_lock=True)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found.")
        if booking.is_terminal:
            message = f"Booking already in terminal status: {booking.status}."
            raise ConflictError([message], message=message)

        uow.bookings.set_status(
            booking_id,
            STATUS_CANCELLED,
            note=f"[Cancellation: {now.isoformat()}] {note or 'Cancelled by operator'}",
        )
        profile = uow.directory.get_staff_profile(booking.staff_id)
        uow.commit()

    logger.info(f"{log_prefix} cancelled")

    warnings = []
    if booking.external_event_id and _mirror_enabled(profile, calendar):
        result = _best_effort(
            log_prefix, "delete event",
            lambda: calendar.delete_event(profile.external_calendar_ref, booking.external_event_id),
        )
        if result is _FAILED:
            warnings.append(WARN_DELETE_EVENT)
        else:
            _link_event(uow, booking_id, None, log_prefix)

    emit_event(redis, "booking_cancelled", {
        "booking_id": booking_id,
        "staff_id": booking.staff_id,
    })

    return MutationResult(
        booking_id=booking_id,
        message=f"Booking {booking_id} cancelled successfully.",
        start_utc=booking.start_utc,
        end_utc=booking.end_utc,
        warnings=tuple(warnings),
    )


# ── Reschedule ───────────────────────────────────────────────────────────


def reschedule_booking(
    uow: UnitOfWork,
    calendar: ExternalCalendarAdapter | None,
    booking_id: int,
    new_date: str,
    new_time: str,
    business_timezone: str | None,
    note: str | None = None,
    redis: Redis | None = None,
    now: datetime | None = None,
) -> MutationResult:
    """
    Move a booking to a new local date/time (business timezone).

    The booking's own interval is excluded from the conflict check.

    Raises:
        ValidationError: bad date/time, time in the past, unknown timezone
        NotFoundError: booking or its service does not exist
        ConflictError: terminal status or new slot unavailable
        TransactionError: persistence failure
    """
    log_prefix = f"[reschedule_booking {booking_id}]"
    now = now or datetime.now(timezone.utc)

    if len(new_time.strip()) != 5:
        raise ValidationError("Missing or invalid newDate (YYYY-MM-DD) or newTime (HH:MM).")
    tz = _require_timezone(business_timezone)
    local_start = _parse_local_datetime(new_date, new_time, tz)
    if local_start < now:
        raise ValidationError("Cannot reschedule to a time in the past.")

    with _transaction(uow, log_prefix):
        booking = uow.bookings.get_booking(booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found.")
        service = _require_service(uow, booking.service_id)
        profile = uow.directory.get_staff_profile(booking.staff_id)
        start_utc, end_utc = _utc_interval(local_start, service.duration_minutes)
        prefetched = (
            _prefetch_external(calendar, profile, start_utc, end_utc) if profile else None
        )

        booking = uow.bookings.get_booking(booking_id, with_lock=True)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found.")
        if booking.is_terminal:
            message = f"Cannot reschedule booking in status: {booking.status}."
            raise ConflictError([message], message=message)
        profile = uow.directory.get_staff_profile(booking.staff_id, with_lock=True)

        external = None
        if profile is not None:
            external = _reuse_prefetch(
                prefetched, profile, (start_utc, end_utc), (start_utc, end_utc), log_prefix
            )

        decision = check_availability(
            AvailabilityRequest(
                staff_id=booking.staff_id,
                start_utc=start_utc,
                end_utc=end_utc,
                evaluation_timezone=business_timezone,
                exclude_booking_id=booking_id,
            ),
            uow.directory,
            uow.bookings,
            profile=profile,
            external_result=external,
        )
        if not decision.available:
            logger.info(f"{log_prefix} rejected: {' '.join(decision.reasons)}")
            raise ConflictError(decision.reasons)

        uow.bookings.update_interval(
            booking_id,
            start_utc,
            end_utc,
            STATUS_CONFIRMED,
            note=f"[Rescheduled on {now.isoformat()}]" + (f" {note}" if note else ""),
        )
        uow.commit()

    logger.info(f"{log_prefix} moved to {start_utc.isoformat()}")

    warnings = []
    if booking.external_event_id and _mirror_enabled(profile, calendar):
        event = CalendarEvent(
            summary=f"{service.name} with {booking.client_name} (Rescheduled)",
            start_utc=start_utc,
            end_utc=end_utc,
        )
        result = _best_effort(
            log_prefix, "patch event",
            lambda: calendar.patch_event(
                profile.external_calendar_ref, booking.external_event_id, event
            ),
        )
        if result is _FAILED:
            warnings.append(WARN_UPDATE_EVENT)

    emit_event(redis, "booking_rescheduled", {
        "booking_id": booking_id,
        "staff_id": booking.staff_id,
        "start_utc": start_utc.isoformat(),
        "end_utc": end_utc.isoformat(),
    })

    return MutationResult(
        booking_id=booking_id,
        message=f"Booking {booking_id} rescheduled successfully.",
        start_utc=start_utc,
        end_utc=end_utc,
        warnings=tuple(warnings),
    )


# ── Helpers ──────────────────────────────────────────────────────────────

_FAILED = object()


@contextmanager
def _transaction(uow: UnitOfWork, log_prefix: str):
    """Run a block as one unit of work; unexpected failures become TransactionError."""
    try:
        with uow:
            yield uow
    except BookingError:
        raise
    except Exception as e:
        logger.exception(f"{log_prefix} transaction rolled back: {e}")
        raise TransactionError() from e


def _best_effort(log_prefix: str, action: str, call: Callable):
    """Run a calendar mirror call after commit; returns _FAILED instead of raising."""
    try:
        return call()
    except Exception as e:
        logger.error(f"{log_prefix} calendar {action} failed: {e}")
        return _FAILED


def _link_event(uow: UnitOfWork, booking_id: int, event_id: str | None, log_prefix: str) -> bool:
    """Store the mirrored event id in a short follow-up transaction."""
    try:
        with _transaction(uow, log_prefix):
            uow.bookings.set_external_event_id(booking_id, event_id)
            uow.commit()
    except TransactionError:
        return False
    return True


def _mirror_enabled(
    profile: StaffAvailabilityProfile | None,
    calendar: ExternalCalendarAdapter | None,
) -> bool:
    return calendar is not None and profile is not None and profile.external_calendar_linked


def _prefetch_external(
    calendar: ExternalCalendarAdapter | None,
    profile: StaffAvailabilityProfile,
    start_utc: datetime,
    end_utc: datetime,
) -> tuple[object, BusyResult] | None:
    """External busy intervals, keyed by the calendar they came from."""
    if not profile.external_calendar_linked:
        return None
    if calendar is None:
        return profile.external_calendar_ref, UNVERIFIABLE
    return profile.external_calendar_ref, external_busy(calendar, profile, start_utc, end_utc)


def _reuse_prefetch(
    prefetched: tuple[object, BusyResult] | None,
    profile: StaffAvailabilityProfile,
    fetched_for: tuple[datetime, datetime],
    needed_for: tuple[datetime, datetime],
    log_prefix: str,
) -> BusyResult | None:
    """
    Result to feed the in-lock check. If the calendar or interval changed
    between the unlocked read and the lock, the prefetch is stale and the
    calendar counts as unverifiable (no network calls under lock).
    """
    if not profile.external_calendar_linked:
        return None
    if (
        prefetched is None
        or prefetched[0] != profile.external_calendar_ref
        or fetched_for != needed_for
    ):
        logger.warning(f"{log_prefix} calendar data changed while locking; failing closed")
        return UNVERIFIABLE
    return prefetched[1]


def _require_timezone(name: str | None):
    tz = resolve_timezone(name)
    if tz is None:
        raise ValidationError("Server configuration error [Timezone].")
    return tz


def _require_service(uow: UnitOfWork, service_id: int, with_lock: bool = False) -> ServiceInfo:
    service = uow.directory.get_service(service_id, with_lock=with_lock)
    if service is None:
        raise NotFoundError(f"Active service with ID {service_id} not found or is inactive.")
    return service


def _require_staff(
    uow: UnitOfWork, staff_id: int, with_lock: bool = False
) -> StaffAvailabilityProfile:
    profile = uow.directory.get_staff_profile(staff_id, with_lock=with_lock)
    if profile is None or not profile.is_active:
        raise NotFoundError(f"Active staff member with ID {staff_id} not found or is inactive.")
    return profile


def _parse_local_datetime(date_str: str, time_str: str, tz) -> datetime:
    """Combine "YYYY-MM-DD" and "HH:MM" into an aware datetime in tz."""
    try:
        local_date = date.fromisoformat(date_str)
    except (TypeError, ValueError):
        raise ValidationError("Invalid date or time format provided for booking.")

    minutes = parse_time_of_day(time_str)
    if minutes == INVALID_TIME:
        raise ValidationError("Invalid date or time format provided for booking.")

    return datetime.combine(local_date, time(minutes // 60, minutes % 60), tzinfo=tz)


def _utc_interval(local_start: datetime, duration_minutes: int) -> tuple[datetime, datetime]:
    start_utc = local_start.astimezone(timezone.utc)
    return start_utc, start_utc + timedelta(minutes=duration_minutes)


def _event_description(booking_id: int, draft: BookingDraft) -> str:
    return "\n".join([
        f"Client: {draft.client_name}",
        f"Email: {draft.client_email}",
        f"Phone: {draft.client_phone or 'N/A'}",
        f"Notes: {draft.notes or 'N/A'}",
        f"Booking ID: {booking_id}",
    ])
