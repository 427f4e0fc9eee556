# backend/staffbook/services/busy_sources.py
"""
Busy-time sources for a staff member in a UTC range.

Both sources return BusyInterval lists; the external one may instead
return UNVERIFIABLE, which callers must treat as "unavailable".
"""

import logging
from datetime import datetime

from ..domain import BusyInterval, StaffAvailabilityProfile
from ..errors import UnverifiableExternalStateError
from ..repos.base import BookingStore
from .external_calendar import UNVERIFIABLE, BusyResult, ExternalCalendarAdapter

logger = logging.getLogger(__name__)


def stored_busy(
    store: BookingStore,
    staff_id: int,
    start_utc: datetime,
    end_utc: datetime,
    exclude_booking_id: int | None = None,
) -> list[BusyInterval]:
    """Confirmed bookings overlapping the range, minus the excluded booking."""
    return store.get_overlapping(staff_id, start_utc, end_utc, exclude_booking_id)


def external_busy(
    calendar: ExternalCalendarAdapter,
    profile: StaffAvailabilityProfile,
    start_utc: datetime,
    end_utc: datetime,
) -> BusyResult:
    """
    Busy intervals from the staff member's linked external calendar.

    Not linked -> [] (nothing to check). Any adapter exception, including a
    malformed reply, -> UNVERIFIABLE.
    """
    if not profile.external_calendar_linked:
        logger.info(f"Staff {profile.staff_id} has no linked calendar; skipping external check")
        return []

    try:
        result = calendar.get_busy(profile.external_calendar_ref, start_utc, end_utc)
    except UnverifiableExternalStateError as e:
        logger.warning(f"External calendar of staff {profile.staff_id} unverifiable: {e}")
        return UNVERIFIABLE
    except Exception:
        logger.exception(f"External calendar of staff {profile.staff_id} failed unexpectedly")
        return UNVERIFIABLE

    if result is UNVERIFIABLE:
        logger.warning(f"External calendar of staff {profile.staff_id} could not be verified")
    return result


def any_overlap(intervals: list[BusyInterval], start_utc: datetime, end_utc: datetime) -> bool:
    return any(interval.overlaps(start_utc, end_utc) for interval in intervals)
