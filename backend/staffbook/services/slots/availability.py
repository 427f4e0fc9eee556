# backend/staffbook/services/slots/availability.py
"""
Bookable start times for a service on a local date.

For every eligible staff member:
- working interval for the weekday
- stored and external busy intervals for the local day, clipped to it
- free intervals -> candidate starts (service duration, fixed step)

Candidates are merged into one public slot per time of day.
Results are advisory: nothing is locked here.
"""

import logging
from datetime import date

from ...domain import PublicSlot, SlotCandidate, StaffAvailabilityProfile
from ...errors import NotFoundError, ValidationError
from ...repos.base import BookingStore, StaffDirectory
from ..busy_sources import external_busy, stored_busy
from ..external_calendar import UNVERIFIABLE, ExternalCalendarAdapter
from .calculator import Range, clip_to_day, enumerate_slot_starts, free_intervals, local_day_bounds
from .config import SlotConfig, format_time_of_day, get_slot_config, resolve_timezone

logger = logging.getLogger(__name__)


def list_slots(
    directory: StaffDirectory,
    bookings: BookingStore,
    calendar: ExternalCalendarAdapter | None,
    service_id: int,
    target_date: date,
    timezone: str | None,
    staff_id: int | None = None,
    config: SlotConfig | None = None,
) -> list[PublicSlot]:
    """
    Calculate available time slots for a service.

    Args:
        target_date: Local date in the business timezone
        timezone: Business timezone (IANA name)
        staff_id: Restrict the result to this staff member

    Returns:
        Public slots sorted by time, one per distinct start time.

    Raises:
        ValidationError: unknown timezone
        NotFoundError: service missing or inactive
    """
    config = config or get_slot_config()
    log_prefix = f"[list_slots service={service_id} date={target_date} staff={staff_id or 'any'}]"

    tz = resolve_timezone(timezone)
    if tz is None:
        raise ValidationError("Server configuration error [Timezone].")

    service = directory.get_service(service_id)
    if service is None:
        raise NotFoundError(f"Active service {service_id} not found.")

    eligible = directory.list_service_staff(service_id, staff_id)
    if not eligible:
        logger.info(f"{log_prefix} no eligible staff")
        return []

    weekday = target_date.isoweekday()
    day_start, day_end = local_day_bounds(target_date, tz)

    candidates: list[SlotCandidate] = []
    for profile in eligible:
        working = directory.get_working_interval(profile.staff_id, weekday)
        if working is None:
            logger.info(f"{log_prefix} staff {profile.staff_id} does not work on day {weekday}")
            continue

        busy = _busy_minutes(bookings, calendar, profile, day_start, day_end, target_date, tz)
        if busy is None:
            logger.warning(
                f"{log_prefix} staff {profile.staff_id} calendar unverifiable; no slots offered"
            )
            continue

        free = free_intervals([(working.start_minute, working.end_minute)], busy)
        starts = enumerate_slot_starts(free, service.duration_minutes, config.slot_step_minutes)
        logger.info(f"{log_prefix} staff {profile.staff_id}: free={free} starts={len(starts)}")

        candidates.extend(SlotCandidate(start_minute=s, staff_id=profile.staff_id) for s in starts)

    slots = _merge_candidates(candidates, eligible, staff_id)
    logger.info(f"{log_prefix} total unique slots: {len(slots)}")
    return slots


# ── Helpers ──────────────────────────────────────────────────────────────


def _busy_minutes(
    bookings: BookingStore,
    calendar: ExternalCalendarAdapter | None,
    profile: StaffAvailabilityProfile,
    day_start,
    day_end,
    target_date: date,
    tz,
) -> list[Range] | None:
    """Busy minute ranges of the local day; None if the external calendar is unverifiable."""
    intervals = list(stored_busy(bookings, profile.staff_id, day_start, day_end))

    if profile.external_calendar_linked:
        external = UNVERIFIABLE if calendar is None else external_busy(
            calendar, profile, day_start, day_end
        )
        if external is UNVERIFIABLE:
            return None
        intervals.extend(external)

    ranges = []
    for interval in intervals:
        clipped = clip_to_day(interval.start_utc, interval.end_utc, target_date, tz)
        if clipped is not None:
            ranges.append(clipped)
    return ranges


def _merge_candidates(
    candidates: list[SlotCandidate],
    eligible: list[StaffAvailabilityProfile],
    staff_id: int | None,
) -> list[PublicSlot]:
    """One slot per time; the requested staff member, or the first eligible one."""
    order = {profile.staff_id: index for index, profile in enumerate(eligible)}
    names = {profile.staff_id: profile.display_name for profile in eligible}

    by_time: dict[str, list[int]] = {}
    for candidate in candidates:
        staff_ids = by_time.setdefault(format_time_of_day(candidate.start_minute), [])
        if candidate.staff_id not in staff_ids:
            staff_ids.append(candidate.staff_id)

    slots = []
    for time_str, staff_ids in by_time.items():
        if staff_id is not None:
            if staff_id not in staff_ids:
                continue
            chosen = staff_id
        else:
            chosen = min(staff_ids, key=lambda sid: order[sid])
        slots.append(PublicSlot(time=time_str, staff_id=chosen, staff_name=names[chosen]))

    return sorted(slots, key=lambda slot: slot.time)
