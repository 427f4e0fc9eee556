# backend/staffbook/services/slots/calculator.py
"""
Minute-range arithmetic for slot generation.

Ranges are (start, end) pairs of minutes since local midnight with
half-open semantics: [start, end). Nothing here touches the database
or the network.
"""

from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from .config import MINUTES_PER_DAY

Range = tuple[int, int]


def free_intervals(working: list[Range], busy: list[Range]) -> list[Range]:
    """
    Subtract busy ranges from working ranges.

    Busy ranges are applied in ascending start order; each one splits any
    working range it overlaps into the part before it and the part after it.
    Empty busy ranges (end <= start) are ignored.
    """
    free = [(start, end) for start, end in working if end > start]

    for busy_start, busy_end in sorted(busy, key=lambda r: r[0]):
        if busy_end <= busy_start:
            continue

        remaining: list[Range] = []
        for free_start, free_end in free:
            overlap_start = max(free_start, busy_start)
            overlap_end = min(free_end, busy_end)

            if overlap_start >= overlap_end:
                remaining.append((free_start, free_end))
                continue

            if free_start < busy_start:
                remaining.append((free_start, busy_start))
            if free_end > busy_end:
                remaining.append((busy_end, free_end))

        free = remaining

    return free


def enumerate_slot_starts(
    free: list[Range],
    duration_minutes: int,
    step_minutes: int,
) -> list[int]:
    """
    Generate candidate start minutes inside free ranges.

    A start is emitted only if the whole service fits before the range end.
    Ranges are processed in the order given.
    """
    step = max(step_minutes, 1)
    starts: list[int] = []

    for range_start, range_end in free:
        if range_end - range_start < duration_minutes:
            continue

        t = range_start
        while t + duration_minutes <= range_end:
            starts.append(t)
            t += step

    return starts


# ── Local-day conversion ────────────────────────────────────────────────


def local_day_bounds(target_date: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """Return [local midnight, next local midnight) of target_date as aware datetimes."""
    start = datetime.combine(target_date, time.min, tzinfo=tz)
    end = datetime.combine(target_date + timedelta(days=1), time.min, tzinfo=tz)
    return start, end


def minutes_from_local_midnight(
    moment: datetime,
    target_date: date,
    tz: ZoneInfo,
    round_up: bool = False,
) -> int:
    """
    Wall-clock minutes of `moment` counted from midnight of target_date in tz.

    Negative for moments on earlier days, >= 1440 for later days.
    Sub-minute remainders are dropped unless round_up is set.
    """
    local = moment.astimezone(tz)
    day_offset = (local.date() - target_date).days
    minutes = day_offset * MINUTES_PER_DAY + local.hour * 60 + local.minute
    if round_up and (local.second or local.microsecond):
        minutes += 1
    return minutes


def clip_to_day(
    start_utc: datetime,
    end_utc: datetime,
    target_date: date,
    tz: ZoneInfo,
) -> Range | None:
    """
    Convert a UTC interval to a minute range of target_date, clipped to [0, 1440).

    Returns None when nothing of the interval falls on that day.
    """
    start = max(minutes_from_local_midnight(start_utc, target_date, tz), 0)
    end = min(
        minutes_from_local_midnight(end_utc, target_date, tz, round_up=True),
        MINUTES_PER_DAY,
    )
    if start >= end:
        return None
    return start, end
