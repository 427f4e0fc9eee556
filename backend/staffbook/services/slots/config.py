# backend/staffbook/services/slots/config.py
"""
Slot generation configuration and time-of-day helpers.
"""

import logging
import math
from dataclasses import dataclass
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ...config import get_settings

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60

# Returned by parse_time_of_day for anything that is not a valid "HH:MM".
INVALID_TIME = -1


@dataclass(frozen=True)
class SlotConfig:
    """
    Configuration for slot enumeration.

    Attributes:
        slot_step_minutes: Distance between candidate start times.
            Independent of service duration and of any staff granularity.
    """
    slot_step_minutes: int = 15

    def __post_init__(self):
        """Validate configuration."""
        if self.slot_step_minutes < 1:
            raise ValueError(f"slot_step_minutes must be positive, got {self.slot_step_minutes}")


@lru_cache
def get_slot_config() -> SlotConfig:
    """Get slot configuration from application settings (cached)."""
    return SlotConfig(slot_step_minutes=get_settings().slot_step_minutes)


def resolve_timezone(name: str | None) -> ZoneInfo | None:
    """Return ZoneInfo for an IANA name, or None if unset or unknown."""
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.error(f"Unknown timezone: {name!r}")
        return None


def parse_time_of_day(value) -> int:
    """
    Convert "HH:MM" (or "HH:MM:SS", seconds ignored) to minutes since midnight.

    Returns INVALID_TIME instead of raising on malformed input.
    """
    if not isinstance(value, str):
        logger.warning(f"Invalid time value: expected string, got {type(value).__name__}")
        return INVALID_TIME

    parts = [part.strip() for part in value.strip().split(":")]
    if len(parts) not in (2, 3):
        logger.warning(f"Invalid time format (expected HH:MM or HH:MM:SS): {value!r}")
        return INVALID_TIME

    if not all(_is_ascii_number(part) for part in parts):
        logger.warning(f"Could not parse hours/minutes from: {value!r}")
        return INVALID_TIME

    hours, minutes = int(parts[0]), int(parts[1])
    seconds = int(parts[2]) if len(parts) == 3 else 0
    if hours > 23 or minutes > 59 or seconds > 59:
        logger.warning(f"Time out of range: {value!r}")
        return INVALID_TIME

    return hours * 60 + minutes


def format_time_of_day(minutes) -> str:
    """
    Convert minutes since midnight to "HH:MM".

    Presentation only: wraps modulo 24h, and formats negative,
    NaN or non-numeric input as "00:00".
    """
    if isinstance(minutes, bool) or not isinstance(minutes, (int, float)):
        return "00:00"
    if math.isnan(minutes) or math.isinf(minutes) or minutes < 0:
        return "00:00"

    total = int(minutes) % MINUTES_PER_DAY
    return f"{total // 60:02d}:{total % 60:02d}"


def _is_ascii_number(text: str) -> bool:
    # str.isdigit() alone accepts digits such as "²" that int() rejects
    return text.isascii() and text.isdigit()
