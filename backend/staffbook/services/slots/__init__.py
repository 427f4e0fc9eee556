# backend/staffbook/services/slots/__init__.py
"""
Slots calculation module.

config       – time-of-day parsing/formatting, generation step
calculator   – minute-range subtraction and slot start enumeration
availability – per-service slot listing across eligible staff
"""

from .config import (
    INVALID_TIME,
    SlotConfig,
    format_time_of_day,
    get_slot_config,
    parse_time_of_day,
)
from .calculator import enumerate_slot_starts, free_intervals
from .availability import list_slots

__all__ = [
    "INVALID_TIME",
    "SlotConfig",
    "format_time_of_day",
    "get_slot_config",
    "parse_time_of_day",
    "enumerate_slot_starts",
    "free_intervals",
    "list_slots",
]
