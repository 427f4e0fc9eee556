# backend/staffbook/domain.py
"""
Value types shared by the availability engine.

All of them are built per request and discarded afterwards.
Datetimes are timezone-aware; "*_utc" fields are always in UTC.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

BusySource = Literal["stored", "external"]

STATUS_CONFIRMED = "confirmed"
STATUS_CANCELLED = "cancelled"
TERMINAL_STATUSES = frozenset({"cancelled", "completed", "no-show"})


@dataclass(frozen=True)
class WorkingInterval:
    """Configured working time-of-day range for one ISO weekday (Monday=1)."""
    weekday: int
    start_minute: int
    end_minute: int

    def __post_init__(self):
        if not 1 <= self.weekday <= 7:
            raise ValueError(f"weekday must be 1..7, got {self.weekday}")
        if self.end_minute <= self.start_minute:
            raise ValueError(
                f"end_minute must be after start_minute, got {self.start_minute}-{self.end_minute}"
            )


@dataclass(frozen=True)
class BusyInterval:
    start_utc: datetime
    end_utc: datetime
    source: BusySource
    booking_id: int | None = None

    def overlaps(self, start_utc: datetime, end_utc: datetime) -> bool:
        """Half-open overlap: touching boundaries do not conflict."""
        return self.start_utc < end_utc and start_utc < self.end_utc


@dataclass(frozen=True)
class CalendarRef:
    """Opaque handle to a staff member's external calendar."""
    staff_id: int
    calendar_id: str = "primary"


@dataclass(frozen=True)
class StaffAvailabilityProfile:
    staff_id: int
    display_name: str
    is_active: bool
    external_calendar_ref: CalendarRef | None = None

    @property
    def external_calendar_linked(self) -> bool:
        return self.external_calendar_ref is not None


@dataclass(frozen=True)
class ServiceInfo:
    service_id: int
    name: str
    duration_minutes: int
    is_active: bool = True


@dataclass(frozen=True)
class AvailabilityRequest:
    staff_id: int
    start_utc: datetime
    end_utc: datetime
    evaluation_timezone: str | None
    exclude_booking_id: int | None = None


@dataclass(frozen=True)
class AvailabilityDecision:
    available: bool
    reasons: tuple[str, ...] = ()

    @classmethod
    def ok(cls) -> "AvailabilityDecision":
        return cls(available=True)

    @classmethod
    def rejected(cls, *reasons: str) -> "AvailabilityDecision":
        return cls(available=False, reasons=tuple(reasons))


@dataclass(frozen=True)
class SlotCandidate:
    start_minute: int
    staff_id: int


@dataclass(frozen=True)
class PublicSlot:
    time: str  # "HH:MM" in the business timezone
    staff_id: int
    staff_name: str


@dataclass(frozen=True)
class BookingRecord:
    booking_id: int
    staff_id: int
    service_id: int
    start_utc: datetime
    end_utc: datetime
    status: str
    client_name: str
    client_email: str
    booking_timezone: str
    client_phone: str | None = None
    notes: str | None = None
    external_event_id: str | None = None
    customer_id: int | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


@dataclass(frozen=True)
class Customer:
    """Client identity shared by all bookings made with the same email."""
    customer_id: int
    name: str
    email: str
    phone: str | None = None


@dataclass(frozen=True)
class NewBooking:
    staff_id: int
    service_id: int
    start_utc: datetime
    end_utc: datetime
    client_name: str
    client_email: str
    booking_timezone: str
    client_phone: str | None = None
    notes: str | None = None
    status: str = STATUS_CONFIRMED
    customer_id: int | None = None


@dataclass(frozen=True)
class CalendarEvent:
    """Payload mirrored to the external calendar for a booking."""
    summary: str
    start_utc: datetime
    end_utc: datetime
    description: str = ""


@dataclass(frozen=True)
class MutationResult:
    """Committed write plus any non-fatal calendar mirror warnings."""
    booking_id: int
    message: str
    start_utc: datetime
    end_utc: datetime
    warnings: tuple[str, ...] = field(default_factory=tuple)
