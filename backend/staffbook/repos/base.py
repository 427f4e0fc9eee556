# backend/staffbook/repos/base.py
"""
Persistence capabilities required by the availability engine.

A UnitOfWork is opened by the caller and passed down; the engine never
reaches for a process-wide connection. Locking methods (with_lock=True)
hold the row until commit() or rollback().
"""

from abc import ABC, abstractmethod
from datetime import datetime

from ..domain import (
    BookingRecord,
    BusyInterval,
    NewBooking,
    ServiceInfo,
    StaffAvailabilityProfile,
    WorkingInterval,
)


class StaffDirectory(ABC):

    @abstractmethod
    def get_staff_profile(
        self, staff_id: int, with_lock: bool = False
    ) -> StaffAvailabilityProfile | None:
        """Return the staff profile, or None if the staff member does not exist."""

    @abstractmethod
    def get_working_interval(self, staff_id: int, weekday: int) -> WorkingInterval | None:
        """Working hours for an ISO weekday, or None if the staff member is off."""

    @abstractmethod
    def get_service(self, service_id: int, with_lock: bool = False) -> ServiceInfo | None:
        """Return an active service, or None."""

    @abstractmethod
    def list_service_staff(
        self, service_id: int, staff_id: int | None = None
    ) -> list[StaffAvailabilityProfile]:
        """Active staff assigned to the service, ordered by display name then id."""

    @abstractmethod
    def staff_provides_service(self, staff_id: int, service_id: int) -> bool:
        ...


class BookingStore(ABC):

    @abstractmethod
    def get_overlapping(
        self,
        staff_id: int,
        start_utc: datetime,
        end_utc: datetime,
        exclude_booking_id: int | None = None,
    ) -> list[BusyInterval]:
        """Confirmed bookings of the staff member overlapping [start_utc, end_utc)."""

    @abstractmethod
    def get_booking(self, booking_id: int, with_lock: bool = False) -> BookingRecord | None:
        ...

    @abstractmethod
    def find_or_create_customer(self, name: str, email: str, phone: str | None = None) -> int:
        """Id of the customer with this email (case-insensitive), inserted if new."""

    @abstractmethod
    def insert(self, booking: NewBooking) -> int:
        """Insert a booking and return its id."""

    @abstractmethod
    def update_interval(
        self,
        booking_id: int,
        start_utc: datetime,
        end_utc: datetime,
        status: str,
        note: str | None = None,
    ) -> None:
        ...

    @abstractmethod
    def set_status(self, booking_id: int, status: str, note: str | None = None) -> None:
        ...

    @abstractmethod
    def set_external_event_id(self, booking_id: int, event_id: str | None) -> None:
        ...


class UnitOfWork(ABC):
    """
    Transaction boundary around a StaffDirectory and a BookingStore.

    Leaving the `with` block without commit() rolls back. The same object
    may be entered again after commit() to run a follow-up transaction.
    """

    directory: StaffDirectory
    bookings: BookingStore

    def __enter__(self) -> "UnitOfWork":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.rollback()

    @abstractmethod
    def commit(self) -> None:
        ...

    @abstractmethod
    def rollback(self) -> None:
        """Discard uncommitted changes and release locks. No-op when idle."""


def append_note(existing: str | None, note: str) -> str:
    """Append a note to booking notes, separated like the admin tools expect."""
    if existing:
        return f"{existing}\n---\n{note}"
    return note
