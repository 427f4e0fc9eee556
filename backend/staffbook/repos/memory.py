# backend/staffbook/repos/memory.py
"""In-memory implementations of the persistence capabilities."""

from __future__ import annotations

import copy
import threading
from dataclasses import dataclass, field, replace

from ..domain import (
    STATUS_CONFIRMED,
    BookingRecord,
    BusyInterval,
    Customer,
    NewBooking,
    ServiceInfo,
    StaffAvailabilityProfile,
    WorkingInterval,
)
from .base import BookingStore, StaffDirectory, UnitOfWork, append_note


class LockTimeoutError(RuntimeError):
    """Raised when the store lock cannot be acquired in time."""


@dataclass
class MemoryState:
    """Shared data behind all in-memory units of work."""

    staff: dict[int, StaffAvailabilityProfile] = field(default_factory=dict)
    services: dict[int, ServiceInfo] = field(default_factory=dict)
    # (staff_id, service_id) pairs with an active assignment
    assignments: set[tuple[int, int]] = field(default_factory=set)
    working_hours: dict[tuple[int, int], WorkingInterval] = field(default_factory=dict)
    bookings: dict[int, BookingRecord] = field(default_factory=dict)
    next_booking_id: int = 1
    customers: dict[int, Customer] = field(default_factory=dict)
    next_customer_id: int = 1
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    # ── Seeding helpers ──────────────────────────────────────────────────

    def add_staff(self, profile: StaffAvailabilityProfile, *service_ids: int) -> None:
        self.staff[profile.staff_id] = profile
        for service_id in service_ids:
            self.assignments.add((profile.staff_id, service_id))

    def add_service(self, service: ServiceInfo) -> None:
        self.services[service.service_id] = service

    def set_working_hours(self, staff_id: int, interval: WorkingInterval) -> None:
        self.working_hours[(staff_id, interval.weekday)] = interval

    def add_booking(self, booking: NewBooking) -> int:
        booking_id = self.next_booking_id
        self.next_booking_id += 1
        self.bookings[booking_id] = _record_from_new(booking_id, booking)
        return booking_id


class MemoryStaffDirectory(StaffDirectory):

    def __init__(self, uow: InMemoryUnitOfWork):
        self.uow = uow

    def get_staff_profile(self, staff_id, with_lock=False):
        if with_lock:
            self.uow.acquire()
        return self.uow.state.staff.get(staff_id)

    def get_working_interval(self, staff_id, weekday):
        return self.uow.state.working_hours.get((staff_id, weekday))

    def get_service(self, service_id, with_lock=False):
        if with_lock:
            self.uow.acquire()
        service = self.uow.state.services.get(service_id)
        if service is None or not service.is_active:
            return None
        return service

    def list_service_staff(self, service_id, staff_id=None):
        state = self.uow.state
        profiles = [
            profile
            for profile in state.staff.values()
            if profile.is_active
            and (profile.staff_id, service_id) in state.assignments
            and (staff_id is None or profile.staff_id == staff_id)
        ]
        return sorted(profiles, key=lambda p: (p.display_name, p.staff_id))

    def staff_provides_service(self, staff_id, service_id):
        return (staff_id, service_id) in self.uow.state.assignments


class MemoryBookingStore(BookingStore):

    def __init__(self, uow: InMemoryUnitOfWork):
        self.uow = uow

    def get_overlapping(self, staff_id, start_utc, end_utc, exclude_booking_id=None):
        return [
            BusyInterval(
                start_utc=b.start_utc,
                end_utc=b.end_utc,
                source="stored",
                booking_id=b.booking_id,
            )
            for b in sorted(self._bookings.values(), key=lambda b: b.start_utc)
            if b.staff_id == staff_id
            and b.status == STATUS_CONFIRMED
            and b.booking_id != exclude_booking_id
            and b.start_utc < end_utc
            and start_utc < b.end_utc
        ]

    def get_booking(self, booking_id, with_lock=False):
        if with_lock:
            self.uow.acquire()
        return self._bookings.get(booking_id)

    def find_or_create_customer(self, name, email, phone=None):
        work = self.uow.working_copy()
        for customer in work.customers.values():
            if customer.email.lower() == email.lower():
                return customer.customer_id

        customer_id = work.next_customer_id
        work.next_customer_id += 1
        work.customers[customer_id] = Customer(
            customer_id=customer_id, name=name, email=email, phone=phone
        )
        return customer_id

    def insert(self, booking):
        work = self.uow.working_copy()
        booking_id = work.next_booking_id
        work.next_booking_id += 1
        work.bookings[booking_id] = _record_from_new(booking_id, booking)
        return booking_id

    def update_interval(self, booking_id, start_utc, end_utc, status, note=None):
        self._update(booking_id, start_utc=start_utc, end_utc=end_utc, status=status, note=note)

    def set_status(self, booking_id, status, note=None):
        self._update(booking_id, status=status, note=note)

    def set_external_event_id(self, booking_id, event_id):
        self._update(booking_id, external_event_id=event_id)

    @property
    def _bookings(self) -> dict[int, BookingRecord]:
        return self.uow.view().bookings

    def _update(self, booking_id: int, note: str | None = None, **changes) -> None:
        work = self.uow.working_copy()
        record = work.bookings.get(booking_id)
        if record is None:
            raise LookupError(f"Booking {booking_id} disappeared during update")
        if note:
            changes["notes"] = append_note(record.notes, note)
        work.bookings[booking_id] = replace(record, **changes)


class InMemoryUnitOfWork(UnitOfWork):
    """
    Unit of work over a MemoryState.

    Writes go to a private copy of the bookings that replaces the shared
    one on commit(). The first lock (or write) takes the state-wide lock,
    so concurrent writers are serialised like row locks would.
    """

    def __init__(self, state: MemoryState, lock_timeout: float = 5.0):
        self.state = state
        self.lock_timeout = lock_timeout
        self._locked = False
        self._work: _BookingsCopy | None = None
        self.commits = 0
        self.directory = MemoryStaffDirectory(self)
        self.bookings = MemoryBookingStore(self)

    def acquire(self) -> None:
        if self._locked:
            return
        if not self.state.lock.acquire(timeout=self.lock_timeout):
            raise LockTimeoutError("Timed out waiting for booking store lock")
        self._locked = True

    def view(self) -> _BookingsCopy | MemoryState:
        return self._work if self._work is not None else self.state

    def working_copy(self) -> _BookingsCopy:
        self.acquire()
        if self._work is None:
            self._work = _BookingsCopy(
                bookings=copy.copy(self.state.bookings),
                next_booking_id=self.state.next_booking_id,
                customers=copy.copy(self.state.customers),
                next_customer_id=self.state.next_customer_id,
            )
        return self._work

    def commit(self) -> None:
        if self._work is not None:
            self.state.bookings = self._work.bookings
            self.state.next_booking_id = self._work.next_booking_id
            self.state.customers = self._work.customers
            self.state.next_customer_id = self._work.next_customer_id
        self.commits += 1
        self._release()

    def rollback(self) -> None:
        self._release()

    def _release(self) -> None:
        self._work = None
        if self._locked:
            self._locked = False
            self.state.lock.release()


@dataclass
class _BookingsCopy:
    bookings: dict[int, BookingRecord]
    next_booking_id: int
    customers: dict[int, Customer]
    next_customer_id: int


def _record_from_new(booking_id: int, booking: NewBooking) -> BookingRecord:
    return BookingRecord(
        booking_id=booking_id,
        staff_id=booking.staff_id,
        service_id=booking.service_id,
        start_utc=booking.start_utc,
        end_utc=booking.end_utc,
        status=booking.status,
        client_name=booking.client_name,
        client_email=booking.client_email,
        booking_timezone=booking.booking_timezone,
        client_phone=booking.client_phone,
        notes=booking.notes,
        customer_id=booking.customer_id,
    )
