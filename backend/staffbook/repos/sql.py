# backend/staffbook/repos/sql.py
"""
SQLAlchemy implementations of the persistence capabilities.

Row locks use SELECT ... FOR UPDATE (ignored by SQLite, which serialises
writers on its own). Booking times are stored as naive UTC.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import func, text
from sqlalchemy.orm import Session

from ..domain import (
    STATUS_CONFIRMED,
    BookingRecord,
    BusyInterval,
    CalendarRef,
    NewBooking,
    ServiceInfo,
    StaffAvailabilityProfile,
    WorkingInterval,
)
from ..models.generated import (
    Bookings,
    Customers,
    Services,
    Staff,
    StaffIntegrations,
    StaffWorkingHours,
    t_staff_services,
)
from ..services.slots.config import INVALID_TIME, parse_time_of_day
from .base import BookingStore, StaffDirectory, UnitOfWork, append_note

logger = logging.getLogger(__name__)

GOOGLE_PROVIDER = "google_calendar"


def to_db_time(value: datetime) -> datetime:
    """Aware datetime -> naive UTC for storage."""
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def from_db_time(value: datetime) -> datetime:
    """Stored naive UTC -> aware UTC datetime."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SqlStaffDirectory(StaffDirectory):

    def __init__(self, db: Session, uow: "SqlUnitOfWork | None" = None):
        self.db = db
        self.uow = uow

    def get_staff_profile(self, staff_id: int, with_lock: bool = False):
        query = self.db.query(Staff).filter(Staff.id == staff_id)
        if with_lock:
            self._before_lock()
            query = query.with_for_update().populate_existing()
        staff = query.first()
        if not staff:
            logger.info(f"Staff {staff_id} not found")
            return None
        return self._to_profile(staff)

    def get_working_interval(self, staff_id: int, weekday: int):
        row = (
            self.db.query(StaffWorkingHours)
            .filter(
                StaffWorkingHours.staff_id == staff_id,
                StaffWorkingHours.day_of_week == weekday,
            )
            .first()
        )
        if not row:
            return None

        start = parse_time_of_day(row.start_time)
        end = parse_time_of_day(row.end_time)
        if start == INVALID_TIME or end == INVALID_TIME or end <= start:
            logger.warning(
                f"Ignoring invalid working hours for staff {staff_id} day {weekday}: "
                f"{row.start_time}-{row.end_time}"
            )
            return None
        return WorkingInterval(weekday=weekday, start_minute=start, end_minute=end)

    def get_service(self, service_id: int, with_lock: bool = False):
        query = self.db.query(Services).filter(
            Services.id == service_id,
            Services.is_active == 1,
        )
        if with_lock:
            self._before_lock()
            query = query.with_for_update().populate_existing()
        service = query.first()
        if not service:
            return None
        return ServiceInfo(
            service_id=service.id,
            name=service.name,
            duration_minutes=service.duration_min,
            is_active=bool(service.is_active),
        )

    def list_service_staff(self, service_id: int, staff_id: int | None = None):
        query = (
            self.db.query(Staff)
            .join(t_staff_services, Staff.id == t_staff_services.c.staff_id)
            .filter(
                t_staff_services.c.service_id == service_id,
                t_staff_services.c.is_active == 1,
                Staff.is_active == 1,
            )
        )
        if staff_id is not None:
            query = query.filter(Staff.id == staff_id)
        staff_rows = query.order_by(Staff.display_name, Staff.id).all()
        return [self._to_profile(staff) for staff in staff_rows]

    def staff_provides_service(self, staff_id: int, service_id: int) -> bool:
        row = (
            self.db.query(t_staff_services.c.staff_id)
            .filter(
                t_staff_services.c.staff_id == staff_id,
                t_staff_services.c.service_id == service_id,
                t_staff_services.c.is_active == 1,
            )
            .first()
        )
        return row is not None

    # ── Helpers ──────────────────────────────────────────────────────────

    def _before_lock(self) -> None:
        if self.uow is not None:
            self.uow.apply_lock_timeout()

    def _to_profile(self, staff: Staff) -> StaffAvailabilityProfile:
        integration = (
            self.db.query(StaffIntegrations)
            .filter(
                StaffIntegrations.staff_id == staff.id,
                StaffIntegrations.provider == GOOGLE_PROVIDER,
                StaffIntegrations.sync_enabled == 1,
                StaffIntegrations.refresh_token.isnot(None),
            )
            .first()
        )
        ref = None
        if integration:
            ref = CalendarRef(staff_id=staff.id, calendar_id=integration.calendar_id or "primary")

        return StaffAvailabilityProfile(
            staff_id=staff.id,
            display_name=staff.display_name or f"Staff {staff.id}",
            is_active=bool(staff.is_active),
            external_calendar_ref=ref,
        )


class SqlBookingStore(BookingStore):

    def __init__(self, db: Session, uow: "SqlUnitOfWork | None" = None):
        self.db = db
        self.uow = uow

    def get_overlapping(self, staff_id, start_utc, end_utc, exclude_booking_id=None):
        query = self.db.query(Bookings).filter(
            Bookings.staff_id == staff_id,
            Bookings.status == STATUS_CONFIRMED,
            Bookings.date_start < to_db_time(end_utc),
            Bookings.date_end > to_db_time(start_utc),
        )
        if exclude_booking_id is not None:
            query = query.filter(Bookings.id != exclude_booking_id)

        rows = query.order_by(Bookings.date_start).all()
        logger.info(
            f"Found {len(rows)} stored busy blocks for staff {staff_id} "
            f"in {start_utc.isoformat()} - {end_utc.isoformat()}"
            + (f" (excluding booking {exclude_booking_id})" if exclude_booking_id else "")
        )
        return [
            BusyInterval(
                start_utc=from_db_time(row.date_start),
                end_utc=from_db_time(row.date_end),
                source="stored",
                booking_id=row.id,
            )
            for row in rows
        ]

    def get_booking(self, booking_id: int, with_lock: bool = False):
        query = self.db.query(Bookings).filter(Bookings.id == booking_id)
        if with_lock:
            if self.uow is not None:
                self.uow.apply_lock_timeout()
            query = query.with_for_update().populate_existing()
        row = query.first()
        if not row:
            return None
        return self._to_record(row)

    def find_or_create_customer(self, name, email, phone=None) -> int:
        row = (
            self.db.query(Customers)
            .filter(func.lower(Customers.email) == email.lower())
            .order_by(Customers.id)
            .first()
        )
        if row:
            return row.id

        row = Customers(name=name, email=email, phone=phone)
        self.db.add(row)
        self.db.flush()
        logger.info(f"Created customer {row.id} for {email}")
        return row.id

    def insert(self, booking: NewBooking) -> int:
        row = Bookings(
            service_id=booking.service_id,
            staff_id=booking.staff_id,
            date_start=to_db_time(booking.start_utc),
            date_end=to_db_time(booking.end_utc),
            status=booking.status,
            client_name=booking.client_name,
            client_email=booking.client_email,
            client_phone=booking.client_phone,
            notes=booking.notes,
            booking_timezone=booking.booking_timezone,
            customer_id=booking.customer_id,
        )
        self.db.add(row)
        self.db.flush()
        return row.id

    def update_interval(self, booking_id, start_utc, end_utc, status, note=None):
        row = self._get_row(booking_id)
        row.date_start = to_db_time(start_utc)
        row.date_end = to_db_time(end_utc)
        row.status = status
        if note:
            row.notes = append_note(row.notes, note)
        row.updated_at = _now_str()
        self.db.flush()

    def set_status(self, booking_id, status, note=None):
        row = self._get_row(booking_id)
        row.status = status
        if note:
            row.notes = append_note(row.notes, note)
        row.updated_at = _now_str()
        self.db.flush()

    def set_external_event_id(self, booking_id, event_id):
        row = self._get_row(booking_id)
        row.external_event_id = event_id
        self.db.flush()

    # ── Helpers ──────────────────────────────────────────────────────────

    def _get_row(self, booking_id: int) -> Bookings:
        row = self.db.get(Bookings, booking_id)
        if row is None:
            raise LookupError(f"Booking {booking_id} disappeared during update")
        return row

    @staticmethod
    def _to_record(row: Bookings) -> BookingRecord:
        return BookingRecord(
            booking_id=row.id,
            staff_id=row.staff_id,
            service_id=row.service_id,
            start_utc=from_db_time(row.date_start),
            end_utc=from_db_time(row.date_end),
            status=row.status,
            client_name=row.client_name,
            client_email=row.client_email,
            booking_timezone=row.booking_timezone,
            client_phone=row.client_phone,
            notes=row.notes,
            external_event_id=row.external_event_id,
            customer_id=row.customer_id,
        )


class SqlUnitOfWork(UnitOfWork):
    """Unit of work over a request-scoped SQLAlchemy Session."""

    def __init__(self, db: Session, lock_timeout_ms: int | None = None):
        self.db = db
        self.lock_timeout_ms = lock_timeout_ms
        self._lock_timeout_applied = False
        self.directory = SqlStaffDirectory(db, self)
        self.bookings = SqlBookingStore(db, self)

    def apply_lock_timeout(self) -> None:
        """Bound lock waits on PostgreSQL for the current transaction."""
        if self._lock_timeout_applied or not self.lock_timeout_ms:
            return
        if self.db.get_bind().dialect.name == "postgresql":
            self.db.execute(text(f"SET LOCAL lock_timeout = {int(self.lock_timeout_ms)}"))
        self._lock_timeout_applied = True

    def commit(self) -> None:
        self.db.commit()
        self._lock_timeout_applied = False

    def rollback(self) -> None:
        self.db.rollback()
        self._lock_timeout_applied = False


def _now_str() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
