"""SQLAlchemy repositories against an in-memory SQLite database."""

from dataclasses import replace
from datetime import timezone

import pytest

from factories import ALICE, BOB, COLORING, HAIRCUT, MONDAY, utc
from staffbook.domain import STATUS_CANCELLED, CalendarRef, NewBooking
from staffbook.errors import ConflictError
from staffbook.models import Bookings, Customers, Services, Staff, StaffIntegrations, StaffWorkingHours
from staffbook.repos.sql import SqlUnitOfWork, from_db_time, to_db_time
from staffbook.services.bookings import BookingDraft, cancel_booking, create_booking
from staffbook.services.external_calendar import InMemoryCalendar
from staffbook.services.slots import list_slots


def _new_booking(staff_id=ALICE, start=None, end=None, status="confirmed") -> NewBooking:
    return NewBooking(
        staff_id=staff_id,
        service_id=HAIRCUT,
        start_utc=start or utc(2030, 1, 7, 10),
        end_utc=end or utc(2030, 1, 7, 11),
        client_name="Client",
        client_email="client@example.com",
        booking_timezone="UTC",
        status=status,
    )


def test_db_time_round_trip():
    aware = utc(2030, 1, 7, 10, 30)
    stored = to_db_time(aware)

    assert stored.tzinfo is None
    assert from_db_time(stored) == aware
    assert from_db_time(stored).tzinfo == timezone.utc


class TestSqlStaffDirectory:

    def test_profile_links_google_integration(self, db):
        directory = SqlUnitOfWork(db).directory

        alice = directory.get_staff_profile(ALICE)
        bob = directory.get_staff_profile(BOB)

        assert alice.external_calendar_linked is False
        assert bob.external_calendar_ref == CalendarRef(staff_id=BOB, calendar_id="bob@example.com")
        assert directory.get_staff_profile(99) is None

    def test_disabled_sync_is_not_linked(self, db):
        db.query(StaffIntegrations).filter(StaffIntegrations.staff_id == BOB).update({"sync_enabled": 0})
        db.commit()

        assert SqlUnitOfWork(db).directory.get_staff_profile(BOB).external_calendar_linked is False

    def test_working_interval(self, db):
        directory = SqlUnitOfWork(db).directory

        interval = directory.get_working_interval(ALICE, 1)
        assert (interval.start_minute, interval.end_minute) == (540, 1020)
        assert directory.get_working_interval(ALICE, 6) is None

    def test_invalid_working_hours_row_is_ignored(self, db):
        db.query(StaffWorkingHours).filter(
            StaffWorkingHours.staff_id == ALICE, StaffWorkingHours.day_of_week == 2
        ).update({"start_time": "9am"})
        db.commit()

        assert SqlUnitOfWork(db).directory.get_working_interval(ALICE, 2) is None

    def test_service_lookup(self, db):
        directory = SqlUnitOfWork(db).directory

        service = directory.get_service(HAIRCUT, with_lock=True)
        assert (service.name, service.duration_minutes) == ("Haircut", 30)

        db.query(Services).filter(Services.id == COLORING).update({"is_active": 0})
        assert directory.get_service(COLORING) is None

    def test_service_staff_ordered_and_filtered(self, db):
        directory = SqlUnitOfWork(db).directory

        assert [p.staff_id for p in directory.list_service_staff(HAIRCUT)] == [ALICE, BOB]
        assert [p.staff_id for p in directory.list_service_staff(HAIRCUT, BOB)] == [BOB]
        assert [p.staff_id for p in directory.list_service_staff(COLORING)] == [ALICE]

        db.query(Staff).filter(Staff.id == ALICE).update({"is_active": 0})
        assert [p.staff_id for p in directory.list_service_staff(HAIRCUT)] == [BOB]

    def test_staff_provides_service(self, db):
        directory = SqlUnitOfWork(db).directory

        assert directory.staff_provides_service(ALICE, COLORING) is True
        assert directory.staff_provides_service(BOB, COLORING) is False


class TestSqlBookingStore:

    def test_insert_and_get(self, db):
        uow = SqlUnitOfWork(db)
        booking_id = uow.bookings.insert(_new_booking())
        uow.commit()

        record = uow.bookings.get_booking(booking_id, with_lock=True)
        assert record.start_utc == utc(2030, 1, 7, 10)
        assert record.start_utc.tzinfo == timezone.utc
        assert record.status == "confirmed"
        assert uow.bookings.get_booking(999) is None

    def test_overlapping_confirmed_only(self, db):
        uow = SqlUnitOfWork(db)
        kept = uow.bookings.insert(_new_booking())
        uow.bookings.insert(_new_booking(start=utc(2030, 1, 7, 12), end=utc(2030, 1, 7, 13), status=STATUS_CANCELLED))
        uow.bookings.insert(_new_booking(staff_id=BOB))
        uow.commit()

        busy = uow.bookings.get_overlapping(ALICE, utc(2030, 1, 7, 9), utc(2030, 1, 7, 17))
        assert [b.booking_id for b in busy] == [kept]
        assert busy[0].source == "stored"

        assert uow.bookings.get_overlapping(ALICE, utc(2030, 1, 7, 11), utc(2030, 1, 7, 12)) == []
        assert uow.bookings.get_overlapping(
            ALICE, utc(2030, 1, 7, 9), utc(2030, 1, 7, 17), exclude_booking_id=kept
        ) == []

    def test_updates_append_notes(self, db):
        uow = SqlUnitOfWork(db)
        booking_id = uow.bookings.insert(_new_booking())
        uow.bookings.update_interval(
            booking_id, utc(2030, 1, 7, 14), utc(2030, 1, 7, 15), "confirmed", note="moved"
        )
        uow.bookings.set_status(booking_id, STATUS_CANCELLED, note="cancelled")
        uow.bookings.set_external_event_id(booking_id, "evt-9")
        uow.commit()

        row = db.get(Bookings, booking_id)
        assert row.notes == "moved\n---\ncancelled"
        assert row.status == STATUS_CANCELLED
        assert row.external_event_id == "evt-9"
        assert from_db_time(row.date_start) == utc(2030, 1, 7, 14)

    def test_update_missing_booking_raises(self, db):
        with pytest.raises(LookupError):
            SqlUnitOfWork(db).bookings.set_status(999, STATUS_CANCELLED)

    def test_rollback_discards_insert(self, db):
        uow = SqlUnitOfWork(db)
        with uow:
            uow.bookings.insert(_new_booking())

        assert db.query(Bookings).count() == 0


def test_customer_found_by_email_case_insensitively(db):
    uow = SqlUnitOfWork(db)
    with uow:
        first = uow.bookings.find_or_create_customer("Jane Doe", "jane@example.com", "+100")
        again = uow.bookings.find_or_create_customer("J. Doe", "JANE@example.COM")
        other = uow.bookings.find_or_create_customer("John Roe", "john@example.com")
        uow.commit()

    assert again == first
    assert other != first
    assert db.query(Customers).count() == 2
    assert db.get(Customers, first).name == "Jane Doe"


def test_lock_timeout_is_noop_on_sqlite(db):
    uow = SqlUnitOfWork(db, lock_timeout_ms=100)
    uow.apply_lock_timeout()
    assert uow.directory.get_staff_profile(ALICE, with_lock=True).staff_id == ALICE


def test_booking_flow_on_sql(db):
    uow = SqlUnitOfWork(db, lock_timeout_ms=100)
    calendar = InMemoryCalendar()
    draft = BookingDraft(
        service_id=HAIRCUT,
        staff_id=BOB,
        date=MONDAY,
        time="10:00",
        timezone="UTC",
        client_name="Jane Doe",
        client_email="jane@example.com",
    )

    created = create_booking(uow, calendar, draft, "UTC")
    assert db.get(Bookings, created.booking_id).external_event_id == "evt-1"

    repeat = create_booking(
        uow, calendar, replace(draft, time="11:00", client_email="Jane@Example.com"), "UTC"
    )
    customer_ids = {db.get(Bookings, b.booking_id).customer_id for b in (created, repeat)}
    assert len(customer_ids) == 1
    assert db.query(Customers).count() == 1

    with pytest.raises(ConflictError):
        create_booking(uow, calendar, draft, "UTC")

    slots = list_slots(uow.directory, uow.bookings, calendar, HAIRCUT, utc(2030, 1, 7, 0).date(), "UTC", staff_id=BOB)
    assert "10:00" not in [s.time for s in slots]

    cancel_booking(uow, calendar, created.booking_id)
    row = db.get(Bookings, created.booking_id)
    db.refresh(row)
    assert row.status == STATUS_CANCELLED
    assert row.external_event_id is None
    assert calendar.events == {}
