"""Test data helpers shared by the test modules."""

from datetime import datetime, timezone

from staffbook.domain import WorkingInterval
from staffbook.models import (
    Services,
    Staff,
    StaffIntegrations,
    StaffWorkingHours,
    t_staff_services,
)

HAIRCUT = 1
COLORING = 2

ALICE = 1  # no external calendar
BOB = 2  # linked external calendar

# 2030-01-07 is a Monday
MONDAY = "2030-01-07"


def utc(year, month, day, hour, minute=0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


def weekdays(start_minute: int = 9 * 60, end_minute: int = 17 * 60) -> list[WorkingInterval]:
    return [
        WorkingInterval(weekday=d, start_minute=start_minute, end_minute=end_minute)
        for d in range(1, 6)
    ]


def seed_sql(db) -> None:
    """Same world as the in-memory fixtures, as database rows."""
    db.add_all([
        Services(id=HAIRCUT, name="Haircut", duration_min=30, is_active=1),
        Services(id=COLORING, name="Coloring", duration_min=60, is_active=1),
        Staff(id=ALICE, display_name="Alice", is_active=1),
        Staff(id=BOB, display_name="Bob", is_active=1),
        StaffIntegrations(
            staff_id=BOB,
            provider="google_calendar",
            access_token="access",
            refresh_token="refresh",
            calendar_id="bob@example.com",
            sync_enabled=1,
        ),
    ])
    for staff_id in (ALICE, BOB):
        for day in range(1, 6):
            db.add(StaffWorkingHours(
                staff_id=staff_id, day_of_week=day, start_time="09:00", end_time="17:00"
            ))
    db.flush()
    db.execute(
        t_staff_services.insert(),
        [
            {"service_id": HAIRCUT, "staff_id": ALICE, "is_active": 1},
            {"service_id": COLORING, "staff_id": ALICE, "is_active": 1},
            {"service_id": HAIRCUT, "staff_id": BOB, "is_active": 1},
        ],
    )
    db.commit()
