"""Shared fixtures: the same two-staff booking world in memory and in SQLite."""

from __future__ import annotations

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from factories import ALICE, BOB, COLORING, HAIRCUT, seed_sql, weekdays
from staffbook.domain import CalendarRef, ServiceInfo, StaffAvailabilityProfile
from staffbook.models import Base
from staffbook.repos.memory import InMemoryUnitOfWork, MemoryState
from staffbook.services.external_calendar import InMemoryCalendar


@pytest.fixture()
def state() -> MemoryState:
    state = MemoryState()
    state.add_service(ServiceInfo(service_id=HAIRCUT, name="Haircut", duration_minutes=30))
    state.add_service(ServiceInfo(service_id=COLORING, name="Coloring", duration_minutes=60))
    state.add_staff(
        StaffAvailabilityProfile(staff_id=ALICE, display_name="Alice", is_active=True),
        HAIRCUT,
        COLORING,
    )
    state.add_staff(
        StaffAvailabilityProfile(
            staff_id=BOB,
            display_name="Bob",
            is_active=True,
            external_calendar_ref=CalendarRef(staff_id=BOB),
        ),
        HAIRCUT,
    )
    for staff_id in (ALICE, BOB):
        for interval in weekdays():
            state.set_working_hours(staff_id, interval)
    return state


@pytest.fixture()
def uow(state) -> InMemoryUnitOfWork:
    return InMemoryUnitOfWork(state, lock_timeout=0.5)


@pytest.fixture()
def calendar() -> InMemoryCalendar:
    return InMemoryCalendar()


@pytest.fixture()
def sql_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def db(sql_engine):
    session = sessionmaker(bind=sql_engine, autocommit=False, autoflush=False)()
    seed_sql(session)
    yield session
    session.close()
