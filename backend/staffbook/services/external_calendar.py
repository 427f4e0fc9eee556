# backend/staffbook/services/external_calendar.py
"""
External calendar capability used by the availability engine.

Reads return either busy intervals or UNVERIFIABLE ("could not determine",
which is not the same as "no conflicts"). Writes raise
UnverifiableExternalStateError on failure and are always best effort.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Callable, Literal, Optional, Union

import httplib2
from google.auth.exceptions import GoogleAuthError
from googleapiclient.errors import HttpError
from sqlalchemy.orm import Session

from ..domain import BusyInterval, CalendarEvent, CalendarRef
from ..errors import UnverifiableExternalStateError
from ..models.generated import StaffIntegrations
from . import google_calendar

logger = logging.getLogger(__name__)


class _Unverifiable(Enum):
    UNVERIFIABLE = "unverifiable"

    def __repr__(self) -> str:
        return "UNVERIFIABLE"


UNVERIFIABLE = _Unverifiable.UNVERIFIABLE

BusyResult = Union[list[BusyInterval], Literal[_Unverifiable.UNVERIFIABLE]]

# Failures that mean "Google could not be asked", including timeouts (OSError).
GOOGLE_FAILURES = (HttpError, GoogleAuthError, httplib2.HttpLib2Error, OSError, ValueError)


class ExternalCalendarAdapter(ABC):

    @abstractmethod
    def get_busy(self, ref: CalendarRef, start_utc: datetime, end_utc: datetime) -> BusyResult:
        ...

    @abstractmethod
    def create_event(self, ref: CalendarRef, event: CalendarEvent) -> str:
        """Create an event and return its external id."""

    @abstractmethod
    def patch_event(self, ref: CalendarRef, event_id: str, event: CalendarEvent) -> None:
        """Update an event; a missing event counts as success."""

    @abstractmethod
    def delete_event(self, ref: CalendarRef, event_id: str) -> None:
        """Delete an event; a missing event counts as success."""


# ── Google ───────────────────────────────────────────────────────────────

TokenLoader = Callable[[int], Optional[tuple[Optional[str], str]]]


def sql_token_loader(db: Session) -> TokenLoader:
    """Load (access_token, refresh_token) of a staff member's Google integration."""

    def load(staff_id: int):
        integration = (
            db.query(StaffIntegrations)
            .filter(
                StaffIntegrations.staff_id == staff_id,
                StaffIntegrations.provider == "google_calendar",
                StaffIntegrations.sync_enabled == 1,
            )
            .first()
        )
        if not integration or not integration.refresh_token:
            return None
        return integration.access_token, integration.refresh_token

    return load


class GoogleCalendarAdapter(ExternalCalendarAdapter):

    def __init__(self, token_loader: TokenLoader):
        self.token_loader = token_loader

    def get_busy(self, ref, start_utc, end_utc):
        tokens = self.token_loader(ref.staff_id)
        if tokens is None:
            logger.warning(
                f"No Google tokens for staff {ref.staff_id}; calendar cannot be verified"
            )
            return UNVERIFIABLE

        access_token, refresh_token = tokens
        try:
            periods = google_calendar.query_free_busy(
                access_token, refresh_token, ref.calendar_id, start_utc, end_utc
            )
        except GOOGLE_FAILURES as e:
            logger.error(f"Google free/busy query failed for staff {ref.staff_id}: {e}")
            return UNVERIFIABLE

        return [
            BusyInterval(start_utc=start, end_utc=end, source="external")
            for start, end in periods
            if end > start
        ]

    def create_event(self, ref, event):
        access_token, refresh_token = self._tokens(ref)
        try:
            return google_calendar.create_event(
                access_token, refresh_token, ref.calendar_id, _event_payload(event)
            )
        except GOOGLE_FAILURES as e:
            raise UnverifiableExternalStateError(f"Google event creation failed: {e}") from e

    def patch_event(self, ref, event_id, event):
        access_token, refresh_token = self._tokens(ref)
        try:
            google_calendar.patch_event(
                access_token, refresh_token, ref.calendar_id, event_id, _event_payload(event)
            )
        except GOOGLE_FAILURES as e:
            raise UnverifiableExternalStateError(f"Google event update failed: {e}") from e

    def delete_event(self, ref, event_id):
        access_token, refresh_token = self._tokens(ref)
        try:
            google_calendar.delete_event(access_token, refresh_token, ref.calendar_id, event_id)
        except GOOGLE_FAILURES as e:
            raise UnverifiableExternalStateError(f"Google event deletion failed: {e}") from e

    def _tokens(self, ref: CalendarRef) -> tuple[str | None, str]:
        tokens = self.token_loader(ref.staff_id)
        if tokens is None:
            raise UnverifiableExternalStateError(f"No Google tokens for staff {ref.staff_id}")
        return tokens


def _event_payload(event: CalendarEvent) -> dict:
    return {
        "summary": event.summary,
        "description": event.description,
        "start": event.start_utc,
        "end": event.end_utc,
    }


# ── In-memory ────────────────────────────────────────────────────────────


class InMemoryCalendar(ExternalCalendarAdapter):
    """
    Dict-backed calendar for tests and local runs.

    Calendars listed in `unreachable` behave like an outage: reads return
    UNVERIFIABLE and writes raise.
    """

    def __init__(self):
        self.busy: dict[int, list[BusyInterval]] = {}
        self.events: dict[str, tuple[CalendarRef, CalendarEvent]] = {}
        self.unreachable: set[int] = set()
        self.calls: list[tuple[str, int]] = []
        self._next_id = 1

    def add_busy(self, staff_id: int, start_utc: datetime, end_utc: datetime) -> None:
        self.busy.setdefault(staff_id, []).append(
            BusyInterval(start_utc=start_utc, end_utc=end_utc, source="external")
        )

    def get_busy(self, ref, start_utc, end_utc):
        self.calls.append(("get_busy", ref.staff_id))
        if ref.staff_id in self.unreachable:
            return UNVERIFIABLE
        return [b for b in self.busy.get(ref.staff_id, []) if b.overlaps(start_utc, end_utc)]

    def create_event(self, ref, event):
        self.calls.append(("create_event", ref.staff_id))
        self._check_reachable(ref)
        event_id = f"evt-{self._next_id}"
        self._next_id += 1
        self.events[event_id] = (ref, event)
        return event_id

    def patch_event(self, ref, event_id, event):
        self.calls.append(("patch_event", ref.staff_id))
        self._check_reachable(ref)
        if event_id in self.events:
            self.events[event_id] = (ref, event)

    def delete_event(self, ref, event_id):
        self.calls.append(("delete_event", ref.staff_id))
        self._check_reachable(ref)
        self.events.pop(event_id, None)

    def _check_reachable(self, ref: CalendarRef) -> None:
        if ref.staff_id in self.unreachable:
            raise UnverifiableExternalStateError(f"Calendar of staff {ref.staff_id} unreachable")
