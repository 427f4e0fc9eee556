"""
backend/staffbook/services/google_calendar.py

Google Calendar API calls for staff calendars.

Handles:
- Free/busy queries
- Calendar event create / patch / delete for bookings

Tokens are obtained elsewhere (OAuth linking is not part of this service).
"""

import logging
from datetime import datetime, timezone

import google_auth_httplib2
import httplib2
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from ..config import get_settings

logger = logging.getLogger(__name__)

TOKEN_URI = "https://oauth2.googleapis.com/token"


def _get_calendar_service(access_token: str | None, refresh_token: str):
    """Build Google Calendar API service client with a bounded HTTP timeout."""
    settings = get_settings()
    credentials = Credentials(
        token=access_token,
        refresh_token=refresh_token,
        token_uri=TOKEN_URI,
        client_id=settings.google_client_id,
        client_secret=settings.google_client_secret,
    )
    http = google_auth_httplib2.AuthorizedHttp(
        credentials,
        http=httplib2.Http(timeout=settings.google_timeout_seconds),
    )
    return build("calendar", "v3", http=http, cache_discovery=False)


def _rfc3339(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _parse_rfc3339(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00")).astimezone(timezone.utc)


def query_free_busy(
    access_token: str | None,
    refresh_token: str,
    calendar_id: str,
    time_min: datetime,
    time_max: datetime,
) -> list[tuple[datetime, datetime]]:
    """
    Query busy periods of a calendar.

    Args:
        access_token: Google OAuth access token (may be expired)
        refresh_token: Google OAuth refresh token
        calendar_id: Google Calendar ID (usually 'primary')
        time_min: Range start (aware datetime)
        time_max: Range end (aware datetime)

    Returns:
        List of (start, end) UTC datetimes.

    Raises:
        HttpError: If API call fails
        ValueError: If Google reports an error for the calendar itself
    """
    service = _get_calendar_service(access_token, refresh_token)

    response = service.freebusy().query(
        body={
            "timeMin": _rfc3339(time_min),
            "timeMax": _rfc3339(time_max),
            "timeZone": "UTC",
            "items": [{"id": calendar_id}],
        }
    ).execute()

    calendar = response.get("calendars", {}).get(calendar_id, {})
    if calendar.get("errors"):
        # e.g. notFound / internalError for this calendar; not a clean "free"
        raise ValueError(f"Free/busy errors for calendar {calendar_id}: {calendar['errors']}")

    busy = [
        (_parse_rfc3339(item["start"]), _parse_rfc3339(item["end"]))
        for item in calendar.get("busy", [])
    ]
    logger.info(f"Found {len(busy)} busy blocks in Google Calendar {calendar_id}")
    return busy


def _event_body(event: dict) -> dict:
    body = {}
    if event.get("summary"):
        body["summary"] = event["summary"]
    if event.get("description"):
        body["description"] = event["description"]
    if event.get("start"):
        body["start"] = {"dateTime": _rfc3339(event["start"]), "timeZone": "UTC"}
    if event.get("end"):
        body["end"] = {"dateTime": _rfc3339(event["end"]), "timeZone": "UTC"}
    return body


def create_event(
    access_token: str | None,
    refresh_token: str,
    calendar_id: str,
    event: dict,
) -> str:
    """
    Create a calendar event for a booking.

    Args:
        event: Dictionary with keys summary, description, start, end
            (start/end as aware datetimes)

    Returns:
        ID of the created event

    Raises:
        HttpError: If API call fails
    """
    service = _get_calendar_service(access_token, refresh_token)

    body = _event_body(event)
    body["status"] = "confirmed"

    try:
        created_event = service.events().insert(
            calendarId=calendar_id,
            body=body,
            sendUpdates="none",
        ).execute()
    except HttpError as e:
        logger.error(f"Failed to create calendar event: {e}")
        raise

    logger.info(f"Created Google Calendar event: {created_event.get('id')}")
    return created_event.get("id")


def patch_event(
    access_token: str | None,
    refresh_token: str,
    calendar_id: str,
    event_id: str,
    event: dict,
) -> bool:
    """
    Patch an existing calendar event (only the given fields change).

    Returns:
        True if the event was patched or no longer exists

    Raises:
        HttpError: If API call fails for another reason
    """
    service = _get_calendar_service(access_token, refresh_token)

    try:
        service.events().patch(
            calendarId=calendar_id,
            eventId=event_id,
            body=_event_body(event),
            sendUpdates="none",
        ).execute()
    except HttpError as e:
        if e.resp.status == 404:
            logger.warning(f"Calendar event not found: {event_id}")
            return True
        logger.error(f"Failed to update calendar event: {e}")
        raise

    logger.info(f"Updated Google Calendar event: {event_id}")
    return True


def delete_event(
    access_token: str | None,
    refresh_token: str,
    calendar_id: str,
    event_id: str,
) -> bool:
    """
    Delete a calendar event.

    Returns:
        True if deletion was successful or the event was already gone

    Raises:
        HttpError: If API call fails
    """
    service = _get_calendar_service(access_token, refresh_token)

    try:
        service.events().delete(
            calendarId=calendar_id,
            eventId=event_id,
            sendUpdates="none",
        ).execute()
    except HttpError as e:
        if e.resp.status in (404, 410):
            # Event already deleted
            logger.warning(f"Calendar event not found: {event_id}")
            return True
        logger.error(f"Failed to delete calendar event: {e}")
        raise

    logger.info(f"Deleted Google Calendar event: {event_id}")
    return True
