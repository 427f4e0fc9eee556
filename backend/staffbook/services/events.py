"""
backend/staffbook/services/events.py

Booking event emitter: pushes events to a Redis list for downstream
consumers (notifications, reporting). Best effort; disabled when Redis
is not configured.
"""

import json
import logging
import time

from redis import Redis

logger = logging.getLogger(__name__)

BOOKING_EVENTS_QUEUE = "events:bookings"


def emit_event(redis: Redis | None, event_type: str, payload: dict) -> bool:
    """
    Emit a booking event.

    Returns:
        True if the event was queued, False if skipped or failed.
    """
    if redis is None:
        return False

    event = {
        "type": event_type,
        **payload,
        "ts": int(time.time()),
    }
    try:
        redis.rpush(BOOKING_EVENTS_QUEUE, json.dumps(event, default=str))
        logger.info(f"Event emitted: {event_type} → {BOOKING_EVENTS_QUEUE}")
        return True
    except Exception as e:
        logger.error(f"Failed to emit event {event_type}: {e}")
        return False
