"""
backend/inspection_booking/services/events.py

Event emitter: pushes appointment lifecycle events to a Redis queue for
external notifiers (SMS, staff dashboards).

Queue: events:p2p

Events are emitted after the database commit. A failed push is logged and
never undoes or fails the booking.
"""

import json
import logging
import time

from redis import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

EVENTS_QUEUE = "events:p2p"


def _client() -> Redis:
    from ..redis_client import redis_client
    return redis_client


def emit_event(event_type: str, payload: dict, redis: Redis | None = None) -> None:
    """Push an event onto ``events:p2p``."""
    event = {
        "type": event_type,
        **payload,
        "ts": int(time.time()),
    }
    try:
        (redis or _client()).rpush(EVENTS_QUEUE, json.dumps(event, default=str))
        logger.info(f"Event emitted: {event_type} → {EVENTS_QUEUE}")
    except RedisError as e:
        logger.error(f"Failed to emit event {event_type}: {e}")


def appointment_payload(appointment) -> dict:
    return {
        "appointment_id": appointment.id,
        "reference": appointment.reference,
        "center_id": appointment.center_id,
        "service_type_id": appointment.service_type_id,
        "start_at": appointment.start_at.isoformat() + "Z",
        "status": appointment.status,
    }
