"""
Lightweight event bus via Redis pub/sub - lets dashboards and notification
workers react to routing activity without polling the database.

Subscribers listen on CHANNEL. Consumers that were offline catch up by
draining the bounded pending list.

Key events:
- lead_assigned: a lead got an assignee (routed, manual or owner fallback)
- lead_reassigned: a lead moved to another agent
- routing_config_changed: an organization switched policy or caps
"""
import json
import logging
from typing import Any, Optional

from realtycore.utils.dedup import get_redis

logger = logging.getLogger(__name__)

CHANNEL = "realtycore:events"
# Events are also stored in a Redis list for consumers that missed the pub/sub
EVENT_LIST_KEY = "realtycore:events:pending"
EVENT_LIST_MAX = 100  # Maximum pending events to keep


async def publish_event(event_type: str, data: Optional[dict[str, Any]] = None) -> bool:
    """
    Publish an event. Uses both pub/sub (real-time) and a bounded Redis list
    (catch-up). Returns False if Redis was unreachable; never raises.
    """
    event = {
        "type": event_type,
        "data": data or {},
    }
    payload = json.dumps(event, default=str)

    try:
        redis = await get_redis()
        await redis.publish(CHANNEL, payload)
        await redis.lpush(EVENT_LIST_KEY, payload)
        await redis.ltrim(EVENT_LIST_KEY, 0, EVENT_LIST_MAX - 1)

        logger.debug("Event published: %s", event_type)
        return True
    except Exception as e:
        logger.warning("Failed to publish event %s: %s", event_type, str(e))
        return False


async def drain_events(max_events: int = 50) -> list[dict[str, Any]]:
    """Drain pending events from the list. Non-blocking, returns immediately."""
    events: list[dict[str, Any]] = []

    try:
        redis = await get_redis()
        for _ in range(max_events):
            raw = await redis.rpop(EVENT_LIST_KEY)
            if raw is None:
                break
            try:
                payload = raw if isinstance(raw, str) else raw.decode()
                events.append(json.loads(payload))
            except (json.JSONDecodeError, UnicodeDecodeError):
                continue
    except Exception:
        logger.warning("Failed to drain events from bus")

    return events
