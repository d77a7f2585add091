"""
Redis pub/sub relay for UI events.

When ``REDIS_URL`` is configured, every event reaching the UI bus is also
published to the Redis ``events`` channel so dashboards running in other
processes receive the same stream as the local SSE endpoint.
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict, Optional

import redis
from pydantic import BaseModel

from app_generator.config import settings

logger = logging.getLogger(__name__)

# Redis channel for UI events
EVENTS_CHANNEL = "events"


def _json_default(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, BaseException):
        return str(value)
    return repr(value)


def serialize_event(event_type: str, payload: Dict[str, Any]) -> str:
    """Encode an event as the JSON message published to subscribers."""
    return json.dumps({"type": event_type, "payload": payload}, default=_json_default)


class RedisEventRelay:
    """Publishes UI bus events to Redis."""

    def __init__(self, redis_url: Optional[str] = None, client: Optional[redis.Redis] = None):
        self._redis_url = redis_url or settings.REDIS_URL
        self._client = client

    def _get_client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(self._redis_url)
        return self._client

    def publish_event(self, event_type: str, payload: Dict[str, Any]) -> bool:
        """
        Publish an event to the Redis events channel.

        Returns:
            True if published successfully, False otherwise
        """
        try:
            message = serialize_event(event_type, payload)
            self._get_client().publish(EVENTS_CHANNEL, message)
            return True
        except Exception as e:
            logger.error(f"Failed to publish event {event_type}: {e}")
            return False

    def __call__(self, event_type: str, payload: Dict[str, Any]) -> None:
        self.publish_event(event_type, payload)
