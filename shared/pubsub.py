import logging
from typing import Optional

import redis

from .events import Event

logger = logging.getLogger(__name__)


class EventPublisher:
    """Publishes lifecycle events on Redis channels. A missing client makes every publish a no-op."""

    def __init__(self, redis_client: Optional[redis.Redis] = None):
        self.redis = redis_client

    def publish(self, channel: str, event: Event) -> bool:
        if self.redis is None:
            logger.debug(f"Local mode: {event.type} for {event.subject_id} not published")
            return False
        try:
            self.redis.publish(channel, event.to_json())
            return True
        except redis.RedisError as e:
            logger.warning(f"Failed to publish {event.type} on {channel}: {e}")
            return False

    def publish_match_event(self, match_id: str, event: Event):
        self.publish(f"match:{match_id}:events", event)
        self.publish("global:announcements", event)

    def publish_user_notification(self, user_id: str, event: Event):
        self.publish(f"user:{user_id}:notifications", event)
