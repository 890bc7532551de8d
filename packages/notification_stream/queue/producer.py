"""
Queue Producer.

Publishes bridge events to a Redis Stream so the rest of the bridge
(Matrix sender, notification renderer) can consume them.
"""

import json
from typing import Any, Dict, Optional

import redis

from core.config import get_settings
from core.logging import get_logger
from packages.shared.constants import EVENT_SENDER
from packages.shared.types import BusMessage

logger = get_logger("queue")


class QueueProducer:
    """
    Redis Streams producer for the bridge event bus.

    Each bus message becomes one stream entry with the fields
    ``eventName``, ``sender`` and ``data`` (JSON encoded).

    Features:
    - Bounded stream length (approximate trimming)
    - Publish failures are logged and reported, never raised
    """

    def __init__(
        self,
        redis_url: Optional[str] = None,
        stream_key: Optional[str] = None,
        max_stream_len: Optional[int] = None,
    ):
        settings = get_settings()
        self.redis_url = redis_url or settings.redis_url
        self.stream_key = stream_key or settings.queue_stream_key
        self.max_stream_len = max_stream_len or settings.queue_max_len
        self._client: Optional[redis.Redis] = None
        self._published = 0
        self._failed = 0

    def connect(self) -> None:
        """Establish Redis connection."""
        self._client = redis.from_url(
            self.redis_url,
            decode_responses=True,
            socket_timeout=10,
            socket_connect_timeout=10,
        )
        # Test connection
        self._client.ping()
        logger.info("queue_connected", stream_key=self.stream_key)

    def disconnect(self) -> None:
        """Close Redis connection."""
        if self._client:
            self._client.close()
            self._client = None

    def __enter__(self) -> "QueueProducer":
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.disconnect()

    @property
    def connected(self) -> bool:
        return self._client is not None

    def push(
        self,
        event_name: str,
        data: Dict[str, Any],
        sender: str = EVENT_SENDER,
    ) -> Optional[str]:
        """
        Append one event to the stream.

        Returns the stream entry id, or None if the event could not be written.
        """
        message = BusMessage(event_name=event_name, data=data, sender=sender)

        if not self._client:
            self._failed += 1
            logger.error("queue_not_connected", event_name=event_name)
            return None

        fields = {
            "eventName": message.event_name,
            "sender": message.sender,
            "data": json.dumps(message.data),
        }

        try:
            entry_id = self._client.xadd(
                self.stream_key,
                fields,
                maxlen=self.max_stream_len,
                approximate=True,
            )
        except redis.RedisError as e:
            self._failed += 1
            logger.error("queue_publish_failed", event_name=event_name, error=str(e))
            return None

        self._published += 1
        logger.debug("queue_published", event_name=event_name, entry_id=entry_id)
        return entry_id

    def get_stats(self) -> Dict[str, Any]:
        """Get producer statistics."""
        stats = {
            "connected": self.connected,
            "published": self._published,
            "failed": self._failed,
        }

        if self._client:
            try:
                stats["stream_length"] = self._client.xlen(self.stream_key)
            except redis.RedisError:
                stats["stream_length"] = None

        return stats
