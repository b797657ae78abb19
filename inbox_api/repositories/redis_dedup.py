import time

import redis
from redis.exceptions import RedisError

from inbox_api.logging_config import get_logger
from inbox_api.services.ports import StoreError

logger = get_logger("redis_dedup")


class RedisDedupStore:
    """Processed-message markers in Redis, one key per platform message id."""

    def __init__(self, client: redis.Redis, key_prefix: str = "inbox:dedup:msg"):
        self._client = client
        self._key_prefix = key_prefix

    @classmethod
    def from_url(cls, redis_url: str, socket_timeout_seconds: float = 0.3) -> "RedisDedupStore":
        client = redis.Redis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=socket_timeout_seconds,
            socket_timeout=socket_timeout_seconds,
        )
        return cls(client)

    def _key(self, event_id: str) -> str:
        return f"{self._key_prefix}:{event_id}"

    def is_duplicate(self, event_id: str) -> bool:
        key = self._key(event_id)
        try:
            found = self._client.exists(key)
        except RedisError as exc:
            logger.error("Dedup check failed", extra={"context": {"event_id": event_id, "error": str(exc)}})
            raise StoreError(f"check duplicate: {exc}") from exc

        if found:
            logger.warning("Duplicate webhook event detected", extra={"context": {"event_id": event_id, "key": key}})
        return bool(found)

    def mark_processed(self, event_id: str, ttl_seconds: int) -> None:
        key = self._key(event_id)
        try:
            was_set = self._client.set(key, int(time.time()), ex=ttl_seconds, nx=True)
        except RedisError as exc:
            logger.error(
                "Failed to mark event as processed",
                extra={"context": {"event_id": event_id, "ttl_seconds": ttl_seconds, "error": str(exc)}},
            )
            raise StoreError(f"mark processed: {exc}") from exc

        if not was_set:
            logger.debug("Event already marked as processed", extra={"context": {"event_id": event_id}})
