"""
Redis-backed result cache and notification channel.
"""

import time
from typing import AsyncIterator, Awaitable, Callable, Dict, List, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from shared.errors import StoreUnavailableError
from shared.logging import get_logger
from shared.models import CacheEntry, Notification

STORE_NAME = "redis"


class ResultCache:
    """Flat hash of index -> CacheEntry plus a pub/sub channel for new indices."""

    def __init__(
        self,
        redis_url: str,
        values_key: str = "values",
        channel: str = "insert",
        client: Optional[redis.Redis] = None,
    ):
        self.redis_url = redis_url
        self.values_key = values_key
        self.channel = channel
        self.logger = get_logger("shared.stores.result_cache")
        self.redis: Optional[redis.Redis] = client

    async def start(self):
        """Connect to Redis."""
        if self.redis is None:
            self.redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30
            )

        try:
            await self.redis.ping()
        except (RedisError, OSError) as e:
            self.logger.error("Failed to start result cache", error=str(e))
            raise StoreUnavailableError(STORE_NAME, str(e))

        self.logger.info("Result cache started", key=self.values_key, channel=self.channel)

    async def stop(self):
        """Close the Redis connection pool."""
        if self.redis is not None:
            await self.redis.aclose()
            self.redis = None
            self.logger.info("Result cache stopped")

    def _client(self) -> redis.Redis:
        if self.redis is None:
            raise StoreUnavailableError(STORE_NAME, "result cache not started")
        return self.redis

    async def get(self, index: int) -> Optional[CacheEntry]:
        """Return the entry for an index, or None if it was never requested."""
        try:
            raw = await self._client().hget(self.values_key, str(index))
        except (RedisError, OSError) as e:
            raise StoreUnavailableError(STORE_NAME, str(e))

        if raw is None:
            return None
        return CacheEntry.from_json(index, raw)

    async def set_pending(self, index: int) -> bool:
        """Write a pending placeholder unless an entry already exists.

        Returns True when the placeholder was written.
        """
        entry = CacheEntry.pending(index)
        try:
            created = await self._client().hsetnx(self.values_key, str(index), entry.to_json())
        except (RedisError, OSError) as e:
            raise StoreUnavailableError(STORE_NAME, str(e))
        return bool(created)

    async def set_value(self, index: int, value: int) -> CacheEntry:
        """Store a computed value, overwriting whatever was there."""
        entry = CacheEntry.computed(index, value)
        try:
            await self._client().hset(self.values_key, str(index), entry.to_json())
        except (RedisError, OSError) as e:
            raise StoreUnavailableError(STORE_NAME, str(e))
        return entry

    async def get_all(self) -> Dict[int, CacheEntry]:
        """Return every entry keyed by index."""
        try:
            raw_entries = await self._client().hgetall(self.values_key)
        except (RedisError, OSError) as e:
            raise StoreUnavailableError(STORE_NAME, str(e))

        entries: Dict[int, CacheEntry] = {}
        for key, raw in raw_entries.items():
            try:
                index = int(key)
            except ValueError:
                self.logger.warning("Skipping non-integer cache key", key=key)
                continue
            entries[index] = CacheEntry.from_json(index, raw)
        return entries

    async def pending_older_than(self, age_seconds: float, now: Optional[float] = None) -> List[CacheEntry]:
        """Pending entries whose placeholder is at least age_seconds old."""
        cutoff = (now if now is not None else time.time()) - age_seconds
        entries = await self.get_all()
        stale = [e for e in entries.values() if e.is_pending and e.updated_at <= cutoff]
        return sorted(stale, key=lambda e: e.index)

    async def publish(self, index: int) -> int:
        """Announce a new index; returns how many subscribers received it."""
        try:
            receivers = await self._client().publish(self.channel, Notification(index).encode())
        except (RedisError, OSError) as e:
            raise StoreUnavailableError(STORE_NAME, str(e))
        return int(receivers)

    async def subscribe(
        self,
        on_subscribed: Optional[Callable[[], Awaitable[None]]] = None,
    ) -> AsyncIterator[Notification]:
        """Yield notifications from the channel until the caller stops iterating.

        on_subscribed is awaited once the subscription is confirmed, before
        any message is read.
        """
        pubsub = self._client().pubsub(ignore_subscribe_messages=True)
        try:
            await pubsub.subscribe(self.channel)
            self.logger.info("Subscribed to notifications", channel=self.channel)
            if on_subscribed is not None:
                await on_subscribed()

            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                try:
                    yield Notification.decode(message.get("data"))
                except ValueError as e:
                    self.logger.warning("Ignoring malformed notification", error=str(e))
        except (RedisError, OSError) as e:
            raise StoreUnavailableError(STORE_NAME, str(e))
        finally:
            try:
                await pubsub.unsubscribe(self.channel)
                await pubsub.aclose()
            except (RedisError, OSError) as e:
                self.logger.debug("Error closing subscription", error=str(e))

    async def health_check(self) -> bool:
        """Check Redis health."""
        try:
            await self._client().ping()
            return True
        except (StoreUnavailableError, RedisError, OSError):
            return False
