"""TTL key-value store for token blacklist, auth throttling and sessions.

Nothing here is a cache: every key is written with a fixed TTL and simply
expires. Counters are read-then-write (GET, compute, SETEX), so concurrent
requests for the same key can lose an increment.
"""
import logging
from typing import Optional

import redis

from . import config

logger = logging.getLogger("chopnow.store")


class EphemeralStore:
    def __init__(self, client: redis.Redis):
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> "EphemeralStore":
        return cls(redis.Redis.from_url(url, decode_responses=True))

    def get(self, key: str) -> Optional[str]:
        return self.client.get(key)

    def set(self, key: str, value: str, ttl: int) -> None:
        self.client.setex(key, ttl, value)

    def delete(self, key: str) -> None:
        self.client.delete(key)

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except redis.RedisError as e:
            logger.warning(f"Ephemeral store ping failed: {e}")
            return False


_store: Optional[EphemeralStore] = None


def get_default_store() -> EphemeralStore:
    global _store
    if _store is None:
        _store = EphemeralStore.from_url(config.REDIS_URL)
    return _store
