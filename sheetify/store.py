"""Session key/value stores with per-key expiry."""

from __future__ import annotations

import abc
import logging
import time
from typing import Callable, Dict, Optional, Tuple

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from .config import Config
from .exceptions import StoreUnavailable

logger = logging.getLogger(__name__)


class SessionStore(abc.ABC):
    """String key/value store used for progress records and sheet files."""

    @abc.abstractmethod
    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        """Store ``value`` under ``key``, expiring after ``ttl`` seconds if given."""

    @abc.abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the value under ``key`` or None when absent or expired."""

    async def close(self) -> None:
        return None


class RedisStore(SessionStore):
    def __init__(self, url: str) -> None:
        self.url = url
        self._client = aioredis.from_url(url, decode_responses=True)

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        try:
            await self._client.set(key, value, ex=ttl)
        except RedisError as e:
            raise StoreUnavailable(f"Failed to write {key}: {e}")

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self._client.get(key)
        except RedisError as e:
            raise StoreUnavailable(f"Failed to read {key}: {e}")

    async def close(self) -> None:
        await self._client.aclose()


class MemoryStore(SessionStore):
    """In-process store for the CLI and single-process development."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}

    def _prune(self, now: float) -> None:
        expired = [
            key
            for key, (_, expires_at) in self._data.items()
            if expires_at is not None and now >= expires_at
        ]
        for key in expired:
            del self._data[key]

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        now = self._clock()
        self._prune(now)
        expires_at = now + ttl if ttl is not None else None
        self._data[key] = (value, expires_at)

    async def get(self, key: str) -> Optional[str]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return value


def create_store(config: Config) -> SessionStore:
    """Redis when a URL is configured, in-memory otherwise."""
    if config.redis_url:
        logger.info("Using Redis session store at %s", config.redis_url)
        return RedisStore(config.redis_url)
    logger.warning("No REDIS_URL configured; sessions are kept in memory")
    return MemoryStore()
