import asyncio
import copy
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

from redis import RedisError

from .errors import CacheUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    key: str
    payload: Dict[str, Any]
    expires_at: int
    stored_at: str

    def is_fresh(self, now: float) -> bool:
        return self.expires_at > now

    def to_item(self) -> Dict[str, Any]:
        return {
            "city_id": self.key,
            "weather_data": self.payload,
            "ttl": self.expires_at,
            "timestamp": self.stored_at,
        }

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> "CacheEntry":
        try:
            return cls(
                key=str(item["city_id"]),
                payload=item["weather_data"],
                expires_at=int(item["ttl"]),
                stored_at=str(item.get("timestamp", "")),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise CacheUnavailable(f"Malformed cache item: {e!r}") from e


class ExpiringKeyValueStore(Protocol):
    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        ...

    async def put(self, key: str, item: Dict[str, Any]) -> None:
        ...

    async def close(self) -> None:
        ...


class InMemoryExpiringStore:
    """Process-local store. Expired items are kept until overwritten."""

    def __init__(self):
        self._store: Dict[str, Dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        async with self._lock:
            item = self._store.get(key)
            return copy.deepcopy(item) if item is not None else None

    async def put(self, key: str, item: Dict[str, Any]) -> None:
        async with self._lock:
            self._store[key] = copy.deepcopy(item)

    async def close(self) -> None:
        async with self._lock:
            self._store.clear()


class RedisExpiringStore:
    """Items serialized as JSON; Redis expires them at the item's ``ttl`` instant."""

    def __init__(self, client, prefix: str = "weather_cache"):
        self._redis = client
        self._prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}:{key}"

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            data = await self._redis.get(self._key(key))
            return json.loads(data) if data else None
        except (RedisError, ValueError) as e:
            raise CacheUnavailable(f"Redis read failed for {key!r}: {e}") from e

    async def put(self, key: str, item: Dict[str, Any]) -> None:
        try:
            await self._redis.set(self._key(key), json.dumps(item), exat=int(item["ttl"]))
        except (RedisError, TypeError, ValueError) as e:
            raise CacheUnavailable(f"Redis write failed for {key!r}: {e}") from e

    async def close(self) -> None:
        await self._redis.aclose()
        logger.debug("RedisExpiringStore: connection pool closed")
