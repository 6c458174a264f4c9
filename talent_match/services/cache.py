"""Match cache: typed keys, TTL backends and tag-based invalidation."""
import json
import math
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Sequence, Tuple

from pymongo.errors import PyMongoError

from talent_match.services import db as dbmod
from talent_match.services.interfaces import CacheBackend
from talent_match.utils.exceptions import CacheUnavailableError
from talent_match.utils.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CacheKey:
    """Operation tag plus an ordered parameter list.

    Each value is JSON-encoded, so ("a:b",) and ("a", "b") render differently
    and two operations never share a key.
    """
    operation: str
    params: Tuple[Tuple[str, Any], ...] = ()

    @classmethod
    def of(cls, operation: str, **params: Any) -> "CacheKey":
        return cls(operation, tuple(params.items()))

    def render(self) -> str:
        parts = [json.dumps([name, value], sort_keys=True, default=str) for name, value in self.params]
        return f"{self.operation}:" + "|".join(parts)


def candidate_tag(candidate_id: str) -> str:
    return f"candidate:{candidate_id}"


def job_tag(job_id: str) -> str:
    return f"job:{job_id}"


def operation_tag(operation: str) -> str:
    return f"op:{operation}"


class InMemoryCacheBackend(CacheBackend):
    """Process-local backend.

    Reads check expiry per key; writes sweep every expired entry once the
    earliest known expiry has passed, so keys that are never read again
    do not accumulate.
    """

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Any, Tuple[str, ...]]] = {}
        self._next_expiry = math.inf

    async def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value, _ = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    async def set(self, key: str, value: Any, ttl_seconds: int, tags: Sequence[str] = ()) -> None:
        now = self._clock()
        if now >= self._next_expiry:
            self._sweep(now)
        expires_at = now + ttl_seconds
        self._entries[key] = (expires_at, value, tuple(tags))
        self._next_expiry = min(self._next_expiry, expires_at)

    async def delete_tags(self, tags: Sequence[str]) -> int:
        wanted = set(tags)
        doomed = [k for k, (_, _, entry_tags) in self._entries.items() if wanted.intersection(entry_tags)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def _sweep(self, now: float) -> None:
        expired = [k for k, (expires_at, _, _) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]
        self._next_expiry = min((e[0] for e in self._entries.values()), default=math.inf)
        if expired:
            logger.debug(f"Swept {len(expired)} expired cache entries, {len(self._entries)} left")

    def __len__(self):
        return len(self._entries)


class MongoCacheBackend(CacheBackend):
    """Shared backend on the match_cache collection (TTL index on expires_at)."""

    def __init__(self, database):
        self.coll = database[dbmod.MATCH_CACHE]

    async def get(self, key: str) -> Optional[Any]:
        try:
            doc = await self.coll.find_one({"key": key})
        except PyMongoError as e:
            raise CacheUnavailableError(f"Cache read failed: {e}", backend="mongo", cause=e) from e
        # the TTL monitor only sweeps about once a minute
        if not doc or doc["expires_at"] <= datetime.utcnow():
            return None
        return doc["value"]

    async def set(self, key: str, value: Any, ttl_seconds: int, tags: Sequence[str] = ()) -> None:
        try:
            await self.coll.update_one(
                {"key": key},
                {"$set": {
                    "value": value,
                    "tags": list(tags),
                    "expires_at": datetime.utcnow() + timedelta(seconds=ttl_seconds),
                }},
                upsert=True,
            )
        except PyMongoError as e:
            raise CacheUnavailableError(f"Cache write failed: {e}", backend="mongo", cause=e) from e

    async def delete_tags(self, tags: Sequence[str]) -> int:
        try:
            result = await self.coll.delete_many({"tags": {"$in": list(tags)}})
        except PyMongoError as e:
            raise CacheUnavailableError(f"Cache invalidation failed: {e}", backend="mongo", cause=e) from e
        return result.deleted_count


class MatchCache:
    """Front for a CacheBackend; an unavailable backend behaves as a miss."""

    def __init__(self, backend: CacheBackend):
        self.backend = backend

    async def get(self, key: CacheKey) -> Optional[Any]:
        rendered = key.render()
        try:
            value = await self.backend.get(rendered)
        except CacheUnavailableError as e:
            logger.warning(f"Cache unavailable on get, treating as miss: {e.message}")
            return None
        logger.debug(f"Cache {'hit' if value is not None else 'miss'}: {rendered}")
        return value

    async def set(self, key: CacheKey, value: Any, ttl_seconds: int, tags: Sequence[str] = ()) -> None:
        all_tags = (operation_tag(key.operation), *tags)
        try:
            await self.backend.set(key.render(), value, ttl_seconds, all_tags)
        except CacheUnavailableError as e:
            logger.warning(f"Cache unavailable on set, skipping: {e.message}")

    async def invalidate_tags(self, *tags: str) -> int:
        if not tags:
            return 0
        try:
            removed = await self.backend.delete_tags(tags)
        except CacheUnavailableError as e:
            logger.warning(f"Cache unavailable on invalidate: {e.message}")
            return 0
        logger.info(f"Invalidated {removed} cache entries for tags {list(tags)}")
        return removed
