# contract_gateway/adapters/cache/memory_cache.py
import asyncio
import copy
import time
from typing import Any, Dict, Optional, Tuple

import structlog

from contract_gateway.core.domain.models import MISSING, CacheInvalidation
from contract_gateway.core.ports.idempotency_store import IIdempotencyStore
from contract_gateway.core.ports.response_cache import CacheKey, IResponseCache

logger = structlog.get_logger()

_Entry = Tuple[Optional[float], Any]


def _expiry(ttl: Optional[int]) -> Optional[float]:
    return time.monotonic() + ttl if ttl else None


def _alive(entry: _Entry) -> bool:
    expires_at, _ = entry
    return expires_at is None or expires_at > time.monotonic()


class InMemoryResponseCache(IResponseCache):
    """Process-local response cache. Suitable for a single worker and for tests."""

    def __init__(self, default_ttl: Optional[int] = None):
        self.default_ttl = default_ttl
        self._entries: Dict[CacheKey, _Entry] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: CacheKey) -> Optional[Any]:
        entry = self._entries.get(tuple(key))
        if entry is None or not _alive(entry):
            return None
        return copy.deepcopy(entry[1])

    async def set(self, key: CacheKey, value: Any, ttl: Optional[int] = None) -> None:
        async with self._lock:
            self._entries[tuple(key)] = (_expiry(ttl or self.default_ttl), copy.deepcopy(value))

    async def invalidate(self, invalidation: CacheInvalidation) -> int:
        async with self._lock:
            doomed = [key for key in self._entries if invalidation.matches(key)]
            for key in doomed:
                del self._entries[key]
        return len(doomed)

    def keys(self):
        return [key for key, entry in self._entries.items() if _alive(entry)]

    async def health_check(self) -> bool:
        return True


class InMemoryIdempotencyStore(IIdempotencyStore):
    """Process-local idempotency store."""

    def __init__(self, default_ttl: Optional[int] = None):
        self.default_ttl = default_ttl
        self._entries: Dict[Tuple[str, str], _Entry] = {}

    async def get(self, op: str, key: str) -> Any:
        entry = self._entries.get((op, key))
        if entry is None or not _alive(entry):
            return MISSING
        return copy.deepcopy(entry[1])

    async def put(self, op: str, key: str, result: Any, ttl: Optional[int] = None) -> None:
        self._entries[(op, key)] = (_expiry(ttl or self.default_ttl), copy.deepcopy(result))

    async def health_check(self) -> bool:
        return True
