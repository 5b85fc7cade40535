# contract_gateway/adapters/cache/redis_cache.py
import json
import re
from typing import Any, Optional

import redis.asyncio as redis
import structlog

from contract_gateway.core.domain.models import MISSING, CacheInvalidation, InvalidationMode
from contract_gateway.core.ports.idempotency_store import IIdempotencyStore
from contract_gateway.core.ports.response_cache import CacheKey, IResponseCache
from contract_gateway.shared.config import settings

logger = structlog.get_logger()

_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


def _encode_key(key: CacheKey) -> str:
    return json.dumps(list(key), separators=(",", ":"), ensure_ascii=False)


def _glob_escape(text: str) -> str:
    return _GLOB_SPECIAL.sub(r"\\\1", text)


class _RedisAdapter:
    """Connection handling shared by the Redis-backed stores."""

    def __init__(self, redis_url: Optional[str] = None, prefix: Optional[str] = None, client: Optional[redis.Redis] = None):
        self.redis_url = redis_url or settings.REDIS_URL
        self.prefix = prefix if prefix is not None else settings.REDIS_KEY_PREFIX
        self._client = client

    async def connect(self):
        """Explicit connection start (called on app startup)."""
        if not self._client:
            self._client = redis.from_url(self.redis_url, decode_responses=True)
            logger.info("redis_store_connected", store=type(self).__name__)

    async def disconnect(self):
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("redis_store_disconnected", store=type(self).__name__)

    async def _redis(self) -> redis.Redis:
        if not self._client:
            await self.connect()
        return self._client

    async def health_check(self) -> bool:
        if not self._client:
            return False
        try:
            return bool(await self._client.ping())
        except redis.RedisError:
            return False


class RedisResponseCache(_RedisAdapter, IResponseCache):
    """
    Response cache stored in Redis.

    A cache key tuple is stored under ``<prefix>:rc:<json array>``; prefix
    and match invalidations scan for the JSON array with its closing bracket
    open; match invalidations then keep the names whose inputs disagree.
    """

    def __init__(self, redis_url: Optional[str] = None, prefix: Optional[str] = None,
                 default_ttl: Optional[int] = None, client: Optional[redis.Redis] = None):
        super().__init__(redis_url, prefix, client)
        self.default_ttl = default_ttl

    def _key(self, key: CacheKey) -> str:
        return f"{self.prefix}:rc:{_encode_key(key)}"

    async def get(self, key: CacheKey) -> Optional[Any]:
        client = await self._redis()
        raw = await client.get(self._key(key))
        return None if raw is None else json.loads(raw)

    async def set(self, key: CacheKey, value: Any, ttl: Optional[int] = None) -> None:
        client = await self._redis()
        await client.set(self._key(key), json.dumps(value, default=str), ex=ttl or self.default_ttl)

    async def invalidate(self, invalidation: CacheInvalidation) -> int:
        client = await self._redis()
        exact = self._key(invalidation.key)
        if invalidation.mode is InvalidationMode.EXACT:
            return int(await client.delete(exact))

        # '["flags","get"]' itself plus every '["flags","get",...'
        pattern = _glob_escape(exact[:-1]) + ",*"
        doomed = [exact]
        async for name in client.scan_iter(match=pattern, count=500):
            if invalidation.mode is InvalidationMode.MATCH and not invalidation.matches(self._decode(name)):
                continue
            doomed.append(name)
        removed = int(await client.delete(*doomed))
        logger.debug(
            "redis_cache_invalidated",
            mode=invalidation.mode.value,
            key=list(invalidation.key),
            removed=removed,
        )
        return removed

    def _decode(self, name: str) -> CacheKey:
        try:
            return tuple(json.loads(name[len(self.prefix) + len(":rc:"):]))
        except ValueError:
            return ()


class RedisIdempotencyStore(_RedisAdapter, IIdempotencyStore):
    """Idempotency results stored in Redis under ``<prefix>:idem:<op>:<key>``."""

    def __init__(self, redis_url: Optional[str] = None, prefix: Optional[str] = None,
                 default_ttl: Optional[int] = None, client: Optional[redis.Redis] = None):
        super().__init__(redis_url, prefix, client)
        self.default_ttl = default_ttl

    def _key(self, op: str, key: str) -> str:
        return f"{self.prefix}:idem:{op}:{key}"

    async def get(self, op: str, key: str) -> Any:
        client = await self._redis()
        raw = await client.get(self._key(op, key))
        if raw is None:
            return MISSING
        return json.loads(raw)["result"]

    async def put(self, op: str, key: str, result: Any, ttl: Optional[int] = None) -> None:
        client = await self._redis()
        payload = json.dumps({"result": result}, default=str)
        await client.set(self._key(op, key), payload, ex=ttl or self.default_ttl)
