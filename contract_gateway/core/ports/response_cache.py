# contract_gateway/core/ports/response_cache.py
from typing import Any, Optional, Protocol, Tuple

from contract_gateway.core.domain.models import CacheInvalidation

CacheKey = Tuple[str, ...]


class IResponseCache(Protocol):
    """
    Port for the cache of read-operation results.

    Keys are tuples built by an operation's cache-key rule, e.g.
    ``("flags", "get", '{"key":"beta"}')``.
    """

    async def get(self, key: CacheKey) -> Optional[Any]:
        """Returns the cached value or None on a miss."""
        ...

    async def set(self, key: CacheKey, value: Any, ttl: Optional[int] = None) -> None:
        ...

    async def invalidate(self, invalidation: CacheInvalidation) -> int:
        """
        Purges the entries matched by one invalidation.

        Returns:
            int: Number of entries removed.
        """
        ...

    async def health_check(self) -> bool:
        ...
