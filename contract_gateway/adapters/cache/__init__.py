# contract_gateway/adapters/cache/__init__.py
from .memory_cache import InMemoryIdempotencyStore, InMemoryResponseCache
from .redis_cache import RedisIdempotencyStore, RedisResponseCache

__all__ = [
    "InMemoryIdempotencyStore",
    "InMemoryResponseCache",
    "RedisIdempotencyStore",
    "RedisResponseCache",
]
