# contract_gateway/core/ports/__init__.py
"""
Core Ports (Interfaces).

This package defines the Protocols that the Infrastructure Adapters must
implement. They let the Core interact with the outside world (environment,
backend modules, caches, audit storage) without knowing the implementation
details.
"""

from .audit_sink import IAuditSink
from .config_source import IConfigSource
from .idempotency_store import IIdempotencyStore
from .response_cache import CacheKey, IResponseCache
from .service_locator import IServiceLocator

__all__ = [
    "CacheKey",
    "IAuditSink",
    "IConfigSource",
    "IIdempotencyStore",
    "IResponseCache",
    "IServiceLocator",
]
