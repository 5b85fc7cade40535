# contract_gateway/core/contracts/__init__.py
"""
Route contracts.

Route definitions (``RouteContract``, ``ContractRouter``), the metadata slot
carried on them (``with_meta`` / ``read_meta``) and the operation registry
built from the final route tree.
"""

from .attachment import META_EXTENSION, attach, read_meta, read_raw_meta, with_meta
from .registry import CacheKeyRule, OperationRegistry, RegisteredOperation, canonical_json
from .routes import ContractRouter, RouteContract

__all__ = [
    "META_EXTENSION",
    "CacheKeyRule",
    "ContractRouter",
    "OperationRegistry",
    "RegisteredOperation",
    "RouteContract",
    "attach",
    "canonical_json",
    "read_meta",
    "read_raw_meta",
    "with_meta",
]
