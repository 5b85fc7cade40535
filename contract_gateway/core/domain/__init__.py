# contract_gateway/core/domain/__init__.py
"""
Domain Entities and Value Objects.

This package defines the operation metadata schema (``OpMeta`` and its
parts), the request/outcome value objects, the error hierarchy and the
expression language used by audit and rate-key directives.
"""

from .models import (
    MISSING,
    AuditRecord,
    AuthContext,
    CacheInvalidation,
    InvalidationMode,
    OperationOutcome,
    OperationRequest,
    RawRequest,
)
from .op_meta import (
    ArgSource,
    ArgTransform,
    AuditDirective,
    CallArg,
    Fallback,
    FallbackKind,
    InvalidationSource,
    InvokeStyle,
    KeyInvalidation,
    OpInvalidation,
    OpMeta,
    PrefixInvalidation,
    ServiceBinding,
    SymbolRef,
)

__all__ = [
    "MISSING",
    "AuditRecord",
    "AuthContext",
    "CacheInvalidation",
    "InvalidationMode",
    "OperationOutcome",
    "OperationRequest",
    "RawRequest",
    "ArgSource",
    "ArgTransform",
    "AuditDirective",
    "CallArg",
    "Fallback",
    "FallbackKind",
    "InvalidationSource",
    "InvokeStyle",
    "KeyInvalidation",
    "OpInvalidation",
    "OpMeta",
    "PrefixInvalidation",
    "ServiceBinding",
    "SymbolRef",
]
