# contract_gateway/core/use_cases/__init__.py
"""
Core Use Cases (Application Logic).

The "Interactors" of the system. Each one is a single step of the contract
lifecycle:
1. Validating metadata declarations (definition time).
2. Authorizing, resolving backend arguments and dispatching (request time).
3. Computing cache invalidations and audit records (after a successful call).
"""

from .authorize_operation import AuthorizeOperation
from .build_audit_record import BuildAuditRecord, compile_check
from .compute_invalidations import ComputeInvalidations
from .invoke_operation import InvokeOperation
from .resolve_call_args import ResolveCallArgs, ResolvedCall
from .validate_op_meta import ValidateOpMeta, ValidationResult, define_op_meta

__all__ = [
    "AuthorizeOperation",
    "BuildAuditRecord",
    "ComputeInvalidations",
    "InvokeOperation",
    "ResolveCallArgs",
    "ResolvedCall",
    "ValidateOpMeta",
    "ValidationResult",
    "compile_check",
    "define_op_meta",
]
