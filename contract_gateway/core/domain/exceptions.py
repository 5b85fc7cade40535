# contract_gateway/core/domain/exceptions.py
from typing import Dict, Mapping, Optional


class DomainError(Exception):
    """Base class for all domain-level exceptions."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)

# --- Definition-time Errors ---

class ContractError(DomainError):
    """Base class for errors raised while defining or evaluating operation contracts."""


class OpMetaValidationError(ContractError):
    """
    Raised when an operation metadata declaration does not match the schema.

    ``errors`` maps a dotted field path (e.g. ``service.callArgs.1.from``) to a message.
    """
    def __init__(self, errors: Mapping[str, str], op: Optional[str] = None):
        self.errors: Dict[str, str] = dict(errors)
        self.op = op
        label = f" for '{op}'" if op else ""
        details = "; ".join(f"{path}: {msg}" for path, msg in self.errors.items())
        super().__init__(f"Invalid operation metadata{label}: {details}")


class ContractDefinitionError(ContractError):
    """Raised when a set of contracts is inconsistent (duplicate ops, bad expressions, ...)."""
    def __init__(self, reason: str, op: Optional[str] = None):
        self.op = op
        prefix = f"[{op}] " if op else ""
        super().__init__(f"{prefix}{reason}")


class UnknownOperationError(ContractError):
    """Raised when an operation name does not resolve in the operation registry."""
    def __init__(self, op: str, referenced_by: Optional[str] = None):
        self.op = op
        self.referenced_by = referenced_by
        origin = f" (referenced by '{referenced_by}')" if referenced_by else ""
        super().__init__(f"Operation '{op}' is not registered{origin}.")


class ServiceResolutionError(ContractError):
    """Raised when a backend function, factory or schema locator cannot be resolved."""
    def __init__(self, import_path: str, name: str, details: str = ""):
        self.import_path = import_path
        self.name = name
        suffix = f": {details}" if details else ""
        super().__init__(f"Cannot resolve '{name}' from '{import_path}'{suffix}")

# --- Request-time Errors ---

class ArgumentCoercionError(ContractError):
    """Raised when a call-argument transform cannot coerce the request value (client input error)."""
    def __init__(self, arg_name: str, transform: str, details: str = ""):
        self.arg_name = arg_name
        self.transform = transform
        suffix = f": {details}" if details else ""
        super().__init__(f"Argument '{arg_name}' could not be coerced with '{transform}'{suffix}")


class RequestValidationError(ContractError):
    """Raised when the request body or query fails its declared schema."""
    def __init__(self, location: str, errors: Mapping[str, str]):
        self.location = location
        self.errors: Dict[str, str] = dict(errors)
        details = "; ".join(f"{path}: {msg}" for path, msg in self.errors.items())
        super().__init__(f"Invalid request {location}: {details}")


class MissingConfigurationError(ContractError):
    """Raised when an env fallback references a configuration key that is not set (server fault)."""
    def __init__(self, key: str, arg_name: Optional[str] = None):
        self.key = key
        self.arg_name = arg_name
        target = f" required by argument '{arg_name}'" if arg_name else ""
        super().__init__(f"Configuration value '{key}'{target} is not set.")


class BackendCallError(ContractError):
    """Raised when the backend function of an operation fails unexpectedly."""
    def __init__(self, op: str, details: str):
        self.op = op
        super().__init__(f"Backend call for '{op}' failed: {details}")


class ExpressionError(ContractError):
    """Raised when an audit/rate-key expression cannot be parsed or evaluated."""
    def __init__(self, expression: str, reason: str):
        self.expression = expression
        self.reason = reason
        super().__init__(f"Expression {expression!r} failed: {reason}")

# --- Authorization Errors ---

class AuthorizationError(ContractError):
    """Base class for authorization gate failures."""


class UnauthenticatedError(AuthorizationError):
    """Raised when an operation requires an authenticated user and none is present."""
    def __init__(self, op: str):
        self.op = op
        super().__init__(f"Operation '{op}' requires an authenticated user.")


class ForbiddenError(AuthorizationError):
    """Raised when the caller lacks a required permission or role."""
    def __init__(self, op: str, reason: str):
        self.op = op
        self.reason = reason
        super().__init__(f"Operation '{op}' is forbidden: {reason}")


class TenantMismatchError(AuthorizationError):
    """Raised when the addressed tenant differs from the caller's active tenant."""
    def __init__(self, op: str, requested: Optional[str], active: Optional[str]):
        self.op = op
        self.requested = requested
        self.active = active
        super().__init__(
            f"Operation '{op}' requires tenant match (requested={requested!r}, active={active!r})."
        )
