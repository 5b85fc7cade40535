# contract_gateway/core/domain/op_meta.py
"""
Operation metadata schema.

An ``OpMeta`` declares, for one API operation, everything the gateway needs
to serve it without hand-written glue: the authorization posture, the
backend function to call and how its arguments are wired from the request,
the cache entries to purge after success, and what to write to the audit
log.

Wire names are camelCase (``requireUser``, ``callArgs``, ``importPath``) so
declarations read the same as the contract payloads stored on routes and
emitted into OpenAPI; attribute names are snake_case.

Every model is frozen and closed (``extra="forbid"``): a typo in a field
name is a validation error, not a silently ignored key.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Annotated, Any, Dict, Iterator, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

OP_NAME_PATTERN = r"^[A-Za-z][\w-]*(\.[A-Za-z][\w-]*)*$"
_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# --- Enums ---

class ArgSource(str, Enum):
    """Where a call argument reads its value from."""
    PARAMS = "params"
    QUERY = "query"
    BODY = "body"
    CTX = "ctx"
    CONST = "const"


class ArgTransform(str, Enum):
    """Coercion applied to a resolved argument before binding."""
    DATE = "date"
    ISO_DATE = "isoDate"
    NUMBER = "number"
    STRING = "string"
    BOOLEAN = "boolean"


class InvokeStyle(str, Enum):
    """Whether the backend takes one keyword set or an ordered argument list."""
    OBJECT = "object"
    POSITIONAL = "positional"


class FallbackKind(str, Enum):
    ENV = "env"
    VALUE = "value"


class InvalidationSource(str, Enum):
    PARAMS = "params"
    QUERY = "query"
    BODY = "body"


class _MetaModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    def _declared(self, field_name: str) -> bool:
        return field_name in self.model_fields_set

# --- Call-argument wiring ---

class Fallback(_MetaModel):
    """Value used when the primary source is undefined."""
    kind: FallbackKind
    key: Optional[str] = Field(None, min_length=1)
    value: Any = None

    @property
    def has_value(self) -> bool:
        return self._declared("value")

    @model_validator(mode="after")
    def _check_kind(self) -> "Fallback":
        if self.kind is FallbackKind.ENV and not self.key:
            raise ValueError("env fallback requires a 'key'")
        if self.kind is FallbackKind.VALUE and not self.has_value:
            raise ValueError("value fallback requires a 'value'")
        return self


class CallArg(_MetaModel):
    """
    One argument binding: destination ``name`` <- ``request[from][key]``.

    ``name`` is a keyword (object mode) or a string-encoded index
    (positional mode). ``key`` may be omitted to forward the whole source.
    """
    name: str = Field(..., min_length=1)
    source: ArgSource = Field(..., alias="from")
    key: Optional[str] = Field(None, min_length=1)
    optional: bool = False
    transform: Optional[ArgTransform] = None
    value: Any = None
    fallback: Optional[Fallback] = None

    @property
    def has_value(self) -> bool:
        """True when ``value`` was declared, including an explicit ``null``."""
        return self._declared("value")

    @property
    def omittable(self) -> bool:
        """True when an undefined source makes the argument disappear."""
        return self.optional and self.fallback is None and self.source is not ArgSource.CONST

    @model_validator(mode="after")
    def _check_source(self) -> "CallArg":
        if self.source is ArgSource.CONST:
            if not self.has_value:
                raise ValueError("'const' arguments must declare a 'value'")
            if self.key is not None or self.fallback is not None or self.optional:
                raise ValueError("'const' arguments take no 'key', 'fallback' or 'optional'")
        elif self.has_value:
            raise ValueError("'value' is only allowed when from='const'")
        return self


class SymbolRef(_MetaModel):
    """Logical location of a backend symbol (schema model, function or factory)."""
    import_path: str = Field(..., alias="importPath", min_length=1)
    name: str = Field(..., min_length=1)

    def __str__(self) -> str:
        return f"{self.import_path}:{self.name}"

# --- Side effects ---

class AuditDirective(_MetaModel):
    """What to write to the audit log after a successful call."""
    resource_type: str = Field(..., alias="resourceType", min_length=1)
    resource_id_expr: Optional[str] = Field(None, alias="resourceIdExpr", min_length=1)
    before_expr: Optional[str] = Field(None, alias="beforeExpr", min_length=1)
    after_expr: Optional[str] = Field(None, alias="afterExpr", min_length=1)


class PrefixInvalidation(_MetaModel):
    kind: Literal["prefix"]
    key: Tuple[str, ...] = Field(..., min_length=1)


class KeyInvalidation(_MetaModel):
    kind: Literal["key"]
    key: Tuple[str, ...] = Field(..., min_length=1)


class OpInvalidation(_MetaModel):
    """Purge the cache entry another operation would build from selected request fields."""
    kind: Literal["op"]
    target: str = Field(..., pattern=OP_NAME_PATTERN)
    source: InvalidationSource = Field(InvalidationSource.PARAMS, alias="from")
    pick: Optional[Tuple[str, ...]] = None


InvalidationDirective = Annotated[
    Union[PrefixInvalidation, KeyInvalidation, OpInvalidation],
    Field(discriminator="kind"),
]

# --- Service binding ---

class ServiceBinding(_MetaModel):
    """How to invoke the backend function for an operation."""
    import_path: str = Field(..., alias="importPath", min_length=1)
    fn: str = Field(..., min_length=1)
    params_schema: Optional[SymbolRef] = Field(None, alias="zodParams")
    body_schema: Optional[SymbolRef] = Field(None, alias="zodBody")
    query_schema: Optional[SymbolRef] = Field(None, alias="zodQuery")
    invoke: Optional[InvokeStyle] = None
    call_args: Tuple[CallArg, ...] = Field((), alias="callArgs")
    raw: bool = False
    factory: Optional[SymbolRef] = None
    require_tenant_match: bool = Field(False, alias="requireTenantMatch")
    require_super_admin: bool = Field(False, alias="requireSuperAdmin")
    audit: Optional[AuditDirective] = None
    rate_key_expr: Optional[str] = Field(None, alias="rateKeyExpr", min_length=1)

    @property
    def function_ref(self) -> SymbolRef:
        return SymbolRef(importPath=self.import_path, name=self.fn)

    @property
    def reads_ctx(self) -> bool:
        """True when the backend call depends on the caller's session."""
        return self.raw or any(arg.source is ArgSource.CTX for arg in self.call_args)

    @model_validator(mode="after")
    def _check_wiring(self) -> "ServiceBinding":
        if self.raw and self.factory is None:
            raise ValueError("raw bindings require a 'factory'")
        if self.call_args and self.invoke is None:
            raise ValueError("'callArgs' requires 'invoke' ('object' or 'positional')")

        names = [arg.name for arg in self.call_args]
        if len(set(names)) != len(names):
            raise ValueError(f"duplicate callArgs names: {names}")

        if self.invoke is InvokeStyle.POSITIONAL:
            expected = [str(i) for i in range(len(names))]
            if names != expected:
                raise ValueError(
                    f"positional callArgs must be named {expected} in order, got {names}"
                )
            seen_optional = False
            for arg in self.call_args:
                if arg.omittable:
                    seen_optional = True
                elif seen_optional:
                    raise ValueError(
                        f"positional argument '{arg.name}' follows an optional argument; "
                        "optional positional arguments must be trailing"
                    )
        elif self.invoke is InvokeStyle.OBJECT:
            bad = [n for n in names if not _IDENTIFIER.match(n)]
            if bad:
                raise ValueError(f"object callArgs names must be identifiers: {bad}")
        return self

# --- Operation ---

class OpMeta(_MetaModel):
    """Declarative description of one API operation."""
    op: str = Field(..., pattern=OP_NAME_PATTERN)
    perm: Optional[str] = Field(None, min_length=1)
    require_user: bool = Field(False, alias="requireUser")
    require_super_admin: bool = Field(False, alias="requireSuperAdmin")
    allow_unauthed: bool = Field(False, alias="allowUnauthed")
    require_tenant_match: bool = Field(False, alias="requireTenantMatch")
    idempotent: bool = False
    invalidate: Tuple[InvalidationDirective, ...] = ()
    service: Optional[ServiceBinding] = None

    @model_validator(mode="after")
    def _check_auth_flags(self) -> "OpMeta":
        if self.allow_unauthed and (self.require_user or self.perm or self.effective_require_super_admin):
            raise ValueError(
                "'allowUnauthed' cannot be combined with 'requireUser', 'requireSuperAdmin' or 'perm'"
            )
        return self

    @property
    def effective_require_tenant_match(self) -> bool:
        return self.require_tenant_match or bool(self.service and self.service.require_tenant_match)

    @property
    def effective_require_super_admin(self) -> bool:
        return self.require_super_admin or bool(self.service and self.service.require_super_admin)

    @property
    def segments(self) -> Tuple[str, ...]:
        return tuple(self.op.split("."))

    def expressions(self) -> Iterator[Tuple[str, str]]:
        """Yields ``(field_path, expression)`` for every expression the metadata carries."""
        if self.service is None:
            return
        if self.service.rate_key_expr:
            yield "service.rateKeyExpr", self.service.rate_key_expr
        audit = self.service.audit
        if audit is not None:
            for path, expr in (
                ("service.audit.resourceIdExpr", audit.resource_id_expr),
                ("service.audit.beforeExpr", audit.before_expr),
                ("service.audit.afterExpr", audit.after_expr),
            ):
                if expr:
                    yield path, expr

    def to_payload(self) -> Dict[str, Any]:
        """JSON-compatible wire form (camelCase, only declared fields)."""
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


__all__ = [
    "OP_NAME_PATTERN",
    "ArgSource",
    "ArgTransform",
    "InvokeStyle",
    "FallbackKind",
    "InvalidationSource",
    "Fallback",
    "CallArg",
    "SymbolRef",
    "AuditDirective",
    "PrefixInvalidation",
    "KeyInvalidation",
    "OpInvalidation",
    "InvalidationDirective",
    "ServiceBinding",
    "OpMeta",
]
