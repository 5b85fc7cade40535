# contract_gateway/core/contracts/registry.py
"""
Process-wide operation registry.

Built once at startup by walking a ``ContractRouter`` (or the routes of a
composed FastAPI app) and read-only afterwards. It maps each operation name
to its route, its validated metadata and its cache-key rule, which is what
``op`` invalidation directives look up.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

import structlog

from contract_gateway.core.contracts.attachment import read_raw_meta
from contract_gateway.core.contracts.routes import ContractRouter
from contract_gateway.core.domain.exceptions import (
    ContractDefinitionError,
    ExpressionError,
    OpMetaValidationError,
    UnknownOperationError,
)
from contract_gateway.core.domain.expressions import FunctionRegistry
from contract_gateway.core.domain.models import MISSING, canonical_json
from contract_gateway.core.domain.op_meta import OpInvalidation, OpMeta
from contract_gateway.core.use_cases.build_audit_record import compile_check
from contract_gateway.core.use_cases.validate_op_meta import ValidateOpMeta
from contract_gateway.shared.config import settings

logger = structlog.get_logger()


@dataclass(frozen=True)
class CacheKeyRule:
    """
    Builds the cache key of an operation's result.

    ``("flags", "get")`` + ``{"key": "beta"}`` -> ``("flags", "get", '{"key":"beta"}')``.
    An empty input yields the bare segments, so a prefix on the segments
    matches every entry of the operation.
    """
    segments: Tuple[str, ...]

    def build(self, inputs: Optional[Mapping[str, Any]] = None) -> Tuple[str, ...]:
        data = {k: v for k, v in (inputs or {}).items() if v is not MISSING}
        if not data:
            return self.segments
        return self.segments + (canonical_json(data),)


@dataclass(frozen=True)
class RegisteredOperation:
    op: str
    group: str
    name: str
    method: str
    path: str
    meta: OpMeta
    key_rule: CacheKeyRule
    route: Any = None

    @property
    def is_read(self) -> bool:
        return self.method.upper() == "GET"


class OperationRegistry:
    """Read-only lookup of registered operations by name."""

    def __init__(self, operations: Iterable[RegisteredOperation] = ()):
        self._operations: Dict[str, RegisteredOperation] = {}
        for operation in operations:
            self._add(operation)

    def _add(self, operation: RegisteredOperation) -> None:
        existing = self._operations.get(operation.op)
        if existing is not None:
            raise ContractDefinitionError(
                f"duplicate operation name (also declared on {existing.method} {existing.path})",
                op=operation.op,
            )
        self._operations[operation.op] = operation

    # --- Lookup ---

    def get(self, op: str) -> Optional[RegisteredOperation]:
        return self._operations.get(op)

    def require(self, op: str, referenced_by: Optional[str] = None) -> RegisteredOperation:
        operation = self._operations.get(op)
        if operation is None:
            raise UnknownOperationError(op, referenced_by=referenced_by)
        return operation

    def key_rule(self, op: str, referenced_by: Optional[str] = None) -> CacheKeyRule:
        return self.require(op, referenced_by).key_rule

    def __contains__(self, op: object) -> bool:
        return op in self._operations

    def __iter__(self) -> Iterator[RegisteredOperation]:
        return iter(self._operations.values())

    def __len__(self) -> int:
        return len(self._operations)

    # --- Definition-time checks ---

    def validate_invalidation_targets(self) -> None:
        """Fails when an ``op`` invalidation directive names an unregistered operation."""
        problems: List[str] = []
        for operation in self:
            for index, directive in enumerate(operation.meta.invalidate):
                if isinstance(directive, OpInvalidation) and directive.target not in self._operations:
                    problems.append(
                        f"{operation.op}: invalidate.{index}.target '{directive.target}' is not a registered operation"
                    )
        if problems:
            raise ContractDefinitionError("; ".join(problems))

    def check_expressions(self, functions: Optional[FunctionRegistry] = None) -> None:
        """Parses every audit and rate-key expression once."""
        for operation in self:
            try:
                compile_check(operation.meta, functions)
            except ExpressionError as e:
                raise ContractDefinitionError(str(e), op=operation.op) from e

    # --- Construction ---

    @classmethod
    def from_contracts(
        cls,
        contracts: ContractRouter,
        *,
        strict: Optional[bool] = None,
        functions: Optional[FunctionRegistry] = None,
    ) -> "OperationRegistry":
        entries = (
            (".".join(name_path[:-1]), name_path[-1], route.method, route.path, route)
            for name_path, route in contracts.walk()
        )
        return cls._build(entries, strict=strict, functions=functions)

    @classmethod
    def from_routes(
        cls,
        routes: Iterable[Any],
        *,
        strict: Optional[bool] = None,
        functions: Optional[FunctionRegistry] = None,
    ) -> "OperationRegistry":
        """Builds from FastAPI ``APIRoute`` objects (e.g. ``app.routes`` after composition)."""
        entries = []
        for route in routes:
            methods = sorted(getattr(route, "methods", None) or ())
            if not methods:
                continue
            entries.append(("", getattr(route, "name", ""), methods[0], route.path, route))
        return cls._build(entries, strict=strict, functions=functions)

    @classmethod
    def _build(
        cls,
        entries: Iterable[Tuple[str, str, str, str, Any]],
        *,
        strict: Optional[bool],
        functions: Optional[FunctionRegistry],
    ) -> "OperationRegistry":
        if strict is None:
            strict = settings.strict_contracts

        validator = ValidateOpMeta()
        registry = cls()
        errors: Dict[str, str] = {}

        for group, name, method, path, route in entries:
            payload = read_raw_meta(route)
            if payload is None:
                continue

            result = validator.validate(payload)
            if not result.ok:
                label = f"{method} {path}"
                if strict:
                    errors.update({f"{label} {field}": msg for field, msg in result.errors.items()})
                else:
                    logger.warning("op_meta_skipped", route=label, op=payload.get("op"), errors=result.errors)
                continue

            meta = result.meta
            registry._add(
                RegisteredOperation(
                    op=meta.op,
                    group=group or ".".join(meta.segments[:-1]),
                    name=name or meta.segments[-1],
                    method=method.upper(),
                    path=path,
                    meta=meta,
                    key_rule=CacheKeyRule(meta.segments),
                    route=route,
                )
            )

        if errors:
            raise OpMetaValidationError(errors)

        registry.validate_invalidation_targets()
        registry.check_expressions(functions)
        logger.info("operation_registry_built", operations=len(registry), strict=strict)
        return registry
