# contract_gateway/core/use_cases/invoke_operation.py
import dataclasses
import hashlib
import inspect
from functools import lru_cache, partial
from typing import TYPE_CHECKING, Any, Optional, Tuple

import structlog
from pydantic import TypeAdapter, ValidationError
from pydantic_core import to_jsonable_python

from contract_gateway.core.domain.exceptions import (
    BackendCallError,
    ContractDefinitionError,
    DomainError,
    ExpressionError,
    RequestValidationError,
)
from contract_gateway.core.domain.expressions import is_nullish, parse_expression, to_js_string
from contract_gateway.core.domain.models import (
    MISSING,
    AuditRecord,
    CacheInvalidation,
    OperationOutcome,
    OperationRequest,
    RawRequest,
    canonical_json,
)
from contract_gateway.core.domain.op_meta import OpMeta, ServiceBinding, SymbolRef
from contract_gateway.core.ports.audit_sink import IAuditSink
from contract_gateway.core.ports.idempotency_store import IIdempotencyStore
from contract_gateway.core.ports.response_cache import IResponseCache
from contract_gateway.core.ports.service_locator import IServiceLocator
from contract_gateway.core.use_cases.authorize_operation import AuthorizeOperation
from contract_gateway.core.use_cases.build_audit_record import BuildAuditRecord, build_scope
from contract_gateway.core.use_cases.compute_invalidations import ComputeInvalidations
from contract_gateway.core.use_cases.resolve_call_args import ResolveCallArgs
from contract_gateway.core.use_cases.validate_op_meta import format_validation_errors
from contract_gateway.shared.observability import get_tracer

if TYPE_CHECKING:
    from contract_gateway.core.contracts.registry import OperationRegistry, RegisteredOperation

logger = structlog.get_logger()
tracer = get_tracer(__name__)

IDEMPOTENCY_HEADER = "idempotency-key"


@lru_cache(maxsize=256)
def _adapter(schema: Any) -> TypeAdapter:
    return TypeAdapter(schema)


class InvokeOperation:
    """
    Use Case: serves one operation end to end from its metadata.

    Responsibilities:
    1. Runs the authorization gate.
    2. Parses body/query with the binding's schemas.
    3. Calls the backend (resolved arguments, or the raw factory).
    4. Only after the call returned: purges caches and writes the audit
       record. Failures there are logged, never raised.
    5. Replays idempotent results and serves cacheable reads from the cache.
    """

    def __init__(
        self,
        registry: "OperationRegistry",
        locator: IServiceLocator,
        resolver: ResolveCallArgs,
        invalidations: ComputeInvalidations,
        audit_builder: BuildAuditRecord,
        response_cache: IResponseCache,
        idempotency_store: IIdempotencyStore,
        audit_sink: IAuditSink,
        authorizer: Optional[AuthorizeOperation] = None,
        response_cache_ttl: Optional[int] = None,
        idempotency_ttl: Optional[int] = None,
    ):
        self.registry = registry
        self.locator = locator
        self.resolver = resolver
        self.invalidations = invalidations
        self.audit_builder = audit_builder
        self.response_cache = response_cache
        self.idempotency_store = idempotency_store
        self.audit_sink = audit_sink
        self.authorizer = authorizer or AuthorizeOperation()
        self.response_cache_ttl = response_cache_ttl
        self.idempotency_ttl = idempotency_ttl

    async def execute(self, op: str, request: OperationRequest) -> OperationOutcome:
        registered = self.registry.require(op)
        meta = registered.meta
        service = meta.service
        if service is None:
            raise ContractDefinitionError("operation has no service binding", op=op)

        with tracer.start_as_current_span("use_case.invoke_operation") as span, \
                structlog.contextvars.bound_contextvars(op=op, request_id=request.ctx.request_id):
            span.set_attribute("app.op", op)
            span.set_attribute("app.raw", service.raw)
            logger.info("operation_invoked", method=request.method, path=request.path)

            # 1. Authorization
            self.authorizer.execute(meta, request.ctx, request.params)

            # 2. Input parsing
            raw_body = request.body
            request, body_safe = self._parse_inputs(service, request)
            scope = build_scope(dataclasses.replace(request, body=raw_body), body_safe=body_safe)

            # 3. Pre-call expressions
            rate_key = self._rate_key(service, scope, op)
            before = self.audit_builder.snapshot_before(service.audit, scope, op=op)

            # 4. Replays
            idempotency_key = self._idempotency_key(request) if meta.idempotent else None
            if idempotency_key:
                stored = await self._stored_result(op, idempotency_key)
                if stored is not MISSING:
                    logger.info("operation_replayed", idempotency_key=idempotency_key)
                    span.set_attribute("app.replayed", True)
                    return OperationOutcome(op=op, result=stored, rate_key=rate_key, replayed=True)

            cache_key = self._cache_key(registered, request)
            if cache_key is not None:
                hit = await self._cached_result(cache_key)
                if hit is not None:
                    span.set_attribute("app.cached", True)
                    return OperationOutcome(op=op, result=hit, rate_key=rate_key, cached=True)

            # 5. Backend call; nothing below runs if it raises or is cancelled
            result = await self._call_backend(meta, service, request)
            result = to_jsonable_python(result, fallback=str)

            # 6. Side effects
            invalidations = await self._apply_invalidations(meta, request)
            scope["result"] = result
            audit = await self._write_audit(meta, service, scope, request, before)

            if cache_key is not None:
                await self._store_cached(cache_key, result)
            if idempotency_key:
                await self._store_result(op, idempotency_key, result)

            logger.info("operation_succeeded", invalidations=len(invalidations), audited=audit is not None)
            return OperationOutcome(
                op=op,
                result=result,
                invalidations=invalidations,
                audit=audit,
                rate_key=rate_key,
            )

    # --- Input parsing ---

    def _parse_inputs(self, service: ServiceBinding, request: OperationRequest) -> Tuple[OperationRequest, Any]:
        body_safe: Any = MISSING
        if service.params_schema is not None:
            params = self._validate("params", service.params_schema, dict(request.params))
            request = dataclasses.replace(request, params=params)
        if service.body_schema is not None:
            raw = None if request.body is MISSING else request.body
            body_safe = self._validate("body", service.body_schema, raw)
            request = dataclasses.replace(request, body=body_safe)
        if service.query_schema is not None:
            query = self._validate("query", service.query_schema, dict(request.query))
            request = dataclasses.replace(request, query=query)
        return request, body_safe

    def _validate(self, location: str, ref: SymbolRef, value: Any) -> Any:
        adapter = _adapter(self.locator.resolve(ref))
        try:
            parsed = adapter.validate_python(value)
        except ValidationError as e:
            raise RequestValidationError(location, format_validation_errors(e)) from e
        return adapter.dump_python(parsed, mode="json", by_alias=True)

    # --- Pre-call expressions ---

    def _rate_key(self, service: ServiceBinding, scope: dict, op: str) -> Optional[str]:
        if not service.rate_key_expr:
            return None
        try:
            value = parse_expression(service.rate_key_expr).evaluate(scope, self.audit_builder.functions)
        except ExpressionError as e:
            logger.warning("rate_key_expression_failed", op=op, error=e.reason)
            return None
        return None if is_nullish(value) else to_js_string(value)

    # --- Backend ---

    async def _call_backend(self, meta: OpMeta, service: ServiceBinding, request: OperationRequest) -> Any:
        if service.raw:
            factory = self.locator.resolve(service.factory)
            raw_request = RawRequest(
                request=request,
                op=meta.op,
                params=request.params,
                query=request.query,
                body=request.body,
                ctx=request.ctx,
                request_id=request.ctx.request_id or request.header("x-request-id"),
            )
            target = str(service.factory)
            invoke = partial(factory, raw_request)
        else:
            fn = self.locator.resolve(service.function_ref)
            call = self.resolver.execute(service, request)
            target = str(service.function_ref)
            invoke = partial(call.invoke, fn)

        try:
            outcome = invoke()
            if inspect.isawaitable(outcome):
                outcome = await outcome
        except DomainError:
            raise
        except Exception as e:
            logger.error("backend_call_failed", fn=target, error=str(e), exc_info=True)
            raise BackendCallError(meta.op, str(e)) from e
        return outcome

    # --- Post-call side effects ---

    async def _apply_invalidations(self, meta: OpMeta, request: OperationRequest) -> list:
        if not meta.invalidate:
            return []
        computed, _ = self.invalidations.execute_isolated(meta.invalidate, request, op=meta.op)
        applied: list[CacheInvalidation] = []
        for invalidation in computed:
            try:
                removed = await self.response_cache.invalidate(invalidation)
            except Exception as e:
                logger.error("cache_invalidation_failed", key=list(invalidation.key), error=str(e))
                continue
            logger.debug("cache_invalidated", mode=invalidation.mode.value, key=list(invalidation.key), removed=removed)
            applied.append(invalidation)
        return applied

    async def _write_audit(
        self,
        meta: OpMeta,
        service: ServiceBinding,
        scope: dict,
        request: OperationRequest,
        before: Any,
    ) -> Optional[AuditRecord]:
        if service.audit is None:
            return None
        try:
            record = self.audit_builder.execute(service.audit, scope, op=meta.op, request=request, before=before)
            await self.audit_sink.append(record)
        except Exception as e:
            logger.error("audit_write_failed", error=str(e), exc_info=True)
            return None
        return record

    # --- Replay stores ---

    @staticmethod
    def _idempotency_key(request: OperationRequest) -> Optional[str]:
        """
        Scopes the ``Idempotency-Key`` header to the caller and the target
        resource, so a reused header value never replays across principals.
        """
        header = request.header(IDEMPOTENCY_HEADER)
        if not header:
            return None
        ctx = request.ctx
        target = hashlib.sha256(canonical_json(dict(request.params)).encode("utf-8")).hexdigest()[:16]
        return f"{ctx.tenant_id or '-'}:{ctx.user_id or '-'}:{target}:{header}"

    def _cache_key(self, registered: "RegisteredOperation", request: OperationRequest) -> Optional[Tuple[str, ...]]:
        meta = registered.meta
        cacheable = (
            registered.is_read
            and not meta.invalidate
            and meta.service is not None
            and meta.service.audit is None
            and not meta.service.reads_ctx
        )
        if not cacheable:
            return None
        return registered.key_rule.build({**request.params, **request.query})

    async def _cached_result(self, key: Tuple[str, ...]) -> Any:
        try:
            return await self.response_cache.get(key)
        except Exception as e:
            logger.warning("response_cache_read_failed", error=str(e))
            return None

    async def _store_cached(self, key: Tuple[str, ...], result: Any) -> None:
        if result is None:
            return
        try:
            await self.response_cache.set(key, result, ttl=self.response_cache_ttl)
        except Exception as e:
            logger.warning("response_cache_write_failed", error=str(e))

    async def _stored_result(self, op: str, key: str) -> Any:
        try:
            return await self.idempotency_store.get(op, key)
        except Exception as e:
            logger.warning("idempotency_read_failed", error=str(e))
            return MISSING

    async def _store_result(self, op: str, key: str, result: Any) -> None:
        try:
            await self.idempotency_store.put(op, key, result, ttl=self.idempotency_ttl)
        except Exception as e:
            logger.warning("idempotency_write_failed", error=str(e))
