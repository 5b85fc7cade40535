# contract_gateway/core/use_cases/build_audit_record.py
from typing import Any, Dict, Mapping, Optional, Union

import structlog
from pydantic_core import to_jsonable_python

from contract_gateway.core.domain.exceptions import ExpressionError
from contract_gateway.core.domain.expressions import (
    DEFAULT_FUNCTIONS,
    FunctionRegistry,
    is_nullish,
    parse_expression,
    to_js_string,
)
from contract_gateway.core.domain.models import MISSING, AuditRecord, OperationRequest
from contract_gateway.core.domain.op_meta import AuditDirective, OpMeta

logger = structlog.get_logger()

SCOPE_NAMES = ("params", "query", "body", "bodySafe", "result", "ctx")
NO_SCOPE = "-"


def build_scope(
    request: OperationRequest,
    *,
    body_safe: Any = MISSING,
    result: Any = MISSING,
) -> Dict[str, Any]:
    """The variables an audit or rate-key expression can see."""
    return {
        "params": dict(request.params),
        "query": dict(request.query),
        "body": request.body,
        "bodySafe": request.body if body_safe is MISSING else body_safe,
        "result": result,
        "ctx": request.ctx.as_scope(),
    }


def compile_check(target: Union[OpMeta, AuditDirective], functions: Optional[FunctionRegistry] = None) -> None:
    """
    Parses every expression carried by ``target``.

    Raises:
        ExpressionError: On a syntax error, an identifier outside the
            expression scope, or a call to a function that is not allowed.
    """
    if isinstance(target, AuditDirective):
        expressions = [e for e in (target.resource_id_expr, target.before_expr, target.after_expr) if e]
    else:
        expressions = [expr for _, expr in target.expressions()]
    for source in expressions:
        parse_expression(source).check(SCOPE_NAMES, functions)


def _snapshot(value: Any) -> Any:
    if value is MISSING:
        return None
    return to_jsonable_python(value, fallback=str)


class BuildAuditRecord:
    """
    Use Case: turns an audit directive plus the finished request into an AuditRecord.

    Expression failures never abort the operation: the failing field is
    logged and left empty, the rest of the record is still produced.
    """

    def __init__(self, functions: Optional[FunctionRegistry] = None):
        self.functions = functions or DEFAULT_FUNCTIONS

    def snapshot_before(self, directive: Optional[AuditDirective], scope: Mapping[str, Any], *, op: str) -> Any:
        """Evaluates ``beforeExpr``; must run before the backend call."""
        if directive is None or not directive.before_expr:
            return MISSING
        return self._evaluate("before", directive.before_expr, scope, op)

    def execute(
        self,
        directive: Optional[AuditDirective],
        scope: Mapping[str, Any],
        *,
        op: str,
        request: Optional[OperationRequest] = None,
        before: Any = MISSING,
    ) -> Optional[AuditRecord]:
        if directive is None:
            return None

        resource_id: Any = MISSING
        if directive.resource_id_expr:
            resource_id = self._evaluate("resourceId", directive.resource_id_expr, scope, op)

        after: Any = MISSING
        if directive.after_expr:
            after = self._evaluate("after", directive.after_expr, scope, op)

        if before is MISSING and directive.before_expr:
            before = self._evaluate("before", directive.before_expr, scope, op)

        ctx = scope.get("ctx") or {}
        return AuditRecord(
            scope_id=self._scope_id(scope),
            actor_id=ctx.get("userId"),
            action=op,
            resource_type=directive.resource_type,
            resource_id=None if is_nullish(resource_id) else to_js_string(resource_id),
            before=_snapshot(before),
            after=_snapshot(after),
            request_id=ctx.get("requestId") or (request.header("x-request-id") if request else None),
            ip=self._client_ip(request),
            user_agent=request.header("user-agent") if request else None,
        )

    def _evaluate(self, field: str, source: str, scope: Mapping[str, Any], op: str) -> Any:
        try:
            return parse_expression(source).evaluate(scope, self.functions)
        except ExpressionError as e:
            logger.warning("audit_expression_failed", op=op, field=field, error=e.reason)
            return MISSING

    @staticmethod
    def _scope_id(scope: Mapping[str, Any]) -> str:
        params = scope.get("params") or {}
        ctx = scope.get("ctx") or {}
        for candidate in (params.get("tenantId"), ctx.get("tenantId")):
            if not is_nullish(candidate) and candidate != "":
                return str(candidate)
        return NO_SCOPE

    @staticmethod
    def _client_ip(request: Optional[OperationRequest]) -> Optional[str]:
        if request is None:
            return None
        forwarded = request.header("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip() or None
        return request.header("x-real-ip") or request.client_host
