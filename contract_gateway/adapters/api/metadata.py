# contract_gateway/adapters/api/metadata.py
"""
Metadata extraction from a composed FastAPI application.

This is what an OpenAPI or client generator consumes: for each route that
carries ``x-op-meta``, the operation name, its authorization posture and the
backend it is bound to.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import structlog
from fastapi import APIRouter, FastAPI
from fastapi.routing import APIRoute

from contract_gateway.core.contracts.attachment import read_meta
from contract_gateway.core.domain.exceptions import OpMetaValidationError
from contract_gateway.core.domain.op_meta import OpMeta

logger = structlog.get_logger()


@dataclass(frozen=True)
class OperationSummary:
    method: str
    path: str
    op: str
    perm: Optional[str]
    flags: Tuple[str, ...]
    service: Optional[str]
    route_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["flags"] = list(self.flags)
        return data


def operation_flags(meta: OpMeta) -> Tuple[str, ...]:
    flags = []
    if meta.allow_unauthed:
        flags.append("allowUnauthed")
    if meta.require_user:
        flags.append("requireUser")
    if meta.effective_require_super_admin:
        flags.append("requireSuperAdmin")
    if meta.effective_require_tenant_match:
        flags.append("requireTenantMatch")
    if meta.idempotent:
        flags.append("idempotent")
    if meta.invalidate:
        flags.append("invalidates")
    if meta.service is not None:
        if meta.service.raw:
            flags.append("raw")
        if meta.service.audit is not None:
            flags.append("audited")
    return tuple(flags)


def extract_operation_metadata(
    app: Union[FastAPI, APIRouter, Iterable[Any]],
    *,
    strict: bool = True,
) -> List[OperationSummary]:
    """
    Walks the routes of ``app`` and summarises each one carrying metadata.

    With ``strict=False`` a route whose stored metadata is invalid is logged
    and skipped instead of raising ``OpMetaValidationError``.
    """
    routes = app.routes if isinstance(app, (FastAPI, APIRouter)) else app
    summaries: List[OperationSummary] = []
    for route in routes:
        if not isinstance(route, APIRoute):
            continue
        try:
            meta = read_meta(route)
        except OpMetaValidationError as e:
            if strict:
                raise
            logger.warning("op_meta_skipped", route=route.path, errors=e.errors)
            continue
        if meta is None:
            continue

        for method in sorted(route.methods or ()):
            summaries.append(
                OperationSummary(
                    method=method,
                    path=route.path,
                    op=meta.op,
                    perm=meta.perm,
                    flags=operation_flags(meta),
                    service=str(meta.service.function_ref) if meta.service else None,
                    route_name=route.name,
                )
            )
    return summaries


def summarize(operations: Iterable[OperationSummary]) -> Dict[str, int]:
    operations = list(operations)
    return {
        "total": len(operations),
        "with_service": sum(1 for o in operations if o.service),
        "raw": sum(1 for o in operations if "raw" in o.flags),
        "audited": sum(1 for o in operations if "audited" in o.flags),
        "invalidating": sum(1 for o in operations if "invalidates" in o.flags),
    }
