# contract_gateway/adapters/api/routers/health.py
from typing import Dict

import structlog
from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, Response, status

from contract_gateway.core.contracts.registry import OperationRegistry
from contract_gateway.core.ports.audit_sink import IAuditSink
from contract_gateway.core.ports.idempotency_store import IIdempotencyStore
from contract_gateway.core.ports.response_cache import IResponseCache
from contract_gateway.shared.container import Container

logger = structlog.get_logger()

router = APIRouter(prefix="/health", tags=["System"])


@router.get("/live", status_code=status.HTTP_200_OK)
async def liveness_probe():
    """
    K8s Liveness Probe.
    Returns 200 OK if the service is operational.
    """
    return {"status": "ok", "service": "contract-gateway"}


@router.get("/ready", status_code=status.HTTP_200_OK)
@inject
async def readiness_probe(
    response: Response,
    cache: IResponseCache = Depends(Provide[Container.response_cache]),
    idempotency: IIdempotencyStore = Depends(Provide[Container.idempotency_store]),
    audit_sink: IAuditSink = Depends(Provide[Container.audit_sink]),
    registry: OperationRegistry = Depends(Provide[Container.operation_registry]),
) -> Dict[str, object]:
    """
    K8s Readiness Probe.
    Checks the side-effect stores the operations write to.
    Returns 503 Service Unavailable if any of them is down.
    """
    health_status = {
        "cache": "down",
        "idempotency": "down",
        "audit": "down",
    }

    for component, port in (("cache", cache), ("idempotency", idempotency), ("audit", audit_sink)):
        try:
            if await port.health_check():
                health_status[component] = "up"
        except Exception as e:
            logger.error("health_check_failed", component=component, error=str(e))

    is_healthy = all(state == "up" for state in health_status.values())
    if not is_healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        logger.warning("readiness_probe_failed", status=health_status)

    return {**health_status, "operations": len(registry)}
