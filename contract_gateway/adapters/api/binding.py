# contract_gateway/adapters/api/binding.py
"""
Serves a contract tree over FastAPI.

``mount_contracts`` adds one endpoint per operation that has a service
binding. Each endpoint only translates HTTP into an ``OperationRequest``,
delegates to the ``InvokeOperation`` use case and maps domain errors to
status codes. The route keeps its ``openapi_extra``, so ``x-op-meta`` shows
up in the OpenAPI document and can be read back from ``app.routes``.
"""

import inspect
from typing import Annotated, Any, Callable, Dict, Optional, Union

import structlog
from pydantic import BaseModel
from fastapi import APIRouter, Body, Depends, FastAPI, HTTPException, Path, Query, Request, status

from contract_gateway.adapters.api.dependencies import get_auth_context, get_invoke_operation
from contract_gateway.core.contracts.registry import OperationRegistry, RegisteredOperation
from contract_gateway.core.contracts.routes import ContractRouter, RouteContract
from contract_gateway.core.domain.exceptions import (
    ArgumentCoercionError,
    DomainError,
    ForbiddenError,
    MissingConfigurationError,
    RequestValidationError,
    TenantMismatchError,
    UnauthenticatedError,
)
from contract_gateway.core.domain.expressions import FunctionRegistry
from contract_gateway.core.domain.models import MISSING, AuthContext, OperationRequest

logger = structlog.get_logger()

# Most specific first
_ERROR_STATUS = (
    (UnauthenticatedError, status.HTTP_401_UNAUTHORIZED),
    (ForbiddenError, status.HTTP_403_FORBIDDEN),
    (TenantMismatchError, status.HTTP_403_FORBIDDEN),
    (ArgumentCoercionError, status.HTTP_400_BAD_REQUEST),
    (RequestValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (MissingConfigurationError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def error_status(error: DomainError) -> int:
    for error_type, code in _ERROR_STATUS:
        if isinstance(error, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def to_http_exception(op: str, error: DomainError) -> HTTPException:
    code = error_status(error)
    detail: Dict[str, Any] = {"code": type(error).__name__, "message": error.message}
    errors = getattr(error, "errors", None)
    if errors:
        detail["errors"] = errors

    if code >= 500:
        logger.error("operation_server_error", op=op, error=error.message, code=detail["code"])
    else:
        logger.warning("operation_rejected", op=op, status=code, error=error.message)
    return HTTPException(status_code=code, detail=detail)


def _success_status(route: RouteContract) -> int:
    codes = sorted(code for code in route.responses if 200 <= int(code) < 300)
    return int(codes[0]) if codes else status.HTTP_200_OK


def _error_responses(route: RouteContract) -> Optional[Dict[Union[int, str], Dict[str, Any]]]:
    documented: Dict[Union[int, str], Dict[str, Any]] = {}
    for code, value in route.responses.items():
        if 200 <= int(code) < 300:
            continue
        if isinstance(value, type) and issubclass(value, BaseModel):
            documented[int(code)] = {"model": value}
        elif isinstance(value, dict):
            documented[int(code)] = value
        else:
            documented[int(code)] = {"description": str(value)}
    return documented or None


async def _read_body(request: Request) -> Any:
    raw = await request.body()
    if not raw:
        return MISSING
    try:
        return await request.json()
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "MalformedBody", "message": "Request body is not valid JSON"},
        )


def _path_annotation(route: RouteContract, name: str) -> Any:
    if route.path_params is not None:
        field = route.path_params.model_fields.get(name)
        if field is not None and field.annotation is not None:
            return field.annotation
    return str


def build_endpoint(operation: RegisteredOperation, get_invoker: Callable[..., Any]) -> Callable[..., Any]:
    """Creates the FastAPI endpoint of one operation, with a signature FastAPI can introspect."""
    route: RouteContract = operation.route
    path_names = route.path_param_names

    async def endpoint(http_request: Request, auth_ctx: AuthContext, invoker: Any, **inputs: Any):
        op_request = OperationRequest(
            params={name: inputs[name] for name in path_names},
            query=dict(http_request.query_params),
            body=await _read_body(http_request),
            ctx=auth_ctx,
            headers=dict(http_request.headers),
            method=http_request.method,
            path=http_request.url.path,
            client_host=http_request.client.host if http_request.client else None,
        )
        try:
            outcome = await invoker.execute(operation.op, op_request)
        except DomainError as e:
            raise to_http_exception(operation.op, e)
        return {"ok": True, "data": outcome.result}

    keyword = inspect.Parameter.KEYWORD_ONLY
    parameters = [
        inspect.Parameter("http_request", keyword, annotation=Request),
        inspect.Parameter("auth_ctx", keyword, annotation=AuthContext, default=Depends(get_auth_context)),
        inspect.Parameter("invoker", keyword, annotation=Any, default=Depends(get_invoker)),
    ]
    for name in path_names:
        parameters.append(
            inspect.Parameter(name, keyword, annotation=Annotated[_path_annotation(route, name), Path()])
        )
    # declared for validation and OpenAPI; the endpoint reads the raw values from the request
    if route.query is not None:
        parameters.append(inspect.Parameter("query_model", keyword, annotation=Annotated[route.query, Query()]))
    if route.body is not None:
        parameters.append(inspect.Parameter("payload", keyword, annotation=Annotated[route.body, Body()]))

    endpoint.__signature__ = inspect.Signature(parameters)
    endpoint.__name__ = operation.op.replace(".", "_").replace("-", "_")
    return endpoint


def mount_contracts(
    target: Union[FastAPI, APIRouter],
    source: Union[ContractRouter, OperationRegistry],
    *,
    get_invoker: Callable[..., Any] = get_invoke_operation,
    strict: Optional[bool] = None,
    functions: Optional[FunctionRegistry] = None,
) -> OperationRegistry:
    """
    Adds an endpoint for every service-bound operation of ``source`` to ``target``.

    Returns the registry the endpoints dispatch through.
    """
    if isinstance(source, OperationRegistry):
        registry = source
    else:
        registry = OperationRegistry.from_contracts(source, strict=strict, functions=functions)

    router = APIRouter()
    for operation in registry:
        if not isinstance(operation.route, RouteContract):
            continue
        if operation.meta.service is None:
            logger.info("operation_not_mounted", op=operation.op, reason="no service binding")
            continue

        route = operation.route
        router.add_api_route(
            route.path,
            build_endpoint(operation, get_invoker),
            methods=[operation.method],
            name=operation.op,
            summary=route.summary,
            description=route.description,
            tags=list(route.tags) or None,
            status_code=_success_status(route),
            responses=_error_responses(route),
            openapi_extra=route.openapi_extra,
            response_model=None,
        )

    target.include_router(router)
    logger.info("contracts_mounted", operations=len(router.routes))
    return registry


__all__ = [
    "build_endpoint",
    "error_status",
    "mount_contracts",
    "to_http_exception",
]
