# contract_gateway/adapters/api/dependencies.py
import re
import uuid
from typing import Annotated, FrozenSet, Optional

from dependency_injector.wiring import Provide, inject
from fastapi import Depends, Header

from contract_gateway.core.domain.models import AuthContext
from contract_gateway.core.use_cases.invoke_operation import InvokeOperation
from contract_gateway.shared.container import Container

_TRUTHY = {"1", "true", "yes", "on"}


def _split_perms(raw: Optional[str]) -> FrozenSet[str]:
    if not raw:
        return frozenset()
    # comma or whitespace separated
    return frozenset(p for p in re.split(r"[,\s]+", raw.strip()) if p)


# -----------------------------------------------------------------------------
# Caller identity
# -----------------------------------------------------------------------------
async def get_auth_context(
    x_user_id: Annotated[Optional[str], Header(description="Authenticated user id")] = None,
    x_tenant_id: Annotated[Optional[str], Header(description="Active tenant id")] = None,
    x_perms: Annotated[Optional[str], Header(description="Granted permissions, comma separated")] = None,
    x_super_admin: Annotated[Optional[str], Header(description="'true' for super admins")] = None,
    x_request_id: Annotated[Optional[str], Header(description="Correlation id")] = None,
) -> AuthContext:
    """
    Builds the AuthContext from headers set by the trusted upstream gateway.

    Authentication itself happens before the request reaches this service;
    these headers are taken as already verified.
    """
    return AuthContext(
        user_id=x_user_id or None,
        tenant_id=x_tenant_id or None,
        perms=_split_perms(x_perms),
        is_super_admin=(x_super_admin or "").strip().lower() in _TRUTHY,
        request_id=x_request_id or uuid.uuid4().hex,
    )


# -----------------------------------------------------------------------------
# Use case injection
# -----------------------------------------------------------------------------
@inject
def get_invoke_operation(
    use_case: InvokeOperation = Depends(Provide[Container.invoke_operation]),
) -> InvokeOperation:
    """Dependency to inject the InvokeOperation interactor (container-managed)."""
    return use_case
