# contract_gateway/core/use_cases/authorize_operation.py
from typing import Any, Mapping

from contract_gateway.core.domain.exceptions import ForbiddenError, TenantMismatchError, UnauthenticatedError
from contract_gateway.core.domain.models import MISSING, AuthContext
from contract_gateway.core.domain.op_meta import OpMeta


class AuthorizeOperation:
    """
    Use Case: the authorization gate in front of every operation.

    ``allowUnauthed`` skips it. Otherwise the caller must be authenticated;
    super-admin and permission requirements follow, then the tenant match.
    The flags of the operation and of its service binding are combined, so
    the stricter of the two always applies.
    """

    def execute(self, meta: OpMeta, ctx: AuthContext, params: Mapping[str, Any]) -> None:
        if meta.allow_unauthed:
            return

        if not ctx.authenticated:
            raise UnauthenticatedError(meta.op)

        if meta.effective_require_super_admin and not ctx.is_super_admin:
            raise ForbiddenError(meta.op, "super admin required")

        if meta.perm and not ctx.is_super_admin and meta.perm not in ctx.perms:
            raise ForbiddenError(meta.op, f"missing permission '{meta.perm}'")

        if meta.effective_require_tenant_match:
            requested = params.get("tenantId", MISSING)
            requested = None if requested in (MISSING, None, "") else str(requested)
            # fails closed: both sides must be present and equal
            if requested is None or not ctx.tenant_id or requested != ctx.tenant_id:
                raise TenantMismatchError(meta.op, requested, ctx.tenant_id)
