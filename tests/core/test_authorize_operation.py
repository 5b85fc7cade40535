# tests/core/test_authorize_operation.py
import pytest

from contract_gateway.core.domain.exceptions import ForbiddenError, TenantMismatchError, UnauthenticatedError
from contract_gateway.core.domain.models import AuthContext
from contract_gateway.core.domain.op_meta import OpMeta
from contract_gateway.core.use_cases.authorize_operation import AuthorizeOperation

gate = AuthorizeOperation()


def _meta(**fields):
    return OpMeta.model_validate({"op": "flags.set", **fields})


class TestAuthorizeOperation:

    def test_allow_unauthed_skips_the_gate(self):
        gate.execute(_meta(allowUnauthed=True), AuthContext(), {})

    def test_anonymous_caller_rejected(self):
        with pytest.raises(UnauthenticatedError):
            gate.execute(_meta(), AuthContext(), {})

    def test_missing_permission(self, member_ctx):
        with pytest.raises(ForbiddenError) as excinfo:
            gate.execute(_meta(perm="flags.admin"), member_ctx, {})

        assert "flags.admin" in excinfo.value.reason

    def test_granted_permission(self, member_ctx):
        gate.execute(_meta(perm="flags.write"), member_ctx, {})

    def test_super_admin_required_by_binding(self, member_ctx):
        meta = _meta(service={"importPath": "admin.service", "fn": "purge", "requireSuperAdmin": True})

        with pytest.raises(ForbiddenError):
            gate.execute(meta, member_ctx, {})
        gate.execute(meta, member_ctx.model_copy(update={"is_super_admin": True}), {})

    def test_super_admin_holds_every_permission(self):
        admin = AuthContext(user_id="root", is_super_admin=True)

        gate.execute(_meta(perm="flags.write"), admin, {})

    def test_tenant_match(self, member_ctx):
        meta = _meta(requireTenantMatch=True)

        gate.execute(meta, member_ctx, {"tenantId": "t1"})
        with pytest.raises(TenantMismatchError):
            gate.execute(meta, member_ctx, {"tenantId": "t2"})

    def test_tenant_match_fails_closed(self, member_ctx):
        meta = _meta(service={"importPath": "flags.service", "fn": "set", "requireTenantMatch": True})

        # No tenant in the path
        with pytest.raises(TenantMismatchError):
            gate.execute(meta, member_ctx, {})
        # No active tenant, not even for super admins
        admin = AuthContext(user_id="root", is_super_admin=True)
        with pytest.raises(TenantMismatchError):
            gate.execute(meta, admin, {"tenantId": "t1"})
