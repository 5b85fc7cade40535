# tests/core/test_build_audit_record.py
import pytest

from contract_gateway.core.domain.exceptions import ExpressionError
from contract_gateway.core.domain.op_meta import AuditDirective, OpMeta
from contract_gateway.core.use_cases.build_audit_record import BuildAuditRecord, build_scope, compile_check


def _directive(**fields):
    return AuditDirective.model_validate({"resourceType": "subscription", **fields})


@pytest.fixture
def builder():
    return BuildAuditRecord()


class TestBuildAuditRecord:

    def test_no_directive_no_record(self, builder, make_request):
        scope = build_scope(make_request())

        assert builder.execute(None, scope, op="billing.subscribe") is None

    def test_record_from_expressions(self, builder, make_request):
        """
        Scenario: resourceId and after expressions over params, bodySafe and result.
        Expected: A record scoped to the addressed tenant, attributed to the caller.
        """
        request = make_request(
            params={"tenantId": "t1"},
            body={"planId": "pro"},
            headers={"X-Forwarded-For": "203.0.113.9, 10.0.0.1", "User-Agent": "pytest"},
        )
        scope = build_scope(request, body_safe={"planId": "pro", "quantity": 1}, result={"id": "sub_1"})
        directive = _directive(
            resourceIdExpr="result.id",
            afterExpr="{ planId: bodySafe.planId, quantity: bodySafe.quantity, result }",
        )

        record = builder.execute(directive, scope, op="billing.subscribe", request=request)

        assert record.scope_id == "t1"
        assert record.actor_id == "u1"
        assert record.action == "billing.subscribe"
        assert record.resource_type == "subscription"
        assert record.resource_id == "sub_1"
        assert record.after == {"planId": "pro", "quantity": 1, "result": {"id": "sub_1"}}
        assert record.before is None
        assert record.request_id == "req-1"
        assert record.ip == "203.0.113.9"
        assert record.user_agent == "pytest"

    def test_failing_expression_only_drops_its_field(self, builder, make_request):
        request = make_request(params={"tenantId": "t1"})
        scope = build_scope(request, result={"id": "sub_1"})
        directive = _directive(resourceIdExpr="result.id", afterExpr="result.plan.name")

        record = builder.execute(directive, scope, op="billing.subscribe", request=request)

        assert record is not None
        assert record.resource_id == "sub_1"
        assert record.after is None

    def test_before_snapshot_taken_ahead_of_the_call(self, builder, make_request):
        request = make_request(params={"tenantId": "t1"}, body={"quantity": 3})
        directive = _directive(beforeExpr="{ quantity: body.quantity }", afterExpr="result")

        before = builder.snapshot_before(directive, build_scope(request), op="billing.update")
        scope = build_scope(request, result={"quantity": 4})
        record = builder.execute(directive, scope, op="billing.update", request=request, before=before)

        assert record.before == {"quantity": 3}
        assert record.after == {"quantity": 4}

    def test_scope_falls_back_to_active_tenant_then_dash(self, builder, make_request, member_ctx):
        directive = _directive()

        with_ctx = builder.execute(directive, build_scope(make_request()), op="me.update")
        anonymous = builder.execute(
            directive,
            build_scope(make_request(ctx=member_ctx.model_copy(update={"tenant_id": None}))),
            op="me.update",
        )

        assert with_ctx.scope_id == "t1"
        assert anonymous.scope_id == "-"

    def test_resource_id_is_stringified(self, builder, make_request):
        scope = build_scope(make_request(), result={"id": 42})

        record = builder.execute(_directive(resourceIdExpr="result.id"), scope, op="orders.create")

        assert record.resource_id == "42"

    def test_real_ip_and_client_host(self, builder, make_request):
        directive = _directive()
        proxied = make_request(headers={"x-real-ip": "198.51.100.7"}, client_host="10.0.0.2")
        direct = make_request(client_host="10.0.0.2")

        assert builder.execute(directive, build_scope(proxied), op="a.b", request=proxied).ip == "198.51.100.7"
        assert builder.execute(directive, build_scope(direct), op="a.b", request=direct).ip == "10.0.0.2"


class TestCompileCheck:

    def test_accepts_scope_names(self):
        meta = OpMeta.model_validate({
            "op": "billing.subscribe",
            "service": {
                "importPath": "billing.service",
                "fn": "subscribe",
                "rateKeyExpr": "ctx.userId",
                "audit": {"resourceType": "subscription", "resourceIdExpr": "`${params.tenantId}:${result.id}`"},
            },
        })

        compile_check(meta)

    def test_rejects_names_outside_the_scope(self):
        with pytest.raises(ExpressionError):
            compile_check(_directive(afterExpr="process.env.SECRET"))
