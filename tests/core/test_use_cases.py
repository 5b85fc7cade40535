# tests/core/test_use_cases.py
import asyncio

import pytest
from unittest.mock import MagicMock

from dependency_injector import providers

from contract_gateway.core.contracts import ContractRouter, RouteContract, with_meta
from contract_gateway.core.contracts.registry import OperationRegistry
from contract_gateway.core.domain.exceptions import (
    BackendCallError,
    ContractDefinitionError,
    MissingConfigurationError,
    RequestValidationError,
    UnauthenticatedError,
)
from contract_gateway.core.domain.models import AuthContext, RawRequest
from contract_gateway.core.use_cases.validate_op_meta import define_op_meta
from tests import sample_service

OTHER_TENANT = AuthContext(
    user_id="u2",
    tenant_id="t2",
    perms=frozenset({"flags.read", "flags.write"}),
    request_id="req-2",
)


def _serve(container, name, route, meta):
    """Replaces the registry with one serving only the given operation."""
    contracts = ContractRouter({name: with_meta(route, define_op_meta(meta, strict=True))})
    container.operation_registry.override(providers.Object(OperationRegistry.from_contracts(contracts, strict=True)))


@pytest.mark.asyncio
class TestInvokeOperation:

    async def test_execute_success(self, container, backend, make_request, audit_sink):
        """
        Scenario: flags.set with a valid body.
        Expected: The backend receives the resolved keywords; caches are purged and the audit record written.
        """
        # Arrange
        use_case = container.invoke_operation()
        request = make_request(params={"tenantId": "t1", "key": "beta"}, body={"enabled": "true"}, method="PUT")

        # Act
        outcome = await use_case.execute("flags.set", request)

        # Assert
        backend["set_flag"].assert_called_once_with(tenantId="t1", key="beta", enabled=True, note=None)
        assert outcome.result == {"tenantId": "t1", "key": "beta", "enabled": True, "note": None}
        assert [inv.key[:2] for inv in outcome.invalidations] == [("flags", "get"), ("flags", "list")]
        assert outcome.audit.resource_id == "t1:beta"
        assert outcome.audit.after["enabled"] is True
        assert audit_sink.records == [outcome.audit]

    async def test_backend_failure_skips_side_effects(self, container, backend, make_request, audit_sink):
        """
        Scenario: The backend raises.
        Expected: Wrapped in BackendCallError; neither invalidations nor audit are computed.
        """
        # Arrange
        use_case = container.invoke_operation()
        use_case.invalidations = MagicMock(wraps=use_case.invalidations)
        use_case.audit_builder = MagicMock(wraps=use_case.audit_builder)
        backend["set_flag"].side_effect = RuntimeError("database is down")
        request = make_request(params={"tenantId": "t1", "key": "beta"}, body={"enabled": True}, method="PUT")

        # Act & Assert
        with pytest.raises(BackendCallError) as excinfo:
            await use_case.execute("flags.set", request)

        assert "database is down" in str(excinfo.value)
        use_case.invalidations.execute_isolated.assert_not_called()
        use_case.audit_builder.execute.assert_not_called()
        assert audit_sink.records == []

    async def test_cancelled_backend_skips_side_effects(self, container, backend, make_request, response_cache):
        # Arrange
        use_case = container.invoke_operation()
        await response_cache.set(("billing", "plans"), ["pro"])
        backend["create_checkout"].side_effect = asyncio.CancelledError()
        request = make_request(params={"tenantId": "t1"}, body={"planId": "pro"}, method="POST")

        # Act & Assert
        with pytest.raises(asyncio.CancelledError):
            await use_case.execute("billing.checkout", request)
        assert await response_cache.get(("billing", "plans")) == ["pro"]

    async def test_authorization_runs_before_the_call(self, container, backend, make_request):
        use_case = container.invoke_operation()

        with pytest.raises(UnauthenticatedError):
            await use_case.execute("flags.get", make_request(params={"tenantId": "t1", "key": "beta"}, ctx=AuthContext()))
        backend["get_flag"].assert_not_called()

    async def test_invalid_body_never_reaches_backend(self, container, backend, make_request):
        use_case = container.invoke_operation()
        request = make_request(params={"tenantId": "t1"}, body={"quantity": 0}, method="POST")

        with pytest.raises(RequestValidationError) as excinfo:
            await use_case.execute("billing.checkout", request)

        assert excinfo.value.location == "body"
        assert "planId" in excinfo.value.errors
        backend["create_checkout"].assert_not_called()

    async def test_env_fallback_and_rate_key(self, container, backend, make_request):
        use_case = container.invoke_operation()
        request = make_request(params={"tenantId": "t1"}, body={"planId": "pro", "quantity": 2}, method="POST")

        outcome = await use_case.execute("billing.checkout", request)

        backend["create_checkout"].assert_called_once_with(tenantId="t1", planId="pro", quantity=2, priceId="price_123")
        assert outcome.result["checkoutId"] == "co_t1_pro"
        assert outcome.rate_key == "u1:t1"

    async def test_missing_configuration_aborts_before_the_call(self, container, config_source, backend, make_request):
        use_case = container.invoke_operation()
        config_source.values.clear()
        request = make_request(params={"tenantId": "t1"}, body={"planId": "pro"}, method="POST")

        with pytest.raises(MissingConfigurationError):
            await use_case.execute("billing.checkout", request)
        backend["create_checkout"].assert_not_called()

    async def test_reads_are_served_from_cache_until_invalidated(self, container, backend, make_request):
        """
        Scenario: flags.get twice, then flags.set, then flags.get again.
        Expected: The second read is a cache hit; the write purges it.
        """
        use_case = container.invoke_operation()
        read = make_request(params={"tenantId": "t1", "key": "beta"})
        write = make_request(params={"tenantId": "t1", "key": "beta"}, body={"enabled": False}, method="PUT")

        first = await use_case.execute("flags.get", read)
        second = await use_case.execute("flags.get", read)
        assert not first.cached and second.cached
        assert backend["get_flag"].call_count == 1

        await use_case.execute("flags.set", write)
        third = await use_case.execute("flags.get", read)

        assert not third.cached
        assert backend["get_flag"].call_count == 2

    async def test_idempotent_replay(self, container, backend, make_request):
        use_case = container.invoke_operation()
        request = make_request(
            params={"tenantId": "t1", "key": "beta"},
            body={"enabled": True},
            headers={"Idempotency-Key": "k-1"},
            method="PUT",
        )

        first = await use_case.execute("flags.set", request)
        second = await use_case.execute("flags.set", request)

        assert second.replayed
        assert second.result == first.result
        assert second.audit is None
        backend["set_flag"].assert_called_once()

    async def test_raw_binding_receives_the_request(self, container, backend, make_request):
        use_case = container.invoke_operation()

        outcome = await use_case.execute("reports.export", make_request(query={"format": "json"}))

        assert outcome.result == {"op": "reports.export", "tenant": "t1", "format": "json"}
        [raw] = backend["export_report"].call_args[0]
        assert isinstance(raw, RawRequest)
        assert raw.request_id == "req-1"

    async def test_positional_binding(self, container, backend, make_request):
        use_case = container.invoke_operation()

        outcome = await use_case.execute("flags.list", make_request(params={"tenantId": "t1"}, query={"limit": "1"}))

        backend["list_flags"].assert_called_once_with("t1", 1)
        assert outcome.result == [{"tenantId": "t1", "key": "beta"}]

    async def test_operation_without_service(self, container, make_request):
        use_case = container.invoke_operation()

        with pytest.raises(ContractDefinitionError):
            await use_case.execute("system.docs", make_request())

    async def test_session_dependent_reads_are_never_shared(self, container, backend, make_request):
        """
        Scenario: A GET whose tenant comes from the caller's session, called by two tenants.
        Expected: Each caller reaches the backend and gets their own tenant's data.
        """
        _serve(container, "me_flag", RouteContract(method="GET", path="/me/flags/{key}"), {
            "op": "me.flag",
            "requireUser": True,
            "service": {
                "importPath": sample_service.MODULE,
                "fn": "get_flag",
                "invoke": "object",
                "callArgs": [
                    {"name": "tenantId", "from": "ctx", "key": "tenantId"},
                    {"name": "key", "from": "params", "key": "key"},
                ],
            },
        })
        use_case = container.invoke_operation()

        first = await use_case.execute("me.flag", make_request(params={"key": "beta"}))
        second = await use_case.execute("me.flag", make_request(params={"key": "beta"}, ctx=OTHER_TENANT))

        assert first.result["tenantId"] == "t1"
        assert second.result["tenantId"] == "t2"
        assert not second.cached
        assert backend["get_flag"].call_count == 2

    async def test_write_purges_reads_keyed_on_extra_query_fields(self, container, backend, make_request):
        """
        Scenario: flags.list?limit=1 is cached for t1 and t2, then t1 writes a flag.
        Expected: t1's list goes back to the backend; t2's entry survives.
        """
        use_case = container.invoke_operation()
        own_list = make_request(params={"tenantId": "t1"}, query={"limit": "1"})
        other_list = make_request(params={"tenantId": "t2"}, query={"limit": "1"}, ctx=OTHER_TENANT)
        write = make_request(params={"tenantId": "t1", "key": "beta"}, body={"enabled": False}, method="PUT")

        await use_case.execute("flags.list", own_list)
        await use_case.execute("flags.list", other_list)
        assert (await use_case.execute("flags.list", own_list)).cached

        await use_case.execute("flags.set", write)

        assert not (await use_case.execute("flags.list", own_list)).cached
        assert (await use_case.execute("flags.list", other_list)).cached
        assert backend["list_flags"].call_count == 3

    async def test_idempotency_key_is_scoped_to_caller_and_resource(self, container, backend, make_request):
        """
        Scenario: Two tenants, then the same tenant on another flag, reuse one Idempotency-Key.
        Expected: Every request runs its own write; only an identical repeat replays.
        """
        use_case = container.invoke_operation()
        headers = {"Idempotency-Key": "k-1"}

        def write(tenant, key, ctx=None):
            kwargs = {"ctx": ctx} if ctx else {}
            return make_request(
                params={"tenantId": tenant, "key": key},
                body={"enabled": True},
                headers=headers,
                method="PUT",
                **kwargs,
            )

        own = await use_case.execute("flags.set", write("t1", "beta"))
        other = await use_case.execute("flags.set", write("t2", "beta", ctx=OTHER_TENANT))
        sibling = await use_case.execute("flags.set", write("t1", "gamma"))
        repeat = await use_case.execute("flags.set", write("t1", "beta"))

        assert not other.replayed and other.result["tenantId"] == "t2"
        assert not sibling.replayed and sibling.result["key"] == "gamma"
        assert repeat.replayed and repeat.result == own.result
        assert backend["set_flag"].call_count == 3

    async def test_params_schema_is_applied_before_the_call(self, container, backend, make_request):
        _serve(container, "peek", RouteContract(method="GET", path="/tenants/{tenantId}/flags/{key}/peek"), {
            "op": "flags.peek",
            "requireUser": True,
            "service": {
                "importPath": sample_service.MODULE,
                "fn": "get_flag",
                "zodParams": {"importPath": sample_service.MODULE, "name": "FlagParams"},
                "invoke": "object",
                "callArgs": [
                    {"name": "tenantId", "from": "params", "key": "tenantId"},
                    {"name": "key", "from": "params", "key": "key"},
                ],
            },
        })
        use_case = container.invoke_operation()

        with pytest.raises(RequestValidationError) as excinfo:
            await use_case.execute("flags.peek", make_request(params={"tenantId": "t1", "key": "Not A Key"}))

        assert excinfo.value.location == "params"
        backend["get_flag"].assert_not_called()

        outcome = await use_case.execute("flags.peek", make_request(params={"tenantId": "t1", "key": "beta"}))
        assert outcome.result["key"] == "beta"
