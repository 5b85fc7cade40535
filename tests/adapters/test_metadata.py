# tests/adapters/test_metadata.py
import pytest
from fastapi import FastAPI

from contract_gateway.adapters.api.binding import error_status, mount_contracts
from contract_gateway.adapters.api.metadata import extract_operation_metadata, summarize
from contract_gateway.core.contracts import META_EXTENSION, ContractRouter, RouteContract, with_meta
from contract_gateway.core.domain.exceptions import (
    ArgumentCoercionError,
    BackendCallError,
    MissingConfigurationError,
    OpMetaValidationError,
    TenantMismatchError,
)
from tests import sample_contracts


@pytest.fixture
def app():
    app = FastAPI()
    mount_contracts(app, sample_contracts.build_contracts(), strict=True)
    return app


class TestExtractOperationMetadata:

    def test_lists_mounted_operations(self, app):
        operations = {o.op: o for o in extract_operation_metadata(app)}

        assert set(operations) == {
            "flags.get", "flags.list", "flags.set", "billing.checkout",
            "admin.purge", "reports.export", "system.ping",
        }
        flag_set = operations["flags.set"]
        assert flag_set.method == "PUT"
        assert flag_set.path == "/v1/tenants/{tenantId}/flags/{key}"
        assert flag_set.perm == "flags.write"
        assert flag_set.service == "tests.sample_service:set_flag"
        assert flag_set.flags == ("requireTenantMatch", "idempotent", "invalidates", "audited")
        assert flag_set.to_dict()["flags"] == ["requireTenantMatch", "idempotent", "invalidates", "audited"]

    def test_summary_counts(self, app):
        counts = summarize(extract_operation_metadata(app))

        assert counts == {"total": 7, "with_service": 7, "raw": 1, "audited": 1, "invalidating": 3}

    def test_invalid_metadata_on_a_composed_route(self):
        app = FastAPI()
        app.add_api_route("/bad", lambda: None, methods=["GET"], openapi_extra={META_EXTENSION: {"op": "x.y", "foo": 1}})

        with pytest.raises(OpMetaValidationError):
            extract_operation_metadata(app)
        assert extract_operation_metadata(app, strict=False) == []


class TestMountContracts:

    def test_mounts_service_bound_routes(self):
        contracts = ContractRouter({
            "ping": with_meta(RouteContract(method="GET", path="/ping"), sample_contracts.PING),
        })
        app = FastAPI()

        registry = mount_contracts(app, contracts, strict=True)

        assert "system.ping" in registry
        assert [r.path for r in app.routes if getattr(r, "name", None) == "system.ping"] == ["/ping"]

    def test_error_status_mapping(self):
        assert error_status(ArgumentCoercionError("limit", "number")) == 400
        assert error_status(TenantMismatchError("flags.get", "t2", "t1")) == 403
        assert error_status(MissingConfigurationError("STRIPE_PRICE_ID")) == 500
        assert error_status(BackendCallError("flags.get", "boom")) == 500
