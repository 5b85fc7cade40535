# tests/adapters/test_cli.py
import json

from contract_gateway import cli
from contract_gateway.core.contracts import ContractRouter, RouteContract, with_meta

TARGET = "tests.sample_contracts:contracts"


class TestCheckCommand:

    def test_valid_tree(self, capsys):
        assert cli.main(["check", TARGET]) == 0
        assert "OK: 8 operations" in capsys.readouterr().out

    def test_resolves_backend_symbols(self, capsys):
        assert cli.main(["check", TARGET, "--resolve"]) == 0

    def test_factory_target(self, capsys):
        assert cli.main(["check", "tests.sample_contracts:build_contracts"]) == 0

    def test_unloadable_target(self, capsys):
        assert cli.main(["check", "tests.sample_contracts:missing"]) == 1
        assert "Cannot load" in capsys.readouterr().err

    def test_invalid_metadata_prints_field_paths(self, capsys):
        contracts = ContractRouter({
            "bad": with_meta(RouteContract(method="GET", path="/bad"), {"op": "x.bad", "foo": 1}),
        })

        assert cli.check_contracts(contracts, strict=True) == 1
        assert "GET /bad foo" in capsys.readouterr().err

        assert cli.check_contracts(contracts, strict=False) == 0

    def test_unresolvable_backend(self, capsys):
        contracts = ContractRouter({
            "a": with_meta(
                RouteContract(method="GET", path="/a"),
                {"op": "x.a", "service": {"importPath": "tests.sample_service", "fn": "does_not_exist"}},
            ),
        })

        assert cli.check_contracts(contracts, strict=True, resolve=True) == 1
        assert "does_not_exist" in capsys.readouterr().err


class TestListAndOpenAPI:

    def test_list(self, capsys):
        assert cli.main(["list", TARGET]) == 0

        out = capsys.readouterr().out
        assert "flags.set" in out
        assert "tests.sample_service:set_flag" in out
        assert "total=7" in out

    def test_openapi_to_file(self, tmp_path):
        out = tmp_path / "openapi.json"

        assert cli.main(["openapi", TARGET, "--out", str(out)]) == 0

        document = json.loads(out.read_text(encoding="utf-8"))
        assert document["paths"]["/v1/tenants/{tenantId}/checkout"]["post"]["x-op-meta"]["op"] == "billing.checkout"

    def test_no_command(self, capsys):
        assert cli.main([]) == 1
