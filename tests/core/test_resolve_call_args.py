# tests/core/test_resolve_call_args.py
from datetime import datetime, timezone

import pytest

from contract_gateway.adapters.config.env_config_source import StaticConfigSource
from contract_gateway.core.domain.exceptions import ArgumentCoercionError, MissingConfigurationError
from contract_gateway.core.domain.op_meta import ArgTransform, InvokeStyle, ServiceBinding
from contract_gateway.core.use_cases.resolve_call_args import ResolveCallArgs, apply_transform, format_iso


def _binding(invoke, *call_args):
    return ServiceBinding.model_validate({
        "importPath": "billing.service",
        "fn": "charge",
        "invoke": invoke,
        "callArgs": list(call_args),
    })


@pytest.fixture
def resolver():
    return ResolveCallArgs(StaticConfigSource({"DEFAULT_REGION": "eu-west-1"}))


class TestObjectMode:

    def test_reads_body_and_params(self, resolver, make_request):
        """
        Scenario: amount from body, tenantId from params.
        Expected: One keyword per argument.
        """
        binding = _binding(
            "object",
            {"name": "amount", "from": "body", "key": "amount"},
            {"name": "tenantId", "from": "params", "key": "tenantId"},
        )

        call = resolver.execute(binding, make_request(params={"tenantId": "t1"}, body={"amount": 500}))

        assert call.style is InvokeStyle.OBJECT
        assert call.kwargs == {"tenantId": "t1", "amount": 500}

    def test_value_fallback_when_source_undefined(self, resolver, make_request):
        binding = _binding(
            "object",
            {"name": "env", "from": "query", "key": "env", "optional": True,
             "fallback": {"kind": "value", "value": "production"}},
        )

        call = resolver.execute(binding, make_request(query={}))

        assert call.kwargs == {"env": "production"}

    def test_source_value_wins_over_fallback(self, resolver, make_request):
        binding = _binding(
            "object",
            {"name": "env", "from": "query", "key": "env", "optional": True,
             "fallback": {"kind": "value", "value": "production"}},
        )

        call = resolver.execute(binding, make_request(query={"env": "staging"}))

        assert call.kwargs == {"env": "staging"}

    def test_null_source_value_is_not_undefined(self, resolver, make_request):
        binding = _binding(
            "object",
            {"name": "note", "from": "body", "key": "note", "fallback": {"kind": "value", "value": "n/a"}},
        )

        call = resolver.execute(binding, make_request(body={"note": None}))

        assert call.kwargs == {"note": None}

    def test_optional_undefined_argument_is_absent(self, resolver, make_request):
        binding = _binding(
            "object",
            {"name": "expiresAt", "from": "body", "key": "expiresAt", "optional": True, "transform": "date"},
        )

        call = resolver.execute(binding, make_request(body={}))

        assert "expiresAt" not in call.kwargs
        assert call.kwargs == {}

    def test_required_undefined_argument_is_none(self, resolver, make_request):
        binding = _binding("object", {"name": "planId", "from": "body", "key": "planId"})

        call = resolver.execute(binding, make_request(body={}))

        assert call.kwargs == {"planId": None}

    def test_const_value_is_copied(self, resolver, make_request):
        binding = _binding("object", {"name": "options", "from": "const", "value": {"dryRun": True}})

        first = resolver.execute(binding, make_request())
        first.kwargs["options"]["dryRun"] = False
        second = resolver.execute(binding, make_request())

        assert second.kwargs == {"options": {"dryRun": True}}

    def test_ctx_reads_wire_names(self, resolver, make_request):
        binding = _binding(
            "object",
            {"name": "actorId", "from": "ctx", "key": "userId"},
            {"name": "tenantId", "from": "ctx", "key": "tenantId"},
        )

        call = resolver.execute(binding, make_request())

        assert call.kwargs == {"actorId": "u1", "tenantId": "t1"}

    def test_whole_source_without_key(self, resolver, make_request):
        binding = _binding("object", {"name": "payload", "from": "body"})

        call = resolver.execute(binding, make_request(body={"a": 1, "b": [2]}))

        assert call.kwargs == {"payload": {"a": 1, "b": [2]}}

    def test_env_fallback_reads_config_source(self, make_request):
        values = {"DEFAULT_REGION": "eu-west-1"}
        resolver = ResolveCallArgs(StaticConfigSource(values))
        binding = _binding(
            "object",
            {"name": "region", "from": "query", "key": "region", "fallback": {"kind": "env", "key": "DEFAULT_REGION"}},
        )

        assert resolver.execute(binding, make_request()).kwargs == {"region": "eu-west-1"}

        # Re-read on every call
        values["DEFAULT_REGION"] = "us-east-1"
        assert resolver.execute(binding, make_request()).kwargs == {"region": "us-east-1"}

    def test_env_fallback_missing_is_configuration_error(self, make_request):
        resolver = ResolveCallArgs(StaticConfigSource({}))
        binding = _binding(
            "object",
            {"name": "priceId", "from": "body", "key": "priceId", "fallback": {"kind": "env", "key": "STRIPE_PRICE_ID"}},
        )

        with pytest.raises(MissingConfigurationError) as excinfo:
            resolver.execute(binding, make_request(body={}))

        assert excinfo.value.key == "STRIPE_PRICE_ID"
        assert excinfo.value.arg_name == "priceId"

    def test_coercion_failure_is_client_error(self, resolver, make_request):
        binding = _binding("object", {"name": "limit", "from": "query", "key": "limit", "transform": "number"})

        with pytest.raises(ArgumentCoercionError) as excinfo:
            resolver.execute(binding, make_request(query={"limit": "many"}))

        assert excinfo.value.arg_name == "limit"
        assert excinfo.value.transform == "number"


class TestPositionalMode:

    def test_trailing_optional_shrinks_the_list(self, resolver, make_request):
        binding = _binding(
            "positional",
            {"name": "0", "from": "params", "key": "tenantId"},
            {"name": "1", "from": "query", "key": "limit", "optional": True, "transform": "number"},
        )

        short = resolver.execute(binding, make_request(params={"tenantId": "t1"}))
        full = resolver.execute(binding, make_request(params={"tenantId": "t1"}, query={"limit": "10"}))

        assert short.args == ("t1",)
        assert full.args == ("t1", 10)

    def test_invoke_passes_positional_arguments(self, resolver, make_request):
        binding = _binding(
            "positional",
            {"name": "0", "from": "params", "key": "a"},
            {"name": "1", "from": "params", "key": "b"},
        )
        call = resolver.execute(binding, make_request(params={"a": 1, "b": 2}))

        assert call.invoke(lambda a, b: a - b) == -1

    def test_no_invoke_style_calls_without_arguments(self, resolver, make_request):
        binding = ServiceBinding.model_validate({"importPath": "admin.service", "fn": "purge"})

        call = resolver.execute(binding, make_request())

        assert call.invoke(lambda: "called") == "called"


class TestTransforms:

    @pytest.mark.parametrize("value", [
        "2024-05-01T10:20:30Z",
        "2024-05-01T10:20:30.123Z",
        "2024-05-01T10:20:30.123456Z",
        "2024-05-01",
    ])
    def test_iso_date_is_idempotent_on_canonical_input(self, value):
        once = apply_transform("at", ArgTransform.ISO_DATE, value)

        assert once == value
        assert apply_transform("at", ArgTransform.ISO_DATE, once) == once

    def test_iso_date_normalizes_offsets_to_utc(self):
        assert apply_transform("at", ArgTransform.ISO_DATE, "2024-05-01T12:00:00+02:00") == "2024-05-01T10:00:00Z"

    def test_date_parses_to_aware_datetime(self):
        parsed = apply_transform("at", ArgTransform.DATE, "2024-05-01T10:20:30Z")

        assert parsed == datetime(2024, 5, 1, 10, 20, 30, tzinfo=timezone.utc)

    def test_date_rejects_garbage(self):
        with pytest.raises(ArgumentCoercionError):
            apply_transform("at", ArgTransform.DATE, "next tuesday")

    def test_boolean_and_string(self):
        assert apply_transform("flag", ArgTransform.BOOLEAN, "true") is True
        assert apply_transform("flag", ArgTransform.BOOLEAN, "0") is False
        assert apply_transform("id", ArgTransform.STRING, 42) == "42"
        assert apply_transform("id", ArgTransform.STRING, True) == "true"

    def test_null_passes_through(self):
        for transform in ArgTransform:
            assert apply_transform("x", transform, None) is None

    def test_format_iso_drops_zero_fraction(self):
        assert format_iso(datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)) == "2024-01-02T03:04:05Z"
        assert format_iso(datetime(2024, 1, 2, 3, 4, 5, 250000, tzinfo=timezone.utc)) == "2024-01-02T03:04:05.250Z"
