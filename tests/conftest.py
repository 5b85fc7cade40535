# tests/conftest.py
import os

# Must be set before the settings object is created
os.environ.setdefault("LOG_CACHE_LOGGERS", "false")
os.environ.setdefault("APP_ENV", "testing")

import pytest
from unittest.mock import MagicMock

from dependency_injector import providers

from contract_gateway.adapters.audit.memory_audit_sink import InMemoryAuditSink
from contract_gateway.adapters.cache.memory_cache import InMemoryIdempotencyStore, InMemoryResponseCache
from contract_gateway.adapters.config.env_config_source import StaticConfigSource
from contract_gateway.adapters.services.module_locator import StaticServiceLocator
from contract_gateway.core.contracts.registry import OperationRegistry
from contract_gateway.core.domain.models import AuthContext, OperationRequest
from contract_gateway.shared.container import container as app_container
from tests import sample_contracts, sample_service


@pytest.fixture(scope="function")
def backend():
    """
    Spies wrapping the sample backend functions.
    Each one still returns the real function's result unless a test says otherwise.
    """
    return {
        name: MagicMock(name=name, wraps=getattr(sample_service, name))
        for name in sample_service.BACKEND_FUNCTIONS
    }


@pytest.fixture(scope="function")
def locator(backend):
    """Service locator serving the spies and the input schemas."""
    locator = StaticServiceLocator()
    for name, spy in backend.items():
        locator.register(sample_service.MODULE, name, spy)
    for name, schema in sample_service.SCHEMAS.items():
        locator.register(sample_service.MODULE, name, schema)
    return locator


@pytest.fixture(scope="function")
def config_source():
    return StaticConfigSource({"STRIPE_PRICE_ID": "price_123"})


@pytest.fixture(scope="function")
def response_cache():
    return InMemoryResponseCache()


@pytest.fixture(scope="function")
def idempotency_store():
    return InMemoryIdempotencyStore()


@pytest.fixture(scope="function")
def audit_sink():
    return InMemoryAuditSink()


@pytest.fixture(scope="function")
def registry():
    return OperationRegistry.from_contracts(sample_contracts.build_contracts(), strict=True)


@pytest.fixture(scope="function")
def container(locator, config_source, response_cache, idempotency_store, audit_sink, registry):
    """
    The application container with infrastructure replaced by in-memory fakes.
    Overrides are reset after each test.
    """
    app_container.service_locator.override(providers.Object(locator))
    app_container.config_source.override(providers.Object(config_source))
    app_container.response_cache.override(providers.Object(response_cache))
    app_container.idempotency_store.override(providers.Object(idempotency_store))
    app_container.audit_sink.override(providers.Object(audit_sink))
    app_container.operation_registry.override(providers.Object(registry))

    yield app_container

    app_container.reset_override()
    app_container.unwire()


@pytest.fixture
def member_ctx():
    """An authenticated member of tenant t1."""
    return AuthContext(
        user_id="u1",
        tenant_id="t1",
        perms=frozenset({"flags.read", "flags.write"}),
        request_id="req-1",
    )


@pytest.fixture
def make_request(member_ctx):
    def _make(**kwargs):
        kwargs.setdefault("ctx", member_ctx)
        return OperationRequest(**kwargs)
    return _make
