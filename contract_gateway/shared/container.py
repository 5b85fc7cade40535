# contract_gateway/shared/container.py
from dependency_injector import containers, providers

from contract_gateway.adapters.audit.log_audit_sink import StructlogAuditSink
from contract_gateway.adapters.cache.memory_cache import InMemoryIdempotencyStore, InMemoryResponseCache
from contract_gateway.adapters.cache.redis_cache import RedisIdempotencyStore, RedisResponseCache
from contract_gateway.adapters.config.env_config_source import EnvConfigSource
from contract_gateway.adapters.services.module_locator import ModuleServiceLocator
from contract_gateway.core.contracts.registry import OperationRegistry
from contract_gateway.core.domain.expressions import FunctionRegistry
from contract_gateway.core.use_cases.build_audit_record import BuildAuditRecord
from contract_gateway.core.use_cases.compute_invalidations import ComputeInvalidations
from contract_gateway.core.use_cases.invoke_operation import InvokeOperation
from contract_gateway.core.use_cases.resolve_call_args import ResolveCallArgs
from contract_gateway.shared.config import settings


def _cache_backend() -> str:
    return settings.CACHE_BACKEND.value


class Container(containers.DeclarativeContainer):
    """
    Dependency Injection Container.

    The registry starts empty; the app factory overrides it with the one
    built from the served contracts.
    """

    # 1. Configuration
    config = providers.Configuration(pydantic_settings=[settings])

    # 2. Gateways (Infrastructure Adapters)
    config_source = providers.Singleton(EnvConfigSource)

    service_locator = providers.Singleton(ModuleServiceLocator)

    response_cache = providers.Selector(
        providers.Callable(_cache_backend),
        memory=providers.Singleton(InMemoryResponseCache, default_ttl=config.RESPONSE_CACHE_TTL_SEC),
        redis=providers.Singleton(RedisResponseCache, default_ttl=config.RESPONSE_CACHE_TTL_SEC),
    )

    idempotency_store = providers.Selector(
        providers.Callable(_cache_backend),
        memory=providers.Singleton(InMemoryIdempotencyStore, default_ttl=config.IDEMPOTENCY_TTL_SEC),
        redis=providers.Singleton(RedisIdempotencyStore, default_ttl=config.IDEMPOTENCY_TTL_SEC),
    )

    audit_sink = providers.Singleton(StructlogAuditSink)

    # 3. Contracts (read-only after startup)
    operation_registry = providers.Singleton(OperationRegistry)

    expression_functions = providers.Singleton(FunctionRegistry.default)

    # 4. Use Cases (stateless; Singleton dependencies injected)
    resolve_call_args = providers.Factory(
        ResolveCallArgs,
        config_source=config_source,
    )

    compute_invalidations = providers.Factory(
        ComputeInvalidations,
        registry=operation_registry,
    )

    build_audit_record = providers.Factory(
        BuildAuditRecord,
        functions=expression_functions,
    )

    invoke_operation = providers.Factory(
        InvokeOperation,
        registry=operation_registry,
        locator=service_locator,
        resolver=resolve_call_args,
        invalidations=compute_invalidations,
        audit_builder=build_audit_record,
        response_cache=response_cache,
        idempotency_store=idempotency_store,
        audit_sink=audit_sink,
        response_cache_ttl=config.RESPONSE_CACHE_TTL_SEC,
        idempotency_ttl=config.IDEMPOTENCY_TTL_SEC,
    )


# Instantiate the container for global access (e.g. by FastAPI)
container = Container()
