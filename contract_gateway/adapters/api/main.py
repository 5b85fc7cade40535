# contract_gateway/adapters/api/main.py
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from dependency_injector import providers
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from contract_gateway import __version__
from contract_gateway.adapters.api.binding import mount_contracts
from contract_gateway.adapters.api.routers import health
from contract_gateway.adapters.services.contracts_loader import load_contracts
from contract_gateway.core.contracts.routes import ContractRouter
from contract_gateway.shared.config import settings
from contract_gateway.shared.container import container
from contract_gateway.shared.logging_config import configure_logging
from contract_gateway.shared.observability import setup_observability

logger = structlog.get_logger()

_STORES = ("response_cache", "idempotency_store")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manages the application lifecycle.
    1. Startup: connects the side-effect stores.
    2. Shutdown: closes connections.
    """
    logger.info("app_startup", env=settings.APP_ENV.value, operations=len(container.operation_registry()))

    stores = [getattr(container, name)() for name in _STORES]
    for store in stores:
        connect = getattr(store, "connect", None)
        if connect is None:
            continue
        try:
            await connect()
        except Exception as e:
            logger.error("store_connection_failed", store=type(store).__name__, error=str(e))

    yield

    logger.info("app_shutdown")
    for store in stores:
        disconnect = getattr(store, "disconnect", None)
        if disconnect is not None:
            await disconnect()


def create_app(contracts: Optional[ContractRouter] = None, *, observability: bool = True) -> FastAPI:
    """
    Factory function to create the FastAPI application.

    ``contracts`` defaults to the router named by ``CONTRACTS_TARGET``.
    Invalid metadata fails startup in strict mode.
    """
    configure_logging()

    if contracts is None and settings.CONTRACTS_TARGET:
        contracts = load_contracts(settings.CONTRACTS_TARGET)

    app = FastAPI(
        title=settings.APP_NAME,
        version=__version__,
        description="Operations served from declarative contract metadata",
        lifespan=lifespan,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url=None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # The modules using @inject / Provide
    container.wire(modules=[
        "contract_gateway.adapters.api.dependencies",
        "contract_gateway.adapters.api.routers.health",
    ])

    app.include_router(health.router)

    if contracts is not None:
        registry = mount_contracts(
            app,
            contracts,
            strict=settings.strict_contracts,
            functions=container.expression_functions(),
        )
        container.operation_registry.reset_override()
        container.operation_registry.override(providers.Object(registry))
    else:
        logger.warning("no_contracts_configured")

    if observability:
        setup_observability(app)

    return app


# Entry point for local debugging (e.g. `python -m contract_gateway.adapters.api.main`)
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "contract_gateway.adapters.api.main:create_app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        factory=True,
    )
