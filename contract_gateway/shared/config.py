# contract_gateway/shared/config.py
from enum import Enum
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class AppEnv(str, Enum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TESTING = "testing"


class CacheBackend(str, Enum):
    MEMORY = "memory"
    REDIS = "redis"


class Settings(BaseSettings):
    """
    Central Configuration Registry.
    Strictly typed and validated via Pydantic.
    """

    # --- Application Meta ---
    APP_NAME: str = "contract-gateway"
    APP_ENV: AppEnv = AppEnv.DEVELOPMENT
    DEBUG: bool = False

    # --- Logging & Observability ---
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"
    # Off in tests, where sys.stderr is swapped per test
    LOG_CACHE_LOGGERS: bool = True
    OTEL_SERVICE_NAME: str = "contract-gateway"

    # --- Contracts ---
    # Strict mode fails closed on invalid metadata. Production is always strict.
    CONTRACTS_STRICT: bool = False
    # "module:attribute" naming the ContractRouter the app serves
    CONTRACTS_TARGET: Optional[str] = None

    # --- Side-effect stores ---
    CACHE_BACKEND: CacheBackend = CacheBackend.MEMORY
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_KEY_PREFIX: str = "cg"
    RESPONSE_CACHE_TTL_SEC: int = 60
    IDEMPOTENCY_TTL_SEC: int = 86400

    # --- Env fallbacks ---
    # Optional prefix tried before the bare key, e.g. "APP_" -> APP_STRIPE_PRICE
    CONFIG_ENV_PREFIX: str = ""

    # --- HTTP ---
    CORS_ORIGINS: List[str] = ["*"]

    @property
    def strict_contracts(self) -> bool:
        return self.CONTRACTS_STRICT or self.APP_ENV == AppEnv.PRODUCTION

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
