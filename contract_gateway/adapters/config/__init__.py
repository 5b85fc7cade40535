# contract_gateway/adapters/config/__init__.py
from .env_config_source import EnvConfigSource, StaticConfigSource

__all__ = ["EnvConfigSource", "StaticConfigSource"]
