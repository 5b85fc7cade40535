# contract_gateway/adapters/config/env_config_source.py
import os
from enum import Enum
from typing import Mapping, MutableMapping, Optional

from pydantic_settings import BaseSettings

from contract_gateway.core.ports.config_source import IConfigSource
from contract_gateway.shared.config import settings as default_settings


def _as_text(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class EnvConfigSource(IConfigSource):
    """
    Reads env fallbacks from the live process environment.

    Lookup order: ``<CONFIG_ENV_PREFIX><key>``, then ``<key>``, then a
    declared field of the settings object. Nothing is cached, so changes to
    the environment are visible on the next request.
    """

    def __init__(
        self,
        prefix: Optional[str] = None,
        settings: Optional[BaseSettings] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.settings = settings or default_settings
        self.prefix = prefix if prefix is not None else getattr(self.settings, "CONFIG_ENV_PREFIX", "")
        self._environ = environ

    @property
    def environ(self) -> Mapping[str, str]:
        return self._environ if self._environ is not None else os.environ

    def get(self, key: str) -> Optional[str]:
        if self.prefix:
            value = self.environ.get(f"{self.prefix}{key}")
            if value is not None:
                return value

        value = self.environ.get(key)
        if value is not None:
            return value

        if key in type(self.settings).model_fields:
            return _as_text(getattr(self.settings, key))
        return None


class StaticConfigSource(IConfigSource):
    """Dictionary-backed source for tests and offline tooling."""

    def __init__(self, values: Optional[MutableMapping[str, str]] = None):
        self.values = values if values is not None else {}

    def get(self, key: str) -> Optional[str]:
        return self.values.get(key)
