# contract_gateway/adapters/services/module_locator.py
import importlib
from threading import Lock
from typing import Any, Dict, Mapping, Optional

import structlog

from contract_gateway.core.domain.exceptions import ServiceResolutionError
from contract_gateway.core.domain.op_meta import SymbolRef
from contract_gateway.core.ports.service_locator import IServiceLocator

logger = structlog.get_logger()


class ModuleServiceLocator(IServiceLocator):
    """
    Resolves ``importPath``/name through Python's import system.

    ``importPath`` is a dotted module path (``billing.service``), or a
    logical package name mapped to one through ``aliases``
    (``{"@acme/billing": "acme_billing.service"}``). ``name`` may be dotted
    to reach a class attribute (``BillingService.subscribe``).
    Resolved symbols are cached for the life of the process.
    """

    def __init__(self, aliases: Optional[Mapping[str, str]] = None):
        self.aliases = dict(aliases or {})
        self._cache: Dict[str, Any] = {}
        self._lock = Lock()

    def resolve(self, ref: SymbolRef) -> Any:
        cache_key = str(ref)
        if cache_key in self._cache:
            return self._cache[cache_key]

        with self._lock:
            if cache_key not in self._cache:
                self._cache[cache_key] = self._load(ref)
        return self._cache[cache_key]

    def _load(self, ref: SymbolRef) -> Any:
        module_path = self.aliases.get(ref.import_path, ref.import_path)
        try:
            target: Any = importlib.import_module(module_path)
        except ImportError as e:
            raise ServiceResolutionError(ref.import_path, ref.name, f"cannot import '{module_path}': {e}") from e

        for part in ref.name.split("."):
            if part.startswith("_"):
                raise ServiceResolutionError(ref.import_path, ref.name, "private names cannot be bound")
            try:
                target = getattr(target, part)
            except AttributeError as e:
                raise ServiceResolutionError(ref.import_path, ref.name, f"'{part}' not found") from e

        logger.debug("service_resolved", ref=str(ref))
        return target


class StaticServiceLocator(IServiceLocator):
    """
    Resolves symbols from a table built at startup.

    Keys are ``"importPath:name"`` strings::

        StaticServiceLocator({"billing.service:subscribe": subscribe})
    """

    def __init__(self, table: Optional[Mapping[str, Any]] = None):
        self.table = dict(table or {})

    def register(self, import_path: str, name: str, target: Any) -> None:
        self.table[f"{import_path}:{name}"] = target

    def resolve(self, ref: SymbolRef) -> Any:
        try:
            return self.table[str(ref)]
        except KeyError:
            raise ServiceResolutionError(ref.import_path, ref.name, "not registered") from None
