# contract_gateway/adapters/services/__init__.py
from .contracts_loader import load_contracts, load_object
from .module_locator import ModuleServiceLocator, StaticServiceLocator

__all__ = ["ModuleServiceLocator", "StaticServiceLocator", "load_contracts", "load_object"]
