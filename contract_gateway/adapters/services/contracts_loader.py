# contract_gateway/adapters/services/contracts_loader.py
import importlib
from typing import Any

from contract_gateway.core.contracts.routes import ContractRouter
from contract_gateway.core.domain.exceptions import ContractDefinitionError


def load_object(target: str) -> Any:
    """Imports ``"package.module:attribute"`` (the attribute may be dotted)."""
    module_path, sep, attribute = target.partition(":")
    if not sep or not module_path or not attribute:
        raise ContractDefinitionError(f"target must look like 'module:attribute', got {target!r}")
    try:
        obj: Any = importlib.import_module(module_path)
    except ImportError as e:
        raise ContractDefinitionError(f"cannot import '{module_path}': {e}") from e
    for part in attribute.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError as e:
            raise ContractDefinitionError(f"'{module_path}' has no attribute '{attribute}'") from e
    return obj


def load_contracts(target: str) -> ContractRouter:
    """Loads a ContractRouter, calling the attribute first when it is a factory."""
    obj = load_object(target)
    if not isinstance(obj, ContractRouter) and callable(obj):
        obj = obj()
    if not isinstance(obj, ContractRouter):
        raise ContractDefinitionError(f"{target!r} is not a ContractRouter (got {type(obj).__name__})")
    return obj
