# contract_gateway/core/ports/service_locator.py
from typing import Any, Protocol

from contract_gateway.core.domain.op_meta import SymbolRef


class IServiceLocator(Protocol):
    """
    Port that turns a logical ``importPath``/name pair into a Python object.

    Used for backend functions, raw handler factories and body/query schema
    models. Raises ``ServiceResolutionError`` when the symbol does not exist.
    """

    def resolve(self, ref: SymbolRef) -> Any:
        ...
