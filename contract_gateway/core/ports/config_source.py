# contract_gateway/core/ports/config_source.py
from typing import Optional, Protocol


class IConfigSource(Protocol):
    """
    Port for process configuration read by ``fallback: {kind: "env"}`` arguments.

    Implementations must reflect the current configuration on every call;
    the resolver does not cache what it reads.
    """

    def get(self, key: str) -> Optional[str]:
        """Returns the configured value, or None when the key is not set."""
        ...
