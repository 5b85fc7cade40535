# contract_gateway/core/ports/idempotency_store.py
from typing import Any, Optional, Protocol


class IIdempotencyStore(Protocol):
    """
    Port for replaying results of idempotent operations.

    Entries are keyed by ``op`` and the caller-scoped key the dispatcher
    derives from the ``Idempotency-Key`` header. Only successful results are
    ever stored.
    """

    async def get(self, op: str, key: str) -> Any:
        """Returns the stored result, or ``MISSING`` when the key was never seen."""
        ...

    async def put(self, op: str, key: str, result: Any, ttl: Optional[int] = None) -> None:
        ...

    async def health_check(self) -> bool:
        ...
