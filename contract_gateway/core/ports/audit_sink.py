# contract_gateway/core/ports/audit_sink.py
from typing import Protocol

from contract_gateway.core.domain.models import AuditRecord


class IAuditSink(Protocol):
    """Port for persisting audit records written after successful operations."""

    async def append(self, record: AuditRecord) -> None:
        ...

    async def health_check(self) -> bool:
        """Returns True if the sink can accept records."""
        ...
