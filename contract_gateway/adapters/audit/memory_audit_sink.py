# contract_gateway/adapters/audit/memory_audit_sink.py
from typing import List, Optional

from contract_gateway.core.domain.models import AuditRecord
from contract_gateway.core.ports.audit_sink import IAuditSink


class InMemoryAuditSink(IAuditSink):
    """Keeps records in a bounded list; used in tests and local development."""

    def __init__(self, max_records: Optional[int] = 10_000):
        self.max_records = max_records
        self.records: List[AuditRecord] = []

    async def append(self, record: AuditRecord) -> None:
        self.records.append(record)
        if self.max_records is not None and len(self.records) > self.max_records:
            del self.records[: len(self.records) - self.max_records]

    async def health_check(self) -> bool:
        return True
