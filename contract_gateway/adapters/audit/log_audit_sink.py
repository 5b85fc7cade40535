# contract_gateway/adapters/audit/log_audit_sink.py
import structlog

from contract_gateway.core.domain.models import AuditRecord
from contract_gateway.core.ports.audit_sink import IAuditSink


class StructlogAuditSink(IAuditSink):
    """
    Writes audit records as structured log events (``audit_record``).

    With the JSON renderer each record becomes one machine-readable line for
    the log pipeline to ship to long-term storage.
    """

    def __init__(self, logger_name: str = "contract_gateway.audit"):
        self.logger = structlog.get_logger(logger_name)

    async def append(self, record: AuditRecord) -> None:
        self.logger.info("audit_record", **record.model_dump(mode="json"))

    async def health_check(self) -> bool:
        return True
