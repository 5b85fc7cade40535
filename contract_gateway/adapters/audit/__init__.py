# contract_gateway/adapters/audit/__init__.py
from .log_audit_sink import StructlogAuditSink
from .memory_audit_sink import InMemoryAuditSink

__all__ = ["InMemoryAuditSink", "StructlogAuditSink"]
