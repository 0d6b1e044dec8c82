"""Import audit logging for vcf-ingest."""

from .models import ImportAuditEntry, ImportStatus
from .sink import AuditSink, InMemoryAuditSink, JsonlAuditSink, PostgresAuditSink

__all__ = [
    "AuditSink",
    "ImportAuditEntry",
    "ImportStatus",
    "InMemoryAuditSink",
    "JsonlAuditSink",
    "PostgresAuditSink",
]
