"""Import audit entry model."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class ImportStatus(Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass
class ImportAuditEntry:
    """One audit-log entry per finished import, keyed by job id."""

    job_id: str
    status: ImportStatus
    result: dict[str, Any]
    source_name: str | None = None
    reference_genome: str | None = None
    input_sha256: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "status": self.status.value,
            "source_name": self.source_name,
            "reference_genome": self.reference_genome,
            "input_sha256": self.input_sha256,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "result": self.result,
            "details": self.details,
        }
