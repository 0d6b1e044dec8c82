"""Audit sinks receiving one entry per finished import."""

import json
import logging
from pathlib import Path
from typing import Protocol

import asyncpg

from .models import ImportAuditEntry

logger = logging.getLogger(__name__)

DEFAULT_FALLBACK_PATH = Path("/tmp/vcf_ingest_audit_fallback.jsonl")


class AuditSink(Protocol):
    async def record_import(self, entry: ImportAuditEntry) -> None:
        """Persist one import audit entry."""
        ...


class InMemoryAuditSink:
    """Keeps entries in a dict keyed by job id."""

    def __init__(self) -> None:
        self.entries: dict[str, ImportAuditEntry] = {}

    async def record_import(self, entry: ImportAuditEntry) -> None:
        self.entries[entry.job_id] = entry

    def get(self, job_id: str) -> ImportAuditEntry | None:
        return self.entries.get(job_id)


class JsonlAuditSink:
    """Appends entries as JSON lines to a local file."""

    def __init__(self, path: Path = DEFAULT_FALLBACK_PATH):
        self.path = Path(path)

    async def record_import(self, entry: ImportAuditEntry) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a") as f:
            f.write(json.dumps(entry.to_dict()) + "\n")
        logger.info("Wrote import audit entry %s to %s", entry.job_id, self.path)

    def read_entries(self) -> list[dict]:
        if not self.path.exists():
            return []
        with open(self.path) as f:
            return [json.loads(line) for line in f if line.strip()]


class PostgresAuditSink:
    """Writes entries to the import_audit_log table.

    Falls back to a local JSONL file if the database write fails.
    """

    def __init__(
        self,
        pool: asyncpg.Pool,
        fallback: JsonlAuditSink | None = None,
    ):
        self._pool = pool
        self._fallback = fallback or JsonlAuditSink()

    async def record_import(self, entry: ImportAuditEntry) -> None:
        try:
            await self._write_to_db(entry)
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            logger.warning("Failed to write import audit to DB: %s. Falling back to file.", e)
            await self._fallback.record_import(entry)

    async def _write_to_db(self, entry: ImportAuditEntry) -> None:
        result = entry.result
        async with self._pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO import_audit_log (
                    job_id, status, source_name, reference_genome,
                    total, successful, failed, warnings, result,
                    started_at, completed_at
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9::jsonb, $10, COALESCE($11, NOW()))
                ON CONFLICT (job_id) DO NOTHING
                """,
                entry.job_id,
                entry.status.value,
                entry.source_name,
                entry.reference_genome,
                result.get("total", 0),
                result.get("successful", 0),
                result.get("failed", 0),
                len(result.get("warnings", [])),
                json.dumps(entry.to_dict()),
                entry.started_at,
                entry.completed_at,
            )

    async def get_entry(self, job_id: str) -> dict | None:
        """Fetch a stored audit entry by job id."""
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT result FROM import_audit_log WHERE job_id = $1",
                job_id,
            )
        if row is None:
            return None
        payload = row["result"]
        return json.loads(payload) if isinstance(payload, str) else payload

    async def recent_entries(self, limit: int = 10) -> list[dict]:
        """Fetch the most recently completed audit entries, newest first."""
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT result FROM import_audit_log
                ORDER BY completed_at DESC, audit_id DESC
                LIMIT $1
                """,
                limit,
            )
        return [
            json.loads(row["result"]) if isinstance(row["result"], str) else row["result"]
            for row in rows
        ]
