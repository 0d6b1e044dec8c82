"""Batch import orchestration: parse, resolve, deduplicate, and commit."""

import asyncio
import hashlib
import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from uuid import uuid4

from .audit.models import ImportAuditEntry, ImportStatus
from .audit.sink import AuditSink
from .dedup import DUPLICATE_WARNING, DeduplicationGate
from .errors import (
    ConfigValidationError,
    ImportCancelledError,
    ImportParseError,
    ImportStorageError,
    StorageUnavailableError,
    VariantConflictError,
    VCFParseError,
)
from .gene_resolver import (
    DEFAULT_PADDING_BP,
    DEFAULT_PLACEHOLDER_BIOTYPE,
    GeneResolver,
    ResolverConfig,
)
from .models import ImportResult, ImportState, ParsedVCF, VariantCreate, VCFRecord
from .storage.base import StoreSession, VariantStore
from .transformer import to_canonical_variant
from .utils.validators import ValidationError, validate_genome_build, validate_variant_fields
from .vcf_parser import VCFParser, read_vcf_bytes

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, int], None]


@dataclass
class ImportConfig:
    """Configuration for VCF imports."""

    batch_size: int = 100
    gene_padding_bp: int = DEFAULT_PADDING_BP
    placeholder_biotype: str = DEFAULT_PLACEHOLDER_BIOTYPE
    batch_timeout: float | None = 300.0
    log_level: str = "INFO"
    progress_callback: ProgressCallback | None = None

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ConfigValidationError(f"batch_size must be positive, got {self.batch_size}")
        if self.gene_padding_bp < 0:
            raise ConfigValidationError(
                f"gene_padding_bp must be non-negative, got {self.gene_padding_bp}"
            )


def new_job_id() -> str:
    return f"import_{uuid4().hex}"


def iter_batches(records: list[VCFRecord], batch_size: int) -> Iterator[list[VCFRecord]]:
    for i in range(0, len(records), batch_size):
        yield records[i:i + batch_size]


class VCFImporter:
    """Drives a VCF import through the storage port.

    Batches are processed strictly in input order, one transaction each.
    Inside a batch every record runs in its own savepoint: a failing record
    is rolled back and logged into the result while the rest of the batch
    proceeds. Storage failures abort the import; batches already committed
    stay committed.
    """

    def __init__(
        self,
        store: VariantStore,
        config: ImportConfig | None = None,
        audit_sink: AuditSink | None = None,
        parser: VCFParser | None = None,
    ):
        self.store = store
        self.config = config or ImportConfig()
        self.audit_sink = audit_sink
        self.parser = parser or VCFParser()
        self.resolver = GeneResolver(
            ResolverConfig(
                padding_bp=self.config.gene_padding_bp,
                placeholder_biotype=self.config.placeholder_biotype,
            )
        )
        self.dedup = DeduplicationGate()

    async def import_file(
        self,
        path: Path | str,
        job_id: str | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> ImportResult:
        """Import a .vcf or .vcf.gz file."""
        path = Path(path)
        try:
            content = read_vcf_bytes(path)
        except VCFParseError as e:
            raise ImportParseError(f"Failed to parse VCF file {path.name}: {e}") from e
        return await self.import_vcf(
            content, job_id=job_id, source_name=path.name, cancel_event=cancel_event
        )

    async def import_vcf(
        self,
        text: str | bytes,
        job_id: str | None = None,
        source_name: str | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> ImportResult:
        """Import VCF content and return the sealed ImportResult.

        Raises:
            ImportParseError: If the content has no parseable VCF structure
            ImportStorageError: If a batch transaction fails
            ImportCancelledError: If ``cancel_event`` is set between batches
        """
        job_id = job_id or new_job_id()
        started_at = datetime.now(UTC)
        result = ImportResult(state=ImportState.PARSING)

        try:
            parsed = self.parser.parse(text)
        except VCFParseError as e:
            logger.error("Import %s failed during parsing: %s", job_id, e)
            raise ImportParseError(f"Failed to parse VCF: {e}") from e

        result.total = len(parsed.records)
        result.state = ImportState.BATCH_PROCESSING
        logger.info(
            "Import %s: %d records parsed (%d lines skipped)",
            job_id,
            result.total,
            len(parsed.skipped_lines),
        )

        processed = 0
        for batch_number, batch in enumerate(
            iter_batches(parsed.records, self.config.batch_size), start=1
        ):
            if cancel_event is not None and cancel_event.is_set():
                result.state = ImportState.FAILED
                result.seal()
                logger.warning("Import %s cancelled before batch %d", job_id, batch_number)
                await self._record_audit(
                    job_id, ImportStatus.CANCELLED, result, parsed, text, source_name, started_at
                )
                raise ImportCancelledError(result)

            try:
                batch_result = await self._process_batch(batch)
            except Exception as e:
                result.state = ImportState.FAILED
                result.seal()
                logger.error(
                    "Import %s: batch %d failed, %d records already committed: %s",
                    job_id,
                    batch_number,
                    result.committed,
                    e,
                )
                raise ImportStorageError(
                    str(e) or type(e).__name__, result, result.committed
                ) from e

            result.merge_batch(batch_result)
            processed += len(batch)
            logger.debug(
                "Import %s: committed batch %d (%d written, %d failed, %d skipped)",
                job_id,
                batch_number,
                batch_result.successful,
                batch_result.failed,
                len(batch_result.warnings),
            )
            if self.config.progress_callback:
                self.config.progress_callback(batch_number, len(batch), processed)

        result.state = ImportState.COMPLETED
        result.seal()
        logger.info(
            "Import %s completed: %d successful, %d failed, %d warnings",
            job_id,
            result.successful,
            result.failed,
            len(result.warnings),
        )
        await self._record_audit(
            job_id, ImportStatus.COMPLETED, result, parsed, text, source_name, started_at
        )
        return result

    async def _process_batch(self, batch: list[VCFRecord]) -> ImportResult:
        """Run one batch in a single transaction; returns its outcome."""
        batch_result = ImportResult(total=len(batch))
        async with asyncio.timeout(self.config.batch_timeout):
            async with self.store.transaction() as session:
                for record in batch:
                    await self._process_record(session, record, batch_result)
        return batch_result

    async def _process_record(
        self, session: StoreSession, record: VCFRecord, batch_result: ImportResult
    ) -> None:
        label = record.label
        try:
            validate_variant_fields(record)
        except ValidationError as e:
            batch_result.record_failure(label, str(e))
            return

        try:
            async with session.savepoint():
                variant = to_canonical_variant(record)
                gene = await self.resolver.resolve(session, variant)

                if await self.dedup.find_duplicate(session, variant, gene.id) is not None:
                    batch_result.record_warning(variant.variant_id, DUPLICATE_WARNING)
                    return

                await session.create_variant(VariantCreate(variant=variant, gene_id=gene.id))
        except StorageUnavailableError:
            raise
        except VariantConflictError:
            batch_result.record_warning(label, DUPLICATE_WARNING)
            return
        except Exception as e:
            logger.warning("Failed to import record %s: %s", label, e)
            batch_result.record_failure(label, str(e) or type(e).__name__)
            return

        batch_result.record_success()

    async def _record_audit(
        self,
        job_id: str,
        status: ImportStatus,
        result: ImportResult,
        parsed: ParsedVCF,
        text: str | bytes,
        source_name: str | None,
        started_at: datetime,
    ) -> None:
        if self.audit_sink is None:
            return

        reference = parsed.header.reference
        try:
            reference_genome = validate_genome_build(reference, default=None)
        except ValidationError:
            reference_genome = reference

        raw = text.encode("utf-8") if isinstance(text, str) else text
        entry = ImportAuditEntry(
            job_id=job_id,
            status=status,
            result=result.to_dict(),
            source_name=source_name,
            reference_genome=reference_genome,
            input_sha256=hashlib.sha256(raw).hexdigest(),
            started_at=started_at,
            completed_at=datetime.now(UTC),
            details={
                "file_format": parsed.header.fileformat,
                "skipped_lines": len(parsed.skipped_lines),
                "batch_size": self.config.batch_size,
                "gene_padding_bp": self.config.gene_padding_bp,
            },
        )
        try:
            await self.audit_sink.record_import(entry)
        except Exception as e:
            logger.warning("Failed to record audit entry for %s: %s", job_id, e)
