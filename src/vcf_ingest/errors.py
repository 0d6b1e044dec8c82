"""Exception hierarchy for the ingestion pipeline."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import ImportResult


class VCFIngestError(Exception):
    """Base class for all vcf-ingest errors."""

    pass


class VCFParseError(VCFIngestError):
    """Raised when VCF input has no parseable structure at all."""

    pass


class ConfigValidationError(VCFIngestError):
    """Raised when configuration validation fails."""

    pass


class ImportParseError(VCFIngestError):
    """Raised when an import fails before any batch is attempted."""

    pass


class ImportStorageError(VCFIngestError):
    """Raised when storage fails mid-import.

    Batches committed before the failure are retained. ``result`` holds the
    counts accumulated up to the failing batch.
    """

    def __init__(self, message: str, result: "ImportResult", committed: int):
        super().__init__(
            f"Storage failure mid-import, {committed} records already committed: {message}"
        )
        self.result = result
        self.committed = committed


class ImportCancelledError(VCFIngestError):
    """Raised when an import is cancelled at a batch boundary."""

    def __init__(self, result: "ImportResult"):
        super().__init__(
            f"Import cancelled after {result.batches_committed} batches "
            f"({result.successful} records committed)"
        )
        self.result = result


class StorageError(VCFIngestError):
    """Base class for storage port errors."""

    pass


class StorageUnavailableError(StorageError):
    """Storage cannot be reached; not recoverable inside a batch."""

    pass


class GeneConflictError(StorageError):
    """A gene with the same unique key already exists."""

    pass


class VariantConflictError(StorageError):
    """A variant with the same unique key already exists."""

    pass
