"""Data models for VCF parsing, gene resolution, and import results."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

InfoValue = str | bool


class VariantType(Enum):
    SNV = "SNV"
    DEL = "DEL"
    INS = "INS"
    COMPLEX = "COMPLEX"


@dataclass(frozen=True)
class ContigDeclaration:
    """A ##contig header line."""

    id: str
    length: int | None = None


@dataclass(frozen=True)
class FieldDeclaration:
    """A ##INFO or ##FORMAT header line."""

    id: str
    number: str
    type: str
    description: str


@dataclass(frozen=True)
class VCFHeader:
    """Parsed VCF header metadata."""

    fileformat: str = ""
    reference: str | None = None
    contigs: tuple[ContigDeclaration, ...] = ()
    info: tuple[FieldDeclaration, ...] = ()
    format: tuple[FieldDeclaration, ...] = ()
    samples: tuple[str, ...] = ()


@dataclass
class VCFRecord:
    """Represents a single VCF data line."""

    chromosome: str
    position: int
    reference: str
    alternate: str
    id: str | None = None
    quality: float | None = None
    filter: str | None = None
    info: dict[str, InfoValue] = field(default_factory=dict)
    format: str | None = None
    samples: list[dict[str, str]] | None = None

    # Source line for diagnostics
    line_number: int | None = None

    @property
    def label(self) -> str:
        """Identifier used in error and warning entries."""
        return self.id or f"{self.chromosome}:{self.position}"


@dataclass(frozen=True)
class SkippedLine:
    """A data line the parser could not turn into a record."""

    line_number: int
    reason: str


@dataclass
class ParseStats:
    """Summary statistics over parsed records."""

    total_records: int = 0
    chromosomes: list[str] = field(default_factory=list)
    variant_types: dict[str, int] = field(default_factory=dict)


@dataclass
class ParsedVCF:
    """Result of a parse call."""

    header: VCFHeader
    records: list[VCFRecord]
    stats: ParseStats
    skipped_lines: list[SkippedLine] = field(default_factory=list)


@dataclass(frozen=True)
class CanonicalVariant:
    """Storage-independent representation of a VCF record."""

    variant_id: str
    chromosome: str
    position: int
    reference: str
    alternate: str
    variant_type: VariantType
    frequency: float | None = None
    clinical_significance: str | None = None
    gene_symbol_hint: str | None = None

    # Pass-through annotations
    consequence: str | None = None
    impact: str | None = None
    protein_change: str | None = None
    transcript_id: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def positional_key(self) -> tuple[str, int, str, str]:
        return (self.chromosome, self.position, self.reference, self.alternate)


@dataclass
class GeneCreate:
    """Input for creating a gene through the storage port."""

    gene_id: str
    symbol: str
    name: str
    chromosome: str
    start: int | None
    end: int | None
    strand: str | None = "+"
    biotype: str | None = None
    description: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class Gene:
    """A gene row as returned by the storage port."""

    id: str
    gene_id: str
    symbol: str
    name: str
    chromosome: str | None
    start: int | None = None
    end: int | None = None
    strand: str | None = None
    biotype: str | None = None
    description: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def is_placeholder(self) -> bool:
        """True for genes synthesized from a VCF variant.

        Placeholder coordinates are a padding window around the first
        observed variant, not a biological gene boundary.
        """
        return bool(self.metadata.get("inferred"))

    def contains(self, chromosome: str, position: int) -> bool:
        if self.chromosome != chromosome or self.start is None or self.end is None:
            return False
        return self.start <= position <= self.end


@dataclass
class VariantCreate:
    """Input for creating a variant through the storage port."""

    variant: CanonicalVariant
    gene_id: str


@dataclass
class StoredVariant:
    """A variant row as returned by the storage port."""

    id: str
    variant_id: str
    gene_id: str
    chromosome: str
    position: int
    reference: str
    alternate: str

    @property
    def positional_key(self) -> tuple[str, int, str, str]:
        return (self.chromosome, self.position, self.reference, self.alternate)


@dataclass(frozen=True)
class RecordIssue:
    """An error or warning attached to one record."""

    record: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"record": self.record, "message": self.message}


class ImportState(Enum):
    PARSING = "parsing"
    BATCH_PROCESSING = "batch_processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class ImportResult:
    """Aggregated outcome of one import call.

    Built incrementally by the importer and sealed when the import ends.
    Each batch accumulates into its own ImportResult that is merged here
    only after the batch transaction commits, so ``committed`` always
    equals the number of rows durably written. A batch result keeps
    ``committed`` at zero until it is merged.
    """

    total: int = 0
    successful: int = 0
    failed: int = 0
    errors: list[RecordIssue] = field(default_factory=list)
    warnings: list[RecordIssue] = field(default_factory=list)
    committed: int = 0
    batches_committed: int = 0
    state: ImportState = ImportState.BATCH_PROCESSING

    _sealed: bool = field(default=False, init=False, repr=False, compare=False)

    @property
    def sealed(self) -> bool:
        return self._sealed

    def seal(self) -> "ImportResult":
        self._sealed = True
        return self

    def _check_open(self) -> None:
        if self._sealed:
            raise RuntimeError("ImportResult is sealed and can no longer be modified")

    def record_success(self) -> None:
        self._check_open()
        self.successful += 1

    def record_failure(self, record: str, message: str) -> None:
        self._check_open()
        self.failed += 1
        self.errors.append(RecordIssue(record, message))

    def record_warning(self, record: str, message: str) -> None:
        self._check_open()
        self.warnings.append(RecordIssue(record, message))

    def merge_batch(self, batch: "ImportResult") -> None:
        """Fold a committed batch's outcome into this result."""
        self._check_open()
        self.successful += batch.successful
        self.failed += batch.failed
        self.errors.extend(batch.errors)
        self.warnings.extend(batch.warnings)
        self.committed += batch.successful
        self.batches_committed += 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "successful": self.successful,
            "failed": self.failed,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "committed": self.committed,
            "batches_committed": self.batches_committed,
            "state": self.state.value,
        }
