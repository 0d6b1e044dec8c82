"""VCF parsing functionality."""

import gzip
import logging
import re
from collections import Counter
from pathlib import Path

from .errors import VCFParseError
from .models import (
    ContigDeclaration,
    FieldDeclaration,
    InfoValue,
    ParsedVCF,
    ParseStats,
    SkippedLine,
    VCFHeader,
    VCFRecord,
)
from .transformer import infer_variant_type
from .utils.variant_matching import normalize_chromosome

logger = logging.getLogger(__name__)

MIN_DATA_FIELDS = 8
SAMPLE_COLUMN_OFFSET = 9
MISSING = "."
GZIP_MAGIC = b"\x1f\x8b"


def read_vcf_bytes(path: Path | str) -> bytes:
    """Read a VCF file, decompressing gzip content by magic bytes."""
    path = Path(path)
    try:
        raw = path.read_bytes()
    except OSError as e:
        raise VCFParseError(f"Cannot read {path}: {e}") from e
    if raw[:2] == GZIP_MAGIC:
        try:
            raw = gzip.decompress(raw)
        except (OSError, EOFError) as e:
            raise VCFParseError(f"Corrupt gzip stream in {path.name}: {e}") from e
    return raw


class RecordParseError(ValueError):
    """A single data line could not be parsed."""

    pass


class VCFHeaderParser:
    """Parser for VCF header information."""

    FILEFORMAT_PATTERN = re.compile(r"##fileformat=(.+)")
    REFERENCE_PATTERN = re.compile(r"##reference=(.+)")
    CONTIG_PATTERN = re.compile(r"##contig=<(.+)>")
    INFO_PATTERN = re.compile(r"##INFO=<(.+)>")
    FORMAT_PATTERN = re.compile(r"##FORMAT=<(.+)>")

    def parse(self, header_lines: list[str], column_line: str | None) -> VCFHeader:
        """Build a VCFHeader from ## metadata lines and the #CHROM line."""
        fileformat = ""
        reference = None

        for line in header_lines:
            if match := self.FILEFORMAT_PATTERN.match(line):
                fileformat = match.group(1).strip()
            elif match := self.REFERENCE_PATTERN.match(line):
                reference = match.group(1).strip()

        samples: tuple[str, ...] = ()
        if column_line is not None:
            samples = tuple(column_line.rstrip("\r\n").split("\t")[SAMPLE_COLUMN_OFFSET:])

        return VCFHeader(
            fileformat=fileformat,
            reference=reference,
            contigs=tuple(self.parse_contigs(header_lines)),
            info=tuple(self.parse_info_fields(header_lines)),
            format=tuple(self.parse_format_fields(header_lines)),
            samples=samples,
        )

    def parse_contigs(self, header_lines: list[str]) -> list[ContigDeclaration]:
        """Parse ##contig declarations, keeping declaration order."""
        contigs = []
        for line in header_lines:
            match = self.CONTIG_PATTERN.match(line)
            if not match:
                continue
            field_def = self._parse_field_definition(match.group(1))
            if not field_def:
                continue
            length = field_def.get("length")
            contigs.append(
                ContigDeclaration(
                    id=field_def["ID"],
                    length=int(length) if length and length.isdigit() else None,
                )
            )
        return contigs

    def parse_info_fields(self, header_lines: list[str]) -> list[FieldDeclaration]:
        """Parse INFO field definitions from header lines."""
        return self._parse_declarations(header_lines, self.INFO_PATTERN)

    def parse_format_fields(self, header_lines: list[str]) -> list[FieldDeclaration]:
        """Parse FORMAT field definitions from header lines."""
        return self._parse_declarations(header_lines, self.FORMAT_PATTERN)

    def _parse_declarations(
        self, header_lines: list[str], pattern: re.Pattern[str]
    ) -> list[FieldDeclaration]:
        declarations = []
        for line in header_lines:
            match = pattern.match(line)
            if match:
                field_def = self._parse_field_definition(match.group(1))
                if field_def:
                    declarations.append(
                        FieldDeclaration(
                            id=field_def["ID"],
                            number=field_def.get("Number", ""),
                            type=field_def.get("Type", ""),
                            description=field_def.get("Description", ""),
                        )
                    )
        return declarations

    def _parse_field_definition(self, field_string: str) -> dict[str, str] | None:
        """Parse a field definition string like 'ID=AC,Number=A,Type=Integer,Description="..."'"""
        field_def = {}

        # Quoted descriptions may contain commas
        parts = []
        current_part = ""
        in_quotes = False

        for char in field_string:
            if char == '"':
                in_quotes = not in_quotes
                current_part += char
            elif char == "," and not in_quotes:
                parts.append(current_part)
                current_part = ""
            else:
                current_part += char

        if current_part:
            parts.append(current_part)

        for part in parts:
            if "=" in part:
                key, value = part.split("=", 1)
                if value.startswith('"') and value.endswith('"') and len(value) >= 2:
                    value = value[1:-1]
                field_def[key.strip()] = value

        return field_def if "ID" in field_def else None


class VCFRecordParser:
    """Parser for individual VCF data lines."""

    def parse_line(self, line: str, line_number: int | None = None) -> VCFRecord:
        """Parse one tab-separated data line.

        Raises:
            RecordParseError: If the line is structurally invalid
        """
        fields = line.rstrip("\r\n").split("\t")
        if len(fields) < MIN_DATA_FIELDS:
            raise RecordParseError(
                f"insufficient fields (expected at least {MIN_DATA_FIELDS}, got {len(fields)})"
            )

        chrom, pos, vid, ref, alt, qual, filt, info = fields[:MIN_DATA_FIELDS]
        fmt = fields[MIN_DATA_FIELDS] if len(fields) > MIN_DATA_FIELDS else None
        sample_columns = fields[SAMPLE_COLUMN_OFFSET:]

        chromosome = normalize_chromosome(chrom)
        if not chromosome:
            raise RecordParseError("empty chromosome")

        try:
            position = int(pos)
        except ValueError as e:
            raise RecordParseError(f"invalid position '{pos}'") from e
        if position < 1:
            raise RecordParseError(f"position must be >= 1, got {position}")

        ref = ref.strip()
        alt = alt.strip()
        if not ref or not alt:
            raise RecordParseError("reference and alternate alleles must be non-empty")

        quality = None
        if qual and qual != MISSING:
            try:
                quality = float(qual)
            except ValueError as e:
                raise RecordParseError(f"invalid quality '{qual}'") from e

        format_string = fmt if fmt and fmt != MISSING else None

        return VCFRecord(
            chromosome=chromosome,
            position=position,
            id=vid if vid and vid != MISSING else None,
            reference=ref,
            alternate=alt,
            quality=quality,
            filter=filt if filt and filt != MISSING else None,
            info=self.parse_info(info),
            format=format_string,
            samples=self.parse_samples(format_string, sample_columns),
            line_number=line_number,
        )

    def parse_info(self, info: str) -> dict[str, InfoValue]:
        """Parse a semicolon-separated INFO column.

        ``KEY=VALUE`` entries keep the text after the first '='; bare keys
        and keys with an empty value are flags and become True.
        """
        parsed: dict[str, InfoValue] = {}
        if not info or info == MISSING:
            return parsed

        for item in info.split(";"):
            if not item:
                continue
            key, _, value = item.partition("=")
            parsed[key] = value if value else True

        return parsed

    def parse_samples(
        self, format_string: str | None, sample_columns: list[str]
    ) -> list[dict[str, str]] | None:
        """Zip each sample column with the FORMAT keys.

        Missing trailing values default to '.'.
        """
        if not format_string or not sample_columns:
            return None

        format_fields = format_string.split(":")
        samples = []
        for column in sample_columns:
            values = column.split(":")
            samples.append(
                {
                    key: values[i] if i < len(values) and values[i] != "" else MISSING
                    for i, key in enumerate(format_fields)
                }
            )
        return samples


class VCFParser:
    """Parses VCF text into a header, records, and summary statistics.

    Malformed data lines are skipped with a warning; only input with no
    recognisable VCF structure raises VCFParseError.
    """

    def __init__(self) -> None:
        self._header_parser = VCFHeaderParser()
        self._record_parser = VCFRecordParser()

    def parse(self, text: str | bytes) -> ParsedVCF:
        """Parse VCF content.

        Raises:
            VCFParseError: If the input is empty or contains neither a
                header nor any parseable data line
        """
        if isinstance(text, bytes):
            try:
                text = text.decode("utf-8")
            except UnicodeDecodeError:
                logger.warning("VCF input is not valid UTF-8, replacing undecodable bytes")
                text = text.decode("utf-8", errors="replace")

        if not text or not text.strip():
            raise VCFParseError("VCF input is empty")

        header_lines: list[str] = []
        column_line: str | None = None
        records: list[VCFRecord] = []
        skipped: list[SkippedLine] = []

        for line_number, line in enumerate(text.splitlines(), start=1):
            if not line.strip():
                continue
            if line.startswith("##"):
                header_lines.append(line)
            elif line.startswith("#CHROM"):
                column_line = line
            elif line.startswith("#"):
                continue
            else:
                try:
                    records.append(self._record_parser.parse_line(line, line_number))
                except RecordParseError as e:
                    logger.warning("Skipping invalid VCF record at line %d: %s", line_number, e)
                    skipped.append(SkippedLine(line_number=line_number, reason=str(e)))

        has_header = column_line is not None or any(
            self._header_parser.FILEFORMAT_PATTERN.match(h) for h in header_lines
        )
        if not has_header and not records:
            raise VCFParseError("No VCF header or parseable records found")

        header = self._header_parser.parse(header_lines, column_line)
        stats = self.generate_stats(records)

        logger.debug(
            "Parsed %d records (%d skipped) across %d chromosomes",
            stats.total_records,
            len(skipped),
            len(stats.chromosomes),
        )

        return ParsedVCF(header=header, records=records, stats=stats, skipped_lines=skipped)

    def parse_file(self, path: Path | str) -> ParsedVCF:
        """Parse a .vcf or gzip-compressed .vcf.gz file."""
        return self.parse(read_vcf_bytes(path))

    @staticmethod
    def generate_stats(records: list[VCFRecord]) -> ParseStats:
        """Count records, distinct chromosomes, and variant types in one pass."""
        chromosomes: set[str] = set()
        variant_types: Counter[str] = Counter()

        for record in records:
            chromosomes.add(record.chromosome)
            variant_types[infer_variant_type(record.reference, record.alternate).value] += 1

        return ParseStats(
            total_records=len(records),
            chromosomes=sorted(chromosomes),
            variant_types=dict(variant_types),
        )
