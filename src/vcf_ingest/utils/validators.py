"""Input validation utilities."""

from ..models import VCFRecord


class ValidationError(ValueError):
    """Raised when input validation fails."""

    pass


GENOME_BUILD_ALIASES = {
    "grch38": "GRCh38",
    "hg38": "GRCh38",
    "grch37": "GRCh37",
    "hg19": "GRCh37",
}


def validate_variant_fields(record: VCFRecord) -> None:
    """Check that a record carries the fields required for import.

    Raises:
        ValidationError: If chromosome, position, or alleles are missing
    """
    missing = [
        name
        for name, value in (
            ("chromosome", record.chromosome),
            ("position", record.position),
            ("reference", record.reference),
            ("alternate", record.alternate),
        )
        if not value
    ]
    if missing:
        raise ValidationError(f"Missing required VCF fields: {', '.join(missing)}")


def validate_genome_build(
    value: str | None,
    default: str | None = "GRCh38",
) -> str | None:
    """Validate and normalize genome build.

    Accepts common aliases: GRCh38/hg38, GRCh37/hg19. File paths or URLs
    (as seen in ##reference lines) are reduced to their final component
    before matching, so ``file:///refs/hg38.fa`` resolves to GRCh38.

    Args:
        value: Genome build string
        default: Default value if None or empty

    Returns:
        Normalized genome build (GRCh38 or GRCh37)

    Raises:
        ValidationError: If build is not recognized
    """
    if value is None or value.strip() == "":
        return default

    normalized = value.strip().lower().rsplit("/", 1)[-1]
    for suffix in (".fasta.gz", ".fa.gz", ".fasta", ".fa"):
        if normalized.endswith(suffix):
            normalized = normalized[: -len(suffix)]
            break

    if normalized in GENOME_BUILD_ALIASES:
        return GENOME_BUILD_ALIASES[normalized]

    valid_values = list(GENOME_BUILD_ALIASES.keys())
    raise ValidationError(
        f"Invalid genome build: '{value}'. " f"Valid values: {', '.join(valid_values)}"
    )
