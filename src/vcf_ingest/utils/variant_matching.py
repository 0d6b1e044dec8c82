"""Chromosome normalization and variant matching utilities."""

import re

_CHR_PREFIX = re.compile(r"^chr", re.IGNORECASE)

CHROMOSOME_ALIASES = {
    "23": "X",
    "24": "Y",
    "MT": "M",
}


def normalize_chromosome(chrom: str, add_chr: bool = False) -> str:
    """Normalize a chromosome label for consistent matching.

    Strips leading case-insensitive ``chr`` prefixes and maps numeric sex
    chromosomes and the mitochondrial alias (``23`` -> ``X``, ``24`` -> ``Y``,
    ``MT`` -> ``M``). ``chrM`` becomes ``M`` because stripping happens before
    the alias lookup. All other labels pass through unchanged, so the
    function is idempotent.

    Args:
        chrom: Chromosome label (with or without 'chr' prefix)
        add_chr: If True, return the normalized label with a 'chr' prefix

    Returns:
        Normalized chromosome string
    """
    bare = chrom.strip()
    while _CHR_PREFIX.match(bare):
        bare = bare[3:].strip()
    bare = CHROMOSOME_ALIASES.get(bare, bare)
    if add_chr:
        return f"chr{bare}"
    return bare


def variant_key(chromosome: str, position: int, ref: str, alt: str) -> tuple[str, int, str, str]:
    """Build the positional identity of a variant.

    Alleles are upper-cased so that soft-masked input matches stored rows.
    """
    return (normalize_chromosome(chromosome), position, ref.upper(), alt.upper())


def match_variant(
    variant_id: str | None,
    key: tuple[str, int, str, str],
    variant_lookup: dict[tuple[str, int, str, str], str],
    id_lookup: dict[str, str],
) -> str | None:
    """Match a variant against in-memory lookups.

    Tries to match by:
    1. Stable variant identifier
    2. Chromosome + position + ref + alt

    Args:
        variant_id: Stable identifier (rsID or composite)
        key: Positional key as produced by ``variant_key``
        variant_lookup: Dict mapping positional keys to row ids
        id_lookup: Dict mapping variant identifiers to row ids

    Returns:
        Row id if matched, None otherwise
    """
    if variant_id and variant_id in id_lookup:
        return id_lookup[variant_id]

    normalized = variant_key(*key)
    if normalized in variant_lookup:
        return variant_lookup[normalized]

    return None
