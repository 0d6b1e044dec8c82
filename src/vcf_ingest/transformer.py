"""Conversion of parsed VCF records into canonical variants."""

import math
from collections.abc import Mapping, Sequence

from .models import CanonicalVariant, InfoValue, VariantType, VCFRecord

FREQUENCY_KEYS = ("AF", "MAF", "FREQ")
CLINICAL_SIGNIFICANCE_KEY = "CLNSIG"
GENE_SYMBOL_KEYS = ("GENE_SYMBOL", "SYMBOL")

ANNOTATION_KEYS = {
    "consequence": "CONSEQUENCE",
    "impact": "IMPACT",
    "protein_change": "HGVS_P",
    "transcript_id": "TRANSCRIPT_ID",
}


def infer_variant_type(ref: str, alt: str) -> VariantType:
    """Classify a variant from allele lengths.

    Equal-length alleles longer than one base (MNPs) are reported as
    COMPLEX; this is a length-only heuristic.
    """
    if len(ref) == 1 and len(alt) == 1:
        return VariantType.SNV
    if len(ref) > len(alt):
        return VariantType.DEL
    if len(ref) < len(alt):
        return VariantType.INS
    return VariantType.COMPLEX


def lookup_info_string(info: Mapping[str, InfoValue], keys: Sequence[str]) -> str | None:
    """Return the first string value among ``keys``, in priority order.

    Flag values (True) are not strings and are skipped.
    """
    for key in keys:
        value = info.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def extract_frequency(info: Mapping[str, InfoValue]) -> float | None:
    """Return the first finite numeric value among AF, MAF, FREQ."""
    for key in FREQUENCY_KEYS:
        value = info.get(key)
        if not isinstance(value, str):
            continue
        try:
            freq = float(value)
        except ValueError:
            continue
        if math.isfinite(freq):
            return freq
    return None


def extract_clinical_significance(info: Mapping[str, InfoValue]) -> str | None:
    return lookup_info_string(info, (CLINICAL_SIGNIFICANCE_KEY,))


def extract_gene_symbol(info: Mapping[str, InfoValue]) -> str | None:
    return lookup_info_string(info, GENE_SYMBOL_KEYS)


def composite_variant_id(chromosome: str, position: int, ref: str, alt: str) -> str:
    return f"{chromosome}_{position}_{ref}_{alt}"


def to_canonical_variant(record: VCFRecord) -> CanonicalVariant:
    """Convert a parsed VCF record into a CanonicalVariant.

    Pure and total for any structurally valid record.
    """
    variant_id = record.id if record.id and record.id != "." else composite_variant_id(
        record.chromosome, record.position, record.reference, record.alternate
    )

    return CanonicalVariant(
        variant_id=variant_id,
        chromosome=record.chromosome,
        position=record.position,
        reference=record.reference,
        alternate=record.alternate,
        variant_type=infer_variant_type(record.reference, record.alternate),
        frequency=extract_frequency(record.info),
        clinical_significance=extract_clinical_significance(record.info),
        gene_symbol_hint=extract_gene_symbol(record.info),
        **{attr: lookup_info_string(record.info, (key,)) for attr, key in ANNOTATION_KEYS.items()},
        metadata={
            "vcf": {
                "quality": record.quality,
                "filter": record.filter,
                "info": dict(record.info) if record.info else None,
                "samples": [dict(s) for s in record.samples] if record.samples else None,
            }
        },
    )
