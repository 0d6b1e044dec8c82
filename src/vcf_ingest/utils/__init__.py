"""Shared utility modules."""

from .validators import (
    ValidationError,
    validate_genome_build,
    validate_variant_fields,
)
from .variant_matching import (
    match_variant,
    normalize_chromosome,
    variant_key,
)

__all__ = [
    "ValidationError",
    "match_variant",
    "normalize_chromosome",
    "validate_genome_build",
    "validate_variant_fields",
    "variant_key",
]
