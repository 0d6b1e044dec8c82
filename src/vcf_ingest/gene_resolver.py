"""Resolution of canonical variants to owning genes."""

import logging
from dataclasses import dataclass

from .errors import GeneConflictError
from .models import CanonicalVariant, Gene, GeneCreate
from .storage.base import StoreSession

logger = logging.getLogger(__name__)

DEFAULT_PADDING_BP = 1000
DEFAULT_PLACEHOLDER_BIOTYPE = "protein_coding"


@dataclass
class ResolverConfig:
    """Placeholder gene settings.

    ``padding_bp`` sets the coordinate window written for inferred genes
    (observed position +/- padding). It is a stand-in, not a biological
    boundary.
    """

    padding_bp: int = DEFAULT_PADDING_BP
    placeholder_biotype: str = DEFAULT_PLACEHOLDER_BIOTYPE


def placeholder_symbol(chromosome: str, position: int) -> str:
    return f"GENE_{chromosome}_{position}"


def placeholder_gene_id(chromosome: str, position: int) -> str:
    return f"ENSG_{chromosome}_{position}"


def build_placeholder_gene(variant: CanonicalVariant, config: ResolverConfig) -> GeneCreate:
    """Build the GeneCreate for a gene inferred from ``variant``."""
    chrom, pos = variant.chromosome, variant.position
    start = max(1, pos - config.padding_bp)
    end = pos + config.padding_bp
    return GeneCreate(
        gene_id=placeholder_gene_id(chrom, pos),
        symbol=variant.gene_symbol_hint or placeholder_symbol(chrom, pos),
        name=f"Gene at {chrom}:{pos}",
        chromosome=chrom,
        start=start,
        end=end,
        strand="+",
        biotype=config.placeholder_biotype,
        description=(
            f"Gene inferred from VCF variant at {chrom}:{pos}. "
            f"Coordinates {start}-{end} are a +/-{config.padding_bp} bp placeholder "
            "window around the variant, not an annotated gene boundary."
        ),
        metadata={
            "inferred": True,
            "source": "vcf",
            "source_variant": variant.variant_id,
            "padding_bp": config.padding_bp,
        },
    )


class GeneResolver:
    """Finds or creates the gene that owns a variant.

    Resolution order, first match wins:
    1. Exact symbol match on the INFO gene symbol hint
    2. A gene on the same chromosome whose interval contains the position
    3. A placeholder gene, created after re-checking by symbol

    A conflict on create (another writer got there first) is resolved by
    re-reading, which makes resolution idempotent under retry.
    """

    def __init__(self, config: ResolverConfig | None = None):
        self.config = config or ResolverConfig()

    async def resolve(self, session: StoreSession, variant: CanonicalVariant) -> Gene:
        if variant.gene_symbol_hint:
            gene = await session.find_gene_by_symbol(variant.gene_symbol_hint)
            if gene is not None:
                return gene

        gene = await session.find_gene_by_position(variant.chromosome, variant.position)
        if gene is not None:
            return gene

        return await self._create_placeholder(session, variant)

    async def _create_placeholder(self, session: StoreSession, variant: CanonicalVariant) -> Gene:
        data = build_placeholder_gene(variant, self.config)

        existing = await session.find_gene_by_symbol(data.symbol)
        if existing is not None:
            return existing

        try:
            gene = await session.create_gene(data)
        except GeneConflictError:
            logger.debug("Placeholder %s already exists, re-fetching", data.gene_id)
            gene = await session.find_gene_by_symbol(data.symbol)
            if gene is None:
                gene = await session.find_gene_by_position(variant.chromosome, variant.position)
            if gene is None:
                raise
            return gene

        logger.info(
            "Created placeholder gene %s (%s) for variant %s",
            gene.symbol,
            gene.gene_id,
            variant.variant_id,
        )
        return gene
