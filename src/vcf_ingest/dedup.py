"""Duplicate detection against stored variants."""

import logging

from .models import CanonicalVariant, StoredVariant
from .storage.base import StoreSession

logger = logging.getLogger(__name__)

DUPLICATE_WARNING = "Variant already exists, skipped"


class DeduplicationGate:
    """Decides whether a variant is already stored.

    A candidate is a duplicate when its identifier matches a stored
    variant, or when (chromosome, position, ref, alt) matches a stored row.
    The gene association is not part of the identity: the first import's
    gene wins and later imports never overwrite it.
    """

    async def find_duplicate(
        self, session: StoreSession, variant: CanonicalVariant, gene_id: str
    ) -> StoredVariant | None:
        existing = await session.find_variant(variant.variant_id, variant.positional_key)
        if existing is None:
            return None

        if existing.gene_id != gene_id:
            logger.debug(
                "Duplicate %s is stored under gene %s, incoming record resolved to %s",
                variant.variant_id,
                existing.gene_id,
                gene_id,
            )
        return existing
