"""Storage port used by the ingestion pipeline.

The pipeline never touches a database directly. It opens one transaction per
batch through ``VariantStore.transaction()`` and issues reads and writes on
the yielded ``StoreSession``. Each record runs inside ``session.savepoint()``
so a failing write is rolled back without aborting the batch.
"""

from contextlib import AbstractAsyncContextManager
from typing import Protocol

from ..models import Gene, GeneCreate, StoredVariant, VariantCreate


class StoreSession(Protocol):
    """Operations available inside one storage transaction."""

    async def find_gene_by_symbol(self, symbol: str) -> Gene | None:
        """Return a gene whose symbol matches exactly, or None."""
        ...

    async def find_gene_by_position(self, chromosome: str, position: int) -> Gene | None:
        """Return a gene on ``chromosome`` with start <= position <= end, or None."""
        ...

    async def create_gene(self, data: GeneCreate) -> Gene:
        """Insert a gene.

        Raises:
            GeneConflictError: If a gene with the same unique key exists
        """
        ...

    async def find_variant(
        self, variant_id: str, key: tuple[str, int, str, str]
    ) -> StoredVariant | None:
        """Return a variant matching ``variant_id`` or the positional key."""
        ...

    async def create_variant(self, data: VariantCreate) -> StoredVariant:
        """Insert a variant.

        Raises:
            VariantConflictError: If a variant with the same identifier exists
        """
        ...

    def savepoint(self) -> AbstractAsyncContextManager[None]:
        """Nested unit of work that rolls back on exception and re-raises."""
        ...


class VariantStore(Protocol):
    """Transactional store for genes and variants."""

    def transaction(self) -> AbstractAsyncContextManager[StoreSession]:
        """Open a transaction that commits on clean exit and rolls back on error."""
        ...
