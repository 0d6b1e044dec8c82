"""Caching decorator around a VariantStore.

Only positive gene-by-symbol lookups are cached. Entries observed or created
inside a transaction are kept private to that session and published to the
shared cache after the transaction commits, so a rolled-back batch never
leaves phantom genes behind. Positional lookups and variant lookups always
go to the underlying store.
"""

import logging
from collections import OrderedDict
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from ..models import Gene, GeneCreate, StoredVariant, VariantCreate
from .base import StoreSession, VariantStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 10_000


class GeneCache:
    """Bounded LRU mapping of gene symbol to Gene."""

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES):
        self.max_entries = max_entries
        self._entries: OrderedDict[str, Gene] = OrderedDict()
        self.hits = 0
        self.misses = 0

    def get(self, symbol: str) -> Gene | None:
        gene = self._entries.get(symbol)
        if gene is None:
            self.misses += 1
            return None
        self._entries.move_to_end(symbol)
        self.hits += 1
        return gene

    def publish(self, genes: dict[str, Gene]) -> None:
        for symbol, gene in genes.items():
            self._entries[symbol] = gene
            self._entries.move_to_end(symbol)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def invalidate(self, symbol: str | None = None) -> None:
        if symbol is None:
            self._entries.clear()
        else:
            self._entries.pop(symbol, None)

    def __len__(self) -> int:
        return len(self._entries)


class CachedVariantStore:
    """VariantStore decorator that caches gene symbol lookups."""

    def __init__(self, inner: VariantStore, max_entries: int = DEFAULT_MAX_ENTRIES):
        self._inner = inner
        self.cache = GeneCache(max_entries)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["CachedSession"]:
        async with self._inner.transaction() as session:
            cached = CachedSession(session, self.cache)
            yield cached
        self.cache.publish(cached.observed)
        logger.debug("Published %d gene cache entries", len(cached.observed))


class CachedSession:
    """Session wrapper consulting the shared cache before the store."""

    def __init__(self, inner: StoreSession, cache: GeneCache):
        self._inner = inner
        self._cache = cache
        self.observed: dict[str, Gene] = {}

    async def find_gene_by_symbol(self, symbol: str) -> Gene | None:
        if symbol in self.observed:
            return self.observed[symbol]
        gene = self._cache.get(symbol)
        if gene is not None:
            return gene
        gene = await self._inner.find_gene_by_symbol(symbol)
        if gene is not None:
            self.observed[symbol] = gene
        return gene

    async def find_gene_by_position(self, chromosome: str, position: int) -> Gene | None:
        return await self._inner.find_gene_by_position(chromosome, position)

    async def create_gene(self, data: GeneCreate) -> Gene:
        gene = await self._inner.create_gene(data)
        self.observed.setdefault(gene.symbol, gene)
        return gene

    async def find_variant(
        self, variant_id: str, key: tuple[str, int, str, str]
    ) -> StoredVariant | None:
        return await self._inner.find_variant(variant_id, key)

    async def create_variant(self, data: VariantCreate) -> StoredVariant:
        return await self._inner.create_variant(data)

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        snapshot = dict(self.observed)
        try:
            async with self._inner.savepoint():
                yield
        except BaseException:
            self.observed = snapshot
            raise
