"""Transactional in-memory store used for dry runs and tests."""

import logging
from bisect import bisect_left, bisect_right, insort
from collections import ChainMap, defaultdict
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from itertools import count
from math import inf
from uuid import uuid4

from ..errors import GeneConflictError, VariantConflictError
from ..models import Gene, GeneCreate, StoredVariant, VariantCreate
from ..utils.variant_matching import match_variant, variant_key

logger = logging.getLogger(__name__)

VariantKey = tuple[str, int, str, str]


class _Index:
    """Lookup tables over a set of genes and variants.

    Symbol lookups keep the first gene inserted under a symbol. Positional
    variant keys map to the last variant inserted with that key. Genes are
    kept sorted by start per chromosome; a position only needs to look back
    as far as the widest gene on that chromosome.
    """

    def __init__(self) -> None:
        self.genes_by_gene_id: dict[str, Gene] = {}
        self.genes_by_symbol: dict[str, Gene] = {}
        self.gene_starts: defaultdict[str, list[tuple[int, int, Gene]]] = defaultdict(list)
        self.widest_gene: defaultdict[str, int] = defaultdict(int)
        self.variant_rows: dict[str, StoredVariant] = {}
        self.variants_by_id: dict[str, str] = {}
        self.variants_by_key: dict[VariantKey, str] = {}
        self._sequence = count()

    def add_gene(self, gene: Gene) -> None:
        self.genes_by_gene_id[gene.gene_id] = gene
        self.genes_by_symbol.setdefault(gene.symbol, gene)
        if gene.start is None or gene.end is None:
            return
        insort(self.gene_starts[gene.chromosome], (gene.start, next(self._sequence), gene))
        span = gene.end - gene.start
        if span > self.widest_gene[gene.chromosome]:
            self.widest_gene[gene.chromosome] = span

    def add_variant(self, variant: StoredVariant) -> None:
        self.variant_rows[variant.id] = variant
        self.variants_by_id[variant.variant_id] = variant.id
        self.variants_by_key[variant_key(*variant.positional_key)] = variant.id

    def find_gene_at(self, chromosome: str, position: int) -> Gene | None:
        """Lowest-start gene containing the position, earliest inserted on ties."""
        starts = self.gene_starts.get(chromosome)
        if not starts:
            return None
        low = bisect_left(starts, (position - self.widest_gene[chromosome],))
        high = bisect_right(starts, (position, inf))
        for _, _, gene in starts[low:high]:
            if gene.contains(chromosome, position):
                return gene
        return None


class InMemoryVariantStore:
    """Holds committed genes and variants in process memory.

    Writes made in a transaction stay private to its session until the
    transaction commits. Unique keys (gene ``gene_id``, variant
    ``variant_id``) are enforced both on insert and at commit, so two
    concurrent imports cannot commit the same row twice.
    """

    def __init__(self) -> None:
        self.genes: list[Gene] = []
        self.variants: list[StoredVariant] = []
        self.commits = 0
        self.rollbacks = 0
        self._index = _Index()

    def seed_gene(self, data: GeneCreate) -> Gene:
        """Insert an authoritative gene outside any transaction."""
        if data.gene_id in self._index.genes_by_gene_id:
            raise GeneConflictError(f"Gene {data.gene_id} already exists")
        gene = _gene_from_create(data)
        self.genes.append(gene)
        self._index.add_gene(gene)
        return gene

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["InMemorySession"]:
        session = InMemorySession(self)
        try:
            yield session
        except BaseException:
            self.rollbacks += 1
            raise
        self._commit(session)

    def _commit(self, session: "InMemorySession") -> None:
        for gene in session.pending_genes:
            if gene.gene_id in self._index.genes_by_gene_id:
                self.rollbacks += 1
                raise GeneConflictError(f"Gene {gene.gene_id} was committed concurrently")
        for variant in session.pending_variants:
            if variant.variant_id in self._index.variants_by_id:
                self.rollbacks += 1
                raise VariantConflictError(
                    f"Variant {variant.variant_id} was committed concurrently"
                )

        for gene in session.pending_genes:
            self.genes.append(gene)
            self._index.add_gene(gene)
        for variant in session.pending_variants:
            self.variants.append(variant)
            self._index.add_variant(variant)
        self.commits += 1
        logger.debug(
            "Committed %d genes and %d variants",
            len(session.pending_genes),
            len(session.pending_variants),
        )


class InMemorySession:
    """One transaction against an InMemoryVariantStore."""

    def __init__(self, store: InMemoryVariantStore):
        self._store = store
        self.pending_genes: list[Gene] = []
        self.pending_variants: list[StoredVariant] = []
        self._pending = _Index()

    def _reindex(self) -> None:
        self._pending = _Index()
        for gene in self.pending_genes:
            self._pending.add_gene(gene)
        for variant in self.pending_variants:
            self._pending.add_variant(variant)

    async def find_gene_by_symbol(self, symbol: str) -> Gene | None:
        gene = self._store._index.genes_by_symbol.get(symbol)
        if gene is None:
            gene = self._pending.genes_by_symbol.get(symbol)
        return gene

    async def find_gene_by_position(self, chromosome: str, position: int) -> Gene | None:
        committed = self._store._index.find_gene_at(chromosome, position)
        pending = self._pending.find_gene_at(chromosome, position)
        if committed is None or (pending is not None and pending.start < committed.start):
            return pending
        return committed

    async def create_gene(self, data: GeneCreate) -> Gene:
        if (
            data.gene_id in self._store._index.genes_by_gene_id
            or data.gene_id in self._pending.genes_by_gene_id
        ):
            raise GeneConflictError(f"Gene {data.gene_id} already exists")
        gene = _gene_from_create(data)
        self.pending_genes.append(gene)
        self._pending.add_gene(gene)
        return gene

    async def find_variant(self, variant_id: str, key: VariantKey) -> StoredVariant | None:
        by_id = ChainMap(self._pending.variants_by_id, self._store._index.variants_by_id)
        by_key = ChainMap(self._pending.variants_by_key, self._store._index.variants_by_key)
        row_id = match_variant(variant_id, key, by_key, by_id)
        if row_id is None:
            return None
        return self._pending.variant_rows.get(row_id) or self._store._index.variant_rows[row_id]

    async def create_variant(self, data: VariantCreate) -> StoredVariant:
        variant = data.variant
        if (
            variant.variant_id in self._store._index.variants_by_id
            or variant.variant_id in self._pending.variants_by_id
        ):
            raise VariantConflictError(f"Variant {variant.variant_id} already exists")
        stored = StoredVariant(
            id=str(uuid4()),
            variant_id=variant.variant_id,
            gene_id=data.gene_id,
            chromosome=variant.chromosome,
            position=variant.position,
            reference=variant.reference,
            alternate=variant.alternate,
        )
        self.pending_variants.append(stored)
        self._pending.add_variant(stored)
        return stored

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        genes_mark = len(self.pending_genes)
        variants_mark = len(self.pending_variants)
        try:
            yield
        except BaseException:
            del self.pending_genes[genes_mark:]
            del self.pending_variants[variants_mark:]
            self._reindex()
            raise


def _gene_from_create(data: GeneCreate) -> Gene:
    return Gene(
        id=str(uuid4()),
        gene_id=data.gene_id,
        symbol=data.symbol,
        name=data.name,
        chromosome=data.chromosome,
        start=data.start,
        end=data.end,
        strand=data.strand,
        biotype=data.biotype,
        description=data.description,
        metadata=dict(data.metadata),
    )
