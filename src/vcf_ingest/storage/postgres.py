"""PostgreSQL storage adapter built on asyncpg."""

import json
import logging
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager
from uuid import uuid4

import asyncpg

from ..errors import (
    GeneConflictError,
    StorageUnavailableError,
    VariantConflictError,
)
from ..models import Gene, GeneCreate, StoredVariant, VariantCreate
from ..utils.variant_matching import variant_key

logger = logging.getLogger(__name__)

CONNECTION_ERRORS = (
    OSError,
    asyncpg.PostgresConnectionError,
    asyncpg.InterfaceError,
    asyncpg.CannotConnectNowError,
)


@contextmanager
def _storage_errors() -> Iterator[None]:
    """Translate connection-level asyncpg failures into StorageUnavailableError."""
    try:
        yield
    except CONNECTION_ERRORS as e:
        raise StorageUnavailableError(f"Database unavailable: {e}") from e


class PostgresVariantStore:
    """Variant store backed by a PostgreSQL connection pool."""

    def __init__(
        self,
        db_url: str,
        min_size: int = 1,
        max_size: int = 4,
        command_timeout: float = 300,
    ):
        self.db_url = db_url
        self.min_size = min_size
        self.max_size = max_size
        self.command_timeout = command_timeout
        self.pool: asyncpg.Pool | None = None

    async def connect(self) -> None:
        """Establish database connection pool."""
        with _storage_errors():
            self.pool = await asyncpg.create_pool(
                self.db_url,
                min_size=self.min_size,
                max_size=self.max_size,
                command_timeout=self.command_timeout,
            )

    async def close(self) -> None:
        """Close database connection pool."""
        if self.pool is not None:
            await self.pool.close()
            self.pool = None

    async def count_rows(self) -> dict[str, int]:
        """Row totals for the genes and variants tables."""
        if self.pool is None:
            await self.connect()

        with _storage_errors():
            async with self.pool.acquire() as conn:
                genes = await conn.fetchval("SELECT COUNT(*) FROM genes")
                variants = await conn.fetchval("SELECT COUNT(*) FROM variants")
        return {"genes": genes, "variants": variants}

    async def __aenter__(self) -> "PostgresVariantStore":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["PostgresSession"]:
        if self.pool is None:
            await self.connect()

        with _storage_errors():
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    yield PostgresSession(conn)


class PostgresSession:
    """Queries issued on one connection inside an open transaction."""

    def __init__(self, conn: asyncpg.Connection):
        self._conn = conn

    async def find_gene_by_symbol(self, symbol: str) -> Gene | None:
        with _storage_errors():
            row = await self._conn.fetchrow(
                """
                SELECT * FROM genes
                WHERE symbol = $1
                ORDER BY created_at, gene_id
                LIMIT 1
                """,
                symbol,
            )
        return _row_to_gene(row) if row else None

    async def find_gene_by_position(self, chromosome: str, position: int) -> Gene | None:
        with _storage_errors():
            row = await self._conn.fetchrow(
                """
                SELECT * FROM genes
                WHERE chromosome = $1
                  AND start_position <= $2
                  AND end_position >= $2
                ORDER BY start_position, created_at
                LIMIT 1
                """,
                chromosome,
                position,
            )
        return _row_to_gene(row) if row else None

    async def create_gene(self, data: GeneCreate) -> Gene:
        with _storage_errors():
            try:
                async with self._conn.transaction():
                    row = await self._conn.fetchrow(
                        """
                        INSERT INTO genes (
                            id, gene_id, symbol, name, chromosome,
                            start_position, end_position, strand, biotype,
                            description, metadata
                        ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11::jsonb)
                        RETURNING *
                        """,
                        uuid4(),
                        data.gene_id,
                        data.symbol,
                        data.name,
                        data.chromosome,
                        data.start,
                        data.end,
                        data.strand,
                        data.biotype,
                        data.description,
                        json.dumps(data.metadata),
                    )
            except asyncpg.UniqueViolationError as e:
                raise GeneConflictError(f"Gene {data.gene_id} already exists") from e
        return _row_to_gene(row)

    async def find_variant(
        self, variant_id: str, key: tuple[str, int, str, str]
    ) -> StoredVariant | None:
        chrom, pos, ref, alt = variant_key(*key)
        with _storage_errors():
            row = await self._conn.fetchrow(
                """
                SELECT id, variant_id, gene_id, chromosome, position,
                       reference_allele, alternate_allele
                FROM variants
                WHERE variant_id = $1
                   OR (chromosome = $2 AND position = $3
                       AND upper(reference_allele) = $4
                       AND upper(alternate_allele) = $5)
                ORDER BY (variant_id = $1) DESC
                LIMIT 1
                """,
                variant_id,
                chrom,
                pos,
                ref,
                alt,
            )
        return _row_to_variant(row) if row else None

    async def create_variant(self, data: VariantCreate) -> StoredVariant:
        v = data.variant
        with _storage_errors():
            try:
                async with self._conn.transaction():
                    row = await self._conn.fetchrow(
                        """
                        INSERT INTO variants (
                            id, variant_id, gene_id, chromosome, position,
                            reference_allele, alternate_allele, variant_type,
                            consequence, impact, protein_change, transcript_id,
                            frequency, clinical_significance, metadata
                        ) VALUES (
                            $1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12,
                            $13, $14, $15::jsonb
                        )
                        RETURNING id, variant_id, gene_id, chromosome, position,
                                  reference_allele, alternate_allele
                        """,
                        uuid4(),
                        v.variant_id,
                        data.gene_id,
                        v.chromosome,
                        v.position,
                        v.reference,
                        v.alternate,
                        v.variant_type.value,
                        v.consequence,
                        v.impact,
                        v.protein_change,
                        v.transcript_id,
                        v.frequency,
                        v.clinical_significance,
                        json.dumps(v.metadata),
                    )
            except asyncpg.UniqueViolationError as e:
                raise VariantConflictError(f"Variant {v.variant_id} already exists") from e
        return _row_to_variant(row)

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        with _storage_errors():
            async with self._conn.transaction():
                yield


def _row_to_gene(row: asyncpg.Record) -> Gene:
    metadata = row["metadata"]
    if isinstance(metadata, str):
        metadata = json.loads(metadata)
    return Gene(
        id=str(row["id"]),
        gene_id=row["gene_id"],
        symbol=row["symbol"],
        name=row["name"],
        chromosome=row["chromosome"],
        start=row["start_position"],
        end=row["end_position"],
        strand=row["strand"],
        biotype=row["biotype"],
        description=row["description"],
        metadata=metadata or {},
    )


def _row_to_variant(row: asyncpg.Record) -> StoredVariant:
    return StoredVariant(
        id=str(row["id"]),
        variant_id=row["variant_id"],
        gene_id=str(row["gene_id"]),
        chromosome=row["chromosome"],
        position=row["position"],
        reference=row["reference_allele"],
        alternate=row["alternate_allele"],
    )
