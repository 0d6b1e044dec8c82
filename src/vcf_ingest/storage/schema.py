"""PostgreSQL schema management for genes, variants, and import audit."""

import asyncpg


class SchemaManager:
    """Manages PostgreSQL schema for the ingestion tables."""

    async def create_schema(self, conn: asyncpg.Connection) -> None:
        """Create genes, variants, and import audit tables."""
        await self.create_genes_table(conn)
        await self.create_variants_table(conn)
        await self.create_import_audit_table(conn)

    async def create_genes_table(self, conn: asyncpg.Connection) -> None:
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS genes (
                id UUID PRIMARY KEY,
                gene_id TEXT NOT NULL UNIQUE,
                symbol TEXT NOT NULL,
                name TEXT NOT NULL,
                chromosome TEXT,
                start_position BIGINT,
                end_position BIGINT,
                strand CHAR(1),
                biotype TEXT,
                description TEXT,
                metadata JSONB NOT NULL DEFAULT '{}',
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
        """)

    async def create_variants_table(self, conn: asyncpg.Connection) -> None:
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS variants (
                id UUID PRIMARY KEY,
                variant_id TEXT NOT NULL UNIQUE,
                gene_id UUID NOT NULL REFERENCES genes(id),
                chromosome TEXT NOT NULL,
                position BIGINT NOT NULL,
                reference_allele TEXT NOT NULL,
                alternate_allele TEXT NOT NULL,
                variant_type TEXT,
                consequence TEXT,
                impact TEXT,
                protein_change TEXT,
                transcript_id TEXT,
                frequency DOUBLE PRECISION,
                clinical_significance TEXT,
                metadata JSONB NOT NULL DEFAULT '{}',
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
        """)

    async def create_import_audit_table(self, conn: asyncpg.Connection) -> None:
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS import_audit_log (
                audit_id SERIAL PRIMARY KEY,
                job_id TEXT NOT NULL UNIQUE,
                status TEXT NOT NULL,
                source_name TEXT,
                reference_genome TEXT,
                total INTEGER NOT NULL,
                successful INTEGER NOT NULL,
                failed INTEGER NOT NULL,
                warnings INTEGER NOT NULL,
                result JSONB NOT NULL,
                started_at TIMESTAMPTZ,
                completed_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
        """)

    async def create_indexes(self, conn: asyncpg.Connection) -> None:
        """Create indexes backing gene resolution and duplicate lookups."""
        await conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_genes_symbol
            ON genes (symbol)
        """)

        await conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_genes_region
            ON genes (chromosome, start_position, end_position)
        """)

        await conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_variants_locus
            ON variants (chromosome, position)
        """)

        await conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_variants_gene_id
            ON variants (gene_id)
        """)

        await conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_import_audit_completed
            ON import_audit_log (completed_at DESC)
        """)

    async def drop_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute("DROP TABLE IF EXISTS variants CASCADE")
        await conn.execute("DROP TABLE IF EXISTS genes CASCADE")
        await conn.execute("DROP TABLE IF EXISTS import_audit_log CASCADE")

    async def verify_schema(self, conn: asyncpg.Connection) -> bool:
        """Verify all ingestion tables exist."""
        count = await conn.fetchval("""
            SELECT COUNT(*) FROM information_schema.tables
            WHERE table_name IN ('genes', 'variants', 'import_audit_log')
        """)
        return count == 3
