"""Integration tests for the PostgreSQL adapter and audit sink."""

import asyncpg
import pytest
from fixtures.vcf_generator import BRCA1_VCF, make_annotated_vcf, make_five_variant_vcf

from vcf_ingest.audit import JsonlAuditSink, PostgresAuditSink
from vcf_ingest.errors import GeneConflictError, StorageUnavailableError
from vcf_ingest.importer import ImportConfig, VCFImporter
from vcf_ingest.models import GeneCreate
from vcf_ingest.storage import CachedVariantStore, PostgresVariantStore, SchemaManager

pytestmark = pytest.mark.integration


@pytest.fixture
async def db_url(postgres_url):
    """Fresh schema per test."""
    url = postgres_url
    conn = await asyncpg.connect(url)
    try:
        schema_manager = SchemaManager()
        await schema_manager.drop_schema(conn)
        await schema_manager.create_schema(conn)
        await schema_manager.create_indexes(conn)
    finally:
        await conn.close()
    return url


@pytest.fixture
async def pg_store(db_url):
    async with PostgresVariantStore(db_url) as store:
        yield store


class TestSchema:
    async def test_verify_schema(self, db_url):
        conn = await asyncpg.connect(db_url)
        try:
            assert await SchemaManager().verify_schema(conn)
        finally:
            await conn.close()


class TestPostgresSession:
    async def test_gene_roundtrip(self, pg_store):
        async with pg_store.transaction() as session:
            created = await session.create_gene(
                GeneCreate(
                    gene_id="ENSG00000012048",
                    symbol="BRCA1",
                    name="BRCA1 DNA repair associated",
                    chromosome="17",
                    start=43044295,
                    end=43125483,
                    metadata={"source": "test"},
                )
            )

        async with pg_store.transaction() as session:
            by_symbol = await session.find_gene_by_symbol("BRCA1")
            by_position = await session.find_gene_by_position("17", 43100000)
            outside = await session.find_gene_by_position("17", 43125484)

        assert by_symbol.id == created.id
        assert by_position.id == created.id
        assert by_symbol.metadata == {"source": "test"}
        assert outside is None

    async def test_gene_conflict(self, pg_store):
        data = GeneCreate(gene_id="ENSG1", symbol="G1", name="G1", chromosome="1", start=1, end=10)
        async with pg_store.transaction() as session:
            await session.create_gene(data)

        async with pg_store.transaction() as session:
            with pytest.raises(GeneConflictError):
                await session.create_gene(data)
            # Transaction stays usable after the nested failure
            assert await session.find_gene_by_symbol("G1") is not None

    async def test_unreachable_database(self):
        store = PostgresVariantStore("postgresql://nobody@127.0.0.1:1/none")

        with pytest.raises(StorageUnavailableError):
            await store.connect()


class TestImportAgainstPostgres:
    async def test_brca1_scenario(self, pg_store):
        result = await VCFImporter(pg_store).import_vcf(BRCA1_VCF)

        assert (result.total, result.successful, result.failed) == (1, 1, 0)
        async with pg_store.pool.acquire() as conn:
            gene = await conn.fetchrow("SELECT * FROM genes WHERE symbol = 'BRCA1'")
            variant = await conn.fetchrow("SELECT * FROM variants WHERE variant_id = 'rs1'")

        assert gene["start_position"] == 1049000
        assert variant["gene_id"] == gene["id"]
        assert variant["frequency"] == pytest.approx(0.001)
        assert variant["variant_type"] == "SNV"

    async def test_reimport_is_idempotent(self, pg_store):
        importer = VCFImporter(CachedVariantStore(pg_store), ImportConfig(batch_size=2))
        text = make_five_variant_vcf()

        first = await importer.import_vcf(text)
        second = await importer.import_vcf(text)

        assert first.successful == 5
        assert second.successful == 0
        assert len(second.warnings) == 5
        async with pg_store.pool.acquire() as conn:
            assert await conn.fetchval("SELECT COUNT(*) FROM variants") == 5
            assert await conn.fetchval("SELECT COUNT(*) FROM genes") == 5

    async def test_audit_row_written(self, pg_store, tmp_path):
        sink = PostgresAuditSink(pg_store.pool, fallback=JsonlAuditSink(tmp_path / "audit.jsonl"))
        importer = VCFImporter(pg_store, audit_sink=sink)

        await importer.import_vcf(make_annotated_vcf(), job_id="job-pg", source_name="a.vcf")

        entry = await sink.get_entry("job-pg")
        assert entry["status"] == "completed"
        assert entry["result"]["successful"] == 2
        assert entry["reference_genome"] == "GRCh38"

    async def test_recent_entries_newest_first(self, pg_store, tmp_path):
        sink = PostgresAuditSink(pg_store.pool, fallback=JsonlAuditSink(tmp_path / "audit.jsonl"))
        importer = VCFImporter(pg_store, audit_sink=sink)

        await importer.import_vcf(make_annotated_vcf(), job_id="job-old", source_name="a.vcf")
        await importer.import_vcf(BRCA1_VCF, job_id="job-new", source_name="b.vcf")

        entries = await sink.recent_entries(limit=5)
        assert [e["job_id"] for e in entries] == ["job-new", "job-old"]
        assert [e["job_id"] for e in await sink.recent_entries(limit=1)] == ["job-new"]

    async def test_count_rows(self, pg_store):
        assert await pg_store.count_rows() == {"genes": 0, "variants": 0}

        await VCFImporter(pg_store).import_vcf(make_five_variant_vcf())

        assert await pg_store.count_rows() == {"genes": 5, "variants": 5}
