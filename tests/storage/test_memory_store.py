"""Tests for the transactional in-memory store."""

import time

import pytest
from fixtures.vcf_generator import SyntheticVariant, VCFGenerator

from vcf_ingest.errors import GeneConflictError, VariantConflictError
from vcf_ingest.importer import ImportConfig, VCFImporter
from vcf_ingest.models import CanonicalVariant, GeneCreate, VariantCreate, VariantType
from vcf_ingest.storage import InMemoryVariantStore


def gene_input(gene_id="ENSG1", symbol="G1", start=100, end=900) -> GeneCreate:
    return GeneCreate(gene_id=gene_id, symbol=symbol, name=symbol, chromosome="1", start=start, end=end)


def variant_input(gene_id: str, variant_id="rs1", position=500) -> VariantCreate:
    return VariantCreate(
        variant=CanonicalVariant(
            variant_id=variant_id,
            chromosome="1",
            position=position,
            reference="A",
            alternate="G",
            variant_type=VariantType.SNV,
        ),
        gene_id=gene_id,
    )


class TestTransactions:
    @pytest.mark.asyncio
    async def test_commit_publishes_writes(self, memory_store):
        async with memory_store.transaction() as session:
            gene = await session.create_gene(gene_input())
            await session.create_variant(variant_input(gene.id))
            assert memory_store.genes == []

        assert [g.gene_id for g in memory_store.genes] == ["ENSG1"]
        assert [v.variant_id for v in memory_store.variants] == ["rs1"]
        assert memory_store.commits == 1

    @pytest.mark.asyncio
    async def test_exception_rolls_back(self, memory_store):
        with pytest.raises(RuntimeError):
            async with memory_store.transaction() as session:
                await session.create_gene(gene_input())
                raise RuntimeError("boom")

        assert memory_store.genes == []
        assert memory_store.rollbacks == 1
        assert memory_store.commits == 0

    @pytest.mark.asyncio
    async def test_uncommitted_writes_invisible_to_other_sessions(self, memory_store):
        async with memory_store.transaction() as first:
            await first.create_gene(gene_input())
            async with memory_store.transaction() as second:
                assert await second.find_gene_by_symbol("G1") is None

    @pytest.mark.asyncio
    async def test_concurrent_commit_conflict(self, memory_store):
        with pytest.raises(GeneConflictError):
            async with memory_store.transaction() as first:
                await first.create_gene(gene_input())
                async with memory_store.transaction() as second:
                    await second.create_gene(gene_input())

        assert len(memory_store.genes) == 1


class TestSavepoints:
    @pytest.mark.asyncio
    async def test_savepoint_discards_only_its_writes(self, memory_store):
        async with memory_store.transaction() as session:
            gene = await session.create_gene(gene_input())
            with pytest.raises(ValueError):
                async with session.savepoint():
                    await session.create_variant(variant_input(gene.id, "rs1"))
                    await session.create_gene(gene_input("ENSG2", "G2"))
                    raise ValueError("record failed")
            await session.create_variant(variant_input(gene.id, "rs2", position=600))

        assert [g.gene_id for g in memory_store.genes] == ["ENSG1"]
        assert [v.variant_id for v in memory_store.variants] == ["rs2"]

    @pytest.mark.asyncio
    async def test_rolled_back_writes_leave_lookups(self, memory_store):
        async with memory_store.transaction() as session:
            gene = await session.create_gene(gene_input())
            with pytest.raises(ValueError):
                async with session.savepoint():
                    await session.create_variant(variant_input(gene.id, "rs1"))
                    await session.create_gene(gene_input("ENSG2", "G2", start=2000, end=3000))
                    raise ValueError("record failed")

            assert await session.find_gene_by_symbol("G2") is None
            assert await session.find_gene_by_position("1", 2500) is None
            assert await session.find_variant("rs1", ("1", 500, "A", "G")) is None
            await session.create_variant(variant_input(gene.id, "rs1"))

        assert [v.variant_id for v in memory_store.variants] == ["rs1"]


class TestLookups:
    @pytest.mark.asyncio
    async def test_duplicate_gene_id_rejected(self, memory_store):
        memory_store.seed_gene(gene_input())

        async with memory_store.transaction() as session:
            with pytest.raises(GeneConflictError):
                await session.create_gene(gene_input())

    @pytest.mark.asyncio
    async def test_duplicate_variant_id_rejected(self, memory_store):
        gene = memory_store.seed_gene(gene_input())

        async with memory_store.transaction() as session:
            await session.create_variant(variant_input(gene.id))
            with pytest.raises(VariantConflictError):
                await session.create_variant(variant_input(gene.id, position=700))

    @pytest.mark.asyncio
    async def test_position_lookup_orders_by_start(self, memory_store):
        memory_store.seed_gene(gene_input("ENSG_B", "B", start=400, end=800))
        memory_store.seed_gene(gene_input("ENSG_A", "A", start=100, end=900))

        async with memory_store.transaction() as session:
            gene = await session.find_gene_by_position("1", 500)
            missing = await session.find_gene_by_position("2", 500)

        assert gene.symbol == "A"
        assert missing is None

    @pytest.mark.asyncio
    async def test_find_variant_by_key_is_case_insensitive(self, memory_store):
        gene = memory_store.seed_gene(gene_input())
        async with memory_store.transaction() as session:
            await session.create_variant(variant_input(gene.id))

        async with memory_store.transaction() as session:
            found = await session.find_variant("other", ("chr1", 500, "a", "g"))

        assert found is not None
        assert found.variant_id == "rs1"

    @pytest.mark.asyncio
    async def test_pending_gene_found_alongside_committed(self, memory_store):
        memory_store.seed_gene(gene_input("ENSG_B", "B", start=400, end=800))

        async with memory_store.transaction() as session:
            await session.create_gene(gene_input("ENSG_A", "A", start=100, end=900))
            gene = await session.find_gene_by_position("1", 500)
            outside = await session.find_gene_by_position("1", 950)

        assert gene.symbol == "A"
        assert outside is None

    @pytest.mark.asyncio
    async def test_wide_gene_found_far_from_start(self, memory_store):
        memory_store.seed_gene(gene_input("ENSG_W", "W", start=1, end=2_000_000))
        memory_store.seed_gene(gene_input("ENSG_N", "N", start=1_500_000, end=1_501_000))

        async with memory_store.transaction() as session:
            gene = await session.find_gene_by_position("1", 1_900_000)

        assert gene.symbol == "W"


class TestScale:
    @pytest.mark.asyncio
    async def test_large_dry_run_import(self, memory_store):
        text = VCFGenerator.generate(
            [
                SyntheticVariant(chrom="chr1", pos=5000 * i, ref="A", alt="G", rs_id=f"rs{i}")
                for i in range(1, 5001)
            ],
            samples=[],
        )
        importer = VCFImporter(memory_store, ImportConfig(batch_size=500))

        started = time.perf_counter()
        result = await importer.import_vcf(text)
        elapsed = time.perf_counter() - started

        assert result.successful == 5000
        assert len(memory_store.genes) == 5000
        assert elapsed < 10
