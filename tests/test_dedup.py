"""Tests for duplicate detection."""

import pytest

from vcf_ingest.dedup import DeduplicationGate
from vcf_ingest.models import CanonicalVariant, GeneCreate, VariantCreate, VariantType
from vcf_ingest.storage import InMemoryVariantStore


def make_variant(variant_id="rs1", chromosome="1", position=100, ref="A", alt="G"):
    return CanonicalVariant(
        variant_id=variant_id,
        chromosome=chromosome,
        position=position,
        reference=ref,
        alternate=alt,
        variant_type=VariantType.SNV,
    )


@pytest.fixture
def store_with_variant():
    store = InMemoryVariantStore()
    gene = store.seed_gene(
        GeneCreate(gene_id="ENSG1", symbol="G1", name="G1", chromosome="1", start=1, end=1000)
    )
    store.seed_gene(
        GeneCreate(gene_id="ENSG2", symbol="G2", name="G2", chromosome="1", start=1, end=1000)
    )
    return store, gene


async def store_variant(store, variant, gene_id):
    async with store.transaction() as session:
        await session.create_variant(VariantCreate(variant=variant, gene_id=gene_id))


class TestDeduplicationGate:
    @pytest.mark.asyncio
    async def test_new_variant_not_duplicate(self, store_with_variant):
        store, gene = store_with_variant
        gate = DeduplicationGate()

        async with store.transaction() as session:
            assert await gate.find_duplicate(session, make_variant(), gene.id) is None

    @pytest.mark.asyncio
    async def test_matches_by_identifier(self, store_with_variant):
        store, gene = store_with_variant
        await store_variant(store, make_variant(), gene.id)
        gate = DeduplicationGate()

        async with store.transaction() as session:
            existing = await gate.find_duplicate(
                session, make_variant(position=999, alt="T"), gene.id
            )

        assert existing is not None
        assert existing.variant_id == "rs1"

    @pytest.mark.asyncio
    async def test_matches_by_position_and_alleles(self, store_with_variant):
        store, gene = store_with_variant
        await store_variant(store, make_variant(), gene.id)

        async with store.transaction() as session:
            existing = await DeduplicationGate().find_duplicate(
                session, make_variant(variant_id="1_100_A_G"), gene.id
            )

        assert existing is not None
        assert existing.variant_id == "rs1"

    @pytest.mark.asyncio
    async def test_gene_association_ignored(self, store_with_variant, caplog):
        store, gene = store_with_variant
        await store_variant(store, make_variant(), gene.id)
        other_gene = store.genes[1]

        with caplog.at_level("DEBUG", logger="vcf_ingest.dedup"):
            async with store.transaction() as session:
                existing = await DeduplicationGate().find_duplicate(
                    session, make_variant(), other_gene.id
                )

        assert existing.gene_id == gene.id
        assert "is stored under gene" in caplog.text

    @pytest.mark.asyncio
    async def test_different_alt_not_duplicate(self, store_with_variant):
        store, gene = store_with_variant
        await store_variant(store, make_variant(), gene.id)

        async with store.transaction() as session:
            existing = await DeduplicationGate().find_duplicate(
                session, make_variant(variant_id="1_100_A_T", alt="T"), gene.id
            )

        assert existing is None
