"""vcf-ingest: VCF variant ingestion with gene resolution and deduplication."""

__version__ = "0.1.0"
