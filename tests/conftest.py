"""Pytest configuration and fixtures for vcf-ingest tests."""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent))

from fixtures.vcf_generator import (  # noqa: E402
    SyntheticVariant,
    VCFGenerator,
)

from vcf_ingest.audit import InMemoryAuditSink  # noqa: E402
from vcf_ingest.storage import InMemoryVariantStore  # noqa: E402

try:
    from testcontainers.postgres import PostgresContainer

    HAS_TESTCONTAINERS = True
except ImportError:
    HAS_TESTCONTAINERS = False


def _asyncpg_url(container) -> str:
    url = container.get_connection_url()
    for driver_prefix in ("postgresql+psycopg2://", "postgresql+psycopg://"):
        if url.startswith(driver_prefix):
            url = url.replace(driver_prefix, "postgresql://")
    return url


@pytest.fixture(scope="session")
def postgres_container():
    """Create a PostgreSQL container for integration tests."""
    if not HAS_TESTCONTAINERS:
        pytest.skip("testcontainers not installed")

    postgres = PostgresContainer("postgres:15")
    try:
        postgres.start()
    except Exception as e:
        pytest.skip(f"PostgreSQL container unavailable: {e}")

    try:
        yield postgres
    finally:
        postgres.stop()


@pytest.fixture(scope="session")
def postgres_url(postgres_container) -> str:
    """asyncpg-compatible connection URL for the test container."""
    return _asyncpg_url(postgres_container)


@pytest.fixture
def memory_store() -> InMemoryVariantStore:
    return InMemoryVariantStore()


@pytest.fixture
def audit_sink() -> InMemoryAuditSink:
    return InMemoryAuditSink()


@pytest.fixture
def vcf_generator():
    """Provide VCFGenerator class for tests."""
    return VCFGenerator


@pytest.fixture
def synthetic_variant_factory():
    """Factory for creating SyntheticVariant instances."""

    def _factory(**kwargs):
        defaults = {
            "chrom": "chr1",
            "pos": 100,
            "ref": "A",
            "alt": "G",
        }
        defaults.update(kwargs)
        return SyntheticVariant(**defaults)

    return _factory


@pytest.fixture
def vcf_file_factory():
    """Write generated VCFs to temp files and clean them up afterwards."""
    paths: list[Path] = []

    def _factory(variants, samples=None, compress=False) -> Path:
        path = VCFGenerator.generate_file(variants, samples, compress=compress)
        paths.append(path)
        return path

    yield _factory

    for path in paths:
        if path.exists():
            path.unlink()
