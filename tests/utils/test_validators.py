"""Tests for input validation utilities."""

import pytest

from vcf_ingest.models import VCFRecord
from vcf_ingest.utils.validators import (
    ValidationError,
    validate_genome_build,
    validate_variant_fields,
)


class TestValidateVariantFields:
    def test_complete_record_passes(self):
        validate_variant_fields(VCFRecord(chromosome="1", position=100, reference="A", alternate="G"))

    def test_missing_fields_are_listed(self):
        record = VCFRecord(chromosome="", position=100, reference="A", alternate="")

        with pytest.raises(ValidationError) as exc_info:
            validate_variant_fields(record)

        message = str(exc_info.value)
        assert message.startswith("Missing required VCF fields")
        assert "chromosome" in message
        assert "alternate" in message
        assert "reference" not in message

    def test_zero_position_is_missing(self):
        record = VCFRecord(chromosome="1", position=0, reference="A", alternate="G")

        with pytest.raises(ValidationError, match="position"):
            validate_variant_fields(record)


class TestValidateGenomeBuild:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("GRCh38", "GRCh38"),
            ("hg38", "GRCh38"),
            ("GRCh37", "GRCh37"),
            ("hg19", "GRCh37"),
            ("  HG19  ", "GRCh37"),
            ("file:///refs/hg38.fa", "GRCh38"),
            ("/data/GRCh37.fasta.gz", "GRCh37"),
        ],
    )
    def test_aliases(self, value, expected):
        assert validate_genome_build(value) == expected

    def test_empty_uses_default(self):
        assert validate_genome_build(None) == "GRCh38"
        assert validate_genome_build("", default=None) is None

    def test_unknown_build_rejected(self):
        with pytest.raises(ValidationError, match="Invalid genome build"):
            validate_genome_build("mm10")
