"""Synthetic VCF generator for unit tests."""

import gzip
import tempfile
from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class SyntheticVariant:
    """Represents a synthetic variant for testing."""

    chrom: str
    pos: int
    ref: str
    alt: str
    qual: float | None = 30.0
    filter: str = "PASS"
    info: dict = field(default_factory=dict)
    format_fields: dict = field(default_factory=dict)
    rs_id: str = "."


class VCFGenerator:
    """Generate minimal VCFs for targeted unit tests."""

    HEADER_TEMPLATE = """##fileformat=VCFv4.2
##reference=GRCh38
##INFO=<ID=AF,Number=A,Type=Float,Description="Allele Frequency">
##INFO=<ID=MAF,Number=1,Type=Float,Description="Minor Allele Frequency">
##INFO=<ID=GENE_SYMBOL,Number=1,Type=String,Description="Gene symbol">
##INFO=<ID=SYMBOL,Number=1,Type=String,Description="Gene symbol, VEP style">
##INFO=<ID=CLNSIG,Number=.,Type=String,Description="Clinical significance">
##INFO=<ID=DB,Number=0,Type=Flag,Description="dbSNP membership">
##FORMAT=<ID=GT,Number=1,Type=String,Description="Genotype">
##FORMAT=<ID=DP,Number=1,Type=Integer,Description="Read Depth">
##contig=<ID=chr1,length=248956422>
##contig=<ID=chr17,length=83257441>
##contig=<ID=chrX,length=156040895>
"""

    @classmethod
    def generate(
        cls, variants: list[SyntheticVariant], samples: list[str] | None = None
    ) -> str:
        """Generate a minimal VCF string.

        Pass ``samples=[]`` for a sites-only VCF without FORMAT columns.
        """
        samples = ["SAMPLE1"] if samples is None else samples
        columns = "#CHROM\tPOS\tID\tREF\tALT\tQUAL\tFILTER\tINFO"
        if samples:
            columns += "\tFORMAT\t" + "\t".join(samples)
        lines = [cls.HEADER_TEMPLATE.strip(), columns]

        for v in variants:
            info_str = cls._format_info(v.info) if v.info else "."
            qual_str = str(v.qual) if v.qual is not None else "."
            line = f"{v.chrom}\t{v.pos}\t{v.rs_id}\t{v.ref}\t{v.alt}\t{qual_str}\t{v.filter}\t{info_str}"

            if samples:
                format_keys = ["GT"]
                if v.format_fields:
                    first_sample = list(v.format_fields.values())[0]
                    format_keys = list(first_sample.keys())

                sample_cols = []
                for sample in samples:
                    if v.format_fields and sample in v.format_fields:
                        vals = [str(v.format_fields[sample].get(k, ".")) for k in format_keys]
                        sample_cols.append(":".join(vals))
                    else:
                        sample_cols.append("0/1")
                line += f"\t{':'.join(format_keys)}\t" + "\t".join(sample_cols)

            lines.append(line)

        return "\n".join(lines) + "\n"

    @classmethod
    def generate_file(
        cls,
        variants: list[SyntheticVariant],
        samples: list[str] | None = None,
        compress: bool = False,
    ) -> Path:
        """Generate a VCF file and return the path."""
        content = cls.generate(variants, samples)
        suffix = ".vcf.gz" if compress else ".vcf"
        with tempfile.NamedTemporaryFile(suffix=suffix, delete=False) as f:
            data = content.encode("utf-8")
            f.write(gzip.compress(data) if compress else data)
            return Path(f.name)

    @staticmethod
    def _format_info(info: dict) -> str:
        parts = []
        for k, v in info.items():
            if v is True:
                parts.append(k)
            elif isinstance(v, list):
                parts.append(f"{k}={','.join(map(str, v))}")
            else:
                parts.append(f"{k}={v}")
        return ";".join(parts) if parts else "."


BRCA1_VCF = (
    "##fileformat=VCFv4.2\n"
    "#CHROM\tPOS\tID\tREF\tALT\tQUAL\tFILTER\tINFO\n"
    "1\t1050000\trs1\tA\tG\t99\tPASS\tGENE_SYMBOL=BRCA1;AF=0.001"
)


def make_five_variant_vcf() -> str:
    """Five SNVs on chr1, far enough apart to need separate placeholder genes."""
    return VCFGenerator.generate(
        [
            SyntheticVariant(chrom="chr1", pos=10_000 * i, ref="A", alt="G", rs_id=f"rs{i}")
            for i in range(1, 6)
        ],
        samples=[],
    )


def make_mixed_type_vcf() -> str:
    """One variant of each type, plus a 5-field malformed line."""
    content = VCFGenerator.generate(
        [
            SyntheticVariant(chrom="chr1", pos=100, ref="A", alt="G", info={"AF": 0.25}),
            SyntheticVariant(chrom="chr1", pos=200, ref="AG", alt="A"),
            SyntheticVariant(chrom="chr17", pos=300, ref="A", alt="AG"),
            SyntheticVariant(chrom="chrX", pos=400, ref="AG", alt="CT"),
        ]
    )
    return content + "chr1\t500\t.\tA\tG\n"


def make_annotated_vcf() -> str:
    """Variants carrying gene, frequency, and clinical annotations."""
    return VCFGenerator.generate(
        [
            SyntheticVariant(
                chrom="chr17",
                pos=43094464,
                ref="C",
                alt="T",
                rs_id="rs80357906",
                info={
                    "GENE_SYMBOL": "BRCA1",
                    "SYMBOL": "BRCA1-AS",
                    "AF": 0.0004,
                    "CLNSIG": "Pathogenic",
                    "DB": True,
                },
                format_fields={"SAMPLE1": {"GT": "0/1", "DP": 42}},
            ),
            SyntheticVariant(
                chrom="chr17",
                pos=43095000,
                ref="G",
                alt="A",
                info={"SYMBOL": "BRCA1", "MAF": 0.02},
            ),
        ]
    )
