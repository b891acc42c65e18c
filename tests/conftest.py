import pytest
from pathlib import Path

SNPS_HEADER = (
    "/data/ref.fa /data/M1.fa\n"
    "NUCMER\n"
    "\n"
    "[P1]\t[SUB]\t[SUB]\t[P2]\t[BUFF]\t[DIST]\t[LEN R]\t[LEN Q]\t[CTX R]\t[CTX Q]\t"
    "[FRM]\t[FRM]\t[TAGS]\t[TAGS]\n"
)


def snps_fields(position, ref_base, alt_base, seq_id="chr1"):
    """One show-snps -T -l -x 1 row, 14 columns, sequence id last."""
    return [
        str(position), ref_base, alt_base, str(position), "10", "10", "100", "100",
        "AC" + ref_base + "GT", "AC" + alt_base + "GT", "1", "1", seq_id, seq_id,
    ]


def write_snps(path: Path, rows) -> Path:
    with open(path, "w") as f:
        f.write(SNPS_HEADER)
        for row in rows:
            f.write("\t".join(snps_fields(*row)) + "\n")
    return path


@pytest.fixture
def annotation_file(tmp_path):
    """Creates a small annotation table."""
    p = tmp_path / "annotation.gff"
    content = (
        "##gff-version 3\n"
        "chr1\tsrc\tgene\t1\t100\t.\t+\t.\tID=gene_abc\n"
        "chr1\tsrc\tCDS\t1\t100\t.\t+\t.\tgene=abc;product=enzyme\n"
        "chr1\tsrc\trRNA\t201\t300\t.\t-\t.\tgene=rrs;product=16S ribosomal RNA\n"
        "chr1\tsrc\tregion\t1\t1000\t.\t+\t.\tName=chr1\n"
        "chr1\tbroken\n"
        "chr2\tsrc\ttRNA\t11\t20\t.\t+\t.\tgene=trnA;product=tRNA-Ala\n"
    )
    p.write_text(content)
    return p


@pytest.fixture
def reference_fasta(tmp_path):
    """Creates a dummy reference FASTA file."""
    p = tmp_path / "ref.fa"
    seq = "ACGT" * 25
    p.write_text(f">chr1\n{seq}\n>chr2\n{seq}\n")
    return p


@pytest.fixture
def snps_dir(tmp_path):
    """Precomputed show-snps tables for two mutants."""
    d = tmp_path / "snps"
    d.mkdir()
    write_snps(d / "M1.snps", [(5, "A", "G")])
    write_snps(d / "M2.snps", [
        (20, "T", "."),
        (21, "G", "."),
        (22, "C", "."),
        (250, "A", "C"),
        (500, ".", "T"),
        (15, "A", "G", "chr2"),
    ])
    return d
