from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Tuple

import pysam

from .utils import ensure_outdir, write_json

_CONTIG = "chr6"
_HAPLOTYPES = ["A*01:01", "A*02:01", "A*03:01", "A*11:01"]

# (variant id, pos1, ref, alt, genotypes per haplotype, coverage per haplotype)
_PANEL: List[Tuple[int, int, str, str, Tuple[int, ...], Tuple[int, ...]]] = [
    (1, 101, "A", "G", (1, 0, 1, 0), (1, 1, 1, 1)),
    (2, 202, "C", "T", (1, 1, 1, 0), (1, 1, 1, 1)),
    (3, 303, "G", "A", (0, 1, 0, 1), (1, 1, 1, 1)),
    (4, 404, "T", "C", (0, 0, 0, 1), (1, 1, 1, 1)),
    # A*03:01 is not genotyped here, so it only matches A*01:01 on covered sites
    (5, 505, "A", "C", (1, 0, 1, 0), (1, 1, 0, 1)),
    (6, 606, "G", "T", (0, 1, 0, 0), (1, 1, 1, 1)),
]

_AFD_HET = "0.0=0.01,0.5=0.9,1.0=0.01"
_AFD_HOM = "0.0=0.01,0.5=0.05,1.0=0.9"
_AFD_ABSENT = "0.0=0.9,0.5=0.05,1.0=0.01"

# (variant id, AF, DP, PROB_ABSENT phred, AFD); variant 6 has no depth and is gated out
_CALLS: List[Tuple[int, float, int, float, str]] = [
    (1, 0.5, 40, 30.0, _AFD_HET),
    (2, 1.0, 38, 40.0, _AFD_HOM),
    (3, 0.5, 42, 30.0, _AFD_HET),
    (4, 0.0, 35, 0.01, _AFD_ABSENT),
    (5, 0.5, 30, 25.0, _AFD_HET),
    (6, 0.5, 0, 30.0, _AFD_HET),
]


def _compress(vcf_path: Path) -> Path:
    vcf_gz = vcf_path.with_suffix(".vcf.gz")
    pysam.tabix_compress(str(vcf_path), str(vcf_gz), force=True)
    pysam.tabix_index(str(vcf_gz), preset="vcf", force=True)
    return vcf_gz


def _write_haplotype_variants(path: Path) -> Path:
    header = pysam.VariantHeader()
    header.add_meta("fileformat", "VCFv4.2")
    header.contigs.add(_CONTIG, length=1000)
    header.formats.add("GT", 1, "String", "Genotype")
    header.formats.add("C", 1, "Integer", "Haplotype is genotyped (covered) at this site")
    for h in _HAPLOTYPES:
        header.add_sample(h)

    with pysam.VariantFile(str(path), "w", header=header) as vcf:
        for vid, pos1, ref, alt, gts, cov in _PANEL:
            rec = vcf.new_record(
                contig=_CONTIG,
                start=pos1 - 1,
                stop=pos1,
                alleles=(ref, alt),
                id=str(vid),
            )
            for h, gt, c in zip(_HAPLOTYPES, gts, cov):
                rec.samples[h]["GT"] = (gt,)
                rec.samples[h]["C"] = c
            vcf.write(rec)
    return _compress(path)


def _write_variant_calls(path: Path) -> Path:
    header = pysam.VariantHeader()
    header.add_meta("fileformat", "VCFv4.2")
    header.add_sample("SAMPLE")
    header.contigs.add(_CONTIG, length=1000)
    header.info.add("PROB_ABSENT", 1, "Float", "PHRED-scaled probability that the variant is absent")
    header.formats.add("AF", 1, "Float", "Maximum a posteriori allele frequency")
    header.formats.add("DP", 1, "Integer", "Read depth")
    header.formats.add("AFD", 1, "String", "Allele frequency distribution (vaf=density,...)")

    positions = {vid: (pos1, ref, alt) for vid, pos1, ref, alt, _, _ in _PANEL}
    with pysam.VariantFile(str(path), "w", header=header) as vcf:
        for vid, af, dp, prob_absent, afd in _CALLS:
            pos1, ref, alt = positions[vid]
            rec = vcf.new_record(
                contig=_CONTIG,
                start=pos1 - 1,
                stop=pos1,
                alleles=(ref, alt),
                id=str(vid),
                qual=60,
                filter="PASS",
            )
            rec.info["PROB_ABSENT"] = prob_absent
            rec.samples[0]["AF"] = af
            rec.samples[0]["DP"] = dp
            rec.samples[0]["AFD"] = afd
            vcf.write(rec)
    return _compress(path)


def make_toy_data(*, outdir: str | Path) -> Dict[str, str]:
    """Create a tiny haplotype panel and variant calls suitable for quick demos/tests.

    The sample is a 50/50 mixture of A*01:01 and A*02:01. A*03:01 carries the
    same variants as A*01:01 wherever it is genotyped, so the LP prefilter keeps
    it as indistinguishable.

    The outputs include:
    - haplotype_variants.vcf.gz (+ .tbi)
    - variant_calls.vcf.gz (+ .tbi)

    Returns
    -------
    dict
        Paths to the generated files.
    """
    outdir_p = ensure_outdir(outdir)

    hv = _write_haplotype_variants(outdir_p / "haplotype_variants.vcf")
    calls = _write_variant_calls(outdir_p / "variant_calls.vcf")

    summary = {
        "haplotype_variants": str(hv),
        "variant_calls": str(calls),
        "outdir": str(outdir_p),
    }
    write_json(outdir_p / "toy_summary.json", summary)
    return summary
