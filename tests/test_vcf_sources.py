from pathlib import Path

import pytest

from haplofrac.candidates import load_views
from haplofrac.caller import infer_from_sources
from haplofrac.config import InferenceConfig
from haplofrac.models import AlleleFreqDist, VariantStatus
from haplofrac.toy_data import make_toy_data
from haplofrac.validation import check_haplotype_variants, check_variant_calls, check_vcf_path
from haplofrac.vcf_sources import VcfEvidenceSource, VcfGenotypeSource, genotype_status, passes_quality_gates


def test_genotype_status():
    assert genotype_status((1,)) == VariantStatus.PRESENT
    assert genotype_status((0, 1)) == VariantStatus.PRESENT
    assert genotype_status((0,)) == VariantStatus.NOT_PRESENT
    assert genotype_status((None,)) == VariantStatus.UNKNOWN
    assert genotype_status(None) == VariantStatus.UNKNOWN


def test_quality_gates():
    afd = AlleleFreqDist.from_mapping({0.5: 1.0})
    assert passes_quality_gates(30, 0.001, afd) == ""
    assert passes_quality_gates(30, 0.99, afd) == ""
    assert passes_quality_gates(0, 0.001, afd) == "depth"
    assert passes_quality_gates(30, 0.5, afd) == "prob_absent"
    assert passes_quality_gates(30, 0.001, None) == "afd"


def test_toy_vcfs_are_read(tmp_path: Path):
    toy = make_toy_data(outdir=tmp_path / "toy")
    genotypes = VcfGenotypeSource(toy["haplotype_variants"])
    calls = VcfEvidenceSource(toy["variant_calls"])

    matrix, evidence = load_views(genotypes, calls)
    assert matrix.haplotypes == ("A*01:01", "A*02:01", "A*03:01", "A*11:01")
    # variant 6 has zero depth
    assert matrix.variant_ids == (1, 2, 3, 4, 5)
    assert calls.stats["skipped_depth"] == 1
    assert calls.stats["records_kept"] == 5

    row = matrix.row(5)
    assert row[2].status == VariantStatus.PRESENT
    assert not row[2].covered
    assert row[0].covered
    assert evidence[1].allele_frequency == pytest.approx(0.5)
    assert evidence[1].afd[0.5] == pytest.approx(0.9)


def test_toy_inference(tmp_path: Path):
    toy = make_toy_data(outdir=tmp_path / "toy")
    result = infer_from_sources(
        VcfGenotypeSource(toy["haplotype_variants"]),
        VcfEvidenceSource(toy["variant_calls"]),
        InferenceConfig(),
    )

    assert result.prefilter.haplotypes == ("A*01:01", "A*02:01", "A*03:01")
    best = dict(zip(result.ranking.haplotypes, result.ranking.best.fractions))
    assert best == {"A*01:01": 0.5, "A*02:01": 0.5, "A*03:01": 0.0}
    assert 4 not in result.ranking.contributing_variants


def test_missing_sample_is_rejected(tmp_path: Path):
    toy = make_toy_data(outdir=tmp_path / "toy")
    with pytest.raises(ValueError, match="not found"):
        VcfEvidenceSource(toy["variant_calls"], sample="OTHER").variant_calls()


def test_header_validation(tmp_path: Path):
    toy = make_toy_data(outdir=tmp_path / "toy")
    assert "C" in check_haplotype_variants(toy["haplotype_variants"])["formats"]
    assert check_variant_calls(toy["variant_calls"])["samples"] == ["SAMPLE"]
    with pytest.raises(ValueError, match="missing"):
        check_variant_calls(toy["haplotype_variants"])
    with pytest.raises(ValueError):
        check_vcf_path(tmp_path / "calls.txt")
