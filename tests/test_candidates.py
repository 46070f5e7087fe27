import pytest

from conftest import N, P, U, evidence_source, genotype_source
from haplofrac.candidates import build_candidate_matrix, load_views
from haplofrac.errors import DataInconsistency, EmptyEvidence
from haplofrac.models import GenotypeCall, VariantStatus
from haplofrac.sources import InMemoryGenotypeSource


def test_rows_are_the_sorted_intersection():
    genotypes = genotype_source(["A", "B", "C"], {3: [P, N, N], 1: [N, P, P], 2: [P, P, N]})
    matrix, evidence = load_views(genotypes, evidence_source({2: 0.5, 3: 0.2, 4: 0.9}))

    assert matrix.variant_ids == (2, 3)
    assert matrix.haplotypes == ("A", "B", "C")
    assert evidence.ids() == (2, 3)
    assert [c.status for c in matrix.row(3)] == [P, N, N]


def test_coverage_is_independent_of_status():
    genotypes = genotype_source(["A", "B"], {1: [N, P]}, uncovered={1: ["A"]})
    matrix = build_candidate_matrix(genotypes, evidence_source({1: 0.5}).variant_calls())

    assert matrix.row(1) == [
        GenotypeCall(VariantStatus.NOT_PRESENT, False),
        GenotypeCall(VariantStatus.PRESENT, True),
    ]
    assert matrix.absent_uncovered().tolist() == [[True, False]]
    assert not matrix.fully_covered()[0]


def test_row_missing_a_haplotype_is_inconsistent():
    genotypes = InMemoryGenotypeSource(
        ["A", "B"],
        {1: {"A": GenotypeCall(VariantStatus.PRESENT, True)}},
    )
    with pytest.raises(DataInconsistency) as exc:
        build_candidate_matrix(genotypes, evidence_source({1: 0.5}).variant_calls())
    assert exc.value.context["missing"] == ["B"]


def test_row_with_unexpected_haplotype_is_inconsistent():
    call = GenotypeCall(VariantStatus.PRESENT, True)
    genotypes = InMemoryGenotypeSource(["A", "B"], {1: {"A": call, "B": call, "Z": call}})
    with pytest.raises(DataInconsistency) as exc:
        build_candidate_matrix(genotypes, evidence_source({1: 0.5}).variant_calls())
    assert exc.value.context["unexpected"] == ["Z"]


def test_empty_inputs_raise_empty_evidence():
    genotypes = genotype_source(["A", "B"], {1: [P, N]})
    with pytest.raises(EmptyEvidence):
        build_candidate_matrix(genotypes, evidence_source({}).variant_calls())
    with pytest.raises(EmptyEvidence):
        build_candidate_matrix(genotypes, evidence_source({7: 0.5}).variant_calls())
    with pytest.raises(EmptyEvidence):
        build_candidate_matrix(genotype_source([], {}), evidence_source({1: 0.5}).variant_calls())


def test_matrix_is_read_only():
    genotypes = genotype_source(["A", "B"], {1: [P, U]})
    matrix = build_candidate_matrix(genotypes, evidence_source({1: 0.5}).variant_calls())

    assert matrix.has_unknown()
    with pytest.raises(ValueError):
        matrix.status[0, 0] = 0
    with pytest.raises(ValueError):
        matrix.covered[0, 0] = False


def test_select_reorders_and_rejects_unknown_haplotypes():
    genotypes = genotype_source(["A", "B", "C"], {1: [P, N, P]}, uncovered={1: ["C"]})
    matrix = build_candidate_matrix(genotypes, evidence_source({1: 0.5}).variant_calls())

    sub = matrix.select(["C", "A"])
    assert sub.haplotypes == ("C", "A")
    assert sub.covered.tolist() == [[False, True]]
    with pytest.raises(DataInconsistency):
        matrix.select(["A", "D"])
