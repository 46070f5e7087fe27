import numpy as np
import pytest

from conftest import N, P, evidence_source, genotype_source
from haplofrac.candidates import load_views
from haplofrac.config import InferenceConfig
from haplofrac.errors import EnumerationOverflow, InfeasibleProgram
from haplofrac.lp import OPTIMAL, ScipyLinprogBackend, Solution, get_backend
from haplofrac.prefilter import build_problem, prefilter, signature_index


class StubBackend:
    """Returns fixed haplotype fractions regardless of the problem."""

    name = "stub"

    def __init__(self, fractions, status=OPTIMAL):
        self.fractions = fractions
        self.status = status
        self.problems = []

    def solve(self, problem):
        self.problems.append(problem)
        x = np.zeros(problem.n_variables)
        x[: len(self.fractions)] = self.fractions
        return Solution(status=self.status, x=x, objective=0.0)


def _four_haplotypes():
    # A and C share every variant except 3, where C is not genotyped.
    genotypes = genotype_source(
        ["A", "B", "C", "D"],
        {1: [P, N, P, N], 2: [P, P, P, N], 3: [P, N, N, P], 4: [N, P, N, P]},
        uncovered={3: ["C"]},
    )
    return load_views(genotypes, evidence_source({1: 0.5, 2: 1.0, 3: 0.5, 4: 0.5}))


def test_two_haplotype_mixture_is_recovered(two_haplotype_example):
    matrix, evidence = load_views(*two_haplotype_example)
    result = prefilter(matrix, evidence, InferenceConfig(), backend=ScipyLinprogBackend())

    assert result.lp_fractions["A"] == pytest.approx(0.5, abs=1e-6)
    assert result.lp_fractions["B"] == pytest.approx(0.5, abs=1e-6)
    assert result.objective == pytest.approx(0.0, abs=1e-6)
    assert result.haplotypes == ("A", "B")
    assert all(abs(r) < 1e-6 for r in result.residuals(evidence, matrix).values())


def test_problem_only_uses_fully_covered_variants():
    matrix, evidence = _four_haplotypes()
    problem, objective_variants = build_problem(matrix, evidence)

    assert objective_variants == (1, 2, 4)
    assert problem.n_variables == 4 + 3
    assert problem.A_ub.shape == (6, 7)
    assert problem.A_eq.tolist() == [[1, 1, 1, 1, 0, 0, 0]]
    assert problem.bounds[:4] == ((0.0, 1.0),) * 4
    assert problem.bounds[4:] == ((0.0, None),) * 3


def test_signature_index_groups_identical_haplotypes():
    matrix, _ = _four_haplotypes()
    signatures, groups = signature_index(matrix, (1, 2, 4))

    assert signatures["A"] == frozenset({1, 2})
    assert groups[signatures["A"]] == ["A", "C"]
    assert groups[signatures["D"]] == ["D"]


def test_selection_expands_to_indistinguishable_haplotypes():
    matrix, evidence = _four_haplotypes()
    backend = StubBackend([0.5, 0.5, 0.0, 0.0])
    result = prefilter(matrix, evidence, InferenceConfig(), backend=backend)

    assert result.selected == ("A", "B")
    assert result.haplotypes == ("A", "B", "C")
    assert result.matrix.haplotypes == ("A", "B", "C")
    assert len(backend.problems) == 1


def test_threshold_is_inclusive():
    matrix, evidence = _four_haplotypes()
    backend = StubBackend([0.98, 0.0, 0.0, 0.02])
    result = prefilter(matrix, evidence, InferenceConfig(lp_selection_threshold=0.02), backend=backend)
    assert result.selected == ("A", "D")


def test_non_optimal_solution_is_infeasible():
    matrix, evidence = _four_haplotypes()
    with pytest.raises(InfeasibleProgram):
        prefilter(matrix, evidence, InferenceConfig(), backend=StubBackend([0.5, 0.5], status="infeasible"))


def test_nothing_selected_is_infeasible():
    matrix, evidence = _four_haplotypes()
    with pytest.raises(InfeasibleProgram):
        prefilter(matrix, evidence, InferenceConfig(), backend=StubBackend([0.0, 0.0, 0.0, 0.0]))


def test_too_many_haplotypes_after_expansion():
    matrix, evidence = _four_haplotypes()
    with pytest.raises(EnumerationOverflow) as exc:
        prefilter(matrix, evidence, InferenceConfig(max_haplotypes=1), backend=StubBackend([1.0]))
    assert exc.value.context["haplotypes"] == 2


def test_pulp_backend_agrees_with_highs(two_haplotype_example):
    pytest.importorskip("pulp")
    matrix, evidence = load_views(*two_haplotype_example)
    result = prefilter(matrix, evidence, InferenceConfig(), backend=get_backend("cbc"))

    assert result.lp_fractions["A"] == pytest.approx(0.5, abs=1e-6)
    assert result.objective == pytest.approx(0.0, abs=1e-6)


def test_unknown_backend_name():
    with pytest.raises(ValueError):
        get_backend("glpk")
