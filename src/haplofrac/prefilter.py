"""Shrink a large haplotype panel with an L1-regression linear program.

The posterior event space grows combinatorially with the panel size, so before
enumerating we ask a cheap question: which mixture of panel haplotypes best
reproduces the observed point allele frequencies?

For every variant covered by *all* panel haplotypes we form the residual

    r_v = sum(f_h for h carrying v) - AF_v

and minimize sum |r_v| subject to sum f_h = 1, 0 <= f_h <= 1. The absolute
values are linearized with auxiliary t_v >= |r_v|.

Haplotypes reaching the selection threshold are kept, together with every
haplotype whose PRESENT signature over the objective variants is identical:
the evidence cannot tell those apart, so neither can the posterior.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Tuple

import numpy as np

from .config import InferenceConfig
from .errors import EnumerationOverflow, InfeasibleProgram
from .lp import LPBackend, ProblemSpec, ScipyLinprogBackend
from .models import CandidateMatrix, Haplotype, VariantEvidence, VariantID

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PrefilterResult:
    """Outcome of the LP prefilter.

    Attributes
    ----------
    lp_fractions:
        Solved fraction per panel haplotype (panel order).
    objective:
        Sum of absolute residuals at the optimum.
    selected:
        Haplotypes whose LP fraction reached the threshold.
    haplotypes:
        ``selected`` plus signature-identical haplotypes, in panel order.
    objective_variants:
        Variants covered across the whole panel (the LP objective terms).
    matrix:
        Candidate matrix reduced to ``haplotypes``.
    """

    lp_fractions: Dict[Haplotype, float]
    objective: float
    selected: Tuple[Haplotype, ...]
    haplotypes: Tuple[Haplotype, ...]
    objective_variants: Tuple[VariantID, ...]
    matrix: CandidateMatrix

    def residuals(self, evidence: VariantEvidence, full_matrix: CandidateMatrix) -> Dict[VariantID, float]:
        """Per-variant residual of the LP solution (for reporting)."""
        f = np.array([self.lp_fractions[h] for h in full_matrix.haplotypes])
        present = full_matrix.present()
        out: Dict[VariantID, float] = {}
        for i, vid in enumerate(full_matrix.variant_ids):
            if vid in self.objective_variants:
                out[vid] = float(f[present[i]].sum() - evidence[vid].allele_frequency)
        return out


def build_problem(matrix: CandidateMatrix, evidence: VariantEvidence) -> Tuple[ProblemSpec, Tuple[VariantID, ...]]:
    """Assemble the L1 regression LP for the current panel."""
    n = matrix.n_haplotypes
    rows = np.flatnonzero(matrix.fully_covered())
    objective_variants = tuple(matrix.variant_ids[i] for i in rows)
    m = len(rows)

    present = matrix.present()[rows].astype(float)
    af = np.array([evidence[vid].allele_frequency for vid in objective_variants], dtype=float)

    # x = [f_1..f_n, t_1..t_m]
    c = np.concatenate([np.zeros(n), np.ones(m)])
    eye = np.eye(m)
    a_ub = np.vstack([
        np.hstack([present, -eye]),  # r_v - t_v <= 0
        np.hstack([-present, -eye]),  # -r_v - t_v <= 0
    ]) if m else np.zeros((0, n))
    b_ub = np.concatenate([af, -af]) if m else np.zeros(0)
    a_eq = np.concatenate([np.ones(n), np.zeros(m)])[np.newaxis, :]
    b_eq = np.array([1.0])

    bounds = tuple([(0.0, 1.0)] * n + [(0.0, None)] * m)
    names = tuple([f"f_{i}" for i in range(n)] + [f"t_{vid}" for vid in objective_variants])
    return (
        ProblemSpec(
            c=c, A_ub=a_ub, b_ub=b_ub, A_eq=a_eq, b_eq=b_eq, bounds=bounds, names=names
        ),
        objective_variants,
    )


def signature_index(
    matrix: CandidateMatrix, variant_ids: Tuple[VariantID, ...]
) -> Tuple[Dict[Haplotype, FrozenSet[VariantID]], Dict[FrozenSet[VariantID], List[Haplotype]]]:
    """Map each haplotype to its PRESENT set over ``variant_ids`` and group equal sets."""
    wanted = set(variant_ids)
    rows = [i for i, vid in enumerate(matrix.variant_ids) if vid in wanted]
    present = matrix.present()
    signatures: Dict[Haplotype, FrozenSet[VariantID]] = {}
    groups: Dict[FrozenSet[VariantID], List[Haplotype]] = {}
    for j, h in enumerate(matrix.haplotypes):
        sig = frozenset(matrix.variant_ids[i] for i in rows if present[i, j])
        signatures[h] = sig
        groups.setdefault(sig, []).append(h)
    return signatures, groups


def prefilter(
    matrix: CandidateMatrix,
    evidence: VariantEvidence,
    config: InferenceConfig,
    backend: Optional[LPBackend] = None,
) -> PrefilterResult:
    """Solve the LP, select haplotypes and expand by identical signatures.

    Raises
    ------
    InfeasibleProgram
        If the backend does not report an optimal solution, or if no haplotype
        reaches ``config.lp_selection_threshold``.
    EnumerationOverflow
        If the expanded set exceeds ``config.max_haplotypes``.
    """
    backend = backend if backend is not None else ScipyLinprogBackend()
    problem, objective_variants = build_problem(matrix, evidence)
    if not objective_variants:
        logger.warning(
            "No variant is covered across the whole panel; the LP objective is empty "
            "and its solution is arbitrary."
        )

    logger.info(
        "Solving LP (%s): %d haplotypes, %d objective variants",
        getattr(backend, "name", type(backend).__name__),
        matrix.n_haplotypes,
        len(objective_variants),
    )
    solution = backend.solve(problem)
    if not solution.is_optimal:
        raise InfeasibleProgram(
            "Linear program has no optimal solution",
            context={"status": solution.status, "message": solution.message},
        )

    n = matrix.n_haplotypes
    lp_fractions = {h: float(v) for h, v in zip(matrix.haplotypes, solution.x[:n])}
    for h, v in lp_fractions.items():
        logger.debug("LP fraction %s = %.4f", h, v)
    logger.info("LP objective (sum of absolute residuals) = %.4f", solution.objective)

    threshold = config.lp_selection_threshold
    selected = tuple(h for h in matrix.haplotypes if lp_fractions[h] >= threshold)
    if not selected:
        raise InfeasibleProgram(
            "No haplotype reached the LP selection threshold",
            context={"threshold": threshold, "max_fraction": max(lp_fractions.values())},
        )

    signatures, groups = signature_index(matrix, objective_variants)
    keep = set()
    for h in selected:
        keep.update(groups[signatures[h]])
    haplotypes = tuple(h for h in matrix.haplotypes if h in keep)

    logger.info("LP selected %d haplotypes: %s", len(selected), ", ".join(selected))
    if len(haplotypes) > len(selected):
        logger.info(
            "Expanded to %d haplotypes with identical variant signatures: %s",
            len(haplotypes),
            ", ".join(haplotypes),
        )

    if len(haplotypes) > config.max_haplotypes:
        raise EnumerationOverflow(
            "Too many haplotypes remain after the LP prefilter",
            context={"haplotypes": len(haplotypes), "max_haplotypes": config.max_haplotypes},
        )

    return PrefilterResult(
        lp_fractions=lp_fractions,
        objective=float(solution.objective),
        selected=selected,
        haplotypes=haplotypes,
        objective_variants=objective_variants,
        matrix=matrix.select(haplotypes),
    )
