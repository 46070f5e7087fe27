from __future__ import annotations

import logging
from typing import Optional, Sequence, Tuple

from .errors import DataInconsistency, EmptyEvidence
from .models import CandidateMatrix, Haplotype, VariantEvidence, VariantStatus
from .sources import EvidenceSource, GenotypeSource

logger = logging.getLogger(__name__)


def build_candidate_matrix(
    genotype_source: GenotypeSource,
    evidence: VariantEvidence,
    *,
    panel: Optional[Sequence[Haplotype]] = None,
) -> CandidateMatrix:
    """Build the variant x haplotype matrix for variants present in both sources.

    Variants the genotype source does not know about are dropped, as are
    evidence-less variants. Rows follow ascending VariantID, columns follow the
    panel order.

    Raises
    ------
    EmptyEvidence
        If the panel is empty or no variant survives the intersection.
    DataInconsistency
        If a row's haplotype set differs from the panel.
    """
    haplotypes: Tuple[Haplotype, ...] = tuple(panel) if panel is not None else genotype_source.haplotypes()
    if not haplotypes:
        raise EmptyEvidence("Haplotype panel is empty")
    if len(evidence) == 0:
        raise EmptyEvidence("No variant calls passed the upstream quality gates")

    rows = genotype_source.genotypes(haplotypes, evidence.ids())
    variant_ids = sorted(vid for vid in rows if vid in evidence)
    if not variant_ids:
        raise EmptyEvidence(
            "No variant is shared between the haplotype variants and the variant calls",
            context={"variant_calls": len(evidence)},
        )

    panel_set = set(haplotypes)
    status = []
    covered = []
    for vid in variant_ids:
        row = rows[vid]
        if set(row) != panel_set:
            raise DataInconsistency(
                "Candidate matrix row does not match the haplotype panel",
                context={
                    "variant": vid,
                    "missing": sorted(panel_set - set(row)),
                    "unexpected": sorted(set(row) - panel_set),
                },
            )
        status.append([int(row[h].status) for h in haplotypes])
        covered.append([bool(row[h].covered) for h in haplotypes])

    matrix = CandidateMatrix(
        haplotypes=haplotypes,
        variant_ids=tuple(variant_ids),
        status=status,
        covered=covered,
    )
    n_dropped = len(evidence) - len(variant_ids)
    if n_dropped:
        logger.info("%d variant calls have no haplotype genotypes and were dropped.", n_dropped)
    if matrix.has_unknown():
        n_unknown = int((matrix.status == VariantStatus.UNKNOWN).sum())
        logger.warning(
            "%d haplotype genotypes are UNKNOWN; they are treated as neutral when scoring.",
            n_unknown,
        )
    logger.info(
        "Candidate matrix: %d variants x %d haplotypes", matrix.n_variants, matrix.n_haplotypes
    )
    return matrix


def load_views(
    genotype_source: GenotypeSource,
    evidence_source: EvidenceSource,
) -> Tuple[CandidateMatrix, VariantEvidence]:
    """Load evidence first, then genotypes for the surviving variant IDs.

    The returned evidence is restricted to the matrix rows so both views line up.
    """
    evidence = evidence_source.variant_calls()
    matrix = build_candidate_matrix(genotype_source, evidence)
    return matrix, evidence.restrict(matrix.variant_ids)
