from typing import Dict, Sequence

import pytest

from haplofrac.models import AlleleFreqDist, GenotypeCall, VariantCall, VariantStatus
from haplofrac.sources import InMemoryEvidenceSource, InMemoryGenotypeSource

P = VariantStatus.PRESENT
N = VariantStatus.NOT_PRESENT
U = VariantStatus.UNKNOWN

HET_AFD = AlleleFreqDist.from_mapping({0.0: 0.01, 0.5: 0.9, 1.0: 0.01})


def genotype_source(
    panel: Sequence[str],
    rows: Dict[int, Sequence[VariantStatus]],
    uncovered: Dict[int, Sequence[str]] = None,
) -> InMemoryGenotypeSource:
    uncovered = uncovered or {}
    calls = {}
    for vid, statuses in rows.items():
        calls[vid] = {
            h: GenotypeCall(status=s, covered=h not in uncovered.get(vid, ()))
            for h, s in zip(panel, statuses)
        }
    return InMemoryGenotypeSource(panel, calls)


def evidence_source(afs: Dict[int, float], afd: AlleleFreqDist = HET_AFD) -> InMemoryEvidenceSource:
    return InMemoryEvidenceSource(
        {vid: VariantCall(allele_frequency=af, afd=afd) for vid, af in afs.items()}
    )


@pytest.fixture
def two_haplotype_example():
    """Panel {A, B}; A carries v1, B carries v3, both carry v2; sample is 50/50."""
    genotypes = genotype_source(
        ["A", "B"],
        {1: [P, N], 2: [P, P], 3: [N, P]},
    )
    evidence = evidence_source({1: 0.5, 2: 1.0, 3: 0.5})
    return genotypes, evidence
