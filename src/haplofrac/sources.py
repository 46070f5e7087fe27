"""Interfaces for the upstream genotype and evidence collaborators.

The inference core only needs two questions answered:

- which haplotypes carry which variants (and whether they are covered there);
- what allele frequencies were observed at each variant.

Concrete VCF-backed implementations live in :mod:`haplofrac.vcf_sources`; the
in-memory versions here are used by tests and library callers.
"""

from __future__ import annotations

from typing import Dict, Iterable, Mapping, Optional, Protocol, Sequence, Tuple

from .models import GenotypeCall, Haplotype, VariantCall, VariantEvidence, VariantID


class GenotypeSource(Protocol):
    def haplotypes(self) -> Tuple[Haplotype, ...]:
        ...

    def genotypes(
        self, panel: Sequence[Haplotype], variant_ids: Iterable[VariantID]
    ) -> Dict[VariantID, Dict[Haplotype, GenotypeCall]]:
        ...


class EvidenceSource(Protocol):
    def variant_calls(self, variant_ids: Optional[Iterable[VariantID]] = None) -> VariantEvidence:
        ...


class InMemoryGenotypeSource:
    """Genotype source backed by ``{vid: {haplotype: GenotypeCall}}``."""

    def __init__(
        self,
        panel: Sequence[Haplotype],
        calls: Mapping[VariantID, Mapping[Haplotype, GenotypeCall]],
    ) -> None:
        self._panel = tuple(panel)
        self._calls = {int(vid): dict(row) for vid, row in calls.items()}

    def haplotypes(self) -> Tuple[Haplotype, ...]:
        return self._panel

    def genotypes(
        self, panel: Sequence[Haplotype], variant_ids: Iterable[VariantID]
    ) -> Dict[VariantID, Dict[Haplotype, GenotypeCall]]:
        wanted = set(panel)
        out: Dict[VariantID, Dict[Haplotype, GenotypeCall]] = {}
        for vid in variant_ids:
            row = self._calls.get(vid)
            if row is None:
                continue
            # Unknown haplotypes are passed through so column mismatches surface downstream.
            out[vid] = {h: c for h, c in row.items() if h in wanted or h not in self._panel}
        return out


class InMemoryEvidenceSource:
    def __init__(self, calls: Mapping[VariantID, VariantCall]) -> None:
        self._evidence = VariantEvidence(dict(calls))

    def variant_calls(self, variant_ids: Optional[Iterable[VariantID]] = None) -> VariantEvidence:
        if variant_ids is None:
            return self._evidence
        return self._evidence.restrict(list(variant_ids))
