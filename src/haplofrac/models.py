from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from .errors import DataInconsistency

Haplotype = str
VariantID = int
HaplotypeFractions = Tuple[float, ...]


class VariantStatus(enum.IntEnum):
    """Whether a haplotype's reference sequence carries the variant allele.

    Orthogonal to coverage: a haplotype can be NOT_PRESENT and uncovered.
    """

    UNKNOWN = -1
    NOT_PRESENT = 0
    PRESENT = 1


@dataclass(frozen=True)
class GenotypeCall:
    """Status of one haplotype at one variant."""

    status: VariantStatus
    covered: bool


@dataclass(frozen=True)
class AlleleFreqDist:
    """Empirical density over candidate VAF values at one variant.

    Attributes
    ----------
    vafs:
        Strictly increasing VAF keys in [0, 1].
    densities:
        Density at each key, aligned with ``vafs``.
    """

    vafs: Tuple[float, ...]
    densities: Tuple[float, ...]

    def __post_init__(self) -> None:
        if len(self.vafs) == 0:
            raise ValueError("AlleleFreqDist needs at least one entry")
        if len(self.vafs) != len(self.densities):
            raise ValueError("AlleleFreqDist keys and densities differ in length")
        for lo, hi in zip(self.vafs, self.vafs[1:]):
            if not lo < hi:
                raise ValueError(f"AlleleFreqDist keys must be strictly increasing ({lo} >= {hi})")
        if self.vafs[0] < 0.0 or self.vafs[-1] > 1.0:
            raise ValueError("AlleleFreqDist keys must lie in [0, 1]")

    @classmethod
    def from_mapping(cls, dist: Mapping[float, float]) -> "AlleleFreqDist":
        items = sorted((float(k), float(v)) for k, v in dist.items())
        return cls(vafs=tuple(k for k, _ in items), densities=tuple(v for _, v in items))

    @classmethod
    def parse(cls, text: str) -> Optional["AlleleFreqDist"]:
        """Parse the ``vaf=density,vaf=density`` format of variant-call records.

        Pairs without ``=`` (e.g. a lone ``.``) are skipped; returns None when
        nothing remains.
        """
        dist: Dict[float, float] = {}
        for pair in text.split(","):
            vaf, sep, density = pair.partition("=")
            if not sep:
                continue
            dist[float(vaf)] = float(density)
        if not dist:
            return None
        return cls.from_mapping(dist)

    def __len__(self) -> int:
        return len(self.vafs)

    def __contains__(self, vaf: object) -> bool:
        return vaf in self.vafs

    def __getitem__(self, vaf: float) -> float:
        try:
            return self.densities[self.vafs.index(vaf)]
        except ValueError:
            raise KeyError(vaf) from None

    def items(self) -> Iterator[Tuple[float, float]]:
        return iter(zip(self.vafs, self.densities))


@dataclass(frozen=True)
class VariantCall:
    """Observed evidence at one variant: point AF estimate plus its distribution."""

    allele_frequency: float
    afd: AlleleFreqDist


@dataclass(frozen=True)
class VariantEvidence:
    """Read-only mapping VariantID -> VariantCall, iterated in ID order."""

    calls: Mapping[VariantID, VariantCall] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "calls", dict(sorted(self.calls.items())))

    def __len__(self) -> int:
        return len(self.calls)

    def __iter__(self) -> Iterator[VariantID]:
        return iter(self.calls)

    def __contains__(self, vid: object) -> bool:
        return vid in self.calls

    def __getitem__(self, vid: VariantID) -> VariantCall:
        return self.calls[vid]

    def ids(self) -> Tuple[VariantID, ...]:
        return tuple(self.calls)

    def items(self) -> Iterator[Tuple[VariantID, VariantCall]]:
        return iter(self.calls.items())

    def restrict(self, variant_ids: Sequence[VariantID]) -> "VariantEvidence":
        keep = set(variant_ids)
        return VariantEvidence({vid: c for vid, c in self.calls.items() if vid in keep})


@dataclass(frozen=True, eq=False)
class CandidateMatrix:
    """Variant x haplotype presence/coverage matrix.

    ``status`` holds VariantStatus values (int8) and ``covered`` booleans, both
    shaped (len(variant_ids), len(haplotypes)) and marked read-only.
    """

    haplotypes: Tuple[Haplotype, ...]
    variant_ids: Tuple[VariantID, ...]
    status: np.ndarray
    covered: np.ndarray

    def __post_init__(self) -> None:
        shape = (len(self.variant_ids), len(self.haplotypes))
        status = np.array(self.status, dtype=np.int8).reshape(shape)
        covered = np.array(self.covered, dtype=bool).reshape(shape)
        status.setflags(write=False)
        covered.setflags(write=False)
        object.__setattr__(self, "status", status)
        object.__setattr__(self, "covered", covered)
        if len(set(self.haplotypes)) != len(self.haplotypes):
            raise DataInconsistency("Duplicate haplotype names in panel")
        if list(self.variant_ids) != sorted(set(self.variant_ids)):
            raise DataInconsistency("Variant IDs must be unique and sorted")

    @property
    def n_haplotypes(self) -> int:
        return len(self.haplotypes)

    @property
    def n_variants(self) -> int:
        return len(self.variant_ids)

    def row(self, vid: VariantID) -> List[GenotypeCall]:
        i = self.variant_ids.index(vid)
        return [
            GenotypeCall(VariantStatus(int(s)), bool(c))
            for s, c in zip(self.status[i], self.covered[i])
        ]

    def present(self) -> np.ndarray:
        return self.status == VariantStatus.PRESENT

    def present_covered(self) -> np.ndarray:
        return self.present() & self.covered

    def absent_uncovered(self) -> np.ndarray:
        return (self.status == VariantStatus.NOT_PRESENT) & ~self.covered

    def fully_covered(self) -> np.ndarray:
        """Boolean mask over rows: covered in every panel column."""
        return self.covered.all(axis=1)

    def has_unknown(self) -> bool:
        return bool((self.status == VariantStatus.UNKNOWN).any())

    def select(self, haplotypes: Sequence[Haplotype]) -> "CandidateMatrix":
        """Return a new matrix restricted to ``haplotypes`` (in the given order)."""
        missing = [h for h in haplotypes if h not in self.haplotypes]
        if missing:
            raise DataInconsistency(
                "Cannot select haplotypes absent from the panel",
                context={"missing": missing},
            )
        cols = [self.haplotypes.index(h) for h in haplotypes]
        return CandidateMatrix(
            haplotypes=tuple(haplotypes),
            variant_ids=self.variant_ids,
            status=self.status[:, cols],
            covered=self.covered[:, cols],
        )


@dataclass(frozen=True)
class ScoredEvent:
    """One candidate HaplotypeFractions hypothesis with its scores (natural log)."""

    fractions: HaplotypeFractions
    log_prior: float
    log_likelihood: float

    @property
    def log_posterior(self) -> float:
        return self.log_prior + self.log_likelihood

    @property
    def density(self) -> float:
        return math.exp(self.log_posterior)
