"""Bayesian scoring of haplotype fraction events.

An *event* assigns a fraction to every haplotype of the (reduced) panel. The
engine enumerates all events allowed by the prior mode, scores each one by
``log prior + log likelihood`` and returns them ranked.

Likelihood
----------
For event f and variant v the implied VAF is

    sum(f_h : h PRESENT and covered at v)
    -------------------------------------------------
    1 - sum(f_h : h NOT_PRESENT and not covered at v)

rounded half-up to two decimals (the division is skipped when the denominator
is not positive). UNKNOWN statuses enter neither sum. Variants without any
PRESENT-and-covered haplotype in the panel are neutral; every other variant
contributes the log density of its allele frequency distribution at the implied
VAF.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, Iterator, List, Tuple

import numpy as np
from scipy.special import logsumexp
from tqdm import tqdm

from .config import InferenceConfig
from .density import vaf_query_many
from .errors import EnumerationOverflow
from .models import (
    CandidateMatrix,
    Haplotype,
    HaplotypeFractions,
    ScoredEvent,
    VariantEvidence,
    VariantID,
)
from .utils import chunked, round_half_up

logger = logging.getLogger(__name__)

_DENOM_EPS = 1e-9


def count_uniform_events(n: int, steps: int) -> int:
    """Number of simplex grid points with ``steps`` units over ``n`` parts."""
    return math.comb(steps + n - 1, n - 1)


def _compositions(total: int, parts: int, cap: int) -> Iterator[Tuple[int, ...]]:
    # Descending on the leading part: the first event puts everything on the first haplotype.
    if total > parts * cap:
        return
    if parts == 1:
        yield (total,)
        return
    for first in range(min(total, cap), -1, -1):
        for rest in _compositions(total - first, parts - 1, cap):
            yield (first,) + rest


def uniform_events(n: int, steps: int, upper: float) -> np.ndarray:
    cap = int(math.floor(upper * steps + 1e-9))
    units = list(_compositions(steps, n, cap))
    return np.array(units, dtype=float).reshape(len(units), n) / steps


def diploid_events(n: int, upper: float) -> np.ndarray:
    """Homozygous (1.0) and heterozygous (0.5/0.5) events in panel order."""
    out: List[List[float]] = []
    for i in range(n):
        for j in range(i, n):
            e = [0.0] * n
            if i == j:
                if upper < 1.0:
                    continue
                e[i] = 1.0
            else:
                if upper < 0.5:
                    continue
                e[i] = 0.5
                e[j] = 0.5
            out.append(e)
    return np.array(out, dtype=float).reshape(len(out), n)


def implied_vafs(events: np.ndarray, present_covered: np.ndarray, absent_uncovered: np.ndarray) -> np.ndarray:
    """Implied VAF at one variant for each row of ``events``."""
    num = events @ present_covered.astype(float)
    denom = 1.0 - events @ absent_uncovered.astype(float)
    ok = denom > _DENOM_EPS
    return round_half_up(np.where(ok, num / np.where(ok, denom, 1.0), num))


@dataclass(frozen=True)
class Ranking:
    """Fully materialized events sorted by non-increasing log posterior."""

    haplotypes: Tuple[Haplotype, ...]
    events: Tuple[ScoredEvent, ...]
    contributing_variants: Tuple[VariantID, ...]

    def __len__(self) -> int:
        return len(self.events)

    def __iter__(self) -> Iterator[ScoredEvent]:
        return iter(self.events)

    def __getitem__(self, i: int) -> ScoredEvent:
        return self.events[i]

    @property
    def best(self) -> ScoredEvent:
        return self.events[0]

    @property
    def log_marginal(self) -> float:
        return float(logsumexp([e.log_posterior for e in self.events]))


class PosteriorEngine:
    """Enumerate, score and rank events over a reduced candidate matrix."""

    def __init__(self, matrix: CandidateMatrix, evidence: VariantEvidence, config: InferenceConfig) -> None:
        self.matrix = matrix
        self.evidence = evidence
        self.config = config

        pc = matrix.present_covered()
        self._contributing = [i for i in range(matrix.n_variants) if pc[i].any()]
        self._pc = pc
        self._au = matrix.absent_uncovered()

    @property
    def contributing_variants(self) -> Tuple[VariantID, ...]:
        return tuple(self.matrix.variant_ids[i] for i in self._contributing)

    def n_events(self) -> int:
        n = self.matrix.n_haplotypes
        if self.config.prior_mode == "uniform":
            return count_uniform_events(n, self.config.grid_steps)
        return n * (n + 1) // 2

    def events(self) -> np.ndarray:
        n = self.matrix.n_haplotypes
        count = self.n_events()
        if count > self.config.max_events:
            raise EnumerationOverflow(
                "Event space exceeds the configured bound",
                context={
                    "events": count,
                    "max_events": self.config.max_events,
                    "haplotypes": n,
                    "prior": self.config.prior_mode,
                },
            )
        if self.config.prior_mode == "uniform":
            events = uniform_events(n, self.config.grid_steps, self.config.upper_fraction_bound)
        else:
            events = diploid_events(n, self.config.upper_fraction_bound)
        if len(events) == 0:
            raise EnumerationOverflow(
                "Upper fraction bound leaves no events to enumerate",
                context={
                    "haplotypes": n,
                    "upper_fraction_bound": self.config.upper_fraction_bound,
                    "prior": self.config.prior_mode,
                },
            )
        return events

    def log_priors(self, events: np.ndarray) -> np.ndarray:
        if self.config.prior_mode == "uniform":
            return np.full(len(events), -math.log(len(events)))
        # Two independent uniform draws from the panel: ordered pairs (i, j) and (j, i)
        # give the same heterozygous event.
        n = self.matrix.n_haplotypes
        homozygous = (events > 0.0).sum(axis=1) == 1
        return np.where(homozygous, math.log(1.0 / n**2), math.log(2.0 / n**2))

    def log_likelihoods(self, events: np.ndarray) -> np.ndarray:
        total = np.zeros(len(events))
        for i in self._contributing:
            vid = self.matrix.variant_ids[i]
            vafs = implied_vafs(events, self._pc[i], self._au[i])
            total += vaf_query_many(self.evidence[vid].afd, vafs, self.config.afd_scale)
        return total

    def variant_queries(self, fractions: HaplotypeFractions) -> Dict[VariantID, Tuple[float, float]]:
        """Implied VAF and log probability per contributing variant for one event."""
        events = np.asarray(fractions, dtype=float)[np.newaxis, :]
        out: Dict[VariantID, Tuple[float, float]] = {}
        for i in self._contributing:
            vid = self.matrix.variant_ids[i]
            vaf = implied_vafs(events, self._pc[i], self._au[i])
            logp = vaf_query_many(self.evidence[vid].afd, vaf, self.config.afd_scale)
            out[vid] = (float(vaf[0]), float(logp[0]))
        return out

    def rank(self, *, progress: bool = False) -> Ranking:
        events = self.events()
        logger.info(
            "Scoring %d %s events over %d haplotypes and %d contributing variants",
            len(events),
            self.config.prior_mode,
            self.matrix.n_haplotypes,
            len(self._contributing),
        )
        priors = self.log_priors(events)

        chunks = chunked(range(len(events)), self.config.chunk_size)
        if progress:
            chunks = tqdm(
                chunks,
                total=math.ceil(len(events) / self.config.chunk_size),
                unit="chunk",
                desc="Scoring events",
            )
        likelihoods = np.concatenate([self.log_likelihoods(events[idx]) for idx in chunks])

        posteriors = priors + likelihoods
        order = np.argsort(-posteriors, kind="stable")
        ranked = tuple(
            ScoredEvent(
                fractions=tuple(float(x) for x in events[i]),
                log_prior=float(priors[i]),
                log_likelihood=float(likelihoods[i]),
            )
            for i in order
        )
        best = ranked[0]
        if not math.isfinite(best.log_posterior):
            logger.warning("Every event has zero likelihood under the observed allele frequency distributions.")
        logger.info(
            "Best event: %s (log posterior %.4f)",
            ", ".join(f"{h}={f:.2f}" for h, f in zip(self.matrix.haplotypes, best.fractions) if f > 0),
            best.log_posterior,
        )
        return Ranking(
            haplotypes=self.matrix.haplotypes,
            events=ranked,
            contributing_variants=self.contributing_variants,
        )
