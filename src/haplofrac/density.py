"""Querying allele frequency distributions at arbitrary VAFs.

Densities are linearly interpolated between the two neighbouring keys and then
mapped into natural-log probability space. Two scales are supported:

``linear``
    densities are read as probabilities, ``log p = ln(y)``.
``phred``
    densities are PHRED-scaled probabilities, ``log p = ln(10^(-y/10))``.

Queries outside ``[min key, max key]`` raise :class:`OutOfRangeQuery`; there is
no extrapolation.
"""

from __future__ import annotations

import bisect
import logging
import math

import numpy as np

from .errors import OutOfRangeQuery
from .models import AlleleFreqDist
from .utils import phred_to_log_prob

logger = logging.getLogger(__name__)

SCALES = ("linear", "phred")


def to_log_prob(density: float, scale: str = "linear") -> float:
    if scale == "linear":
        if density <= 0.0:
            return -math.inf
        return math.log(density)
    if scale == "phred":
        return phred_to_log_prob(density)
    raise ValueError(f"Unknown AFD scale: {scale!r} (expected one of {SCALES})")


def interpolate(afd: AlleleFreqDist, vaf: float) -> float:
    """Raw (untransformed) density at ``vaf``."""
    vafs = afd.vafs
    if vaf < vafs[0] or vaf > vafs[-1]:
        raise OutOfRangeQuery(
            "VAF outside the allele frequency distribution",
            context={"vaf": vaf, "lower": vafs[0], "upper": vafs[-1]},
        )
    i = bisect.bisect_left(vafs, vaf)
    if vafs[i] == vaf:
        return afd.densities[i]
    x0, y0 = vafs[i - 1], afd.densities[i - 1]
    x1, y1 = vafs[i], afd.densities[i]
    return y0 + (vaf - x0) * (y1 - y0) / (x1 - x0)


def vaf_query(afd: AlleleFreqDist, vaf: float, scale: str = "linear") -> float:
    """Log probability of ``vaf`` under ``afd``."""
    return to_log_prob(interpolate(afd, vaf), scale)


def vaf_query_many(afd: AlleleFreqDist, vafs: np.ndarray, scale: str = "linear") -> np.ndarray:
    """Vectorized :func:`vaf_query` over an array of VAFs."""
    qs = np.asarray(vafs, dtype=float)
    xs = np.asarray(afd.vafs, dtype=float)
    ys = np.asarray(afd.densities, dtype=float)

    bad = (qs < xs[0]) | (qs > xs[-1])
    if bad.any():
        raise OutOfRangeQuery(
            "VAF outside the allele frequency distribution",
            context={"vaf": float(qs[bad][0]), "lower": float(xs[0]), "upper": float(xs[-1])},
        )

    # np.interp returns ys[i] exactly when a query hits key xs[i]
    dens = np.interp(qs, xs, ys)
    if scale == "linear":
        with np.errstate(divide="ignore"):
            return np.where(dens > 0.0, np.log(np.where(dens > 0.0, dens, 1.0)), -np.inf)
    if scale == "phred":
        return -dens * np.log(10.0) / 10.0
    raise ValueError(f"Unknown AFD scale: {scale!r} (expected one of {SCALES})")
