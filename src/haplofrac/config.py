from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Any, Dict

from .density import SCALES

PRIOR_MODES = ("uniform", "diploid")


@dataclass(frozen=True)
class InferenceConfig:
    """Knobs for one inference call.

    Attributes
    ----------
    prior_mode:
        ``uniform`` enumerates the simplex grid at ``resolution``; ``diploid``
        enumerates homozygous (1.0) and heterozygous (0.5/0.5) events.
    max_haplotypes:
        Upper bound on the panel size after the LP prefilter.
    upper_fraction_bound:
        No event assigns more than this fraction to a single haplotype.
    lp_selection_threshold:
        Minimum LP fraction for a haplotype to be selected.
    resolution:
        Grid step for the uniform prior; 1/resolution must be an integer.
    max_events:
        Safety bound on the number of enumerated events.
    afd_scale:
        How allele frequency distribution densities are read (``linear`` or ``phred``).
    chunk_size:
        Number of events scored per vectorized batch.
    """

    prior_mode: str = "diploid"
    max_haplotypes: int = 10
    upper_fraction_bound: float = 1.0
    lp_selection_threshold: float = 0.01
    resolution: float = 0.1
    max_events: int = 1_000_000
    afd_scale: str = "linear"
    chunk_size: int = 4096

    def __post_init__(self) -> None:
        if self.prior_mode not in PRIOR_MODES:
            raise ValueError(f"prior_mode must be one of {PRIOR_MODES}, got {self.prior_mode!r}")
        if self.max_haplotypes < 1:
            raise ValueError("max_haplotypes must be >= 1")
        if not (0.0 < self.upper_fraction_bound <= 1.0):
            raise ValueError("upper_fraction_bound must be in (0, 1]")
        if not (0.0 <= self.lp_selection_threshold <= 1.0):
            raise ValueError("lp_selection_threshold must be in [0, 1]")
        if not (0.0 < self.resolution <= 1.0):
            raise ValueError("resolution must be in (0, 1]")
        steps = 1.0 / self.resolution
        if not math.isclose(steps, round(steps), rel_tol=0.0, abs_tol=1e-9):
            raise ValueError("1/resolution must be an integer (e.g. 0.1, 0.05, 0.25)")
        if self.max_events < 1:
            raise ValueError("max_events must be >= 1")
        if self.afd_scale not in SCALES:
            raise ValueError(f"afd_scale must be one of {SCALES}, got {self.afd_scale!r}")
        if self.chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")

    @property
    def grid_steps(self) -> int:
        return int(round(1.0 / self.resolution))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
