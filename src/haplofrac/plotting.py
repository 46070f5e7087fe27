from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import List, Sequence

import matplotlib.pyplot as plt

logger = logging.getLogger(__name__)


def plot_fractions(
    *,
    haplotypes: Sequence[str],
    fractions: Sequence[float],
    out_png: str | Path,
    title: str = "Haplotype fractions",
    highlight: Sequence[str] = (),
) -> None:
    """Bar chart of one fraction per haplotype; ``highlight`` bars are drawn darker."""
    out_png = Path(out_png)
    out_png.parent.mkdir(parents=True, exist_ok=True)

    colors = ["#1f4e79" if h in highlight else "#7aa6d6" for h in haplotypes]

    plt.figure(figsize=(max(4.0, 0.5 * len(haplotypes) + 2.0), 4.0))
    plt.bar(range(len(haplotypes)), fractions, color=colors)
    plt.xticks(range(len(haplotypes)), list(haplotypes), rotation=45, ha="right")
    plt.ylim(0.0, 1.0)
    plt.ylabel("Fraction")
    plt.title(title)
    plt.tight_layout()
    plt.savefig(out_png, dpi=160)
    plt.close()


def plot_event_odds(
    *,
    log_posteriors: Sequence[float],
    out_png: str | Path,
    title: str = "Odds relative to the best event",
    max_events: int = 20,
) -> None:
    out_png = Path(out_png)
    out_png.parent.mkdir(parents=True, exist_ok=True)

    shown = list(log_posteriors[:max_events])
    best = shown[0] if shown else 0.0
    # log10 odds; events with zero likelihood are drawn at the floor of the axis
    log10_odds: List[float] = []
    for lp in shown:
        log10_odds.append((lp - best) / math.log(10.0) if math.isfinite(lp) else float("nan"))
    finite = [x for x in log10_odds if math.isfinite(x)]
    floor = min(finite) - 1.0 if finite else -1.0
    log10_odds = [x if math.isfinite(x) else floor for x in log10_odds]

    plt.figure()
    plt.bar(range(1, len(log10_odds) + 1), log10_odds)
    plt.xlabel("Event rank")
    plt.ylabel("log10 odds")
    plt.title(title)
    plt.tight_layout()
    plt.savefig(out_png, dpi=160)
    plt.close()
