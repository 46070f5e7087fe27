from __future__ import annotations

import gzip
import json
import logging
import math
from pathlib import Path
from typing import Any, Iterable, TextIO, TypeVar

import numpy as np

logger = logging.getLogger(__name__)

T = TypeVar("T")

_LN10 = math.log(10.0)


def phred_to_prob(q: float) -> float:
    return 10 ** (-float(q) / 10)


def phred_to_log_prob(q: float) -> float:
    # ln(10^(-q/10)) without the round trip through linear space
    return -float(q) * _LN10 / 10.0


def round_half_up(x: np.ndarray, ndigits: int = 2) -> np.ndarray:
    """Round non-negative values to ``ndigits`` decimals, ties away from zero."""
    scale = 10.0**ndigits
    return np.floor(np.asarray(x, dtype=float) * scale + 0.5) / scale


def ensure_outdir(path: str | Path) -> Path:
    p = Path(path)
    p.mkdir(parents=True, exist_ok=True)
    return p


def open_textmaybe_gzip(path: str | Path, mode: str = "rt") -> TextIO:
    p = str(path)
    if p.endswith(".gz"):
        return gzip.open(p, mode)  # type: ignore[return-value]
    return open(p, mode)


def write_json(path: str | Path, obj: Any) -> None:
    with open(path, "wt", encoding="utf-8") as f:
        json.dump(obj, f, indent=2, sort_keys=True)


def chunked(iterable: Iterable[T], n: int) -> Iterable[list[T]]:
    chunk: list[T] = []
    for item in iterable:
        chunk.append(item)
        if len(chunk) >= n:
            yield chunk
            chunk = []
    if chunk:
        yield chunk
