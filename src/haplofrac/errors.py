"""Typed failures raised by the inference pipeline.

Every error is terminal for a single call: nothing retries locally, and the
caller decides whether to abort or skip the sample. Each carries an optional
``context`` mapping with the values that triggered it, so CLI error messages
and logs can show them.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional


class HaploFracError(RuntimeError):
    """Base class for all inference failures."""

    def __init__(self, message: str, *, context: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message)
        self.context: Dict[str, Any] = dict(context or {})

    def __str__(self) -> str:
        msg = super().__str__()
        if not self.context:
            return msg
        details = ", ".join(f"{k}={v!r}" for k, v in sorted(self.context.items()))
        return f"{msg} ({details})"


class DataInconsistency(HaploFracError):
    """A candidate matrix row does not line up with the haplotype panel."""


class OutOfRangeQuery(HaploFracError):
    """A VAF was queried outside the domain of an allele frequency distribution."""


class InfeasibleProgram(HaploFracError):
    """The prefilter linear program has no usable solution."""


class EmptyEvidence(HaploFracError):
    """No variants (or no haplotypes) survive filtering."""


class EnumerationOverflow(HaploFracError):
    """The event space is empty or exceeds the configured safety bound."""
