"""VCF-backed genotype and evidence sources.

Two inputs are read with pysam:

haplotype variants
    One sample per haplotype, integer variant IDs in the ID column. A GT
    containing allele 1 marks the variant PRESENT, a missing GT marks it
    UNKNOWN, anything else NOT_PRESENT. FORMAT ``C`` == 1 marks the haplotype as
    covered (genotyped) at the site.
variant calls
    One sample. INFO ``PROB_ABSENT`` (PHRED), FORMAT ``AF`` (point estimate),
    ``DP`` (depth) and ``AFD`` (``vaf=density,...``).

Parsing is best-effort: missing fields degrade to "not covered" / "gate failed"
rather than aborting the run.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Sequence, Tuple

import pysam

from .models import AlleleFreqDist, GenotypeCall, Haplotype, VariantCall, VariantEvidence, VariantID, VariantStatus
from .utils import phred_to_prob

logger = logging.getLogger(__name__)

_ABSENT_LOW = 0.05
_ABSENT_HIGH = 0.95


def _first(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


def _parse_variant_id(rec: pysam.VariantRecord) -> Optional[VariantID]:
    if rec.id is None:
        return None
    try:
        return int(rec.id)
    except ValueError:
        return None


def genotype_status(gt: Optional[Sequence[Optional[int]]]) -> VariantStatus:
    if gt is None or all(a is None for a in gt):
        return VariantStatus.UNKNOWN
    if 1 in gt:
        return VariantStatus.PRESENT
    return VariantStatus.NOT_PRESENT


def passes_quality_gates(depth: Optional[int], prob_absent: Optional[float], afd: Optional[AlleleFreqDist]) -> str:
    """Return '' if a call is usable, otherwise the name of the failed gate."""
    if depth is None or depth == 0:
        return "depth"
    if prob_absent is None or not (prob_absent <= _ABSENT_LOW or prob_absent >= _ABSENT_HIGH):
        return "prob_absent"
    if afd is None:
        return "afd"
    return ""


class VcfGenotypeSource:
    """Haplotype presence/coverage matrix from a haplotype-variants VCF."""

    def __init__(self, vcf_path: str | Path) -> None:
        self.vcf_path = str(vcf_path)
        with pysam.VariantFile(self.vcf_path) as vcf:
            self._panel: Tuple[Haplotype, ...] = tuple(vcf.header.samples)
        if not self._panel:
            logger.warning("Haplotype variants VCF %s has no samples (haplotypes).", self.vcf_path)

    def haplotypes(self) -> Tuple[Haplotype, ...]:
        return self._panel

    def genotypes(
        self, panel: Sequence[Haplotype], variant_ids: Iterable[VariantID]
    ) -> Dict[VariantID, Dict[Haplotype, GenotypeCall]]:
        wanted = set(variant_ids)
        out: Dict[VariantID, Dict[Haplotype, GenotypeCall]] = {}
        n_bad_id = 0
        with pysam.VariantFile(self.vcf_path) as vcf:
            samples = [s for s in panel if s in vcf.header.samples]
            for rec in vcf:
                vid = _parse_variant_id(rec)
                if vid is None:
                    n_bad_id += 1
                    continue
                if vid not in wanted:
                    continue
                row: Dict[Haplotype, GenotypeCall] = {}
                for s in samples:
                    sample = rec.samples[s]
                    status = genotype_status(sample.get("GT"))
                    covered = "C" in sample and _first(sample["C"]) == 1
                    row[s] = GenotypeCall(status=status, covered=bool(covered))
                out[vid] = row
        if n_bad_id:
            logger.warning("Skipped %d haplotype variant records without an integer ID.", n_bad_id)
        return out


class VcfEvidenceSource:
    """Variant calls with allele frequency distributions from a calls VCF."""

    def __init__(self, vcf_path: str | Path, *, sample: Optional[str] = None) -> None:
        self.vcf_path = str(vcf_path)
        self.sample = sample
        self.stats: Dict[str, int] = {}

    def variant_calls(self, variant_ids: Optional[Iterable[VariantID]] = None) -> VariantEvidence:
        wanted = set(variant_ids) if variant_ids is not None else None
        stats: Dict[str, int] = {
            "records_total": 0,
            "records_kept": 0,
            "skipped_no_id": 0,
            "skipped_depth": 0,
            "skipped_prob_absent": 0,
            "skipped_afd": 0,
        }
        calls: Dict[VariantID, VariantCall] = {}

        with pysam.VariantFile(self.vcf_path) as vcf:
            if len(vcf.header.samples) == 0:
                raise ValueError(f"Variant calls VCF has no samples: {self.vcf_path}")
            sample = self.sample
            if sample is None:
                sample = list(vcf.header.samples)[0]
            elif sample not in vcf.header.samples:
                raise ValueError(
                    f"Sample '{sample}' not found in VCF samples: {list(vcf.header.samples)}"
                )

            for rec in vcf:
                stats["records_total"] += 1
                vid = _parse_variant_id(rec)
                if vid is None:
                    stats["skipped_no_id"] += 1
                    continue
                if wanted is not None and vid not in wanted:
                    continue

                s = rec.samples[sample]
                depth = _first(s.get("DP"))
                prob_absent_phred = _first(rec.info.get("PROB_ABSENT"))
                prob_absent = phred_to_prob(prob_absent_phred) if prob_absent_phred is not None else None
                afd_raw = s.get("AFD")
                if isinstance(afd_raw, (list, tuple)):
                    afd_raw = ",".join(str(x) for x in afd_raw if x is not None)
                afd = AlleleFreqDist.parse(afd_raw) if afd_raw else None

                failed = passes_quality_gates(depth, prob_absent, afd)
                if failed:
                    stats[f"skipped_{failed}"] += 1
                    continue

                af = _first(s.get("AF"))
                if af is None:
                    stats["skipped_afd"] += 1
                    continue
                calls[vid] = VariantCall(allele_frequency=float(af), afd=afd)  # type: ignore[arg-type]

        stats["records_kept"] = len(calls)
        self.stats = stats
        logger.info(
            "Loaded %d variant calls (%d records; skipped depth=%d prob_absent=%d afd=%d)",
            stats["records_kept"],
            stats["records_total"],
            stats["skipped_depth"],
            stats["skipped_prob_absent"],
            stats["skipped_afd"],
        )
        return VariantEvidence(calls)
