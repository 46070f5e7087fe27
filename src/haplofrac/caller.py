from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from . import __version__
from .candidates import load_views
from .config import InferenceConfig
from .ggroups import load_g_groups, to_g_groups
from .lp import LPBackend
from .models import CandidateMatrix, VariantEvidence
from .plotting import plot_event_odds, plot_fractions
from .posterior import PosteriorEngine, Ranking
from .prefilter import PrefilterResult, prefilter
from .report import ReportTable, build_report, rename_haplotypes, render_report, solution_datasets, write_table
from .sources import EvidenceSource, GenotypeSource
from .utils import ensure_outdir, write_json
from .vcf_sources import VcfEvidenceSource, VcfGenotypeSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Inference:
    """Everything one inference call produced, before any file is written."""

    matrix: CandidateMatrix
    evidence: VariantEvidence
    prefilter: PrefilterResult
    ranking: Ranking
    table: ReportTable


def infer(
    matrix: CandidateMatrix,
    evidence: VariantEvidence,
    config: InferenceConfig,
    *,
    backend: Optional[LPBackend] = None,
    progress: bool = False,
) -> Inference:
    """LP prefilter -> posterior enumeration -> report table. No I/O."""
    pre = prefilter(matrix, evidence, config, backend=backend)
    engine = PosteriorEngine(pre.matrix, evidence, config)
    ranking = engine.rank(progress=progress)
    table = build_report(ranking, engine)
    return Inference(matrix=matrix, evidence=evidence, prefilter=pre, ranking=ranking, table=table)


def infer_from_sources(
    genotype_source: GenotypeSource,
    evidence_source: EvidenceSource,
    config: InferenceConfig,
    *,
    backend: Optional[LPBackend] = None,
    progress: bool = False,
) -> Inference:
    matrix, evidence = load_views(genotype_source, evidence_source)
    return infer(matrix, evidence, config, backend=backend, progress=progress)


def call_haplotypes(
    *,
    haplotype_variants: str,
    variant_calls: str,
    outdir: str | Path,
    config: InferenceConfig,
    backend: Optional[LPBackend] = None,
    sample: Optional[str] = None,
    xml: Optional[str] = None,
    max_rows: int = 20,
    progress: bool = True,
) -> Dict[str, object]:
    """Main workhorse: read VCFs, infer fractions, write outputs, and return summary dict.

    Outputs are written only once the full ranking and table exist, so a failure
    leaves no partial results behind.
    """
    t0 = time.time()

    evidence_source = VcfEvidenceSource(variant_calls, sample=sample)
    result = infer_from_sources(
        VcfGenotypeSource(haplotype_variants),
        evidence_source,
        config,
        backend=backend,
        progress=progress,
    )
    g_table: Optional[ReportTable] = None
    if xml is not None:
        mapping = to_g_groups(result.ranking.haplotypes, load_g_groups(xml))
        g_table = rename_haplotypes(result.table, mapping)

    outdir_path = ensure_outdir(outdir)
    table_path = write_table(result.table, outdir_path / "haplotype_fractions.tsv")
    g_table_path = None
    if g_table is not None:
        g_table_path = write_table(g_table, outdir_path / "G_groups.tsv")

    pre = result.prefilter
    full = result.matrix
    lp_fracs = [pre.lp_fractions[h] for h in full.haplotypes]
    write_json(
        outdir_path / "lp_solution.json",
        solution_datasets("lp", full, result.evidence, lp_fracs),
    )
    best = result.ranking.best
    write_json(
        outdir_path / "final_solution.json",
        solution_datasets("final", pre.matrix, result.evidence, best.fractions),
    )

    plots_dir = outdir_path / "plots"
    plots_dir.mkdir(parents=True, exist_ok=True)
    lp_png = plots_dir / "lp_fractions.png"
    best_png = plots_dir / "best_fractions.png"
    odds_png = plots_dir / "event_odds.png"
    plot_fractions(
        haplotypes=full.haplotypes,
        fractions=lp_fracs,
        out_png=lp_png,
        title="LP solution",
        highlight=pre.selected,
    )
    plot_fractions(
        haplotypes=result.ranking.haplotypes,
        fractions=best.fractions,
        out_png=best_png,
        title="Best event",
    )
    plot_event_odds(log_posteriors=[e.log_posterior for e in result.ranking], out_png=odds_png)

    log_marginal = result.ranking.log_marginal
    summary: Dict[str, object] = {
        "version": __version__,
        "haplotype_variants": str(haplotype_variants),
        "variant_calls": str(variant_calls),
        "config": config.to_dict(),
        "panel_size": full.n_haplotypes,
        "n_variants": full.n_variants,
        "evidence_stats": evidence_source.stats,
        "lp": {
            "objective": pre.objective,
            "objective_variants": list(pre.objective_variants),
            "fractions": pre.lp_fractions,
            "residuals": {str(k): v for k, v in pre.residuals(result.evidence, full).items()},
            "selected": list(pre.selected),
            "haplotypes": list(pre.haplotypes),
        },
        "n_events": len(result.ranking),
        "best_event": {
            "fractions": dict(zip(result.ranking.haplotypes, best.fractions)),
            "log_posterior": best.log_posterior,
            "posterior_probability": math.exp(best.log_posterior - log_marginal)
            if math.isfinite(log_marginal)
            else None,
        },
        "table_path": str(table_path),
        "g_groups_table_path": str(g_table_path) if g_table_path is not None else None,
    }

    plots_rel = {
        "lp_fractions": str(Path("plots") / lp_png.name),
        "best_fractions": str(Path("plots") / best_png.name),
        "event_odds": str(Path("plots") / odds_png.name),
    }
    report_path = render_report(
        outdir=outdir_path,
        version=__version__,
        run=summary,
        prefilter_result=pre,
        table=result.table,
        plots=plots_rel,
        max_rows=max_rows,
    )
    summary["report_path"] = str(report_path)
    summary["runtime_seconds"] = float(time.time() - t0)
    write_json(outdir_path / "summary.json", summary)
    return summary
