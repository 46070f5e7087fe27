from __future__ import annotations

import datetime as _dt
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from jinja2 import Template

from .models import CandidateMatrix, Haplotype, VariantEvidence
from .posterior import PosteriorEngine, Ranking
from .prefilter import PrefilterResult
from .utils import open_textmaybe_gzip

logger = logging.getLogger(__name__)


def format_number(x: float) -> str:
    """Signed scientific notation at or below 0.01, otherwise two decimals.

    Exponents are written without padding: ``+1.00e-2``, ``+0.00e0``.
    """
    if x <= 0.01:
        mantissa, exponent = f"{x:+.2e}".split("e")
        return f"{mantissa}e{int(exponent)}"
    return f"{x:.2f}"


def format_vaf(vaf: float) -> str:
    return f"{vaf:g}"


@dataclass(frozen=True)
class ReportTable:
    """Ranked events as display strings. Row 0 is the best event."""

    columns: List[str]
    rows: List[List[str]]
    haplotypes: List[Haplotype]

    def to_records(self, limit: Optional[int] = None) -> List[Dict[str, str]]:
        rows = self.rows if limit is None else self.rows[:limit]
        return [dict(zip(self.columns, r)) for r in rows]


def build_report(ranking: Ranking, engine: PosteriorEngine) -> ReportTable:
    """Format a ranking into the density/odds/fractions/variants table."""
    columns = ["density", "odds"] + list(ranking.haplotypes)
    columns += [str(vid) for vid in ranking.contributing_variants]

    best_lp = ranking.best.log_posterior
    rows: List[List[str]] = []
    for i, event in enumerate(ranking):
        row = [format_number(event.density)]
        if i == 0:
            row.append("1")
        elif event.log_posterior == best_lp:
            # also covers events tied at -inf, where the difference is NaN
            row.append(format_number(1.0))
        else:
            row.append(format_number(math.exp(event.log_posterior - best_lp)))
        row.extend(format_number(f) for f in event.fractions)
        queries = engine.variant_queries(event.fractions)
        for vid in ranking.contributing_variants:
            vaf, logp = queries[vid]
            row.append(f"{format_vaf(vaf)}:{format_number(math.exp(logp))}")
        rows.append(row)

    return ReportTable(columns=columns, rows=rows, haplotypes=list(ranking.haplotypes))


def rename_haplotypes(table: ReportTable, mapping: Mapping[Haplotype, str]) -> ReportTable:
    renamed = [mapping.get(h, h) for h in table.haplotypes]
    n = len(table.haplotypes)
    columns = table.columns[:2] + renamed + table.columns[2 + n :]
    return ReportTable(columns=columns, rows=table.rows, haplotypes=renamed)


def write_table(table: ReportTable, path: str | Path) -> Path:
    path = Path(path)
    with open_textmaybe_gzip(path, "wt") as fh:
        fh.write("\t".join(table.columns) + "\n")
        for row in table.rows:
            fh.write("\t".join(row) + "\n")
    return path


def solution_datasets(
    kind: str,
    matrix: CandidateMatrix,
    evidence: VariantEvidence,
    fractions: Sequence[float],
) -> Dict[str, List[Dict[str, Any]]]:
    """Long-format datasets for plotting a solution.

    ``kind="lp"`` covers fully covered variants and their PRESENT haplotypes;
    ``kind="final"`` covers every PRESENT-and-covered pair.
    """
    if kind == "lp":
        mask = matrix.present() & matrix.fully_covered()[:, None]
    elif kind == "final":
        mask = matrix.present_covered()
    else:
        raise ValueError(f"kind must be 'lp' or 'final', got {kind!r}")

    variants: List[Dict[str, Any]] = []
    haplotype_variants: List[Dict[str, Any]] = []
    haplotype_fractions: List[Dict[str, Any]] = []
    for i, vid in enumerate(matrix.variant_ids):
        af = evidence[vid].allele_frequency
        for j, h in enumerate(matrix.haplotypes):
            if not mask[i, j]:
                continue
            haplotype_fractions.append({"haplotype": h, "fraction": float(fractions[j])})
            haplotype_variants.append({"variant": vid, "haplotype": h})
            variants.append({"variant": vid, "vaf": float(af)})
    return {
        "variants": variants,
        "haplotype_variants": haplotype_variants,
        "haplotype_fractions": haplotype_fractions,
    }


_REPORT_TEMPLATE = Template(
    """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>HaploFrac Report</title>
  <style>
    body { font-family: Arial, Helvetica, sans-serif; margin: 24px; }
    code, pre { background: #f6f8fa; padding: 2px 4px; border-radius: 4px; }
    h1, h2, h3 { margin-top: 1.2em; }
    table { border-collapse: collapse; margin-top: 0.6em; }
    th, td { border: 1px solid #ddd; padding: 8px; }
    th { background: #f2f2f2; text-align: left; }
    .grid { display: grid; grid-template-columns: 1fr 1fr; gap: 16px; }
    .card { border: 1px solid #ddd; border-radius: 8px; padding: 12px; }
    .small { color: #666; font-size: 0.9em; }
    img { max-width: 100%; height: auto; border: 1px solid #eee; border-radius: 6px; }
  </style>
</head>
<body>

<h1>HaploFrac Report</h1>
<p class="small">Generated: {{ generated_at }}</p>

<h2>Run summary</h2>
<div class="grid">
  <div class="card">
    <h3>Inputs</h3>
    <table>
      <tr><th>Haplotype variants</th><td><code>{{ haplotype_variants }}</code></td></tr>
      <tr><th>Variant calls</th><td><code>{{ variant_calls }}</code></td></tr>
      <tr><th>Panel size</th><td>{{ panel_size }}</td></tr>
      <tr><th>Variants used</th><td>{{ n_variants }}</td></tr>
    </table>
  </div>
  <div class="card">
    <h3>Model</h3>
    <table>
      <tr><th>Prior</th><td>{{ config.prior_mode }}</td></tr>
      <tr><th>Max haplotypes</th><td>{{ config.max_haplotypes }}</td></tr>
      <tr><th>Upper fraction bound</th><td>{{ config.upper_fraction_bound }}</td></tr>
      <tr><th>LP selection threshold</th><td>{{ config.lp_selection_threshold }}</td></tr>
      {% if config.prior_mode == "uniform" %}
      <tr><th>Resolution</th><td>{{ config.resolution }}</td></tr>
      {% endif %}
      <tr><th>AFD scale</th><td>{{ config.afd_scale }}</td></tr>
    </table>
  </div>
</div>

<h2>Linear program</h2>
<table>
  <tr><th>Objective (sum |residual|)</th><td>{{ "%.4f"|format(lp.objective) }}</td></tr>
  <tr><th>Objective variants</th><td>{{ lp.objective_variants }}</td></tr>
  <tr><th>Selected</th><td>{{ lp.selected|join(", ") }}</td></tr>
  <tr><th>After signature expansion</th><td>{{ lp.haplotypes|join(", ") }}</td></tr>
</table>

<h2>Top events</h2>
<table>
  <tr>{% for c in columns %}<th>{{ c }}</th>{% endfor %}</tr>
  {% for row in rows %}
  <tr>{% for cell in row %}<td>{{ cell }}</td>{% endfor %}</tr>
  {% endfor %}
</table>
<p class="small">Showing {{ rows|length }} of {{ n_events }} events. Full table: <code>{{ table_path }}</code></p>

<h2>Plots</h2>
<div class="grid">
  <div class="card">
    <h3>LP solution</h3>
    <img src="{{ plots.lp_fractions }}" alt="LP fractions">
  </div>
  <div class="card">
    <h3>Best event</h3>
    <img src="{{ plots.best_fractions }}" alt="best event fractions">
  </div>
</div>
<div class="grid" style="margin-top:16px;">
  <div class="card">
    <h3>Event odds</h3>
    <img src="{{ plots.event_odds }}" alt="event odds">
  </div>
</div>

<h2>Interpretation notes</h2>
<ul>
  <li>Density is the unnormalized posterior; odds are relative to the best event.</li>
  <li>Variant cells read <code>implied VAF:probability</code> under the event.</li>
  <li>Haplotypes with identical variant signatures cannot be separated by the evidence.</li>
</ul>

<hr>
<p class="small">HaploFrac {{ version }}</p>
</body>
</html>"""
)


def render_report(
    *,
    outdir: str | Path,
    version: str,
    run: Dict[str, Any],
    prefilter_result: PrefilterResult,
    table: ReportTable,
    plots: Dict[str, str],
    max_rows: int = 20,
) -> Path:
    outdir = Path(outdir)
    outdir.mkdir(parents=True, exist_ok=True)

    html = _REPORT_TEMPLATE.render(
        generated_at=_dt.datetime.now().isoformat(timespec="seconds"),
        version=version,
        haplotype_variants=run.get("haplotype_variants"),
        variant_calls=run.get("variant_calls"),
        panel_size=run.get("panel_size"),
        n_variants=run.get("n_variants"),
        config=run.get("config", {}),
        lp={
            "objective": prefilter_result.objective,
            "objective_variants": len(prefilter_result.objective_variants),
            "selected": prefilter_result.selected,
            "haplotypes": prefilter_result.haplotypes,
        },
        columns=table.columns,
        rows=table.rows[:max_rows],
        n_events=len(table.rows),
        table_path=run.get("table_path"),
        plots=plots,
    )

    out_path = outdir / "report.html"
    out_path.write_text(html, encoding="utf-8")
    return out_path
