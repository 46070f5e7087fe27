from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .caller import call_haplotypes
from .config import PRIOR_MODES, InferenceConfig
from .density import SCALES
from .errors import HaploFracError
from .lp import get_backend
from .toy_data import make_toy_data
from .validation import check_haplotype_variants, check_variant_calls


def _setup_logging(verbosity: int, *, logfile: Optional[Path] = None) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    log_fmt = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    logging.basicConfig(level=level, format=log_fmt, stream=sys.stderr)

    if logfile is not None:
        logfile.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(logfile)
        fh.setLevel(level)
        fh.setFormatter(logging.Formatter(log_fmt))
        logging.getLogger().addHandler(fh)


def _path_exists(p: str) -> str:
    if not Path(p).exists():
        raise argparse.ArgumentTypeError(f"Path does not exist: {p}")
    return p


def _log_path(outdir: Path, name: str) -> Path:
    return outdir / "logs" / name


def _handle_error(err: Exception, *, log_path: Optional[Path] = None) -> int:
    msg = f"{err.__class__.__name__}: {err}"
    if isinstance(err, HaploFracError):
        logging.getLogger("haplofrac").error(msg)
    else:
        logging.getLogger("haplofrac").debug("Unexpected error", exc_info=err)

    sys.stderr.write(msg + "\n")
    if log_path is not None:
        sys.stderr.write(f"See log: {log_path}\n")
    return 2


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="haplofrac",
        description=(
            "HaploFrac: Bayesian estimation of haplotype fractions from variant allele "
            "frequency evidence (LP prefilter + posterior enumeration)."
        ),
    )
    p.add_argument("--version", action="version", version=f"haplofrac {__version__}")

    sub = p.add_subparsers(dest="cmd", required=True)

    # -----------------
    # quickstart
    # -----------------
    sub.add_parser(
        "quickstart",
        help="Print ready-to-run recipes for common scenarios.",
    )

    # -----------------
    # make-toy-data
    # -----------------
    t = sub.add_parser(
        "make-toy-data",
        help="Generate a tiny haplotype panel and variant calls for demos/tests.",
    )
    t.add_argument("--outdir", required=True, help="Output directory for toy data.")
    t.add_argument("--dry-run", action="store_true", help="Validate paths without writing files.")

    # -----------------
    # call
    # -----------------
    c = sub.add_parser(
        "call",
        help="Estimate haplotype fractions from haplotype variants + variant calls.",
    )
    c.add_argument(
        "--haplotype-variants",
        required=True,
        type=_path_exists,
        help="VCF/BCF with one sample per haplotype (GT = variant present, FORMAT/C = covered).",
    )
    c.add_argument(
        "--variant-calls",
        required=True,
        type=_path_exists,
        help="VCF/BCF with observed AF, DP, AFD and INFO/PROB_ABSENT.",
    )
    c.add_argument("--outdir", required=True, help="Output directory.")
    c.add_argument("--sample", default=None, help="Sample in the variant calls VCF (default: first).")
    c.add_argument(
        "--prior",
        choices=list(PRIOR_MODES),
        default="diploid",
        help="Event space / prior: diploid (hom + 0.5/0.5 het) or uniform simplex grid.",
    )
    c.add_argument(
        "--max-haplotypes",
        type=int,
        default=10,
        help="Maximum number of haplotypes kept after the LP prefilter.",
    )
    c.add_argument(
        "--upper-bound",
        type=float,
        default=1.0,
        help="Upper bound on the fraction of any single haplotype.",
    )
    c.add_argument(
        "--lp-threshold",
        type=float,
        default=0.01,
        help="Minimum LP fraction for a haplotype to be selected.",
    )
    c.add_argument(
        "--resolution",
        type=float,
        default=0.1,
        help="Grid step for the uniform prior (1/resolution must be an integer).",
    )
    c.add_argument(
        "--max-events",
        type=int,
        default=1_000_000,
        help="Abort if the event space is larger than this.",
    )
    c.add_argument(
        "--afd-scale",
        choices=list(SCALES),
        default="linear",
        help="How AFD densities are read: linear probabilities or PHRED-scaled.",
    )
    c.add_argument(
        "--lp-solver",
        choices=["highs", "cbc"],
        default="highs",
        help="LP backend: scipy HiGHS (default) or PuLP/CBC (requires haplofrac[pulp]).",
    )
    c.add_argument(
        "--xml",
        default=None,
        type=_path_exists,
        help="Optional IMGT/HLA XML; also writes G_groups.tsv with G-group names.",
    )
    c.add_argument(
        "--max-rows",
        type=int,
        default=20,
        help="Number of events shown in report.html (the TSV always has all).",
    )
    c.add_argument("--dry-run", action="store_true", help="Validate inputs and print planned outputs.")
    c.add_argument("--resume", action="store_true", help="Skip if summary.json already exists.")
    c.add_argument("--no-progress", action="store_true", help="Disable progress bars.")
    c.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity (-v/-vv).")

    return p


# -----------------
# Command handlers
# -----------------

def cmd_quickstart() -> int:
    lines = [
        "HaploFrac quickstart (copy/paste):",
        "",
        "1) Try it on toy data:",
        "   haplofrac make-toy-data --outdir toy/",
        "   haplofrac call \\",
        "     --haplotype-variants toy/haplotype_variants.vcf.gz \\",
        "     --variant-calls toy/variant_calls.vcf.gz \\",
        "     --outdir results/",
        "   Outputs: results/report.html, results/haplotype_fractions.tsv, results/summary.json",
        "",
        "2) HLA typing with G-group names:",
        "   haplofrac call \\",
        "     --haplotype-variants hla_alleles.vcf.gz \\",
        "     --variant-calls sample_calls.bcf \\",
        "     --xml hla.xml \\",
        "     --outdir hla_results/",
        "   Outputs: hla_results/haplotype_fractions.tsv and hla_results/G_groups.tsv",
        "",
        "3) Mixtures beyond diploid (e.g. viral lineages):",
        "   haplofrac call --prior uniform --resolution 0.05 --max-haplotypes 5 \\",
        "     --haplotype-variants lineages.vcf.gz --variant-calls calls.vcf.gz --outdir mix/",
        "",
        "Tip: use --dry-run to validate inputs without writing anything.",
    ]
    print("\n".join(lines))
    return 0


def cmd_make_toy_data(args: argparse.Namespace) -> int:
    outdir = Path(args.outdir).expanduser().resolve()
    if args.dry_run:
        print(f"Would write toy data into: {outdir}")
        return 0

    summary = make_toy_data(outdir=outdir)
    print(json.dumps(summary, indent=2))
    return 0


def cmd_call(args: argparse.Namespace) -> int:
    outdir = Path(args.outdir).expanduser().resolve()
    log_path = _log_path(outdir, "call.log")
    _setup_logging(args.verbose, logfile=None if args.dry_run else log_path)

    logger = logging.getLogger("haplofrac")
    logger.info("haplofrac %s", __version__)

    try:
        config = InferenceConfig(
            prior_mode=args.prior,
            max_haplotypes=int(args.max_haplotypes),
            upper_fraction_bound=float(args.upper_bound),
            lp_selection_threshold=float(args.lp_threshold),
            resolution=float(args.resolution),
            max_events=int(args.max_events),
            afd_scale=args.afd_scale,
        )
        panel = check_haplotype_variants(args.haplotype_variants)
        calls = check_variant_calls(args.variant_calls)

        if args.dry_run:
            print("Dry-run: inputs look OK.")
            print(f"Haplotypes in panel: {len(panel['samples'])}")
            print(f"Variant calls sample: {args.sample or calls['samples'][0]}")
            print("Planned outputs:")
            print(f"  haplotype_fractions.tsv -> {outdir / 'haplotype_fractions.tsv'}")
            if args.xml:
                print(f"  G_groups.tsv -> {outdir / 'G_groups.tsv'}")
            print(f"  report.html -> {outdir / 'report.html'}")
            print(f"  summary.json -> {outdir / 'summary.json'}")
            return 0

        if args.resume and (outdir / "summary.json").exists():
            logger.info("Resume enabled: summary.json already exists in %s", outdir)
            print(str(outdir / "report.html"))
            return 0

        summary = call_haplotypes(
            haplotype_variants=args.haplotype_variants,
            variant_calls=args.variant_calls,
            outdir=outdir,
            config=config,
            backend=get_backend(args.lp_solver),
            sample=args.sample,
            xml=args.xml,
            max_rows=int(args.max_rows),
            progress=not bool(args.no_progress),
        )

        logger.info("Report written: %s", summary["report_path"])
        print(str(summary["report_path"]))
        return 0
    except Exception as e:
        return _handle_error(e, log_path=log_path)


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.cmd == "quickstart":
        return cmd_quickstart()
    if args.cmd == "make-toy-data":
        return cmd_make_toy_data(args)
    if args.cmd == "call":
        return cmd_call(args)

    parser.error(f"Unknown command: {args.cmd}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
