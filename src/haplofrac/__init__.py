"""HaploFrac: Bayesian haplotype fraction estimation from variant allele frequency evidence.

Public API is intentionally small; most users should use the CLI:

    haplofrac call --haplotype-variants ... --variant-calls ... --outdir ...

"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
