from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List

import pysam

logger = logging.getLogger(__name__)

_VCF_SUFFIXES = (".vcf", ".vcf.gz", ".bcf")


def check_vcf_path(vcf_path: str | Path) -> None:
    """Ensure a path looks like a VCF/BCF; raise ValueError with fix instructions."""
    vcf = Path(vcf_path)
    if not vcf.name.endswith(_VCF_SUFFIXES):
        raise ValueError(
            f"Expected a .vcf, .vcf.gz or .bcf file, got: {vcf}. "
            "Convert with: bcftools view -Oz -o out.vcf.gz " + str(vcf)
        )
    if vcf.name.endswith(".vcf"):
        logger.info(
            "VCF is uncompressed (.vcf). This is supported but slower; "
            "consider bgzip+tabix for large files."
        )


def _header_fields(vcf_path: str | Path) -> Dict[str, List[str]]:
    with pysam.VariantFile(str(vcf_path)) as vcf:
        return {
            "samples": list(vcf.header.samples),
            "formats": list(vcf.header.formats),
            "info": list(vcf.header.info),
        }


def check_haplotype_variants(vcf_path: str | Path) -> Dict[str, List[str]]:
    """Validate the header of a haplotype-variants VCF and return its fields."""
    check_vcf_path(vcf_path)
    fields = _header_fields(vcf_path)
    if not fields["samples"]:
        raise ValueError(f"Haplotype variants VCF has no haplotype samples: {vcf_path}")
    missing = [f for f in ("GT", "C") if f not in fields["formats"]]
    if missing:
        raise ValueError(
            f"Haplotype variants VCF is missing FORMAT fields {missing}: {vcf_path}. "
            "GT marks variant presence, C marks coverage per haplotype."
        )
    return fields


def check_variant_calls(vcf_path: str | Path) -> Dict[str, List[str]]:
    """Validate the header of a variant-calls VCF and return its fields."""
    check_vcf_path(vcf_path)
    fields = _header_fields(vcf_path)
    if not fields["samples"]:
        raise ValueError(f"Variant calls VCF has no samples: {vcf_path}")
    missing = [f for f in ("AF", "DP", "AFD") if f not in fields["formats"]]
    if "PROB_ABSENT" not in fields["info"]:
        missing.append("INFO/PROB_ABSENT")
    if missing:
        raise ValueError(f"Variant calls VCF is missing fields {missing}: {vcf_path}")
    return fields
