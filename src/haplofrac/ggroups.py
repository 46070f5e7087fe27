"""Map HLA allele names to G groups using the IMGT/HLA XML release.

Only confirmed alleles that carry an ``hla_g_group`` element are mapped. Allele
names are stored without their ``HLA-`` prefix, matching how haplotypes are
usually named in the panel.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Dict, Iterable, Optional

from .models import Haplotype

logger = logging.getLogger(__name__)


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def load_g_groups(xml_path: str | Path) -> Dict[str, str]:
    """Return ``{allele name: G group}`` for confirmed alleles, sorted by allele name."""
    mapping: Dict[str, str] = {}
    name: Optional[str] = None
    confirmed = False
    group: Optional[str] = None

    for event, elem in ET.iterparse(str(xml_path), events=("start", "end")):
        tag = _local(elem.tag)
        if event == "start":
            if tag == "allele":
                name = elem.get("name", "")
                name = name.split("-", 1)[1] if "-" in name else name
                confirmed = False
                group = None
            elif tag == "releaseversions" and name is not None:
                confirmed = elem.get("confirmed") == "Confirmed"
            elif tag == "hla_g_group" and name is not None:
                group = elem.get("status")
            continue

        if tag == "allele":
            if name and group and confirmed:
                mapping[name] = group
            name = None
            elem.clear()

    logger.info("Loaded %d allele -> G group assignments from %s", len(mapping), xml_path)
    return dict(sorted(mapping.items()))


def to_g_groups(haplotypes: Iterable[Haplotype], allele_to_group: Dict[str, str]) -> Dict[Haplotype, str]:
    """Name each haplotype by the G group of the first allele it prefixes.

    Haplotypes without a match keep their own name.
    """
    out: Dict[Haplotype, str] = {}
    for h in haplotypes:
        out[h] = h
        for allele, group in allele_to_group.items():
            if allele.startswith(h):
                out[h] = group
                break
    return out
