import gzip
import math
from pathlib import Path

import pytest

from conftest import N, P, evidence_source, genotype_source
from haplofrac.candidates import load_views
from haplofrac.caller import infer
from haplofrac.config import InferenceConfig
from haplofrac.models import AlleleFreqDist
from haplofrac.report import format_number, format_vaf, rename_haplotypes, solution_datasets, write_table


def test_number_formatting():
    assert format_number(0.5) == "0.50"
    assert format_number(1.0) == "1.00"
    assert format_number(0.01) == "+1.00e-2"
    assert format_number(0.00405) == "+4.05e-3"
    assert format_number(0.0) == "+0.00e0"
    assert format_vaf(0.5) == "0.5"
    assert format_vaf(1.0) == "1"


def test_table_layout(two_haplotype_example):
    matrix, evidence = load_views(*two_haplotype_example)
    table = infer(matrix, evidence, InferenceConfig()).table

    assert table.columns == ["density", "odds", "A", "B", "1", "2", "3"]
    assert len(table.rows) == 3
    best = table.rows[0]
    assert best[0] == format_number(0.5 * 0.9 * 0.01 * 0.9)
    assert best[1] == "1"
    assert best[2:4] == ["0.50", "0.50"]
    assert best[4] == "0.5:0.90"
    assert best[6] == "0.5:0.90"
    # homozygous events are 0.01^3 * 0.25 / (0.9^2 * 0.01 * 0.5) times as likely
    odds = 0.25 * 0.01**3 / (0.5 * 0.9 * 0.01 * 0.9)
    assert [r[1] for r in table.rows[1:]] == [format_number(odds)] * 2
    assert table.to_records(limit=1)[0]["A"] == "0.50"


def test_write_and_rename(two_haplotype_example, tmp_path: Path):
    matrix, evidence = load_views(*two_haplotype_example)
    table = infer(matrix, evidence, InferenceConfig()).table

    out = write_table(rename_haplotypes(table, {"A": "A-group"}), tmp_path / "t.tsv.gz")
    with gzip.open(out, "rt") as fh:
        lines = fh.read().splitlines()
    assert lines[0].split("\t") == ["density", "odds", "A-group", "B", "1", "2", "3"]
    assert len(lines) == 4


def test_solution_datasets(two_haplotype_example):
    matrix, evidence = load_views(*two_haplotype_example)
    data = solution_datasets("final", matrix, evidence, [0.25, 0.75])

    assert {"variant": 2, "haplotype": "B"} in data["haplotype_variants"]
    assert len(data["variants"]) == len(data["haplotype_fractions"]) == 4
    assert data["haplotype_fractions"][0] == {"haplotype": "A", "fraction": 0.25}
    with pytest.raises(ValueError):
        solution_datasets("other", matrix, evidence, [0.5, 0.5])
    assert math.isclose(sum(v["vaf"] for v in data["variants"]), 0.5 + 1.0 + 1.0 + 0.5)


def test_odds_when_evidence_rules_out_every_event():
    genotypes = genotype_source(["A", "B"], {1: [P, N], 2: [P, P], 3: [N, P]})
    zero = AlleleFreqDist.from_mapping({0.0: 0.0, 0.5: 0.0, 1.0: 0.0})
    matrix, evidence = load_views(genotypes, evidence_source({1: 0.5, 2: 1.0, 3: 0.5}, afd=zero))
    table = infer(matrix, evidence, InferenceConfig()).table

    assert [r[:2] for r in table.rows] == [
        ["+0.00e0", "1"],
        ["+0.00e0", "1.00"],
        ["+0.00e0", "1.00"],
    ]
    assert all("nan" not in cell for r in table.rows for cell in r)
