import math

import numpy as np
import pytest

from haplofrac.density import interpolate, vaf_query, vaf_query_many
from haplofrac.errors import OutOfRangeQuery
from haplofrac.models import AlleleFreqDist


def test_exact_key_returns_stored_density():
    afd = AlleleFreqDist.from_mapping({0.0: 0.1, 0.5: 0.9, 1.0: 0.2})
    assert vaf_query(afd, 0.5) == pytest.approx(math.log(0.9))
    assert vaf_query(afd, 0.0) == pytest.approx(math.log(0.1))


def test_interpolates_between_neighbouring_keys():
    afd = AlleleFreqDist.from_mapping({0.0: 0.1, 0.5: 0.9, 1.0: 0.2})
    assert interpolate(afd, 0.25) == pytest.approx(0.5)
    assert interpolate(afd, 0.75) == pytest.approx(0.55)
    assert vaf_query(afd, 0.25) == pytest.approx(math.log(0.5))


def test_query_outside_domain_raises():
    afd = AlleleFreqDist.from_mapping({0.2: 0.5, 0.8: 0.5})
    with pytest.raises(OutOfRangeQuery) as exc:
        vaf_query(afd, 0.1)
    assert exc.value.context["lower"] == 0.2
    with pytest.raises(OutOfRangeQuery):
        vaf_query(afd, 0.9)


def test_single_entry_distribution():
    afd = AlleleFreqDist.from_mapping({0.5: 0.3})
    assert vaf_query(afd, 0.5) == pytest.approx(math.log(0.3))
    with pytest.raises(OutOfRangeQuery):
        vaf_query(afd, 0.4)


def test_zero_density_is_minus_infinity():
    afd = AlleleFreqDist.from_mapping({0.0: 0.0, 1.0: 1.0})
    assert vaf_query(afd, 0.0) == -math.inf


def test_phred_scale():
    afd = AlleleFreqDist.from_mapping({0.0: 10.0, 1.0: 20.0})
    assert vaf_query(afd, 0.0, "phred") == pytest.approx(math.log(0.1))
    assert vaf_query(afd, 0.5, "phred") == pytest.approx(math.log(10 ** -1.5))


def test_vectorized_matches_scalar():
    afd = AlleleFreqDist.from_mapping({0.0: 0.05, 0.3: 0.4, 0.5: 0.9, 1.0: 0.01})
    vafs = np.array([0.0, 0.1, 0.3, 0.42, 0.5, 0.77, 1.0])
    expected = [vaf_query(afd, v) for v in vafs]
    assert vaf_query_many(afd, vafs) == pytest.approx(expected)

    with pytest.raises(OutOfRangeQuery):
        vaf_query_many(AlleleFreqDist.from_mapping({0.1: 1.0, 0.9: 1.0}), np.array([0.5, 0.95]))


def test_parse_skips_malformed_pairs():
    afd = AlleleFreqDist.parse("0.5=0.9,.,0.0=0.1")
    assert afd is not None
    assert afd.vafs == (0.0, 0.5)
    assert afd[0.5] == 0.9
    assert AlleleFreqDist.parse(".") is None


def test_keys_must_increase():
    with pytest.raises(ValueError):
        AlleleFreqDist(vafs=(0.5, 0.2), densities=(1.0, 1.0))
    with pytest.raises(ValueError):
        AlleleFreqDist(vafs=(), densities=())
