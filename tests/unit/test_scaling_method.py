"""
Unit tests for scaling method normalization.
"""

import pytest

from timeflux.utils.scaling_method import normalize_scaling_method, uses_median_mad


@pytest.mark.parametrize("raw, expected", [
    (None, "median_mad"),
    ("", "median_mad"),
    ("median_mad", "median_mad"),
    ("MEAN_SD", "mean_sd"),
    (True, "median_mad"),
    (False, "mean_sd"),
])
def test_canonical_values(raw, expected):
    assert normalize_scaling_method(raw) == expected


@pytest.mark.parametrize("raw, expected", [
    ("mad", "median_mad"),
    ("robust", "median_mad"),
    ("zscore", "mean_sd"),
    ("sd", "mean_sd"),
])
def test_aliases_warn(raw, expected):
    with pytest.warns(DeprecationWarning):
        assert normalize_scaling_method(raw) == expected


def test_unknown_rejected():
    with pytest.raises(ValueError, match="Unsupported"):
        normalize_scaling_method("quantile")


def test_uses_median_mad():
    assert uses_median_mad("median_mad")
    assert not uses_median_mad("mean_sd")
