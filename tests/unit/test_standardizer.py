"""
Unit tests for per-gene standardization.
"""

import numpy as np
import pytest

from timeflux.analysis.standardizer import degenerate_rows, row_center_spread, standardize
from timeflux.dataset.expressionmatrix import ExpressionMatrix
from timeflux.utils.errors import DegenerateRowError, TimefluxError


class TestMedianMad:
    def test_known_values(self):
        m = ExpressionMatrix(genes=("g",), timepoints=("a", "b", "c"), values=[[2.0, 0.0, 1.0]])
        std = standardize(m, use_median_mad=True)
        # median 1, MAD 1 * 1.4826
        np.testing.assert_allclose(std.values[0], [1 / 1.482602, -1 / 1.482602, 0.0], rtol=1e-5)
        assert std.method == "median_mad"

    def test_rows_are_median_centered(self, synthetic_matrix):
        std = standardize(synthetic_matrix, use_median_mad=True)
        np.testing.assert_allclose(np.median(std.values, axis=1), 0.0, atol=1e-12)

    def test_shape_and_keys_preserved(self, synthetic_matrix):
        std = standardize(synthetic_matrix)
        assert std.shape == synthetic_matrix.shape
        assert std.genes == synthetic_matrix.genes
        assert std.timepoints == synthetic_matrix.timepoints
        assert std.annotations == synthetic_matrix.annotations


class TestMeanSd:
    def test_rows_have_zero_mean_unit_sd(self, synthetic_matrix):
        std = standardize(synthetic_matrix, use_median_mad=False)
        np.testing.assert_allclose(std.values.mean(axis=1), 0.0, atol=1e-12)
        np.testing.assert_allclose(std.values.std(axis=1, ddof=1), 1.0, rtol=1e-12)
        assert std.method == "mean_sd"

    def test_center_and_spread_stored(self, synthetic_matrix):
        std = standardize(synthetic_matrix, use_median_mad=False)
        np.testing.assert_allclose(std.center, synthetic_matrix.values.mean(axis=1))
        np.testing.assert_allclose(std.spread, synthetic_matrix.values.std(axis=1, ddof=1))


class TestDegenerateRows:
    def test_zero_spread_raises_with_gene(self):
        m = ExpressionMatrix(genes=("ok", "flat"), timepoints=("a", "b", "c"),
                             values=[[1.0, 2.0, 3.0], [4.0, 4.0, 4.0]])
        with pytest.raises(DegenerateRowError) as exc:
            standardize(m, use_median_mad=False)
        assert exc.value.genes == ["flat"]
        assert exc.value.method == "mean_sd"
        assert isinstance(exc.value, TimefluxError)

    def test_zero_mad_with_nonzero_sd(self):
        # MAD is 0 when most values are equal, even though SD is not
        m = ExpressionMatrix(genes=("g",), timepoints=("a", "b", "c", "d", "e"),
                             values=[[1.0, 1.0, 1.0, 1.0, 9.0]])
        with pytest.raises(DegenerateRowError):
            standardize(m, use_median_mad=True)
        assert np.isfinite(standardize(m, use_median_mad=False).values).all()

    def test_degenerate_rows_mask(self):
        values = np.array([[1.0, 2.0, 3.0], [5.0, 5.0, 5.0]])
        np.testing.assert_array_equal(degenerate_rows(values, True), [False, True])
        np.testing.assert_array_equal(degenerate_rows(values, False), [False, True])

    def test_row_center_spread(self):
        center, spread = row_center_spread(np.array([[1.0, 2.0, 3.0, 4.0]]), use_median_mad=False)
        np.testing.assert_allclose(center, [2.5])
        np.testing.assert_allclose(spread, [np.std([1, 2, 3, 4], ddof=1)])
