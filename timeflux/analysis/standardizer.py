"""Per-gene standardization of an expression matrix.

Each gene (row) is centered and scaled with its own statistics across time
points, either robustly (median / MAD) or classically (mean / SD).
"""

import warnings
from typing import Tuple

import numpy as np
from scipy.stats import median_abs_deviation

from timeflux.dataset.expressionmatrix import ExpressionMatrix, StandardizedMatrix
from timeflux.utils.errors import DegenerateRowError
from timeflux.utils.utils import log_info


def row_center_spread(values: np.ndarray, use_median_mad: bool = True) -> Tuple[np.ndarray, np.ndarray]:
    """
    Return per-row (center, spread) of a genes × time points array.

    median_mad: median and MAD scaled by the normal-consistency constant (~1.4826)
    mean_sd   : mean and sample standard deviation (ddof=1)
    """
    values = np.asarray(values, dtype=np.float64)
    if use_median_mad:
        center = np.median(values, axis=1)
        spread = median_abs_deviation(values, axis=1, scale="normal")
    else:
        center = np.mean(values, axis=1)
        with warnings.catch_warnings():  # single time point: ddof=1 yields NaN
            warnings.filterwarnings("ignore", category=RuntimeWarning)
            spread = np.std(values, axis=1, ddof=1)
    return center, spread


def degenerate_rows(values: np.ndarray, use_median_mad: bool = True) -> np.ndarray:
    """Boolean mask of rows whose spread is zero or not finite."""
    _, spread = row_center_spread(values, use_median_mad)
    return ~np.isfinite(spread) | (spread == 0)


def standardize(matrix: ExpressionMatrix, use_median_mad: bool = True) -> StandardizedMatrix:
    """Center and scale every gene; fail on zero-spread genes instead of producing NaN/Inf."""
    method = "median_mad" if use_median_mad else "mean_sd"

    center, spread = row_center_spread(matrix.values, use_median_mad)

    bad = ~np.isfinite(spread) | (spread == 0)
    if bad.any():
        raise DegenerateRowError([matrix.genes[i] for i in np.where(bad)[0]], method)

    scaled = (matrix.values - center[:, None]) / spread[:, None]
    log_info(f"Standardized {matrix.n_genes} genes × {matrix.n_timepoints} time points ({method}).")

    return StandardizedMatrix(
        genes=matrix.genes,
        timepoints=matrix.timepoints,
        values=scaled,
        annotations=matrix.annotations,
        method=method,
        center=center,
        spread=spread,
    )
