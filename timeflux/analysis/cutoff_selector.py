"""Optimal cutoff search for the expression index.

For each candidate cutoff the genes are indexed and the spread of group sizes
is scored with a chi-squared statistic against a uniform-size null:

    expected = n_genes / n_groups
    chi2     = sum((observed - expected)^2 / expected)

The cutoff with the smallest chi2 wins; ties go to the smallest cutoff.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
import polars as pl

from timeflux.analysis.indexer import build_index, group_sizes
from timeflux.analysis.standardizer import standardize
from timeflux.dataset.expressionmatrix import ExpressionMatrix, StandardizedMatrix
from timeflux.utils.errors import InvalidRangeError
from timeflux.utils.semantics import (
    COL_CHI_SQUARED,
    COL_CUTOFF,
    COL_N_GROUPS,
    DEFAULT_CUTOFF_STEP,
    DEFAULT_MAX_CUTOFF,
    DEFAULT_MIN_CUTOFF,
)
from timeflux.utils.utils import log_info, log_time

CURVE_SCHEMA = {COL_CUTOFF: pl.Float64, COL_CHI_SQUARED: pl.Float64, COL_N_GROUPS: pl.Int64}


@dataclass(frozen=True)
class CutoffSelection:
    cutoff: float
    # (CUTOFF, CHI_SQUARED, N_GROUPS); empty when the range was a single value
    curve: pl.DataFrame


def candidate_cutoffs(min_cutoff: float, max_cutoff: float, step: float = DEFAULT_CUTOFF_STEP) -> np.ndarray:
    """Inclusive grid min, min+step, ... <= max (rounded to absorb float drift)."""
    if not (np.isfinite(step) and step > 0):
        raise InvalidRangeError(f"Cutoff step must be > 0, got {step}.",
                                min_cutoff=min_cutoff, max_cutoff=max_cutoff, step=step)
    if not (np.isfinite(min_cutoff) and np.isfinite(max_cutoff)) or min_cutoff < 0:
        raise InvalidRangeError(f"Cutoff range must be finite and >= 0, got [{min_cutoff}, {max_cutoff}].",
                                min_cutoff=min_cutoff, max_cutoff=max_cutoff, step=step)
    if min_cutoff > max_cutoff:
        raise InvalidRangeError(f"min_cutoff ({min_cutoff}) > max_cutoff ({max_cutoff}).",
                                min_cutoff=min_cutoff, max_cutoff=max_cutoff, step=step)

    n_steps = int(np.floor((max_cutoff - min_cutoff) / step + 1e-9))
    return np.round(min_cutoff + step * np.arange(n_steps + 1), 10)


def chi_squared_uniformity(sizes: Sequence[int]) -> float:
    """Chi-squared of observed group sizes against equal-size groups.

    Evaluated as (n_groups * sum(s^2) - n^2) / n on integer sizes, which equals
    sum((s - e)^2 / e) with e = n / n_groups but does not depend on the order of
    the sizes, so equal groupings score exactly equal.
    """
    sizes = np.asarray(sizes, dtype=np.int64)
    if sizes.size == 0:
        return float("nan")
    n = int(sizes.sum())
    numerator = int(sizes.size) * int(np.sum(sizes * sizes)) - n * n
    return numerator / n


@log_time("Cutoff search")
def select_optimal_cutoff(
    matrix: ExpressionMatrix,
    min_cutoff: float = DEFAULT_MIN_CUTOFF,
    max_cutoff: float = DEFAULT_MAX_CUTOFF,
    step: float = DEFAULT_CUTOFF_STEP,
    use_median_mad: bool = True,
    standardized: Optional[StandardizedMatrix] = None,
) -> CutoffSelection:
    """
    Return the cutoff in [min_cutoff, max_cutoff] whose index groups are closest to uniform.

    `standardized` may be passed to reuse an existing standardization of `matrix`;
    otherwise the matrix is standardized once and shared across candidates.
    """
    candidates = candidate_cutoffs(min_cutoff, max_cutoff, step)

    if min_cutoff == max_cutoff:
        log_info(f"Single cutoff requested ({min_cutoff}); search skipped.")
        return CutoffSelection(cutoff=float(min_cutoff), curve=pl.DataFrame(schema=CURVE_SCHEMA))

    std = standardized if standardized is not None else standardize(matrix, use_median_mad)

    stats, n_groups = [], []
    for cutoff in candidates:
        sizes = group_sizes(build_index(std, float(cutoff)))
        stats.append(chi_squared_uniformity(sizes))
        n_groups.append(len(sizes))

    # argmin keeps the first minimum, i.e. the smallest cutoff on ties
    best = float(candidates[int(np.nanargmin(stats))])

    curve = pl.DataFrame(
        {COL_CUTOFF: candidates.tolist(), COL_CHI_SQUARED: stats, COL_N_GROUPS: n_groups},
        schema=CURVE_SCHEMA,
    )
    log_info(f"Evaluated {len(candidates)} cutoffs in [{min_cutoff}, {max_cutoff}] (step={step}); best={best}.")
    return CutoffSelection(cutoff=best, curve=curve)
