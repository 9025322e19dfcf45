"""Elbow heuristic for the number of k-means clusters in one index group."""

import warnings
from typing import Iterator, Optional, Tuple

import numpy as np
import polars as pl
from sklearn.cluster import KMeans
from sklearn.exceptions import ConvergenceWarning

from timeflux.utils.semantics import (
    COL_K,
    DEFAULT_MAX_K,
    DEFAULT_RANDOM_STATE,
    DEFAULT_RATIO_THRESHOLD,
)


def bounded_max_k(n_points: int, max_k: Optional[int] = None) -> int:
    """Largest k worth trying: min(max_k, 10, n_points - 1), never below 1."""
    bound = min(DEFAULT_MAX_K, n_points - 1)
    if max_k is not None:
        bound = min(bound, int(max_k))
    return max(1, bound)


def kmeans_labels(values: np.ndarray, k: int, random_state: int = DEFAULT_RANDOM_STATE) -> np.ndarray:
    """k-means++ labels (0..k-1) with a fixed seed; k == 1 needs no fit."""
    values = np.asarray(values, dtype=np.float64)
    if k == 1:
        return np.zeros(values.shape[0], dtype=int)
    with warnings.catch_warnings():
        # fewer distinct points than k
        warnings.filterwarnings("ignore", category=ConvergenceWarning)
        km = KMeans(n_clusters=k, init="k-means++", n_init=10, random_state=random_state)
        return km.fit_predict(values)


def wss_tss(values: np.ndarray, labels: np.ndarray) -> Tuple[float, float]:
    """Within-cluster and total sums of squared distances to the centroids."""
    values = np.asarray(values, dtype=np.float64)
    tss = float(np.sum((values - values.mean(axis=0)) ** 2))
    wss = 0.0
    for lab in np.unique(labels):
        members = values[labels == lab]
        wss += float(np.sum((members - members.mean(axis=0)) ** 2))
    return wss, tss


def _elbow_steps(values: np.ndarray, upper: int, random_state: int) -> Iterator[Tuple[int, float, float, float]]:
    """Yield (k, WSS, TSS, ratio) for k = 1..upper; k-means runs lazily per k."""
    tss = float(np.sum((values - values.mean(axis=0)) ** 2))
    for k in range(1, upper + 1):
        if k == 1:
            yield k, tss, tss, 1.0
            continue
        wss, _ = wss_tss(values, kmeans_labels(values, k, random_state))
        yield k, wss, tss, (wss / tss if tss > 0 else 0.0)


def elbow_curve(
    values: np.ndarray,
    max_k: Optional[int] = None,
    random_state: int = DEFAULT_RANDOM_STATE,
) -> pl.DataFrame:
    """(K, WSS, TSS, RATIO) for k = 1..bounded_max_k; RATIO is 1.0 at k = 1."""
    values = np.asarray(values, dtype=np.float64)
    rows = list(_elbow_steps(values, bounded_max_k(values.shape[0], max_k), random_state))
    return pl.DataFrame(
        rows,
        schema={COL_K: pl.Int64, "WSS": pl.Float64, "TSS": pl.Float64, "RATIO": pl.Float64},
        orient="row",
    )


def select_k(
    values: np.ndarray,
    max_k: Optional[int] = None,
    ratio_threshold: float = DEFAULT_RATIO_THRESHOLD,
    random_state: int = DEFAULT_RANDOM_STATE,
) -> int:
    """
    Smallest k whose WSS/TSS ratio drops below `ratio_threshold`, else the largest k tried.

    Groups of fewer than two genes, or whose genes are all identical, get k = 1
    without running k-means.
    """
    values = np.asarray(values, dtype=np.float64)
    n = values.shape[0]
    if n < 2:
        return 1
    if float(np.sum((values - values.mean(axis=0)) ** 2)) == 0.0:
        return 1

    upper = bounded_max_k(n, max_k)
    for k, _, _, ratio in _elbow_steps(values, upper, random_state):
        if ratio < ratio_threshold:
            return k
    return upper
