"""k-means clustering inside expression-index groups.

Provides:
  - cluster_all: every index group gets an elbow-selected k and local cluster IDs.
  - cluster_one: one requested index group, with an optional explicit k, returned
                 as one expression table per cluster (ready for line plots).

Cluster IDs are local to a group (1..k, numbered in the order the group's genes
first meet each centroid), so the same ID appears in different groups.
"""

from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Sequence

import numpy as np
import polars as pl
from sklearn.preprocessing import StandardScaler

from timeflux.analysis.elbow import kmeans_labels, select_k
from timeflux.dataset.expressionmatrix import ExpressionMatrix, StandardizedMatrix
from timeflux.utils.errors import DegenerateClusterRequestError, UnknownIndexError
from timeflux.utils.semantics import (
    COL_CLUSTER,
    COL_GENE,
    COL_INDEX_KEY,
    COL_K,
    DEFAULT_MAX_K,
    DEFAULT_RANDOM_STATE,
    DEFAULT_RATIO_THRESHOLD,
)
from timeflux.utils.utils import log_info, log_time, log_warning

ASSIGNMENT_SCHEMA = {COL_GENE: pl.Utf8, COL_INDEX_KEY: pl.Utf8, COL_CLUSTER: pl.Int64}


@dataclass(frozen=True)
class IndexClusteringResult:
    optimal_k: Dict[str, int]
    # (GENE, INDEX_KEY, CLUSTER), groups in input order, genes in group order
    assignments: pl.DataFrame

    def optimal_k_table(self) -> pl.DataFrame:
        return pl.DataFrame(
            {COL_INDEX_KEY: list(self.optimal_k.keys()), COL_K: list(self.optimal_k.values())},
            schema={COL_INDEX_KEY: pl.Utf8, COL_K: pl.Int64},
        )

    def cluster_of(self, gene: str) -> int:
        hit = self.assignments.filter(pl.col(COL_GENE) == gene)
        if hit.is_empty():
            raise KeyError(f"Gene {gene!r} was not clustered.")
        return int(hit.get_column(COL_CLUSTER)[0])


def relabel_by_encounter(labels: Sequence[int]) -> np.ndarray:
    """Renumber arbitrary labels to 1..k in order of first appearance."""
    mapping: Dict[int, int] = {}
    out = np.empty(len(labels), dtype=np.int64)
    for i, lab in enumerate(labels):
        if lab not in mapping:
            mapping[lab] = len(mapping) + 1
        out[i] = mapping[lab]
    return out


def group_values(std_matrix: StandardizedMatrix, genes: Sequence[str], scaling: bool) -> np.ndarray:
    """Standardized rows of `genes`, column-scaled within the group when `scaling`."""
    values = std_matrix.rows(genes)
    if scaling and len(genes) > 1:
        values = StandardScaler().fit_transform(values)
    return values


def _cluster_group(
    index_key: str,
    values: np.ndarray,
    k: Optional[int],
    max_k: int,
    ratio_threshold: float,
    random_state: int,
) -> tuple:
    if k is None:
        k = select_k(values, max_k=max_k, ratio_threshold=ratio_threshold, random_state=random_state)
    labels = relabel_by_encounter(kmeans_labels(values, k, random_state))
    n_found = len(np.unique(labels))
    if n_found < k:
        # k-means cannot split identical profiles
        log_warning(f"Index '{index_key}': k={k} requested but only {n_found} distinct cluster(s) found.")
    return k, labels


def _members(groups: Mapping[str, Sequence[str]], index_key: str) -> Sequence[str]:
    genes = groups.get(index_key) or ()
    if len(genes) == 0:
        raise UnknownIndexError(index_key)
    return genes


@log_time("Clustering index groups")
def cluster_all(
    std_matrix: StandardizedMatrix,
    index_groups: Mapping[str, Sequence[str]],
    scaling: bool = True,
    max_k: int = DEFAULT_MAX_K,
    ratio_threshold: float = DEFAULT_RATIO_THRESHOLD,
    random_state: int = DEFAULT_RANDOM_STATE,
) -> IndexClusteringResult:
    """Elbow-selected k-means in every index group."""
    optimal_k: Dict[str, int] = {}
    genes_out, keys_out, clusters_out = [], [], []

    for index_key, genes in index_groups.items():
        if len(genes) == 0:
            continue
        values = group_values(std_matrix, genes, scaling)
        k, labels = _cluster_group(index_key, values, None, max_k, ratio_threshold, random_state)

        optimal_k[index_key] = int(k)
        genes_out.extend(genes)
        keys_out.extend([index_key] * len(genes))
        clusters_out.extend(labels.tolist())

    log_info(f"Clustered {len(genes_out)} genes in {len(optimal_k)} index groups.")
    assignments = pl.DataFrame(
        {COL_GENE: genes_out, COL_INDEX_KEY: keys_out, COL_CLUSTER: clusters_out},
        schema=ASSIGNMENT_SCHEMA,
    )
    return IndexClusteringResult(optimal_k=optimal_k, assignments=assignments)


def cluster_expression_tables(
    assignments: pl.DataFrame,
    matrix: ExpressionMatrix,
) -> Dict[int, pl.DataFrame]:
    """Split assignments into per-cluster (GENE, INDEX_KEY, CLUSTER, <time points>) tables."""
    values = matrix.rows(assignments.get_column(COL_GENE).to_list())
    joined = assignments.with_columns(
        [pl.Series(t, values[:, j], dtype=pl.Float64) for j, t in enumerate(matrix.timepoints)]
    )
    return {
        int(cluster): joined.filter(pl.col(COL_CLUSTER) == cluster)
        for cluster in joined.get_column(COL_CLUSTER).unique(maintain_order=True).to_list()
    }


@log_time("Clustering single index group")
def cluster_one(
    std_matrix: StandardizedMatrix,
    index_groups: Mapping[str, Sequence[str]],
    index_key: str,
    k: Optional[int] = None,
    scaling: bool = True,
    expression: Optional[ExpressionMatrix] = None,
    max_k: int = DEFAULT_MAX_K,
    ratio_threshold: float = DEFAULT_RATIO_THRESHOLD,
    random_state: int = DEFAULT_RANDOM_STATE,
) -> Dict[int, pl.DataFrame]:
    """
    Cluster a single index group and return one table per cluster.

    An explicit `k` bypasses the elbow heuristic and must lie in [1, group size];
    a group with fewer distinct profiles than `k` yields fewer tables (logged).
    Tables carry the values of `expression` (e.g. the raw matrix) when given,
    otherwise the standardized values.
    """
    genes = _members(index_groups, index_key)
    if k is not None and not (1 <= int(k) <= len(genes)):
        raise DegenerateClusterRequestError(index_key, int(k), len(genes))

    values = group_values(std_matrix, genes, scaling)
    k, labels = _cluster_group(index_key, values, None if k is None else int(k),
                               max_k, ratio_threshold, random_state)
    log_info(f"Index '{index_key}': {len(genes)} genes in k={k} cluster(s).")

    assignments = pl.DataFrame(
        {COL_GENE: list(genes), COL_INDEX_KEY: [index_key] * len(genes), COL_CLUSTER: labels.tolist()},
        schema=ASSIGNMENT_SCHEMA,
    )
    return cluster_expression_tables(assignments, expression if expression is not None else std_matrix)
