from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import polars as pl

from timeflux.analysis.cutoff_selector import CutoffSelection, select_optimal_cutoff
from timeflux.analysis.index_clustering import IndexClusteringResult, cluster_all, cluster_one
from timeflux.analysis.indexer import build_index, group_by_index, index_summary, index_table
from timeflux.analysis.standardizer import standardize
from timeflux.dataset.expressionmatrix import ExpressionMatrix, StandardizedMatrix
from timeflux.utils.scaling_method import normalize_scaling_method
from timeflux.utils.semantics import (
    DEFAULT_CUTOFF_STEP,
    DEFAULT_MAX_CUTOFF,
    DEFAULT_MIN_CUTOFF,
    DEFAULT_MAX_K,
    DEFAULT_RANDOM_STATE,
    DEFAULT_RATIO_THRESHOLD,
)
from timeflux.utils.utils import log_info


@dataclass(frozen=True)
class AnalysisSession:
    """Immutable state of one analysis: matrix, standardization, cutoff and index groups.

    Changing the cutoff or the scaling method yields a new session; clustering
    is computed on demand and never stored back.
    """
    matrix: ExpressionMatrix
    scaling_method: str
    standardized: StandardizedMatrix
    cutoff: float
    index: Dict[str, str]
    groups: Dict[str, Tuple[str, ...]]
    cutoff_selection: Optional[CutoffSelection] = None

    @classmethod
    def create(
        cls,
        matrix: ExpressionMatrix,
        scaling_method: str = "median_mad",
        cutoff: Optional[float] = None,
        min_cutoff: float = DEFAULT_MIN_CUTOFF,
        max_cutoff: float = DEFAULT_MAX_CUTOFF,
        step: float = DEFAULT_CUTOFF_STEP,
    ) -> "AnalysisSession":
        """Standardize `matrix` and index it, searching the cutoff unless one is given."""
        method = normalize_scaling_method(scaling_method)
        std = standardize(matrix, use_median_mad=(method == "median_mad"))

        selection = None
        if cutoff is None:
            selection = select_optimal_cutoff(
                matrix, min_cutoff, max_cutoff, step,
                use_median_mad=(method == "median_mad"), standardized=std,
            )
            cutoff = selection.cutoff
        else:
            log_info(f"Using fixed cutoff {cutoff}.")

        return cls._indexed(matrix, method, std, float(cutoff), selection)

    @classmethod
    def _indexed(cls, matrix, method, std, cutoff, selection) -> "AnalysisSession":
        index = build_index(std, cutoff)
        groups = group_by_index(index)
        log_info(f"Cutoff {cutoff}: {len(groups)} distinct indices over {len(index)} genes.")
        return cls(
            matrix=matrix,
            scaling_method=method,
            standardized=std,
            cutoff=cutoff,
            index=index,
            groups=groups,
            cutoff_selection=selection,
        )

    def with_cutoff(self, cutoff: float) -> "AnalysisSession":
        """Re-index at `cutoff`, reusing the standardized matrix.

        The search result is kept only while the cutoff is the searched one.
        """
        cutoff = float(cutoff)
        selection = self.cutoff_selection
        if selection is not None and selection.cutoff != cutoff:
            selection = None
        return self._indexed(self.matrix, self.scaling_method, self.standardized, cutoff, selection)

    def with_scaling_method(self, scaling_method: str) -> "AnalysisSession":
        method = normalize_scaling_method(scaling_method)
        if method == self.scaling_method:
            return self
        std = standardize(self.matrix, use_median_mad=(method == "median_mad"))
        return self._indexed(self.matrix, method, std, self.cutoff, None)

    def index_table(self) -> pl.DataFrame:
        return index_table(self.index, self.matrix.annotations)

    def index_summary(self) -> pl.DataFrame:
        return index_summary(self.groups)

    def cluster_all(
        self,
        scaling: bool = True,
        max_k: int = DEFAULT_MAX_K,
        ratio_threshold: float = DEFAULT_RATIO_THRESHOLD,
        random_state: int = DEFAULT_RANDOM_STATE,
    ) -> IndexClusteringResult:
        return cluster_all(self.standardized, self.groups, scaling=scaling, max_k=max_k,
                           ratio_threshold=ratio_threshold, random_state=random_state)

    def cluster_one(
        self,
        index_key: str,
        k: Optional[int] = None,
        scaling: bool = True,
        max_k: int = DEFAULT_MAX_K,
        ratio_threshold: float = DEFAULT_RATIO_THRESHOLD,
        random_state: int = DEFAULT_RANDOM_STATE,
    ) -> Dict[int, pl.DataFrame]:
        """Per-cluster tables for one index, carrying the original expression values."""
        return cluster_one(self.standardized, self.groups, index_key, k=k, scaling=scaling,
                           expression=self.matrix, max_k=max_k,
                           ratio_threshold=ratio_threshold, random_state=random_state)
