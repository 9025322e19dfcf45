"""Expression-index analysis driven by a config dict.

This module provides:
  - `analysis_settings`: resolve the `analysis` config section with defaults
  - `run_index_pipeline`: standardize -> cutoff (search or fixed) -> index -> cluster
"""

from typing import Any, Dict, Optional, Tuple

from timeflux.analysis.index_clustering import IndexClusteringResult
from timeflux.dataset.expressionmatrix import ExpressionMatrix
from timeflux.dataset.session import AnalysisSession
from timeflux.utils.scaling_method import normalize_scaling_method
from timeflux.utils.semantics import (
    DEFAULT_CUTOFF_STEP,
    DEFAULT_MAX_CUTOFF,
    DEFAULT_MAX_K,
    DEFAULT_MIN_CUTOFF,
    DEFAULT_RANDOM_STATE,
    DEFAULT_RATIO_THRESHOLD,
)
from timeflux.utils.utils import log_info, log_time, log_warning


def analysis_settings(config: Optional[dict]) -> Dict[str, Any]:
    """Flatten `config['analysis']` (and its `clustering` block) into typed settings."""
    analysis_cfg = (config or {}).get("analysis", {}) or {}
    clustering_cfg = analysis_cfg.get("clustering", {}) or {}

    cutoff = analysis_cfg.get("cutoff")
    return {
        "scaling_method": normalize_scaling_method(analysis_cfg.get("scaling_method", "median_mad")),
        "cutoff": None if cutoff is None else float(cutoff),
        "min_cutoff": float(analysis_cfg.get("min_cutoff", DEFAULT_MIN_CUTOFF)),
        "max_cutoff": float(analysis_cfg.get("max_cutoff", DEFAULT_MAX_CUTOFF)),
        "step": float(analysis_cfg.get("cutoff_step", DEFAULT_CUTOFF_STEP)),
        "clustering_enabled": bool(clustering_cfg.get("enabled", True)),
        "max_k": int(clustering_cfg.get("max_k", DEFAULT_MAX_K)),
        "ratio_threshold": float(clustering_cfg.get("ratio_threshold", DEFAULT_RATIO_THRESHOLD)),
        "scaling": bool(clustering_cfg.get("scaling", True)),
        "random_state": int(clustering_cfg.get("random_state", DEFAULT_RANDOM_STATE)),
    }


@log_time("Index analysis pipeline")
def run_index_pipeline(
    matrix: ExpressionMatrix, config: Optional[dict] = None
) -> Tuple[AnalysisSession, Optional[IndexClusteringResult]]:
    """Build the analysis session and, unless disabled, cluster every index group."""
    settings = analysis_settings(config)

    session = AnalysisSession.create(
        matrix,
        scaling_method=settings["scaling_method"],
        cutoff=settings["cutoff"],
        min_cutoff=settings["min_cutoff"],
        max_cutoff=settings["max_cutoff"],
        step=settings["step"],
    )

    if not settings["clustering_enabled"]:
        log_warning("Clustering disabled in config; only the expression index is computed.")
        return session, None

    clustering = session.cluster_all(
        scaling=settings["scaling"],
        max_k=settings["max_k"],
        ratio_threshold=settings["ratio_threshold"],
        random_state=settings["random_state"],
    )
    log_info(f"Total clusters: {sum(clustering.optimal_k.values())}")
    return session, clustering
