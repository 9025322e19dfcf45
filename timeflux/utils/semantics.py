"""
Canonical semantics for timeflux.

This module is intentionally small and declarative:
  - Canonical scaling method values
  - Default numeric parameters shared by the pipeline, CLI and config template
  - Canonical table column names

Implementation details live elsewhere (standardizer, indexer, clustering).
"""

SCALING_METHODS_CANONICAL = ("median_mad", "mean_sd")

# Cutoff search
DEFAULT_MIN_CUTOFF = 0.5
DEFAULT_MAX_CUTOFF = 0.7
DEFAULT_CUTOFF_STEP = 0.05

# Elbow heuristic
DEFAULT_MAX_K = 10
DEFAULT_RATIO_THRESHOLD = 0.2
DEFAULT_RANDOM_STATE = 42

# Table columns
COL_GENE = "GENE"
COL_ANNOTATION = "ANNOTATION"
COL_INDEX_KEY = "INDEX_KEY"
COL_CLUSTER = "CLUSTER"
COL_N_GENES = "N_GENES"
COL_CUTOFF = "CUTOFF"
COL_CHI_SQUARED = "CHI_SQUARED"
COL_N_GROUPS = "N_GROUPS"
COL_K = "K"
