from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("timeflux")
except PackageNotFoundError:
    __version__ = "0+unknown"  # e.g. running from source without install

from timeflux.dataset.expressionmatrix import ExpressionMatrix, StandardizedMatrix
from timeflux.dataset.session import AnalysisSession
from timeflux.analysis.standardizer import standardize
from timeflux.analysis.indexer import build_index, group_by_index
from timeflux.analysis.cutoff_selector import select_optimal_cutoff
from timeflux.analysis.elbow import select_k
from timeflux.analysis.index_clustering import cluster_all, cluster_one
from timeflux.utils.errors import (
    TimefluxError,
    DegenerateRowError,
    InvalidRangeError,
    UnknownIndexError,
    DegenerateClusterRequestError,
)
