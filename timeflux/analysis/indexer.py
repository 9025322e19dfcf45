"""Expression index: symbolic up/flat/down encoding of standardized profiles.

Each standardized value is coded 1 (> cutoff), -1 (< -cutoff) or 0, and a
gene's codes are concatenated in time-point order into its index key, e.g.
[1, -1, 0] -> "1-10". A minus sign is always followed by "1", so keys decode
back to their code sequence without a separator.
"""

import re
from collections import Counter
from typing import Dict, Mapping, Sequence, Tuple

import numpy as np
import polars as pl

from timeflux.dataset.expressionmatrix import StandardizedMatrix
from timeflux.utils.errors import InvalidRangeError
from timeflux.utils.semantics import COL_ANNOTATION, COL_GENE, COL_INDEX_KEY, COL_N_GENES

_CODE_PATTERN = re.compile(r"-1|0|1")
_KEY_PATTERN = re.compile(r"(?:-1|0|1)*")


def index_codes(values: np.ndarray, cutoff: float) -> np.ndarray:
    """Code an array of standardized values into {-1, 0, 1} (int8, same shape)."""
    if not np.isfinite(cutoff) or cutoff < 0:
        raise InvalidRangeError(f"Cutoff must be a finite value >= 0, got {cutoff}.")
    values = np.asarray(values, dtype=np.float64)
    codes = np.zeros(values.shape, dtype=np.int8)
    codes[values > cutoff] = 1
    codes[values < -cutoff] = -1
    return codes


def encode_index(codes: Sequence[int]) -> str:
    return "".join(str(int(c)) for c in codes)


def decode_index(key: str) -> Tuple[int, ...]:
    """Inverse of `encode_index`."""
    if not _KEY_PATTERN.fullmatch(key):
        raise ValueError(f"Malformed index key: {key!r}")
    return tuple(int(tok) for tok in _CODE_PATTERN.findall(key))


def build_index(std_matrix: StandardizedMatrix, cutoff: float) -> Dict[str, str]:
    """Map every gene (matrix order) to its index key at `cutoff`."""
    codes = index_codes(std_matrix.values, cutoff)
    return {gene: encode_index(row) for gene, row in zip(std_matrix.genes, codes)}


def group_by_index(index: Mapping[str, str]) -> Dict[str, Tuple[str, ...]]:
    """
    Invert gene -> key into key -> genes.

    Keys appear in first-encounter order and member genes keep the order of
    `index`, so every gene lands in exactly one group.
    """
    groups: Dict[str, list] = {}
    for gene, key in index.items():
        groups.setdefault(key, []).append(gene)
    return {key: tuple(genes) for key, genes in groups.items()}


def group_sizes(index: Mapping[str, str]) -> np.ndarray:
    return np.asarray(list(Counter(index.values()).values()), dtype=np.int64)


def index_table(index: Mapping[str, str], annotations: Mapping[str, str] = None) -> pl.DataFrame:
    """(GENE, INDEX_KEY[, ANNOTATION]) table in gene order."""
    data = {
        COL_GENE: list(index.keys()),
        COL_INDEX_KEY: list(index.values()),
    }
    if annotations:
        data[COL_ANNOTATION] = [annotations.get(g) for g in index.keys()]
    return pl.DataFrame(data, schema_overrides={COL_ANNOTATION: pl.Utf8} if annotations else None)


def index_summary(groups: Mapping[str, Sequence[str]]) -> pl.DataFrame:
    """Distinct index keys with member counts, largest groups first (ties by key)."""
    return (
        pl.DataFrame(
            {
                COL_INDEX_KEY: list(groups.keys()),
                COL_N_GENES: [len(v) for v in groups.values()],
            },
            schema={COL_INDEX_KEY: pl.Utf8, COL_N_GENES: pl.Int64},
        )
        .sort([COL_N_GENES, COL_INDEX_KEY], descending=[True, False])
    )
