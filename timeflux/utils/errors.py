"""Error kinds raised by the timeflux core.

Every error is terminal for the operation that raised it and carries the
offending genes, index key or parameters so a driver (CLI, notebook) can
report them and let the user retry with corrected input.
"""

from typing import Optional, Sequence


class TimefluxError(ValueError):
    """Base class of all core errors."""


class DegenerateRowError(TimefluxError):
    """One or more genes have zero (or non-finite) spread across time points."""

    def __init__(self, genes: Sequence[str], method: str):
        self.genes = list(genes)
        self.method = method
        head = ", ".join(map(str, self.genes[:10]))
        tail = " ..." if len(self.genes) > 10 else ""
        super().__init__(
            f"{len(self.genes)} gene(s) have zero spread under '{method}' scaling "
            f"and must be filtered before standardization: [{head}{tail}]"
        )


class InvalidRangeError(TimefluxError):
    """Malformed cutoff range, step or cutoff value."""

    def __init__(self, message: str, min_cutoff: Optional[float] = None,
                 max_cutoff: Optional[float] = None, step: Optional[float] = None):
        self.min_cutoff = min_cutoff
        self.max_cutoff = max_cutoff
        self.step = step
        super().__init__(message)


class UnknownIndexError(TimefluxError):
    """The requested index key has no member genes."""

    def __init__(self, index_key: str):
        self.index_key = index_key
        super().__init__(f"Index '{index_key}' has no member genes.")


class DegenerateClusterRequestError(TimefluxError):
    """An explicit cluster count outside [1, group size]."""

    def __init__(self, index_key: str, k: int, group_size: int):
        self.index_key = index_key
        self.k = k
        self.group_size = group_size
        super().__init__(
            f"Cannot build k={k} clusters for index '{index_key}' "
            f"with {group_size} gene(s); k must lie in [1, {group_size}]."
        )
