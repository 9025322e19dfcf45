from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import polars as pl

from timeflux.utils.semantics import COL_ANNOTATION, COL_GENE


@dataclass(frozen=True)
class ExpressionMatrix:
    """Genes × ordered time points, one finite value per cell.

    Values are stored as a read-only float64 copy.
    """
    genes: Tuple[str, ...]
    timepoints: Tuple[str, ...]
    values: np.ndarray
    # Free-text per-gene annotation, carried to exports untouched
    annotations: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        genes = tuple(str(g) for g in self.genes)
        timepoints = tuple(str(t) for t in self.timepoints)
        values = np.array(self.values, dtype=np.float64, copy=True)

        if values.ndim != 2:
            raise ValueError(f"Expression values must be 2D (genes × time points), got shape {values.shape}")
        if values.shape != (len(genes), len(timepoints)):
            raise ValueError(
                f"Expression values have shape {values.shape}, expected "
                f"({len(genes)} genes, {len(timepoints)} time points)."
            )
        if not genes:
            raise ValueError("Expression matrix has no genes.")
        if len(set(genes)) != len(genes):
            seen, dups = set(), []
            for g in genes:
                if g in seen:
                    dups.append(g)
                seen.add(g)
            raise ValueError(f"Gene identifiers must be unique; duplicated: {sorted(set(dups))[:10]}")
        if len(set(timepoints)) != len(timepoints):
            raise ValueError("Time-point labels must be unique.")
        if not np.all(np.isfinite(values)):
            bad = [genes[i] for i in np.where(~np.isfinite(values).all(axis=1))[0]]
            raise ValueError(f"Missing or non-finite values for gene(s): {bad[:10]}")

        values.setflags(write=False)
        object.__setattr__(self, "genes", genes)
        object.__setattr__(self, "timepoints", timepoints)
        object.__setattr__(self, "values", values)
        object.__setattr__(self, "annotations", dict(self.annotations or {}))

    @property
    def n_genes(self) -> int:
        return len(self.genes)

    @property
    def n_timepoints(self) -> int:
        return len(self.timepoints)

    @property
    def shape(self) -> Tuple[int, int]:
        return self.values.shape

    def gene_positions(self) -> Dict[str, int]:
        return {g: i for i, g in enumerate(self.genes)}

    def row(self, gene: str) -> np.ndarray:
        try:
            return self.values[self.gene_positions()[gene]]
        except KeyError:
            raise KeyError(f"Unknown gene: {gene!r}") from None

    def rows(self, genes: Sequence[str]) -> np.ndarray:
        """Return the sub-matrix of `genes`, in the order given."""
        pos = self.gene_positions()
        missing = [g for g in genes if g not in pos]
        if missing:
            raise KeyError(f"Unknown gene(s): {missing[:10]}")
        return self.values[[pos[g] for g in genes]]

    def subset(self, genes: Sequence[str]) -> "ExpressionMatrix":
        genes = list(genes)
        return ExpressionMatrix(
            genes=tuple(genes),
            timepoints=self.timepoints,
            values=self.rows(genes),
            annotations={g: self.annotations[g] for g in genes if g in self.annotations},
        )

    @classmethod
    def from_polars(
        cls,
        df: pl.DataFrame,
        gene_col: str = COL_GENE,
        timepoints: Optional[Sequence[str]] = None,
        annotation_col: Optional[str] = None,
    ) -> "ExpressionMatrix":
        """Build from a wide frame; time points default to every non-gene, non-annotation column."""
        if gene_col not in df.columns:
            raise ValueError(f"Gene column '{gene_col}' not found; columns are {df.columns[:20]}")
        if timepoints is None:
            timepoints = [c for c in df.columns if c not in (gene_col, annotation_col)]
        missing = [t for t in timepoints if t not in df.columns]
        if missing:
            raise ValueError(f"Time-point column(s) not found: {missing}")

        genes = df.get_column(gene_col).cast(pl.Utf8).to_list()
        values = df.select([pl.col(t).cast(pl.Float64) for t in timepoints]).to_numpy()

        annotations = {}
        if annotation_col is not None:
            if annotation_col not in df.columns:
                raise ValueError(f"Annotation column '{annotation_col}' not found.")
            notes = df.get_column(annotation_col).cast(pl.Utf8).to_list()
            annotations = {g: a for g, a in zip(genes, notes) if a is not None}

        return cls(genes=tuple(genes), timepoints=tuple(timepoints), values=values, annotations=annotations)

    def to_polars(self, gene_col: str = COL_GENE, with_annotation: bool = False) -> pl.DataFrame:
        data = {gene_col: list(self.genes)}
        if with_annotation:
            data[COL_ANNOTATION] = [self.annotations.get(g) for g in self.genes]
        for j, t in enumerate(self.timepoints):
            data[t] = self.values[:, j]
        return pl.DataFrame(data, schema_overrides={COL_ANNOTATION: pl.Utf8} if with_annotation else None)

    def to_pandas(self) -> pd.DataFrame:
        df = pd.DataFrame(self.values, index=list(self.genes), columns=list(self.timepoints))
        df.index.name = COL_GENE
        return df


@dataclass(frozen=True)
class StandardizedMatrix(ExpressionMatrix):
    """Per-gene centered and scaled values, plus the statistics used."""
    method: str = "median_mad"
    center: Optional[np.ndarray] = None
    spread: Optional[np.ndarray] = None

    def __post_init__(self):
        super().__post_init__()
        for name in ("center", "spread"):
            arr = getattr(self, name)
            if arr is None:
                continue
            arr = np.array(arr, dtype=np.float64, copy=True)
            if arr.shape != (len(self.genes),):
                raise ValueError(f"'{name}' must hold one value per gene, got shape {arr.shape}")
            arr.setflags(write=False)
            object.__setattr__(self, name, arr)

    def subset(self, genes: Sequence[str]) -> "StandardizedMatrix":
        genes = list(genes)
        pos = self.gene_positions()
        idx = [pos[g] for g in genes]
        return StandardizedMatrix(
            genes=tuple(genes),
            timepoints=self.timepoints,
            values=self.rows(genes),
            annotations={g: self.annotations[g] for g in genes if g in self.annotations},
            method=self.method,
            center=None if self.center is None else self.center[idx],
            spread=None if self.spread is None else self.spread[idx],
        )
