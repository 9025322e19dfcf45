import pyarrow.csv as pv_csv
import polars as pl
import pandas as pd
import numpy as np
from copy import deepcopy
from typing import List, Optional

from timeflux.analysis.standardizer import degenerate_rows
from timeflux.dataset.expressionmatrix import ExpressionMatrix
from timeflux.utils.scaling_method import uses_median_mad
from timeflux.utils.semantics import COL_GENE
from timeflux.utils.utils import log_time, log_info, log_warning


class Dataset:
    """Load a wide gene × time-point table and turn it into a clean ExpressionMatrix."""
    def __init__(self, **kwargs):
        """
        Initialize the dataset object.

        Args:
            kwargs: dict with all the config elements
        """

        # Dataset-specific config
        dataset_cfg = deepcopy(kwargs.get("dataset", {}) or {})
        self.file_path = dataset_cfg.get("input_file", None)
        self.load_method = dataset_cfg.get("load_method", "polars")
        self.gene_column = dataset_cfg.get("gene_column", COL_GENE)
        self.annotation_column = dataset_cfg.get("annotation_column", None)
        self.timepoints = dataset_cfg.get("timepoints", None)

        # Accept string OR list for exclude_timepoints
        raw_excl = dataset_cfg.get("exclude_timepoints")

        def _to_list(x):
            if x is None:
                return []
            if isinstance(x, str):
                return [x.strip()] if x.strip() else []
            try:
                return [str(v).strip() for v in x if str(v).strip()]
            except TypeError:
                # not iterable (e.g. int); fall back to single item
                s = str(x).strip()
                return [s] if s else []

        self.exclude_timepoints = _to_list(raw_excl)

        # The variability filter must use the same statistics as the analysis
        analysis_cfg = kwargs.get("analysis", {}) or {}
        self.use_median_mad = uses_median_mad(analysis_cfg.get("scaling_method", "median_mad"))

        if self.file_path is None:
            raise ValueError("dataset.input_file is required.")

        # Process
        self._load_and_process()

    def _load_and_process(self):
        self.rawinput = self._load_rawdata(self.file_path)
        self.matrix = self._build_matrix(self.rawinput)

    @log_time("Data Loading")
    def _load_rawdata(self, file_path: str) -> pl.DataFrame:
        """Load raw data from a CSV or TSV file using different libraries."""
        file_path = str(file_path)
        if not file_path.endswith((".csv", ".tsv", ".txt")):
            raise ValueError("Only CSV, TSV or TXT (tab-separated) files are supported.")

        delimiter = "," if file_path.endswith(".csv") else "\t"

        if self.load_method == "polars":
            return pl.read_csv(file_path,
                               separator=delimiter,
                               infer_schema_length=10000,
                               null_values=["NA", "NaN", "N/A", ""])
        elif self.load_method == "pyarrow":
            parse_options = pv_csv.ParseOptions(delimiter=delimiter)
            convert_options = pv_csv.ConvertOptions(null_values=["NA", "NaN", "N/A", ""],
                                                    strings_can_be_null=True)
            arrow_table = pv_csv.read_csv(file_path, parse_options=parse_options,
                                          convert_options=convert_options)
            return pl.from_arrow(arrow_table)
        elif self.load_method == "pandas":
            df = pd.read_csv(file_path, delimiter=delimiter)
            return pl.from_pandas(df)
        else:
            raise ValueError(f"Unknown load method: {self.load_method}")

    def _resolve_timepoints(self, df: pl.DataFrame) -> List[str]:
        if self.gene_column not in df.columns:
            raise ValueError(f"Gene column '{self.gene_column}' not found in input; columns are {df.columns[:20]}")
        if self.annotation_column and self.annotation_column not in df.columns:
            raise ValueError(f"Annotation column '{self.annotation_column}' not found in input.")

        reserved = {self.gene_column, self.annotation_column}
        if self.timepoints:
            timepoints = [str(t) for t in self.timepoints]
            missing = [t for t in timepoints if t not in df.columns]
            if missing:
                raise ValueError(f"Configured time point(s) not in input: {missing}")
        else:
            timepoints = [c for c in df.columns if c not in reserved]

        unknown = sorted(set(self.exclude_timepoints) - set(timepoints))
        if unknown:
            log_info(f"Exclude time points: {len(unknown)} not found in data → ignored: {unknown[:10]}")
        timepoints = [t for t in timepoints if t not in self.exclude_timepoints]

        if len(timepoints) < 2:
            raise ValueError(f"Need at least 2 time points, found {timepoints}")
        return timepoints

    @log_time("Data Processing")
    def _build_matrix(self, df: pl.DataFrame) -> ExpressionMatrix:
        """Select columns, drop incomplete / duplicated / flat genes, return the matrix."""
        timepoints = self._resolve_timepoints(df)
        keep_cols = [self.gene_column] + ([self.annotation_column] if self.annotation_column else []) + timepoints

        df = df.select(keep_cols).with_columns(
            [pl.col(self.gene_column).cast(pl.Utf8)]
            + [pl.col(t).cast(pl.Float64, strict=False) for t in timepoints]
        )

        n_before = df.height
        df = df.filter(pl.col(self.gene_column).is_not_null())
        df = df.drop_nulls(subset=timepoints)
        df = df.filter(pl.all_horizontal([pl.col(t).is_finite() for t in timepoints]))
        if df.height < n_before:
            log_info(f"Incomplete rows: dropped {n_before - df.height} gene(s) with missing values.")

        n_before = df.height
        df = df.unique(subset=[self.gene_column], keep="first", maintain_order=True)
        if df.height < n_before:
            log_warning(f"Duplicated genes: dropped {n_before - df.height} row(s), first occurrence kept.")

        values = df.select(timepoints).to_numpy().astype(np.float64)
        flat = degenerate_rows(values, self.use_median_mad) if df.height else np.zeros(0, dtype=bool)
        if flat.any():
            method = "MAD" if self.use_median_mad else "SD"
            log_info(f"Variability filter: dropped {int(flat.sum())} gene(s) with {method} == 0, "
                     f"kept={int((~flat).sum())}.")
            df = df.filter(pl.Series(~flat))

        if df.height == 0:
            raise ValueError("No genes left after filtering.")

        return ExpressionMatrix.from_polars(
            df,
            gene_col=self.gene_column,
            timepoints=timepoints,
            annotation_col=self.annotation_column,
        )

    def get_matrix(self) -> ExpressionMatrix:
        return self.matrix
