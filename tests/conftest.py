"""
Pytest configuration and shared fixtures for timeflux tests.

This module provides:
    - Small hand-built expression matrices with known index keys
    - A seeded synthetic time-series matrix with a few temporal shapes
    - A config dict pointing at a temporary input file
"""

import numpy as np
import polars as pl
import pytest

from timeflux.dataset.expressionmatrix import ExpressionMatrix, StandardizedMatrix


@pytest.fixture
def four_gene_standardized():
    """Two genes coded '1-10' and two coded '0-10' at cutoff 0.5."""
    return StandardizedMatrix(
        genes=("g1", "g2", "g3", "g4"),
        timepoints=("t0", "t1", "t2"),
        values=np.array([
            [0.8, -0.9, 0.1],
            [0.6, -0.7, 0.0],
            [0.2, -0.9, 0.3],
            [0.0, -1.2, 0.4],
        ]),
        method="mean_sd",
    )


@pytest.fixture
def synthetic_matrix():
    """60 genes × 6 time points: rising, falling and peaking profiles plus noise."""
    rng = np.random.default_rng(0)
    t = np.linspace(0, 1, 6)
    shapes = [t, 1 - t, np.sin(np.pi * t)]
    rows, genes = [], []
    for s_idx, shape in enumerate(shapes):
        for i in range(20):
            amp = rng.uniform(1.0, 5.0)
            rows.append(10 + amp * shape + rng.normal(0, 0.1, size=t.size))
            genes.append(f"shape{s_idx}_gene{i}")
    return ExpressionMatrix(
        genes=tuple(genes),
        timepoints=tuple(f"h{h}" for h in range(6)),
        values=np.vstack(rows),
        annotations={genes[0]: "first rising gene"},
    )


@pytest.fixture
def expression_file(tmp_path, synthetic_matrix):
    """TSV written from the synthetic matrix, plus one flat and one incomplete gene."""
    df = synthetic_matrix.to_polars(with_annotation=True)
    extra = pl.DataFrame(
        {
            "GENE": ["flat_gene", "broken_gene"],
            "ANNOTATION": [None, "has a hole"],
            **{t: [5.0, 1.0 if t != "h3" else None] for t in synthetic_matrix.timepoints},
        },
        schema=df.schema,
    )
    path = tmp_path / "expression.tsv"
    pl.concat([df, extra]).write_csv(path, separator="\t")
    return path


@pytest.fixture
def config(tmp_path, expression_file):
    return {
        "dataset": {
            "input_file": str(expression_file),
            "gene_column": "GENE",
            "annotation_column": "ANNOTATION",
        },
        "analysis": {
            "scaling_method": "median_mad",
            "min_cutoff": 0.5,
            "max_cutoff": 0.7,
            "cutoff_step": 0.05,
            "clustering": {"enabled": True, "max_k": 10, "ratio_threshold": 0.2,
                           "scaling": True, "random_state": 42},
            "export_plot": True,
            "export_table": True,
            "exports": {
                "path_table": str(tmp_path / "out" / "timeflux"),
                "table_use_xlsx": False,
                "path_plot": str(tmp_path / "out" / "report.pdf"),
                "plot_max_groups": 3,
                "path_h5ad": str(tmp_path / "out" / "timeflux.h5ad"),
            },
        },
    }
