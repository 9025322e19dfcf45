"""
Unit tests for per-index k-means clustering.
"""

import logging

import numpy as np
import polars as pl
import pytest

from timeflux.analysis.index_clustering import (
    cluster_all,
    cluster_expression_tables,
    cluster_one,
    relabel_by_encounter,
)
from timeflux.analysis.indexer import build_index, group_by_index
from timeflux.analysis.standardizer import standardize
from timeflux.dataset.expressionmatrix import StandardizedMatrix
from timeflux.utils.errors import DegenerateClusterRequestError, UnknownIndexError


@pytest.fixture
def indexed(synthetic_matrix):
    std = standardize(synthetic_matrix)
    return std, group_by_index(build_index(std, 0.6))


def test_relabel_by_encounter():
    np.testing.assert_array_equal(relabel_by_encounter([2, 2, 0, 1, 0]), [1, 1, 2, 3, 2])


class TestClusterAll:
    def test_every_gene_assigned_once(self, indexed, synthetic_matrix):
        std, groups = indexed
        result = cluster_all(std, groups)
        genes = result.assignments["GENE"].to_list()
        assert len(genes) == synthetic_matrix.n_genes
        assert sorted(genes) == sorted(synthetic_matrix.genes)

    def test_optimal_k_per_group(self, indexed):
        std, groups = indexed
        result = cluster_all(std, groups)
        assert list(result.optimal_k) == list(groups)
        for key, k in result.optimal_k.items():
            assert 1 <= k <= max(1, min(10, len(groups[key]) - 1))
            clusters = result.assignments.filter(pl.col("INDEX_KEY") == key)["CLUSTER"]
            assert set(clusters.to_list()) == set(range(1, k + 1))

    def test_local_ids_in_encounter_order(self, indexed):
        std, groups = indexed
        result = cluster_all(std, groups)
        for key, genes in groups.items():
            assert result.cluster_of(genes[0]) == 1

    def test_optimal_k_table(self, indexed):
        std, groups = indexed
        table = cluster_all(std, groups, scaling=False).optimal_k_table()
        assert table.columns == ["INDEX_KEY", "K"]
        assert table.height == len(groups)

    def test_single_gene_group(self, four_gene_standardized):
        groups = {"1-10": ("g1",), "0-10": ("g3", "g4")}
        result = cluster_all(four_gene_standardized, groups)
        assert result.optimal_k["1-10"] == 1
        assert result.cluster_of("g1") == 1

    def test_deterministic(self, indexed):
        std, groups = indexed
        first = cluster_all(std, groups, random_state=3)
        second = cluster_all(std, groups, random_state=3)
        assert first.assignments.equals(second.assignments)


class TestClusterOne:
    def test_explicit_k_larger_than_group(self, four_gene_standardized):
        groups = group_by_index(build_index(four_gene_standardized, 0.5))
        with pytest.raises(DegenerateClusterRequestError) as exc:
            cluster_one(four_gene_standardized, groups, "1-10", k=3)
        assert exc.value.k == 3
        assert exc.value.group_size == 2
        assert exc.value.index_key == "1-10"

    def test_explicit_k_zero(self, four_gene_standardized):
        groups = group_by_index(build_index(four_gene_standardized, 0.5))
        with pytest.raises(DegenerateClusterRequestError):
            cluster_one(four_gene_standardized, groups, "1-10", k=0)

    def test_unknown_index(self, four_gene_standardized):
        groups = group_by_index(build_index(four_gene_standardized, 0.5))
        with pytest.raises(UnknownIndexError) as exc:
            cluster_one(four_gene_standardized, groups, "111")
        assert exc.value.index_key == "111"

    def test_explicit_k_used(self, four_gene_standardized):
        groups = group_by_index(build_index(four_gene_standardized, 0.5))
        tables = cluster_one(four_gene_standardized, groups, "0-10", k=2)
        assert sorted(tables) == [1, 2]
        assert sum(t.height for t in tables.values()) == 2

    def test_explicit_k_above_distinct_profiles_warns(self, caplog):
        std = StandardizedMatrix(
            genes=("x", "y", "z"), timepoints=("t0", "t1"),
            values=[[1.0, -1.0], [1.0, -1.0], [1.0, -1.0]],
        )
        with caplog.at_level(logging.WARNING, logger="timeflux"):
            tables = cluster_one(std, {"1-1": ("x", "y", "z")}, "1-1", k=3)
        assert sorted(tables) == [1]
        assert tables[1].height == 3
        assert any("only 1 distinct cluster" in r.getMessage() for r in caplog.records)

    def test_tables_carry_expression_values(self, indexed, synthetic_matrix):
        std, groups = indexed
        key = max(groups, key=lambda k: len(groups[k]))
        tables = cluster_one(std, groups, key, expression=synthetic_matrix)
        combined = pl.concat(list(tables.values()))
        assert combined.columns == ["GENE", "INDEX_KEY", "CLUSTER", *synthetic_matrix.timepoints]
        for row in combined.iter_rows(named=True):
            expected = synthetic_matrix.row(row["GENE"])
            got = [row[t] for t in synthetic_matrix.timepoints]
            np.testing.assert_allclose(got, expected)

    def test_expression_tables_split_by_cluster(self, synthetic_matrix):
        assignments = pl.DataFrame({
            "GENE": list(synthetic_matrix.genes[:3]),
            "INDEX_KEY": ["x", "x", "x"],
            "CLUSTER": [1, 2, 1],
        })
        tables = cluster_expression_tables(assignments, synthetic_matrix)
        assert tables[1]["GENE"].to_list() == list(synthetic_matrix.genes[0:3:2])
        assert tables[2].height == 1
