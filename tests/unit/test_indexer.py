"""
Unit tests for expression-index coding and grouping.
"""

import numpy as np
import pytest

from timeflux.analysis.cutoff_selector import chi_squared_uniformity
from timeflux.analysis.indexer import (
    build_index,
    decode_index,
    encode_index,
    group_by_index,
    group_sizes,
    index_codes,
    index_summary,
    index_table,
)
from timeflux.analysis.standardizer import standardize
from timeflux.utils.errors import InvalidRangeError


class TestCoding:
    def test_thresholds_are_strict(self):
        codes = index_codes(np.array([0.6, 0.5, -0.5, -0.51, 0.0]), 0.5)
        np.testing.assert_array_equal(codes, [1, 0, 0, -1, 0])

    def test_encode_concatenates_without_separator(self):
        assert encode_index([1, -1, 0]) == "1-10"
        assert encode_index([-1, 1]) == "-11"
        assert encode_index([0, 0, 0]) == "000"

    def test_decode_inverts_encode(self):
        for codes in [(1, -1, 0), (-1, -1, 1, 0), (0,), (1, 1, -1)]:
            assert decode_index(encode_index(codes)) == codes

    def test_decode_rejects_malformed_keys(self):
        for key in ["2", "1-0", "-", "1 0"]:
            with pytest.raises(ValueError):
                decode_index(key)

    def test_negative_cutoff_rejected(self):
        with pytest.raises(InvalidRangeError):
            index_codes(np.zeros(3), -0.1)


class TestBuildIndex:
    def test_scenario_two_groups_of_two(self, four_gene_standardized):
        index = build_index(four_gene_standardized, 0.5)
        assert index == {"g1": "1-10", "g2": "1-10", "g3": "0-10", "g4": "0-10"}

        groups = group_by_index(index)
        assert groups == {"1-10": ("g1", "g2"), "0-10": ("g3", "g4")}
        assert chi_squared_uniformity(group_sizes(index)) == 0.0

    @pytest.mark.parametrize("cutoff", [0.0, 0.5, 0.6, 0.7, 2.0])
    def test_key_length_matches_timepoints(self, synthetic_matrix, cutoff):
        std = standardize(synthetic_matrix)
        for key in build_index(std, cutoff).values():
            assert len(decode_index(key)) == synthetic_matrix.n_timepoints

    def test_higher_cutoff_never_adds_nonzero_codes(self, synthetic_matrix):
        std = standardize(synthetic_matrix)
        previous = None
        for cutoff in np.arange(0.0, 2.0, 0.05):
            nonzero = np.count_nonzero(index_codes(std.values, cutoff), axis=1)
            if previous is not None:
                assert np.all(nonzero <= previous)
            previous = nonzero

    def test_groups_partition_genes(self, synthetic_matrix):
        std = standardize(synthetic_matrix)
        groups = group_by_index(build_index(std, 0.6))
        members = [g for genes in groups.values() for g in genes]
        assert sum(len(v) for v in groups.values()) == synthetic_matrix.n_genes
        assert sorted(members) == sorted(synthetic_matrix.genes)


class TestTables:
    def test_index_table(self, four_gene_standardized):
        index = build_index(four_gene_standardized, 0.5)
        df = index_table(index, {"g2": "note"})
        assert df.columns == ["GENE", "INDEX_KEY", "ANNOTATION"]
        assert df["INDEX_KEY"].to_list() == ["1-10", "1-10", "0-10", "0-10"]
        assert df["ANNOTATION"].to_list() == [None, "note", None, None]

    def test_index_summary_sorted_by_size_then_key(self):
        groups = {"1": ("a",), "0": ("b", "c"), "-1": ("d",)}
        summary = index_summary(groups)
        assert summary["INDEX_KEY"].to_list() == ["0", "-1", "1"]
        assert summary["N_GENES"].to_list() == [2, 1, 1]
