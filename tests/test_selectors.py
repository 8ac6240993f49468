"""Tests for selector resolution."""

import numpy as np
import pandas as pd
import pytest

from assayview.core.errors import EmptySelection, ShapeMismatch
from assayview.core.selectors import resolve_selector


@pytest.fixture
def ids():
    return pd.Index(["TP53", "MYC", "EGFR", "KRAS"])


@pytest.fixture
def annotation(ids):
    return pd.DataFrame({'chrom': ['chr17', 'chr8', 'chr7', 'chr12'],
                         'oncogene': [False, True, True, True]}, index=ids)


class TestResolveSelector:

    def test_none_selects_all(self, ids):
        assert list(resolve_selector(None, ids)) == [0, 1, 2, 3]

    def test_identifiers_keep_requested_order(self, ids):
        assert list(resolve_selector(["KRAS", "TP53"], ids)) == [3, 0]

    def test_pd_index_is_always_labels(self):
        numeric_ids = pd.Index([7157, 4609, 1956])
        assert list(resolve_selector(pd.Index([1956]), numeric_ids)) == [2]

    def test_integer_positions(self, ids):
        assert list(resolve_selector([2, 0], ids)) == [2, 0]
        assert list(resolve_selector(np.array([1]), ids)) == [1]

    def test_single_identifier(self, ids):
        assert list(resolve_selector("EGFR", ids)) == [2]

    def test_slice(self, ids):
        assert list(resolve_selector(slice(1, 3), ids)) == [1, 2]

    def test_boolean_mask(self, ids):
        mask = np.array([True, False, True, False])
        assert list(resolve_selector(mask, ids)) == [0, 2]

    def test_boolean_series_aligned_by_label(self, ids):
        mask = pd.Series([True, False, True, False], index=ids[::-1])
        assert list(resolve_selector(mask, ids)) == [1, 3]

    def test_boolean_series_with_foreign_labels(self, ids):
        mask = pd.Series([False, True, False, True], index=["a", "b", "c", "d"])
        with pytest.raises(ShapeMismatch, match="Series index"):
            resolve_selector(mask, ids)

    def test_predicate_result_aligned_by_label(self, ids, annotation):
        shuffled = annotation.iloc[::-1]
        positions = resolve_selector(lambda a: shuffled['oncogene'], ids, annotation)
        assert list(positions) == [1, 2, 3]

    def test_predicate(self, ids, annotation):
        positions = resolve_selector(lambda a: a['oncogene'], ids, annotation)
        assert list(positions) == [1, 2, 3]

    def test_predicate_needs_annotation(self, ids):
        with pytest.raises(TypeError, match="requires an annotation"):
            resolve_selector(lambda a: a['oncogene'], ids)

    def test_predicate_must_return_booleans(self, ids, annotation):
        with pytest.raises(TypeError, match="boolean mask"):
            resolve_selector(lambda a: a['chrom'], ids, annotation)

    def test_sets_use_view_order(self, ids):
        assert list(resolve_selector({"KRAS", "MYC"}, ids)) == [1, 3]
        assert list(resolve_selector({3, 0}, ids)) == [0, 3]

    def test_unknown_identifier(self, ids):
        with pytest.raises(KeyError, match="BRCA1"):
            resolve_selector(["TP53", "BRCA1"], ids)

    def test_unknown_identifier_in_set(self, ids):
        with pytest.raises(KeyError):
            resolve_selector({"BRCA1"}, ids)

    def test_position_out_of_range(self, ids):
        with pytest.raises(IndexError):
            resolve_selector([0, 4], ids)

    def test_negative_positions_rejected(self, ids):
        with pytest.raises(IndexError):
            resolve_selector([-1], ids)

    def test_duplicates_rejected(self, ids):
        with pytest.raises(ValueError, match="duplicates"):
            resolve_selector(["MYC", "MYC"], ids)
        with pytest.raises(ValueError, match="duplicates"):
            resolve_selector([1, 1], ids)

    def test_mask_length_mismatch(self, ids):
        with pytest.raises(ShapeMismatch):
            resolve_selector(np.array([True, False]), ids)

    def test_empty_mask(self, ids):
        with pytest.raises(EmptySelection):
            resolve_selector(np.zeros(4, dtype=bool), ids, axis="columns")
