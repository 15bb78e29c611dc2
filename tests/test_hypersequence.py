"""
tests/test_hypersequence.py
===========================
Tests for the HyperSequence type and the tree -> hypersequence encoding.

Hand-worked encodings (taxon IDs a=1 b=2 c=3 d=4, ranking a<b<c<d)
------------------------------------------------------------------
  ((a,b),c)        a: "3 : 2"            b, c: nothing
  ((a,c),b)        a: "2 : 3"            b, c: nothing
  ((b,c),a)        a: "2"    b: "3"      c: nothing
  ((a,b),(c,d))    a: "3 : 2"  c: "4"    b, d: nothing
  ((a,c),(b,d))    a: "2 : 3"  b: "4"    c, d: nothing
"""

import logging
import os
import sys

import numpy as np
import pytest

_HERE = os.path.dirname(__file__)
sys.path.insert(0, os.path.dirname(_HERE))

from fusionet._errors import MalformedTreeError
from fusionet._forest import Forest
from fusionet._hypersequence import (
    HyperSequence,
    compute_hypersequences,
    extract_tree_hypersequences,
)
from fusionet._tree import Tree
from fusionet._utils import ranking_from_order


def H(text: str) -> HyperSequence:
    return HyperSequence.parse(text)


def encode(newicks, order=None):
    forest = Forest(list(newicks))
    if order is None:
        order = range(1, forest.n_global_taxa + 1)
    rank = ranking_from_order(list(order), forest.n_global_taxa)
    return compute_hypersequences(forest, rank)


# ======================================================================== #
# 1. HyperSequence value type                                               #
# ======================================================================== #


class TestHyperSequence:
    def test_parse_and_str(self):
        h = H("2 3 5 : 4 : 8")
        assert len(h) == 3
        assert str(h) == "2 3 5 : 4 : 8"
        assert h.as_sets() == [frozenset({2, 3, 5}), frozenset({4}), frozenset({8})]

    def test_parse_unordered_members(self):
        assert H("5 2 : 4") == H("2 5 : 4")

    def test_empty(self):
        assert len(H("")) == 0
        assert len(HyperSequence()) == 0
        assert str(HyperSequence()) == ""

    def test_cardinality_and_taxa(self):
        h = H("2 3 : 3 : 4")
        assert h.cardinality() == 4
        assert h.taxa() == (1 << 2) | (1 << 3) | (1 << 4)

    def test_equality_and_hash(self):
        a = H("2 : 3")
        b = HyperSequence.from_sets([[2], [3]])
        assert a == b
        assert hash(a) == hash(b)
        assert len({a, b}) == 1
        assert a != H("3 : 2")

    def test_indexing(self):
        h = H("2 : 3 4")
        assert h[0] == 1 << 2
        assert list(h) == [1 << 2, (1 << 3) | (1 << 4)]

    def test_subsequence(self):
        big = H("2 : 3 : 2 : 4")
        assert H("2 : 2").is_subsequence_of(big)
        assert H("3 : 4").is_subsequence_of(big)
        assert not H("4 : 3").is_subsequence_of(big)
        assert HyperSequence().is_subsequence_of(big)

    def test_subsequence_needs_set_equality(self):
        assert not H("2").is_subsequence_of(H("2 3"))

    def test_sort_key_longest_first(self):
        seqs = [H("3"), H("2 : 3"), H("2")]
        assert sorted(seqs, key=HyperSequence.sort_key) == [H("2 : 3"), H("2"), H("3")]

    @pytest.mark.parametrize("bad", [[0], [1], [-4]])
    def test_invalid_components(self, bad):
        with pytest.raises(ValueError):
            HyperSequence(bad)

    def test_parse_empty_component(self):
        with pytest.raises(ValueError):
            H("2 : : 3")


# ======================================================================== #
# 2. Encoding                                                               #
# ======================================================================== #


class TestEncoding:
    def test_caterpillar_ab_c(self):
        out = encode(["((a,b),c);"])
        assert out == {1: {H("3 : 2")}, 2: set(), 3: set()}

    def test_caterpillar_ac_b(self):
        out = encode(["((a,c),b);"])
        assert out[1] == {H("2 : 3")}

    def test_minimum_not_in_cherry(self):
        out = encode(["((b,c),a);"])
        assert out == {1: {H("2")}, 2: {H("3")}, 3: set()}

    def test_balanced_four(self):
        out = encode(["((a,b),(c,d));", "((a,c),(b,d));"])
        assert out[1] == {H("3 : 2"), H("2 : 3")}
        assert out[2] == {H("4")}
        assert out[3] == {H("4")}
        assert out[4] == set()

    def test_ranking_changes_encoding(self):
        # ranking c < b < a
        out = encode(["((a,b),c);"], order=[3, 2, 1])
        assert out[3] == {H("2")}
        assert out[2] == {H("1")}
        assert out[1] == set()

    def test_single_tree_cardinality_is_n_minus_one(self):
        nwk = "(((A,B),(C,D)),((E,F),G));"
        forest = Forest([nwk])
        for order in ([1, 2, 3, 4, 5, 6, 7], [7, 3, 5, 1, 2, 6, 4]):
            rank = ranking_from_order(order, 7)
            out = compute_hypersequences(forest, rank)
            total = sum(h.cardinality() for seqs in out.values() for h in seqs)
            assert total == 6

    def test_multifurcation(self):
        out = encode(["(a,b,c);"])
        assert out[1] == {H("2 3")}

    def test_unary_nodes_contribute_nothing(self):
        assert encode(["((a,(b)),c);"]) == encode(["((a,b),c);"])

    def test_identical_trees_deduplicated(self):
        out = encode(["((a,b),c);", "((a,b),c);"])
        assert out[1] == {H("3 : 2")}

    def test_single_leaf_tree(self):
        out = encode(["a;"])
        assert out == {1: set()}

    def test_occurrence_counts_clean(self, caplog):
        with caplog.at_level(logging.WARNING, logger="fusionet"):
            encode(["(((A,B),(C,D)),((E,F),G));"])
        assert not any("exactly twice" in r.getMessage() for r in caplog.records)


# ======================================================================== #
# 3. Malformed trees                                                        #
# ======================================================================== #


class TestMalformed:
    def test_leaf_without_taxon(self):
        tree = Tree("((a,b),c);").with_unary_root()
        node_taxa = np.zeros(tree.n_nodes, dtype=np.int32)
        node_taxa[0] = 1
        node_taxa[1] = 2
        rank = ranking_from_order([1, 2, 3], 3)
        with pytest.raises(MalformedTreeError) as info:
            extract_tree_hypersequences(tree, node_taxa, rank, tree_index=4)
        assert info.value.tree_index == 4
        assert isinstance(info.value, ValueError)

    def test_duplicate_taxon(self):
        tree = Tree("((a,b),c);").with_unary_root()
        node_taxa = np.zeros(tree.n_nodes, dtype=np.int32)
        node_taxa[:3] = [1, 2, 1]
        rank = ranking_from_order([1, 2], 2)
        with pytest.raises(MalformedTreeError, match="more than one leaf") as info:
            extract_tree_hypersequences(
                tree, node_taxa, rank, tree_index=0, names=("", "a", "b")
            )
        assert info.value.taxa == ("a",)

    def test_bifurcating_root_closes_everything(self):
        # The root label always carries the tree's minimum taxon.
        tree = Tree("(a,b);")
        node_taxa = np.array([1, 2, 0], dtype=np.int32)
        rank = ranking_from_order([1, 2], 2)
        out = extract_tree_hypersequences(tree, node_taxa, rank)
        assert out == {}
