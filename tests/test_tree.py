"""
tests/test_tree.py
==================
Pytest test suite for the Tree class.

Tree fixtures
-------------
  single.tree
      ((a:1,b:1)0.9:1,c:2);

      Node IDs (left-to-right leaf order, then post-order internals):
        a=0  b=1  c=2  ab=3  root=4

  mixed_shapes.trees (one NEWICK per line)
      0  (A:1,B:2,C:3,D:4);                     star, root out-degree 4
      1  ((A,(B)),C);                           unary node above B
      2  (A:1,(B:1,(C:1,(D:1,E:1):1):1):1);     5-leaf caterpillar
      3  ((A,B,C),(D,E));                       multifurcating clade
"""

import os
import sys

import numpy as np
import pytest

_HERE = os.path.dirname(__file__)
_TREES_DIR = os.path.join(_HERE, "trees")

sys.path.insert(0, os.path.dirname(_HERE))

from fusionet._tree import Tree


# ======================================================================== #
# Helpers                                                                   #
# ======================================================================== #


def load_tree(filename: str) -> Tree:
    """Load a single NEWICK tree from tests/trees/."""
    with open(os.path.join(_TREES_DIR, filename)) as fh:
        return Tree(fh.read().strip())


def load_newick_file(filename: str) -> list:
    """Read a multi-NEWICK file (one tree per line) from tests/trees/."""
    with open(os.path.join(_TREES_DIR, filename)) as fh:
        return [line.strip() for line in fh if line.strip()]


def assert_postorder(tree: Tree) -> None:
    position = {int(v): i for i, v in enumerate(tree.postorder)}
    assert sorted(position) == list(range(tree.n_nodes))
    for v in range(tree.n_nodes):
        p = int(tree.parent[v])
        if p >= 0:
            assert position[v] < position[p]
    assert int(tree.postorder[-1]) == tree.root


# ======================================================================== #
# Fixtures                                                                  #
# ======================================================================== #


@pytest.fixture(scope="module")
def small():
    """3-leaf tree: ((a:1,b:1)0.9:1,c:2)"""
    return load_tree("single.tree")


@pytest.fixture(scope="module")
def shapes():
    return [Tree(nwk) for nwk in load_newick_file("mixed_shapes.trees")]


# ======================================================================== #
# 1. Parsing                                                                #
# ======================================================================== #


class TestParsing:
    def test_sizes(self, small):
        assert small.n_leaves == 3
        assert small.n_nodes == 5
        assert small.root == 4

    def test_names(self, small):
        assert small.names == ["a", "b", "c", "", ""]
        assert small.leaf_names == ["a", "b", "c"]

    def test_parent_array(self, small):
        assert list(small.parent) == [3, 3, 4, 4, -1]

    def test_distances(self, small):
        assert list(small.distance) == [1.0, 1.0, 2.0, 1.0, -1.0]

    def test_support(self, small):
        assert small.support[3] == pytest.approx(0.9)
        assert small.support[small.root] == -1.0
        for i in range(small.n_leaves):
            assert small.support[i] == -1.0

    def test_children(self, small):
        assert list(small.children_of(3)) == [0, 1]
        assert list(small.children_of(4)) == [2, 3]
        assert len(small.children_of(0)) == 0
        assert list(small.out_degree) == [0, 0, 0, 2, 2]

    def test_postorder(self, small):
        assert_postorder(small)

    def test_trailing_semicolon_optional(self):
        t = Tree("((a,b),c)")
        assert t.n_leaves == 3

    def test_whitespace_tolerated(self):
        t = Tree(" ( (a : 1 , b:1) , c ) ; ")
        assert t.leaf_names == ["a", "b", "c"]
        assert t.distance[0] == 1.0

    def test_non_numeric_internal_label_ignored(self):
        t = Tree("((a,b)clade,c);")
        assert t.support[3] == -1.0
        assert t.names[3] == ""

    def test_single_leaf(self):
        t = Tree("a;")
        assert t.n_nodes == 1
        assert t.root == 0
        assert t.leaf_names == ["a"]

    def test_arrays_read_only(self, small):
        with pytest.raises(ValueError):
            small.parent[0] = 2


class TestShapes:
    def test_star(self, shapes):
        star = shapes[0]
        assert star.n_leaves == 4
        assert star.n_nodes == 5
        assert int(star.out_degree[star.root]) == 4

    def test_unary_node_kept(self, shapes):
        t = shapes[1]
        assert t.n_leaves == 3
        assert t.n_nodes == 6
        unary = [v for v in range(t.n_nodes) if t.out_degree[v] == 1]
        assert len(unary) == 1
        assert list(t.children_of(unary[0])) == [t.leaf_id("B")]

    def test_caterpillar(self, shapes):
        t = shapes[2]
        assert t.n_leaves == 5
        assert t.n_nodes == 9
        assert_postorder(t)

    def test_multifurcating_clade(self, shapes):
        t = shapes[3]
        assert t.n_nodes == 8
        abc = t.parent[t.leaf_id("A")]
        assert int(t.out_degree[abc]) == 3

    def test_postorder_all_shapes(self, shapes):
        for t in shapes:
            assert_postorder(t)


# ======================================================================== #
# 2. Malformed input                                                        #
# ======================================================================== #


class TestMalformed:
    @pytest.mark.parametrize(
        "newick",
        [
            "",
            ";",
            "((a,b),c",
            "(a,b));",
            "(a,b),c;",
            "(a,a);",
            "((a,b),:1);",
            "(a,());",
        ],
    )
    def test_rejected(self, newick):
        with pytest.raises(ValueError):
            Tree(newick)

    def test_duplicate_message_names_taxon(self):
        with pytest.raises(ValueError, match="'a'"):
            Tree("((a,b),a);")


# ======================================================================== #
# 3. Construction from edges                                                #
# ======================================================================== #


class TestFromEdges:
    EDGES = [("r", "x"), ("r", "c"), ("x", "a"), ("x", "b")]
    TAXA = {"a": "A", "b": "B", "c": "C"}

    def test_structure(self):
        t = Tree.from_edges(self.EDGES, self.TAXA)
        assert t.n_nodes == 5
        assert t.n_leaves == 3
        assert sorted(t.leaf_names) == ["A", "B", "C"]
        assert t.root == t.n_nodes - 1
        assert t.clusters() == {
            frozenset("ABC"),
            frozenset("AB"),
        }

    def test_lengths(self):
        t = Tree.from_edges(self.EDGES, self.TAXA, lengths={("x", "a"): 0.25})
        assert t.distance[t.leaf_id("A")] == 0.25
        assert t.distance[t.leaf_id("B")] == -1.0

    def test_same_as_newick(self):
        t = Tree.from_edges(self.EDGES, self.TAXA)
        assert t.clusters() == Tree("((A,B),C);").clusters()

    def test_single_node(self):
        t = Tree.from_edges([], {"only": "Z"})
        assert t.n_nodes == 1
        assert t.leaf_names == ["Z"]

    def test_two_roots(self):
        with pytest.raises(ValueError, match="exactly one root"):
            Tree.from_edges([("r", "a"), ("s", "b")], {"a": "A", "b": "B"})

    def test_two_parents(self):
        with pytest.raises(ValueError, match="more than one parent"):
            Tree.from_edges(
                [("r", "x"), ("r", "y"), ("x", "a"), ("y", "a")], {"a": "A"}
            )

    def test_unnamed_leaf(self):
        with pytest.raises(ValueError, match="no taxon name"):
            Tree.from_edges([("r", "a"), ("r", "b")], {"a": "A"})


# ======================================================================== #
# 4. Root normalization                                                     #
# ======================================================================== #


class TestUnaryRoot:
    def test_adds_root(self, small):
        t = small.with_unary_root()
        assert t is not small
        assert t.n_nodes == small.n_nodes + 1
        assert int(t.out_degree[t.root]) == 1
        assert list(t.children_of(t.root)) == [small.root]
        assert t.distance[small.root] == 0.0

    def test_original_untouched(self, small):
        small.with_unary_root()
        assert small.n_nodes == 5
        assert small.parent[small.root] == -1

    def test_clusters_preserved(self, small):
        assert small.with_unary_root().clusters() == small.clusters()

    def test_leaf_ids_preserved(self, small):
        t = small.with_unary_root()
        assert t.leaf_names == small.leaf_names

    def test_already_unary(self):
        t = Tree("((a,b));")
        assert int(t.out_degree[t.root]) == 1
        assert t.with_unary_root() is t

    def test_single_leaf_unchanged(self):
        t = Tree("a;")
        assert t.with_unary_root() is t

    def test_star(self, shapes):
        t = shapes[0].with_unary_root()
        assert int(t.out_degree[t.root]) == 1
        assert_postorder(t)


class TestLookup:
    def test_leaf_id(self, small):
        assert small.leaf_id("c") == 2

    def test_missing_leaf(self, small):
        with pytest.raises(KeyError):
            small.leaf_id("zzz")

    def test_clusters(self, small):
        assert small.clusters() == {frozenset("abc"), frozenset("ab")}


# ======================================================================== #
# 5. Contraction and refinement                                             #
# ======================================================================== #


class TestContractLowSupport:
    def test_low_support_clade_removed(self):
        t = Tree("(((a:1,b:1)40:2,c:3)95:1,d:4);")
        c = t.contract_low_support(70)
        assert c.clusters() == {frozenset("abc"), frozenset("abcd")}
        assert c.n_nodes == t.n_nodes - 1
        assert_postorder(c)

    def test_children_keep_lengths(self):
        c = Tree("(((a:1,b:2)40:5,c:3)95:1,d:4);").contract_low_support(70)
        assert c.distance[c.leaf_id("a")] == 1.0
        assert c.distance[c.leaf_id("b")] == 2.0
        assert c.leaf_names == ["a", "b", "c", "d"]

    def test_nested_low_support(self):
        c = Tree("((((a,b)10,c)20,d)90,e);").contract_low_support(50)
        assert c.clusters() == {frozenset("abcd"), frozenset("abcde")}

    def test_unset_support_kept(self):
        t = Tree("((a,b),c);")
        assert t.contract_low_support(70) is t

    def test_high_support_kept(self, small):
        # single.tree carries support 0.9
        assert small.contract_low_support(0.5) is small
        assert small.contract_low_support(0.95).clusters() == {frozenset("abc")}

    def test_root_label_ignored(self):
        t = Tree("((a,b)90,c)10;")
        assert t.contract_low_support(50) is t


class TestRefine:
    def test_resolves_polytomy(self):
        t = Tree("(a:1,b:2,c:3);").refine([frozenset("ab")])
        assert t.clusters() == {frozenset("ab"), frozenset("abc")}
        assert_postorder(t)
        assert t.distance[t.parent[t.leaf_id("a")]] == 0.0
        assert t.distance[t.leaf_id("b")] == 2.0

    def test_nested_clusters(self):
        t = Tree("(a,b,c,d,e);").refine([frozenset("abc"), frozenset("ab")])
        assert t.clusters() == {
            frozenset("ab"),
            frozenset("abc"),
            frozenset("abcde"),
        }

    def test_smaller_first(self):
        t = Tree("(a,b,c,d,e);").refine([frozenset("ab"), frozenset("abc")])
        assert frozenset("abc") in t.clusters()
        assert frozenset("ab") in t.clusters()

    def test_incompatible_skipped(self):
        t = Tree("((a,b),c,d);")
        assert t.refine([frozenset("bc")]) is t

    def test_present_or_trivial_skipped(self):
        t = Tree("((a,b),c,d);")
        assert t.refine([frozenset("ab"), frozenset("a"), frozenset("xy")]) is t

    def test_original_untouched(self):
        t = Tree("(a,b,c);")
        t.refine([frozenset("ab")])
        assert t.clusters() == {frozenset("abc")}
