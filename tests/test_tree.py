"""
tests/test_tree.py
==================
Pytest test suite for the Tree class.

Tree fixtures
-------------
Reference trees are loaded from .tree files in tests/trees/:

  balanced_4leaf.tree
      ((T1:1,T2:1):1,(T3:1,T4:1):1);

      Node IDs (left-to-right leaf order, then post-order internals):
        T1=0  T2=1  T3=2  T4=3  T1T2=4  T3T4=5  root=6

  labelled_6leaf.tree
      ((A:0.1,B:0.2)0.95:0.5,((C:0.3,D:0.4):0.25,(E:0.6,F:0.7)Clade1:0.15):0.6);

      Node IDs: A=0 B=1 C=2 D=3 E=4 F=5  AB=6 CD=7 EF=8 CDEF=9 root=10
      AB carries support 0.95; EF carries the name 'Clade1'.

  caterpillar_5leaf.tree
      (A:1,(B:1,(C:1,(D:1,E:1):1):1):1);

      Node IDs: A=0 B=1 C=2 D=3 E=4  DE=5 CDE=6 BCDE=7 root=8

  multifurcating.tree
      (A:1,B:2,C:3,(D:1,E:1):0.5);

      Resolved at parse time to (((A:1,B:2):0.0,C:3):0.0,(D:1,E:1):0.5)
      Node IDs: A=0 B=1 C=2 D=3 E=4  AB=5 ABC=6 DE=7 root=8
"""

import logging
import os
import sys

import numpy as np
import pytest

# Locate the tree files relative to this test file so the tests can be
# run from any working directory.
_TREES_DIR = os.path.join(os.path.dirname(__file__), "trees")

# Add parent directory to path so Tree can be imported regardless of
# whether the package has been installed.
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from pairfrac._errors import PruneError, TreeParseError
from pairfrac._tree import Tree


# ======================================================================== #
# Helper                                                                    #
# ======================================================================== #


def load_tree(filename: str) -> Tree:
    """
    Load a NEWICK string from *filename* (inside tests/trees/) and return a
    fully constructed Tree.
    """
    path = os.path.join(_TREES_DIR, filename)
    with open(path) as fh:
        newick = fh.read().strip()
    return Tree(newick)


def leaf_lengths(tree: Tree) -> dict:
    """Leaf name → length of the edge above it."""
    return {tree.names[k]: tree.branch_length(k) for k in range(tree.n_leaves)}


# ======================================================================== #
# Fixtures                                                                  #
# ======================================================================== #


@pytest.fixture(scope="module")
def balanced():
    """4-leaf balanced tree: ((T1:1,T2:1):1,(T3:1,T4:1):1)"""
    return load_tree("balanced_4leaf.tree")


@pytest.fixture(scope="module")
def labelled():
    """6-leaf tree with support values and an internal name."""
    return load_tree("labelled_6leaf.tree")


@pytest.fixture(scope="module")
def caterpillar():
    """5-leaf caterpillar: (A:1,(B:1,(C:1,(D:1,E:1):1):1):1)"""
    return load_tree("caterpillar_5leaf.tree")


# ======================================================================== #
# 1. Parsing                                                                #
# ======================================================================== #


class TestParsing:
    def test_counts(self, balanced):
        assert balanced.n_leaves == 4
        assert balanced.n_nodes == 7
        assert balanced.root == 6

    def test_leaf_names_in_newick_order(self, balanced):
        assert balanced.leaf_names == ["T1", "T2", "T3", "T4"]

    def test_children(self, balanced):
        assert balanced.children(4) == (0, 1)
        assert balanced.children(5) == (2, 3)
        assert balanced.children(6) == (4, 5)
        assert balanced.children(0) == ()

    def test_parent_array(self, balanced):
        np.testing.assert_array_equal(balanced.parent, [4, 4, 5, 5, 6, 6, -1])

    def test_is_tip(self, balanced):
        assert [balanced.is_tip(k) for k in range(7)] == [True] * 4 + [False] * 3

    def test_root_has_no_length(self, balanced):
        assert balanced.distance[balanced.root] == -1.0
        assert balanced.branch_length(balanced.root) == 0.0

    def test_branch_lengths(self, labelled):
        assert labelled.branch_length(0) == pytest.approx(0.1)
        assert labelled.branch_length(6) == pytest.approx(0.5)
        assert labelled.branch_length(8) == pytest.approx(0.15)
        assert labelled.branch_length(9) == pytest.approx(0.6)

    def test_numeric_label_is_support(self, labelled):
        assert labelled.support[6] == pytest.approx(0.95)
        assert labelled.names[6] == ""

    def test_text_label_is_name(self, labelled):
        assert labelled.names[8] == "Clade1"
        assert labelled.support[8] == -1.0

    def test_trailing_semicolon_optional(self):
        tree = Tree("(A:1,B:2)")
        assert tree.n_leaves == 2
        assert tree.branch_length(1) == 2.0

    def test_whitespace_and_newlines(self):
        tree = Tree("(A:1,\n  (B:2, C:3):4);\n")
        assert tree.leaf_names == ["A", "B", "C"]
        assert tree.branch_length(3) == 4.0

    def test_missing_lengths_read_as_zero(self):
        tree = Tree("((A,B),C);")
        assert all(tree.branch_length(k) == 0.0 for k in range(tree.n_nodes))

    def test_single_leaf(self):
        tree = Tree("A;")
        assert tree.n_nodes == 1
        assert tree.n_leaves == 1
        assert tree.root == 0

    def test_leaf_index(self, balanced):
        assert balanced.leaf_index("T3") == 2

    def test_leaf_index_missing(self, balanced):
        with pytest.raises(KeyError):
            balanced.leaf_index("T9")

    def test_repr(self, balanced):
        assert repr(balanced) == "Tree(n_leaves=4, n_nodes=7)"


class TestMultifurcation:
    def test_resolved_to_bifurcations(self):
        tree = load_tree("multifurcating.tree")
        assert tree.n_leaves == 5
        assert tree.n_nodes == 9
        assert tree.leaf_names == ["A", "B", "C", "D", "E"]

    def test_added_edges_have_zero_length(self):
        tree = load_tree("multifurcating.tree")
        assert tree.children(5) == (0, 1)
        assert tree.children(6) == (5, 2)
        assert tree.branch_length(5) == 0.0
        assert tree.branch_length(6) == 0.0
        assert tree.branch_length(7) == 0.5

    def test_warning_logged(self, caplog):
        with caplog.at_level(logging.WARNING, logger="pairfrac._tree"):
            Tree("(A:1,B:1,C:1);")
        assert "not strictly bifurcating" in caplog.text


class TestSingleChildGroups:
    def test_folded_into_child(self):
        tree = Tree("((A:1)x:1,B:1);")
        assert tree.n_leaves == 2
        assert tree.n_nodes == 3
        assert leaf_lengths(tree) == {"A": 2.0, "B": 1.0}
        assert "x" not in tree.names

    def test_nested(self):
        tree = Tree("(((A:1):1):1,B:1);")
        assert tree.n_nodes == 3
        assert leaf_lengths(tree) == {"A": 3.0, "B": 1.0}

    def test_internal_child_keeps_label(self):
        tree = Tree("(((A:1,B:1)inner:1):1,C:1);")
        assert tree.n_nodes == 5
        assert tree.names[3] == "inner"
        assert tree.children(3) == (0, 1)
        assert tree.branch_length(3) == 2.0

    def test_missing_lengths(self):
        tree = Tree("((A),B);")
        assert tree.distance[0] == -1.0
        assert Tree("((A)x:2,B);").branch_length(0) == 2.0
        assert Tree("((A:2)x,B);").branch_length(0) == 2.0

    def test_with_multifurcation(self):
        tree = Tree("((A:1),B:1,C:1);")
        assert tree.n_leaves == 3
        assert tree.n_nodes == 5
        assert leaf_lengths(tree) == {"A": 1.0, "B": 1.0, "C": 1.0}

    def test_single_child_root(self):
        tree = Tree("((A:1,B:1):1);")
        assert tree.n_nodes == 3
        assert tree.children(tree.root) == (0, 1)

    def test_warning_logged(self, caplog):
        with caplog.at_level(logging.WARNING, logger="pairfrac._tree"):
            Tree("((A:1)x:1,B:1);")
        assert "single-child group" in caplog.text


class TestParseErrors:
    @pytest.mark.parametrize(
        "newick",
        [
            "",
            ";",
            "((A,B),C;",
            "(A,B));",
            "(A,());",
            "(A:x,B:1);",
            "(,B);",
        ],
    )
    def test_malformed(self, newick):
        with pytest.raises(TreeParseError):
            Tree(newick)

    def test_duplicate_leaf(self):
        with pytest.raises(TreeParseError, match="Duplicate leaf name 'A'"):
            Tree("(A:1,A:2);")

    def test_parse_error_is_value_error(self):
        with pytest.raises(ValueError):
            Tree("((A,B),C;")

    def test_from_file_names_path(self, tmp_path):
        path = tmp_path / "bad.tree"
        path.write_text("(A:1,B:oops);\n")
        with pytest.raises(TreeParseError, match="bad.tree"):
            Tree.from_file(path)

    def test_from_file_missing(self, tmp_path):
        with pytest.raises(OSError):
            Tree.from_file(tmp_path / "absent.tree")

    def test_from_file(self):
        tree = Tree.from_file(os.path.join(_TREES_DIR, "caterpillar_5leaf.tree"))
        assert tree.n_leaves == 5


# ======================================================================== #
# 2. Post-order traversal                                                   #
# ======================================================================== #


class TestPostorder:
    def test_full_tree(self, balanced):
        assert balanced.postorder().tolist() == [0, 1, 4, 2, 3, 5, 6]

    def test_subtree_root(self, balanced):
        assert balanced.postorder(root=5).tolist() == [2, 3, 5]

    def test_children_before_parents(self, labelled):
        position = {int(n): k for k, n in enumerate(labelled.postorder())}
        assert len(position) == labelled.n_nodes
        for node in range(labelled.n_nodes):
            for child in labelled.children(node):
                assert position[child] < position[node]

    def test_out_of_range_start(self, balanced):
        with pytest.raises(PruneError):
            balanced.postorder(root=7)

    def test_revisited_node(self):
        # Root lists leaf 0 twice: not a tree.
        tree = Tree._from_arrays(
            ["A", "B", "", ""],
            np.array([2, 2, 3, -1], dtype=np.int32),
            np.array([1.0, 1.0, 1.0, -1.0]),
            np.full(4, -1.0),
            np.array([-1, -1, 0, 2], dtype=np.int32),
            np.array([-1, -1, 1, 0], dtype=np.int32),
        )
        with pytest.raises(PruneError):
            tree.postorder()


# ======================================================================== #
# 3. Minimal subtree                                                        #
# ======================================================================== #


class TestSubtree:
    def test_all_taxa_keeps_shape(self, balanced):
        sub = balanced.subtree(balanced.leaf_names)
        assert sub.n_nodes == balanced.n_nodes
        np.testing.assert_array_equal(sub.left_child, balanced.left_child)
        np.testing.assert_array_equal(sub.right_child, balanced.right_child)
        np.testing.assert_array_equal(sub.distance, balanced.distance)

    def test_sibling_pair_keeps_root(self, caterpillar):
        sub = caterpillar.subtree(["D", "E"])
        assert sub.n_nodes == 4
        assert sub.leaf_names == ["D", "E"]
        assert sub.children(2) == (0, 1)
        assert sub.children(sub.root) == (2,)
        assert leaf_lengths(sub) == {"D": 1.0, "E": 1.0}
        assert sub.branch_length(2) == 3.0
        assert sub.branch_length(sub.root) == 0.0

    def test_chain_merged_into_one_edge(self, caterpillar):
        sub = caterpillar.subtree(["A", "E"])
        assert sub.n_nodes == 3
        assert sub.children(sub.root) == (0, 1)
        assert leaf_lengths(sub) == {"A": 1.0, "E": 4.0}

    def test_partial_chain(self, caterpillar):
        sub = caterpillar.subtree(["C", "E"])
        assert sub.n_nodes == 4
        assert leaf_lengths(sub) == {"C": 1.0, "E": 2.0}
        assert sub.branch_length(2) == 2.0

    def test_internal_node_kept(self, labelled):
        sub = labelled.subtree(["A", "B", "E"])
        assert sub.n_leaves == 3
        assert sub.n_nodes == 5
        assert sub.leaf_names == ["A", "B", "E"]
        assert sub.children(3) == (0, 1)
        assert sub.children(4) == (3, 2)
        assert sub.branch_length(3) == pytest.approx(0.5)
        assert sub.support[3] == pytest.approx(0.95)
        assert sub.branch_length(2) == pytest.approx(0.6 + 0.15 + 0.6)

    def test_edge_above_common_ancestor(self, labelled):
        sub = labelled.subtree(["C", "E"])
        assert sub.n_nodes == 4
        assert sub.branch_length(0) == pytest.approx(0.55)
        assert sub.branch_length(1) == pytest.approx(0.75)
        assert sub.children(sub.root) == (2,)
        assert sub.branch_length(2) == pytest.approx(0.6)

    def test_single_leaf(self, balanced):
        sub = balanced.subtree(["T3"])
        assert sub.n_nodes == 2
        assert sub.n_leaves == 1
        assert sub.leaf_names == ["T3"]
        assert sub.children(sub.root) == (0,)
        assert sub.branch_length(0) == 2.0
        assert sub.branch_length(sub.root) == 0.0

    def test_single_leaf_tree(self):
        sub = Tree("A:1;").subtree(["A"])
        assert sub.n_nodes == 1
        assert sub.leaf_names == ["A"]

    def test_leaf_order_preserved(self, labelled):
        sub = labelled.subtree(["F", "A", "D"])
        assert sub.leaf_names == ["A", "D", "F"]

    def test_unknown_names_ignored(self, balanced):
        sub = balanced.subtree(["T1", "T2", "not-a-leaf"])
        assert sub.leaf_names == ["T1", "T2"]

    def test_no_matching_leaves(self, balanced):
        with pytest.raises(PruneError):
            balanced.subtree(["X", "Y"])

    def test_empty_taxa(self, balanced):
        with pytest.raises(PruneError):
            balanced.subtree([])

    def test_input_tree_unchanged(self, caterpillar):
        before = (
            caterpillar.parent.copy(),
            caterpillar.distance.copy(),
            caterpillar.left_child.copy(),
            list(caterpillar.names),
        )
        caterpillar.subtree(["B", "D"])
        np.testing.assert_array_equal(caterpillar.parent, before[0])
        np.testing.assert_array_equal(caterpillar.distance, before[1])
        np.testing.assert_array_equal(caterpillar.left_child, before[2])
        assert caterpillar.names == before[3]

    def test_subtree_is_bifurcating(self, labelled):
        sub = labelled.subtree(["B", "C", "F"])
        for node in range(sub.n_leaves, sub.n_nodes):
            assert len(sub.children(node)) == 2
            assert all(c != -1 for c in sub.children(node))
        assert sub.n_nodes == 2 * sub.n_leaves - 1

    def test_total_length_preserved_along_paths(self, labelled):
        """Root-to-leaf path lengths are kept."""
        sub = labelled.subtree(["C", "D", "F"])

        def depth(tree, leaf):
            total = 0.0
            node = leaf
            while tree.parent[node] != -1:
                total += tree.branch_length(node)
                node = tree.parent[node]
            return total

        for name in ["C", "D", "F"]:
            full = depth(labelled, labelled.leaf_index(name))
            assert depth(sub, sub.leaf_names.index(name)) == pytest.approx(full)
