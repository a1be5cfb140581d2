"""
_tree.py
========
A single rooted phylogenetic tree represented as a set of parallel numpy
arrays, with an iterative post-order traversal and a single-pass rebuild of
the minimal subtree spanning a set of taxa.

Public API
----------
  Tree(newick_string)
      Constructor.  Parses the NEWICK string and builds the node arrays.
  Tree.from_file(path)
      Read a NEWICK file and construct the tree.

  .leaf_names
  .is_tip(node)
  .children(node)
  .branch_length(node)
  .postorder(root=None)
  .leaf_index(name)
  .subtree(taxa)

Node-ID conventions
-------------------
  Leaves   : 0 … n_leaves-1       (left-to-right in the NEWICK string)
  Internal : n_leaves … n_nodes-2 (post-order)
  Root     : n_nodes-1

Every internal node has exactly two children, except the root of a tree
built by ``subtree``, which keeps a single child when all retained leaves lie
on one side of it.  Single-child groups in the NEWICK input are folded into
their child at parse time.

Trees are immutable by convention.  ``subtree`` never edits the arrays of
the tree it is called on; it returns a new ``Tree``, so one parsed tree can
be shared read-only by every pair computation.
"""

import logging
from typing import Iterable, List, Optional, Tuple

import numpy as np

from pairfrac._errors import PruneError, TreeParseError
from pairfrac._utils import format_newick

logger = logging.getLogger(__name__)

_DELIMITERS = ":,);"


class Tree:
    """
    A rooted phylogenetic tree stored as flat numpy arrays.

    Attributes (all read-only after construction)
    ----------------------------------------------
    n_nodes   : int        Total number of nodes.
    n_leaves  : int        Number of leaf (taxon) nodes.
    root      : int        Node ID of the root (always n_nodes - 1).
    names     : list[str]  Taxon name for each leaf; internal label or ''.

    Arrays
    ------
    parent      : int32  [n_nodes]   Parent ID; -1 for root.
    distance    : float64[n_nodes]   Branch length to parent; -1.0 if absent.
    support     : float64[n_nodes]   Branch support to parent; -1.0 sentinel.
    left_child  : int32  [n_nodes]   Left child ID; -1 for leaves.
    right_child : int32  [n_nodes]   Right child ID; -1 for leaves.
    """

    # ================================================================== #
    # Construction                                                         #
    # ================================================================== #

    def __init__(self, newick_string: str) -> None:
        """
        Parse *newick_string* and build the node arrays.

        Parameters
        ----------
        newick_string : str
            A NEWICK-formatted tree string (trailing ';' optional).

        Raises
        ------
        TreeParseError
            If the string is empty, unbalanced, has an unnamed or duplicated
            leaf, an empty group, or a non-numeric branch length.
        """
        self._parse_newick(newick_string)
        self._finalize()
        self._build_name_index()

    @classmethod
    def from_file(cls, path) -> "Tree":
        """Read the first NEWICK tree from *path*."""
        with open(path) as fh:
            newick = fh.read()
        try:
            return cls(newick)
        except TreeParseError as err:
            raise TreeParseError(f"{path}: {err}") from err

    @classmethod
    def _from_arrays(
        cls,
        names: List[str],
        parent: np.ndarray,
        distance: np.ndarray,
        support: np.ndarray,
        left_child: np.ndarray,
        right_child: np.ndarray,
    ) -> "Tree":
        """**Private.**  Wrap pre-built arrays without re-parsing."""
        tree = cls.__new__(cls)
        tree.names = names
        tree.parent = parent
        tree.distance = distance
        tree.support = support
        tree.left_child = left_child
        tree.right_child = right_child
        tree._finalize()
        tree._name_index = None
        return tree

    def _finalize(self) -> None:
        self.n_nodes: int = int(self.parent.shape[0])
        self.n_leaves: int = int(np.count_nonzero(self.left_child == -1))
        self.root: int = self.n_nodes - 1

    def __repr__(self) -> str:
        return f"Tree(n_leaves={self.n_leaves}, n_nodes={self.n_nodes})"

    # ================================================================== #
    # Public methods                                                       #
    # ================================================================== #

    @property
    def leaf_names(self) -> List[str]:
        """Leaf names in leaf-enumeration (node-ID) order."""
        return self.names[: self.n_leaves]

    def is_tip(self, node: int) -> bool:
        return int(self.left_child[node]) == -1

    def children(self, node: int) -> Tuple[int, ...]:
        lc = int(self.left_child[node])
        if lc == -1:
            return ()
        rc = int(self.right_child[node])
        if rc == -1:
            return (lc,)
        return (lc, rc)

    def branch_length(self, node: int) -> float:
        """Length of the edge above *node*; 0.0 for the root or if absent."""
        d = float(self.distance[node])
        return d if d > 0.0 else 0.0

    def postorder(self, root: Optional[int] = None) -> np.ndarray:
        """
        Return the node IDs of the subtree under *root* in post-order.

        Children are always emitted before their parent, left before right.

        Parameters
        ----------
        root : int, optional
            Start node; defaults to the tree root.

        Returns
        -------
        np.ndarray[int32]

        Raises
        ------
        PruneError
            If *root* or a child reference is outside the node range, or a
            node is reached twice (the arrays do not describe a tree).
        """
        n_nodes = self.n_nodes
        start = self.root if root is None else int(root)
        if start < 0 or start >= n_nodes:
            raise PruneError(f"Node {start} is not in a tree of {n_nodes} nodes.")

        left_child = self.left_child
        right_child = self.right_child

        order = np.empty(n_nodes, dtype=np.int32)
        visited = np.zeros(n_nodes, dtype=np.bool_)
        pos = 0

        # Phase-coded stack: phase 0 = expand children, phase 1 = emit.
        stack_node = [start]
        stack_phase = [0]
        while stack_node:
            node = stack_node.pop()
            phase = stack_phase.pop()

            if phase == 1:
                order[pos] = node
                pos += 1
                continue

            if node < 0 or node >= n_nodes:
                raise PruneError(
                    f"Child reference {node} is not in a tree of {n_nodes} nodes."
                )
            if visited[node]:
                raise PruneError(f"Node {node} is reachable along two paths.")
            visited[node] = True

            stack_node.append(node)
            stack_phase.append(1)
            rc = int(right_child[node])
            if rc != -1:
                stack_node.append(rc)
                stack_phase.append(0)
            lc = int(left_child[node])
            if lc != -1:
                stack_node.append(lc)
                stack_phase.append(0)

        return order[:pos]

    def leaf_index(self, name: str) -> int:
        """
        Return the node ID of the leaf called *name*.

        Raises
        ------
        KeyError   if no leaf has that name.
        """
        if self._name_index is None:
            self._build_name_index()
        if name not in self._name_index:
            raise KeyError(f"No leaf with name '{name}' found in tree.")
        return self._name_index[name]

    def subtree(self, taxa: Iterable[str]) -> "Tree":
        """
        Return the minimal subtree spanning the leaves named in *taxa*.

        Leaves not in *taxa* are removed; every non-root internal node left
        with a single child is collapsed into that child, whose branch
        length absorbs the removed edge.  The original root is always kept,
        so the path from the root down to the common ancestor of the
        retained leaves survives as one edge under a single-child root.  A
        single retained leaf gives a root with one leaf below it.

        Names in *taxa* that are not leaves of this tree are ignored.

        The rebuild is one post-order sweep over the arrays: retained-leaf
        flags are propagated upward first, then the surviving nodes are
        renumbered (leaves in their original left-to-right order, then
        internal nodes in post-order).

        Raises
        ------
        PruneError
            If no leaf of the tree is named in *taxa*, or the arrays do not
            describe a tree.
        """
        wanted = set(taxa)
        order = self.postorder()
        if order.shape[0] != self.n_nodes:
            raise PruneError(
                f"Post-order reached {order.shape[0]} of {self.n_nodes} nodes; "
                "the tree is disconnected."
            )

        left_child = self.left_child
        right_child = self.right_child

        # ---- Pass 1: which subtrees contain a retained leaf ---------- #
        root = self.root
        kept = np.zeros(self.n_nodes, dtype=np.bool_)
        n_kept_leaves = 0
        n_kept_internal = 0
        for node in order:
            lc = int(left_child[node])
            if lc == -1:
                if self.names[node] in wanted:
                    kept[node] = True
                    n_kept_leaves += 1
                continue
            rc = int(right_child[node])
            both = rc != -1 and kept[lc] and kept[rc]
            kept[node] = kept[lc] or (rc != -1 and kept[rc])
            if both or node == root:
                n_kept_internal += 1

        if n_kept_leaves == 0:
            raise PruneError(
                f"None of the {len(wanted)} requested taxa are leaves of the "
                f"tree; pruning would remove all {self.n_leaves} leaves."
            )

        n_new = n_kept_leaves + n_kept_internal

        # ---- Pass 2: renumber surviving nodes and merge chains ------- #
        new_names = [""] * n_new
        new_parent = np.full(n_new, -1, dtype=np.int32)
        new_distance = np.full(n_new, -1.0, dtype=np.float64)
        new_support = np.full(n_new, -1.0, dtype=np.float64)
        new_left = np.full(n_new, -1, dtype=np.int32)
        new_right = np.full(n_new, -1, dtype=np.int32)

        # rep[node]     : new ID of the node standing in for node's subtree
        # rep_len[node] : accumulated length from rep[node] up to node's parent
        rep = np.full(self.n_nodes, -1, dtype=np.int32)
        rep_len = np.zeros(self.n_nodes, dtype=np.float64)
        rep_support = np.full(self.n_nodes, -1.0, dtype=np.float64)

        next_leaf = 0
        next_internal = n_kept_leaves

        for node in order:
            if not kept[node]:
                continue
            lc = int(left_child[node])

            if lc == -1:
                new_id = next_leaf
                next_leaf += 1
                new_names[new_id] = self.names[node]
                rep[node] = new_id
                rep_len[node] = self.branch_length(node)
                rep_support[node] = self.support[node]
                continue

            kept_children = [c for c in self.children(node) if kept[c]]

            if len(kept_children) == 2 or node == root:
                new_id = next_internal
                next_internal += 1
                for slot, c in enumerate(kept_children):
                    child_new = int(rep[c])
                    new_parent[child_new] = new_id
                    new_distance[child_new] = rep_len[c]
                    new_support[child_new] = rep_support[c]
                    if slot == 0:
                        new_left[new_id] = child_new
                    else:
                        new_right[new_id] = child_new
                new_names[new_id] = self.names[node]
                rep[node] = new_id
                rep_len[node] = self.branch_length(node)
                rep_support[node] = self.support[node]
            else:
                # Single retained child below the root: collapse into it.
                c = kept_children[0]
                rep[node] = rep[c]
                rep_len[node] = rep_len[c] + self.branch_length(node)
                rep_support[node] = rep_support[c]

        # The root is created last.
        if (
            next_leaf != n_kept_leaves
            or next_internal != n_new
            or int(rep[self.root]) != n_new - 1
        ):
            raise PruneError(
                f"Subtree rebuild produced {next_internal} nodes, "
                f"expected {n_new}."
            )

        return Tree._from_arrays(
            new_names, new_parent, new_distance, new_support, new_left, new_right
        )

    # ================================================================== #
    # Private instance methods                                             #
    # ================================================================== #

    def _parse_newick(self, newick_string: str) -> None:
        """
        **Private.**  Parse *newick_string* and populate the node arrays as
        instance attributes.

        Two-pass algorithm
        ------------------
        Pass 1  Count commas → derive exact array sizes (n_leaves, n_nodes).
        Pass 2  Iterative, stack-based character scan; no recursion.

        Populates
        ---------
        self.names, self.parent, self.distance, self.support,
        self.left_child, self.right_child
        """
        s = format_newick(newick_string)
        n_chars = len(s) - 1  # drop the ';'
        if n_chars <= 0:
            raise TreeParseError("Empty NEWICK string.")

        # ---- Pass 1: count commas and children per group ----------- #
        # A strictly bifurcating rooted tree with L leaves has L - 1 commas
        # and L - 1 groups of exactly two children.
        n_commas = 0
        n_parens = 0
        n_close = 0
        n_unary = 0
        n_multi = 0
        arity = []  # children seen so far in each open group
        unmatched = False
        for k in range(n_chars):
            c = s[k]
            if c == ",":
                n_commas += 1
                if arity:
                    arity[-1] += 1
            elif c == "(":
                n_parens += 1
                arity.append(1)
            elif c == ")":
                n_close += 1
                if not arity:
                    unmatched = True
                    continue
                n_children = arity.pop()
                if n_children == 1:
                    n_unary += 1
                elif n_children > 2:
                    n_multi += 1

        if n_parens != n_close or unmatched:
            raise TreeParseError(
                f"Unbalanced parentheses: {n_parens} '(' and {n_close} ')'."
            )

        if n_multi:
            logger.warning(
                "Input tree is not strictly bifurcating: %d multifurcation(s) "
                "will be resolved into zero-length bifurcations.",
                n_multi,
            )
        if n_unary:
            logger.warning(
                "Input tree has %d single-child group(s); each is folded into "
                "its child and the branch lengths are summed.",
                n_unary,
            )
        if n_multi or n_unary:
            s = Tree._resolve_nonbinary_groups(s[:n_chars])
            n_chars = len(s) - 1
            n_commas = s.count(",", 0, n_chars)

        n_leaves = n_commas + 1
        n_nodes = 2 * n_leaves - 1

        # ---- Allocate arrays ---------------------------------------- #
        parent = np.full(n_nodes, -1, dtype=np.int32)
        distance = np.full(n_nodes, -1.0, dtype=np.float64)
        support = np.full(n_nodes, -1.0, dtype=np.float64)
        left_child = np.full(n_nodes, -1, dtype=np.int32)
        right_child = np.full(n_nodes, -1, dtype=np.int32)
        names = [""] * n_nodes

        # ---- Pass 2: iterative stack-based parse -------------------- #
        OPEN_PAREN = -2
        stack_node = []

        leaf_id = 0
        internal_id = n_leaves

        i = 0
        while i < n_chars:
            c = s[i]

            if c in " \t\r\n":
                i += 1
                continue

            if c == "(":
                stack_node.append(OPEN_PAREN)
                i += 1
                continue

            if c == ",":
                i += 1
                continue

            if c == ")":
                i += 1
                if (
                    len(stack_node) < 3
                    or stack_node[-1] == OPEN_PAREN
                    or stack_node[-2] == OPEN_PAREN
                    or stack_node[-3] != OPEN_PAREN
                ):
                    raise TreeParseError(
                        f"Malformed group closing at character {i - 1}."
                    )
                right = stack_node.pop()
                left = stack_node.pop()
                stack_node.pop()  # discard OPEN_PAREN

                node_id = internal_id
                internal_id += 1

                left_child[node_id] = left
                right_child[node_id] = right
                parent[left] = node_id
                parent[right] = node_id

                i, label = Tree._read_token(s, i, n_chars)
                if label:
                    try:
                        support[node_id] = float(label)
                    except ValueError:
                        names[node_id] = label

                i = Tree._read_length(s, i, n_chars, node_id, distance)
                stack_node.append(node_id)
                continue

            # Leaf
            i, name = Tree._read_token(s, i, n_chars)
            if not name:
                raise TreeParseError(f"Unnamed leaf at character {i}.")
            if leaf_id >= n_leaves:
                raise TreeParseError(
                    f"Leaf '{name}' at character {i} is not separated by a comma."
                )

            node_id = leaf_id
            leaf_id += 1
            names[node_id] = name
            i = Tree._read_length(s, i, n_chars, node_id, distance)
            stack_node.append(node_id)

        if len(stack_node) != 1 or leaf_id != n_leaves or internal_id != n_nodes:
            raise TreeParseError(
                f"Incomplete tree: parsed {leaf_id} of {n_leaves} leaves and "
                f"{internal_id - n_leaves} of {n_nodes - n_leaves} internal nodes."
            )

        self.names = names
        self.parent = parent
        self.distance = distance
        self.support = support
        self.left_child = left_child
        self.right_child = right_child

    def _build_name_index(self) -> None:
        """
        **Private.**  Build and cache ``self._name_index``: a dict mapping
        each leaf name to its node ID.

        Raises
        ------
        TreeParseError   if duplicate leaf names are found.
        """
        idx = {}
        for node_id in range(self.n_leaves):
            name = self.names[node_id]
            if name in idx:
                raise TreeParseError(
                    f"Duplicate leaf name '{name}' at IDs "
                    f"{idx[name]} and {node_id}."
                )
            idx[name] = node_id
        self._name_index = idx

    # ================================================================== #
    # Private static methods                                               #
    # ================================================================== #

    @staticmethod
    def _read_token(s: str, i: int, n_chars: int) -> Tuple[int, str]:
        """**Private static.**  Read a name/label starting at *i*."""
        while i < n_chars and s[i] in " \t":
            i += 1
        j = i
        while j < n_chars and s[j] not in _DELIMITERS and s[j] not in " \t\r\n(":
            j += 1
        return j, s[i:j]

    @staticmethod
    def _read_length(s: str, i: int, n_chars: int, node_id: int, distance) -> int:
        """**Private static.**  Read an optional ``:length`` into *distance*."""
        while i < n_chars and s[i] in " \t":
            i += 1
        if i < n_chars and s[i] == ":":
            i += 1
            while i < n_chars and s[i] in " \t":
                i += 1
            j = i
            while j < n_chars and s[j] not in ",);" and s[j] not in " \t\r\n":
                j += 1
            try:
                distance[node_id] = float(s[i:j])
            except ValueError:
                raise TreeParseError(
                    f"Invalid branch length '{s[i:j]}' at character {i}."
                ) from None
            i = j
        return i

    @staticmethod
    def _resolve_nonbinary_groups(s: str) -> str:
        """
        **Private static.**  Rewrite a NEWICK string so that every internal
        node has exactly two children.

        Any node with k > 2 children is converted to a left-to-right cascade
        of (k - 1) binary nodes whose added parent branches have length 0.0:

            (A, B, C, D)  →  (((A, B):0.0, C):0.0, D)

        Zero-length branches carry no weight in UniFrac sums, so distances
        are unchanged by the rewrite.

        A group with a single child is replaced by that child, whose branch
        length becomes the sum of both lengths; the group's own label is
        dropped:

            ((A:1)x:2, B:1)  →  (A:3.0, B:1)

        Parameters
        ----------
        s : str
            NEWICK string with the trailing ';' already stripped.

        Returns
        -------
        str
            Strictly bifurcating NEWICK string with a trailing ';'.
        """
        n = len(s)
        stack = [[]]  # completed-child lists; index 0 = top level
        buf = []

        i = 0
        while i < n:
            c = s[i]

            if c in " \t\r\n":
                i += 1
                continue

            if c == "(":
                if buf:
                    stack[-1].append("".join(buf))
                    buf = []
                stack.append([])
                i += 1

            elif c == ",":
                if buf:
                    stack[-1].append("".join(buf))
                    buf = []
                i += 1

            elif c == ")":
                if buf:
                    stack[-1].append("".join(buf))
                    buf = []
                if len(stack) < 2:
                    raise TreeParseError(f"Unmatched ')' at character {i}.")

                children = stack.pop()
                while len(children) > 2:
                    left = children.pop(0)
                    right = children.pop(0)
                    children.insert(0, f"({left},{right}):0.0")
                i += 1

                # Optional label and :length are copied verbatim.
                j = i
                while j < n and s[j] not in ",();":
                    j += 1
                suffix = s[i:j].strip()
                i = j

                if len(children) == 1:
                    node_str = Tree._fold_unary(children[0], suffix)
                else:
                    node_str = "(" + ",".join(children) + ")" + suffix

                stack[-1].append(node_str)

            else:
                buf.append(c)
                i += 1

        if buf:
            stack[-1].append("".join(buf))

        top = stack[0]
        if len(stack) != 1 or len(top) != 1:
            raise TreeParseError("Unbalanced parentheses in NEWICK string.")
        return top[0] + ";"

    @staticmethod
    def _fold_unary(child: str, suffix: str) -> str:
        """**Private static.**  Merge a single-child group into its child."""
        body, child_len = Tree._split_length(child)
        _, group_len = Tree._split_length(suffix)
        if child_len is None and group_len is None:
            return body
        total = (child_len or 0.0) + (group_len or 0.0)
        return f"{body}:{total!r}"

    @staticmethod
    def _split_length(node_str: str) -> Tuple[str, Optional[float]]:
        """
        **Private static.**  Split a trailing ``:length`` off a NEWICK node.

        Returns the node without its length, and the length (None if absent).
        """
        head, sep, tail = node_str.rpartition(":")
        # A ':' inside a child group belongs to that child, not to this node.
        if not sep or ")" in tail:
            return node_str, None
        try:
            return head, float(tail)
        except ValueError:
            raise TreeParseError(f"Invalid branch length '{tail}'.") from None
