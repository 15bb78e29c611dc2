"""
_tree.py
========
A single rooted phylogenetic tree represented as a set of parallel numpy
arrays.

Public API
----------
  Tree(newick_string)
      Constructor.  Parses the NEWICK string and builds all data structures.

  Tree.from_edges(edges, taxa, lengths=None)
      Build a tree from (parent, child) pairs and a leaf -> taxon mapping.

  .children_of(v)
  .leaf_id(name)
  .leaf_names
  .clusters()
  .with_unary_root()
  .contract_low_support(min_confidence)
  .refine(clusters)

Node-ID conventions
-------------------
  Leaves   : 0 … n_leaves-1       (left-to-right in NEWICK order)
  Internal : n_leaves … n_nodes-1 (post-order; the root is created last,
             except for nodes added by refine())

Multifurcations and unary internal nodes are kept as given.  Every array is
read-only after construction; operations that need a different shape return a
new Tree.
"""

import logging
from typing import Dict, Hashable, Iterable, List, Mapping, Optional, Set, Tuple

import numpy as np

logger = logging.getLogger(__name__)


class Tree:
    """
    A rooted phylogenetic tree with arbitrary out-degree.

    Attributes (all read-only after construction)
    ----------------------------------------------
    n_nodes   : int     Total number of nodes.
    n_leaves  : int     Number of leaf (taxon) nodes.
    root      : int     Node ID of the root (n_nodes - 1 unless refined).
    names     : list[str]  Taxon name for each node; '' for internal nodes.

    Arrays
    ------
    parent        : int32  [n_nodes]      Parent ID; -1 for root.
    distance      : float64[n_nodes]      Branch length to parent; -1.0 if unset.
    support       : float64[n_nodes]      Branch support to parent; -1.0 sentinel.
    out_degree    : int32  [n_nodes]      Number of children.
    child_offsets : int64  [n_nodes + 1]  CSR offsets into ``children``.
    children      : int32  [n_nodes - 1]  Child IDs, grouped by parent.
    postorder     : int32  [n_nodes]      Every child precedes its parent.
    """

    # ================================================================== #
    # Construction                                                         #
    # ================================================================== #

    def __init__(self, newick_string: str) -> None:
        """
        Parse *newick_string* and build all tree data structures.

        Parameters
        ----------
        newick_string : str
            A NEWICK-formatted tree string (trailing ';' optional).

        Raises
        ------
        ValueError
            If the string is empty, has unbalanced parentheses, does not
            describe exactly one root, or names a leaf twice or not at all.
        """
        parent, names, distance, support = self._parse_newick(newick_string)
        self._finalize(parent, names, distance, support)

    @classmethod
    def from_edges(
        cls,
        edges: Iterable[Tuple[Hashable, Hashable]],
        taxa: Mapping[Hashable, str],
        lengths: Optional[Mapping[Tuple[Hashable, Hashable], float]] = None,
    ) -> "Tree":
        """
        Build a tree from an explicit node/edge description.

        Parameters
        ----------
        edges : iterable of (parent, child)
            Directed edges.  Node keys may be any hashable value.
        taxa : mapping
            Leaf key -> taxon name.  Every node without children must appear
            here.  A single-node tree is described by an empty *edges* and a
            one-entry *taxa*.
        lengths : mapping, optional
            (parent, child) -> branch length.

        Returns
        -------
        Tree

        Raises
        ------
        ValueError
            If there is not exactly one root, a node has two parents, or a
            leaf has no taxon name.

        Examples
        --------
        >>> t = Tree.from_edges([('r', 'x'), ('r', 'c'), ('x', 'a'), ('x', 'b')],
        ...                     {'a': 'A', 'b': 'B', 'c': 'C'})
        >>> sorted(t.leaf_names)
        ['A', 'B', 'C']
        """
        edges = list(edges)
        kids: Dict[Hashable, List[Hashable]] = {}
        up: Dict[Hashable, Hashable] = {}
        nodes: List[Hashable] = []
        seen: Set[Hashable] = set()

        def _register(key):
            if key not in seen:
                seen.add(key)
                nodes.append(key)
                kids[key] = []

        for p, c in edges:
            _register(p)
            _register(c)
            if c in up:
                raise ValueError(f"Node {c!r} has more than one parent")
            up[c] = p
            kids[p].append(c)
        for key in taxa:
            _register(key)

        roots = [key for key in nodes if key not in up]
        if len(roots) != 1:
            raise ValueError(
                f"A tree must have exactly one root; found {len(roots)}"
            )
        root_key = roots[0]

        # Leaves first (left-to-right), then internal nodes in post-order,
        # matching the NEWICK numbering.
        preorder: List[Hashable] = []
        stack = [root_key]
        while stack:
            key = stack.pop()
            preorder.append(key)
            stack.extend(reversed(kids[key]))
        if len(preorder) != len(nodes):
            raise ValueError("Edges contain a cycle or a disconnected node")

        leaves = [key for key in preorder if not kids[key]]
        ids: Dict[Hashable, int] = {key: i for i, key in enumerate(leaves)}
        next_id = len(leaves)
        for key in Tree._key_postorder(root_key, kids):
            if kids[key]:
                ids[key] = next_id
                next_id += 1

        n_nodes = len(nodes)
        parent = np.full(n_nodes, -1, dtype=np.int32)
        distance = np.full(n_nodes, -1.0, dtype=np.float64)
        support = np.full(n_nodes, -1.0, dtype=np.float64)
        names = [""] * n_nodes

        for key in leaves:
            name = taxa.get(key, "")
            if not name:
                raise ValueError(f"Leaf {key!r} has no taxon name")
            names[ids[key]] = str(name)
        for c, p in up.items():
            parent[ids[c]] = ids[p]
            if lengths is not None and (p, c) in lengths:
                distance[ids[c]] = float(lengths[(p, c)])

        tree = cls.__new__(cls)
        tree._finalize(parent, names, distance, support)
        return tree

    # ================================================================== #
    # Public methods                                                       #
    # ================================================================== #

    def children_of(self, v: int) -> np.ndarray:
        """Child IDs of node *v* (empty for leaves)."""
        return self.children[self.child_offsets[v] : self.child_offsets[v + 1]]

    def is_leaf(self, v: int) -> bool:
        return int(self.out_degree[v]) == 0

    @property
    def leaf_names(self) -> List[str]:
        """Taxon names in leaf-ID order."""
        return self.names[: self.n_leaves]

    def leaf_id(self, name: str) -> int:
        """
        Return the node ID of the leaf named *name*.

        Raises
        ------
        KeyError   if *name* is not a leaf of this tree.
        """
        if self._name_index is None:
            self._name_index = {self.names[i]: i for i in range(self.n_leaves)}
        try:
            return self._name_index[name]
        except KeyError:
            raise KeyError(f"Taxon '{name}' not found in tree") from None

    def clusters(self) -> Set[frozenset]:
        """
        Return the set of leaf-name clusters below every internal node.

        Unary nodes repeat their child's cluster, so the result is the same
        for a tree and its unary-rooted copy.
        """
        below: List[frozenset] = [frozenset()] * self.n_nodes
        out: Set[frozenset] = set()
        for v in self.postorder:
            v = int(v)
            if self.is_leaf(v):
                below[v] = frozenset((self.names[v],))
                continue
            below[v] = frozenset().union(*(below[c] for c in self.children_of(v)))
            out.add(below[v])
        return out

    def with_unary_root(self) -> "Tree":
        """
        Return a tree whose root has out-degree at most one.

        If the root has two or more children a new root is placed above it,
        joined by a zero-length edge.  Otherwise *self* is returned unchanged.
        """
        if int(self.out_degree[self.root]) <= 1:
            return self

        n = self.n_nodes
        parent = np.append(self.parent, np.int32(-1)).astype(np.int32)
        distance = np.append(self.distance, -1.0)
        support = np.append(self.support, -1.0)
        parent[self.root] = n
        distance[self.root] = 0.0
        names = list(self.names) + [""]

        tree = Tree.__new__(Tree)
        tree._finalize(parent, names, distance, support)
        return tree

    def contract_low_support(self, min_confidence: float) -> "Tree":
        """
        Return a tree with every low-support internal edge contracted.

        An internal edge is contracted when its support is known and below
        *min_confidence*; the children of its lower node are attached to
        the upper node and keep their own lengths.  Leaf edges and edges
        without a support value are kept.  Returns *self* if nothing is
        contracted.

        Examples
        --------
        >>> t = Tree('(((a,b)40,c)95,d);').contract_low_support(70)
        >>> sorted(map(sorted, t.clusters()))
        [['a', 'b', 'c'], ['a', 'b', 'c', 'd']]
        """
        drop = (
            (self.out_degree > 0)
            & (self.support >= 0.0)
            & (self.support < min_confidence)
        )
        drop[self.root] = False
        if not drop.any():
            return self

        keep = ~drop
        new_id = np.cumsum(keep) - 1
        kept = np.flatnonzero(keep)
        parent = np.full(kept.shape[0], -1, dtype=np.int32)
        for v in kept:
            v = int(v)
            if v == self.root:
                continue
            p = int(self.parent[v])
            while drop[p]:
                p = int(self.parent[p])
            parent[new_id[v]] = new_id[p]

        logger.debug("Contracted %d low-support edge(s)", int(drop.sum()))
        tree = Tree.__new__(Tree)
        tree._finalize(
            parent,
            [self.names[int(v)] for v in kept],
            self.distance[kept].copy(),
            self.support[kept].copy(),
        )
        return tree

    def refine(self, clusters: Iterable[frozenset]) -> "Tree":
        """
        Return a tree that additionally contains each of *clusters*.

        Every cluster must be a set of this tree's leaf names that is
        compatible with the tree (nested in or disjoint from each of its
        clusters).  A new node is inserted below the smallest node containing
        the cluster, joined by a zero-length edge.  Clusters that are already
        present, have fewer than two taxa, or do not fit are skipped.

        Examples
        --------
        >>> t = Tree('(a,b,c);').refine([frozenset({'a', 'b'})])
        >>> sorted(map(sorted, t.clusters()))
        [['a', 'b'], ['a', 'b', 'c']]
        """
        n = self.n_nodes
        parent = [int(p) for p in self.parent]
        distance = list(self.distance)
        support = list(self.support)
        names = list(self.names)
        kids: List[List[int]] = [
            [int(c) for c in self.children_of(v)] for v in range(n)
        ]
        below: List[frozenset] = [frozenset()] * n
        for v in self.postorder:
            v = int(v)
            if self.is_leaf(v):
                below[v] = frozenset((self.names[v],))
            else:
                below[v] = frozenset().union(*(below[c] for c in kids[v]))
        present = set(below)

        added = 0
        for cluster in clusters:
            cluster = frozenset(cluster)
            if len(cluster) < 2 or cluster in present or not cluster <= below[self.root]:
                continue
            v = self.root
            while True:
                deeper = [c for c in kids[v] if cluster <= below[c]]
                if not deeper:
                    break
                v = deeper[0]
            inside = [c for c in kids[v] if below[c] <= cluster]
            if frozenset().union(*(below[c] for c in inside)) != cluster:
                continue

            w = len(parent)
            parent.append(v)
            distance.append(0.0)
            support.append(-1.0)
            names.append("")
            kids.append(inside)
            below.append(cluster)
            kids[v] = [c for c in kids[v] if c not in inside] + [w]
            for c in inside:
                parent[c] = w
            present.add(cluster)
            added += 1

        if not added:
            return self
        tree = Tree.__new__(Tree)
        tree._finalize(
            np.array(parent, dtype=np.int32),
            names,
            np.array(distance, dtype=np.float64),
            np.array(support, dtype=np.float64),
        )
        return tree

    def __repr__(self) -> str:
        return f"Tree(n_leaves={self.n_leaves}, n_nodes={self.n_nodes})"

    # ================================================================== #
    # Private instance methods                                             #
    # ================================================================== #

    def _finalize(
        self,
        parent: np.ndarray,
        names: List[str],
        distance: np.ndarray,
        support: np.ndarray,
    ) -> None:
        """
        **Private.**  Derive child arrays and the post-order from *parent*,
        validate the leaf labels and freeze everything.
        """
        n_nodes = int(parent.shape[0])

        roots = np.flatnonzero(parent < 0)
        if roots.shape[0] != 1:
            raise ValueError(
                f"A tree must have exactly one root; found {roots.shape[0]}"
            )
        root = int(roots[0])

        out_degree = np.bincount(parent[parent >= 0], minlength=n_nodes).astype(
            np.int32
        )
        child_offsets = np.zeros(n_nodes + 1, dtype=np.int64)
        child_offsets[1:] = np.cumsum(out_degree)
        # Stable sort: children of one parent stay in ascending ID order.
        non_root = np.flatnonzero(parent >= 0)
        order = np.argsort(parent[non_root], kind="stable")
        children = non_root[order].astype(np.int32)

        n_leaves = int(np.count_nonzero(out_degree == 0))
        seen: Set[str] = set()
        for v in range(n_nodes):
            if out_degree[v] != 0:
                continue
            if not names[v]:
                raise ValueError(f"Leaf node {v} has no taxon name")
            if names[v] in seen:
                raise ValueError(f"Taxon '{names[v]}' appears on more than one leaf")
            seen.add(names[v])

        # Reversed pre-order places every child before its parent.
        visit = []
        stack = [root]
        while stack:
            v = stack.pop()
            visit.append(v)
            stack.extend(int(c) for c in children[child_offsets[v] : child_offsets[v + 1]])
        if len(visit) != n_nodes:
            raise ValueError("Parent array contains a cycle")
        postorder = np.array(visit[::-1], dtype=np.int32)

        for arr in (parent, distance, support, out_degree, child_offsets, children, postorder):
            arr.setflags(write=False)

        self.parent = parent
        self.distance = distance
        self.support = support
        self.names = list(names)
        self.out_degree = out_degree
        self.child_offsets = child_offsets
        self.children = children
        self.postorder = postorder

        self.n_nodes: int = n_nodes
        self.n_leaves: int = n_leaves
        self.root: int = root

        # Name index: built lazily on first name-based query.
        self._name_index: dict = None  # type: ignore[assignment]

    @staticmethod
    def _key_postorder(root_key, kids) -> List[Hashable]:
        """**Private.**  Iterative post-order over a key -> children dict."""
        out: List[Hashable] = []
        stack = [(root_key, False)]
        while stack:
            key, expanded = stack.pop()
            if expanded:
                out.append(key)
                continue
            stack.append((key, True))
            for c in reversed(kids[key]):
                stack.append((c, False))
        return out

    @staticmethod
    def _parse_newick(newick_string: str):
        """
        **Private.**  Parse *newick_string* into parent / name / length
        arrays.

        Two-pass algorithm
        ------------------
        Pass 1  Count commas and open parens -> exact array sizes.
        Pass 2  Iterative, stack-based character scan; no recursion.

        Returns
        -------
        (parent, names, distance, support)
        """
        s = newick_string.strip()
        n_chars = len(s)
        if n_chars > 0 and s[n_chars - 1] == ";":
            n_chars -= 1
        if n_chars == 0:
            raise ValueError("Empty NEWICK string")

        # ---- Pass 1: count commas and open parens ------------------- #
        # Every comma separates two sibling subtrees and every '(' opens
        # one internal node, so L = commas + 1 and n = L + parens for any
        # rooted tree, including multifurcating and unary ones.
        n_commas = 0
        n_parens = 0
        for k in range(n_chars):
            c = s[k]
            if c == ",":
                n_commas += 1
            elif c == "(":
                n_parens += 1

        n_leaves = n_commas + 1
        n_nodes = n_leaves + n_parens

        # ---- Allocate arrays ---------------------------------------- #
        parent = np.full(n_nodes, -1, dtype=np.int32)
        distance = np.full(n_nodes, -1.0, dtype=np.float64)
        support = np.full(n_nodes, -1.0, dtype=np.float64)
        names = [""] * n_nodes

        # ---- Pass 2: iterative stack-based parse -------------------- #
        OPEN_PAREN = -2
        stack: List[int] = []

        leaf_id = 0
        internal_id = n_leaves

        delimiters = ":,();"
        i = 0
        while i < n_chars:
            c = s[i]

            if c in " \t\n\r":
                i += 1
                continue

            if c == "(":
                stack.append(OPEN_PAREN)
                i += 1
                continue

            if c == ",":
                i += 1
                continue

            if c == ")":
                i += 1
                kids: List[int] = []
                while stack and stack[-1] != OPEN_PAREN:
                    kids.append(stack.pop())
                if not stack:
                    raise ValueError(
                        f"Unbalanced ')' at position {i - 1} in NEWICK string"
                    )
                stack.pop()  # discard OPEN_PAREN
                if not kids:
                    raise ValueError(f"Empty subtree '()' at position {i - 2}")

                node_id = internal_id
                internal_id += 1
                for child in kids:
                    parent[child] = node_id

                while i < n_chars and s[i] in " \t":
                    i += 1

                j = i
                while j < n_chars and s[j] not in delimiters and s[j] not in " \t":
                    j += 1
                if j > i:
                    label = s[i:j]
                    try:
                        support[node_id] = float(label)
                    except ValueError:
                        logger.debug("Ignoring internal node label %r", label)
                    i = j

                i = Tree._read_length(s, i, n_chars, distance, node_id)
                stack.append(node_id)
                continue

            # Leaf
            j = i
            while j < n_chars and s[j] not in delimiters and s[j] not in " \t":
                j += 1

            if leaf_id >= n_leaves:
                raise ValueError("Malformed NEWICK string: too many leaves")
            node_id = leaf_id
            leaf_id += 1
            names[node_id] = s[i:j]
            i = Tree._read_length(s, j, n_chars, distance, node_id)
            stack.append(node_id)

        if OPEN_PAREN in stack:
            raise ValueError("Unbalanced '(' in NEWICK string")
        if len(stack) != 1 or leaf_id != n_leaves:
            raise ValueError(
                "Malformed NEWICK string: expected a single rooted tree, "
                f"found {len(stack)} top-level subtree(s)"
            )

        return parent, names, distance, support

    @staticmethod
    def _read_length(s: str, i: int, n_chars: int, distance: np.ndarray, node_id: int) -> int:
        """**Private.**  Consume an optional ``:length`` and return the new index."""
        while i < n_chars and s[i] in " \t":
            i += 1
        if i < n_chars and s[i] == ":":
            i += 1
            while i < n_chars and s[i] in " \t":
                i += 1
            j = i
            while j < n_chars and s[j] not in ",);" and s[j] not in " \t":
                j += 1
            distance[node_id] = float(s[i:j])
            i = j
        return i
