"""
_hypersequence.py
=================
Encoding of ranked rooted trees as hypersequences.

A hypersequence is an ordered sequence of non-empty taxon sets
(*components*).  Given a ranking of all taxa, every taxon of a tree is
described by the sequence of labels met on the path from the point where it
"closes" down to its leaf.  The cardinalities of the merged hypersequences
determine the hybridization number of the ranking.

Labeling
--------
Post-order.  A leaf is labeled with its own taxon.  An internal node v
looks at the minimum-ranked taxon below each child; the child holding the
overall minimum is the *smallest child*, and v's label is the set of
minimum-ranked taxa of all the other children.  The root label additionally
contains the tree's minimum-ranked taxon.

Chains
------
Same post-order.  A leaf opens an empty chain for its taxon.  At internal
node v every open taxon below v that is in label(v) closes (its chain,
reversed into root-to-leaf order, becomes one hypersequence if non-empty);
every other open taxon below v appends label(v).

In a well-formed tree every taxon occurs in exactly two labels: its leaf and
the node where it closes.
"""

import logging
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Set, Tuple

import numpy as np

from fusionet._errors import MalformedTreeError
from fusionet._logging import log_label_count_anomalies
from fusionet._utils import bitmask, iter_members, popcount

logger = logging.getLogger(__name__)


class HyperSequence:
    """
    Immutable, hashable sequence of taxon-set components.

    Components are int bitsets over global taxon IDs (see
    :mod:`fusionet._utils`).

    Examples
    --------
    >>> h = HyperSequence.parse("2 3 5 : 4 : 8")
    >>> len(h), h.cardinality()
    (3, 5)
    >>> str(h)
    '2 3 5 : 4 : 8'
    >>> HyperSequence.parse("4").is_subsequence_of(h)
    True
    """

    __slots__ = ("_components", "_hash")

    def __init__(self, components: Iterable[int] = ()) -> None:
        comps = tuple(int(c) for c in components)
        for c in comps:
            if c <= 0 or c & 1:
                raise ValueError(
                    f"Components must be non-empty sets of taxon IDs >= 1, got {c:#b}"
                )
        self._components = comps
        self._hash = hash(comps)

    @classmethod
    def from_sets(cls, sets: Iterable[Iterable[int]]) -> "HyperSequence":
        """Build from an iterable of taxon-ID collections."""
        return cls(bitmask(s) for s in sets)

    @classmethod
    def parse(cls, text: str) -> "HyperSequence":
        """
        Parse the textual form ``"2 3 5 : 4 : 8"``.

        Components are separated by ':' and taxa by whitespace.  An empty or
        blank string gives the empty hypersequence.
        """
        text = text.strip()
        if not text:
            return cls()
        comps = []
        for part in text.split(":"):
            ids = part.split()
            if not ids:
                raise ValueError(f"Empty component in hypersequence {text!r}")
            comps.append(bitmask(int(t) for t in ids))
        return cls(comps)

    @property
    def components(self) -> Tuple[int, ...]:
        return self._components

    def as_sets(self) -> List[frozenset]:
        """Components as frozensets of taxon IDs."""
        return [frozenset(iter_members(c)) for c in self._components]

    def cardinality(self) -> int:
        """Total number of taxa over all components (with repetition)."""
        return sum(popcount(c) for c in self._components)

    def taxa(self) -> int:
        """Bitset union of all components."""
        mask = 0
        for c in self._components:
            mask |= c
        return mask

    def is_subsequence_of(self, other: "HyperSequence") -> bool:
        """
        True if *self* can be obtained from *other* by deleting components.

        Components are compared by set equality.
        """
        it = iter(other._components)
        return all(any(c == o for o in it) for c in self._components)

    def sort_key(self) -> Tuple[int, Tuple[int, ...]]:
        """Deterministic ordering: longest first, then by components."""
        return (-len(self._components), self._components)

    def __len__(self) -> int:
        return len(self._components)

    def __iter__(self) -> Iterator[int]:
        return iter(self._components)

    def __getitem__(self, index):
        return self._components[index]

    def __eq__(self, other) -> bool:
        if not isinstance(other, HyperSequence):
            return NotImplemented
        return self._components == other._components

    def __hash__(self) -> int:
        return self._hash

    def __str__(self) -> str:
        return " : ".join(
            " ".join(str(t) for t in iter_members(c)) for c in self._components
        )

    def __repr__(self) -> str:
        return f"HyperSequence({str(self)!r})"


# ============================================================================ #
# Extraction
# ============================================================================ #


def extract_tree_hypersequences(
    tree,
    node_taxa: np.ndarray,
    taxon_rank: np.ndarray,
    tree_index: int = 0,
    names: Optional[Sequence[str]] = None,
) -> Dict[int, List["HyperSequence"]]:
    """
    Encode one rooted tree under a taxon ranking.

    Parameters
    ----------
    tree : Tree
        Root-normalized tree (root out-degree <= 1).
    node_taxa : np.ndarray
        gid per node; 0 for internal nodes.
    taxon_rank : np.ndarray
        ``taxon_rank[gid]`` = rank (1 is smallest).
    tree_index : int
        Used in diagnostics only.
    names : sequence of str, optional
        ``names[gid]`` for diagnostics; falls back to the ID.

    Returns
    -------
    Dict[int, List[HyperSequence]]
        gid -> hypersequences contributed by this tree (taxa whose chain
        was empty are omitted).

    Raises
    ------
    MalformedTreeError
        A leaf without a taxon, a taxon on two leaves, or a chain still open
        after the traversal.
    """

    def _name(t: int) -> str:
        return names[t] if names is not None else str(t)

    n = tree.n_nodes
    root = tree.root
    postorder = tree.postorder
    out_degree = tree.out_degree

    below = [0] * n
    label = [0] * n
    min_taxon = [0] * n

    # ---- Labeling pass ------------------------------------------------ #
    for v in postorder:
        v = int(v)
        if out_degree[v] == 0:
            t = int(node_taxa[v])
            if t == 0:
                raise MalformedTreeError(
                    f"leaf node {v} carries no taxon", tree_index=tree_index
                )
            below[v] = 1 << t
            label[v] = 1 << t
            min_taxon[v] = t
            continue

        kids = [int(c) for c in tree.children_of(v)]
        smallest = min(kids, key=lambda c: taxon_rank[min_taxon[c]])
        lab = 0
        bel = 0
        for c in kids:
            bel |= below[c]
            if c != smallest:
                lab |= 1 << min_taxon[c]
        below[v] = bel
        label[v] = lab
        min_taxon[v] = min_taxon[smallest]

    label[root] |= 1 << min_taxon[root]

    # ---- Occurrence check (non-fatal) --------------------------------- #
    if tree.n_leaves > 1:
        counts: Dict[int, int] = {}
        for lab in label:
            for t in iter_members(lab):
                counts[t] = counts.get(t, 0) + 1
        anomalies = {
            _name(t): counts.get(t, 0)
            for t in iter_members(below[root])
            if counts.get(t, 0) != 2
        }
        log_label_count_anomalies(tree_index, anomalies)

    # ---- Chain pass --------------------------------------------------- #
    chains: Dict[int, List[int]] = {}
    open_mask = 0
    seen_mask = 0
    result: Dict[int, List[HyperSequence]] = {}

    def _close(t: int) -> None:
        seq = chains.pop(t)
        if seq:
            seq.reverse()
            result.setdefault(t, []).append(HyperSequence(seq))

    for v in postorder:
        v = int(v)
        if out_degree[v] == 0:
            t = int(node_taxa[v])
            if (seen_mask >> t) & 1:
                raise MalformedTreeError(
                    "taxon occurs on more than one leaf",
                    tree_index=tree_index,
                    taxa=[_name(t)],
                )
            chains[t] = []
            open_mask |= 1 << t
            seen_mask |= 1 << t
            if v == root:
                _close(t)
                open_mask &= ~(1 << t)
            continue

        active = open_mask & below[v]
        if not active:
            continue
        closing = active & label[v]
        for t in iter_members(closing):
            _close(t)
        open_mask &= ~closing
        if label[v]:
            for t in iter_members(active & ~closing):
                chains[t].append(label[v])

    if open_mask:
        raise MalformedTreeError(
            "chains left open after traversal",
            tree_index=tree_index,
            taxa=[_name(t) for t in iter_members(open_mask)],
        )

    return result


def compute_hypersequences(forest, taxon_rank: np.ndarray) -> Dict[int, Set[HyperSequence]]:
    """
    Encode every tree of *forest* under *taxon_rank*.

    Returns
    -------
    Dict[int, Set[HyperSequence]]
        gid -> distinct hypersequences across all trees; every taxon of the
        namespace has an entry (possibly empty).
    """
    per_taxon: Dict[int, Set[HyperSequence]] = {
        gid: set() for gid in range(1, forest.n_global_taxa + 1)
    }
    for ti, tree in enumerate(forest.normalized_trees):
        found = extract_tree_hypersequences(
            tree, forest.node_taxa[ti], taxon_rank, ti, forest.taxon_names
        )
        for t, seqs in found.items():
            per_taxon[t].update(seqs)
    return per_taxon
