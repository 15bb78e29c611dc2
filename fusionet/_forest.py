"""
_forest.py
==========
The read-only input collection for network fusion: a list of rooted trees,
their root-normalized copies and a global taxon namespace.

Public API
----------
  Forest(trees)
      Constructor.  Accepts a list of NEWICK strings and/or Tree objects.
      Normalizes roots, builds the global taxon namespace and the per-tree
      leaf -> taxon arrays used by the hypersequence extractor.

  .fuse(max_results=1, n_workers=0, progress=None, merger=None)
      Search for the network(s) with the smallest hybridization number.

  .taxon_id(name) / .taxon_name(gid)

Logging
-------
The module uses Python's standard logging framework:

  logging.getLogger('fusionet._forest')
      INFO level:    System capabilities (CPU, memory, library versions),
                     construction stages, root normalization, taxa/tree
                     counts.
      WARNING level: Partial input (trees lacking some taxa).

On first import the module logs system status once per Python session.

Users can control logging in the standard way:

    import logging
    logging.getLogger('fusionet').setLevel(logging.WARNING)

or with the :func:`fusionet.quiet` context manager.

Global taxon namespace
----------------------
Taxon names are collected across all trees, sorted deterministically (ASCII
order), and assigned a contiguous integer *global ID* (gid) 1..N where
N = n_global_taxa.  gid 0 means "no taxon".

  global_names : list[str]       — global_names[gid - 1] = taxon name
  taxon_names  : tuple[str]      — taxon_names[gid] = taxon name; [0] = ''

  global_to_local : int32 ndarray (n_trees, N + 1)
      global_to_local[tree_idx, gid] = local leaf ID in that tree, or -1
      if the taxon is absent.  Column 0 is always -1.

  taxa_present : bool ndarray (n_trees, N + 1)
      taxa_present[ti, gid] = (global_to_local[ti, gid] >= 0).

  node_taxa : list of int32 ndarray
      node_taxa[ti][v] = gid of leaf v in normalized tree ti, 0 for
      internal nodes.
"""

import logging
from typing import List, Union

import numpy as np

from fusionet._backend import get_backend_info
from fusionet._context import suppress_logger
from fusionet._fusion import fuse
from fusionet._logging import (
    log_forest_statistics,
    log_root_normalization,
    log_system_status,
)
from fusionet._refine import contract_low_support, mutual_refinement
from fusionet._tree import Tree
from fusionet._utils import format_newick

logger = logging.getLogger(__name__)


# ============================================================================ #
# Module-level initialization
# ============================================================================ #

log_system_status(get_backend_info())


class Forest:
    """
    A collection of rooted phylogenetic trees over a shared taxon namespace.

    Parameters
    ----------
    trees : list of (str | Tree)
        NEWICK strings and/or :class:`Tree` instances.  At least one.
    min_confidence : float, default 0
        Internal edges whose support is below this value are contracted
        before anything else.  0 disables contraction.
    refine : bool, default False
        Resolve each tree's multifurcations with the compatible clusters
        of the other trees (applied after contraction).

    Raises
    ------
    ValueError
        If *trees* is empty or a NEWICK string is malformed.
    TypeError
        If *trees* is not a list/tuple or contains an unsupported item.

    Attributes
    ----------
    n_trees          : int
    n_global_taxa    : int
    trees            : tuple[Tree]   The trees after contraction and refinement.
    normalized_trees : tuple[Tree]   Every root has out-degree <= 1.
    taxa_mask        : int           Bitset of all global IDs.

    Examples
    --------
    >>> forest = Forest(['((a,b),c);', '((a,c),b);'])
    >>> forest.global_names
    ['a', 'b', 'c']
    >>> forest.fuse().hybridization_number
    1
    """

    # ================================================================== #
    # Construction                                                         #
    # ================================================================== #

    def __init__(self, trees, min_confidence: float = 0.0, refine: bool = False) -> None:
        if isinstance(trees, (str, Tree)) or not isinstance(trees, (list, tuple)):
            raise TypeError(
                f"trees must be a list or tuple, got {type(trees).__name__}"
            )
        if len(trees) == 0:
            raise ValueError("A forest needs at least one tree")

        parsed: List[Tree] = []
        with suppress_logger("fusionet._tree", logging.WARNING):
            for i, item in enumerate(trees):
                parsed.append(self._coerce_tree(item, i))

        self.n_trees = len(parsed)
        logger.info("Loaded %d tree(s)", self.n_trees)

        parsed = contract_low_support(parsed, min_confidence)
        if refine:
            parsed = mutual_refinement(parsed)
        self._trees = tuple(parsed)

        self._normalize_roots()

        logger.info("Building global taxon namespace...")
        self._build_global_namespace()

        self._log_statistics_method()

    @staticmethod
    def _coerce_tree(item: Union[str, Tree], index: int) -> Tree:
        """**Private.**  Parse NEWICK input or pass a Tree through."""
        if isinstance(item, Tree):
            return item
        if isinstance(item, str):
            try:
                return Tree(format_newick(item))
            except ValueError as exc:
                raise ValueError(f"Tree {index}: {exc}") from exc
        raise TypeError(
            f"Tree {index}: expected a NEWICK string or Tree, "
            f"got {type(item).__name__}"
        )

    def _normalize_roots(self) -> None:
        """**Private.**  Give every tree a root of out-degree <= 1."""
        normalized = [t.with_unary_root() for t in self._trees]
        rerooted = [i for i, (a, b) in enumerate(zip(self._trees, normalized)) if a is not b]
        self._normalized = tuple(normalized)
        log_root_normalization(len(rerooted), rerooted, self.n_trees)

    def _build_global_namespace(self) -> None:
        """
        **Private.**  Collect all unique taxon names across all trees, assign
        sorted global IDs, and build the global↔local mapping arrays.
        """
        name_set: set = set()
        for t in self._trees:
            name_set.update(t.leaf_names)

        self.global_names = sorted(name_set)
        self.n_global_taxa = len(self.global_names)
        self.taxon_names = ("",) + tuple(self.global_names)
        self._name_to_global: dict = {
            n: gid for gid, n in enumerate(self.global_names, start=1)
        }
        self.taxa_mask = (1 << (self.n_global_taxa + 1)) - 2

        N = self.n_global_taxa
        NT = self.n_trees

        self.global_to_local = np.full((NT, N + 1), -1, dtype=np.int32)
        node_taxa = []
        for ti, t in enumerate(self._normalized):
            row = np.zeros(t.n_nodes, dtype=np.int32)
            for local_id, name in enumerate(t.leaf_names):
                gid = self._name_to_global[name]
                self.global_to_local[ti, gid] = local_id
                row[local_id] = gid
            row.setflags(write=False)
            node_taxa.append(row)
        self.node_taxa = node_taxa

        # Convenience presence mask
        self.taxa_present = self.global_to_local >= 0
        self.global_to_local.setflags(write=False)
        self.taxa_present.setflags(write=False)

    def _log_statistics_method(self) -> None:
        """**Private.**  Log forest statistics and partial-input warnings."""
        taxa_per_tree = self.taxa_present[:, 1:].sum(axis=1)
        missing = {
            ti: [
                self.taxon_names[gid]
                for gid in range(1, self.n_global_taxa + 1)
                if not self.taxa_present[ti, gid]
            ]
            for ti in range(self.n_trees)
            if taxa_per_tree[ti] < self.n_global_taxa
        }
        log_forest_statistics(
            self.n_trees,
            self.n_global_taxa,
            sum(t.n_leaves for t in self._trees),
            sum(t.n_nodes for t in self._normalized),
            float(taxa_per_tree.mean()),
            missing,
        )

    # ================================================================== #
    # Public methods                                                       #
    # ================================================================== #

    @property
    def trees(self):
        """The input trees after low-support contraction and refinement."""
        return self._trees

    @property
    def normalized_trees(self):
        """Input trees with unary roots; identical objects where no change was needed."""
        return self._normalized

    @property
    def is_partial(self) -> bool:
        """True if some tree lacks some taxon of the global namespace."""
        return not bool(self.taxa_present[:, 1:].all())

    def taxon_id(self, name: str) -> int:
        """
        Return the global ID for taxon *name*.

        Raises
        ------
        KeyError   if *name* is not in the namespace.
        """
        if name not in self._name_to_global:
            raise KeyError(
                f"Taxon '{name}' not found in global namespace. "
                f"Known taxa: {self.global_names}"
            )
        return self._name_to_global[name]

    def taxon_name(self, gid: int) -> str:
        """Return the taxon name for global ID *gid* (1..N)."""
        if not 1 <= gid <= self.n_global_taxa:
            raise KeyError(f"Taxon ID {gid} outside 1..{self.n_global_taxa}")
        return self.taxon_names[gid]

    def fuse(
        self,
        max_results: int = 1,
        n_workers: int = 0,
        progress=None,
        merger=None,
        normalize_weights: bool = False,
    ):
        """
        Compute network(s) with the minimum hybridization number found by
        the ordering search.  See :func:`fusionet.fuse`.
        """
        return fuse(
            self,
            max_results=max_results,
            n_workers=n_workers,
            progress=progress,
            merger=merger,
            normalize_weights=normalize_weights,
        )

    def __repr__(self) -> str:
        return f"Forest(n_trees={self.n_trees}, n_taxa={self.n_global_taxa})"
