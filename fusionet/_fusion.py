"""
_fusion.py
==========
Entry point: from a forest to the network(s) with the smallest hybridization
number found by the ordering search.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import networkx as nx

from fusionet._context import get_workers_override
from fusionet._errors import FusionError
from fusionet._merge import Merger
from fusionet._network import (
    build_network,
    set_edge_weights,
    tree_to_network,
    unique_networks,
)
from fusionet._progress import Progress
from fusionet._search import OrderingSearch

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FusionResult:
    """
    Outcome of :func:`fuse`.

    Attributes
    ----------
    networks : tuple of networkx.DiGraph
        At least one network; all share ``hybridization_number``.
    hybridization_number : int
    orderings : tuple of tuple of str
        Taxon names in rank order, one ordering per network.
    """

    networks: Tuple[nx.DiGraph, ...]
    hybridization_number: int
    orderings: Tuple[Tuple[str, ...], ...]


def fuse(
    forest,
    max_results: int = 1,
    n_workers: int = 0,
    progress: Optional[Progress] = None,
    merger: Optional[Merger] = None,
    normalize_weights: bool = False,
) -> FusionResult:
    """
    Compute network(s) displaying every tree of *forest* with as few
    reticulations as the ordering search can find.

    Parameters
    ----------
    forest : Forest
    max_results : int, default 1
        Maximum number of tied networks to return.  1 is fully
        deterministic; larger values explore tie space on a best-effort
        basis.
    n_workers : int, default 0
        Search threads; 0 uses every available CPU.  Overridden inside a
        :func:`~fusionet.use_workers` block.
    progress : Progress, optional
        Progress / cancellation handle.
    merger : callable, optional
        Sequence merger; defaults to
        :func:`~fusionet._merge.progressive_scs`.
    normalize_weights : bool, default False
        Divide each input tree's branch lengths by its total length before
        they are averaged into network edge weights.

    Returns
    -------
    FusionResult

    Raises
    ------
    ValueError
        If *max_results* < 1 or *n_workers* < 0.
    SearchCancelled
        If *progress* was cancelled.
    MalformedTreeError
        If a tree cannot be encoded.
    FusionError
        If no ordering could be scored.

    Examples
    --------
    >>> from fusionet import Forest, fuse
    >>> result = fuse(Forest(['((a,b),c);', '((a,c),b);']))
    >>> result.hybridization_number
    1
    """
    override = get_workers_override()
    if override is not None:
        n_workers = override

    search = OrderingSearch(
        forest,
        max_results=max_results,
        n_workers=n_workers,
        progress=progress,
        merger=merger,
    )

    if forest.n_trees == 1:
        logger.info("Single input tree: returning it as the network")
        network = tree_to_network(
            forest.trees[0], {n: forest.taxon_id(n) for n in forest.global_names}
        )
        ordering = tuple(forest.global_names)
        network.graph["hybridization_number"] = 0
        network.graph["ordering"] = ordering
        set_edge_weights(forest.trees, network, normalize=normalize_weights)
        return FusionResult((network,), 0, (ordering,))

    evaluations = search.run()
    if not evaluations:
        raise FusionError(
            f"No taxon ordering of the {forest.n_global_taxa} taxa could be scored"
        )

    score = int(evaluations[0].score)
    networks = []
    for ev in evaluations:
        network = build_network(ev.order, ev.merged, forest.taxon_names)
        network.graph["hybridization_number"] = score
        network.graph["ordering"] = tuple(forest.taxon_names[t] for t in ev.order)
        networks.append(network)

    if len(networks) > 1:
        networks = unique_networks(networks)
    for network in networks:
        set_edge_weights(forest.trees, network, normalize=normalize_weights)

    return FusionResult(
        tuple(networks),
        score,
        tuple(net.graph["ordering"] for net in networks),
    )
