"""
_network.py
===========
Rooted phylogenetic networks as ``networkx.DiGraph`` objects.

Node attributes
---------------
  taxon      : str        Leaf nodes only; taxon name.
  taxon_id   : int        Leaf nodes only; global taxon ID.
  component  : frozenset  Internal nodes; taxon names of the start node or
                          chain component the node was created for (for
                          networks built from a single tree: the cluster).

Edge attributes
---------------
  reticulate : bool       True iff the edge's target has in-degree > 1.
  weight     : float      Averaged input-tree branch length (set by
                          :func:`set_edge_weights`).

Graph attributes
----------------
  root                  : node ID of the unique source.
  hybridization_number  : set by :func:`fusionet.fuse`.
  ordering              : taxon names in rank order (set by fuse).
"""

import itertools
import logging
import time
from typing import Dict, List, Mapping, Optional, Sequence, Set, Tuple

import networkx as nx
import numpy as np

from fusionet._hypersequence import HyperSequence
from fusionet._utils import iter_members

logger = logging.getLogger(__name__)


def build_network(
    order: Sequence[int],
    merged: Mapping[int, HyperSequence],
    names: Sequence[str],
) -> nx.DiGraph:
    """
    Construct the network for a ranking and its merged hypersequences.

    For each taxon t in rank order a start node, one chain node per
    component of t's merged hypersequence and a leaf are linked in a path.
    Every chain node then gets an edge to the start node of each taxon in
    its component.  The first start node is the root.  Divertices (in- and
    out-degree 1) are spliced out and reticulate edges marked.

    Parameters
    ----------
    order : sequence of int
        Global IDs in rank order.
    merged : mapping gid -> HyperSequence
        Taxa without an entry are treated as having an empty hypersequence.
    names : sequence of str
        ``names[gid]`` = taxon name.

    Returns
    -------
    networkx.DiGraph
    """
    graph = nx.DiGraph()
    ids = itertools.count()

    start: Dict[int, int] = {}
    for t in order:
        node = next(ids)
        start[t] = node
        graph.add_node(node, component=frozenset((names[t],)))

    jumps = []
    for t in order:
        prev = start[t]
        for comp in merged.get(t, ()):
            node = next(ids)
            graph.add_node(
                node, component=frozenset(names[q] for q in iter_members(comp))
            )
            graph.add_edge(prev, node)
            jumps.extend((node, q) for q in iter_members(comp))
            prev = node
        leaf = next(ids)
        graph.add_node(leaf, taxon=names[t], taxon_id=int(t))
        graph.add_edge(prev, leaf)

    for node, q in jumps:
        graph.add_edge(node, start[q])

    graph.graph["root"] = start[order[0]]
    remove_divertices(graph)
    mark_reticulations(graph)
    return graph


def tree_to_network(tree, taxon_ids: Optional[Mapping[str, int]] = None) -> nx.DiGraph:
    """
    Convert a :class:`~fusionet.Tree` into the network representation.

    Unary nodes are spliced out; no edge is reticulate.

    Parameters
    ----------
    tree : Tree
    taxon_ids : mapping name -> gid, optional
        Defaults to numbering the tree's sorted leaf names from 1.
    """
    if taxon_ids is None:
        taxon_ids = {n: i for i, n in enumerate(sorted(tree.leaf_names), start=1)}

    graph = nx.DiGraph()
    below: List[frozenset] = [frozenset()] * tree.n_nodes
    for v in tree.postorder:
        v = int(v)
        if tree.is_leaf(v):
            name = tree.names[v]
            below[v] = frozenset((name,))
            graph.add_node(v, taxon=name, taxon_id=int(taxon_ids[name]))
            continue
        kids = [int(c) for c in tree.children_of(v)]
        below[v] = frozenset().union(*(below[c] for c in kids))
        graph.add_node(v, component=below[v])
        for c in kids:
            graph.add_edge(v, c)

    graph.graph["root"] = tree.root
    remove_divertices(graph)
    mark_reticulations(graph)
    return graph


def remove_divertices(graph: nx.DiGraph) -> int:
    """
    Splice out every node with in-degree 1 and out-degree 1, in place.

    Returns the number of nodes removed.
    """
    removed = 0
    for node in list(graph.nodes):
        if graph.in_degree(node) != 1 or graph.out_degree(node) != 1:
            continue
        (pred,) = graph.predecessors(node)
        (succ,) = graph.successors(node)
        assert not graph.has_edge(pred, succ), (
            f"splicing node {node} would duplicate edge {pred}->{succ}"
        )
        graph.remove_node(node)
        graph.add_edge(pred, succ)
        removed += 1
    if removed:
        logger.debug("Removed %d divertices", removed)
    return removed


def mark_reticulations(graph: nx.DiGraph) -> None:
    """Set ``reticulate`` on every edge: True iff the target's in-degree > 1."""
    for u, v in graph.edges:
        graph.edges[u, v]["reticulate"] = graph.in_degree(v) > 1


def reticulation_count(graph: nx.DiGraph) -> int:
    """Sum over nodes of ``max(in_degree - 1, 0)``."""
    return sum(max(d - 1, 0) for _, d in graph.in_degree())


def leaf_clusters(graph: nx.DiGraph) -> set:
    """
    Taxon-name sets reachable from every non-leaf node.

    For a tree-shaped network these are its clusters.
    """
    leaf_name = nx.get_node_attributes(graph, "taxon")
    out = set()
    for node in graph.nodes:
        if node in leaf_name:
            continue
        out.add(
            frozenset(
                leaf_name[d] for d in nx.descendants(graph, node) if d in leaf_name
            )
        )
    return out


# ============================================================================ #
# Edge weights
# ============================================================================ #

UNDEFINED_WEIGHT = 0.0001
TIMEOUT_WEIGHT = 1.0


class _ClusterTimeout(Exception):
    """**Private.**  Cluster collection ran past its time limit."""


def softwired_edge_clusters(
    graph: nx.DiGraph, time_limit: Optional[float] = None
) -> Dict[Tuple, Set[frozenset]]:
    """
    Collect, for every edge, the clusters it carries in some switching.

    A switching keeps every tree edge and exactly one in-edge of each
    reticulation.  Within a switching the cluster of an edge is the set of
    taxon names reachable from the root through it; the result is the union
    over all switchings.

    The number of switchings is the product of the reticulations'
    in-degrees.
    """
    deadline = None if time_limit is None else time.monotonic() + time_limit
    root = graph.graph["root"]
    order = list(nx.topological_sort(graph))
    leaf_name = nx.get_node_attributes(graph, "taxon")
    hybrids = [v for v in order if graph.in_degree(v) > 1]

    out: Dict[Tuple, Set[frozenset]] = {e: set() for e in graph.edges}
    for chosen in itertools.product(*(list(graph.predecessors(h)) for h in hybrids)):
        if deadline is not None and time.monotonic() > deadline:
            raise _ClusterTimeout
        active_parent = dict(zip(hybrids, chosen))

        active = []
        reached = {root}
        for u in order:
            if u not in reached:
                continue
            for w in graph.successors(u):
                if active_parent.get(w, u) == u:
                    active.append((u, w))
                    reached.add(w)

        below: Dict[object, frozenset] = {}
        for v in reversed(order):
            if v not in reached:
                continue
            members = {leaf_name[v]} if v in leaf_name else set()
            for w in graph.successors(v):
                if active_parent.get(w, v) == v:
                    members |= below[w]
            below[v] = frozenset(members)

        for u, w in active:
            out[(u, w)].add(below[w])
    return out


def _cluster_lengths(tree) -> Dict[frozenset, float]:
    """
    **Private.**  Branch length above each cluster of *tree*.

    Lengths along a unary chain are summed; edges without a length are
    skipped.
    """
    below: List[frozenset] = [frozenset()] * tree.n_nodes
    lengths: Dict[frozenset, float] = {}
    for v in tree.postorder:
        v = int(v)
        if tree.is_leaf(v):
            below[v] = frozenset((tree.names[v],))
        else:
            below[v] = frozenset().union(*(below[int(c)] for c in tree.children_of(v)))
        if v != tree.root and tree.distance[v] >= 0.0:
            lengths[below[v]] = lengths.get(below[v], 0.0) + float(tree.distance[v])
    return lengths


def set_edge_weights(
    trees: Sequence,
    graph: nx.DiGraph,
    normalize: bool = False,
    time_limit: Optional[float] = 1.0,
) -> None:
    """
    Set the ``weight`` attribute of every edge from input branch lengths.

    Each edge receives the mean length of the input-tree edges above the
    clusters it carries in some switching (see
    :func:`softwired_edge_clusters`).  Edges matching no input edge get
    ``UNDEFINED_WEIGHT``.  If cluster collection takes longer than
    *time_limit* seconds every edge gets ``TIMEOUT_WEIGHT``.

    Parameters
    ----------
    trees : sequence of Tree
    graph : networkx.DiGraph
        Modified in place.
    normalize : bool, default False
        Divide each tree's lengths by its total length first.
    time_limit : float or None, default 1.0
        None disables the limit.
    """
    try:
        edge_clusters = softwired_edge_clusters(graph, time_limit)
    except _ClusterTimeout:
        logger.warning(
            "Edge weights: cluster collection exceeded %.1f s; "
            "setting every weight to %g",
            time_limit,
            TIMEOUT_WEIGHT,
        )
        nx.set_edge_attributes(graph, TIMEOUT_WEIGHT, "weight")
        return

    values: Dict[Tuple, List[float]] = {e: [] for e in edge_clusters}
    for tree in trees:
        lengths = _cluster_lengths(tree)
        total = sum(lengths.values())
        scale = 1.0 / total if normalize and total > 0 else 1.0
        for e, clusters in edge_clusters.items():
            for cluster in clusters:
                if cluster in lengths:
                    values[e].append(lengths[cluster] * scale)

    undefined = 0
    for e, found in values.items():
        if found:
            graph.edges[e]["weight"] = float(np.mean(found))
        else:
            graph.edges[e]["weight"] = UNDEFINED_WEIGHT
            undefined += 1
    if undefined:
        logger.debug(
            "%d edge(s) match no input branch; weight set to %g",
            undefined,
            UNDEFINED_WEIGHT,
        )


# ============================================================================ #
# Path multiplicity distance
# ============================================================================ #


def _path_multiplicities(graph: nx.DiGraph, taxa: Sequence[str]) -> set:
    """
    **Private.**  For every node with out-degree > 1, the vector of path
    counts from that node to each taxon leaf.
    """
    column = {name: i for i, name in enumerate(taxa)}
    counts: Dict[object, np.ndarray] = {}
    vectors = set()
    for node in reversed(list(nx.topological_sort(graph))):
        mu = np.zeros(len(taxa), dtype=np.int64)
        name = graph.nodes[node].get("taxon")
        if name is not None:
            mu[column[name]] = 1
        for succ in graph.successors(node):
            mu += counts[succ]
        counts[node] = mu
        if graph.out_degree(node) > 1:
            vectors.add(tuple(int(x) for x in mu))
    return vectors


def path_multiplicity_distance(a: nx.DiGraph, b: nx.DiGraph) -> float:
    """
    Path-multiplicity distance between two networks on the same taxa.

    Half the size of the symmetric difference between the sets of
    path-count vectors of the two networks' branching nodes.  Zero for
    networks that cannot be told apart by these vectors.
    """
    taxa = sorted(
        set(nx.get_node_attributes(a, "taxon").values())
        | set(nx.get_node_attributes(b, "taxon").values())
    )
    mu_a = _path_multiplicities(a, taxa)
    mu_b = _path_multiplicities(b, taxa)
    return len(mu_a ^ mu_b) / 2.0


def unique_networks(networks: Sequence[nx.DiGraph]) -> List[nx.DiGraph]:
    """
    Drop networks at path-multiplicity distance 0 from an earlier one.

    Order of first occurrence is kept.
    """
    kept: List[nx.DiGraph] = []
    for net in networks:
        if any(path_multiplicity_distance(net, other) == 0 for other in kept):
            continue
        kept.append(net)
    if len(kept) < len(networks):
        logger.info(
            "Removed %d duplicate network(s)", len(networks) - len(kept)
        )
    return kept
