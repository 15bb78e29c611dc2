"""
fusionet
========

Fuse several rooted phylogenetic trees on a shared taxon set into a rooted
network with a small number of reticulations (hybridization events).

Each taxon ordering encodes every tree as per-taxon *hypersequences*; merging
them per taxon and summing their sizes gives the hybridization number of the
ordering.  A greedy depth-first search over orderings, parallelized across
candidates, finds orderings with the smallest number, and each is turned into
a ``networkx.DiGraph``.

Main Classes
------------
Forest : Input trees with a global taxon namespace; ``Forest.fuse()``
Tree : Single rooted tree with NEWICK parsing
HyperSequence : Ordered sequence of taxon-set components
FusionResult : Networks, hybridization number and orderings
Progress : Progress counter and cooperative cancellation

Pipeline Functions
------------------
fuse : Forest -> FusionResult
compute_hypersequences : Encode a forest under a ranking
progressive_scs, shortest_common_supersequence : Sequence mergers
hybridization_number, evaluate_ranking : Scoring
OrderingSearch : The search itself
build_network, tree_to_network : Network construction
reticulation_count, path_multiplicity_distance, unique_networks : Network helpers
set_edge_weights, softwired_edge_clusters : Edge lengths from the input trees
contract_low_support, mutual_refinement : Input preprocessing

Context Managers
----------------
quiet : Suppress logging during operations
suppress_logger : Suppress specific logger
use_workers : Force the number of search workers

Errors
------
MalformedTreeError, SearchCancelled, FusionError

Examples
--------
Basic usage:

>>> from fusionet import Forest
>>> forest = Forest(['((a,b),c);', '((a,c),b);'])
>>> result = forest.fuse()
>>> result.hybridization_number
1
>>> net = result.networks[0]
>>> sorted(d for _, d in net.in_degree() if d > 1)
[2]

Preprocessing:

>>> forest = Forest(['((a,b)40,c,d);', '(((a,b),c),d);'], min_confidence=70, refine=True)

With context managers:

>>> from fusionet import Forest, quiet, use_workers
>>> with quiet(), use_workers(1):
...     result = Forest(newicks).fuse(max_results=5)
"""

__version__ = "0.1.0"

# Main classes
from ._forest import Forest
from ._tree import Tree
from ._hypersequence import (
    HyperSequence,
    compute_hypersequences,
    extract_tree_hypersequences,
)
from ._fusion import FusionResult, fuse
from ._progress import Progress

# Pipeline stages
from ._merge import Merger, progressive_scs, shortest_common_supersequence
from ._scoring import Evaluation, evaluate_ranking, hybridization_number
from ._search import OrderingSearch
from ._network import (
    build_network,
    leaf_clusters,
    path_multiplicity_distance,
    reticulation_count,
    set_edge_weights,
    softwired_edge_clusters,
    tree_to_network,
    unique_networks,
)
from ._refine import contract_low_support, mutual_refinement

# Errors
from ._errors import FusionError, MalformedTreeError, SearchCancelled

# Context managers (user-facing utilities)
from ._context import quiet, suppress_logger, use_workers

# Utilities
from ._utils import format_newick

# Backend information
from ._backend import get_backend_info, resolve_n_workers

# Public API
__all__ = [
    # Main classes
    "Forest",
    "Tree",
    "HyperSequence",
    "FusionResult",
    "Progress",
    "fuse",
    # Pipeline stages
    "compute_hypersequences",
    "extract_tree_hypersequences",
    "Merger",
    "progressive_scs",
    "shortest_common_supersequence",
    "Evaluation",
    "evaluate_ranking",
    "hybridization_number",
    "OrderingSearch",
    "build_network",
    "tree_to_network",
    "leaf_clusters",
    "reticulation_count",
    "path_multiplicity_distance",
    "unique_networks",
    "set_edge_weights",
    "softwired_edge_clusters",
    "contract_low_support",
    "mutual_refinement",
    # Errors
    "FusionError",
    "MalformedTreeError",
    "SearchCancelled",
    # Context managers
    "quiet",
    "suppress_logger",
    "use_workers",
    # Utilities
    "format_newick",
    # Backend information
    "get_backend_info",
    "resolve_n_workers",
    # Version info
    "__version__",
]
