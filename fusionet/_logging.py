"""
_logging.py
===========
Logging functions for fusionet.

All functions in this module have NO side effects except logging. They take
computed data as parameters and format/emit log messages.

This separation ensures:
- Logging can be easily disabled/mocked in tests
- Computation is separate from presentation
"""

import logging
import math
from typing import Dict, List


logger = logging.getLogger(__name__)


# ============================================================================ #
# System Logging (called at module import time)
# ============================================================================ #


def log_system_status(info: dict) -> None:
    """
    Log system capabilities and library versions at INFO level.

    Called once at module import time.

    Parameters
    ----------
    info : dict
        Output of :func:`fusionet._backend.get_backend_info`.
    """
    logger.info(
        f"System: {info['machine']} ({info['system']}), "
        f"{info['cpu_count']} CPU cores, Python {info['python_version']}"
    )

    # Memory info (optional psutil)
    try:
        import psutil

        mem = psutil.virtual_memory()
        logger.info(
            f"Memory: {mem.total / (1024**3):.1f} GB total, "
            f"{mem.available / (1024**3):.1f} GB available"
        )
    except ImportError:
        pass  # psutil not required

    logger.info(
        "numpy %s, networkx %s; default search workers: %d",
        info["numpy_version"],
        info["networkx_version"],
        info["default_workers"],
    )


# ============================================================================ #
# Forest Logging (called during initialization)
# ============================================================================ #


def log_root_normalization(
    n_rerooted: int, rerooted_indices: List[int], n_trees: int
) -> None:
    """
    Emit consolidated root-normalization message.

    Parameters
    ----------
    n_rerooted : int
        Number of trees that received a new unary root.
    rerooted_indices : List[int]
        Indices of those trees.
    n_trees : int
        Total number of trees in the forest.
    """
    if n_rerooted == 0:
        return
    if n_rerooted == 1:
        logger.info(
            "1 tree received a unary root (tree index %d). "
            "A zero-length edge was added above the original root.",
            rerooted_indices[0],
        )
    elif n_rerooted <= 5:
        logger.info(
            "%d trees received a unary root (tree indices: %s). "
            "Zero-length edges were added above the original roots.",
            n_rerooted,
            ", ".join(map(str, rerooted_indices)),
        )
    else:
        logger.info(
            "%d trees received a unary root (%.1f%% of total). "
            "Zero-length edges were added above the original roots.",
            n_rerooted,
            100.0 * n_rerooted / n_trees,
        )


def log_forest_statistics(
    n_trees: int,
    n_global_taxa: int,
    total_leaves: int,
    total_nodes: int,
    taxa_per_tree_mean: float,
    missing: Dict[int, List[str]],
) -> None:
    """
    Log forest statistics: taxon counts, node counts, namespace coverage.

    Parameters
    ----------
    n_trees : int
        Number of trees in the forest.
    n_global_taxa : int
        Number of distinct taxa across all trees.
    total_leaves : int
        Total number of leaves across all trees.
    total_nodes : int
        Total number of nodes across all normalized trees.
    taxa_per_tree_mean : float
        Average number of taxa per tree.
    missing : Dict[int, List[str]]
        Tree index -> taxa absent from that tree.  Empty when every tree
        carries the full taxon set.
    """
    logger.info(
        "Forest built: %d trees, %d global taxa, %d total leaves, %d nodes",
        n_trees,
        n_global_taxa,
        total_leaves,
        total_nodes,
    )
    logger.info("Namespace coverage: %.1f taxa/tree (avg)", taxa_per_tree_mean)

    if missing:
        logger.warning(
            "Input is partial: %d of %d trees lack some taxa. Networks are "
            "only guaranteed to display trees over the full taxon set.",
            len(missing),
            n_trees,
        )
        for tree_index in sorted(missing)[:5]:
            logger.warning(
                "  Tree %d is missing: %s",
                tree_index,
                ", ".join(missing[tree_index]),
            )


def log_label_count_anomalies(tree_index: int, anomalies: Dict[str, int]) -> None:
    """
    Warn about taxa whose label occurrence count is not exactly two.

    Parameters
    ----------
    tree_index : int
        Index of the tree in its forest.
    anomalies : Dict[str, int]
        Taxon name -> observed count.
    """
    if not anomalies:
        return
    detail = ", ".join(f"{name}={count}" for name, count in sorted(anomalies.items()))
    logger.warning(
        "Tree %d: %d taxa do not occur exactly twice in node labels (%s). "
        "Continuing; the encoding of this tree may be inaccurate.",
        tree_index,
        len(anomalies),
        detail,
    )


# ============================================================================ #
# Search Logging
# ============================================================================ #


def log_search_start(
    n_trees: int, n_taxa: int, max_results: int, n_workers: int
) -> None:
    """Log the parameters of an ordering search."""
    logger.info(
        "Ordering search: %d trees, %d taxa, max_results=%d, %d worker(s)",
        n_trees,
        n_taxa,
        max_results,
        n_workers,
    )


def log_position_summary(
    pos: int, n_candidates: int, best_score: float, n_tied: int
) -> None:
    """Log the outcome of one search position at DEBUG level."""
    if math.isinf(best_score):
        logger.debug(
            "Position %d: none of %d candidates could be scored; branch abandoned",
            pos,
            n_candidates,
        )
        return
    logger.debug(
        "Position %d: %d candidates, best score %d, %d tied",
        pos,
        n_candidates,
        int(best_score),
        n_tied,
    )


def log_search_summary(
    n_evaluations: int, n_results: int, best_score: float, elapsed: float
) -> None:
    """
    Log the outcome of an ordering search.

    Parameters
    ----------
    n_evaluations : int
        Number of candidate orderings evaluated.
    n_results : int
        Number of retained complete orderings.
    best_score : float
        Best hybridization number found (inf if none).
    elapsed : float
        Wall-clock seconds.
    """
    if n_results == 0:
        logger.warning(
            "Search finished after %d evaluations without a scorable ordering "
            "(%.2f s)",
            n_evaluations,
            elapsed,
        )
        return
    logger.info(
        "Search finished: %d evaluations, %d ordering(s) retained, "
        "hybridization number %d (%.2f s)",
        n_evaluations,
        n_results,
        int(best_score),
        elapsed,
    )
