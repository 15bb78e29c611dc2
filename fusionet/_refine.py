"""
_refine.py
==========
Input preprocessing applied before the ordering search.

  contract_low_support(trees, min_confidence)
      Contract internal edges whose support is below a threshold.

  mutual_refinement(trees)
      Resolve each tree's multifurcations with the clusters of the other
      trees that it can accommodate.

Both return a new list; trees that need no change are passed through as the
same objects.
"""

import logging
from typing import List, Sequence, Set

from fusionet._tree import Tree

logger = logging.getLogger(__name__)


def compatible(a: frozenset, b: frozenset) -> bool:
    """True if clusters *a* and *b* are nested or disjoint."""
    return a <= b or b <= a or not (a & b)


def contract_low_support(trees: Sequence[Tree], min_confidence: float) -> List[Tree]:
    """
    Apply :meth:`Tree.contract_low_support` to every tree.

    A *min_confidence* of 0 or less leaves the trees untouched.
    """
    if min_confidence <= 0:
        return list(trees)
    out = [t.contract_low_support(min_confidence) for t in trees]
    changed = sum(1 for a, b in zip(trees, out) if a is not b)
    if changed:
        logger.info(
            "Contracted low-support edges (support < %g) in %d of %d tree(s)",
            min_confidence,
            changed,
            len(out),
        )
    return out


def mutual_refinement(trees: Sequence[Tree]) -> List[Tree]:
    """
    Refine every tree with the compatible clusters of the other trees.

    For each tree, the clusters of all other trees are restricted to its
    taxa.  Candidates are tried largest first (ties by sorted names) and
    added when compatible with the tree and with every candidate already
    accepted, so the result is again a tree.  Fully resolved trees are
    returned unchanged.

    Examples
    --------
    >>> a, b = mutual_refinement([Tree('((a,b),c,d);'), Tree('(((a,b),c),d);')])
    >>> sorted(map(sorted, a.clusters()))
    [['a', 'b'], ['a', 'b', 'c'], ['a', 'b', 'c', 'd']]
    """
    cluster_sets = [t.clusters() for t in trees]
    out: List[Tree] = []
    for i, tree in enumerate(trees):
        taxa = frozenset(tree.leaf_names)
        own = cluster_sets[i]
        candidates: Set[frozenset] = set()
        for j, other in enumerate(cluster_sets):
            if j == i:
                continue
            for cluster in other:
                restricted = cluster & taxa
                if 2 <= len(restricted) < len(taxa) and restricted not in own:
                    candidates.add(restricted)

        accepted: List[frozenset] = []
        for cluster in sorted(candidates, key=lambda c: (-len(c), sorted(c))):
            if all(compatible(cluster, c) for c in own) and all(
                compatible(cluster, c) for c in accepted
            ):
                accepted.append(cluster)
        out.append(tree.refine(accepted) if accepted else tree)

    changed = [i for i, (a, b) in enumerate(zip(trees, out)) if a is not b]
    if changed:
        logger.info(
            "Mutual refinement resolved %d of %d tree(s) (indices: %s)",
            len(changed),
            len(out),
            ", ".join(map(str, changed[:5])) + (", ..." if len(changed) > 5 else ""),
        )
    return out
