"""
_scoring.py
===========
Hybridization number of a taxon ranking.

For a ranking whose merged hypersequences are H_1..H_N the score is

    h = sum_t |H_t| - (N - 1)

where |H| counts taxa over all components with repetition.  A forest of
identical trees scores 0 under every ranking.
"""

import logging
import math
from typing import Dict, Mapping, NamedTuple, Optional, Sequence, Tuple, Union

from fusionet._hypersequence import HyperSequence, compute_hypersequences
from fusionet._merge import Merger, progressive_scs
from fusionet._utils import ranking_from_order

logger = logging.getLogger(__name__)


class Evaluation(NamedTuple):
    """One fully evaluated taxon ordering."""

    order: Tuple[int, ...]
    score: Union[int, float]  # math.inf when the ordering could not be scored
    merged: Dict[int, HyperSequence]


def hybridization_number(n_taxa: int, merged: Mapping[int, HyperSequence]) -> int:
    """
    Score merged hypersequences.

    Parameters
    ----------
    n_taxa : int
        Size of the taxon universe N.
    merged : mapping gid -> HyperSequence

    Examples
    --------
    >>> hybridization_number(3, {1: HyperSequence.parse("2 : 3 : 2")})
    1
    """
    total = sum(seq.cardinality() for seq in merged.values())
    return total - (n_taxa - 1)


def validate_merged(
    merged: HyperSequence, inputs: Sequence[HyperSequence], taxa_mask: int
) -> None:
    """
    Check a merger's output before it is scored.

    Raises
    ------
    ValueError
        If *merged* names taxa outside *taxa_mask*.
    """
    foreign = merged.taxa() & ~taxa_mask
    if foreign:
        raise ValueError(
            f"Merged hypersequence {merged} contains taxa outside the forest"
        )
    assert all(
        seq.is_subsequence_of(merged) for seq in inputs
    ), f"merger output {merged} is not a supersequence of its inputs"


def evaluate_ranking(
    forest, order: Sequence[int], merger: Optional[Merger] = None
) -> Evaluation:
    """
    Run extraction, merging and scoring for one complete ordering.

    Parameters
    ----------
    forest : Forest
    order : sequence of int
        Permutation of the forest's global IDs; position 0 has rank 1.
    merger : callable, optional
        Defaults to :func:`~fusionet._merge.progressive_scs`.

    Returns
    -------
    Evaluation
        ``score`` is ``math.inf`` (and ``merged`` empty) if the merger
        raised or returned something other than a HyperSequence; the
        failure is logged.

    Raises
    ------
    MalformedTreeError
        If a tree cannot be encoded.
    ValueError
        If *order* is not a permutation of the taxon IDs, or the merger
        returned taxa outside the forest.
    """
    if merger is None:
        merger = progressive_scs
    order = tuple(int(t) for t in order)
    n_taxa = forest.n_global_taxa
    taxon_rank = ranking_from_order(order, n_taxa)

    per_taxon = compute_hypersequences(forest, taxon_rank)

    merged: Dict[int, HyperSequence] = {}
    for t, seqs in per_taxon.items():
        inputs = sorted(seqs, key=HyperSequence.sort_key)
        try:
            result = merger(inputs)
        except Exception:
            logger.warning(
                "Merging failed for taxon %s under ordering %s; "
                "treating the ordering as infinite cost",
                forest.taxon_names[t],
                order,
                exc_info=True,
            )
            return Evaluation(order, math.inf, {})
        if not isinstance(result, HyperSequence):
            logger.warning(
                "Merger returned %s for taxon %s under ordering %s; "
                "treating the ordering as infinite cost",
                type(result).__name__,
                forest.taxon_names[t],
                order,
            )
            return Evaluation(order, math.inf, {})
        validate_merged(result, inputs, forest.taxa_mask)
        merged[t] = result

    return Evaluation(order, hybridization_number(n_taxa, merged), merged)
