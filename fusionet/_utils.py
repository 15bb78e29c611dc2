"""
_utils.py
=========
General-purpose helpers for fusionet.

Taxon sets are stored as plain Python ints used as bitsets: bit ``gid`` is
set when taxon ``gid`` is a member.  Global IDs start at 1, so bit 0 is never
set in a valid component.  These functions do not depend on the main classes.
"""

from typing import Iterable, Iterator, Sequence

import numpy as np


def bitmask(taxa: Iterable[int]) -> int:
    """
    Build a taxon bitset from an iterable of global IDs.

    Examples
    --------
    >>> bitmask([1, 3])
    10
    >>> bitmask([])
    0
    """
    mask = 0
    for t in taxa:
        mask |= 1 << int(t)
    return mask


def iter_members(mask: int) -> Iterator[int]:
    """
    Yield the global IDs set in *mask* in ascending order.

    Examples
    --------
    >>> list(iter_members(0b10110))
    [1, 2, 4]
    """
    while mask:
        low = mask & -mask
        yield low.bit_length() - 1
        mask ^= low


def popcount(mask: int) -> int:
    """Number of taxa in *mask*."""
    return mask.bit_count()


def ranking_from_order(order: Sequence[int], n_taxa: int) -> np.ndarray:
    """
    Convert a taxon ordering into a rank lookup array.

    Parameters
    ----------
    order : sequence of int
        Global IDs; position 0 receives rank 1.
    n_taxa : int
        Size of the taxon universe N.  *order* must be a permutation of
        1..N.

    Returns
    -------
    np.ndarray
        int64 array of length N + 1 with ``rank[gid]`` in 1..N and
        ``rank[0] == 0``.

    Raises
    ------
    ValueError
        If *order* is not a permutation of 1..N.

    Examples
    --------
    >>> ranking_from_order([2, 3, 1], 3).tolist()
    [0, 3, 1, 2]
    """
    if len(order) != n_taxa or sorted(int(t) for t in order) != list(
        range(1, n_taxa + 1)
    ):
        raise ValueError(
            f"Ordering must be a permutation of taxon IDs 1..{n_taxa}; "
            f"got {list(order)}"
        )
    rank = np.zeros(n_taxa + 1, dtype=np.int64)
    for position, t in enumerate(order):
        rank[int(t)] = position + 1
    return rank


def format_newick(newick: str) -> str:
    """
    Format a NEWICK string for consistent representation.

    Ensures the NEWICK string:
    - Ends with a semicolon
    - Has no leading/trailing whitespace

    Examples
    --------
    >>> format_newick('((A:1,B:1):1,(C:1,D:1):1)')
    '((A:1,B:1):1,(C:1,D:1):1);'

    >>> format_newick('  ((A:1,B:1):1);  ')
    '((A:1,B:1):1);'
    """
    newick = newick.strip()
    if not newick.endswith(";"):
        newick += ";"
    return newick
