"""
_merge.py
=========
Sequence mergers: build one hypersequence that contains every input
hypersequence as a subsequence.

Any callable with the :data:`Merger` signature can be passed to the search.
Its output must be a supersequence (by component set equality) of every
input and should be as short as possible.  The default,
:func:`progressive_scs`, folds the inputs with an exact pairwise shortest
common supersequence; the fold order is fixed so results are reproducible.
"""

from typing import Callable, Sequence

import numpy as np

from fusionet._hypersequence import HyperSequence


Merger = Callable[[Sequence[HyperSequence]], HyperSequence]


def shortest_common_supersequence(a: HyperSequence, b: HyperSequence) -> HyperSequence:
    """
    Exact shortest common supersequence of two hypersequences.

    Two components match only when they are equal as sets.  Builds the
    suffix LCS table and walks it forward, preferring *a* on ties.

    Examples
    --------
    >>> a = HyperSequence.parse("2 : 3")
    >>> b = HyperSequence.parse("3 : 2")
    >>> str(shortest_common_supersequence(a, b))
    '2 : 3 : 2'
    """
    x = a.components
    y = b.components
    n = len(x)
    m = len(y)

    # lcs[i, j] = LCS length of x[i:] and y[j:]
    lcs = np.zeros((n + 1, m + 1), dtype=np.int32)
    for i in range(n - 1, -1, -1):
        for j in range(m - 1, -1, -1):
            if x[i] == y[j]:
                lcs[i, j] = lcs[i + 1, j + 1] + 1
            else:
                lcs[i, j] = max(lcs[i + 1, j], lcs[i, j + 1])

    out = []
    i = 0
    j = 0
    while i < n and j < m:
        if x[i] == y[j]:
            out.append(x[i])
            i += 1
            j += 1
        elif lcs[i + 1, j] >= lcs[i, j + 1]:
            out.append(x[i])
            i += 1
        else:
            out.append(y[j])
            j += 1
    out.extend(x[i:])
    out.extend(y[j:])
    return HyperSequence(out)


def progressive_scs(sequences: Sequence[HyperSequence]) -> HyperSequence:
    """
    Merge hypersequences by folding pairwise shortest common
    supersequences.

    Distinct inputs are sorted longest first (ties by components) and folded
    left to right; inputs already contained in the running result are
    skipped.  Not guaranteed minimal for three or more inputs.

    Parameters
    ----------
    sequences : sequence of HyperSequence

    Returns
    -------
    HyperSequence
        Empty for no input; the input itself for a single one.
    """
    distinct = sorted(set(sequences), key=HyperSequence.sort_key)
    if not distinct:
        return HyperSequence()
    merged = distinct[0]
    for seq in distinct[1:]:
        if seq.is_subsequence_of(merged):
            continue
        merged = shortest_common_supersequence(merged, seq)
    return merged
