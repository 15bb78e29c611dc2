"""
_backend.py
===========
Worker-pool sizing and environment reporting for fusionet.

Candidate orderings are evaluated on a ``concurrent.futures`` thread pool.
This module decides how many workers that pool gets and reports the library
versions in use.

Functions in this module have NO side effects - they only query system state.
Logging is done by the calling code, not here.
"""

import os
import platform


# ============================================================================ #
# Worker Detection (No Side Effects)
# ============================================================================ #


def available_cpu_count() -> int:
    """
    Number of CPUs visible to this process (at least 1).

    Uses the scheduler affinity mask where the platform exposes one.
    """
    try:
        return max(1, len(os.sched_getaffinity(0)))
    except AttributeError:
        return os.cpu_count() or 1


def resolve_n_workers(n_workers: int) -> int:
    """
    Turn a user-facing worker count into a concrete pool size.

    Parameters
    ----------
    n_workers : int
        0 selects every available CPU; any positive value is used as is.

    Returns
    -------
    int
        Pool size >= 1.

    Raises
    ------
    ValueError
        If *n_workers* is negative or not an integer.

    Examples
    --------
    >>> resolve_n_workers(3)
    3
    >>> resolve_n_workers(0) == available_cpu_count()
    True
    """
    if isinstance(n_workers, bool) or not isinstance(n_workers, int):
        raise ValueError(
            f"n_workers must be a non-negative int, got {n_workers!r}"
        )
    if n_workers < 0:
        raise ValueError(f"n_workers must be >= 0, got {n_workers}")
    if n_workers == 0:
        return available_cpu_count()
    return n_workers


# ============================================================================ #
# Module-Level State Query (Read-Only)
# ============================================================================ #


def get_backend_info() -> dict:
    """
    Get environment information relevant to a search run.

    Returns
    -------
    dict
        Dictionary with keys:
        - 'cpu_count': int
        - 'default_workers': int
        - 'machine': str
        - 'system': str
        - 'python_version': str
        - 'numpy_version': str
        - 'networkx_version': str

    Examples
    --------
    >>> info = get_backend_info()
    >>> info['default_workers'] >= 1
    True
    """
    import networkx
    import numpy

    cpu_count = available_cpu_count()
    return {
        "cpu_count": cpu_count,
        "default_workers": resolve_n_workers(0),
        "machine": platform.machine(),
        "system": platform.system(),
        "python_version": platform.python_version(),
        "numpy_version": numpy.__version__,
        "networkx_version": networkx.__version__,
    }
