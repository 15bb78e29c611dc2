"""
_context.py
===========
Context managers for fusionet.

Provides context managers for temporarily changing state:
- Logging control (suppress/change levels)
- Worker-pool size (force a specific number of search workers)

All context managers restore state on exit, even if exceptions occur.
"""

import logging
from contextlib import contextmanager
from typing import Optional


# Module-level state for worker override
_workers_override = None


# ============================================================================ #
# Logging Context Managers
# ============================================================================ #


@contextmanager
def suppress_logger(logger_name: str, level: int = logging.CRITICAL):
    """
    Temporarily change a logger's level.

    Parameters
    ----------
    logger_name : str
        Name of the logger to suppress (e.g., 'fusionet._forest')
    level : int, default logging.CRITICAL
        Temporary logging level.

    Yields
    ------
    None
        Control is yielded back to the with-block.

    Examples
    --------
    >>> with suppress_logger('fusionet._forest'):
    ...     forest = Forest(newicks)

    >>> with suppress_logger('fusionet._search', logging.WARNING):
    ...     result = forest.fuse()

    Notes
    -----
    - Exception-safe: Logger level restored even if exception raised
    - Nesting-safe: Can nest multiple suppress_logger contexts
    """
    logger = logging.getLogger(logger_name)
    original_level = logger.level

    try:
        logger.setLevel(level)
        yield
    finally:
        logger.setLevel(original_level)


@contextmanager
def quiet(level: int = logging.CRITICAL):
    """
    Temporarily suppress all fusionet logging.

    Every module logs below the ``fusionet`` logger, so raising its level
    silences the whole package.

    Parameters
    ----------
    level : int, default logging.CRITICAL
        Temporary logging level.

    Examples
    --------
    >>> with quiet():
    ...     result = Forest(newicks).fuse()

    >>> with quiet(logging.WARNING):
    ...     forest = Forest(newicks)
    """
    with suppress_logger("fusionet", level):
        yield


# ============================================================================ #
# Worker Context Managers
# ============================================================================ #


@contextmanager
def use_workers(n_workers: int):
    """
    Temporarily force the number of search workers.

    Overrides the ``n_workers`` argument of :func:`fusionet.fuse` and
    :meth:`fusionet.Forest.fuse` inside the block.

    Parameters
    ----------
    n_workers : int
        Worker count; 0 means every available CPU.

    Raises
    ------
    ValueError
        If *n_workers* is not a non-negative int.

    Examples
    --------
    >>> with use_workers(1):
    ...     result = forest.fuse()   # sequential, easier to debug

    Notes
    -----
    **Not thread-safe**: uses module-level state.  Pass ``n_workers``
    directly to ``fuse()`` for a thread-safe alternative.
    """
    global _workers_override

    from ._backend import resolve_n_workers

    resolve_n_workers(n_workers)

    original_override = _workers_override

    try:
        _workers_override = n_workers
        yield
    finally:
        _workers_override = original_override


def get_workers_override() -> Optional[int]:
    """
    Get the current worker override, if any.

    Returns
    -------
    int or None
        Current override, or None if no override is active.

    Examples
    --------
    >>> get_workers_override()
    None

    >>> with use_workers(2):
    ...     print(get_workers_override())
    2
    """
    return _workers_override
