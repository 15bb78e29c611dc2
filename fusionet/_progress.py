"""
_progress.py
============
Minimal progress and cooperative cancellation handle for the ordering
search.

The search calls :meth:`Progress.tick` once per evaluated candidate ordering
and then :meth:`Progress.check_for_cancel`.  Any thread may call
:meth:`Progress.cancel`; the search notices on its next check.
"""

import threading
from typing import Callable, Optional

from ._errors import SearchCancelled


class Progress:
    """
    Thread-safe work counter with a cancellation flag.

    Parameters
    ----------
    callback : callable, optional
        Called as ``callback(count)`` after every tick, on the thread that
        collects search results.  May call :meth:`cancel`.

    Examples
    --------
    >>> progress = Progress()
    >>> progress.tick()
    >>> progress.count
    1
    >>> progress.cancel()
    >>> progress.cancelled
    True
    """

    def __init__(self, callback: Optional[Callable[[int], None]] = None) -> None:
        self._callback = callback
        self._count = 0
        self._lock = threading.Lock()
        self._cancel_event = threading.Event()

    @property
    def count(self) -> int:
        """Number of completed units of work."""
        with self._lock:
            return self._count

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def tick(self, n: int = 1) -> None:
        """Record *n* completed units of work."""
        with self._lock:
            self._count += n
            count = self._count
        if self._callback is not None:
            self._callback(count)

    def cancel(self) -> None:
        """Request cancellation.  Idempotent."""
        self._cancel_event.set()

    def check_for_cancel(self) -> None:
        """
        Raise :class:`SearchCancelled` if cancellation was requested.

        Raises
        ------
        SearchCancelled
        """
        if self._cancel_event.is_set():
            raise SearchCancelled(
                f"Search cancelled after {self.count} evaluated ordering(s)"
            )
