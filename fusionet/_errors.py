"""
_errors.py
==========
Exception types raised by fusionet.

Each class subclasses the built-in type a caller would already catch, so
``except ValueError`` still sees a malformed tree.
"""

from typing import Optional, Sequence


class MalformedTreeError(ValueError):
    """
    A tree cannot be encoded into hypersequences.

    Raised when a leaf carries no taxon, a taxon occurs on two leaves of the
    same tree, or a taxon's chain is still open after the whole tree has
    been traversed.  Aborts the whole computation.

    Attributes
    ----------
    tree_index : int or None
        Index of the offending tree in its forest.
    taxa : tuple of str
        Names (or IDs, when names are unavailable) of the taxa involved.
    """

    def __init__(
        self,
        message: str,
        tree_index: Optional[int] = None,
        taxa: Sequence[str] = (),
    ) -> None:
        self.tree_index = tree_index
        self.taxa = tuple(taxa)
        if tree_index is not None:
            message = f"tree {tree_index}: {message}"
        if self.taxa:
            message = f"{message} (taxa: {', '.join(self.taxa)})"
        super().__init__(message)


class SearchCancelled(Exception):
    """The search was cancelled through its :class:`~fusionet.Progress`."""


class FusionError(RuntimeError):
    """No taxon ordering could be scored, so no network can be built."""
