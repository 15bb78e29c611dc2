"""
_search.py
==========
Greedy depth-first search over taxon orderings.

The search fixes one ranking position at a time.  At position ``pos`` every
still-unranked taxon t is tried: the trial ordering puts t at ``pos`` and the
remaining taxa after it in ascending ID order, and the full
extract -> merge -> score pipeline is run on it.  The taxa with the lowest
score are fixed in turn and the search recurses.  Complete orderings are
offered to a shared :class:`ResultAccumulator` that keeps the best score and
at most ``max_results`` tied orderings.

Parallelism
-----------
Trial orderings of one position are independent and are evaluated on a
``concurrent.futures.ThreadPoolExecutor`` (fork-join per position).  The
results are reduced in candidate order, so the outcome does not depend on
completion order.  Only the accumulator is shared between positions; it is
guarded by a lock.

Budget guard
------------
With ``r`` orderings already retained when a position is entered, a tied
candidate beyond the first is kept only while ``r * (k + 1) < max_results``
where ``k`` is the number already kept.  This bounds the branching once the
accumulator starts to fill.
"""

import logging
import math
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from fusionet._backend import resolve_n_workers
from fusionet._logging import (
    log_position_summary,
    log_search_start,
    log_search_summary,
)
from fusionet._merge import Merger
from fusionet._progress import Progress
from fusionet._scoring import Evaluation, evaluate_ranking

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchState:
    """
    Search position: the fixed prefix of the ordering and the taxa still to
    be placed (ascending ID order).
    """

    order: Tuple[int, ...]
    remaining: Tuple[int, ...]

    @classmethod
    def initial(cls, n_taxa: int) -> "SearchState":
        return cls((), tuple(range(1, n_taxa + 1)))

    @property
    def pos(self) -> int:
        return len(self.order)

    @property
    def complete(self) -> bool:
        return not self.remaining

    def trial_order(self, taxon: int) -> Tuple[int, ...]:
        """Complete ordering with *taxon* at the current position."""
        rest = tuple(t for t in self.remaining if t != taxon)
        return self.order + (taxon,) + rest

    def fix(self, taxon: int) -> "SearchState":
        return SearchState(
            self.order + (taxon,),
            tuple(t for t in self.remaining if t != taxon),
        )


class ResultAccumulator:
    """
    Best score and retained complete orderings, shared by all branches.

    Keep-if-better-or-tied semantics: a strictly better score clears the
    retained set; an equal score is appended while below the cap.
    """

    def __init__(self, max_results: int) -> None:
        self.max_results = max_results
        self._lock = threading.Lock()
        self._best: float = math.inf
        self._results: List[Evaluation] = []

    @property
    def best_score(self) -> float:
        with self._lock:
            return self._best

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)

    def offer(self, evaluation: Evaluation) -> bool:
        """
        Record a complete ordering.

        Returns
        -------
        bool
            False once the cap is reached (the search should stop).
        """
        with self._lock:
            score = evaluation.score
            if not math.isinf(score):
                if score < self._best:
                    self._results.clear()
                    self._best = score
                if score == self._best and len(self._results) < self.max_results:
                    self._results.append(evaluation)
            return len(self._results) < self.max_results

    def results(self) -> List[Evaluation]:
        with self._lock:
            return list(self._results)


class OrderingSearch:
    """
    Depth-first ordering search over one forest.

    Parameters
    ----------
    forest : Forest
    max_results : int, default 1
        Cap on retained tied orderings.
    n_workers : int, default 0
        Thread-pool size; 0 uses every available CPU.
    progress : Progress, optional
        Receives one tick per evaluated trial ordering; cancellation is
        honored after each tick.
    merger : callable, optional
        Sequence merger; defaults to ``progressive_scs``.
    """

    def __init__(
        self,
        forest,
        max_results: int = 1,
        n_workers: int = 0,
        progress: Optional[Progress] = None,
        merger: Optional[Merger] = None,
    ) -> None:
        if isinstance(max_results, bool) or not isinstance(max_results, int):
            raise ValueError(f"max_results must be an int, got {max_results!r}")
        if max_results < 1:
            raise ValueError(f"max_results must be >= 1, got {max_results}")

        self.forest = forest
        self.max_results = max_results
        self.n_workers = resolve_n_workers(n_workers)
        self.progress = progress if progress is not None else Progress()
        self.merger = merger
        self.accumulator = ResultAccumulator(max_results)
        self.n_evaluations = 0
        self._executor: Optional[ThreadPoolExecutor] = None

    def run(self) -> List[Evaluation]:
        """
        Execute the search.

        Returns
        -------
        list of Evaluation
            Retained complete orderings, all with the same (best) score.
            Empty if no ordering could be scored.

        Raises
        ------
        SearchCancelled
            If the progress handle was cancelled.
        MalformedTreeError
            If a tree cannot be encoded.
        """
        n_taxa = self.forest.n_global_taxa
        log_search_start(self.forest.n_trees, n_taxa, self.max_results, self.n_workers)
        start = time.perf_counter()

        with ThreadPoolExecutor(
            max_workers=self.n_workers, thread_name_prefix="fusionet-search"
        ) as executor:
            self._executor = executor
            try:
                self._descend(SearchState.initial(n_taxa))
            finally:
                self._executor = None

        results = self.accumulator.results()
        log_search_summary(
            self.n_evaluations,
            len(results),
            self.accumulator.best_score,
            time.perf_counter() - start,
        )
        return results

    # ================================================================== #
    # Private methods                                                      #
    # ================================================================== #

    def _evaluate_candidates(self, state: SearchState) -> List[Evaluation]:
        """
        **Private.**  Evaluate every trial ordering of *state* in parallel.

        Returns evaluations in candidate (ascending taxon ID) order.
        """
        futures = {
            self._executor.submit(
                evaluate_ranking, self.forest, state.trial_order(t), self.merger
            ): t
            for t in state.remaining
        }
        evaluations: Dict[int, Evaluation] = {}
        try:
            for future in as_completed(futures):
                evaluations[futures[future]] = future.result()
                self.n_evaluations += 1
                self.progress.tick()
                self.progress.check_for_cancel()
        except BaseException:
            for future in futures:
                future.cancel()
            raise
        return [evaluations[t] for t in state.remaining]

    def _descend(self, state: SearchState) -> bool:
        """
        **Private.**  Process one search position.

        Returns False when the result cap has been reached and the whole
        search must stop.
        """
        self.progress.check_for_cancel()
        n_retained = len(self.accumulator)
        evaluations = self._evaluate_candidates(state)

        best = math.inf
        tied: List[Evaluation] = []
        for ev in evaluations:
            if math.isinf(ev.score):
                continue
            if ev.score < best:
                tied = []
                best = ev.score
            if ev.score == best and (
                not tied or n_retained * (len(tied) + 1) < self.max_results
            ):
                tied.append(ev)

        log_position_summary(state.pos, len(evaluations), best, len(tied))
        if not tied:
            return True

        for ev in tied:
            child = state.fix(ev.order[state.pos])
            if child.complete:
                assert sorted(ev.order) == list(
                    range(1, self.forest.n_global_taxa + 1)
                ), f"ordering {ev.order} is not a permutation of the taxa"
                if not self.accumulator.offer(ev):
                    return False
            elif best <= self.accumulator.best_score:
                if not self._descend(child):
                    return False
        return True
