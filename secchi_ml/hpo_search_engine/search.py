"""
Grid-search driver.

Enumerates every combination of a parameter space, trains one model per
combination through an injected ``train_fn``, scores it on the evaluation set
through an injected ``eval_fn`` and keeps the combination with the lowest
score. A failing trial is recorded and skipped; it never aborts the search.
"""
import logging
import math
import threading
import time
from concurrent.futures.process import BrokenProcessPool
from dataclasses import dataclass
from typing import Any, Callable, Iterator, List, Mapping, Optional, Tuple, Union

import psutil
from joblib import Parallel, delayed

from secchi_ml.hpo_search_engine.grid import Combination, Constraint, ParameterSpace
from secchi_ml.utils.exceptions import AllTrialsFailedError, SearchCancelledError
from secchi_ml.utils import constants

logger = logging.getLogger(__name__)

TrainFn = Callable[[Combination, Any], Any]
EvalFn = Callable[[Any, Any], float]


@dataclass(frozen=True)
class TrialFailure:
    """Why a trial produced no score."""
    kind: str
    message: str
    error_type: str = ""


@dataclass(frozen=True)
class TrialResult:
    """Outcome of one train-then-evaluate cycle. ``score`` is None on failure."""
    index: int
    combination: Combination
    score: Optional[float]
    failure: Optional[TrialFailure] = None
    duration_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.failure is None

    @property
    def status(self) -> str:
        return constants.STATUS_OK if self.ok else constants.STATUS_FAILED


@dataclass(frozen=True)
class SearchOutcome:
    """
    Self-contained result of one search invocation.

    Unpacks as ``results, best = outcome``. ``best`` is None when every trial
    failed; use ``require_best()`` to turn that into an exception.
    """
    results: Tuple[TrialResult, ...]
    best: Optional[TrialResult]
    grid_size: int
    cancelled: bool = False

    def __iter__(self) -> Iterator:
        yield self.results
        yield self.best

    @property
    def status(self) -> str:
        if self.best is not None:
            return constants.OUTCOME_BEST_FOUND
        if not self.results:
            return constants.OUTCOME_NO_TRIALS
        return constants.OUTCOME_ALL_FAILED

    @property
    def failures(self) -> List[TrialResult]:
        return [r for r in self.results if not r.ok]

    @property
    def completed(self) -> bool:
        return not self.cancelled and len(self.results) == self.grid_size

    def require_best(self) -> TrialResult:
        if not self.results:
            raise SearchCancelledError(
                f"Search stopped before any of the {self.grid_size} combinations was tried."
            )
        if self.best is None:
            raise AllTrialsFailedError(
                f"No viable combination: all {len(self.results)} trials failed.",
                n_trials=len(self.results),
            )
        return self.best


class CancellationToken:
    """Shared flag checked between trials to stop a running search."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


def resolve_n_jobs(n_jobs: int = 1, max_workers: Optional[int] = None, inner_threads: int = 1) -> int:
    """
    Width of the outer worker pool.

    ``n_jobs=-1`` means every logical core, divided by the number of threads
    each training call uses internally. ``max_workers`` caps the result.
    """
    if n_jobs == 0 or n_jobs < -1:
        raise ValueError(f"n_jobs must be -1 or a positive integer, got {n_jobs}")
    if inner_threads < 1:
        raise ValueError(f"inner_threads must be >= 1, got {inner_threads}")

    if n_jobs == -1:
        cores = psutil.cpu_count(logical=True) or 1
        width = max(1, cores // inner_threads)
    else:
        width = n_jobs

    if max_workers is not None:
        width = min(width, max_workers)
    return max(1, width)


def select_best(results) -> Optional[TrialResult]:
    """Lowest score among successful trials; the earliest index wins ties."""
    best = None
    for result in sorted(results, key=lambda r: r.index):
        if not result.ok:
            continue
        if best is None or result.score < best.score:
            best = result
    return best


def run_trial(index: int, combination: Combination, space: ParameterSpace,
              train_fn: TrainFn, eval_fn: EvalFn, train_set, eval_set) -> TrialResult:
    """Run one trial, turning any failure into a recorded ``TrialFailure``."""
    start = time.time()

    try:
        broken = space.violations(combination)
    except Exception as e:
        return TrialResult(
            index, combination, None,
            TrialFailure(constants.FAILURE_CONSTRAINT, f"constraint check raised: {e}", type(e).__name__),
        )
    if broken:
        return TrialResult(
            index, combination, None,
            TrialFailure(constants.FAILURE_CONSTRAINT, f"violates constraint(s): {', '.join(broken)}"),
        )

    try:
        model = train_fn(combination, train_set)
    except Exception as e:
        return TrialResult(
            index, combination, None,
            TrialFailure(constants.FAILURE_TRAINING, str(e), type(e).__name__),
            time.time() - start,
        )

    try:
        raw = eval_fn(model, eval_set)
        score = float(raw)
        if not math.isfinite(score):
            raise ValueError(f"non-finite score {raw!r}")
    except Exception as e:
        return TrialResult(
            index, combination, None,
            TrialFailure(constants.FAILURE_EVALUATION, str(e), type(e).__name__),
            time.time() - start,
        )

    return TrialResult(index, combination, score, None, time.time() - start)


def search(grid: Union[ParameterSpace, Mapping[str, Any]],
           train_fn: TrainFn,
           eval_fn: EvalFn,
           train_set,
           eval_set,
           *,
           n_jobs: int = 1,
           max_workers: Optional[int] = None,
           inner_threads: int = 1,
           backend: Optional[str] = None,
           cancel_token: Optional[CancellationToken] = None,
           max_trials: Optional[int] = None,
           constraints: Optional[List[Constraint]] = None,
           log: Optional[logging.Logger] = None) -> SearchOutcome:
    """
    Exhaustive grid search.

    Args:
        grid: Parameter name -> candidate list (or typed domain), or a ready
            ``ParameterSpace``.
        train_fn: ``train_fn(combination, train_set) -> model``.
        eval_fn: ``eval_fn(model, eval_set) -> score``; lower is better.
        train_set, eval_set: Passed through untouched and shared read-only.
        n_jobs, max_workers, inner_threads: Worker pool sizing, see
            ``resolve_n_jobs``.
        backend: joblib backend name; None uses joblib's default.
        cancel_token: Checked between trials (between batches in parallel).
            Once it is set, a batch interrupted by Ctrl+C ends the search
            with the earlier batches kept.
        max_trials: Stop after this many combinations.
        constraints: Extra ``(name, predicate)`` pairs rejecting combinations
            before training.
        log: Logger for per-trial failures and the summary.

    Returns:
        SearchOutcome with results in grid order.

    Raises:
        EmptyGridError: The grid yields no combinations.
    """
    log = log or logger
    space = ParameterSpace.from_grid(grid, constraints)
    combinations = list(space)
    grid_size = len(combinations)

    budget_hit = False
    if max_trials is not None and grid_size > max_trials:
        log.warning(f"Grid has {grid_size} combinations; only the first {max_trials} will be tried.")
        combinations = combinations[:max_trials]
        budget_hit = True

    width = resolve_n_jobs(n_jobs, max_workers, inner_threads)
    log.info(f"Grid search over {grid_size} combinations ({len(space.domains)} parameters, {width} worker(s)).")

    results: List[TrialResult] = []
    cancelled = False

    if width == 1:
        for index, combination in enumerate(combinations):
            if cancel_token is not None and cancel_token.cancelled:
                cancelled = True
                break
            results.append(run_trial(index, combination, space, train_fn, eval_fn, train_set, eval_set))
    else:
        with Parallel(n_jobs=width, backend=backend) as parallel:
            for start in range(0, len(combinations), width):
                if cancel_token is not None and cancel_token.cancelled:
                    cancelled = True
                    break
                batch = combinations[start:start + width]
                try:
                    results.extend(parallel(
                        delayed(run_trial)(start + offset, combination, space,
                                           train_fn, eval_fn, train_set, eval_set)
                        for offset, combination in enumerate(batch)
                    ))
                except (KeyboardInterrupt, BrokenProcessPool):
                    # Ctrl+C reaches process workers too; the interrupted batch is lost.
                    if cancel_token is None or not cancel_token.cancelled:
                        raise
                    cancelled = True
                    break

    # Completion order never leaks into the output.
    results.sort(key=lambda r: r.index)

    for result in results:
        if not result.ok:
            log.warning(
                f"Trial {result.index} {result.combination.to_dict()} failed "
                f"({result.failure.kind}): {result.failure.message}"
            )

    best = select_best(results)
    stopped_early = cancelled or budget_hit
    if cancelled:
        log.warning(f"Search cancelled after {len(results)}/{grid_size} trials.")

    if not results:
        log.warning("No trials completed.")
    elif best is None:
        log.error(f"No viable combination: {len(results)} trial(s) run, all failed.")
    else:
        n_failed = sum(1 for r in results if not r.ok)
        log.info(
            f"Best combination {best.combination.to_dict()} with score {best.score:.6g} "
            f"({len(results) - n_failed}/{len(results)} trials succeeded)."
        )

    return SearchOutcome(tuple(results), best, grid_size, stopped_early)
