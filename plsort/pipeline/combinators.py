"""Small future combinators for the aggregation pipeline.

``gather_tolerant`` runs independent calls in parallel and joins them without
letting one failure (or a slow source) take the others down. Results are
only handed back to the calling thread, which stays the single owner of any
shared state.
"""
from __future__ import annotations
import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Executor, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Hashable, Iterable, Mapping, Tuple, TypeVar

from ..errors import LoadCancelled

logger = logging.getLogger(__name__)

T = TypeVar("T")
K = TypeVar("K", bound=Hashable)

POLL_INTERVAL = 0.05


@dataclass
class Outcome(Generic[T]):
    name: Any
    value: T | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class CancelToken:
    """Shared flag telling in-flight work that its results are no longer wanted."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise LoadCancelled("Playlist load abandoned")


def gather_tolerant(
    executor: Executor,
    tasks: Mapping[Any, Callable[[], Any]],
    timeout: float | None = None,
    cancel: CancelToken | None = None,
) -> Dict[Any, Outcome]:
    """Run ``tasks`` concurrently and collect one Outcome per task.

    A task that raises yields an Outcome carrying the exception; a task still
    running after ``timeout`` seconds yields a TimeoutError outcome and its
    eventual result is discarded.

    Raises:
        LoadCancelled: ``cancel`` was triggered while waiting
    """
    futures = {executor.submit(fn): name for name, fn in tasks.items()}
    pending = set(futures)
    deadline = time.monotonic() + timeout if timeout else None
    while pending:
        if cancel is not None and cancel.cancelled:
            for f in pending:
                f.cancel()
            raise LoadCancelled("Playlist load abandoned")
        wait_for: float | None = POLL_INTERVAL if cancel is not None else None
        if deadline is not None:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            wait_for = remaining if wait_for is None else min(wait_for, remaining)
        _, pending = wait(pending, timeout=wait_for, return_when=FIRST_COMPLETED)

    outcomes: Dict[Any, Outcome] = {}
    for future, name in futures.items():
        if future in pending:
            future.cancel()
            outcomes[name] = Outcome(name, error=TimeoutError(f"{name} did not finish within {timeout}s"))
            continue
        try:
            outcomes[name] = Outcome(name, value=future.result())
        except Exception as e:
            outcomes[name] = Outcome(name, error=e)
    if cancel is not None:
        cancel.raise_if_cancelled()
    return outcomes


def map_bounded(
    fn: Callable[[T], Any],
    items: Iterable[Tuple[K, T]],
    max_workers: int,
    cancel: CancelToken | None = None,
    timeout: float | None = None,
) -> Dict[K, Outcome]:
    """Apply ``fn`` to keyed items with at most ``max_workers`` calls in flight.

    Items not yet started when ``cancel`` fires are skipped and reported as
    LoadCancelled outcomes. Items still queued or running after ``timeout``
    seconds are reported as TimeoutError outcomes; finished items keep their
    results and queued ones never start.
    """
    stage = CancelToken()

    def _run(key: K, item: T) -> Any:
        if stage.cancelled or (cancel is not None and cancel.cancelled):
            raise LoadCancelled(f"skipped {key}")
        return fn(item)

    pool = ThreadPoolExecutor(max_workers=max(1, max_workers), thread_name_prefix="plsort-bounded")
    try:
        tasks = {key: (lambda k=key, i=item: _run(k, i)) for key, item in items}
        return gather_tolerant(pool, tasks, timeout=timeout)
    finally:
        stage.cancel()
        pool.shutdown(wait=False, cancel_futures=True)


__all__ = ["Outcome", "CancelToken", "gather_tolerant", "map_bounded"]
