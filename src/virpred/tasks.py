"""Scoped worker pools for the data-parallel phases.

A :class:`TaskGroup` owns one executor for the lifetime of a ``with``
block. Results come back in submission order once every task has
finished. The first failing task cancels whatever has not started yet and
its exception is re-raised; the executor is shut down either way.

Example::

    with TaskGroup(max_workers=4) as group:
        results = group.map(score_chunk, chunks)
"""

import logging
from concurrent.futures import Executor, Future, ProcessPoolExecutor, ThreadPoolExecutor
from typing import Callable, Iterable, List, Optional, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

_EXECUTORS = {
    "thread": ThreadPoolExecutor,
    "process": ProcessPoolExecutor,
}


class TaskGroup:
    """Run independent tasks on a pool that is torn down when the block exits.

    Args:
        max_workers: Pool size. With 1 or fewer, tasks run inline in the
            calling thread and no executor is created.
        kind: ``"thread"`` or ``"process"``.
        name: Label used in log messages.
    """

    def __init__(self, max_workers: int = 1, kind: str = "thread", name: str = "tasks"):
        if kind not in _EXECUTORS:
            raise ValueError(f"Unknown executor kind: {kind!r}")
        self.max_workers = max(1, int(max_workers))
        self.kind = kind
        self.name = name
        self._executor: Optional[Executor] = None
        self._futures: List[Future] = []

    def __enter__(self) -> "TaskGroup":
        if self.max_workers > 1:
            self._executor = _EXECUTORS[self.kind](max_workers=self.max_workers)
            logger.debug(f"[{self.name}] started {self.kind} pool with {self.max_workers} workers")
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._shutdown(cancel=exc_type is not None)

    def map(self, fn: Callable[[T], R], items: Iterable[T]) -> List[R]:
        """Apply ``fn`` to every item and return the results in order."""
        items = list(items)
        if self._executor is None:
            return [fn(item) for item in items]

        futures = [self._executor.submit(fn, item) for item in items]
        self._futures.extend(futures)
        return self._gather(futures)

    def _gather(self, futures: Sequence[Future]) -> List[R]:
        results: List[R] = []
        for i, future in enumerate(futures):
            try:
                results.append(future.result())
            except BaseException:
                cancelled = sum(f.cancel() for f in futures[i + 1:])
                logger.debug(f"[{self.name}] task {i} failed; cancelled {cancelled} pending tasks")
                raise
        return results

    def _shutdown(self, cancel: bool) -> None:
        if self._executor is None:
            return
        if cancel:
            for future in self._futures:
                future.cancel()
        self._executor.shutdown(wait=True)
        self._executor = None
        self._futures = []
        logger.debug(f"[{self.name}] pool shut down")
