"""Fixed-size worker pool with collect-all, first-failure result gathering."""

from __future__ import annotations

import logging
import threading
import uuid
from concurrent.futures import (
    Executor,
    Future,
    ProcessPoolExecutor,
    ThreadPoolExecutor,
    wait as wait_for,
)
from typing import Any, Callable, Iterable, Sequence

from qmc_integrator.errors import InvalidConfiguration, WorkerFailure

logger = logging.getLogger(__name__)

POOL_KINDS = ("thread", "process")

# Identifies which pool (if any) owns the current worker thread.
_worker_state = threading.local()


def _mark_worker(token: str) -> None:
    _worker_state.pool_token = token


class BoundedWorkerPool:
    """
    Runs independent tasks on at most ``worker_count`` concurrent workers.

    Each pool is sized and named explicitly by its creator; there is no
    shared default pool. Tasks submitted to a pool must not share mutable
    state, so results do not depend on which worker runs which task.

    A task that waits on futures of the pool it runs in can starve the pool
    of workers. :meth:`gather` therefore refuses to block inside one of the
    pool's own workers unless the pool was built with a positive
    ``nested_reservation`` (see :mod:`qmc_integrator.admission` for the
    sizing rule that makes such a pool safe).
    """

    def __init__(
        self,
        worker_count: int,
        name: str = "qmc-pool",
        kind: str = "thread",
        nested_reservation: int = 0,
    ) -> None:
        """
        Args:
            worker_count: Maximum number of tasks running at once.
            name: Pool name, used as worker thread prefix and in logs.
            kind: ``"thread"`` or ``"process"``.
            nested_reservation: Workers set aside for nested sub-tasks
                submitted from inside this pool's own tasks.
        """
        if worker_count <= 0:
            raise InvalidConfiguration(f"worker_count must be positive, got {worker_count}")
        if kind not in POOL_KINDS:
            raise InvalidConfiguration(f"Unknown pool kind {kind!r}; expected one of {POOL_KINDS}")
        if not 0 <= nested_reservation < worker_count:
            raise InvalidConfiguration(
                f"nested_reservation must be in [0, {worker_count}), got {nested_reservation}"
            )
        if nested_reservation and kind != "thread":
            raise InvalidConfiguration("Only thread pools can run nested sub-tasks")

        self.worker_count = worker_count
        self.name = name
        self.kind = kind
        self.nested_reservation = nested_reservation
        self._token = f"{name}-{uuid.uuid4().hex}"
        self._executor: Executor = self._make_executor()
        self._closed = False

    def _make_executor(self) -> Executor:
        if self.kind == "thread":
            return ThreadPoolExecutor(
                max_workers=self.worker_count,
                thread_name_prefix=self.name,
                initializer=_mark_worker,
                initargs=(self._token,),
            )
        return ProcessPoolExecutor(max_workers=self.worker_count)

    def __repr__(self) -> str:
        return (
            f"BoundedWorkerPool(name={self.name!r}, kind={self.kind!r}, "
            f"worker_count={self.worker_count}, nested_reservation={self.nested_reservation})"
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def __enter__(self) -> "BoundedWorkerPool":
        return self

    def __exit__(self, exc_type: Any, *exc_info: Any) -> None:
        # On error (including a gather timeout) do not wait for running tasks.
        if exc_type is not None:
            self.shutdown(wait=False, cancel_pending=True)
        else:
            self.shutdown()

    def shutdown(self, wait: bool = True, cancel_pending: bool = False) -> None:
        """Release the workers. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        logger.debug("Shutting down pool %s", self.name)
        self._executor.shutdown(wait=wait, cancel_futures=cancel_pending)

    @property
    def closed(self) -> bool:
        return self._closed

    def owns_current_thread(self) -> bool:
        """True when called from one of this pool's worker threads."""
        return getattr(_worker_state, "pool_token", None) == self._token

    # ------------------------------------------------------------------
    # Submission and collection
    # ------------------------------------------------------------------

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        """Schedule ``fn(*args, **kwargs)``; never blocks the caller."""
        if self._closed:
            raise RuntimeError(f"Pool {self.name} has been shut down")
        return self._executor.submit(fn, *args, **kwargs)

    def gather(self, futures: Sequence[Future], timeout: float | None = None) -> list:
        """
        Wait for every future and return the results in submission order.

        All futures are drained before any failure is reported. If one or
        more tasks raised, the failure of the earliest submitted one is
        raised as :class:`WorkerFailure`; the others are logged.

        Args:
            futures: Futures returned by :meth:`submit`.
            timeout: Optional safeguard in seconds. On expiry the pending
                futures are cancelled and ``TimeoutError`` is raised.
        """
        if self.owns_current_thread() and self.nested_reservation == 0:
            raise InvalidConfiguration(
                f"Task running in pool {self.name} is waiting on the same pool; "
                "use a separate pool for nested work or reserve workers for it"
            )

        _, pending = wait_for(futures, timeout=timeout)
        if pending:
            for future in pending:
                future.cancel()
            raise TimeoutError(
                f"{len(pending)} of {len(futures)} tasks in pool {self.name} "
                f"did not finish within {timeout}s"
            )

        results = []
        first_failure: tuple[int, BaseException] | None = None
        for index, future in enumerate(futures):
            exc = future.exception()
            if exc is None:
                results.append(future.result())
                continue
            if first_failure is None:
                first_failure = (index, exc)
            else:
                logger.warning("Pool %s: task %d also failed: %r", self.name, index, exc)

        if first_failure is not None:
            index, exc = first_failure
            logger.error("Pool %s: task %d failed: %r", self.name, index, exc)
            raise WorkerFailure(index, exc) from exc
        return results

    def map(
        self,
        fn: Callable[[Any], Any],
        items: Iterable[Any],
        timeout: float | None = None,
    ) -> list:
        """Submit ``fn(item)`` for every item, then gather the results."""
        futures = [self.submit(fn, item) for item in items]
        logger.debug("Pool %s: dispatched %d tasks", self.name, len(futures))
        return self.gather(futures, timeout=timeout)
