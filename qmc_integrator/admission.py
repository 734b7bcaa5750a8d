"""
Admission control for nested fan-out.

An outer fan-out is often gated by a permit count (for example to cap
memory), while each outer task fans out again into sub-tasks and waits for
them. If the sub-tasks need workers that the waiting outer tasks occupy,
the run stops making progress. This module enforces the sizing rule that
rules that out by construction:

* nested work goes to a separate, independently sized pool, or
* when one pool serves both levels, it reserves workers for nested work and
  the outer permit count stays strictly below
  ``worker_count - max_nested_concurrency``.

Permits are taken in the submitting thread, before an outer task enters the
pool, so a task waiting for admission never holds a worker.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Callable

from qmc_integrator.errors import InvalidConfiguration
from qmc_integrator.pool import BoundedWorkerPool

logger = logging.getLogger(__name__)


def check_nesting(
    permits: int,
    outer_pool: BoundedWorkerPool,
    inner_pool: BoundedWorkerPool,
    max_nested_concurrency: int,
) -> None:
    """Raise InvalidConfiguration when the pools could starve each other."""
    if permits <= 0:
        raise InvalidConfiguration(f"permits must be positive, got {permits}")
    if max_nested_concurrency <= 0:
        raise InvalidConfiguration(
            f"max_nested_concurrency must be positive, got {max_nested_concurrency}"
        )
    if inner_pool is not outer_pool:
        return

    pool = outer_pool
    if pool.kind != "thread":
        raise InvalidConfiguration("A process pool cannot host its own nested sub-tasks")
    if pool.nested_reservation < max_nested_concurrency:
        raise InvalidConfiguration(
            f"Pool {pool.name} reserves {pool.nested_reservation} workers for nested work "
            f"but one outer task may run {max_nested_concurrency} sub-tasks"
        )
    if permits >= pool.worker_count - max_nested_concurrency:
        raise InvalidConfiguration(
            f"{permits} outer permits on shared pool {pool.name} "
            f"({pool.worker_count} workers) leave no room for "
            f"{max_nested_concurrency} nested sub-tasks"
        )


class AdmissionGuard:
    """Bounded-permit gate in front of an outer pool."""

    def __init__(
        self,
        permits: int,
        outer_pool: BoundedWorkerPool,
        inner_pool: BoundedWorkerPool,
        max_nested_concurrency: int | None = None,
    ) -> None:
        """
        Args:
            permits: Maximum number of outer tasks admitted at once.
            outer_pool: Pool running the outer tasks.
            inner_pool: Pool the outer tasks fan out into. May be the
                outer pool only under the shared-pool sizing rule.
            max_nested_concurrency: Sub-tasks one outer task can have running
                at once. Defaults to the inner pool's worker count.
        """
        if max_nested_concurrency is None:
            max_nested_concurrency = inner_pool.worker_count
        check_nesting(permits, outer_pool, inner_pool, max_nested_concurrency)

        self.permits = permits
        self.outer_pool = outer_pool
        self.inner_pool = inner_pool
        self.max_nested_concurrency = max_nested_concurrency
        self._semaphore = threading.BoundedSemaphore(permits)

    def submit(
        self,
        fn: Callable[..., Any],
        *args: Any,
        timeout: float | None = None,
        **kwargs: Any,
    ) -> Future:
        """
        Block until a permit is free, then submit ``fn`` to the outer pool.

        ``timeout`` bounds the wait for a permit and is not passed to ``fn``.

        Raises:
            TimeoutError: no permit became free within ``timeout`` seconds.
        """
        if not self._semaphore.acquire(timeout=timeout):
            raise TimeoutError(
                f"No admission permit freed within {timeout}s ({self.permits} permits)"
            )
        try:
            future = self.outer_pool.submit(fn, *args, **kwargs)
        except BaseException:
            self._semaphore.release()
            raise
        future.add_done_callback(lambda _: self._semaphore.release())
        return future


# ------------------------------------------------------------------
# Nested fan-out experiment
# ------------------------------------------------------------------


@dataclass(frozen=True)
class NestedFanOutReport:
    """Outcome of :func:`run_nested_fan_out`."""

    outer_completed: int
    inner_completed: int
    peak_outer_concurrency: int
    elapsed_time: float


class _ConcurrencyGauge:
    """Tracks the highest number of simultaneously active outer tasks."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.active = 0
        self.peak = 0

    def __enter__(self) -> "_ConcurrencyGauge":
        with self._lock:
            self.active += 1
            self.peak = max(self.peak, self.active)
        return self

    def __exit__(self, *exc_info: Any) -> None:
        with self._lock:
            self.active -= 1


def run_nested_fan_out(
    guard: AdmissionGuard,
    outer_tasks: int = 20,
    inner_tasks: int = 100,
    inner_delay: float = 0.001,
    timeout: float | None = None,
) -> NestedFanOutReport:
    """
    Run ``outer_tasks`` admitted tasks that each wait on ``inner_tasks`` sub-tasks.

    Every sub-task sleeps for ``inner_delay`` seconds. With a guard built
    under the nesting rule the run always completes.

    Args:
        guard: Admission gate holding the outer and inner pools.
        outer_tasks: Number of outer tasks.
        inner_tasks: Sub-tasks fanned out by each outer task.
        inner_delay: Simulated work per sub-task, in seconds.
        timeout: Optional safeguard applied to every wait.
    """
    if outer_tasks <= 0 or inner_tasks <= 0:
        raise InvalidConfiguration("outer_tasks and inner_tasks must be positive")
    if guard.outer_pool.kind != "thread":
        raise InvalidConfiguration("Nested fan-out needs a thread pool for the outer level")

    gauge = _ConcurrencyGauge()
    inner_pool = guard.inner_pool

    def outer(index: int) -> int:
        with gauge:
            logger.debug("Outer task %d admitted", index)
            futures = [inner_pool.submit(time.sleep, inner_delay) for _ in range(inner_tasks)]
            return len(inner_pool.gather(futures, timeout=timeout))

    start = time.perf_counter()
    futures = [guard.submit(outer, i, timeout=timeout) for i in range(outer_tasks)]
    completed = guard.outer_pool.gather(futures, timeout=timeout)
    elapsed = time.perf_counter() - start

    report = NestedFanOutReport(
        outer_completed=len(completed),
        inner_completed=sum(completed),
        peak_outer_concurrency=gauge.peak,
        elapsed_time=elapsed,
    )
    logger.info(
        "Nested fan-out finished: %d outer x %d inner in %.3fs (peak %d outer)",
        outer_tasks, inner_tasks, elapsed, gauge.peak,
    )
    return report
