"""Parallel quasi-Monte-Carlo integration of the unit disc."""

from __future__ import annotations

import logging
import math
import time
from dataclasses import replace
from functools import partial
from typing import Sequence

import numpy as np
import pandas as pd

from qmc_integrator.aggregator import AggregateResult, PartialResult, ResultAggregator
from qmc_integrator.config import IntegrationConfig
from qmc_integrator.partition import Task, partition
from qmc_integrator.pool import BoundedWorkerPool
from qmc_integrator.sequence import halton_block

logger = logging.getLogger(__name__)


def count_points_inside(
    task: Task,
    base_x: int = 2,
    base_y: int = 3,
    block_size: int = 65_536,
) -> PartialResult:
    """
    Count Halton points of ``task`` that fall inside the unit disc.

    Each index maps to ``x = 2 * (h_x - 0.5)``, ``y = 2 * (h_y - 0.5)`` in
    ``[-1, 1)^2``; a point counts when ``x^2 + y^2 < 1``. Indices are
    evaluated in blocks of ``block_size`` to bound memory.
    """
    inside = 0
    for start in range(task.start_index, task.stop_index, block_size):
        count = min(block_size, task.stop_index - start)
        points = halton_block(start, count, (base_x, base_y))
        x = 2.0 * (points[:, 0] - 0.5)
        y = 2.0 * (points[:, 1] - 0.5)
        inside += int(np.count_nonzero(x * x + y * y < 1.0))
    return PartialResult(inside_count=inside, sample_count=task.count)


class QuasiMonteCarloIntegrator:
    """Estimate pi from 2-D Halton points spread over a bounded worker pool."""

    def __init__(
        self,
        config: IntegrationConfig | None = None,
        aggregator: ResultAggregator | None = None,
    ) -> None:
        """
        Args:
            config: Run configuration; validated on construction.
            aggregator: Combination rule for the partial counts.
        """
        self.config = (config or IntegrationConfig()).validate()
        self.aggregator = aggregator or ResultAggregator()

    # ------------------------------------------------------------------
    # Core run
    # ------------------------------------------------------------------

    def run(self) -> AggregateResult:
        """
        Partition, dispatch, gather and fold.

        Steps:
            1. Split the sample budget into equal contiguous tasks.
            2. Submit every task to a fresh pool of ``worker_count`` workers.
            3. Wait for all tasks; the first failure is raised after the rest finish.
            4. Sum the partial counts into the final estimate.
        """
        cfg = self.config
        plan = partition(cfg.total_samples, cfg.task_count)
        evaluate = partial(
            count_points_inside,
            base_x=cfg.base_x,
            base_y=cfg.base_y,
            block_size=cfg.block_size,
        )

        logger.info(
            "Integrating %d samples in %d tasks on %d %s workers (bases %d, %d)",
            plan.effective_samples, plan.task_count, cfg.worker_count,
            cfg.executor, cfg.base_x, cfg.base_y,
        )

        start = time.perf_counter()
        with BoundedWorkerPool(cfg.worker_count, name="qmc-integrate", kind=cfg.executor) as pool:
            partials = pool.map(evaluate, plan.tasks, timeout=cfg.timeout)
        elapsed = time.perf_counter() - start

        result = self.aggregator.fold(partials, elapsed_time=elapsed)
        logger.info("Estimate %.10f from %d samples in %.3fs", result.estimate, result.total_samples, elapsed)
        return result


def estimate_pi(
    total_samples: int,
    task_count: int = 20,
    worker_count: int = 8,
    base_x: int = 2,
    base_y: int = 3,
) -> AggregateResult:
    """Shortcut for a single run with default executor settings."""
    config = IntegrationConfig(
        total_samples=total_samples,
        task_count=task_count,
        worker_count=worker_count,
        base_x=base_x,
        base_y=base_y,
    )
    return QuasiMonteCarloIntegrator(config).run()


def convergence_study(
    sample_sizes: Sequence[int] = (10_000, 100_000, 1_000_000, 10_000_000),
    config: IntegrationConfig | None = None,
) -> pd.DataFrame:
    """
    Run the integrator for each sample size and tabulate the error.

    Args:
        sample_sizes: Requested sample totals, typically growing geometrically.
        config: Template for every other setting; ``total_samples`` is replaced.

    Returns:
        DataFrame with one row per size and columns ``samples``,
        ``effective_samples``, ``estimate``, ``abs_error``,
        ``theoretical_order`` and ``elapsed_time``.
    """
    template = config or IntegrationConfig()
    rows = []
    for n in sample_sizes:
        cfg = replace(template, total_samples=n)
        result = QuasiMonteCarloIntegrator(cfg).run()
        rows.append({
            "samples": n,
            "effective_samples": result.total_samples,
            "estimate": result.estimate,
            "abs_error": abs(result.estimate - math.pi),
            "theoretical_order": result.theoretical_error_order,
            "elapsed_time": result.elapsed_time,
        })
    return pd.DataFrame(rows)
