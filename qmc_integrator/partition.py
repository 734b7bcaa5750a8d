"""Split a sample budget into equal, contiguous index ranges."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from qmc_integrator.errors import InvalidConfiguration, Overflow
from qmc_integrator.sequence import MAX_SAMPLE_INDEX

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Task:
    """A contiguous slice ``[start_index, start_index + count)`` of the index space."""

    start_index: int
    count: int

    @property
    def stop_index(self) -> int:
        return self.start_index + self.count


@dataclass(frozen=True)
class Partition:
    """Tasks of one run together with the sample total they actually cover."""

    tasks: tuple[Task, ...]
    requested_samples: int
    effective_samples: int

    @property
    def dropped_samples(self) -> int:
        """Samples lost to the remainder-drop policy."""
        return self.requested_samples - self.effective_samples

    @property
    def task_count(self) -> int:
        return len(self.tasks)

    @property
    def samples_per_task(self) -> int:
        return self.tasks[0].count


def partition(total_samples: int, task_count: int) -> Partition:
    """
    Split ``total_samples`` into ``task_count`` tasks of equal size.

    Every task gets ``total_samples // task_count`` samples and task ``i``
    starts at ``i * count``. The remainder ``total_samples % task_count`` is
    dropped rather than spread unevenly; the partition reports the effective
    total so error estimates can use the true sample count.

    Raises:
        InvalidConfiguration: non-positive counts, or more tasks than samples.
        Overflow: ``total_samples`` exceeds the representable index range.
    """
    if total_samples <= 0:
        raise InvalidConfiguration(f"total_samples must be positive, got {total_samples}")
    if task_count <= 0:
        raise InvalidConfiguration(f"task_count must be positive, got {task_count}")
    if total_samples > MAX_SAMPLE_INDEX:
        raise Overflow(f"total_samples {total_samples} exceeds {MAX_SAMPLE_INDEX}")

    per_task = total_samples // task_count
    if per_task == 0:
        raise InvalidConfiguration(
            f"task_count {task_count} exceeds total_samples {total_samples}; tasks would be empty"
        )

    tasks = tuple(Task(start_index=i * per_task, count=per_task) for i in range(task_count))
    result = Partition(
        tasks=tasks,
        requested_samples=total_samples,
        effective_samples=per_task * task_count,
    )

    if result.dropped_samples:
        logger.warning(
            "Dropping %d of %d samples (not divisible by %d tasks)",
            result.dropped_samples, total_samples, task_count,
        )
    logger.debug("Partitioned %d samples into %d tasks of %d", result.effective_samples, task_count, per_task)
    return result
