"""Fold per-task partial counts into a single integration estimate."""

from __future__ import annotations

import math
from dataclasses import dataclass
from functools import reduce
from typing import Callable, Iterable


@dataclass(frozen=True)
class PartialResult:
    """Outcome of evaluating one task: hits inside the region out of all samples."""

    inside_count: int
    sample_count: int

    def __post_init__(self) -> None:
        if self.inside_count < 0:
            raise ValueError(f"inside_count must be non-negative, got {self.inside_count}")
        if self.sample_count <= 0:
            raise ValueError(f"sample_count must be positive, got {self.sample_count}")
        if self.inside_count > self.sample_count:
            raise ValueError("inside_count cannot exceed sample_count")

    def merge(self, other: "PartialResult") -> "PartialResult":
        """Field-wise sum; exact, associative and commutative."""
        return PartialResult(
            inside_count=self.inside_count + other.inside_count,
            sample_count=self.sample_count + other.sample_count,
        )


def theoretical_error_order(n: int) -> float:
    """Quasi-Monte-Carlo error order ``(log n)^2 / n`` for 2-D Halton points."""
    return math.log(n) ** 2 / n


@dataclass(frozen=True)
class AggregateResult:
    """Final estimate of one run."""

    estimate: float
    total_samples: int      # effective, after the remainder-drop policy
    elapsed_time: float     # seconds, diagnostic only
    reference: float | None = None

    @property
    def absolute_error(self) -> float | None:
        """Distance to the reference value, when one is known."""
        if self.reference is None:
            return None
        return abs(self.estimate - self.reference)

    @property
    def theoretical_error_order(self) -> float:
        return theoretical_error_order(self.total_samples)


def pi_from_counts(inside_count: int, sample_count: int) -> float:
    """Area of the unit disc inside ``[-1, 1)^2``: ``4 * inside / total``."""
    return 4.0 * inside_count / sample_count


class ResultAggregator:
    """Combine partial results in any order into an :class:`AggregateResult`."""

    def __init__(
        self,
        combine: Callable[[int, int], float] = pi_from_counts,
        reference: float | None = math.pi,
    ) -> None:
        """
        Args:
            combine: Maps the summed ``(inside_count, sample_count)`` to the
                estimate. Applied once, after all counts are summed.
            reference: Exact value used to report the empirical error.
        """
        self.combine = combine
        self.reference = reference

    def fold(
        self,
        partials: Iterable[PartialResult],
        elapsed_time: float = 0.0,
    ) -> AggregateResult:
        """
        Sum the partial counts and apply the combination rule.

        Counts are integers, so any ordering or grouping of the partials
        gives a bit-identical estimate.
        """
        partials = list(partials)
        if not partials:
            raise ValueError("Cannot aggregate an empty set of partial results")

        total = reduce(PartialResult.merge, partials)
        return AggregateResult(
            estimate=self.combine(total.inside_count, total.sample_count),
            total_samples=total.sample_count,
            elapsed_time=elapsed_time,
            reference=self.reference,
        )
