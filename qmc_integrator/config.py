"""
Run configuration for the quasi-Monte-Carlo integrator.
"""

from __future__ import annotations

from dataclasses import dataclass

from qmc_integrator.errors import InvalidConfiguration
from qmc_integrator.pool import POOL_KINDS
from qmc_integrator.sequence import check_bases


@dataclass(frozen=True)
class IntegrationConfig:
    """Everything one integration run needs; passed explicitly, never global."""

    # Sample budget and its split
    total_samples: int = 2_000_000
    task_count: int = 20

    # Worker budget
    worker_count: int = 8
    executor: str = "thread"  # "thread" or "process"

    # Halton bases, one per dimension
    base_x: int = 2
    base_y: int = 3

    # Indices evaluated per vectorised block inside a task
    block_size: int = 65_536

    # Operational safeguard (seconds); does not affect the estimate
    timeout: float | None = None

    @property
    def bases(self) -> tuple[int, int]:
        return (self.base_x, self.base_y)

    def validate(self) -> "IntegrationConfig":
        """Raise InvalidConfiguration for any out-of-range value."""
        for field_name in ("total_samples", "task_count", "worker_count", "block_size"):
            value = getattr(self, field_name)
            if value <= 0:
                raise InvalidConfiguration(f"{field_name} must be positive, got {value}")
        if self.executor not in POOL_KINDS:
            raise InvalidConfiguration(
                f"Unknown executor {self.executor!r}; expected one of {POOL_KINDS}"
            )
        if self.timeout is not None and self.timeout <= 0:
            raise InvalidConfiguration(f"timeout must be positive, got {self.timeout}")
        check_bases(self.bases)
        return self
