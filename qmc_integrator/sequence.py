"""Halton low-discrepancy sequence built from van der Corput radical inverses."""

from __future__ import annotations

from typing import Sequence

import numpy as np

from qmc_integrator.errors import InvalidConfiguration, Overflow

# Largest sample index the vectorised evaluator can hold (int64).
MAX_SAMPLE_INDEX = int(np.iinfo(np.int64).max)


def is_prime(n: int) -> bool:
    if n < 2:
        return False
    if n % 2 == 0:
        return n == 2
    k = 3
    while k * k <= n:
        if n % k == 0:
            return False
        k += 2
    return True


def check_base(base: int) -> None:
    """Raise InvalidConfiguration unless ``base`` is a prime."""
    if not is_prime(base):
        raise InvalidConfiguration(f"Sequence base must be a prime, got {base}")


def check_bases(bases: Sequence[int]) -> None:
    """Validate the per-dimension bases of a Halton point."""
    if len(bases) == 0:
        raise InvalidConfiguration("At least one sequence base is required")
    for base in bases:
        check_base(base)
    if len(set(bases)) != len(bases):
        raise InvalidConfiguration(f"Sequence bases must be distinct primes, got {list(bases)}")


def _check_index(index: int) -> None:
    if index < 0:
        raise ValueError(f"Sample index must be non-negative, got {index}")
    if index > MAX_SAMPLE_INDEX:
        raise Overflow(f"Sample index {index} exceeds {MAX_SAMPLE_INDEX}")


# ------------------------------------------------------------------
# Scalar form
# ------------------------------------------------------------------


def van_der_corput(index: int, base: int) -> float:
    """
    Radical inverse of ``index`` in radix ``base``.

    The base-``base`` digits of ``index`` are mirrored around the radix
    point: ``index = d0 + d1*b + d2*b^2 + ...`` maps to
    ``d0/b + d1/b^2 + d2/b^3 + ...``. The result lies in ``[0, 1)`` and
    ``index == 0`` maps to ``0.0``.

    Args:
        index: Non-negative sample index.
        base: Prime radix.
    """
    check_base(base)
    _check_index(index)

    value = 0.0
    denom = 1.0
    n = index
    while n > 0:
        denom *= base
        n, digit = divmod(n, base)
        value += digit / denom
    return value


def halton_point(index: int, bases: Sequence[int] = (2, 3)) -> tuple[float, ...]:
    """One point of the Halton sequence, one coordinate per base."""
    check_bases(bases)
    return tuple(van_der_corput(index, base) for base in bases)


# ------------------------------------------------------------------
# Vectorised form
# ------------------------------------------------------------------


def radical_inverse(indices: np.ndarray, base: int) -> np.ndarray:
    """
    Element-wise van der Corput radical inverse of an index array.

    Performs the same float operations in the same order as
    :func:`van_der_corput`, so every element is bit-identical to the
    scalar value for the same index.
    """
    check_base(base)
    raw = np.asarray(indices)
    if raw.size and int(raw.min()) < 0:
        raise ValueError("Sample indices must be non-negative")
    if raw.size and int(raw.max()) > MAX_SAMPLE_INDEX:
        raise Overflow(f"Sample index {raw.max()} exceeds {MAX_SAMPLE_INDEX}")
    n = np.array(raw, dtype=np.int64, copy=True)

    values = np.zeros(n.shape, dtype=np.float64)
    denom = 1.0
    while n.size and n.max() > 0:
        denom *= base
        n, digits = np.divmod(n, base)
        values += digits / denom
    return values


def halton_block(
    start_index: int,
    count: int,
    bases: Sequence[int] = (2, 3),
) -> np.ndarray:
    """
    Halton points for indices ``[start_index, start_index + count)``.

    Returns:
        Array of shape ``(count, len(bases))``.
    """
    check_bases(bases)
    if count < 0:
        raise ValueError(f"Block size must be non-negative, got {count}")
    _check_index(start_index)
    if count and start_index + count - 1 > MAX_SAMPLE_INDEX:
        raise Overflow(
            f"Index range [{start_index}, {start_index + count}) exceeds {MAX_SAMPLE_INDEX}"
        )

    indices = np.arange(start_index, start_index + count, dtype=np.int64)
    return np.column_stack([radical_inverse(indices, base) for base in bases])
