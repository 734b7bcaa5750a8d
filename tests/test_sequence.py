"""Tests for the Halton sequence module."""

import subprocess
import sys

import numpy as np
import pytest

from qmc_integrator.errors import InvalidConfiguration, Overflow
from qmc_integrator.sequence import (
    MAX_SAMPLE_INDEX,
    halton_block,
    halton_point,
    is_prime,
    radical_inverse,
    van_der_corput,
)


def test_index_zero_is_zero():
    assert van_der_corput(0, 2) == 0.0
    assert van_der_corput(0, 3) == 0.0


def test_known_base_2_values():
    expected = [0.0, 0.5, 0.25, 0.75, 0.125, 0.625, 0.375, 0.875]
    assert [van_der_corput(i, 2) for i in range(8)] == expected


def test_known_base_3_values():
    values = [van_der_corput(i, 3) for i in range(1, 5)]
    np.testing.assert_allclose(values, [1 / 3, 2 / 3, 1 / 9, 4 / 9])


def test_values_in_unit_interval():
    for base in (2, 3, 5, 7):
        for i in range(500):
            assert 0.0 <= van_der_corput(i, base) < 1.0


def test_repeated_calls_identical():
    first = [van_der_corput(i, 3) for i in range(1000, 1100)]
    second = [van_der_corput(i, 3) for i in reversed(range(1000, 1100))][::-1]
    assert first == second


def test_identical_across_processes():
    code = "from qmc_integrator.sequence import van_der_corput; print(repr(van_der_corput(123456789, 3)))"
    out = subprocess.run([sys.executable, "-c", code], capture_output=True, text=True, check=True)
    assert float(out.stdout.strip()) == van_der_corput(123456789, 3)


def test_vectorised_matches_scalar_exactly():
    indices = np.arange(0, 5000, dtype=np.int64)
    for base in (2, 3, 5):
        vec = radical_inverse(indices, base)
        scalar = np.array([van_der_corput(int(i), base) for i in indices])
        np.testing.assert_array_equal(vec, scalar)


def test_vectorised_large_indices_match_scalar():
    indices = np.array([2**40 + 7, 3**30, MAX_SAMPLE_INDEX], dtype=np.int64)
    vec = radical_inverse(indices, 3)
    assert list(vec) == [van_der_corput(int(i), 3) for i in indices]


def test_halton_point_uses_each_base():
    assert halton_point(5, (2, 3)) == (van_der_corput(5, 2), van_der_corput(5, 3))


def test_halton_block_shape_and_offset():
    block = halton_block(100, 50, (2, 3))
    assert block.shape == (50, 2)
    assert block[0, 0] == van_der_corput(100, 2)
    assert block[-1, 1] == van_der_corput(149, 3)


def test_halton_block_empty():
    assert halton_block(10, 0).shape == (0, 2)


def test_is_prime():
    assert [n for n in range(20) if is_prime(n)] == [2, 3, 5, 7, 11, 13, 17, 19]


def test_non_prime_base_raises():
    with pytest.raises(InvalidConfiguration, match="prime"):
        van_der_corput(3, 4)


def test_duplicate_bases_raise():
    with pytest.raises(InvalidConfiguration, match="distinct"):
        halton_point(3, (3, 3))


def test_negative_index_raises():
    with pytest.raises(ValueError, match="non-negative"):
        van_der_corput(-1, 2)


def test_index_overflow_raises():
    with pytest.raises(Overflow):
        van_der_corput(MAX_SAMPLE_INDEX + 1, 2)
    with pytest.raises(Overflow):
        halton_block(MAX_SAMPLE_INDEX, 2)


def test_vectorised_index_overflow_raises():
    with pytest.raises(Overflow):
        radical_inverse(np.array([2**63], dtype=np.uint64), 2)
    with pytest.raises(Overflow):
        radical_inverse([2**70], 3)
