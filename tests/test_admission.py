"""Tests for admission control around nested fan-out."""

import threading
import time

import pytest

from qmc_integrator.admission import AdmissionGuard, check_nesting, run_nested_fan_out
from qmc_integrator.errors import InvalidConfiguration, WorkerFailure
from qmc_integrator.pool import BoundedWorkerPool


def test_separate_pools_complete_within_budget():
    with BoundedWorkerPool(5, name="outer") as outer_pool, \
            BoundedWorkerPool(10, name="inner") as inner_pool:
        guard = AdmissionGuard(permits=5, outer_pool=outer_pool, inner_pool=inner_pool)
        report = run_nested_fan_out(guard, outer_tasks=20, inner_tasks=100, inner_delay=0.001, timeout=30)

    assert report.outer_completed == 20
    assert report.inner_completed == 2000
    assert 1 <= report.peak_outer_concurrency <= 5
    assert report.elapsed_time < 30


def test_permits_cap_outer_concurrency():
    with BoundedWorkerPool(8, name="outer") as outer_pool, \
            BoundedWorkerPool(4, name="inner") as inner_pool:
        guard = AdmissionGuard(permits=2, outer_pool=outer_pool, inner_pool=inner_pool)
        report = run_nested_fan_out(guard, outer_tasks=10, inner_tasks=10, inner_delay=0.002, timeout=30)

    assert report.peak_outer_concurrency <= 2
    assert report.inner_completed == 100


def test_shared_pool_with_reservation_completes():
    with BoundedWorkerPool(8, name="shared", nested_reservation=4) as pool:
        guard = AdmissionGuard(permits=3, outer_pool=pool, inner_pool=pool, max_nested_concurrency=4)
        report = run_nested_fan_out(guard, outer_tasks=20, inner_tasks=20, timeout=30)

    assert report.outer_completed == 20
    assert report.inner_completed == 400


def test_shared_pool_without_reservation_rejected():
    with BoundedWorkerPool(10, name="shared") as pool:
        with pytest.raises(InvalidConfiguration, match="reserves 0 workers"):
            AdmissionGuard(permits=5, outer_pool=pool, inner_pool=pool)


def test_shared_pool_too_many_permits_rejected():
    with BoundedWorkerPool(10, name="shared", nested_reservation=5) as pool:
        with pytest.raises(InvalidConfiguration, match="leave no room"):
            AdmissionGuard(permits=5, outer_pool=pool, inner_pool=pool, max_nested_concurrency=5)


def test_shared_process_pool_rejected():
    with BoundedWorkerPool(4, kind="process") as pool:
        with pytest.raises(InvalidConfiguration, match="process pool"):
            check_nesting(1, pool, pool, 1)


@pytest.mark.parametrize("permits, nested", [(0, 1), (1, 0)])
def test_non_positive_limits_rejected(permits, nested):
    with BoundedWorkerPool(2) as outer_pool, BoundedWorkerPool(2) as inner_pool:
        with pytest.raises(InvalidConfiguration):
            check_nesting(permits, outer_pool, inner_pool, nested)


def test_guard_blocks_submitter_until_permit_free():
    release = threading.Event()
    with BoundedWorkerPool(4, name="outer") as outer_pool, \
            BoundedWorkerPool(1, name="inner") as inner_pool:
        guard = AdmissionGuard(permits=1, outer_pool=outer_pool, inner_pool=inner_pool)
        first = guard.submit(release.wait, 5)

        submitted = threading.Event()

        def second_submitter():
            guard.submit(time.sleep, 0).result()
            submitted.set()

        thread = threading.Thread(target=second_submitter)
        thread.start()
        assert not submitted.wait(0.1)

        release.set()
        assert first.result(timeout=5) is True
        assert submitted.wait(5)
        thread.join(timeout=5)


def test_nested_demo_rejects_bad_counts():
    with BoundedWorkerPool(2) as outer_pool, BoundedWorkerPool(2) as inner_pool:
        guard = AdmissionGuard(permits=1, outer_pool=outer_pool, inner_pool=inner_pool)
        with pytest.raises(InvalidConfiguration):
            run_nested_fan_out(guard, outer_tasks=0)


def test_guard_submit_times_out_while_permit_held():
    release = threading.Event()
    with BoundedWorkerPool(2, name="outer") as outer_pool, \
            BoundedWorkerPool(1, name="inner") as inner_pool:
        guard = AdmissionGuard(permits=1, outer_pool=outer_pool, inner_pool=inner_pool)
        held = guard.submit(release.wait, 5)

        start = time.perf_counter()
        with pytest.raises(TimeoutError, match="permit"):
            guard.submit(time.sleep, 0, timeout=0.05)
        assert time.perf_counter() - start < 1.0

        release.set()
        assert held.result(timeout=5) is True
        assert guard.submit(time.sleep, 0, timeout=1).result(timeout=5) is None


def test_nested_fan_out_timeout_bounds_run():
    start = time.perf_counter()
    with pytest.raises((TimeoutError, WorkerFailure)):
        with BoundedWorkerPool(2, name="outer") as outer_pool, \
                BoundedWorkerPool(2, name="inner") as inner_pool:
            guard = AdmissionGuard(permits=1, outer_pool=outer_pool, inner_pool=inner_pool)
            run_nested_fan_out(guard, outer_tasks=3, inner_tasks=4, inner_delay=2.0, timeout=0.05)
    assert time.perf_counter() - start < 1.5
