import queue
import threading
import time

import pytest

from statelessdb.workers import (
    CannotStartPoolError,
    PoolClosedError,
    PoolState,
    WorkerFuncAlreadyInitializedError,
    WorkerPool,
)


def _noop(job):
    pass


def test_basic_functionality():
    pool = WorkerPool(10)
    processed = []
    lock = threading.Lock()
    done = threading.Semaphore(0)

    def handler(job):
        with lock:
            processed.append(job)
        done.release()

    pool.start(3, handler)
    for job in range(5):
        pool.publish(job)
    for _ in range(5):
        assert done.acquire(timeout=2)
    pool.stop()

    assert sorted(processed) == [0, 1, 2, 3, 4]
    assert pool.published_jobs == 5
    assert pool.started_jobs == 5
    assert pool.finished_jobs == 5
    assert str(pool) == "Pool(5/5/5)"
    assert pool.state is PoolState.STOPPED


def test_publish_after_stop():
    pool = WorkerPool(10)
    pool.start(1, _noop)
    pool.stop()
    with pytest.raises(PoolClosedError):
        pool.publish(1)


def test_publish_before_start_raises():
    pool = WorkerPool(10)
    with pytest.raises(PoolClosedError):
        pool.publish(1)
    with pytest.raises(PoolClosedError):
        pool.try_publish(1)


def test_context_cancel():
    context = threading.Event()
    pool = WorkerPool(10, context)

    def handler(job):
        time.sleep(0.1)

    pool.start(2, handler)
    for job in range(5):
        pool.publish(job)
    time.sleep(0.2)
    context.set()
    pool.stop()

    with pytest.raises(PoolClosedError):
        pool.publish(100)
    assert pool.state in (PoolState.STOPPED, PoolState.SHUTTING_DOWN)
    assert pool.finished_jobs <= 5


def test_context_cancel_stops_pool_without_explicit_stop():
    context = threading.Event()
    pool = WorkerPool(10, context)
    pool.start(2, _noop)
    context.set()
    deadline = time.monotonic() + 2
    while pool.state is not PoolState.STOPPED and time.monotonic() < deadline:
        time.sleep(0.01)
    assert pool.state is PoolState.STOPPED


def test_stop_waits_for_workers():
    pool = WorkerPool(10)
    job_started = threading.Event()
    job_finished = threading.Event()

    def handler(job):
        job_started.set()
        time.sleep(0.5)
        job_finished.set()

    pool.start(1, handler)
    pool.publish(1)
    assert job_started.wait(1)

    stop_done = threading.Event()

    def stopper():
        pool.stop()
        stop_done.set()

    threading.Thread(target=stopper, daemon=True).start()

    assert not stop_done.wait(0.1)
    assert job_finished.wait(1)
    assert stop_done.wait(1)
    assert pool.finished_jobs == 1


def test_try_publish():
    release = threading.Event()
    picked_up = queue.Queue()

    def handler(job):
        picked_up.put(job)
        release.wait()

    pool = WorkerPool(2)
    pool.start(1, handler)
    try:
        assert pool.try_publish(0) is True
        assert picked_up.get(timeout=1) == 0

        assert pool.try_publish(1) is True
        assert pool.try_publish(2) is True
        assert pool.try_publish(3) is False

        release.set()
        assert picked_up.get(timeout=1) == 1
        assert pool.try_publish(4) is True
    finally:
        release.set()
        pool.stop()
    assert pool.published_jobs == 4


def test_steal_work_success():
    processed = queue.Queue()

    def handler(job):
        time.sleep(0.2)
        processed.put(job)

    pool = WorkerPool(10)
    pool.start(1, handler)

    pool.publish(42)
    assert processed.get(timeout=1) == 42

    pool.publish(100)
    pool.publish(101)

    assert pool.try_steal_work() is True
    assert processed.get(timeout=1) in (100, 101)

    pool.stop()
    assert pool.finished_jobs == 3


def test_steal_work_pool_closed():
    pool = WorkerPool(10)
    pool.start(3, _noop)
    pool.stop()
    with pytest.raises(PoolClosedError):
        pool.try_steal_work()


def test_steal_work_no_jobs():
    pool = WorkerPool(10)
    pool.start(3, _noop)
    assert pool.try_steal_work() is False
    pool.stop()
    with pytest.raises(PoolClosedError):
        pool.try_steal_work()


def test_start_multiple_times():
    pool = WorkerPool(10)
    pool.start(3, _noop)
    with pytest.raises((CannotStartPoolError, WorkerFuncAlreadyInitializedError)):
        pool.start(3, _noop)
    pool.stop()
    assert pool.state is PoolState.STOPPED


def test_restart_after_stop_rejects_second_worker_function():
    pool = WorkerPool(10)
    pool.start(1, _noop)
    pool.stop()
    with pytest.raises(WorkerFuncAlreadyInitializedError):
        pool.start(1, _noop)
    assert pool.state is PoolState.STOPPED


def test_stop_on_unstarted_pool_is_noop():
    pool = WorkerPool(10)
    pool.stop()
    assert pool.state is PoolState.STOPPED


def test_stop_drains_queued_jobs():
    processed = []
    lock = threading.Lock()
    gate = threading.Event()

    def handler(job):
        gate.wait()
        with lock:
            processed.append(job)

    pool = WorkerPool(10)
    pool.start(1, handler)
    for job in range(4):
        pool.publish(job)
    gate.set()
    pool.stop()
    assert sorted(processed) == [0, 1, 2, 3]
    assert pool.published_jobs == 4
    assert pool.finished_jobs == 4
    assert str(pool) == "Pool(4/4/4)"


def test_failing_job_does_not_kill_worker():
    processed = queue.Queue()

    def handler(job):
        if job == 0:
            raise RuntimeError("boom")
        processed.put(job)

    pool = WorkerPool(10)
    pool.start(1, handler)
    pool.publish(0)
    pool.publish(1)
    assert processed.get(timeout=1) == 1
    pool.stop()
    assert pool.finished_jobs == 2


def test_pool_error_messages():
    assert str(PoolClosedError()) == "cannot publish job: pool is stopped"
    assert str(CannotStartPoolError()) == (
        "cannot start the pool: it is already running or shutting down"
    )
    assert str(WorkerFuncAlreadyInitializedError()) == "worker function was already initialized"