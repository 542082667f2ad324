"""A pool of worker threads that process published jobs."""

from __future__ import annotations

import enum
import math
import threading
import time
from collections import deque
from typing import Any, Callable, Deque, Generic, List, Optional, Tuple, TypeVar

from .logs import new_logger
from .states import new_time_now

T = TypeVar("T")

_log = new_logger("workers").with_depth(16)

STATUS_UPDATE_INTERVAL = 5.0  # seconds between status reports while the pool runs
_CONTEXT_POLL_INTERVAL = 0.02


class PoolError(Exception):
    """Base class for worker pool failures."""


class PoolClosedError(PoolError):
    """A job cannot be handed to a pool that is not running."""

    def __init__(self) -> None:
        super().__init__("cannot publish job: pool is stopped")


class CannotStartPoolError(PoolError):
    """The pool is already running or shutting down."""

    def __init__(self) -> None:
        super().__init__("cannot start the pool: it is already running or shutting down")


class CannotStopPoolError(PoolError):
    """The pool is in no state from which it can be stopped."""

    def __init__(self) -> None:
        super().__init__("cannot stop the pool: it is not running")


class WorkerFuncAlreadyInitializedError(PoolError):
    """The pool was already given a worker function."""

    def __init__(self) -> None:
        super().__init__("worker function was already initialized")


class PoolState(enum.IntEnum):
    """Lifecycle of a worker pool."""

    STOPPED = 0
    RUNNING = 1
    SHUTTING_DOWN = 2


class _Recv(enum.Enum):
    ITEM = enum.auto()
    EMPTY = enum.auto()
    CLOSED = enum.auto()
    CANCELLED = enum.auto()


class _Channel(Generic[T]):
    """A bounded job queue that can be closed (drained) or cancelled (abandoned)."""

    def __init__(self, capacity: int) -> None:
        self._capacity = max(capacity, 1)
        self._items: Deque[T] = deque()
        self._cond = threading.Condition()
        self._closed = False
        self._cancelled = False

    def send(self, item: T, block: bool) -> bool:
        with self._cond:
            while True:
                if self._closed or self._cancelled:
                    raise PoolClosedError()
                if len(self._items) < self._capacity:
                    self._items.append(item)
                    self._cond.notify_all()
                    return True
                if not block:
                    return False
                self._cond.wait()

    def receive(self, block: bool, honour_cancel: bool) -> Tuple[_Recv, Optional[T]]:
        with self._cond:
            while True:
                if honour_cancel and self._cancelled:
                    return _Recv.CANCELLED, None
                if self._items:
                    item = self._items.popleft()
                    self._cond.notify_all()
                    return _Recv.ITEM, item
                if self._closed:
                    return _Recv.CLOSED, None
                if not block:
                    return _Recv.EMPTY, None
                self._cond.wait()

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def cancel(self) -> None:
        with self._cond:
            self._cancelled = True
            self._cond.notify_all()


def _rate(count: int, elapsed_ms: int) -> float:
    if elapsed_ms:
        return count / elapsed_ms
    return math.nan if count == 0 else math.inf


class WorkerPool(Generic[T]):
    """Runs a worker function over published jobs on a fixed set of threads.

    The optional context is a threading.Event; once it is set, workers stop
    without draining the queue and the pool shuts down.
    """

    def __init__(self, buffer_size: int, context: Optional[threading.Event] = None) -> None:
        _log.debugf("NewPool: Creating a worker pool with buffer %d", buffer_size)
        self._buffer_size = buffer_size
        self._context = context if context is not None else threading.Event()
        self._state = PoolState.STOPPED
        self._lock = threading.Lock()
        self._worker_func: Optional[Callable[[T], Any]] = None
        self._jobs: Optional[_Channel[T]] = None
        self._threads: List[threading.Thread] = []
        self._monitor_done = threading.Event()
        self._count_lock = threading.Lock()
        self._published = 0
        self._started = 0
        self._finished = 0

    def __str__(self) -> str:
        return f"Pool({self.published_jobs}/{self.started_jobs}/{self.finished_jobs})"

    @property
    def state(self) -> PoolState:
        with self._lock:
            return self._state

    @property
    def published_jobs(self) -> int:
        """Number of jobs handed to the pool."""
        with self._count_lock:
            return self._published

    @property
    def started_jobs(self) -> int:
        """Number of jobs a worker has begun."""
        with self._count_lock:
            return self._started

    @property
    def finished_jobs(self) -> int:
        """Number of jobs that have completed."""
        with self._count_lock:
            return self._finished

    def start(self, workers: int, func: Callable[[T], Any]) -> None:
        """Start the given number of worker threads running func on each job."""
        with self._lock:
            if self._state is not PoolState.STOPPED:
                raise CannotStartPoolError()
            if self._worker_func is not None:
                raise WorkerFuncAlreadyInitializedError()
            self._state = PoolState.RUNNING
            self._worker_func = func
            self._jobs = _Channel(self._buffer_size)
            self._monitor_done = threading.Event()
            _log.debugf("Start: Starting workers on the pool (%d workers)", workers)
            self._threads = [
                threading.Thread(target=self._worker, name=f"pool-worker-{index}", daemon=True)
                for index in range(workers)
            ]
            for thread in self._threads:
                thread.start()
            threading.Thread(
                target=self._monitor,
                args=(self._jobs, self._monitor_done),
                name="pool-monitor",
                daemon=True,
            ).start()

    def stop(self) -> None:
        """Close the queue and wait until every worker has finished."""
        with self._lock:
            state = self._state
            if state is PoolState.STOPPED:
                return
            if state is PoolState.RUNNING:
                self._state = PoolState.SHUTTING_DOWN
                assert self._jobs is not None
                self._jobs.close()
                owner = True
            elif state is PoolState.SHUTTING_DOWN:
                owner = False
            else:
                raise CannotStopPoolError()
            threads = list(self._threads)
        _log.debugf("Stop: Waiting for workers to stop")
        current = threading.current_thread()
        for thread in threads:
            if thread is not current:
                thread.join()
        if owner:
            with self._lock:
                self._state = PoolState.STOPPED
                self._monitor_done.set()
            _log.debugf("Stop: All workers have stopped")

    def publish(self, job: T) -> None:
        """Hand a job to the pool, blocking while the queue is full."""
        with self._lock:
            if self._state is not PoolState.RUNNING:
                raise PoolClosedError()
            jobs = self._jobs
        assert jobs is not None
        jobs.send(job, block=True)
        self._count("_published")
        _log.debugf("Publish: Published a job")

    def try_publish(self, job: T) -> bool:
        """Hand a job to the pool without blocking; return False if the queue is full."""
        with self._lock:
            if self._state is not PoolState.RUNNING:
                raise PoolClosedError()
            jobs = self._jobs
        assert jobs is not None
        if jobs.send(job, block=False):
            self._count("_published")
            _log.debugf("TryPublish: Published a job")
            return True
        _log.debugf("TryPublish: All workers busy and queue full")
        return False

    def try_steal_work(self) -> bool:
        """Run one queued job on the calling thread; return False if none was waiting."""
        with self._lock:
            if self._state is not PoolState.RUNNING:
                raise PoolClosedError()
            jobs = self._jobs
            func = self._worker_func
        assert jobs is not None and func is not None
        status, job = jobs.receive(block=False, honour_cancel=False)
        if status is _Recv.CLOSED:
            _log.debugf("StealWork: Worker job channel closed.")
            raise PoolClosedError()
        if status is _Recv.EMPTY:
            _log.debugf("StealWork: No work available to steal.")
            return False
        _log.debugf("StealWork: Stole and started working on a job.")
        self._run_job(func, job)
        _log.debugf("StealWork: Stole and processed a job.")
        return True

    def _count(self, name: str) -> None:
        with self._count_lock:
            setattr(self, name, getattr(self, name) + 1)

    def _run_job(self, func: Callable[[T], Any], job: Any) -> None:
        self._count("_started")
        try:
            func(job)
        finally:
            self._count("_finished")

    def _worker(self) -> None:
        func = self._worker_func
        jobs = self._jobs
        if func is None or jobs is None:
            _log.errorf("Worker: ERROR: No worker function initialized. Worker stopped.")
            return
        while True:
            status, job = jobs.receive(block=True, honour_cancel=True)
            if status is _Recv.CLOSED:
                _log.debugf("Worker: Shutting down. Worker job channel closed.")
                return
            if status is _Recv.CANCELLED:
                _log.debugf("Worker: Shutting down. Worker pool context closed.")
                return
            _log.debugf("Worker: Started working on a job.")
            try:
                self._run_job(func, job)
            except Exception as exc:  # keep the worker alive after a failing job
                _log.errorf("Worker: Job failed: %s", exc)
            else:
                _log.debugf("Worker: Processed a job.")

    def _monitor(self, jobs: _Channel[T], done: threading.Event) -> None:
        prev_time = new_time_now()
        prev_published, prev_started, prev_finished = (
            self.published_jobs,
            self.started_jobs,
            self.finished_jobs,
        )
        prev_waiting = 0
        prev_processing = 0
        while True:
            now = new_time_now()
            published, started, finished = (
                self.published_jobs,
                self.started_jobs,
                self.finished_jobs,
            )
            waiting = published - finished
            processing = started - finished
            elapsed = now - prev_time
            diff_published = published - prev_published
            diff_started = started - prev_started
            diff_finished = finished - prev_finished
            args = (
                diff_published,
                _rate(diff_published, elapsed),
                diff_started,
                _rate(diff_started, elapsed),
                diff_finished,
                _rate(diff_finished, elapsed),
                waiting,
                waiting - prev_waiting,
                processing,
                processing - prev_processing,
            )
            report = (
                "Published=%d (%f/ms), Started=%d (%f/ms), Finished=%d (%f/ms), "
                "Queue=%d (%d), Processing=%d (%d)"
            )
            if diff_published or diff_started or diff_finished:
                _log.infof("Pool active: " + report, *args)
            else:
                _log.debugf("Pool passive: " + report, *args)
            prev_time = now
            prev_published, prev_started, prev_finished = published, started, finished
            prev_waiting, prev_processing = waiting, processing

            deadline = time.monotonic() + STATUS_UPDATE_INTERVAL
            while time.monotonic() < deadline:
                if self._context.wait(_CONTEXT_POLL_INTERVAL):
                    jobs.cancel()
                    try:
                        self.stop()
                    except PoolError as exc:
                        _log.warnf("Start: Warning! Pool stop failed: %s", exc)
                    return
                if done.is_set():
                    return