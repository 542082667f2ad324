"""In-process counters and histograms with a simple collector registry."""

from __future__ import annotations

import bisect
import math
import threading
from typing import Dict, Iterable, List, Sequence, Tuple, Union

Collector = Union["Counter", "CounterVec", "Histogram"]


class Counter:
    """A monotonically increasing value."""

    def __init__(self, name: str, help: str = "") -> None:
        self.name = name
        self.help = help
        self._value = 0.0
        self._lock = threading.Lock()

    @property
    def value(self) -> float:
        """The current count."""
        with self._lock:
            return self._value

    def inc(self, amount: float = 1.0) -> None:
        """Increase the counter; a counter cannot decrease."""
        if amount < 0:
            raise ValueError("counter cannot decrease in value")
        with self._lock:
            self._value += amount


class CounterVec:
    """A family of counters partitioned by label values."""

    def __init__(self, name: str, help: str, label_names: Sequence[str]) -> None:
        self.name = name
        self.help = help
        self.label_names = tuple(label_names)
        self._children: Dict[Tuple[str, ...], Counter] = {}
        self._lock = threading.Lock()

    def labels(self, *args: str) -> Counter:
        """Return the counter for the given label values, creating it if needed."""
        if len(args) != len(self.label_names):
            raise ValueError(
                f"{self.name}: expected {len(self.label_names)} label values, got {len(args)}"
            )
        key = tuple(str(value) for value in args)
        with self._lock:
            child = self._children.get(key)
            if child is None:
                child = Counter(self.name, self.help)
                self._children[key] = child
            return child

    @property
    def children(self) -> Dict[Tuple[str, ...], Counter]:
        """A snapshot of the counters created so far, keyed by label values."""
        with self._lock:
            return dict(self._children)


def linear_buckets(start: float, width: float, count: int) -> List[float]:
    """Return count bucket bounds starting at start, each width apart."""
    if count < 1:
        raise ValueError("linear_buckets needs a positive count")
    return [start + width * index for index in range(count)]


class Histogram:
    """Counts observations into cumulative buckets by upper bound."""

    def __init__(self, name: str, help: str, buckets: Iterable[float]) -> None:
        bounds = [float(bound) for bound in buckets]
        if any(later <= earlier for earlier, later in zip(bounds, bounds[1:])):
            raise ValueError("histogram buckets must be in increasing order")
        if not bounds or bounds[-1] != math.inf:
            bounds.append(math.inf)
        self.name = name
        self.help = help
        self.buckets: Tuple[float, ...] = tuple(bounds)
        self._counts = [0] * len(bounds)
        self._sum = 0.0
        self._count = 0
        self._lock = threading.Lock()

    def observe(self, value: float) -> None:
        """Record one observation."""
        index = bisect.bisect_left(self.buckets, value)
        with self._lock:
            self._counts[index] += 1
            self._sum += value
            self._count += 1

    @property
    def count(self) -> int:
        with self._lock:
            return self._count

    @property
    def sum(self) -> float:
        with self._lock:
            return self._sum

    def cumulative_counts(self) -> List[Tuple[float, int]]:
        """Return (upper bound, observations at or below it) for each bucket."""
        with self._lock:
            counts = list(self._counts)
        result = []
        running = 0
        for bound, amount in zip(self.buckets, counts):
            running += amount
            result.append((bound, running))
        return result


class Registry:
    """Holds collectors by unique name."""

    def __init__(self) -> None:
        self._collectors: Dict[str, Collector] = {}
        self._lock = threading.Lock()

    def register(self, *args: Collector) -> None:
        """Register every collector; a name already taken raises ValueError."""
        with self._lock:
            names = [collector.name for collector in args]
            for name in names:
                if name in self._collectors:
                    raise ValueError(f"duplicate metrics collector registration attempted: {name}")
            if len(set(names)) != len(names):
                raise ValueError("duplicate metrics collector registration attempted")
            for collector in args:
                self._collectors[collector.name] = collector

    def get(self, name: str) -> Collector:
        with self._lock:
            return self._collectors[name]

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._collectors

    def __len__(self) -> int:
        with self._lock:
            return len(self._collectors)


HTTP_REQUESTS_TOTAL = CounterVec(
    "http_requests_total", "Count of all HTTP requests", ["path"]
)

FAILED_OPERATIONS_COUNTER = CounterVec(
    "compute_failed_operations_total", "Total number of failed operations", ["operation"]
)

FAILED_ATTEMPTS_HISTOGRAM = Histogram(
    "compute_failed_attempts", "Histogram of failed attempts", linear_buckets(0, 10, 50)
)

DEFAULT_REGISTRY = Registry()

_OUR_COLLECTORS: Tuple[Collector, ...] = (
    HTTP_REQUESTS_TOTAL,
    FAILED_OPERATIONS_COUNTER,
    FAILED_ATTEMPTS_HISTOGRAM,
)


def must_register(*args: Collector) -> None:
    """Register the package's collectors and the given ones with the default registry."""
    DEFAULT_REGISTRY.register(*_OUR_COLLECTORS, *args)


def record_failed_operation_metric(operation_name: str) -> None:
    """Count one failure of the named operation."""
    FAILED_OPERATIONS_COUNTER.labels(operation_name).inc()


def record_http_request_metric(path: str) -> None:
    """Count one HTTP request to the given path."""
    HTTP_REQUESTS_TOTAL.labels(path).inc()