"""Leveled logging with a background queue and call-depth filtering."""

from __future__ import annotations

import atexit
import enum
import inspect
import queue
import sys
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

DEFAULT_BUFFER_SIZE = 2000
DEFAULT_LOG_DEPTH = 10
MAX_STACK_DEPTH = 32

# When true, loggers write every message synchronously and honour debug
# messages; otherwise debug messages are discarded and the rest are queued.
DEBUG_BUILD = False


class LogLevel(enum.IntEnum):
    """Severity of a log message; a higher value is more verbose."""

    NONE = 0
    ERROR = 1
    WARN = 2
    INFO = 3
    DEBUG = 4
    ALL = 5

    def __str__(self) -> str:
        return self.name.lower()


DEFAULT_LOG_LEVEL = LogLevel.DEBUG

Sink = Callable[[str], None]


@dataclass(frozen=True)
class LogMessage:
    """A single log record waiting to be written."""

    context: str
    level: LogLevel
    format: str
    args: tuple = ()
    depth: int = 0

    def __str__(self) -> str:
        text = self.format % self.args if self.args else self.format
        return f"[{self.context}] [{str(self.level)}] [{self.depth:03d}] {text}"


def _stderr_sink(line: str) -> None:
    stamp = time.strftime("%Y/%m/%d %H:%M:%S")
    print(f"{stamp} {line}", file=sys.stderr)


def call_stack_depth() -> int:
    """Return the number of frames above the caller, capped at MAX_STACK_DEPTH."""
    frame = inspect.currentframe()
    frame = frame.f_back if frame is not None else None
    count = 0
    while frame is not None and count < MAX_STACK_DEPTH:
        count += 1
        frame = frame.f_back
    return count


def trim_file_path(path: str) -> str:
    """Return the part of a path after the last slash."""
    return path.rpartition("/")[2]


_STOP = object()


class Logger:
    """A named logger that filters by level and by call-stack depth."""

    def __init__(
        self,
        context: str,
        level: Optional[LogLevel] = None,
        depth: int = DEFAULT_LOG_DEPTH,
        *,
        debug: bool = DEBUG_BUILD,
        sink: Optional[Sink] = None,
    ) -> None:
        self.context = context
        self.level = DEFAULT_LOG_LEVEL if level is None else LogLevel(level)
        self.depth = depth
        self.debug = debug
        self._sink: Sink = sink or _stderr_sink
        self._queue: "queue.Queue[Any]" = queue.Queue(maxsize=DEFAULT_BUFFER_SIZE)
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._stopped = False

    def __str__(self) -> str:
        return f"Logger('{self.context}', '{str(self.level)}', {self.depth})"

    @property
    def running(self) -> bool:
        """True while the background writer thread is alive."""
        return self._thread is not None and not self._stopped

    def with_level(self, level: LogLevel) -> "Logger":
        self.level = LogLevel(level)
        return self

    def with_depth(self, depth: int) -> "Logger":
        self.depth = depth
        return self

    def _visible(self, level: LogLevel, depth: int) -> bool:
        return level <= self.level and depth <= self.depth

    def _dispatch(self, message: LogMessage) -> None:
        if self.debug:
            if self._visible(message.level, message.depth):
                self._sink(str(message))
            return
        if self._stopped:
            return
        self._queue.put(message)

    def debugf(self, msg: str, *args: Any) -> None:
        if not self.debug:
            return
        depth = call_stack_depth()
        self._dispatch(LogMessage(self.context, LogLevel.DEBUG, msg, args, depth))

    def infof(self, msg: str, *args: Any) -> None:
        depth = call_stack_depth()
        self._dispatch(LogMessage(self.context, LogLevel.INFO, msg, args, depth))

    def warnf(self, msg: str, *args: Any) -> None:
        depth = call_stack_depth()
        self._dispatch(LogMessage(self.context, LogLevel.WARN, msg, args, depth))

    def errorf(self, msg: str, *args: Any) -> None:
        depth = call_stack_depth()
        self._dispatch(LogMessage(self.context, LogLevel.ERROR, msg, args, depth))

    def start(self) -> None:
        """Start the background writer thread."""
        if self.debug:
            return
        with self._lock:
            if self._thread is not None or self._stopped:
                return
            self._thread = threading.Thread(
                target=self._process_queue,
                name=f"logger-{self.context}",
                daemon=True,
            )
            self._thread.start()

    def stop(self) -> None:
        """Flush queued messages and stop the writer; later messages are dropped."""
        if self.debug:
            return
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
            thread = self._thread
        if thread is not None:
            self._queue.put(_STOP)
            thread.join()

    def _process_queue(self) -> None:
        while True:
            message = self._queue.get()
            if message is _STOP:
                return
            if self._visible(message.level, message.depth):
                self._sink(str(message))


_all_loggers: list[Logger] = []
_registry_lock = threading.Lock()


def new_logger(context: str) -> Logger:
    """Create, start and register a logger for the given context."""
    logger = Logger(context)
    logger.start()
    with _registry_lock:
        _all_loggers.append(logger)
    return logger


def stop_all() -> None:
    """Stop every logger created with new_logger."""
    with _registry_lock:
        loggers = list(_all_loggers)
    for logger in loggers:
        logger.stop()


atexit.register(stop_all)