import pytest

from statelessdb.logs import (
    MAX_STACK_DEPTH,
    LogLevel,
    LogMessage,
    Logger,
    call_stack_depth,
    new_logger,
    stop_all,
    trim_file_path,
)


def _make(lines, **kwargs):
    return Logger("test", sink=lines.append, **kwargs).with_depth(MAX_STACK_DEPTH)


@pytest.mark.parametrize(
    "level, name",
    [(LogLevel.DEBUG, "debug"), (LogLevel.NONE, "none"), (LogLevel.ALL, "all")],
)
def test_level_names(level, name):
    logger = Logger("c").with_level(level)
    assert str(logger) == f"Logger('c', '{name}', 10)"
    message = LogMessage("c", level, "m", (), 1)
    assert str(message) == f"[c] [{name}] [001] m"


def test_level_ordering():
    lines = []
    logger = _make(lines, debug=True).with_level(LogLevel.INFO)
    logger.debugf("debug")
    logger.infof("info")
    logger.warnf("warn")
    logger.errorf("error")
    assert [line.rsplit("] ", 1)[1] for line in lines] == ["info", "warn", "error"]


def test_log_message_format():
    message = LogMessage("events", LogLevel.WARN, "x %d", (5,), 7)
    assert str(message) == "[events] [warn] [007] x 5"


def test_log_message_without_args_keeps_percent():
    message = LogMessage("c", LogLevel.INFO, "100%", (), 1)
    assert str(message).endswith("] 100%")


def test_logger_str():
    assert str(Logger("ctx")) == "Logger('ctx', 'debug', 10)"


def test_with_level_and_depth_chain():
    logger = Logger("ctx")
    assert logger.with_level(LogLevel.WARN) is logger
    assert logger.with_depth(3) is logger
    assert str(logger) == "Logger('ctx', 'warn', 3)"


def test_queued_messages_written_after_stop():
    lines = []
    logger = _make(lines)
    logger.start()
    logger.infof("hi %d", 3)
    logger.warnf("careful")
    logger.errorf("bad %s", "thing")
    logger.debugf("ignored")
    logger.stop()
    assert len(lines) == 3
    assert lines[0].startswith("[test] [info] [")
    assert lines[0].endswith("] hi 3")
    assert lines[1].startswith("[test] [warn] [")
    assert lines[2].endswith("] bad thing")


def test_level_filter():
    lines = []
    logger = _make(lines).with_level(LogLevel.WARN)
    logger.start()
    logger.infof("dropped")
    logger.errorf("kept")
    logger.stop()
    assert [line.endswith("kept") for line in lines] == [True]


def test_depth_filter():
    lines = []
    logger = _make(lines).with_depth(0)
    logger.start()
    logger.errorf("too deep")
    logger.stop()
    assert lines == []


def test_debug_mode_writes_synchronously():
    lines = []
    logger = _make(lines, debug=True)
    logger.debugf("value %s", "v")
    assert len(lines) == 1
    assert lines[0].startswith("[test] [debug] [")
    assert lines[0].endswith("value v")


def test_debug_mode_filters_depth():
    lines = []
    logger = _make(lines, debug=True).with_depth(0)
    logger.infof("hidden")
    assert lines == []


def test_messages_after_stop_are_dropped():
    lines = []
    logger = _make(lines)
    logger.start()
    logger.stop()
    logger.infof("late")
    logger.stop()
    assert lines == []
    assert logger.running is False


def test_call_stack_depth_is_capped():
    def recurse(n):
        if n == 0:
            return call_stack_depth()
        return recurse(n - 1)

    assert recurse(MAX_STACK_DEPTH + 10) == MAX_STACK_DEPTH
    assert 1 <= call_stack_depth() <= MAX_STACK_DEPTH


@pytest.mark.parametrize(
    "path, expected",
    [("a/b/c.go", "c.go"), ("plain", "plain"), ("dir/", "")],
)
def test_trim_file_path(path, expected):
    assert trim_file_path(path) == expected


def test_new_logger_and_stop_all():
    logger = new_logger("registry")
    assert logger.running is True
    stop_all()
    assert logger.running is False