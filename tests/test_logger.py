from __future__ import annotations

import io
import logging

import pytest

from curvance_sdk.logger import TRACE, ColoredFormatter, resolve_level, setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger(monkeypatch):
    monkeypatch.delenv("CURVANCE_LOG_LEVEL", raising=False)
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    for name in ("web3", "urllib3", "requests"):
        logging.getLogger(name).setLevel(logging.NOTSET)


def test_resolve_level_sources(monkeypatch):
    assert resolve_level("debug") == logging.DEBUG
    assert resolve_level("trace") == TRACE
    assert resolve_level("nonsense") == logging.INFO

    monkeypatch.setenv("CURVANCE_LOG_LEVEL", "ERROR")
    assert resolve_level() == logging.ERROR


def test_setup_logging_writes_to_given_stream():
    stream = io.StringIO()
    setup_logging("INFO", stream=stream)

    logging.getLogger("curvance_sdk.test").info("hello")

    line = stream.getvalue()
    assert "curvance_sdk.test - INFO - hello" in line
    assert "\033[" not in line


def test_noisy_loggers_follow_level():
    setup_logging("DEBUG", stream=io.StringIO())
    assert logging.getLogger("web3").level == logging.WARNING

    setup_logging("TRACE", stream=io.StringIO())
    assert logging.getLogger("urllib3").level == TRACE


def test_colored_level_leaves_record_untouched():
    formatter = ColoredFormatter(fmt="%(levelname)s %(message)s")
    record = logging.LogRecord("x", logging.WARNING, __file__, 1, "careful", None, None)

    assert formatter.format(record) == "\033[33mWARNING\033[0m careful"
    assert record.levelname == "WARNING"
