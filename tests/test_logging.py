"""
Workshop - Logging Configuration Tests
"""

import json
import logging

from workshop.core.logging_config import ColoredFormatter, JSONFormatter, setup_logging


def make_record(msg="slow_request", **extra):
    record = logging.LogRecord(
        name="workshop.requests",
        level=logging.WARNING,
        pathname=__file__,
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_extras():
    record = make_record(path="/members", status_code=200, duration_ms=250.5)

    data = json.loads(JSONFormatter().format(record))

    assert data["level"] == "WARNING"
    assert data["logger"] == "workshop.requests"
    assert data["message"] == "slow_request"
    assert data["path"] == "/members"
    assert data["status_code"] == 200
    assert data["duration_ms"] == 250.5
    assert "msg" not in data


def test_json_formatter_without_extras():
    record = make_record(path="/members")
    data = json.loads(JSONFormatter(include_extras=False).format(record))
    assert "path" not in data


def test_colored_formatter_mentions_logger_and_message():
    output = ColoredFormatter().format(make_record("rate_limit_exceeded"))
    assert "workshop.requests" in output
    assert "rate_limit_exceeded" in output


def test_setup_logging_json_and_file(tmp_path):
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    log_file = tmp_path / "workshop.log"
    try:
        setup_logging(level="DEBUG", json_format=True, log_file=str(log_file))
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 2
        assert all(isinstance(h.formatter, JSONFormatter) for h in root.handlers)

        logging.getLogger("workshop.test").info("hello", extra={"client_ip": "10.0.0.1"})
        for handler in root.handlers:
            handler.flush()

        line = log_file.read_text().strip().splitlines()[-1]
        assert json.loads(line)["client_ip"] == "10.0.0.1"
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
