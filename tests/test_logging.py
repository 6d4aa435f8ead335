"""Tests for logging configuration."""

from __future__ import annotations

import json
import logging

from structlog.contextvars import bound_contextvars

import file_converter.logging as log_config
from file_converter.config import LoggingSettings


def test_configure_logging_writes_rotating_file(tmp_path, monkeypatch):
    monkeypatch.setattr(log_config, "_configured", False)
    settings = LoggingSettings(level="debug", log_dir=str(tmp_path / "logs"))

    log_config.configure_logging(settings)
    logging.getLogger("file_converter.test").info("hello from the engine")
    for handler in logging.getLogger().handlers:
        handler.flush()

    log_file = tmp_path / "logs" / "conversion.log"
    assert log_file.exists()
    assert "hello from the engine" in log_file.read_text(encoding="utf-8")


def test_configure_logging_is_idempotent(tmp_path, monkeypatch):
    calls = []
    monkeypatch.setattr(log_config, "_configured", True)
    monkeypatch.setattr(log_config.logging.config, "dictConfig", lambda cfg: calls.append(cfg))

    log_config.configure_logging(LoggingSettings(log_dir=str(tmp_path)))
    assert calls == []

    log_config.configure_logging(LoggingSettings(log_dir=str(tmp_path)), force=True)
    assert len(calls) == 1


def test_bound_context_reaches_stdlib_records(tmp_path, monkeypatch):
    monkeypatch.setattr(log_config, "_configured", False)
    log_config.configure_logging(LoggingSettings(log_dir=str(tmp_path / "logs"), json_format=True))
    batch_logger = logging.getLogger("file_converter.batch")

    with bound_contextvars(batch_id="b-7", job_id="j-1"):
        batch_logger.warning("Batch %s aborted", "b-7")
    batch_logger.warning("between batches")
    for handler in logging.getLogger().handlers:
        handler.flush()

    lines = (tmp_path / "logs" / log_config.LOG_FILE_NAME).read_text(encoding="utf-8").splitlines()
    records = {entry["event"]: entry for entry in map(json.loads, lines)}
    aborted = records["Batch b-7 aborted"]
    assert aborted["batch_id"] == "b-7" and aborted["job_id"] == "j-1"
    assert aborted["level"] == "warning"
    assert aborted["logger"] == "file_converter.batch"
    assert "batch_id" not in records["between batches"]
