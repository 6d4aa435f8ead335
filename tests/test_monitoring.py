"""Unit tests for monitoring utilities and dependency checks."""

from __future__ import annotations

import logging

from redis.exceptions import RedisError

from file_converter.config import ToolSettings
from file_converter.monitoring import (
    _check_redis,
    check_tools,
    collect_dependency_status,
    ensure_metrics_server,
    record_batch_completed,
    record_cleanup_outcome,
    record_job_completed,
    record_stage_duration,
)


class _CounterStub:
    def __init__(self) -> None:
        self.calls: list[dict[str, str]] = []
        self.count = 0
        self.observed: list[float] = []

    def labels(self, **kwargs):
        self.calls.append(kwargs)
        return self

    def inc(self) -> None:
        self.count += 1

    def observe(self, value: float) -> None:
        self.observed.append(value)


def test_ensure_metrics_server_runs_once(monkeypatch):
    starts: list[int] = []
    monkeypatch.setattr("file_converter.monitoring._metrics_started", False)
    monkeypatch.setattr("file_converter.monitoring.start_http_server", lambda port: starts.append(port))

    ensure_metrics_server(9999)
    ensure_metrics_server(9999)

    assert starts == [9999]


def test_record_metrics_use_labels(monkeypatch):
    batches, jobs, cleanup, stages = (_CounterStub() for _ in range(4))
    monkeypatch.setattr("file_converter.monitoring.BATCHES_COMPLETED", batches)
    monkeypatch.setattr("file_converter.monitoring.JOBS_COMPLETED", jobs)
    monkeypatch.setattr("file_converter.monitoring.CLEANUP_OUTCOMES", cleanup)
    monkeypatch.setattr("file_converter.monitoring.STAGE_SECONDS", stages)

    record_batch_completed("success")
    record_job_completed("timeout")
    record_cleanup_outcome("blocked")
    record_stage_duration("ffmpeg", 1.5)

    assert batches.calls == [{"status": "success"}] and batches.count == 1
    assert jobs.calls == [{"status": "timeout"}]
    assert cleanup.calls == [{"outcome": "blocked"}]
    assert stages.calls == [{"adapter": "ffmpeg"}] and stages.observed == [1.5]


def test_check_tools_reports_missing_executables(monkeypatch):
    monkeypatch.setattr(
        "file_converter.monitoring.shutil.which",
        lambda name: f"/usr/bin/{name}" if name in {"convert", "ffmpeg"} else None,
    )

    status = check_tools(ToolSettings())

    assert status["imagemagick"] is True
    assert status["ffmpeg"] is True
    assert status["soffice"] is False
    assert set(status) == {"imagemagick", "svgo", "soffice", "pdftoppm", "ffmpeg", "sevenzip", "ebook_convert"}


def test_check_redis_success(monkeypatch, test_settings):
    class _Client:
        def ping(self):
            return True

    monkeypatch.setattr(
        "file_converter.monitoring.redis.Redis.from_url",
        lambda *args, **kwargs: _Client(),
    )

    assert _check_redis(test_settings) == "ok"


def test_check_redis_failure(monkeypatch, test_settings):
    def _raise(*_args, **_kwargs):
        raise RedisError("boom")

    monkeypatch.setattr("file_converter.monitoring.redis.Redis.from_url", _raise)

    assert _check_redis(test_settings) == "error:RedisError"


def test_collect_dependency_status_logs_missing_tools(monkeypatch, test_settings, caplog):
    monkeypatch.setattr("file_converter.monitoring.check_tools", lambda tools: {"ffmpeg": True, "pdftoppm": False})
    monkeypatch.setattr("file_converter.monitoring._check_redis", lambda settings: "ok")

    with caplog.at_level(logging.ERROR, logger="file_converter.monitoring"):
        result = collect_dependency_status(test_settings)

    assert result == {"tool:ffmpeg": "ok", "tool:pdftoppm": "missing", "redis": "ok"}
    errors = [record.getMessage() for record in caplog.records if record.levelno == logging.ERROR]
    assert len(errors) == 1 and errors[0].startswith("pdftoppm is not available")
