"""Tests for the Celery task wrappers."""

from __future__ import annotations

import logging

import pytest

import file_converter.celery_app as worker
from file_converter.cleanup import Reclaimer, RetryPolicy
from file_converter.service import ConversionEngine


@pytest.fixture()
def engine(monkeypatch, test_settings, catalog) -> ConversionEngine:
    reclaimer = Reclaimer(RetryPolicy(delay_sec=0), sleep=lambda _delay: None)
    conversion_engine = ConversionEngine(test_settings, catalog=catalog, reclaimer=reclaimer)
    monkeypatch.setattr(worker, "_ENGINE", conversion_engine)
    monkeypatch.setattr(worker, "ensure_metrics_server", lambda port: None)
    monkeypatch.setattr(worker, "_worker_metrics_started", False)
    return conversion_engine


def test_celery_app_routes_to_conversion_queue():
    conf = worker.celery_app.conf
    assert conf.task_default_queue == worker.SETTINGS.celery.default_queue
    assert conf.beat_schedule["sweep-expired-outputs"]["task"] == "conversion.sweep_outputs"


def test_handle_batch_task_returns_payload(engine):
    upload = engine.store.intake_dir / "upload-a.jpg"
    upload.write_bytes(b"jpeg")

    payload = worker.handle_batch_task.run(
        {
            "batch_id": "b-1",
            "files": [{"path": str(upload), "filename": "a.jpg"}],
            "formats": [{"type": "image", "target": "png"}],
        }
    )

    assert payload["status"] == "success"
    assert payload["batch_id"] == "b-1"
    name = payload["files"][0]["name"]
    assert (engine.store.converted_dir / name).exists()
    assert not upload.exists()


def test_handle_batch_task_reports_validation_error(engine):
    payload = worker.handle_batch_task.run(
        {"batch_id": "b-2", "files": [], "formats": [{"type": "image", "target": "png"}]}
    )

    assert payload["status"] == "failure"
    assert payload["error"]["error_code"] == "ERR_BATCH_LIMIT_EXCEEDED"


def test_handle_batch_task_rejects_malformed_entries(engine):
    payload = worker.handle_batch_task.run({"batch_id": "b-3", "files": [{"filename": "a.jpg"}], "formats": []})

    assert payload["status"] == "failure"
    assert "path" in payload["error"]["message"]


def test_delete_output_task(engine):
    output = engine.store.converted_dir / "a_1.png"
    output.write_bytes(b"png")

    assert worker.delete_output_task.run("a_1.png")["status"] == "success"
    assert not output.exists()
    missing = worker.delete_output_task.run("a_1.png")
    assert missing["error_code"] == "ERR_OUTPUT_NOT_FOUND"


def test_sweep_outputs_task_returns_summary(engine):
    summary = worker.sweep_outputs_task.run()
    assert summary == {"deleted": 0, "missing": 0, "blocked": 0, "failed": 0}


def test_worker_ready_reports_unavailable_tools(engine, monkeypatch, caplog):
    monkeypatch.setattr(worker, "configure_logging", lambda settings: None)
    monkeypatch.setattr(
        worker,
        "collect_dependency_status",
        lambda settings: {"tool:soffice": "missing", "tool:ffmpeg": "ok", "redis": "ok"},
    )

    with caplog.at_level(logging.ERROR, logger="file_converter.celery_app"):
        worker._on_worker_ready()

    assert "unavailable dependencies: tool:soffice" in caplog.text
    assert worker._worker_metrics_started
