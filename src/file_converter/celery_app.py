"""Celery application running conversion batches and the retention sweep."""

from __future__ import annotations

import errno
import logging
from typing import Any, Dict, List, Optional

from celery import Celery, signals

from .batch import UploadedFile
from .config import Settings, get_settings
from .errors import ConversionError
from .logging import configure_logging
from .monitoring import collect_dependency_status, ensure_metrics_server
from .service import ConversionEngine

logger = logging.getLogger(__name__)


def _create_celery(settings: Settings) -> Celery:
    app = Celery(settings.service_name)
    app.conf.update(
        broker_url=settings.celery.broker_url,
        result_backend=settings.celery.result_backend,
        task_default_queue=settings.celery.default_queue,
        task_time_limit=settings.celery.task_time_limit_sec,
        worker_prefetch_multiplier=settings.celery.prefetch_multiplier,
        beat_schedule={
            "sweep-expired-outputs": {
                "task": "conversion.sweep_outputs",
                "schedule": float(settings.storage.sweep_interval_sec),
            }
        },
    )
    return app


SETTINGS = get_settings()
celery_app = _create_celery(SETTINGS)
_ENGINE: Optional[ConversionEngine] = None
_worker_metrics_started = False


def _get_engine() -> ConversionEngine:
    global _ENGINE
    if _ENGINE is None:
        _ENGINE = ConversionEngine(SETTINGS)
    return _ENGINE


def _ensure_worker_metrics_started() -> None:
    """Start worker-side metrics exactly once per process."""

    global _worker_metrics_started
    if _worker_metrics_started:
        return

    try:
        ensure_metrics_server(SETTINGS.monitoring.prometheus_port)
    except OSError as exc:  # pragma: no cover - prefork workers share the port
        if exc.errno != errno.EADDRINUSE:
            raise
        logger.debug("Worker metrics server already running", exc_info=exc)
    _worker_metrics_started = True


@signals.worker_process_init.connect
def _on_worker_process_init(sender=None, **kwargs):  # type: ignore[override]
    configure_logging(SETTINGS.logging)


@signals.worker_ready.connect
def _on_worker_ready(sender=None, **kwargs):  # type: ignore[override]
    configure_logging(SETTINGS.logging)
    _ensure_worker_metrics_started()
    status = collect_dependency_status(SETTINGS)
    missing = sorted(name for name, value in status.items() if value != "ok")
    if missing:
        logger.error("Worker started with unavailable dependencies: %s", ", ".join(missing))
    else:
        logger.info("All conversion dependencies available")
    _get_engine()


def _uploads_from_payload(entries: List[Dict[str, Any]]) -> List[UploadedFile]:
    uploads = []
    for entry in entries:
        path = entry.get("path") or entry.get("local_path")
        name = entry.get("filename") or entry.get("original_name")
        if not path or not name:
            raise ValueError("Each file entry needs 'path' and 'filename'")
        uploads.append(UploadedFile(path=path, original_name=name))
    return uploads


@celery_app.task(name="conversion.handle_batch")
def handle_batch_task(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Convert one batch: ``{"batch_id", "files": [{path, filename}], "formats": [...]}``."""

    _ensure_worker_metrics_started()
    batch_id = payload.get("batch_id")
    logger.debug("Starting batch task %s", batch_id)

    try:
        uploads = _uploads_from_payload(payload.get("files", []))
    except ValueError as exc:
        logger.error("Malformed batch payload %s: %s", batch_id, exc)
        return {"batch_id": batch_id, "status": "failure", "files": [], "error": {"message": str(exc)}}

    result = _get_engine().process_batch(uploads, payload.get("formats", []), batch_id=batch_id)
    return result.to_payload()


@celery_app.task(name="conversion.sweep_outputs")
def sweep_outputs_task() -> Dict[str, int]:
    report = _get_engine().sweep()
    summary = report.summary()
    logger.info("Retention sweep finished: %s", summary)
    return summary


@celery_app.task(name="conversion.delete_output")
def delete_output_task(filename: str) -> Dict[str, Any]:
    try:
        _get_engine().delete_output(filename)
    except ConversionError as exc:
        logger.warning("Delete of %s refused: %s", filename, exc.message)
        return exc.to_payload()
    return {"status": "success", "message": "File deleted successfully", "filename": filename}
