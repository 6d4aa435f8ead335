"""Monitoring utilities for dependency checks and Prometheus metrics."""

from __future__ import annotations

import logging
import shutil
from typing import Dict

import redis
from prometheus_client import Counter, Histogram, start_http_server
from redis.exceptions import RedisError

from .config import Settings, ToolSettings

logger = logging.getLogger(__name__)

BATCHES_COMPLETED = Counter(
    "conversion_batches_completed_total",
    "Total number of conversion batches processed",
    labelnames=("status",),
)
JOBS_COMPLETED = Counter(
    "conversion_jobs_completed_total",
    "Total number of per-file conversion jobs completed",
    labelnames=("status",),
)
CLEANUP_OUTCOMES = Counter(
    "conversion_cleanup_outcomes_total",
    "Artifact deletion attempts grouped by outcome",
    labelnames=("outcome",),
)
STAGE_SECONDS = Histogram(
    "conversion_stage_duration_seconds",
    "Wall-clock duration of a single conversion stage",
    labelnames=("adapter",),
)

_metrics_started = False


def ensure_metrics_server(port: int) -> None:
    global _metrics_started
    if _metrics_started:
        return
    start_http_server(port)
    _metrics_started = True
    logger.info("Prometheus metrics server started on port %s", port)


def record_batch_completed(status: str) -> None:
    BATCHES_COMPLETED.labels(status=status).inc()


def record_job_completed(status: str) -> None:
    JOBS_COMPLETED.labels(status=status).inc()


def record_cleanup_outcome(outcome: str) -> None:
    CLEANUP_OUTCOMES.labels(outcome=outcome).inc()


def record_stage_duration(adapter: str, seconds: float) -> None:
    STAGE_SECONDS.labels(adapter=adapter).observe(seconds)


def check_tools(tools: ToolSettings) -> Dict[str, bool]:
    """Report which external converter executables are on PATH."""

    executables = {
        "imagemagick": tools.imagemagick,
        "svgo": tools.svgo,
        "soffice": tools.soffice,
        "pdftoppm": tools.pdftoppm,
        "ffmpeg": tools.ffmpeg,
        "sevenzip": tools.sevenzip,
        "ebook_convert": tools.ebook_convert,
    }
    return {name: shutil.which(executable) is not None for name, executable in executables.items()}


def _check_redis(settings: Settings) -> str:
    try:
        client = redis.Redis.from_url(
            settings.celery.broker_url,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        client.ping()
        return "ok"
    except RedisError as exc:
        logger.warning("Redis health check failed", exc_info=exc)
        return f"error:{exc.__class__.__name__}"


def collect_dependency_status(settings: Settings) -> Dict[str, str]:
    """Check converter tools and the broker, logging every missing tool as an error."""

    status: Dict[str, str] = {}
    for name, available in check_tools(settings.tools).items():
        if not available:
            logger.error("%s is not available; conversions that need it will fail", name)
        status[f"tool:{name}"] = "ok" if available else "missing"
    status["redis"] = _check_redis(settings)
    return status
