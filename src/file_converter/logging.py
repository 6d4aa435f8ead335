"""Worker logging: stdlib handlers rendered through structlog.

Records from ``logging.getLogger`` and from structlog loggers share one
processor chain, so ``batch_id``/``job_id`` bound with
``structlog.contextvars`` appear on every line a batch or job emits.
"""

from __future__ import annotations

import logging
import logging.config
from pathlib import Path
from typing import Any, Dict, List

import structlog

from .config import LoggingSettings

LOG_FILE_NAME = "conversion.log"

_configured = False


def _shared_processors() -> List[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]


def _formatter(renderer: Any) -> Dict[str, Any]:
    processors: List[Any] = [structlog.stdlib.ProcessorFormatter.remove_processors_meta]
    if isinstance(renderer, structlog.processors.JSONRenderer):
        processors.append(structlog.processors.format_exc_info)
    return {
        "()": structlog.stdlib.ProcessorFormatter,
        "foreign_pre_chain": _shared_processors(),
        "processors": [*processors, renderer],
    }


def configure_logging(settings: LoggingSettings, *, force: bool = False) -> None:
    global _configured
    if _configured and not force:
        return

    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    level = settings.level.upper()

    if settings.json_format:
        file_renderer: Any = structlog.processors.JSONRenderer()
    else:
        file_renderer = structlog.dev.ConsoleRenderer(colors=False)

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "console": _formatter(structlog.dev.ConsoleRenderer(colors=False)),
                "file": _formatter(file_renderer),
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "console",
                    "level": level,
                },
                "file": {
                    "class": "logging.handlers.RotatingFileHandler",
                    "filename": str(log_dir / LOG_FILE_NAME),
                    "formatter": "file",
                    "maxBytes": settings.max_log_file_size_mb * 1024 * 1024,
                    "backupCount": settings.backup_count,
                    "level": level,
                    "encoding": "utf-8",
                },
            },
            "root": {"handlers": ["console", "file"], "level": level},
        }
    )

    structlog.configure(
        processors=[
            *_shared_processors(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )
    _configured = True
