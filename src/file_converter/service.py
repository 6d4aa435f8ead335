"""Conversion engine facade wired from settings."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Sequence

from .artifacts import ArtifactStore
from .batch import BatchCoordinator, FormatSpec, UploadedFile
from .cleanup import CleanupReport, Reclaimer, RetryPolicy
from .config import Settings, get_settings
from .errors import ValidationError
from .formats import describe_domains
from .models import BatchResult
from .plugins import build_catalog
from .plugins.registry import AdapterCatalog
from .router import PipelineRouter
from .supervisor import JobSupervisor

logger = logging.getLogger(__name__)


class ConversionEngine:
    def __init__(
        self,
        settings: Settings,
        *,
        catalog: Optional[AdapterCatalog] = None,
        reclaimer: Optional[Reclaimer] = None,
    ) -> None:
        self.settings = settings
        self.store = ArtifactStore(settings.storage.intake_dir, settings.storage.converted_dir)
        self.store.ensure_directories()

        self.catalog = catalog if catalog is not None else build_catalog(settings)
        self.reclaimer = reclaimer or Reclaimer(
            RetryPolicy(
                max_attempts=settings.cleanup.max_attempts,
                delay_sec=settings.cleanup.retry_delay_sec,
            )
        )
        self.router = PipelineRouter(self.catalog, max_stages=settings.conversion.max_stages)
        self.supervisor = JobSupervisor(
            self.store,
            self.reclaimer,
            timeout_sec=settings.conversion.timeout_sec,
            cancel_grace_sec=settings.conversion.cancel_grace_sec,
        )
        self.coordinator = BatchCoordinator(
            self.store,
            self.router,
            self.supervisor,
            self.reclaimer,
            max_files=settings.limits.max_files_per_batch,
            max_file_size_mb=settings.limits.max_file_size_mb,
        )
        logger.info(
            "Conversion engine ready with adapters: %s",
            ", ".join(adapter.slug for adapter in self.catalog.adapters),
        )

    def process_batch(
        self,
        files: Sequence[UploadedFile],
        formats: Sequence[Mapping[str, Any] | FormatSpec],
        *,
        batch_id: Optional[str] = None,
    ) -> BatchResult:
        result = self.coordinator.process_batch(files, formats, batch_id=batch_id)
        if not result.ok and not result.results:
            # Rejected before execution; the uploads were never handed to the coordinator.
            self.reclaimer.reclaim(upload.path for upload in files)
        return result

    def delete_output(self, filename: str) -> None:
        """Explicitly delete a converted output by name."""

        path = self.store.resolve_output(filename)
        if not path.is_file():
            raise ValidationError(
                f"Converted file not found: {filename}",
                code="ERR_OUTPUT_NOT_FOUND",
                filename=filename,
            )
        report = self.reclaimer.reclaim([path])
        for error in report.errors:
            logger.warning("Output %s could not be deleted: %s", filename, error.message)
        artifact = self.store.get(path)
        if artifact is not None:
            self.store.release([artifact])

    def sweep(self, *, now: Optional[float] = None) -> CleanupReport:
        """Reclaim outputs and stale uploads older than the retention window."""

        retention_sec = self.settings.storage.retention_hours * 3600
        report = self.reclaimer.sweep_expired(self.store.converted_dir, retention_sec, now=now)
        report.merge(self.reclaimer.sweep_expired(self.store.intake_dir, retention_sec, now=now))
        return report

    def describe_formats(self) -> Dict[str, Any]:
        return {
            "domains": describe_domains(),
            "adapters": self.catalog.describe(),
        }


def build_engine(settings: Optional[Settings] = None) -> ConversionEngine:
    return ConversionEngine(settings or get_settings())
