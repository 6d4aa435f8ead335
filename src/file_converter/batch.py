"""Batch coordinator: validates, routes and sequentially executes a batch."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence
from uuid import uuid4

from structlog.contextvars import bound_contextvars

from .artifacts import ArtifactStore
from .cleanup import Reclaimer
from .errors import ConversionError, ValidationError
from .formats import (
    ConversionDomain,
    accepts_input,
    extension_of,
    is_supported_input,
    is_supported_output,
    normalize_extension,
    parse_domain,
    supported_outputs,
)
from .models import (
    Artifact,
    ArtifactKind,
    BatchResult,
    BatchStatus,
    ConversionPlan,
    ConversionRequest,
    JobResult,
    JobStatus,
)
from .monitoring import record_batch_completed, record_job_completed
from .plugins.utils import validate_pdf
from .router import PipelineRouter
from .supervisor import JobSupervisor

logger = logging.getLogger(__name__)


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        normalized = value.strip().lower()
        return normalized == "" or normalized in {"null", "none"}
    return False


@dataclass
class UploadedFile:
    path: Path
    original_name: str

    def __post_init__(self) -> None:
        self.path = Path(self.path)


@dataclass
class FormatSpec:
    """One entry of the caller's format list, positionally matched to a file."""

    domain: str
    target: str
    sub_section: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | "FormatSpec", *, filename: str | None = None) -> "FormatSpec":
        if isinstance(data, FormatSpec):
            return data
        if not isinstance(data, Mapping):
            raise ValidationError(
                "Format descriptor must be a mapping",
                code="ERR_FIELD_MISSING",
                filename=filename,
            )

        domain = data.get("type", data.get("domain"))
        target = data.get("target")
        sub_section = data.get("subSection", data.get("sub_section"))

        missing = [name for name, value in (("type", domain), ("target", target)) if _is_missing(value)]
        if missing:
            raise ValidationError(
                f"Missing required format fields: {', '.join(missing)}",
                code="ERR_FIELD_MISSING",
                filename=filename,
            )
        return cls(
            domain=str(domain).strip(),
            target=str(target).strip(),
            sub_section=None if _is_missing(sub_section) else str(sub_section).strip(),
        )


class BatchCoordinator:
    """Runs at most ``max_files`` conversions one after another.

    Every file is validated and routed before anything executes. The first
    failing file aborts the batch; outputs of earlier files stay on disk.
    Uploaded inputs of an accepted batch are reclaimed when it ends.
    """

    def __init__(
        self,
        store: ArtifactStore,
        router: PipelineRouter,
        supervisor: JobSupervisor,
        reclaimer: Reclaimer,
        *,
        max_files: int = 5,
        max_file_size_mb: int = 100,
    ) -> None:
        self.store = store
        self.router = router
        self.supervisor = supervisor
        self.reclaimer = reclaimer
        self.max_files = max_files
        self.max_file_size_mb = max_file_size_mb

    def process_batch(
        self,
        files: Sequence[UploadedFile],
        formats: Sequence[Mapping[str, Any] | FormatSpec],
        *,
        batch_id: Optional[str] = None,
    ) -> BatchResult:
        batch_id = batch_id or uuid4().hex
        with bound_contextvars(batch_id=batch_id):
            return self._process(files, formats, batch_id)

    def _process(
        self,
        files: Sequence[UploadedFile],
        formats: Sequence[Mapping[str, Any] | FormatSpec],
        batch_id: str,
    ) -> BatchResult:
        logger.info("Batch %s received %d files and %d formats", batch_id, len(files), len(formats))

        try:
            plans = self._accept(files, formats)
        except ConversionError as exc:
            logger.warning("Batch %s rejected: %s", batch_id, exc.message)
            record_batch_completed(BatchStatus.FAILED.value)
            return BatchResult(batch_id=batch_id, status=BatchStatus.FAILED, error=exc)

        inputs = [
            self.store.register(upload.path, ArtifactKind.INPUT, batch_id)
            for upload in files
        ]
        results: List[JobResult] = []
        try:
            for position, (plan, source) in enumerate(zip(plans, inputs), start=1):
                result = self._run_one(plan, source)
                results.append(result)
                if not result.ok:
                    logger.error(
                        "Batch %s aborted at file %d/%d (%s, %s -> %s): %s",
                        batch_id,
                        position,
                        len(plans),
                        plan.request.original_name,
                        plan.request.domain.value,
                        plan.request.target_format,
                        result.message,
                    )
                    record_batch_completed(BatchStatus.FAILED.value)
                    return BatchResult(
                        batch_id=batch_id,
                        status=BatchStatus.FAILED,
                        results=results,
                        error=result.error,
                    )
        finally:
            self._reclaim_inputs(inputs)

        logger.info("Batch %s completed: %d outputs", batch_id, len(results))
        record_batch_completed(BatchStatus.SUCCESS.value)
        return BatchResult(batch_id=batch_id, status=BatchStatus.SUCCESS, results=results)

    def _accept(
        self,
        files: Sequence[UploadedFile],
        formats: Sequence[Mapping[str, Any] | FormatSpec],
    ) -> List[ConversionPlan]:
        if not files:
            raise ValidationError("No files uploaded.", code="ERR_BATCH_LIMIT_EXCEEDED")
        if len(files) > self.max_files:
            raise ValidationError(f"Maximum {self.max_files} files allowed.", code="ERR_BATCH_LIMIT_EXCEEDED")
        if len(files) != len(formats):
            raise ValidationError(
                f"Mismatch between files ({len(files)}) and formats ({len(formats)})",
                code="ERR_BATCH_MISMATCH",
            )

        requests = [self.validate(upload, descriptor) for upload, descriptor in zip(files, formats)]
        return [self.router.plan(request) for request in requests]

    def validate(self, upload: UploadedFile, descriptor: Mapping[str, Any] | FormatSpec) -> ConversionRequest:
        """Check one file/format pair and build its request."""

        name = upload.original_name
        spec = FormatSpec.from_mapping(descriptor, filename=name)

        domain = parse_domain(spec.domain)
        if domain is None:
            raise ValidationError(f"Unsupported conversion type: {spec.domain}", filename=name)

        target = normalize_extension(spec.target)
        if not is_supported_output(domain, target):
            raise ValidationError(
                f"Unsupported target format {spec.target} for {domain.value}; "
                f"expected one of {', '.join(supported_outputs(domain))}",
                filename=name,
            )

        source = extension_of(name)
        if not is_supported_input(source) or not accepts_input(domain, source):
            raise ValidationError(
                f"Unsupported input format {source or 'unknown'} for {domain.value}",
                filename=name,
            )

        try:
            size = upload.path.stat().st_size
        except FileNotFoundError:
            raise ValidationError(
                f"Uploaded file is missing: {name}",
                code="ERR_INPUT_INVALID",
                filename=name,
            ) from None
        if size > self.max_file_size_mb * 1024 * 1024:
            raise ValidationError(
                f"File {name} exceeds the {self.max_file_size_mb} MB limit",
                code="ERR_FILE_TOO_LARGE",
                filename=name,
            )

        return ConversionRequest(
            input_path=upload.path,
            original_name=name,
            domain=domain,
            target_format=target,
            sub_section=spec.sub_section,
        )

    def _run_one(self, plan: ConversionPlan, source: Artifact) -> JobResult:
        request = plan.request
        if request.domain is ConversionDomain.PDF and request.input_format == "pdf":
            if not validate_pdf(source.path):
                error = ValidationError(
                    "Invalid or corrupted PDF file",
                    code="ERR_INPUT_INVALID",
                    filename=request.original_name,
                )
                record_job_completed(JobStatus.FAILED.value)
                return JobResult(status=JobStatus.FAILED, request=request, error=error, stages=plan.describe())
        return self.supervisor.run(plan, source)

    def _reclaim_inputs(self, inputs: List[Artifact]) -> None:
        report = self.reclaimer.reclaim(artifact.path for artifact in inputs)
        self.store.release(inputs)
        if report.errors:
            logger.warning("Batch inputs not fully reclaimed: %s", report.summary())
