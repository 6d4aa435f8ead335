"""Job supervisor: executes a conversion plan under a single deadline."""

from __future__ import annotations

import contextvars
import logging
import os
import shutil
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from concurrent.futures import wait
from pathlib import Path
from typing import Iterable, Optional

from structlog.contextvars import bound_contextvars

from .artifacts import ArtifactStore
from .cleanup import Reclaimer
from .errors import AdapterError, ConversionError, JobTimeoutError
from .formats import normalize_extension
from .models import Artifact, ArtifactKind, ConversionPlan, JobResult, JobStatus, Stage
from .monitoring import record_job_completed, record_stage_duration
from .plugins.base import ConversionContext

logger = logging.getLogger(__name__)


class JobSupervisor:
    """Runs the stages of one plan in order and always reclaims intermediates.

    The deadline covers the whole plan. Stages execute on a single-use
    worker thread so the supervisor can stop waiting when the deadline
    passes; the context then kills any external process the stage started.
    """

    def __init__(
        self,
        store: ArtifactStore,
        reclaimer: Reclaimer,
        *,
        timeout_sec: float = 120.0,
        cancel_grace_sec: float = 5.0,
    ) -> None:
        self.store = store
        self.reclaimer = reclaimer
        self.timeout_sec = timeout_sec
        self.cancel_grace_sec = cancel_grace_sec

    def run(self, plan: ConversionPlan, source: Artifact, *, timeout: Optional[float] = None) -> JobResult:
        with bound_contextvars(job_id=plan.request.request_id, filename=plan.request.original_name):
            return self._supervise(plan, source, timeout)

    def _supervise(self, plan: ConversionPlan, source: Artifact, timeout: Optional[float]) -> JobResult:
        request = plan.request
        job_id = request.request_id
        limit = self.timeout_sec if timeout is None else timeout
        started = time.monotonic()
        context = ConversionContext(job_id, deadline=started + limit, sub_section=request.sub_section)
        final_path = self.store.output_path(request)

        logger.info(
            "Job %s started for %s: %s (deadline %.1fs)",
            job_id,
            request.original_name,
            " -> ".join(f"{s.source_format}>{s.target_format}[{s.adapter.slug}]" for s in plan.stages),
            limit,
        )

        output: Optional[Artifact] = None
        error: Optional[ConversionError] = None
        status = JobStatus.FAILED

        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"job-{job_id[:8]}")
        try:
            # the stage thread inherits the bound log context
            future = executor.submit(
                contextvars.copy_context().run, self._execute, plan, source.path, final_path, context
            )
            try:
                output = future.result(timeout=limit)
                status = JobStatus.SUCCESS
            except FutureTimeoutError:
                logger.warning("Job %s exceeded its %.1fs deadline; cancelling", job_id, limit)
                context.cancel()
                done, _ = wait([future], timeout=self.cancel_grace_sec)
                if not done:
                    logger.error("Job %s stage did not unwind within %.1fs", job_id, self.cancel_grace_sec)
                status = JobStatus.TIMEOUT
                error = JobTimeoutError(f"Conversion exceeded the {limit:g}s deadline")
            except JobTimeoutError as exc:
                status = JobStatus.TIMEOUT
                error = exc
            except ConversionError as exc:
                error = exc
            except Exception as exc:
                logger.exception("Unexpected failure in job %s", job_id)
                error = AdapterError(f"Unexpected conversion failure: {exc}")
        finally:
            executor.shutdown(wait=False)
            self._reclaim_intermediates(job_id)
            if status is not JobStatus.SUCCESS:
                # A cancelled stage may still have renamed its output into place.
                self.reclaimer.reclaim([final_path])

        elapsed = time.monotonic() - started
        if error is not None:
            error.with_filename(request.original_name)
            logger.error("Job %s %s after %.2fs: %s", job_id, status.value, elapsed, error.message)
        else:
            logger.info("Job %s finished in %.2fs: %s", job_id, elapsed, output.name if output else None)
        record_job_completed(status.value)

        return JobResult(
            status=status,
            request=request,
            output=output,
            error=error,
            stages=plan.describe(),
            elapsed_sec=elapsed,
        )

    def _execute(
        self,
        plan: ConversionPlan,
        input_path: Path,
        final_path: Path,
        context: ConversionContext,
    ) -> Artifact:
        request = plan.request
        job_id = context.job_id
        current = Path(input_path)
        consumed = self._align_input(plan, current, job_id)
        if consumed is not None:
            current = consumed.path
        last_index = len(plan.stages) - 1

        for index, stage in enumerate(plan.stages):
            if context.cancelled:
                raise JobTimeoutError(f"Job {job_id} cancelled before stage {index + 1}")

            if index == last_index:
                target = self.store.staging_path(final_path)
            else:
                target = self.store.intermediate_path(request, stage.target_format, index + 1)
            produced = self.store.register(target, ArtifactKind.INTERMEDIATE, job_id)

            self._run_stage(stage, index, current, target, context)

            if consumed is not None:
                self._release([consumed])
            consumed = produced
            current = target

        if context.cancelled:
            raise JobTimeoutError(f"Job {job_id} cancelled before its output was published")

        os.replace(current, final_path)
        self._forget(consumed)
        return self.store.register(final_path, ArtifactKind.OUTPUT, job_id)

    def _align_input(self, plan: ConversionPlan, input_path: Path, job_id: str) -> Optional[Artifact]:
        """Copy the input to a path carrying its declared extension when the upload lacks it.

        External tools pick their input reader from the file name, so an
        upload stored as ``3f9a1c0b`` must be seen as ``.pdf`` by soffice.
        The copy is an intermediate and is reclaimed after the first stage.
        """

        declared = plan.stages[0].source_format
        if normalize_extension(input_path.suffix) == declared:
            return None

        aligned = self.store.intake_path(plan.request.original_name, job_id, extension=declared)
        artifact = self.store.register(aligned, ArtifactKind.INTERMEDIATE, job_id)
        try:
            shutil.copyfile(input_path, aligned)
        except OSError as exc:
            raise AdapterError(f"Cannot stage {input_path.name} as .{declared}: {exc}") from exc
        logger.debug("Job %s staged %s as %s", job_id, input_path.name, aligned.name)
        return artifact

    def _run_stage(
        self,
        stage: Stage,
        index: int,
        input_path: Path,
        output_path: Path,
        context: ConversionContext,
    ) -> None:
        slug = stage.adapter.slug
        logger.debug(
            "Job %s stage %d: %s %s->%s via %s",
            context.job_id,
            index + 1,
            stage.domain.value,
            stage.source_format,
            stage.target_format,
            slug,
        )
        context.source_format = stage.source_format
        started = time.monotonic()
        try:
            stage.adapter.convert(input_path, output_path, stage.target_format, context)
        except ConversionError:
            raise
        except Exception as exc:
            raise AdapterError(f"{type(exc).__name__}: {exc}", adapter=slug) from exc
        finally:
            duration = time.monotonic() - started
            record_stage_duration(slug, duration)
            logger.debug("Job %s stage %d finished in %.2fs", context.job_id, index + 1, duration)

        try:
            size = output_path.stat().st_size
        except FileNotFoundError:
            size = 0
        if size == 0:
            raise AdapterError(f"No output produced for {stage.source_format}->{stage.target_format}", adapter=slug)

    def _release(self, artifacts: Iterable[Artifact]) -> None:
        artifacts = list(artifacts)
        if not artifacts:
            return
        report = self.reclaimer.reclaim(artifact.path for artifact in artifacts)
        self.store.release(artifacts)
        for cleanup_error in report.errors:
            logger.warning("Intermediate cleanup incomplete: %s", cleanup_error.message)

    def _forget(self, artifact: Optional[Artifact]) -> None:
        if artifact is not None:
            self.store.release([artifact])

    def _reclaim_intermediates(self, job_id: str) -> None:
        self._release(self.store.owned_by(job_id, ArtifactKind.INTERMEDIATE))
