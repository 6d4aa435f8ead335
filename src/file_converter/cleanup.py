"""Best-effort artifact deletion with a single, centralized retry policy."""

from __future__ import annotations

import errno
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional

from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_fixed

from .errors import CleanupError
from .monitoring import record_cleanup_outcome

logger = logging.getLogger(__name__)

TRANSIENT_ERRNOS: FrozenSet[int] = frozenset({errno.EPERM, errno.EACCES, errno.EBUSY})


class CleanupOutcome(str, Enum):
    DELETED = "deleted"
    MISSING = "missing"
    BLOCKED = "blocked"
    FAILED = "failed"


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    delay_sec: float = 1.0
    retryable_errnos: FrozenSet[int] = TRANSIENT_ERRNOS

    def is_retryable(self, exc: BaseException) -> bool:
        return isinstance(exc, OSError) and exc.errno in self.retryable_errnos

    def retrying(self, sleep: Callable[[float], None] = time.sleep) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(max(1, self.max_attempts)),
            wait=wait_fixed(self.delay_sec),
            retry=retry_if_exception(self.is_retryable),
            sleep=sleep,
            reraise=True,
        )


@dataclass
class CleanupReport:
    outcomes: Dict[Path, CleanupOutcome] = field(default_factory=dict)
    errors: List[CleanupError] = field(default_factory=list)

    def _with(self, outcome: CleanupOutcome) -> List[Path]:
        return [path for path, value in self.outcomes.items() if value is outcome]

    @property
    def deleted(self) -> List[Path]:
        return self._with(CleanupOutcome.DELETED)

    @property
    def missing(self) -> List[Path]:
        return self._with(CleanupOutcome.MISSING)

    @property
    def blocked(self) -> List[Path]:
        return self._with(CleanupOutcome.BLOCKED)

    @property
    def failed(self) -> List[Path]:
        return self._with(CleanupOutcome.FAILED)

    def merge(self, other: "CleanupReport") -> "CleanupReport":
        self.outcomes.update(other.outcomes)
        self.errors.extend(other.errors)
        return self

    def summary(self) -> Dict[str, int]:
        return {outcome.value: len(self._with(outcome)) for outcome in CleanupOutcome}


class Reclaimer:
    """Deletes artifacts; never raises to the caller."""

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    def reclaim(self, paths: Iterable[Path | str | None]) -> CleanupReport:
        report = CleanupReport()
        for raw in paths:
            if raw is None:
                continue
            path = Path(raw)
            outcome, error = self._reclaim_one(path)
            report.outcomes[path] = outcome
            if error is not None:
                report.errors.append(error)
            record_cleanup_outcome(outcome.value)
        return report

    def _reclaim_one(self, path: Path) -> tuple[CleanupOutcome, Optional[CleanupError]]:
        # No exists() pre-check: it can raise on an unsearchable parent.
        try:
            for attempt in self.policy.retrying(self._sleep):
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        logger.warning(
                            "Retrying deletion of %s (attempt %d/%d)",
                            path,
                            attempt.retry_state.attempt_number,
                            self.policy.max_attempts,
                        )
                    path.unlink()
        except FileNotFoundError:
            logger.debug("File already deleted or does not exist: %s", path)
            return CleanupOutcome.MISSING, None
        except OSError as exc:
            if self.policy.is_retryable(exc):
                logger.error(
                    "Failed to delete %s after %d attempts: %s", path, self.policy.max_attempts, exc
                )
                return CleanupOutcome.BLOCKED, CleanupError(f"Deletion blocked: {exc}", path=str(path))
            logger.error("Error deleting file %s: %s", path, exc)
            return CleanupOutcome.FAILED, CleanupError(f"Deletion failed: {exc}", path=str(path))
        except Exception as exc:  # pragma: no cover - cleanup never raises
            logger.exception("Unexpected error deleting %s", path)
            return CleanupOutcome.FAILED, CleanupError(f"Deletion failed: {exc}", path=str(path))

        logger.info("Deleted file: %s", path)
        return CleanupOutcome.DELETED, None

    def sweep_expired(
        self,
        directory: Path | str,
        retention_sec: float,
        *,
        now: Optional[float] = None,
    ) -> CleanupReport:
        """Reclaim regular files in ``directory`` older than ``retention_sec``."""

        root = Path(directory)
        reference = time.time() if now is None else now
        expired: List[Path] = []
        try:
            for entry in root.iterdir():
                try:
                    if entry.is_file() and reference - entry.stat().st_mtime > retention_sec:
                        expired.append(entry)
                except OSError:
                    continue
        except OSError as exc:
            logger.error("Error in periodic cleanup of %s: %s", root, exc)
            return CleanupReport()

        report = self.reclaim(expired)
        logger.info("Sweep of %s finished: %s", root, report.summary())
        return report
