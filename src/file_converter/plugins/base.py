"""Base classes for capability adapters."""

from __future__ import annotations

import logging
import subprocess
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from itertools import product
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Sequence, Set, Tuple

from ..config import ToolSettings
from ..errors import AdapterError, JobTimeoutError
from ..formats import ConversionDomain

logger = logging.getLogger(__name__)

Capability = Tuple[ConversionDomain, str, str]


@dataclass
class ConversionResult:
    output_path: Path
    metadata: Dict[str, Any] = field(default_factory=dict)


class ConversionContext:
    """Per-job state handed to adapters: deadline, hints and live processes.

    ``source_format`` is the declared format of the current stage's input.
    Adapters should prefer it over the input path's suffix, which uploads
    are not guaranteed to carry.
    """

    def __init__(
        self,
        job_id: str = "",
        *,
        deadline: Optional[float] = None,
        sub_section: str | None = None,
        source_format: str | None = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.job_id = job_id
        self.deadline = deadline
        self.sub_section = sub_section
        self.source_format = source_format
        self.metadata = metadata or {}
        self._cancelled = threading.Event()
        self._lock = threading.Lock()
        self._processes: Set[subprocess.Popen] = set()

    def remaining(self) -> Optional[float]:
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def wait_cancelled(self, timeout: float) -> bool:
        return self._cancelled.wait(timeout)

    def attach(self, process: subprocess.Popen) -> None:
        with self._lock:
            self._processes.add(process)
        if self.cancelled:
            self._kill(process)

    def detach(self, process: subprocess.Popen) -> None:
        with self._lock:
            self._processes.discard(process)

    def cancel(self) -> None:
        self._cancelled.set()
        with self._lock:
            processes = list(self._processes)
        for process in processes:
            self._kill(process)

    @staticmethod
    def _kill(process: subprocess.Popen) -> None:
        if process.poll() is not None:
            return
        logger.warning("Killing external process %s", process.pid)
        try:
            process.kill()
        except ProcessLookupError:
            pass


class ConversionAdapter(ABC):
    """Uniform binding to one external converter family.

    Subclasses declare what they can do through ``domains``,
    ``source_formats`` and ``target_formats`` (or override
    ``capabilities``) and implement ``convert``.
    """

    slug: str = ""
    tool: str = ""
    domains: Tuple[ConversionDomain, ...] = ()
    source_formats: Tuple[str, ...] = ()
    target_formats: Tuple[str, ...] = ()

    def __init__(self, tools: Optional[ToolSettings] = None) -> None:
        self.tools = tools or ToolSettings()
        self.slug = self.slug or type(self).__name__.lower()

    def capabilities(self) -> Iterable[Capability]:
        for domain, source, target in product(self.domains, self.source_formats, self.target_formats):
            yield domain, source, target

    @abstractmethod
    def convert(
        self,
        input_path: Path,
        output_path: Path,
        target_format: str,
        context: ConversionContext,
    ) -> ConversionResult:
        """Write ``input_path`` converted to ``target_format`` at ``output_path``."""

    def describe(self) -> Dict[str, Any]:
        pairs = sorted({(domain.value, source, target) for domain, source, target in self.capabilities()})
        return {
            "slug": self.slug,
            "tool": self.tool,
            "capabilities": [{"domain": d, "source": s, "target": t} for d, s, t in pairs],
        }

    def _run_tool(
        self,
        cmd: Sequence[str],
        context: ConversionContext,
        *,
        cwd: Optional[Path] = None,
    ) -> str:
        """Run an external command bounded by the job deadline; return stdout."""

        if context.cancelled:
            raise JobTimeoutError(f"Job {context.job_id} was cancelled before {cmd[0]} started")

        logger.debug("Running %s", " ".join(cmd))
        try:
            process = subprocess.Popen(
                list(cmd),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=str(cwd) if cwd else None,
            )
        except FileNotFoundError as exc:
            raise AdapterError(f"Executable not found: {cmd[0]}", adapter=self.slug) from exc

        context.attach(process)
        try:
            stdout, stderr = process.communicate(timeout=context.remaining())
        except subprocess.TimeoutExpired as exc:
            process.kill()
            process.communicate()
            raise JobTimeoutError(f"{cmd[0]} exceeded the conversion deadline") from exc
        finally:
            context.detach(process)

        if context.cancelled:
            raise JobTimeoutError(f"{cmd[0]} was terminated after the conversion deadline")
        if process.returncode != 0:
            detail = _tail(stderr) or _tail(stdout)
            raise AdapterError(f"{cmd[0]} exited with code {process.returncode}: {detail}", adapter=self.slug)
        return stdout.decode("utf-8", errors="replace") if stdout else ""

    def _require_input(self, input_path: Path) -> Path:
        path = Path(input_path)
        if not path.exists():
            raise AdapterError(f"Input file not found: {path}", adapter=self.slug)
        return path


def _tail(raw: bytes | None, limit: int = 500) -> str:
    if not raw:
        return ""
    text = raw.decode("utf-8", errors="replace").strip()
    return text[-limit:]
