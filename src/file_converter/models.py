"""Data model shared by the router, supervisor and batch coordinator."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import uuid4

from .errors import ConversionError, RoutingError
from .formats import ConversionDomain, extension_of

if TYPE_CHECKING:  # pragma: no cover - import guard for type checkers
    from .plugins.base import ConversionAdapter


@dataclass
class ConversionRequest:
    input_path: Path
    original_name: str
    domain: ConversionDomain
    target_format: str
    sub_section: str | None = None
    request_id: str = field(default_factory=lambda: uuid4().hex)

    @property
    def input_format(self) -> str:
        return extension_of(self.original_name)


@dataclass(frozen=True)
class Stage:
    domain: ConversionDomain
    source_format: str
    target_format: str
    adapter: "ConversionAdapter"

    def describe(self) -> Dict[str, str]:
        return {
            "domain": self.domain.value,
            "source": self.source_format,
            "target": self.target_format,
            "adapter": self.adapter.slug,
        }


@dataclass
class ConversionPlan:
    request: ConversionRequest
    stages: List[Stage]

    def __post_init__(self) -> None:
        if not self.stages:
            raise RoutingError("Conversion plan has no stages", filename=self.request.original_name)
        if self.stages[0].source_format != self.request.input_format:
            raise RoutingError(
                f"Plan starts at {self.stages[0].source_format}, input is {self.request.input_format}",
                filename=self.request.original_name,
            )
        for current, following in zip(self.stages, self.stages[1:]):
            if current.target_format != following.source_format:
                raise RoutingError(
                    f"Broken plan: {current.target_format} does not feed {following.source_format}",
                    filename=self.request.original_name,
                )
        if self.stages[-1].target_format != self.request.target_format:
            raise RoutingError(
                f"Plan ends at {self.stages[-1].target_format}, expected {self.request.target_format}",
                filename=self.request.original_name,
            )

    @property
    def is_chained(self) -> bool:
        return len(self.stages) > 1

    def describe(self) -> List[Dict[str, str]]:
        return [stage.describe() for stage in self.stages]


class ArtifactKind(str, Enum):
    INPUT = "input"
    INTERMEDIATE = "intermediate"
    OUTPUT = "output"


@dataclass(frozen=True)
class Artifact:
    path: Path
    kind: ArtifactKind
    owner: str
    created_at: float = field(default_factory=time.time)

    @property
    def name(self) -> str:
        return self.path.name


class JobStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    TIMEOUT = "timeout"


@dataclass
class JobResult:
    status: JobStatus
    request: ConversionRequest
    output: Optional[Artifact] = None
    error: Optional[ConversionError] = None
    stages: List[Dict[str, str]] = field(default_factory=list)
    elapsed_sec: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status is JobStatus.SUCCESS

    @property
    def error_kind(self) -> str | None:
        return self.error.kind if self.error else None

    @property
    def message(self) -> str | None:
        return self.error.message if self.error else None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "filename": self.request.original_name,
            "domain": self.request.domain.value,
            "source": self.request.input_format,
            "target": self.request.target_format,
            "status": self.status.value,
            "stages": self.stages,
            "elapsed_sec": round(self.elapsed_sec, 3),
        }
        if self.output is not None:
            payload["name"] = self.output.name
            payload["path"] = f"/converted/{self.output.name}"
        if self.error is not None:
            payload["error"] = self.error.to_payload()
        return payload


class BatchStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failure"


@dataclass
class BatchResult:
    batch_id: str
    status: BatchStatus
    results: List[JobResult] = field(default_factory=list)
    error: Optional[ConversionError] = None

    @property
    def ok(self) -> bool:
        return self.status is BatchStatus.SUCCESS

    @property
    def outputs(self) -> List[Artifact]:
        return [result.output for result in self.results if result.output is not None]

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "batch_id": self.batch_id,
            "status": self.status.value,
            "files": [result.to_payload() for result in self.results],
        }
        if self.error is not None:
            payload["error"] = self.error.to_payload()
        return payload
