"""Artifact paths and ownership inside the intake and converted directories."""

from __future__ import annotations

import logging
import re
import threading
import time
from itertools import count
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .errors import ValidationError
from .models import Artifact, ArtifactKind, ConversionRequest

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")
STAGING_PREFIX = ".staging-"


def safe_stem(filename: str, fallback: str = "file") -> str:
    stem = Path(filename).stem
    cleaned = _UNSAFE_CHARS.sub("_", stem).strip("._")
    return cleaned[:80] or fallback


class ArtifactStore:
    """Generates collision-free paths and remembers which job owns what.

    Names combine the input's base name, a millisecond timestamp and the
    request identity, so concurrent batches never share a path.
    """

    def __init__(self, intake_dir: str | Path, converted_dir: str | Path) -> None:
        self.intake_dir = Path(intake_dir).resolve()
        self.converted_dir = Path(converted_dir).resolve()
        self._lock = threading.Lock()
        self._sequence = count()
        self._artifacts: Dict[Path, Artifact] = {}

    def ensure_directories(self) -> None:
        for directory in (self.intake_dir, self.converted_dir):
            directory.mkdir(parents=True, exist_ok=True)
        logger.debug("Artifact directories ready: %s, %s", self.intake_dir, self.converted_dir)

    def _unique_suffix(self, identity: str) -> str:
        millis = int(time.time() * 1000)
        return f"{millis}_{identity[:12]}{next(self._sequence):x}"

    def output_path(self, request: ConversionRequest) -> Path:
        name = f"{safe_stem(request.original_name)}_{self._unique_suffix(request.request_id)}.{request.target_format}"
        return self.converted_dir / name

    def intermediate_path(self, request: ConversionRequest, extension: str, stage_index: int) -> Path:
        name = (
            f"{safe_stem(request.original_name)}_{self._unique_suffix(request.request_id)}"
            f"_stage{stage_index}.{extension}"
        )
        return self.intake_dir / name

    def staging_path(self, output_path: Path) -> Path:
        """Hidden sibling written by the final stage, renamed on completion."""

        return output_path.with_name(f"{STAGING_PREFIX}{output_path.name}")

    def intake_path(self, original_name: str, identity: str, *, extension: str | None = None) -> Path:
        suffix = f".{extension}" if extension else Path(original_name).suffix.lower()
        return self.intake_dir / f"{safe_stem(original_name)}_{self._unique_suffix(identity)}{suffix}"

    def resolve_output(self, filename: str) -> Path:
        """Map a caller-supplied output name to a path inside the converted dir."""

        candidate = (self.converted_dir / filename).resolve()
        if candidate.parent != self.converted_dir or not filename or filename.startswith("."):
            raise ValidationError(
                f"Invalid output reference: {filename}",
                code="ERR_OUTPUT_NOT_FOUND",
                filename=filename,
            )
        return candidate

    def register(self, path: Path, kind: ArtifactKind, owner: str) -> Artifact:
        artifact = Artifact(path=Path(path), kind=kind, owner=owner)
        with self._lock:
            self._artifacts[artifact.path] = artifact
        return artifact

    def release(self, artifacts: Iterable[Artifact]) -> None:
        with self._lock:
            for artifact in artifacts:
                self._artifacts.pop(artifact.path, None)

    def owned_by(self, owner: str, kind: Optional[ArtifactKind] = None) -> List[Artifact]:
        with self._lock:
            return [
                artifact
                for artifact in self._artifacts.values()
                if artifact.owner == owner and (kind is None or artifact.kind is kind)
            ]

    def get(self, path: Path) -> Optional[Artifact]:
        with self._lock:
            return self._artifacts.get(Path(path))
