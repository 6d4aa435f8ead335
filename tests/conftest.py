"""Shared pytest fixtures for the conversion engine tests."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Iterable, List, Optional, Tuple

import pytest

from file_converter.artifacts import ArtifactStore
from file_converter.cleanup import Reclaimer, RetryPolicy
from file_converter.config import (
    BatchLimitSettings,
    CleanupSettings,
    ConversionSettings,
    LoggingSettings,
    Settings,
    StorageSettings,
)
from file_converter.errors import AdapterError
from file_converter.formats import ConversionDomain
from file_converter.plugins.base import ConversionAdapter, ConversionContext, ConversionResult
from file_converter.plugins.registry import AdapterCatalog

Capability = Tuple[ConversionDomain, str, str]


class FakeAdapter(ConversionAdapter):
    """Adapter stand-in that writes deterministic bytes instead of calling a tool."""

    tool = "fake"

    def __init__(
        self,
        slug: str,
        capabilities: Iterable[Capability],
        *,
        behavior: Optional[Callable[[Path, Path, str, ConversionContext], None]] = None,
    ) -> None:
        super().__init__()
        self.slug = slug
        self._capabilities = list(capabilities)
        self._behavior = behavior
        self.calls: List[Tuple[Path, Path, str]] = []

    def capabilities(self):
        return iter(self._capabilities)

    def convert(self, input_path, output_path, target_format, context):
        self.calls.append((Path(input_path), Path(output_path), target_format))
        if self._behavior is not None:
            self._behavior(Path(input_path), Path(output_path), target_format, context)
        else:
            Path(output_path).write_bytes(f"{self.slug}:{target_format}".encode("utf-8"))
        return ConversionResult(output_path=Path(output_path))


def failing_behavior(message: str = "tool crashed"):
    def _fail(input_path, output_path, target_format, context):
        raise AdapterError(message, adapter="fake")

    return _fail


def stalling_behavior(write_first: bool = True):
    """Write partial output, then block until the supervisor cancels the job."""

    def _stall(input_path, output_path, target_format, context):
        if write_first:
            Path(output_path).write_bytes(b"partial")
        context.wait_cancelled(10)

    return _stall


@pytest.fixture()
def test_settings(tmp_path) -> Settings:
    return Settings(
        service_name="file-conversion-engine-test",
        environment="test",
        storage=StorageSettings(
            intake_dir=str(tmp_path / "uploads"),
            converted_dir=str(tmp_path / "converted"),
            retention_hours=24,
        ),
        limits=BatchLimitSettings(max_files_per_batch=5, max_file_size_mb=1),
        conversion=ConversionSettings(timeout_sec=5, cancel_grace_sec=1, max_stages=2),
        cleanup=CleanupSettings(max_attempts=3, retry_delay_sec=0),
        logging=LoggingSettings(log_dir=str(tmp_path / "logs")),
        plugin_modules_file=None,
    )


@pytest.fixture()
def store(test_settings) -> ArtifactStore:
    artifact_store = ArtifactStore(test_settings.storage.intake_dir, test_settings.storage.converted_dir)
    artifact_store.ensure_directories()
    return artifact_store


@pytest.fixture()
def sleeps() -> List[float]:
    return []


@pytest.fixture()
def reclaimer(sleeps) -> Reclaimer:
    return Reclaimer(RetryPolicy(max_attempts=3, delay_sec=1.0), sleep=sleeps.append)


@pytest.fixture()
def fake_adapters():
    """Catalog mirroring the builtin topology: no direct docx->jpg, pdf rendering in the pdf domain."""

    image = FakeAdapter(
        "fake-image",
        [
            (ConversionDomain.IMAGE, "jpg", "png"),
            (ConversionDomain.IMAGE, "png", "jpg"),
            (ConversionDomain.IMAGE, "png", "gif"),
            (ConversionDomain.IMAGE, "jpg", "pdf"),
        ],
    )
    office = FakeAdapter(
        "fake-office",
        [
            (ConversionDomain.DOCUMENT, "docx", "pdf"),
            (ConversionDomain.DOCUMENT, "pdf", "pdf"),
            (ConversionDomain.DOCUMENT, "pdf", "docx"),
            (ConversionDomain.PDF, "docx", "pdf"),
        ],
    )
    render = FakeAdapter(
        "fake-render",
        [
            (ConversionDomain.PDF, "pdf", "png"),
            (ConversionDomain.PDF, "pdf", "jpg"),
        ],
    )
    media = FakeAdapter("fake-media", [(ConversionDomain.AUDIO, "wav", "mp3")])
    return {"image": image, "office": office, "render": render, "media": media}


@pytest.fixture()
def catalog(fake_adapters) -> AdapterCatalog:
    return AdapterCatalog(fake_adapters.values())


@pytest.fixture()
def make_upload(store) -> Callable[..., Path]:
    """Write a file into the intake dir the way the upload layer would."""

    def _make(name: str, payload: bytes = b"upload-bytes") -> Path:
        path = store.intake_dir / f"upload-{name}"
        path.write_bytes(payload)
        return path

    return _make
