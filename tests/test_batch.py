"""Tests for batch validation and sequential execution."""

from __future__ import annotations

import io
import re

import pytest
from pypdf import PdfWriter

from file_converter.batch import BatchCoordinator, FormatSpec, UploadedFile
from file_converter.errors import ValidationError
from file_converter.formats import ConversionDomain
from file_converter.models import BatchStatus, JobStatus
from file_converter.plugins.registry import AdapterCatalog
from file_converter.router import PipelineRouter
from file_converter.supervisor import JobSupervisor

from .conftest import FakeAdapter, failing_behavior


def _coordinator(store, reclaimer, catalog) -> BatchCoordinator:
    supervisor = JobSupervisor(store, reclaimer, timeout_sec=5, cancel_grace_sec=1)
    return BatchCoordinator(
        store,
        PipelineRouter(catalog),
        supervisor,
        reclaimer,
        max_files=5,
        max_file_size_mb=1,
    )


@pytest.fixture()
def coordinator(store, reclaimer, catalog) -> BatchCoordinator:
    return _coordinator(store, reclaimer, catalog)


def _uploads(make_upload, *names):
    return [UploadedFile(path=make_upload(name), original_name=name) for name in names]


def _blank_pdf() -> bytes:
    writer = PdfWriter()
    writer.add_blank_page(width=200, height=200)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


def test_count_mismatch_cites_both_counts_without_touching_files(coordinator, store, make_upload, fake_adapters):
    files = _uploads(make_upload, "a.jpg", "b.jpg", "c.jpg")
    formats = [{"type": "image", "target": "png"}] * 2

    result = coordinator.process_batch(files, formats)

    assert result.status is BatchStatus.FAILED
    assert isinstance(result.error, ValidationError)
    assert result.error.code == "ERR_BATCH_MISMATCH"
    assert result.error.message == "Mismatch between files (3) and formats (2)"
    assert result.results == []
    assert all(upload.path.exists() for upload in files)
    assert list(store.converted_dir.iterdir()) == []
    assert fake_adapters["image"].calls == []


def test_more_than_five_files_is_rejected(coordinator, make_upload):
    files = _uploads(make_upload, *[f"f{i}.jpg" for i in range(6)])
    result = coordinator.process_batch(files, [{"type": "image", "target": "png"}] * 6)

    assert result.error.code == "ERR_BATCH_LIMIT_EXCEEDED"
    assert result.error.message == "Maximum 5 files allowed."


def test_empty_batch_is_rejected(coordinator):
    result = coordinator.process_batch([], [])
    assert result.error.code == "ERR_BATCH_LIMIT_EXCEEDED"


@pytest.mark.parametrize(
    ("descriptor", "code"),
    [
        ({"target": "png"}, "ERR_FIELD_MISSING"),
        ({"type": "image", "target": ""}, "ERR_FIELD_MISSING"),
        ({"type": "spreadsheet", "target": "png"}, "ERR_FORMAT_UNSUPPORTED"),
        ({"type": "image", "target": "mp3"}, "ERR_FORMAT_UNSUPPORTED"),
        ({"type": "audio", "target": "mp3"}, "ERR_FORMAT_UNSUPPORTED"),
    ],
)
def test_invalid_descriptor_fails_fast_before_any_conversion(coordinator, make_upload, fake_adapters, descriptor, code):
    files = _uploads(make_upload, "ok.jpg", "bad.jpg")
    formats = [{"type": "image", "target": "png"}, descriptor]

    result = coordinator.process_batch(files, formats)

    assert result.error.code == code
    assert result.error.filename == "bad.jpg"
    assert fake_adapters["image"].calls == []
    assert result.to_payload()["error"]["error_kind"] == "validation"


def test_oversized_file_is_rejected(coordinator, make_upload):
    files = [UploadedFile(make_upload("big.jpg", b"x" * (1024 * 1024 + 1)), "big.jpg")]
    result = coordinator.process_batch(files, [{"type": "image", "target": "png"}])
    assert result.error.code == "ERR_FILE_TOO_LARGE"


def test_missing_upload_is_rejected(coordinator, store):
    files = [UploadedFile(store.intake_dir / "never-written.jpg", "a.jpg")]
    result = coordinator.process_batch(files, [{"type": "image", "target": "png"}])
    assert result.error.code == "ERR_INPUT_INVALID"


def test_unroutable_file_prevents_execution_of_earlier_files(coordinator, make_upload, fake_adapters):
    files = _uploads(make_upload, "a.jpg", "b.wav")
    formats = [{"type": "image", "target": "png"}, {"type": "audio", "target": "ogg"}]

    result = coordinator.process_batch(files, formats)

    assert result.error.kind == "routing"
    assert result.error.filename == "b.wav"
    assert fake_adapters["image"].calls == []


def test_image_batch_produces_named_output_and_deletes_upload(coordinator, store, make_upload):
    files = _uploads(make_upload, "a.jpg")

    result = coordinator.process_batch(files, [{"type": "image", "target": "png"}], batch_id="batch-1")

    assert result.ok
    assert len(result.outputs) == 1
    output = result.outputs[0]
    assert re.fullmatch(r"a_\d+_[0-9a-f]+\.png", output.name)
    assert output.path.exists()
    assert not files[0].path.exists()
    assert sorted(p.name for p in store.converted_dir.iterdir()) == [output.name]
    assert list(store.intake_dir.iterdir()) == []

    payload = result.to_payload()
    assert payload["batch_id"] == "batch-1"
    assert payload["status"] == "success"
    assert payload["files"][0]["path"] == f"/converted/{output.name}"


def test_chained_document_batch_leaves_only_final_output(coordinator, store, make_upload):
    files = _uploads(make_upload, "a.docx")

    result = coordinator.process_batch(files, [{"type": "document", "target": "jpg"}])

    assert result.ok
    assert [stage["adapter"] for stage in result.results[0].stages] == ["fake-office", "fake-render"]
    assert [p.suffix for p in store.converted_dir.iterdir()] == [".jpg"]
    assert list(store.intake_dir.iterdir()) == []


def test_results_follow_request_order(coordinator, make_upload):
    files = _uploads(make_upload, "b.png", "a.jpg")
    formats = [{"type": "image", "target": "jpg"}, {"domain": "image", "target": "png"}]

    result = coordinator.process_batch(files, formats)

    assert [r.request.original_name for r in result.results] == ["b.png", "a.jpg"]
    assert [o.path.suffix for o in result.outputs] == [".jpg", ".png"]


def test_first_failure_aborts_batch_but_keeps_prior_outputs(store, reclaimer, fake_adapters, make_upload):
    broken = FakeAdapter("broken-render", [(ConversionDomain.PDF, "pdf", "jpg")], behavior=failing_behavior())
    catalog = AdapterCatalog([fake_adapters["image"], fake_adapters["office"], broken])
    coordinator = _coordinator(store, reclaimer, catalog)
    files = _uploads(make_upload, "a.jpg", "b.docx", "c.jpg")
    formats = [
        {"type": "image", "target": "png"},
        {"type": "document", "target": "jpg"},
        {"type": "image", "target": "png"},
    ]

    result = coordinator.process_batch(files, formats)

    assert result.status is BatchStatus.FAILED
    assert [r.status for r in result.results] == [JobStatus.SUCCESS, JobStatus.FAILED]
    assert result.error.kind == "adapter"
    assert result.error.filename == "b.docx"
    assert result.outputs[0].path.exists()
    assert len(fake_adapters["image"].calls) == 1
    assert all(not upload.path.exists() for upload in files)
    assert list(store.intake_dir.iterdir()) == []


def test_corrupted_pdf_is_rejected_for_pdf_domain(coordinator, store, make_upload, fake_adapters):
    files = [UploadedFile(make_upload("scan.pdf", b"%PDF-1.4 not really"), "scan.pdf")]

    result = coordinator.process_batch(files, [{"type": "pdfs", "target": "png"}])

    assert result.status is BatchStatus.FAILED
    assert result.error.code == "ERR_INPUT_INVALID"
    assert fake_adapters["render"].calls == []
    assert not files[0].path.exists()


def test_valid_pdf_is_converted_in_pdf_domain(coordinator, make_upload):
    files = [UploadedFile(make_upload("scan.pdf", _blank_pdf()), "scan.pdf")]

    result = coordinator.process_batch(files, [{"type": "pdf", "target": "png"}])

    assert result.ok
    assert result.outputs[0].path.suffix == ".png"


def test_sub_section_reaches_the_adapter(store, reclaimer, make_upload):
    seen = []

    def _capture(input_path, output_path, target_format, context):
        seen.append(context.sub_section)
        output_path.write_bytes(b"compressed")

    squeeze = FakeAdapter("squeeze", [(ConversionDomain.COMPRESSOR, "jpg", "jpg")], behavior=_capture)
    coordinator = _coordinator(store, reclaimer, AdapterCatalog([squeeze]))

    result = coordinator.process_batch(
        _uploads(make_upload, "photo.jpg"),
        [{"type": "compressor", "target": "jpg", "subSection": "strong"}],
    )

    assert result.ok
    assert seen == ["strong"]


def test_format_spec_accepts_both_key_styles():
    assert FormatSpec.from_mapping({"type": "pdfs", "target": "PNG", "subSection": "x"}) == FormatSpec("pdfs", "PNG", "x")
    assert FormatSpec.from_mapping({"domain": "image", "target": "png", "sub_section": None}) == FormatSpec("image", "png")
    with pytest.raises(ValidationError) as exc:
        FormatSpec.from_mapping({"type": "image", "target": "null"})
    assert exc.value.code == "ERR_FIELD_MISSING"
