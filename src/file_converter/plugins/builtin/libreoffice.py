"""Adapter that uses LibreOffice to convert office documents."""

from __future__ import annotations

import shutil
from pathlib import Path
from tempfile import TemporaryDirectory

from ...errors import AdapterError
from ...formats import (
    DOCUMENT_FORMATS,
    PRESENTATION_FORMATS,
    SPREADSHEET_FORMATS,
    TEXT_DOCUMENT_FORMATS,
    ConversionDomain,
)
from ..base import ConversionAdapter, ConversionContext, ConversionResult
from ..registry import REGISTRY

TEXT_TARGETS = ("pdf", "docx", "doc", "odt", "rtf", "txt", "html")

# Explicit export filters where soffice cannot infer one from the extension.
EXPORT_FILTERS = {
    "docx": "docx:MS Word 2007 XML",
    "doc": "doc:MS Word 97",
    "txt": "txt:Text (encoded):UTF8",
    "html": "html:XHTML Writer File:UTF8",
}


class LibreOfficeAdapter(ConversionAdapter):
    slug = "libreoffice"
    tool = "LibreOffice"

    def capabilities(self):
        document = ConversionDomain.DOCUMENT
        for source in TEXT_DOCUMENT_FORMATS:
            for target in TEXT_TARGETS:
                yield document, source, target
        for source in PRESENTATION_FORMATS:
            yield document, source, "pdf"
        for source in SPREADSHEET_FORMATS:
            yield document, source, "pdf"
            yield document, source, "html"
        # pdf opens in Writer through the import filter
        for target in TEXT_TARGETS:
            yield document, "pdf", target

        for source in DOCUMENT_FORMATS:
            yield ConversionDomain.PDF, source, "pdf"
        yield ConversionDomain.PDF, "pdf", "docx"
        yield ConversionDomain.PDF, "pdf", "pdf"

    def build_command(
        self,
        input_path: Path,
        outdir: Path,
        target_format: str,
        profile_dir: Path,
        source_format: str | None = None,
    ) -> list[str]:
        source_format = source_format or input_path.suffix.lower().lstrip(".")
        cmd = [
            self.tools.soffice,
            "--headless",
            "--norestore",
            f"-env:UserInstallation={profile_dir.as_uri()}",
        ]
        if source_format == "pdf" and target_format != "pdf":
            cmd.append("--infilter=writer_pdf_import")
        cmd += [
            "--convert-to",
            EXPORT_FILTERS.get(target_format, target_format),
            "--outdir",
            str(outdir),
            str(input_path),
        ]
        return cmd

    def convert(
        self,
        input_path: Path,
        output_path: Path,
        target_format: str,
        context: ConversionContext,
    ) -> ConversionResult:
        input_path = self._require_input(input_path)

        # isolated profile so concurrent soffice processes do not share a lock
        with TemporaryDirectory() as tmpdir, TemporaryDirectory() as profile_dir:
            tmpdir_path = Path(tmpdir)
            cmd = self.build_command(
                input_path, tmpdir_path, target_format, Path(profile_dir), context.source_format
            )
            self._run_tool(cmd, context)

            output_candidate = tmpdir_path / f"{input_path.stem}.{target_format}"
            if not output_candidate.exists():
                raise AdapterError("LibreOffice conversion did not produce output", adapter=self.slug)
            shutil.move(str(output_candidate), str(output_path))

        return ConversionResult(output_path=Path(output_path), metadata={"note": "Converted via LibreOffice soffice"})


REGISTRY.register(LibreOfficeAdapter)
