"""Adapter that uses calibre's ebook-convert for e-book formats."""

from __future__ import annotations

from pathlib import Path

from ...formats import EBOOK_FORMATS, ConversionDomain
from ..base import ConversionAdapter, ConversionContext, ConversionResult
from ..registry import REGISTRY


class CalibreAdapter(ConversionAdapter):
    slug = "calibre"
    tool = "ebook-convert"
    domains = (ConversionDomain.EBOOK,)
    source_formats = EBOOK_FORMATS + ("pdf", "docx", "txt", "html", "rtf", "odt")
    target_formats = EBOOK_FORMATS + ("pdf", "txt", "docx")

    def convert(
        self,
        input_path: Path,
        output_path: Path,
        target_format: str,
        context: ConversionContext,
    ) -> ConversionResult:
        input_path = self._require_input(input_path)
        cmd = [self.tools.ebook_convert, str(input_path), str(output_path)]
        self._run_tool(cmd, context)
        return ConversionResult(output_path=Path(output_path), metadata={"note": "Converted via calibre ebook-convert"})


REGISTRY.register(CalibreAdapter)
