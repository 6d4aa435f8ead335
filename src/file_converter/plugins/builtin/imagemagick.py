"""Adapter that uses ImageMagick to convert between image formats and to pdf."""

from __future__ import annotations

from pathlib import Path

from ...formats import IMAGE_FORMATS, RASTER_FORMATS, ConversionDomain
from ..base import ConversionAdapter, ConversionContext, ConversionResult
from ..registry import REGISTRY

# Formats that hold several frames/pages; only the first is kept when the
# target cannot represent more than one.
_MULTI_FRAME = {"gif", "tiff", "ico"}
_MULTI_FRAME_TARGETS = {"gif", "tiff", "pdf"}


class ImageMagickAdapter(ConversionAdapter):
    slug = "imagemagick"
    tool = "ImageMagick"

    def capabilities(self):
        for source in IMAGE_FORMATS:
            for target in IMAGE_FORMATS + ("pdf",):
                yield ConversionDomain.IMAGE, source, target
        for source in RASTER_FORMATS:
            yield ConversionDomain.PDF, source, "pdf"

    def build_command(
        self,
        input_path: Path,
        output_path: Path,
        target_format: str,
        source_format: str | None = None,
    ) -> list[str]:
        source = str(input_path)
        source_format = source_format or input_path.suffix.lower().lstrip(".")
        if source_format in _MULTI_FRAME and target_format not in _MULTI_FRAME_TARGETS:
            source = f"{source}[0]"

        cmd = [self.tools.imagemagick, source]
        if target_format == "pdf":
            # A4 at 72dpi, image centered on the page
            cmd += ["-resize", "595x842>", "-gravity", "center", "-extent", "595x842", "-units", "PixelsPerInch", "-density", "72"]
        elif target_format in {"jpg", "bmp", "wbmp"}:
            cmd += ["-background", "white", "-flatten"]
        if target_format == "wbmp":
            cmd += ["-monochrome"]
        if target_format == "ico":
            cmd += ["-resize", "256x256>"]
        cmd.append(f"{target_format.upper()}:{output_path}")
        return cmd

    def convert(
        self,
        input_path: Path,
        output_path: Path,
        target_format: str,
        context: ConversionContext,
    ) -> ConversionResult:
        input_path = self._require_input(input_path)
        cmd = self.build_command(input_path, Path(output_path), target_format, context.source_format)
        self._run_tool(cmd, context)
        return ConversionResult(output_path=Path(output_path), metadata={"note": "Converted via ImageMagick"})


REGISTRY.register(ImageMagickAdapter)
