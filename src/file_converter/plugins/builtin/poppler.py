"""Adapter that renders the first pdf page to jpg/png/gif via poppler's pdftoppm."""

from __future__ import annotations

import shutil
from pathlib import Path
from tempfile import TemporaryDirectory

from ...errors import AdapterError
from ...formats import ConversionDomain
from ..base import ConversionAdapter, ConversionContext, ConversionResult
from ..registry import REGISTRY

# pdftoppm has no gif writer; gif is rendered as png and re-encoded.
_RENDERED_AS = {"jpg": "jpg", "png": "png", "gif": "png"}
_FORMAT_FLAGS = {"jpg": "-jpeg", "png": "-png"}


class PopplerRenderAdapter(ConversionAdapter):
    slug = "poppler"
    tool = "pdftoppm"
    domains = (ConversionDomain.PDF,)
    source_formats = ("pdf",)
    target_formats = ("jpg", "png", "gif")

    def build_command(self, input_path: Path, output_prefix: Path, target_format: str) -> list[str]:
        return [
            self.tools.pdftoppm,
            _FORMAT_FLAGS[_RENDERED_AS[target_format]],
            "-singlefile",
            "-r",
            str(self.tools.pdf_render_dpi),
            str(input_path),
            str(output_prefix),
        ]

    def convert(
        self,
        input_path: Path,
        output_path: Path,
        target_format: str,
        context: ConversionContext,
    ) -> ConversionResult:
        input_path = self._require_input(input_path)
        if target_format not in _RENDERED_AS:
            raise AdapterError(f"pdftoppm cannot render {target_format}", adapter=self.slug)

        rendered = _RENDERED_AS[target_format]
        with TemporaryDirectory() as tmpdir:
            output_prefix = Path(tmpdir) / "page"
            self._run_tool(self.build_command(input_path, output_prefix, target_format), context)

            generated = output_prefix.with_name(f"{output_prefix.name}.{rendered}")
            if not generated.exists():
                raise AdapterError(f"PDF to image output not found: {generated.name}", adapter=self.slug)
            if rendered == target_format:
                shutil.move(str(generated), str(output_path))
            else:
                self._run_tool([self.tools.imagemagick, str(generated), f"GIF:{output_path}"], context)

        metadata = {"note": "Rendered first page via pdftoppm", "dpi": self.tools.pdf_render_dpi}
        return ConversionResult(output_path=Path(output_path), metadata=metadata)


REGISTRY.register(PopplerRenderAdapter)
