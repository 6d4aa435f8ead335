"""Adapter that packs a single file into an archive via 7-Zip."""

from __future__ import annotations

from pathlib import Path

from ...formats import ARCHIVE_FORMATS, SUPPORTED_EXTENSIONS, ConversionDomain
from ..base import ConversionAdapter, ConversionContext, ConversionResult
from ..registry import REGISTRY

ARCHIVE_TYPES = {
    "zip": "zip",
    "7z": "7z",
    "tar": "tar",
    "gz": "gzip",
    "bz2": "bzip2",
    "xz": "xz",
}


class SevenZipAdapter(ConversionAdapter):
    slug = "7zip"
    tool = "7-Zip"
    domains = (ConversionDomain.ARCHIVE,)
    source_formats = tuple(sorted(SUPPORTED_EXTENSIONS))
    target_formats = ARCHIVE_FORMATS

    def build_command(self, input_path: Path, output_path: Path, target_format: str) -> list[str]:
        return [
            self.tools.sevenzip,
            "a",
            f"-t{ARCHIVE_TYPES[target_format]}",
            "-y",
            "-bd",
            str(output_path),
            str(input_path),
        ]

    def convert(
        self,
        input_path: Path,
        output_path: Path,
        target_format: str,
        context: ConversionContext,
    ) -> ConversionResult:
        input_path = self._require_input(input_path)
        # 7z appends to an existing archive instead of replacing it
        Path(output_path).unlink(missing_ok=True)
        self._run_tool(self.build_command(input_path, Path(output_path), target_format), context)
        return ConversionResult(output_path=Path(output_path), metadata={"note": f"Packed as {target_format} via 7-Zip"})


REGISTRY.register(SevenZipAdapter)
