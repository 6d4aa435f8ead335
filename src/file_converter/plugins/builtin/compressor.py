"""Adapter that shrinks svg/jpg/png files without changing their format."""

from __future__ import annotations

from pathlib import Path

from ...formats import ConversionDomain
from ..base import ConversionAdapter, ConversionContext, ConversionResult
from ..registry import REGISTRY

QUALITY_LEVELS = {"light": 85, "balanced": 75, "strong": 60}
DEFAULT_LEVEL = "balanced"


class CompressorAdapter(ConversionAdapter):
    slug = "compressor"
    tool = "ImageMagick/svgo"

    def capabilities(self):
        for fmt in ("svg", "jpg", "png"):
            yield ConversionDomain.COMPRESSOR, fmt, fmt

    @staticmethod
    def quality_for(sub_section: str | None) -> int:
        level = (sub_section or DEFAULT_LEVEL).strip().lower()
        return QUALITY_LEVELS.get(level, QUALITY_LEVELS[DEFAULT_LEVEL])

    def build_command(self, input_path: Path, output_path: Path, target_format: str, sub_section: str | None) -> list[str]:
        if target_format == "svg":
            return [self.tools.svgo, "--multipass", "-i", str(input_path), "-o", str(output_path)]

        quality = self.quality_for(sub_section)
        cmd = [self.tools.imagemagick, str(input_path), "-strip"]
        if target_format == "png":
            # zlib level 9, adaptive filtering
            cmd += ["-define", "png:compression-level=9", "-quality", "95"]
        else:
            cmd += ["-sampling-factor", "4:2:0", "-interlace", "JPEG", "-quality", str(quality)]
        cmd.append(str(output_path))
        return cmd

    def convert(
        self,
        input_path: Path,
        output_path: Path,
        target_format: str,
        context: ConversionContext,
    ) -> ConversionResult:
        input_path = self._require_input(input_path)
        cmd = self.build_command(input_path, Path(output_path), target_format, context.sub_section)
        self._run_tool(cmd, context)

        original_size = input_path.stat().st_size
        compressed_size = Path(output_path).stat().st_size if Path(output_path).exists() else 0
        metadata = {
            "note": f"Compressed via {cmd[0]}",
            "original_bytes": original_size,
            "compressed_bytes": compressed_size,
        }
        return ConversionResult(output_path=Path(output_path), metadata=metadata)


REGISTRY.register(CompressorAdapter)
