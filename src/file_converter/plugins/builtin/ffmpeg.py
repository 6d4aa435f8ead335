"""Adapter converting audio and video containers via FFmpeg."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List

from ...errors import AdapterError
from ...formats import AUDIO_FORMATS, VIDEO_FORMATS, ConversionDomain
from ..base import ConversionAdapter, ConversionContext, ConversionResult
from ..registry import REGISTRY

AUDIO_CODECS: Dict[str, List[str]] = {
    "mp3": ["-c:a", "libmp3lame", "-q:a", "2"],
    "aac": ["-c:a", "aac", "-b:a", "192k"],
    "m4a": ["-c:a", "aac", "-b:a", "192k"],
    "m4v": ["-c:a", "aac", "-b:a", "192k", "-f", "mp4"],
    "3g2": ["-c:a", "aac", "-b:a", "64k", "-ar", "22050"],
    "wav": ["-c:a", "pcm_s16le"],
    "aiff": ["-c:a", "pcm_s16be"],
    "flac": ["-c:a", "flac"],
    "ogg": ["-c:a", "libvorbis", "-q:a", "5"],
    "opus": ["-c:a", "libopus", "-b:a", "128k"],
    "wma": ["-c:a", "wmav2", "-b:a", "192k"],
    "mmf": ["-c:a", "adpcm_yamaha", "-ar", "16000", "-ac", "1"],
}

VIDEO_CODECS: Dict[str, List[str]] = {
    "mp4": ["-c:v", "libx264", "-preset", "fast", "-crf", "23", "-c:a", "aac", "-b:a", "192k", "-movflags", "faststart"],
    "mov": ["-c:v", "libx264", "-preset", "fast", "-crf", "23", "-c:a", "aac", "-b:a", "192k"],
    "mkv": ["-c:v", "libx264", "-preset", "fast", "-crf", "23", "-c:a", "aac", "-b:a", "192k"],
    "3gp": ["-c:v", "libx264", "-profile:v", "baseline", "-c:a", "aac", "-b:a", "64k", "-ar", "22050"],
    "webm": ["-c:v", "libvpx-vp9", "-crf", "32", "-b:v", "0", "-c:a", "libopus"],
    "avi": ["-c:v", "mpeg4", "-q:v", "5", "-c:a", "libmp3lame", "-q:a", "4"],
    "flv": ["-c:v", "flv1", "-c:a", "libmp3lame", "-ar", "44100"],
    "mpeg": ["-c:v", "mpeg2video", "-q:v", "5", "-c:a", "mp2", "-f", "mpeg"],
    "wmv": ["-c:v", "wmv2", "-q:v", "5", "-c:a", "wmav2"],
    "gif": ["-vf", "fps=10,scale=480:-1:flags=lanczos", "-an", "-loop", "0"],
}

# Encoders that reject odd frame sizes or palette input
_YUV420_TARGETS = {"mp4", "mov", "mkv", "3gp"}


class FfmpegAdapter(ConversionAdapter):
    slug = "ffmpeg"
    tool = "FFmpeg"

    def capabilities(self):
        for source in AUDIO_FORMATS + VIDEO_FORMATS:
            for target in AUDIO_FORMATS:
                yield ConversionDomain.AUDIO, source, target
        for source in VIDEO_FORMATS + ("gif",):
            for target in VIDEO_FORMATS + ("gif",):
                yield ConversionDomain.VIDEO, source, target

    def build_command(
        self,
        input_path: Path,
        output_path: Path,
        target_format: str,
        duration_seconds: float | None = None,
    ) -> list[str]:
        cmd = [self.tools.ffmpeg, "-y", "-hide_banner", "-loglevel", "error", "-i", str(input_path)]
        if target_format in AUDIO_CODECS:
            cmd += ["-vn", *AUDIO_CODECS[target_format]]
        elif target_format in VIDEO_CODECS:
            if target_format in _YUV420_TARGETS:
                cmd += ["-vf", "scale=ceil(iw/2)*2:ceil(ih/2)*2", "-pix_fmt", "yuv420p"]
            cmd += VIDEO_CODECS[target_format]
        else:
            raise AdapterError(f"No codec settings for {target_format}", adapter=self.slug)
        if duration_seconds:
            cmd += ["-t", str(duration_seconds)]
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
        duration = context.metadata.get("duration_seconds")
        self._run_tool(self.build_command(input_path, Path(output_path), target_format, duration), context)

        metadata = {"note": f"Converted {input_path.suffix.lstrip('.')}->{target_format} via FFmpeg"}
        return ConversionResult(output_path=Path(output_path), metadata=metadata)


REGISTRY.register(FfmpegAdapter)
