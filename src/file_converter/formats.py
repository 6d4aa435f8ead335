"""Static format tables: conversion domains and their accepted extensions.

Everything here is pure lookup. Unknown values are classified, never raised,
so callers decide whether an unsupported format is fatal.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import PurePath
from typing import Dict, FrozenSet, Iterable, Optional


class ConversionDomain(str, Enum):
    IMAGE = "image"
    COMPRESSOR = "compressor"
    PDF = "pdf"
    DOCUMENT = "document"
    AUDIO = "audio"
    VIDEO = "video"
    ARCHIVE = "archive"
    EBOOK = "ebook"


DOMAIN_ALIASES: Dict[str, ConversionDomain] = {
    "pdfs": ConversionDomain.PDF,
    "documents": ConversionDomain.DOCUMENT,
    "images": ConversionDomain.IMAGE,
    "compress": ConversionDomain.COMPRESSOR,
}

EXTENSION_ALIASES: Dict[str, str] = {
    "jpeg": "jpg",
    "jpe": "jpg",
    "tif": "tiff",
    "htm": "html",
    "mpg": "mpeg",
    "oga": "ogg",
}

IMAGE_FORMATS = ("bmp", "eps", "ico", "svg", "tga", "wbmp", "jpg", "png", "gif", "webp", "tiff")
TEXT_DOCUMENT_FORMATS = ("doc", "docx", "odt", "rtf", "txt", "html")
PRESENTATION_FORMATS = ("ppt", "pptx", "odp")
SPREADSHEET_FORMATS = ("xls", "xlsx", "ods", "csv")
DOCUMENT_FORMATS = TEXT_DOCUMENT_FORMATS + PRESENTATION_FORMATS + SPREADSHEET_FORMATS
AUDIO_FORMATS = ("aac", "aiff", "m4v", "mmf", "wma", "3g2", "mp3", "wav", "flac", "ogg", "m4a", "opus")
VIDEO_FORMATS = ("mp4", "avi", "mov", "mkv", "webm", "flv", "mpeg", "wmv", "3gp")
ARCHIVE_FORMATS = ("zip", "7z", "tar", "gz", "bz2", "xz")
EBOOK_FORMATS = ("epub", "mobi", "azw3", "fb2")
RASTER_FORMATS = ("jpg", "png", "gif", "bmp", "tiff", "webp")

# Primary family of each extension. Earlier families win for shared names.
_FAMILIES = (
    (ConversionDomain.PDF, ("pdf",)),
    (ConversionDomain.IMAGE, IMAGE_FORMATS),
    (ConversionDomain.DOCUMENT, DOCUMENT_FORMATS),
    (ConversionDomain.AUDIO, AUDIO_FORMATS),
    (ConversionDomain.VIDEO, VIDEO_FORMATS),
    (ConversionDomain.ARCHIVE, ARCHIVE_FORMATS),
    (ConversionDomain.EBOOK, EBOOK_FORMATS),
)

FAMILY_BY_EXTENSION: Dict[str, ConversionDomain] = {}
for _domain, _extensions in _FAMILIES:
    for _ext in _extensions:
        FAMILY_BY_EXTENSION.setdefault(_ext, _domain)


@dataclass(frozen=True)
class DomainSpec:
    domain: ConversionDomain
    inputs: FrozenSet[str]
    outputs: FrozenSet[str]


def _spec(domain: ConversionDomain, inputs: Iterable[str], outputs: Iterable[str]) -> DomainSpec:
    return DomainSpec(domain=domain, inputs=frozenset(inputs), outputs=frozenset(outputs))


SUPPORTED_EXTENSIONS: FrozenSet[str] = frozenset(FAMILY_BY_EXTENSION)

DOMAIN_TABLE: Dict[ConversionDomain, DomainSpec] = {
    spec.domain: spec
    for spec in (
        _spec(ConversionDomain.IMAGE, IMAGE_FORMATS, IMAGE_FORMATS + ("pdf",)),
        _spec(ConversionDomain.COMPRESSOR, ("svg", "jpg", "png"), ("svg", "jpg", "png")),
        _spec(
            ConversionDomain.PDF,
            ("pdf",) + IMAGE_FORMATS + DOCUMENT_FORMATS,
            ("jpg", "png", "gif", "docx", "pdf"),
        ),
        _spec(
            ConversionDomain.DOCUMENT,
            DOCUMENT_FORMATS + ("pdf",),
            ("pdf", "docx", "doc", "odt", "rtf", "txt", "html", "jpg", "png"),
        ),
        _spec(ConversionDomain.AUDIO, AUDIO_FORMATS + VIDEO_FORMATS, AUDIO_FORMATS),
        _spec(ConversionDomain.VIDEO, VIDEO_FORMATS + ("gif",), VIDEO_FORMATS + ("gif",)),
        _spec(ConversionDomain.ARCHIVE, SUPPORTED_EXTENSIONS, ARCHIVE_FORMATS),
        _spec(
            ConversionDomain.EBOOK,
            EBOOK_FORMATS + ("pdf", "docx", "txt", "html", "rtf", "odt"),
            EBOOK_FORMATS + ("pdf", "txt", "docx"),
        ),
    )
}


def normalize_extension(value: str | None) -> str:
    if not value:
        return ""
    ext = value.strip().lower().lstrip(".")
    return EXTENSION_ALIASES.get(ext, ext)


def extension_of(filename: str) -> str:
    """Return the normalized extension of ``filename`` or an empty string."""

    return normalize_extension(PurePath(filename).suffix)


def parse_domain(value: str | ConversionDomain | None) -> Optional[ConversionDomain]:
    if isinstance(value, ConversionDomain):
        return value
    if not value:
        return None
    key = str(value).strip().lower()
    if key in DOMAIN_ALIASES:
        return DOMAIN_ALIASES[key]
    try:
        return ConversionDomain(key)
    except ValueError:
        return None


def domain_for(extension: str) -> Optional[ConversionDomain]:
    """Primary family of an extension, ``None`` when it is unknown."""

    return FAMILY_BY_EXTENSION.get(normalize_extension(extension))


def is_supported_input(extension: str) -> bool:
    return normalize_extension(extension) in SUPPORTED_EXTENSIONS


def is_supported_output(domain: ConversionDomain | str, extension: str) -> bool:
    parsed = parse_domain(domain)
    if parsed is None:
        return False
    return normalize_extension(extension) in DOMAIN_TABLE[parsed].outputs


def accepts_input(domain: ConversionDomain | str, extension: str) -> bool:
    parsed = parse_domain(domain)
    if parsed is None:
        return False
    return normalize_extension(extension) in DOMAIN_TABLE[parsed].inputs


def supported_outputs(domain: ConversionDomain) -> list[str]:
    return sorted(DOMAIN_TABLE[domain].outputs)


def describe_domains() -> Dict[str, Dict[str, list[str]]]:
    return {
        domain.value: {"inputs": sorted(spec.inputs), "outputs": sorted(spec.outputs)}
        for domain, spec in DOMAIN_TABLE.items()
    }
