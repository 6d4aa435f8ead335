"""Shared adapter utilities."""

from __future__ import annotations

import logging
from pathlib import Path

from pypdf import PdfReader

logger = logging.getLogger(__name__)


def validate_pdf(pdf_path: Path) -> bool:
    """Return True when ``pdf_path`` parses as a PDF with at least one page."""

    try:
        reader = PdfReader(str(pdf_path))
        page_count = len(reader.pages)
    except Exception as exc:  # pypdf raises arbitrary errors on malformed input
        logger.error("PDF validation failed for %s: %s", pdf_path, exc)
        return False
    if page_count == 0:
        logger.error("PDF validation failed for %s: document has no pages", pdf_path)
        return False
    logger.debug("PDF validation successful for %s (%d pages)", pdf_path, page_count)
    return True
