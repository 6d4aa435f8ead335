"""File conversion orchestration engine package."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
	from .config import Settings
	from .service import ConversionEngine


def build_engine(settings: "Settings | None" = None) -> "ConversionEngine":
	from .service import build_engine as _build_engine

	return _build_engine(settings)


__all__ = ["build_engine"]
