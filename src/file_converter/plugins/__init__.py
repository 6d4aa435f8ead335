"""Adapter package exports and convenience loaders."""

from __future__ import annotations

from typing import TYPE_CHECKING, List

from .registry import (
    DEFAULT_PLUGIN_MODULES,
    REGISTRY,
    AdapterCatalog,
    load_plugins,
    read_plugin_module_file,
)

if TYPE_CHECKING:  # pragma: no cover - import guard for type checkers
    from file_converter.config import Settings


def _modules_from_settings(settings: "Settings" | None) -> List[str]:
    if not settings:
        return []

    explicit = [module for module in settings.plugin_modules if module]
    if explicit:
        return explicit

    if settings.plugin_modules_file:
        modules = read_plugin_module_file(settings.plugin_modules_file)
        if modules:
            return modules

    return []


def load_plugins_from_settings(settings: "Settings" | None = None) -> None:
    """Load adapter modules defined in settings or fall back to defaults."""

    modules = _modules_from_settings(settings)
    if not modules:
        modules = list(DEFAULT_PLUGIN_MODULES)
    load_plugins(modules)


def build_catalog(settings: "Settings") -> AdapterCatalog:
    load_plugins_from_settings(settings)
    return AdapterCatalog(REGISTRY.create_adapters(settings.tools))


__all__ = [
    "REGISTRY",
    "AdapterCatalog",
    "build_catalog",
    "load_plugins_from_settings",
    "load_plugins",
    "DEFAULT_PLUGIN_MODULES",
]
