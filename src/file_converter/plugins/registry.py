"""Adapter registry and capability lookup."""

from __future__ import annotations

from importlib import import_module
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple, Type

import yaml

from ..config import ToolSettings
from ..formats import ConversionDomain, normalize_extension
from .base import ConversionAdapter


DEFAULT_PLUGIN_MODULES: Sequence[str] = (
    "file_converter.plugins.builtin.imagemagick",
    "file_converter.plugins.builtin.compressor",
    "file_converter.plugins.builtin.libreoffice",
    "file_converter.plugins.builtin.poppler",
    "file_converter.plugins.builtin.ffmpeg",
    "file_converter.plugins.builtin.archive",
    "file_converter.plugins.builtin.calibre",
)


class PluginRegistry:
    def __init__(self) -> None:
        self._registry: Dict[str, Type[ConversionAdapter]] = {}

    def register(self, adapter_cls: Type[ConversionAdapter]) -> None:
        key = adapter_cls.slug or adapter_cls.__name__.lower()
        if key in self._registry:
            raise ValueError(f"Adapter already registered for {key}")
        self._registry[key] = adapter_cls

    def get(self, slug: str) -> Type[ConversionAdapter]:
        if slug not in self._registry:
            raise KeyError(f"No adapter registered as {slug}")
        return self._registry[slug]

    def list(self) -> Iterable[Type[ConversionAdapter]]:
        yield from self._registry.values()

    def create_adapters(self, tools: Optional[ToolSettings] = None) -> List[ConversionAdapter]:
        tools = tools or ToolSettings()
        return [adapter_cls(tools) for adapter_cls in self._registry.values()]


REGISTRY = PluginRegistry()


class AdapterCatalog:
    """Index of adapter instances keyed by (domain, source, target)."""

    def __init__(self, adapters: Iterable[ConversionAdapter]) -> None:
        self._adapters: List[ConversionAdapter] = list(adapters)
        self._index: Dict[Tuple[ConversionDomain, str, str], ConversionAdapter] = {}
        self._sources: Set[str] = set()
        for adapter in self._adapters:
            for domain, source, target in adapter.capabilities():
                self._index.setdefault((domain, source, target), adapter)
                self._sources.add(source)

    @property
    def adapters(self) -> List[ConversionAdapter]:
        return list(self._adapters)

    def find(
        self,
        domains: Iterable[Optional[ConversionDomain]],
        source: str,
        target: str,
    ) -> Optional[Tuple[ConversionDomain, ConversionAdapter]]:
        source = normalize_extension(source)
        target = normalize_extension(target)
        for domain in domains:
            if domain is None:
                continue
            adapter = self._index.get((domain, source, target))
            if adapter is not None:
                return domain, adapter
        return None

    def accepts(self, source: str) -> bool:
        return normalize_extension(source) in self._sources

    def describe(self) -> List[dict]:
        return [adapter.describe() for adapter in self._adapters]


def load_plugins(module_names: Iterable[str] | None = None) -> None:
    """Import adapter modules and trigger their registration side-effects."""

    modules = list(module_names or DEFAULT_PLUGIN_MODULES)
    for module in modules:
        import_module(module)


def read_plugin_module_file(path: str | Path) -> List[str]:
    file_path = Path(path)
    if not file_path.exists():
        return []

    with file_path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}

    modules = data.get("modules", []) if isinstance(data, dict) else []
    return [str(module) for module in modules]


def write_plugin_module_file(path: str | Path, modules: Iterable[str]) -> None:
    file_path = Path(path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    ordered_unique = list(dict.fromkeys(str(module) for module in modules if module))
    payload = {"modules": ordered_unique}

    with file_path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(payload, handle, allow_unicode=False, sort_keys=False)


__all__ = [
    "REGISTRY",
    "DEFAULT_PLUGIN_MODULES",
    "AdapterCatalog",
    "PluginRegistry",
    "load_plugins",
    "read_plugin_module_file",
    "write_plugin_module_file",
]
