#!/usr/bin/env python3
"""Command line utility for managing which adapter modules the engine loads."""

from __future__ import annotations

import argparse
import json
from collections import Counter
from importlib import import_module
from pathlib import Path
from typing import Iterable, List

from file_converter.config import ToolSettings
from file_converter.monitoring import check_tools
from file_converter.plugins.registry import (
    DEFAULT_PLUGIN_MODULES,
    REGISTRY,
    load_plugins,
    read_plugin_module_file,
    write_plugin_module_file,
)

ROOT_DIR = Path(__file__).resolve().parents[1]
DEFAULT_PLUGIN_FILE = ROOT_DIR / "config" / "plugins.yaml"


def _resolve_file(path: str | None) -> Path:
    return Path(path).resolve() if path else DEFAULT_PLUGIN_FILE


def _configured_modules(file_path: Path) -> List[str]:
    modules = read_plugin_module_file(file_path)
    return modules or list(DEFAULT_PLUGIN_MODULES)


def _save(file_path: Path, modules: Iterable[str]) -> None:
    write_plugin_module_file(file_path, modules)


def _verify_importable(module_name: str) -> None:
    try:
        import_module(module_name)
    except Exception as exc:  # pragma: no cover - surfaced to the CLI user
        raise SystemExit(f"Failed to import '{module_name}': {exc}")


def handle_list(args: argparse.Namespace) -> int:
    file_path = _resolve_file(args.file)
    modules = read_plugin_module_file(file_path)
    if not modules:
        print(f"No module file at {file_path}; the builtin adapters are used:")
        modules = list(DEFAULT_PLUGIN_MODULES)

    for module in modules:
        print(module)
    return 0


def handle_register(args: argparse.Namespace) -> int:
    file_path = _resolve_file(args.file)
    modules = _configured_modules(file_path)
    module_name = args.module.strip()
    if not module_name:
        raise SystemExit("Module name cannot be empty.")

    if module_name in modules:
        print(f"Module '{module_name}' already registered.")
        return 0

    if not args.no_verify:
        _verify_importable(module_name)

    modules.append(module_name)
    _save(file_path, modules)
    print(f"Registered adapter module '{module_name}'.")
    return 0


def handle_unregister(args: argparse.Namespace) -> int:
    file_path = _resolve_file(args.file)
    modules = _configured_modules(file_path)
    module_name = args.module.strip()
    if module_name not in modules:
        print(f"Module '{module_name}' not found.")
        return 0

    _save(file_path, [module for module in modules if module != module_name])
    print(f"Removed adapter module '{module_name}'.")
    return 0


def handle_reset(args: argparse.Namespace) -> int:
    file_path = _resolve_file(args.file)
    _save(file_path, DEFAULT_PLUGIN_MODULES)
    print(f"Adapter module file reset to the builtin set at {file_path}.")
    return 0


def handle_adapters(args: argparse.Namespace) -> int:
    """Import the configured modules and summarize each adapter's capabilities."""

    load_plugins(_configured_modules(_resolve_file(args.file)))
    tools = ToolSettings()
    rows = []
    for adapter in REGISTRY.create_adapters(tools):
        per_domain = Counter(domain.value for domain, _source, _target in adapter.capabilities())
        rows.append(
            {
                "slug": adapter.slug,
                "tool": adapter.tool,
                "capabilities": dict(sorted(per_domain.items())),
            }
        )

    if args.json:
        print(json.dumps({"adapters": rows, "tools": check_tools(tools)}, indent=2))
        return 0

    for row in rows:
        domains = ", ".join(f"{name}={count}" for name, count in row["capabilities"].items())
        print(f"{row['slug']:<12} {row['tool']:<24} {domains}")
    missing = [name for name, available in check_tools(tools).items() if not available]
    if missing:
        print(f"Executables not on PATH: {', '.join(missing)}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Manage conversion adapter module registration.")
    parser.add_argument(
        "--file",
        dest="file",
        default=str(DEFAULT_PLUGIN_FILE),
        help="Path to the adapter module YAML file (default: %(default)s)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser("list", help="List configured adapter modules")
    list_parser.set_defaults(func=handle_list)

    register_parser = subparsers.add_parser("register", help="Add an adapter module")
    register_parser.add_argument("module", help="Python import path of the module")
    register_parser.add_argument(
        "--no-verify",
        action="store_true",
        help="Skip import verification when registering",
    )
    register_parser.set_defaults(func=handle_register)

    unregister_parser = subparsers.add_parser("unregister", help="Remove an adapter module")
    unregister_parser.add_argument("module", help="Python import path of the module")
    unregister_parser.set_defaults(func=handle_unregister)

    reset_parser = subparsers.add_parser("reset", help="Reset to the builtin adapter modules")
    reset_parser.set_defaults(func=handle_reset)

    adapters_parser = subparsers.add_parser("adapters", help="Show loaded adapters and their capabilities")
    adapters_parser.add_argument("--json", action="store_true", help="Print machine-readable output")
    adapters_parser.set_defaults(func=handle_adapters)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
