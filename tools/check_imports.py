"""Check that haunted_thread layers only import the layers beneath them."""

from __future__ import annotations

import argparse
import ast
from collections.abc import Iterator
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
PACKAGE = "haunted_thread"
DEFAULT_SOURCE_ROOT = PROJECT_ROOT / "src" / PACKAGE

# Each layer may import itself and the layers listed here; cli and api sit on top.
ALLOWED: dict[str, set[str]] = {
    "domain": set(),
    "core": {"domain"},
    "adapters": {"domain", "core"},
    "application": {"domain", "core", "adapters"},
    "api": {"domain", "core", "adapters", "application"},
    "cli": {"domain", "core", "adapters", "application", "api"},
}


def _module_parts(path: Path, source_root: Path) -> list[str] | None:
    try:
        relative = path.relative_to(source_root)
    except ValueError:
        return None
    return [PACKAGE, *relative.with_suffix("").parts]


def _imported_modules(node: ast.Import | ast.ImportFrom, module: list[str]) -> Iterator[str]:
    """Yield absolute module names for an import node, expanding `from pkg import layer`."""
    if isinstance(node, ast.Import):
        yield from (alias.name for alias in node.names)
        return
    if node.level == 0:
        base = node.module or ""
    else:
        package = module[:-1]
        if node.level > len(package):
            return
        anchor = package[: len(package) - node.level + 1]
        base = ".".join([*anchor, *([node.module] if node.module else [])])
    if base == PACKAGE:
        yield from (f"{PACKAGE}.{alias.name}" for alias in node.names)
    elif base:
        yield base


def _layer_of(module_name: str) -> str | None:
    parts = module_name.split(".")
    if len(parts) < 2 or parts[0] != PACKAGE:
        return None
    return parts[1] if parts[1] in ALLOWED else None


def check_file(path: Path, source_root: Path = DEFAULT_SOURCE_ROOT) -> list[str]:
    module = _module_parts(path, source_root)
    if module is None or len(module) < 3 or module[1] not in ALLOWED:
        return []
    layer = module[1]
    permitted = ALLOWED[layer] | {layer}

    tree = ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
    violations: list[str] = []
    for node in ast.walk(tree):
        if not isinstance(node, (ast.Import, ast.ImportFrom)):
            continue
        targets = {_layer_of(name) for name in _imported_modules(node, module)}
        for target in sorted(t for t in targets if t is not None and t not in permitted):
            violations.append(f"{path}:{node.lineno}: {layer} must not import {PACKAGE}.{target}")
    return violations


def check_import_boundaries(source_root: Path = DEFAULT_SOURCE_ROOT) -> list[str]:
    return [
        violation
        for path in sorted(source_root.rglob("*.py"))
        for violation in check_file(path, source_root)
    ]


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Check haunted_thread layer imports.")
    parser.add_argument("--source-root", type=Path, default=DEFAULT_SOURCE_ROOT)
    parsed = parser.parse_args(argv)
    violations = check_import_boundaries(parsed.source_root)
    if violations:
        raise SystemExit("\n".join(violations))
    print(f"import boundaries ok ({parsed.source_root})")


if __name__ == "__main__":
    main()
