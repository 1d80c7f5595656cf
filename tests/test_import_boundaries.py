from __future__ import annotations

import importlib.util
from pathlib import Path
from types import ModuleType

ROOT = Path(__file__).resolve().parents[1]


def _load_checker_module() -> ModuleType:
    module_path = ROOT / "tools" / "check_imports.py"
    spec = importlib.util.spec_from_file_location("check_imports_tool", module_path)
    assert spec is not None
    loader = spec.loader
    assert loader is not None
    module = importlib.util.module_from_spec(spec)
    loader.exec_module(module)
    return module


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def test_check_file_allows_core_importing_domain(tmp_path: Path) -> None:
    checker = _load_checker_module()
    source_root = tmp_path / "src" / "haunted_thread"
    core_file = source_root / "core" / "round_resolver.py"
    _write(core_file, "from haunted_thread.domain.models import Story\n")
    violations = checker.check_file(core_file, source_root)
    assert violations == []


def test_check_file_rejects_core_importing_adapters(tmp_path: Path) -> None:
    checker = _load_checker_module()
    source_root = tmp_path / "src" / "haunted_thread"
    core_file = source_root / "core" / "round_resolver.py"
    _write(core_file, "from haunted_thread.adapters import story_repository\n")
    violations = checker.check_file(core_file, source_root)
    assert len(violations) == 1
    assert "core must not import haunted_thread.adapters" in violations[0]


def test_check_file_resolves_relative_imports(tmp_path: Path) -> None:
    checker = _load_checker_module()
    source_root = tmp_path / "src" / "haunted_thread"
    domain_file = source_root / "domain" / "models.py"
    _write(domain_file, "from ..application import lifecycle\n")
    violations = checker.check_file(domain_file, source_root)
    assert len(violations) == 1
    assert "domain must not import haunted_thread.application" in violations[0]


def test_check_file_allows_application_importing_adapters(tmp_path: Path) -> None:
    checker = _load_checker_module()
    source_root = tmp_path / "src" / "haunted_thread"
    app_file = source_root / "application" / "lifecycle.py"
    _write(app_file, "import haunted_thread.adapters.story_repository\n")
    assert checker.check_file(app_file, source_root) == []


def test_project_tree_respects_layer_rules() -> None:
    checker = _load_checker_module()
    assert checker.check_import_boundaries() == []
