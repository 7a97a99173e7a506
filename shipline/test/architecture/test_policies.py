from __future__ import annotations

import ast
import os
from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def _require_arch_checks() -> None:
    if os.getenv("SHIPLINE_ARCH_CHECKS") != "1":
        pytest.skip("architecture checks are advisory; set SHIPLINE_ARCH_CHECKS=1 to enable")


def _package_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _source_files() -> list[tuple[str, ast.AST]]:
    root = _package_root()
    out: list[tuple[str, ast.AST]] = []
    for path in sorted(root.rglob("*.py")):
        rel = path.relative_to(root)
        if rel.parts[0] == "test" or "__pycache__" in rel.parts:
            continue
        tree = ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
        out.append((rel.as_posix(), tree))
    return out


def _imported_modules(tree: ast.AST) -> list[tuple[str, int]]:
    found: list[tuple[str, int]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            found.extend((alias.name, node.lineno) for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.module and not node.level:
            found.append((node.module, node.lineno))
    return found


def test_subprocess_only_in_process_module() -> None:
    allowlist = {"platform/process.py"}

    offenders: list[str] = []
    for rel, tree in _source_files():
        if rel in allowlist:
            continue
        for module, line in _imported_modules(tree):
            if module == "subprocess":
                offenders.append(f"{rel}:{line}: imports subprocess")

    assert not offenders, "Subprocess policy violations:\n" + "\n".join(offenders)


def test_rich_only_in_console_module() -> None:
    allowlist = {"output/console.py"}

    offenders: list[str] = []
    for rel, tree in _source_files():
        if rel in allowlist:
            continue
        for module, line in _imported_modules(tree):
            if module == "rich" or module.startswith("rich."):
                offenders.append(f"{rel}:{line}: direct rich import '{module}'")

    assert not offenders, "Direct rich usage policy violations:\n" + "\n".join(offenders)


def test_services_do_not_import_cli() -> None:
    offenders: list[str] = []
    for rel, tree in _source_files():
        if not rel.startswith(("services/", "core/", "platform/", "output/")):
            continue
        for module, line in _imported_modules(tree):
            if module.startswith("shipline.cli"):
                offenders.append(f"{rel}:{line}: imports {module}")

    assert not offenders, "Layering violations:\n" + "\n".join(offenders)
