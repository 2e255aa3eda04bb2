"""Tests for the project metadata in pyproject.toml."""

import ast
from pathlib import Path

import pytest

tomllib = pytest.importorskip("tomllib")

ROOT = Path(__file__).parents[2]
PACKAGE = ROOT / "sqlbind"

IMPORT_NAMES = {"attrs": "attrs", "msgspec": "msgspec", "mypy-extensions": "mypy_extensions"}


@pytest.fixture(scope="module")
def project() -> dict:
    with (ROOT / "pyproject.toml").open("rb") as f:
        return tomllib.load(f)["project"]  # type: ignore[no-any-return]


def _imported_modules() -> set[str]:
    modules: set[str] = set()
    for path in PACKAGE.rglob("*.py"):
        for node in ast.walk(ast.parse(path.read_text(encoding="utf-8"))):
            if isinstance(node, ast.Import):
                modules.update(alias.name.split(".")[0] for alias in node.names)
            elif isinstance(node, ast.ImportFrom) and node.module and node.level == 0:
                modules.add(node.module.split(".")[0])
    return modules


def test_readme_exists(project: dict) -> None:
    assert project["readme"] == "README.md"
    assert (ROOT / project["readme"]).is_file()


def test_every_dependency_is_imported(project: dict) -> None:
    imported = _imported_modules()

    assert set(project["dependencies"]) == set(IMPORT_NAMES)
    assert {IMPORT_NAMES[name] for name in project["dependencies"]} <= imported


def test_no_undeclared_third_party_imports() -> None:
    assert "typing_extensions" not in _imported_modules()
