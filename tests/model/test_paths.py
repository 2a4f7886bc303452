# tests/model/test_paths.py
from __future__ import annotations

import sys
from pathlib import Path

import pytest

from loopline.model.paths import (
    SEARCH_PATH_ENV,
    ancestor_search_paths,
    module_search_paths,
    resolve_app_path,
)


def test_relative_expr_resolves_against_root(project: Path) -> None:
    assert resolve_app_path(project, "./models") == project / "models"


def test_parent_relative_expr_is_normalized(tmp_path: Path) -> None:
    shared = tmp_path / "shared"
    shared.mkdir()
    root = tmp_path / "app"
    root.mkdir()
    assert resolve_app_path(root, "../shared") == shared


def test_absolute_expr_is_used_as_is(tmp_path: Path, project: Path) -> None:
    target = tmp_path / "elsewhere"
    target.mkdir()
    assert resolve_app_path(project, str(target)) == target


def test_missing_relative_path_returns_none(project: Path) -> None:
    assert resolve_app_path(project, "./nope") is None


def test_strict_mode_ignores_bare_expressions(project: Path) -> None:
    assert resolve_app_path(project, "models", strict=True) is None
    assert resolve_app_path(project, "models", strict=False) == project / "models"


def test_file_without_suffix_is_found(project: Path) -> None:
    (project / "models" / "customer.py").write_text("", encoding="utf-8")
    assert resolve_app_path(project, "./models/customer") == project / "models" / "customer.py"


def test_bare_expr_falls_back_to_search_path_env(
    tmp_path: Path, project: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    lib = tmp_path / "lib"
    (lib / "shared-models").mkdir(parents=True)
    monkeypatch.setenv(SEARCH_PATH_ENV, str(lib))

    assert resolve_app_path(project, "shared-models", strict=False) == lib / "shared-models"


def test_bare_expr_found_in_ancestor_directory(tmp_path: Path) -> None:
    (tmp_path / "common").mkdir()
    root = tmp_path / "a" / "b"
    root.mkdir(parents=True)

    assert resolve_app_path(root, "common", strict=False) == tmp_path / "common"


def test_dotted_installed_package_is_resolved(project: Path) -> None:
    found = resolve_app_path(project, "loopline.model", strict=False)
    assert found is not None
    assert (found / "loader.py").is_file()


def test_unresolvable_bare_expr_returns_none(project: Path) -> None:
    assert resolve_app_path(project, "definitely_not_a_module_xyz", strict=False) is None


def test_search_paths_are_deduplicated(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(SEARCH_PATH_ENV, str(tmp_path))
    monkeypatch.setattr(sys, "path", [str(tmp_path)])

    paths = list(module_search_paths(tmp_path))
    assert paths.count(tmp_path) == 1
    assert paths[0] == tmp_path
    assert paths[1:] == ancestor_search_paths(tmp_path)[1:]
