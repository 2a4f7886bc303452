from __future__ import annotations

import json
import logging
import os
import textwrap
from pathlib import Path
from typing import Any, Callable

import pytest

import loopline
from loopline.application import Application
from loopline.config import clear_settings_cache


@pytest.fixture(autouse=True)
def _isolated_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Run every test from an empty cwd, without LOOPLINE_* variables or cached settings."""
    monkeypatch.chdir(tmp_path)
    for key in [k for k in os.environ if k.startswith("LOOPLINE_")]:
        monkeypatch.delenv(key, raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def app() -> Application:
    app = loopline.create_app(local_registry=True)
    app.data_source("default", {"connector": "memory"})
    return app


@pytest.fixture
def project(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    (root / "models").mkdir(parents=True)
    return root


def _write_json(path: Path, data: Any) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def _write_py(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(content).lstrip(), encoding="utf-8")
    return path


@pytest.fixture
def write_json() -> Callable[[Path, Any], Path]:
    return _write_json


@pytest.fixture
def write_py() -> Callable[[Path, str], Path]:
    return _write_py


@pytest.fixture(autouse=True)
def _restore_package_logger():
    """`configure_logging()` (called by the CLI) must not leak handlers into other tests."""
    logger = logging.getLogger("loopline")
    handlers, level = list(logger.handlers), logger.level
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
