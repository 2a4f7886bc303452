"""
Loading of customization scripts and mixin sources.

A script is an ordinary Python file living next to a model definition:

    models/
      customer.json
      customer.py      # def customize(model): ...

The pipeline never imports scripts directly; it goes through a `ScriptLoader`, so
tests and embedding applications can swap the mechanism (e.g. pre-registered callables).
"""

from __future__ import annotations

import hashlib
import importlib.machinery
import importlib.util
import logging
import sys
from contextlib import contextmanager
from pathlib import Path
from types import ModuleType
from typing import Any, Iterator, Optional, Protocol

from loopline.exceptions import ModelLoadError

logger = logging.getLogger(__name__)

MODEL_SCRIPT_EXPORT = "customize"
MIXIN_SCRIPT_EXPORT = "mixin"

# Suffixes the import system can execute as Python code, preferred in this order.
SCRIPT_SUFFIXES: tuple[str, ...] = tuple(importlib.machinery.SOURCE_SUFFIXES) + tuple(
    importlib.machinery.BYTECODE_SUFFIXES
)

# Never paired with a definition: the definition format itself and native extensions.
EXCLUDED_SUFFIXES: frozenset[str] = frozenset(
    {".json"} | {Path("x" + s).suffix for s in importlib.machinery.EXTENSION_SUFFIXES}
)


def is_script_suffix(suffix: str) -> bool:
    return suffix in SCRIPT_SUFFIXES and suffix not in EXCLUDED_SUFFIXES


class ScriptLoader(Protocol):
    def load(self, path: Path, export: str) -> Any:
        """Return the value exported by the script under `export`, or None when absent."""
        ...


@contextmanager
def _temporary_sys_path(path: Path) -> Iterator[None]:
    """
    Temporarily prepend `path` to sys.path, so a script can import its siblings.
    """
    p = str(path)
    old = list(sys.path)
    sys.path.insert(0, p)
    try:
        yield
    finally:
        sys.path[:] = old


def _module_name_for(path: Path) -> str:
    digest = hashlib.sha1(str(path).encode("utf-8")).hexdigest()[:12]
    stem = "".join(c if c.isalnum() else "_" for c in path.stem)
    return f"loopline_scripts.{stem}_{digest}"


class ImportScriptLoader:
    """
    Execute a script file as a fresh module and return one of its attributes.

    Scripts are re-executed on every call; loading an application twice runs each
    customization once per load.
    """

    def load(self, path: Path, export: str) -> Any:
        module = self.import_file(path)
        return getattr(module, export, None)

    @staticmethod
    def import_file(path: Path) -> ModuleType:
        path = Path(path).resolve()
        module_name = _module_name_for(path)

        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            raise ModelLoadError(f"Cannot load script '{path}': unsupported file type")

        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            with _temporary_sys_path(path.parent):
                spec.loader.exec_module(module)
        except Exception as e:
            sys.modules.pop(module_name, None)
            raise ModelLoadError(f"Failed to execute script '{path}': {e}") from e

        logger.debug("Loaded script %s as %s", path, module_name)
        return module


class CallableScriptLoader:
    """
    Script loader backed by a fixed mapping of path -> exported value.

    Handy where scripts are registered in code rather than placed on disk.
    """

    def __init__(self, exports: Optional[dict[Path | str, Any]] = None) -> None:
        self._exports = {Path(k).resolve(): v for k, v in (exports or {}).items()}

    def register(self, path: Path | str, value: Any) -> None:
        self._exports[Path(path).resolve()] = value

    def load(self, path: Path, export: str) -> Any:
        return self._exports.get(Path(path).resolve())
