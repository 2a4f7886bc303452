"""
Resolution of source-directory expressions against an application root.

    resolve_app_path(root, "./models")              -> <root>/models
    resolve_app_path(root, "/abs/models")           -> /abs/models
    resolve_app_path(root, "shared/models", strict=False)
        -> <root>/shared/models if it exists, otherwise the first match in the
           module search directories (LOOPLINE_PATH, sys.path, root and its ancestors)
"""

from __future__ import annotations

import importlib.util
import logging
import os
import sys
from pathlib import Path
from typing import Iterator, List, Optional

from .scripts import SCRIPT_SUFFIXES

logger = logging.getLogger(__name__)

SEARCH_PATH_ENV = "LOOPLINE_PATH"


def _is_relative_expr(expr: str) -> bool:
    return expr.startswith("./") or expr.startswith("..") or expr.startswith(".\\")


def _resolve_module_file(path: Path) -> Optional[Path]:
    """
    Resolve `path` the way an import would find a file: as-is, then with a script suffix or `.json`.
    """
    if path.is_file():
        return path
    for suffix in (*SCRIPT_SUFFIXES, ".json"):
        candidate = path.with_name(path.name + suffix)
        if candidate.is_file():
            return candidate
    return None


def global_search_paths() -> List[Path]:
    """Directories from LOOPLINE_PATH followed by sys.path entries."""
    out: List[Path] = []
    env = os.environ.get(SEARCH_PATH_ENV, "")
    out.extend(Path(p) for p in env.split(os.pathsep) if p)
    out.extend(Path(p) for p in sys.path if p)
    return out


def ancestor_search_paths(root_dir: Path) -> List[Path]:
    root = Path(os.path.abspath(root_dir))
    return [root, *root.parents]


def module_search_paths(root_dir: Path) -> Iterator[Path]:
    seen: set[Path] = set()
    for p in (*global_search_paths(), *ancestor_search_paths(root_dir)):
        if p not in seen:
            seen.add(p)
            yield p


def _find_installed_module(expr: str) -> Optional[Path]:
    """
    Locate a dotted module name ("pkg.models") among installed packages.

    Returns the package directory for packages, the module file otherwise.
    """
    if not expr.replace(".", "").replace("_", "").isalnum():
        return None
    try:
        spec = importlib.util.find_spec(expr)
    except (ImportError, ValueError):
        return None
    if spec is None:
        return None
    if spec.submodule_search_locations:
        return Path(list(spec.submodule_search_locations)[0])
    if spec.origin and spec.has_location:
        return Path(spec.origin)
    return None


def resolve_app_path(
    root_dir: str | Path,
    path_expr: str | Path,
    *,
    strict: bool = True,
) -> Optional[Path]:
    """
    Resolve `path_expr` to an existing path, or return None.

    - Absolute paths are used as-is; `./` and `..` paths are resolved against `root_dir`.
    - With `strict=False`, bare expressions ("models") are tried against `root_dir` first.
    - Existing directories are returned as-is; files may omit their script suffix.
    - Bare expressions that are not found under the root are searched for in the module
      search directories and finally as a dotted installed module name.

    Never raises; callers treat None as "skip this source".
    """
    root = Path(root_dir)
    expr = str(path_expr)
    full_path: Optional[Path] = None
    is_module_relative = False

    if os.path.isabs(expr):
        full_path = Path(expr)
    elif _is_relative_expr(expr):
        full_path = Path(os.path.normpath(root / expr))
    elif not strict:
        is_module_relative = True
        full_path = Path(os.path.normpath(root / expr))

    if full_path is not None:
        if full_path.exists():
            return full_path

        resolved = _resolve_module_file(full_path)
        if resolved is not None:
            return resolved

        if not is_module_relative:
            logger.debug("Skipping %s - path does not exist", full_path)
            return None

    for candidate_dir in module_search_paths(root):
        abs_path = candidate_dir / expr
        if abs_path.exists():
            return abs_path
        resolved = _resolve_module_file(abs_path)
        if resolved is not None:
            return resolved

    installed = _find_installed_module(expr)
    if installed is not None and installed.exists():
        return installed

    logger.debug("Skipping %s - module not found", expr)
    return None
