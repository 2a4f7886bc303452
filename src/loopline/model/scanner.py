"""
Discovery of model definitions on disk.

Each source directory is listed (non-recursively). Every `<name>.json` not starting with
an underscore is a model definition; a sibling `<name>.py` is its customization script.
Problems with single files are logged and skipped, never raised.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from pydantic import ValidationError

from loopline.naming import pascal_case
from .paths import resolve_app_path
from .scripts import EXCLUDED_SUFFIXES, SCRIPT_SUFFIXES, is_script_suffix
from .spec import ModelDefinition, SourceEntry

logger = logging.getLogger(__name__)

FILE_EXTENSION_JSON = ".json"


def try_read_dir(path: str | Path) -> List[str]:
    """Sorted directory listing, or [] when the directory cannot be read."""
    try:
        return sorted(os.listdir(path))
    except OSError:
        return []


def _rel(path: Path, root: Path) -> str:
    try:
        return str(Path(path).relative_to(root))
    except ValueError:
        return str(path)


def fix_file_extension(
    filepath: str | Path,
    files: Iterable[str],
    only_scripts: bool = True,
) -> Optional[Path]:
    """
    Find the script belonging to `filepath` among `files` (names in the same directory).

    A path that already has a script suffix is returned unchanged. Otherwise siblings
    sharing the base name (`customer.json` -> `customer.*`) are candidates; with
    `only_scripts`, only suffixes the import system can execute are accepted. Source
    files are preferred over bytecode.
    """
    filepath = Path(filepath)
    if is_script_suffix(filepath.suffix):
        return filepath

    name = filepath.name
    basename = name[: -len(FILE_EXTENSION_JSON)] if name.endswith(FILE_EXTENSION_JSON) else name
    source_dir = filepath.parent

    results: List[Path] = []
    for f in files:
        other = source_dir / f
        if not other.is_file():
            continue
        suffix = Path(f).suffix
        if suffix in EXCLUDED_SUFFIXES or Path(f).stem != basename:
            continue
        if only_scripts and not is_script_suffix(suffix):
            continue
        results.append(other)

    if not results:
        return None
    rank = {s: i for i, s in enumerate(SCRIPT_SUFFIXES)}
    results.sort(key=lambda p: rank.get(p.suffix, len(rank)))
    return results[0]


def load_model_definition(
    root_dir: str | Path,
    json_file: str | Path,
    all_files: Iterable[str],
) -> Optional[SourceEntry]:
    """
    Read one definition file and pair it with its customization script.

    Returns None (after logging) when the file cannot be read or is not a valid definition.
    """
    root = Path(root_dir)
    json_file = Path(json_file)

    try:
        data = json.loads(json_file.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("Skipping model definition %s - cannot read JSON: %s", _rel(json_file, root), e)
        return None

    if not isinstance(data, dict):
        logger.warning("Skipping model definition %s - root must be an object", _rel(json_file, root))
        return None

    try:
        definition = ModelDefinition.model_validate(data)
    except ValidationError as e:
        logger.warning("Skipping model definition %s - invalid definition: %s", _rel(json_file, root), e)
        return None

    if not definition.name:
        derived = pascal_case(json_file.stem)
        definition = definition.model_copy(update={"name": derived or None})

    source_file = fix_file_extension(json_file, all_files, only_scripts=True)
    if source_file is None:
        logger.debug("Model source code not found for %s", _rel(json_file, root))

    logger.debug(
        'Found model "%s" - %s %s',
        definition.name,
        _rel(json_file, root),
        _rel(source_file, root) if source_file else "(no source file)",
    )
    return SourceEntry(definition=definition, source_file=source_file)


def find_model_definitions(root_dir: str | Path, sources: Iterable[str]) -> Dict[str, SourceEntry]:
    """
    Scan `sources` (directory expressions relative to `root_dir`) for model definitions.

    Later sources override earlier ones when they define the same model name.
    """
    registry: Dict[str, SourceEntry] = {}

    for src in sources:
        src_dir = resolve_app_path(root_dir, src, strict=False)
        if src_dir is None:
            logger.debug("Skipping unknown model source dir %r", src)
            continue

        files = try_read_dir(src_dir)
        for f in files:
            if f.startswith("_") or Path(f).suffix != FILE_EXTENSION_JSON:
                continue

            full_path = src_dir / f
            entry = load_model_definition(root_dir, full_path, files)
            if entry is None:
                continue

            model_name = entry.definition.name
            if not model_name:
                logger.debug("Skipping model definition without model name: %s", _rel(full_path, src_dir))
                continue
            if model_name in registry:
                logger.debug('Model "%s" from %s overrides an earlier definition', model_name, full_path)
            registry[model_name] = entry

    return registry
