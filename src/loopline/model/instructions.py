from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .graph import add_all_base_models, sort_by_inheritance
from .scanner import find_model_definitions, fix_file_extension, try_read_dir
from .spec import LoadOptions, LoadPlan, MixinSource, ModelInstruction, SourceEntry

logger = logging.getLogger(__name__)


def _resolve_script(root_dir: Path, source_file: Path) -> Optional[Path]:
    full_path = root_dir / source_file
    return fix_file_extension(full_path, try_read_dir(full_path.parent), only_scripts=True)


def verify_model_definitions(
    root_dir: str | Path,
    model_definitions: Optional[Iterable[SourceEntry]],
) -> Optional[Dict[str, SourceEntry]]:
    """
    Build the definition registry from caller-supplied definitions instead of scanning.

    Each `source_file` is resolved against `root_dir` and matched to a script the same
    way the scanner does. Returns None when no definitions were supplied.
    """
    entries = list(model_definitions or [])
    if not entries:
        return None

    root = Path(root_dir)
    registry: Dict[str, SourceEntry] = {}
    for idx, entry in enumerate(entries):
        source_file = entry.source_file
        if source_file is not None:
            resolved = _resolve_script(root, source_file)
            if resolved is None:
                logger.debug("Model source code not found: %s", source_file)
            source_file = resolved

        model_name = entry.definition.name
        if not model_name:
            logger.debug(
                "Skipping model definition without model name (from options.modelDefinitions @ index %s)",
                idx,
            )
            continue

        logger.debug(
            'Found model "%s" - from options %s',
            model_name,
            source_file if source_file else "(no source file)",
        )
        registry[model_name] = SourceEntry(definition=entry.definition, source_file=source_file)

    return registry


def create_model_instructions(
    names: Iterable[str],
    registry: Mapping[str, SourceEntry],
    models_config: Optional[Mapping[str, Any]],
    data_source: str,
) -> List[ModelInstruction]:
    """
    One instruction per name, in the given order.

    With `models_config`, a model's config is its entry there (base models pulled in only
    for ordering have none); otherwise every model is attached to `data_source`.
    """
    instructions: List[ModelInstruction] = []
    for name in names:
        if models_config is not None:
            has_config = name in models_config
            config = models_config.get(name)
        else:
            has_config = True
            config = {"dataSource": data_source}

        entry = registry.get(name)
        definition = entry.definition if entry is not None else None

        logger.debug('Using model "%s" - configuration: %r, definition: %r', name, config, definition)

        instructions.append(
            ModelInstruction(
                name=name,
                config=config,
                has_config=has_config,
                definition=definition,
                source_file=entry.source_file if entry is not None else None,
            )
        )
    return instructions


def build_all_model_instructions(
    root_dir: str | Path,
    sources: Iterable[str],
    model_definitions: Optional[Iterable[SourceEntry]],
    options: LoadOptions,
    *,
    data_source: str = "default",
) -> List[ModelInstruction]:
    """
    Discover (or verify) definitions, expand them with their bases and sort by inheritance.
    """
    models_config = options.models
    registry = verify_model_definitions(root_dir, model_definitions)
    if registry is None:
        registry = find_model_definitions(root_dir, sources)

    requested = list(models_config) if models_config is not None else list(registry)
    names = add_all_base_models(registry, requested)

    instructions = create_model_instructions(names, registry, models_config, data_source)
    return sort_by_inheritance(instructions)


def resolve_mixins(root_dir: str | Path, mixins: Iterable[MixinSource]) -> List[MixinSource]:
    """Resolve each mixin's `source_file` against `root_dir`; inline mixins pass through."""
    root = Path(root_dir)
    out: List[MixinSource] = []
    for m in mixins:
        if m.source_file is None:
            out.append(m)
            continue
        resolved = _resolve_script(root, m.source_file)
        if resolved is None:
            logger.warning("Mixin source not found for %s: %s", m.name, m.source_file)
        out.append(m.model_copy(update={"source_file": resolved}))
    return out


def build_load_plan(options: LoadOptions, *, sources: List[str], data_source: str) -> LoadPlan:
    root = options.root if options.root is not None else Path.cwd()
    return LoadPlan(
        models=build_all_model_instructions(
            root,
            sources,
            options.model_definitions,
            options,
            data_source=data_source,
        ),
        mixins=resolve_mixins(root, options.mixins),
        customizations=dict(options.customizations),
    )
