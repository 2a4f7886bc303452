from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional

from loopline.config import AppSettings, get_settings
from loopline.exceptions import UnknownModelError
from .base import is_mixin
from .instructions import build_load_plan
from .scripts import MIXIN_SCRIPT_EXPORT, MODEL_SCRIPT_EXPORT, ImportScriptLoader, ScriptLoader
from .spec import LoadOptions, LoadPlan, MixinSource, ModelInstruction

logger = logging.getLogger(__name__)


def _validate_app(app: Any) -> None:
    if app is None or getattr(app, "registry", None) is None or not callable(getattr(app, "model", None)):
        raise TypeError("`app` is invalid: expected an Application with a registry")


def normalize_load_options(
    root_or_options: str | os.PathLike[str] | Mapping[str, Any] | LoadOptions | None = None,
    options: Mapping[str, Any] | LoadOptions | None = None,
) -> LoadOptions:
    """
    Accept `(root, options)`, `(options,)` or nothing; the root defaults to the cwd.
    When two option mappings are passed, the second one is used.
    """
    root: Optional[Path] = None
    if isinstance(root_or_options, (str, os.PathLike)):
        root = Path(root_or_options)
        raw: Any = options
    else:
        raw = options if options is not None else root_or_options

    if raw is None:
        opts = LoadOptions()
    elif isinstance(raw, LoadOptions):
        opts = raw.model_copy()
    else:
        opts = LoadOptions.model_validate(dict(raw))

    if root is not None:
        opts.root = root
    if opts.root is None:
        opts.root = Path.cwd()
    return opts


def plan_models(
    root_or_options: str | os.PathLike[str] | Mapping[str, Any] | LoadOptions | None = None,
    options: Mapping[str, Any] | LoadOptions | None = None,
    *,
    settings: Optional[AppSettings] = None,
) -> LoadPlan:
    """
    Discover definitions and compute the ordered instructions, without touching any app.
    """
    opts = normalize_load_options(root_or_options, options)
    loader_settings = (settings or get_settings()).loader
    sources = opts.sources if opts.sources is not None else list(loader_settings.sources)
    data_source = opts.data_source or loader_settings.data_source
    return build_load_plan(opts, sources=sources, data_source=data_source)


def load(
    app: Any,
    root_or_options: str | os.PathLike[str] | Mapping[str, Any] | LoadOptions | None = None,
    options: Mapping[str, Any] | LoadOptions | None = None,
    *,
    settings: Optional[AppSettings] = None,
    script_loader: Optional[ScriptLoader] = None,
) -> None:
    """
    Load model definitions into `app`.

        loopline.load(app, "/srv/project", {"dataSource": "db"})
        loopline.load(app, {"root": "/srv/project", "sources": ["./models", "shared/models"]})

    Definitions are read from `sources` (or taken from `modelDefinitions`), ordered so
    that base models are created first, customized by their scripts and finally
    attached to `app`. Any failure while ordering or creating models aborts the load.
    """
    _validate_app(app)
    plan = plan_models(root_or_options, options, settings=settings)
    setup_models(app, plan, script_loader=script_loader or ImportScriptLoader())


def setup_models(app: Any, plan: LoadPlan, *, script_loader: ScriptLoader) -> None:
    define_mixins(app, plan.mixins, script_loader)
    define_models(app, plan.models, script_loader, plan.customizations)

    for inst in plan.models:
        # Base models pulled in only for ordering are not attached to the app
        if not inst.has_config:
            continue
        config = inst.config
        if config is None or config is False:
            config = {"dataSource": None}
        app.model(inst.resolved_model, config)


def define_mixins(app: Any, mixins: Iterable[MixinSource], script_loader: ScriptLoader) -> None:
    builder = app.registry.model_builder
    for m in mixins:
        if m.mixin is not None:
            value = m.mixin
        elif m.source_file is not None:
            value = script_loader.load(m.source_file, MIXIN_SCRIPT_EXPORT)
        else:
            logger.warning("Skipping mixin %s - no source file", m.name)
            continue

        if is_mixin(value):
            logger.debug("Defining mixin %s", m.name)
            builder.mixins.define(m.name, value)
        else:
            logger.warning(
                "Skipping mixin %s (%s) - `%s` is not a function or model",
                m.name,
                m.source_file,
                MIXIN_SCRIPT_EXPORT,
            )


def define_models(
    app: Any,
    instructions: List[ModelInstruction],
    script_loader: ScriptLoader,
    customizations: Optional[Mapping[str, Any]] = None,
) -> None:
    registry = app.registry
    customizations = customizations or {}

    for inst in instructions:
        name = inst.name

        if inst.definition is None:
            model = registry.find_model(name)
            if model is None:
                raise UnknownModelError(name)
            logger.debug("Configuring existing model %s", name)
        else:
            logger.debug("Creating new model %s %r", name, inst.definition)
            model = registry.create_model(inst.definition)

            if inst.source_file is not None:
                logger.debug("Loading customization script %s", inst.source_file)
                code = script_loader.load(inst.source_file, MODEL_SCRIPT_EXPORT)
                if callable(code):
                    logger.debug("Customizing model %s", name)
                    code(model)
                else:
                    logger.debug(
                        "Skipping model file %s - `%s` is not a function",
                        inst.source_file,
                        MODEL_SCRIPT_EXPORT,
                    )

        hook = customizations.get(name)
        if hook is not None:
            if callable(hook):
                hook(model)
            else:
                logger.warning("Skipping customization of %s - not callable", name)

        inst.resolved_model = model
