"""
loopline.model

Model types and the model loading pipeline.

This subpackage provides:
- Pydantic-based parsing/validation of model definitions (ModelDefinition, LoadOptions)
- Discovery of `<name>.json` definitions and their customization scripts
- Inheritance ordering (base models first) and materialization into an application
- The Registry that creates and configures model types
"""

from __future__ import annotations

from .base import Model, ModelBuilder, MixinRegistry, PersistedModel, is_mixin, mixin
from .graph import add_all_base_models, get_base_model_name, sort_by_inheritance
from .instructions import build_all_model_instructions, verify_model_definitions
from .loader import define_mixins, define_models, load, normalize_load_options, plan_models, setup_models
from .paths import resolve_app_path
from .registry import Registry
from .scanner import find_model_definitions, fix_file_extension, load_model_definition
from .scripts import CallableScriptLoader, ImportScriptLoader, ScriptLoader
from .spec import (
    AclEntry,
    LoadOptions,
    LoadPlan,
    MixinSource,
    ModelDefinition,
    ModelInstruction,
    SourceEntry,
)

__all__ = [
    # types
    "Model",
    "PersistedModel",
    "ModelBuilder",
    "MixinRegistry",
    "Registry",
    "mixin",
    "is_mixin",
    # spec
    "AclEntry",
    "LoadOptions",
    "LoadPlan",
    "MixinSource",
    "ModelDefinition",
    "ModelInstruction",
    "SourceEntry",
    # pipeline
    "resolve_app_path",
    "find_model_definitions",
    "fix_file_extension",
    "load_model_definition",
    "add_all_base_models",
    "get_base_model_name",
    "sort_by_inheritance",
    "build_all_model_instructions",
    "verify_model_definitions",
    "define_mixins",
    "define_models",
    "setup_models",
    "plan_models",
    "normalize_load_options",
    "load",
    # scripts
    "ScriptLoader",
    "ImportScriptLoader",
    "CallableScriptLoader",
]
