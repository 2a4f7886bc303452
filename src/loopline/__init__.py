"""
loopline: model definitions on disk, wired to data sources.

    import loopline

    app = loopline.create_app()
    app.data_source("default", {"connector": "memory"})
    loopline.load(app, "/path/to/project", {"dataSource": "default"})

    Customer = app.models.Customer
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from .application import Application
from .datasource import DataSource
from .exceptions import (
    DataSourceError,
    DataSourceNotFoundError,
    LooplineError,
    LooplineRuntimeError,
    ModelCycleError,
    ModelLoadError,
    ModelNotAttachedError,
    ModelNotFoundError,
    UnknownModelError,
)
from .model import Model, PersistedModel, Registry, load, mixin

__version__ = "0.3.0"

# Process-wide registry used by applications created without a local registry.
registry = Registry()


def create_app(*, local_registry: bool = False) -> Application:
    """
    Create an application.

    By default all applications share the module-level `registry`; pass
    `local_registry=True` for an isolated set of model types.
    """
    return Application(Registry() if local_registry else registry)


def create_model(*args: Any) -> type[Model]:
    return registry.create_model(*args)


def configure_model(model: type[Model], config: Mapping[str, Any]) -> None:
    registry.configure_model(model, config)


def find_model(name: str) -> Optional[type[Model]]:
    return registry.find_model(name)


def get_model(name: str) -> type[Model]:
    return registry.get_model(name)


def memory(name: str = "default") -> DataSource:
    return registry.memory(name)


__all__ = [
    "Application",
    "DataSource",
    "Model",
    "PersistedModel",
    "Registry",
    "create_app",
    "create_model",
    "configure_model",
    "find_model",
    "get_model",
    "memory",
    "load",
    "mixin",
    "registry",
    # errors
    "LooplineError",
    "LooplineRuntimeError",
    "ModelLoadError",
    "ModelCycleError",
    "UnknownModelError",
    "ModelNotFoundError",
    "ModelNotAttachedError",
    "DataSourceError",
    "DataSourceNotFoundError",
]
