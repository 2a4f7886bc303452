"""
The application object: the models and data sources a program works with.

    app = loopline.create_app(local_registry=True)
    app.data_source("db", {"connector": "memory"})
    app.model("product", {"dataSource": "db", "properties": {"name": "string"}})

    app.models.Product           # exact / PascalCase / camelCase names all work
    app.models("product")
    app.models()                 # list of attached model types
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from loopline.datasource import MemoryConnector, DataSource
from loopline.exceptions import DataSourceError, DataSourceNotFoundError, LooplineRuntimeError
from loopline.naming import AliasMap
from loopline.model.base import Model
from loopline.model.registry import Registry

logger = logging.getLogger(__name__)

_MISSING: Any = object()

# Options consumed by `create_model` when a model is created from a name + config.
_CREATE_ONLY_KEYS = ("relations", "base", "acls", "hidden", "methods")


class _AttributeAliasMap(AliasMap[Any]):
    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self[name]
        except KeyError as e:
            raise AttributeError(name) from e


class ModelCollection(_AttributeAliasMap):
    """Attached models; callable for backwards compatibility with `app.models()`."""

    def __init__(self) -> None:
        super().__init__()
        self._ordered: List[type[Model]] = []

    def __call__(self, name: Optional[str] = None) -> Any:
        if name is None:
            return list(self._ordered)
        return self.get(name)

    def add(self, model: type[Model]) -> None:
        previous = self.get(model.model_name)
        if previous is not None and previous in self._ordered:
            self._ordered.remove(previous)
        self.register(model.model_name, model)
        self._ordered.append(model)


class DataSourceCollection(_AttributeAliasMap):
    pass


class Application:
    def __init__(self, registry: Registry) -> None:
        self.registry = registry
        self.models = ModelCollection()
        self.data_sources = DataSourceCollection()
        self.connectors = _AttributeAliasMap()
        self.connector("memory", MemoryConnector)

    @property
    def datasources(self) -> DataSourceCollection:
        return self.data_sources

    def model(self, model: type[Model] | str, config: Any = _MISSING) -> type[Model]:
        """
        Attach a model to the application, optionally configuring it first.

        `model` may be a model type or a name; a name creates the model from `config`
        (backwards compatible form). `config["dataSource"]` may be a DataSource or the
        name of one defined with `data_source()`.
        """
        if config is not _MISSING:
            config = dict(config or {})
            if isinstance(model, str):
                model_config = dict(config)
                model_config["options"] = dict(config.get("options") or {})
                model_config["name"] = model
                model_config.pop("dataSource", None)

                model = self.registry.create_model(model_config)

                for prop in _CREATE_ONLY_KEYS:
                    config.pop(prop, None)
                    if isinstance(config.get("options"), dict):
                        config["options"] = {k: v for k, v in config["options"].items() if k != prop}
                config.pop("properties", None)

            self._configure_model(model, config)
        elif not (isinstance(model, type) and issubclass(model, Model)):
            raise TypeError(f"{model!r} must be a descendant of loopline Model")

        self.models.add(model)
        model.app = self
        model.emit("attached", self)
        return model

    def _configure_model(self, model: Any, config: Dict[str, Any]) -> None:
        if not (isinstance(model, type) and issubclass(model, Model)):
            raise TypeError(f"{model!r} must be a descendant of loopline Model")

        data_source = config.get("dataSource")
        if data_source:
            if isinstance(data_source, str):
                data_source = self.data_sources.get(data_source)
            if not isinstance(data_source, DataSource):
                raise DataSourceNotFoundError(
                    f'{model.model_name} is referencing a dataSource that does not exist: "{config["dataSource"]}"'
                )
            config = {**config, "dataSource": data_source}

        self.registry.configure_model(model, config)

    def data_source(self, name: str, config: Mapping[str, Any]) -> DataSource:
        """Define a data source; a string `connector` is looked up among registered connectors first."""
        try:
            ds = self._data_source_from_config(name, config)
        except (LooplineRuntimeError, TypeError, ValueError) as e:
            raise DataSourceError(f"Cannot create data source {name!r}: {e}") from e
        self.data_sources.register(name, ds)
        return ds

    def _data_source_from_config(self, name: str, config: Mapping[str, Any]) -> DataSource:
        if not isinstance(config, Mapping):
            raise TypeError("can not create data source without config object")
        settings = dict(config)
        connector = settings.get("connector")
        if isinstance(connector, str) and connector in self.connectors:
            settings["connector"] = self.connectors[connector]
        return self.registry.create_data_source(name, settings)

    def connector(self, name: str, connector: Any) -> None:
        """Register a connector (class or instance) under `name`."""
        self.connectors.register(name, connector)
