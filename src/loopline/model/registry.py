"""
Registry of model types and data sources.

`create_model` turns a definition into a model type; `configure_model` merges relations,
ACLs and settings into an existing type and attaches it to a data source.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from loopline.datasource import DataSource
from loopline.exceptions import DataSourceError, ModelNotFoundError
from .base import Model, ModelBuilder, PersistedModel, add_acl
from .spec import ModelDefinition

logger = logging.getLogger(__name__)

# Config keys with a special meaning in `create_model(config)`; everything else is an option.
_RESERVED_CONFIG_KEYS = ("name", "properties", "options")

# Settings that cannot be changed through `config.options` once a model exists.
PROTECTED_SETTINGS = frozenset({"base", "super", "relations", "acls", "dataSource"})


def build_model_options_from_config(config: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Merge top-level config keys into `options`; `options` wins when both are set.

        {"name": "Customer", "base": "User"}  ==  {"name": "Customer", "options": {"base": "User"}}
    """
    options = dict(config.get("options") or {})
    for key, value in config.items():
        if key in _RESERVED_CONFIG_KEYS:
            continue
        if options.get(key) is not None:
            continue
        options[key] = value
    return options


class Registry:
    """
    Model types and data sources of one application (or of the process-wide default).
    """

    def __init__(self) -> None:
        self.default_data_sources: Dict[str, DataSource] = {}
        self.model_builder = ModelBuilder()
        self._memory_data_sources: Dict[str, DataSource] = {}

        root = Model.extend("Model")
        root.registry = self
        self.model_builder.register(root)

        persisted = root.extend("PersistedModel", bases=(PersistedModel,))
        persisted.registry = self
        self.model_builder.register(persisted)

        self.model_builder.default_model_base_class = root

    # -----------------------------
    # Models
    # -----------------------------

    def create_model(
        self,
        name: str | Mapping[str, Any] | ModelDefinition,
        properties: Optional[Mapping[str, Any]] = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> type[Model]:
        """
        Create a model type. Two call styles:

            registry.create_model("Author", {"firstName": "string"}, {"relations": {...}})
            registry.create_model({"name": "Author", "properties": {...}, "relations": {...}})

        In the second style any key other than name/properties/options is an option.
        A string `base` (or `super`) must name a known model.
        """
        if isinstance(name, ModelDefinition):
            name = name.to_config()
        if isinstance(name, Mapping):
            config = name
            name = config.get("name")  # type: ignore[assignment]
            properties = config.get("properties")
            options = build_model_options_from_config(config)
            if not isinstance(name, str):
                raise TypeError("The model-config property `name` must be a string")

        options = dict(options or {})
        base: Any = options.get("base") or options.get("super")

        if isinstance(base, str):
            base_name = base
            base = self.find_model(base_name)
            if base is None:
                raise ModelNotFoundError(
                    f"Model not found: model `{name}` is extending an unknown model `{base_name}`."
                )

        base = base or self.get_model("PersistedModel")
        model = base.extend(name, properties, options)
        model.registry = self
        self.model_builder.register(model)
        self._apply_mixins(model, options.get("mixins"))
        return model

    def _apply_mixins(self, model: type[Model], mixins: Any) -> None:
        if not mixins:
            return
        if isinstance(mixins, (list, tuple)):
            mixins = {m: True for m in mixins}
        if not isinstance(mixins, Mapping):
            logger.warning("The mixins property of `%s` must be an object", model.model_name)
            return
        for mixin_name, mixin_options in mixins.items():
            if mixin_options is False or mixin_options is None:
                continue
            if not self.model_builder.mixins.apply(model, mixin_name, mixin_options):
                logger.warning("Model `%s` uses an unknown mixin `%s`", model.model_name, mixin_name)

    def configure_model(self, model: type[Model], config: Mapping[str, Any]) -> None:
        """
        Alter an existing model type.

        relations: merged per relation name
        acls:      entries replace those with the same (property, accessType, principalType, principalId)
        options:   copied into settings, except protected keys (base, super, relations, acls, dataSource)
        dataSource: attached last, so the data source sees the updated configuration
        """
        settings = model.settings
        model_name = model.model_name

        relations_cfg = config.get("relations")
        if isinstance(relations_cfg, Mapping):
            relations = settings.setdefault("relations", {})
            for key, rel in relations_cfg.items():
                if not isinstance(rel, Mapping):
                    logger.warning("Relation `%s` of `%s` configuration must be an object", key, model_name)
                    continue
                relations[key] = {**(relations.get(key) or {}), **rel}
        elif relations_cfg is not None:
            logger.warning("The relations property of `%s` configuration must be an object", model_name)

        acls_cfg = config.get("acls")
        if isinstance(acls_cfg, list):
            acls: List[Dict[str, Any]] = settings.setdefault("acls", [])
            for acl in acls_cfg:
                if not isinstance(acl, Mapping):
                    logger.warning("Skipping ACL %r of `%s` configuration - must be an object", acl, model_name)
                    continue
                add_acl(acls, acl)
        elif acls_cfg is not None:
            logger.warning("The acls property of `%s` configuration must be an array of objects", model_name)

        options_cfg = config.get("options")
        if isinstance(options_cfg, Mapping):
            for key, value in options_cfg.items():
                if key in PROTECTED_SETTINGS:
                    logger.warning("Property `%s` cannot be reconfigured for `%s`", key, model_name)
                    continue
                settings[key] = value
        elif options_cfg is not None:
            logger.warning("The options property of `%s` configuration must be an object", model_name)

        data_source = config.get("dataSource")
        if data_source:
            if not isinstance(data_source, DataSource):
                raise DataSourceError(
                    f"Cannot configure {model_name}: config.dataSource must be an instance of DataSource"
                )
            model.attach_to(data_source)
        elif data_source is False or (data_source is None and "dataSource" in config):
            logger.debug("Model `%s` is not attached to any DataSource by configuration.", model_name)
        else:
            logger.warning(
                "The configuration of `%s` is missing `dataSource` property. "
                "Use `null` or `false` to mark models not attached to any data source.",
                model_name,
            )

    def find_model(self, model_or_name: str | type[Model]) -> Optional[type[Model]]:
        if isinstance(model_or_name, type):
            return model_or_name
        return self.model_builder.get(model_or_name)

    def get_model(self, model_or_name: str | type[Model]) -> type[Model]:
        model = self.find_model(model_or_name)
        if model is not None:
            return model
        raise ModelNotFoundError(f"Model not found: {model_or_name}")

    def get_model_by_type(self, model_type: str | type[Model]) -> type[Model]:
        """Return the first registered subtype of `model_type`, or `model_type` itself."""
        if not isinstance(model_type, (str, type)):
            raise TypeError("The model type must be a model class or model name")
        if isinstance(model_type, str):
            model_type = self.get_model(model_type)
        for candidate in self.model_builder.models.values():
            if candidate is not model_type and issubclass(candidate, model_type):
                return candidate
        return model_type

    # -----------------------------
    # Data sources
    # -----------------------------

    def create_data_source(self, name: Optional[str], settings: Mapping[str, Any]) -> DataSource:
        return DataSource(name, settings)

    def memory(self, name: str = "default") -> DataSource:
        """Get an in-memory data source, creating it on first use."""
        ds = self._memory_data_sources.get(name)
        if ds is None:
            ds = self._memory_data_sources[name] = self.create_data_source(name, {"connector": "memory"})
        return ds
