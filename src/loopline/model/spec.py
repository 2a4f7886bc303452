# src/loopline/model/spec.py

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

logger = logging.getLogger(__name__)

ACL_KEY_FIELDS = ("property", "accessType", "principalType", "principalId")


def acl_key(acl: Mapping[str, Any]) -> tuple:
    """The identity of an ACL entry: (property, accessType, principalType, principalId)."""
    return tuple(acl.get(k) for k in ACL_KEY_FIELDS)


class AclEntry(BaseModel):
    """
    One access-control entry of a model definition.

    Only the shape is checked here; loopline merges ACLs but does not enforce them.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    property_name: Optional[Union[str, List[str]]] = Field(default=None, alias="property")
    access_type: Optional[str] = Field(default=None, alias="accessType")
    principal_type: Optional[str] = Field(default=None, alias="principalType")
    principal_id: Optional[Union[str, int]] = Field(default=None, alias="principalId")
    permission: Optional[str] = None

    def to_config(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ModelDefinition(BaseModel):
    """
    Declarative schema of one model, as read from `<name>.json`.

    name:
        Model name. May be missing in the file; the scanner then derives it from the file name.
    base:
        Parent model, by name or as a model class. May also be given as `options.base`.
    Anything not listed below is kept and treated as a model option by `Registry.create_model`.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True, arbitrary_types_allowed=True)

    name: Optional[str] = None
    properties: Dict[str, Any] = Field(default_factory=dict)
    base: Optional[Union[str, type]] = None
    options: Dict[str, Any] = Field(default_factory=dict)
    relations: Dict[str, Any] = Field(default_factory=dict)
    acls: List[AclEntry] = Field(default_factory=list)
    hidden: List[str] = Field(default_factory=list)
    methods: Dict[str, Any] = Field(default_factory=dict)

    # noinspection PyNestedDecorators
    @model_validator(mode="before")
    @classmethod
    def _drop_malformed_sections(cls, data: Any) -> Any:
        """
        A section with the wrong shape is dropped (with a warning); the rest of the model is kept.
        """
        if not isinstance(data, Mapping):
            return data
        data = dict(data)
        name = data.get("name") or "(unnamed)"

        for key in ("properties", "options", "relations", "methods"):
            value = data.get(key)
            if value is not None and not isinstance(value, Mapping):
                logger.warning("Ignoring `%s` of model `%s` - must be an object", key, name)
                data.pop(key)

        relations = data.get("relations")
        if relations:
            kept = {}
            for rel_name, rel in relations.items():
                if isinstance(rel, Mapping):
                    kept[rel_name] = rel
                else:
                    logger.warning("Ignoring relation `%s` of model `%s` - must be an object", rel_name, name)
            data["relations"] = kept

        hidden = data.get("hidden")
        if hidden is not None and not (isinstance(hidden, list) and all(isinstance(h, str) for h in hidden)):
            logger.warning("Ignoring `hidden` of model `%s` - must be an array of property names", name)
            data.pop("hidden")

        acls = data.get("acls")
        if acls is not None:
            if not isinstance(acls, list):
                logger.warning("Ignoring `acls` of model `%s` - must be an array of objects", name)
                data.pop("acls")
            else:
                valid = []
                for idx, acl in enumerate(acls):
                    try:
                        valid.append(AclEntry.model_validate(acl))
                    except ValidationError as e:
                        logger.warning("Ignoring ACL #%s of model `%s`: %s", idx, name, e)
                data["acls"] = valid

        return data

    # noinspection PyNestedDecorators
    @field_validator("name")
    @classmethod
    def _normalize_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        s = v.strip()
        return s or None

    # noinspection PyNestedDecorators
    @field_validator("base")
    @classmethod
    def _normalize_base(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip() or None
        return v

    @property
    def base_name(self) -> Optional[str]:
        """Name of the parent model, looking at `base` first and `options.base` second."""
        base = self.base or self.options.get("base")
        if base is None or isinstance(base, str):
            return base or None
        return getattr(base, "model_name", None) or getattr(base, "__name__", None)

    def to_config(self) -> Dict[str, Any]:
        """
        Plain config mapping accepted by `Registry.create_model(config)`.

        Only keys present in the source are emitted, so defaults never shadow `options`.
        """
        data = self.model_dump(exclude_unset=True, by_alias=True)
        if "acls" in data:
            data["acls"] = [a.to_config() for a in self.acls]
        if self.base is not None:
            data["base"] = self.base
        data["name"] = self.name
        return data


class SourceEntry(BaseModel):
    """A model definition plus the optional customization script found next to it."""

    model_config = ConfigDict(populate_by_name=True)

    definition: ModelDefinition
    source_file: Optional[Path] = Field(
        default=None,
        validation_alias=AliasChoices("sourceFile", "source_file"),
    )


class MixinSource(BaseModel):
    """
    A named mixin, either loaded from `source_file` (its `mixin` export) or given inline as `mixin`.
    """

    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)

    name: str = Field(..., min_length=1)
    source_file: Optional[Path] = Field(
        default=None,
        validation_alias=AliasChoices("sourceFile", "source_file"),
    )
    mixin: Optional[Any] = None


class LoadOptions(BaseModel):
    """
    Options of `loopline.load()`.

    The option keys follow the JSON config conventions (`dataSource`, `modelDefinitions`);
    snake_case spellings are accepted too. The historical misspelling `dataSouce` is still
    honoured for existing configurations, with the lowest precedence.

    models:
        Explicit per-model configuration. When given, only these models (and the local base
        models they extend) are set up, each with its own configuration. When absent, every
        discovered model is attached to `data_source`.
    model_definitions:
        Explicit definitions that replace directory scanning.
    customizations:
        model name -> callable(model), run after the model's own script.
    """

    model_config = ConfigDict(
        extra="ignore",
        populate_by_name=True,
        arbitrary_types_allowed=True,
        protected_namespaces=(),
    )

    root: Optional[Path] = None
    sources: Optional[List[str]] = None
    data_source: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("dataSource", "data_source", "dataSouce"),
    )
    models: Optional[Dict[str, Any]] = None
    model_definitions: Optional[List[SourceEntry]] = Field(
        default=None,
        validation_alias=AliasChoices("modelDefinitions", "model_definitions"),
    )
    mixins: List[MixinSource] = Field(default_factory=list)
    customizations: Dict[str, Callable[..., Any]] = Field(default_factory=dict)


@dataclass(slots=True)
class ModelInstruction:
    """
    Unit of work for the materializer, produced in inheritance order.

    has_config:
        True when the caller configured this model (explicitly or through the default
        data source). Base models pulled in only for ordering have no config and are
        created but never attached.
    resolved_model:
        Filled in by the materializer.
    """

    name: str
    config: Any = None
    has_config: bool = False
    definition: Optional[ModelDefinition] = None
    source_file: Optional[Path] = None
    resolved_model: Optional[type] = None

    @property
    def base_name(self) -> Optional[str]:
        return self.definition.base_name if self.definition is not None else None


@dataclass(slots=True)
class LoadPlan:
    models: List[ModelInstruction] = field(default_factory=list)
    mixins: List[MixinSource] = field(default_factory=list)
    customizations: Dict[str, Callable[..., Any]] = field(default_factory=dict)
