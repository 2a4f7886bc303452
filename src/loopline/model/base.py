"""
Model types, the model builder and mixins.

Every registry owns its own root types (`Model`, `PersistedModel`), derived from the
classes defined here, so applications with local registries never share state.

    Customer = PersistedModel.extend("Customer", {"name": "string"})
    Customer.attach_to(data_source)
    c = Customer(name="TY")
    c.save()
    Customer.find_by_id(c.id).name == "TY"
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Callable, ClassVar, Dict, Iterator, List, Mapping, Optional

from sqlalchemy import delete, func, insert, select, update

from loopline.exceptions import ModelNotAttachedError
from .spec import acl_key

logger = logging.getLogger(__name__)

MIXIN_MARKER = "__loopline_mixin__"

# Settings merged (not replaced) when a model extends another.
_MERGED_SETTINGS = ("relations", "acls", "hidden", "methods")


def mixin(fn: Any) -> Any:
    """Mark `fn` (function, class or any object) as a mixin."""
    setattr(fn, MIXIN_MARKER, True)
    return fn


def is_mixin(value: Any) -> bool:
    return callable(value) or bool(getattr(value, MIXIN_MARKER, False))


def normalize_property(spec: Any) -> Dict[str, Any]:
    """
    "string"                  -> {"type": "string"}
    {"type": "number", ...}   -> unchanged (copied)
    """
    if isinstance(spec, Mapping):
        out = dict(spec)
        out.setdefault("type", "any")
        return out
    if isinstance(spec, type):
        return {"type": spec.__name__.lower()}
    return {"type": str(spec) if spec is not None else "any"}


def add_acl(acls: List[Dict[str, Any]], acl: Mapping[str, Any]) -> None:
    """Replace the entry with the same (property, accessType, principalType, principalId), else append."""
    key = acl_key(acl)
    for i, existing in enumerate(acls):
        if acl_key(existing) == key:
            acls[i] = dict(acl)
            return
    acls.append(dict(acl))


def merge_settings(base: Mapping[str, Any], options: Mapping[str, Any]) -> Dict[str, Any]:
    settings = copy.deepcopy(dict(base))
    for key, value in options.items():
        if key == "relations" and isinstance(value, Mapping):
            relations = settings.setdefault("relations", {})
            for rel_name, rel in value.items():
                if not isinstance(rel, Mapping):
                    logger.warning("Ignoring relation `%s` - must be an object", rel_name)
                    continue
                relations[rel_name] = {**relations.get(rel_name, {}), **rel}
        elif key == "acls" and isinstance(value, list):
            acls = settings.setdefault("acls", [])
            for acl in value:
                if isinstance(acl, Mapping):
                    add_acl(acls, acl)
                else:
                    logger.warning("Ignoring ACL %r - must be an object", acl)
        elif key == "hidden" and isinstance(value, list):
            hidden = settings.setdefault("hidden", [])
            hidden.extend(h for h in value if h not in hidden)
        elif key == "methods" and isinstance(value, Mapping):
            settings.setdefault("methods", {}).update(value)
        else:
            settings[key] = value
    return settings


class Model:
    """
    Root of every model type.

    Class-level state (one copy per model type):
      model_name, properties (name -> normalized spec), settings, registry, data_source, app.
    """

    model_name: ClassVar[str] = "Model"
    properties: ClassVar[Dict[str, Dict[str, Any]]] = {}
    settings: ClassVar[Dict[str, Any]] = {}
    registry: ClassVar[Any] = None
    data_source: ClassVar[Any] = None
    app: ClassVar[Any] = None
    _listeners: ClassVar[Dict[str, List[Callable[..., Any]]]] = {}

    def __init__(self, **data: Any) -> None:
        self.id = data.pop("id", None)
        for prop, spec in self.properties.items():
            if prop == "id":
                continue
            default = copy.deepcopy(spec.get("default"))
            setattr(self, prop, data.pop(prop, default))
        for key, value in data.items():
            setattr(self, key, value)

    def __repr__(self) -> str:
        return f"<{self.model_name} id={self.id!r}>"

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"id": self.id}
        hidden = set(self.settings.get("hidden", []))
        for prop in self.properties:
            if prop not in hidden and prop != "id":
                out[prop] = getattr(self, prop, None)
        return out

    # -----------------------------
    # Type construction
    # -----------------------------

    @classmethod
    def extend(
        cls,
        name: str,
        properties: Optional[Mapping[str, Any]] = None,
        options: Optional[Mapping[str, Any]] = None,
        *,
        bases: tuple[type, ...] = (),
    ) -> type["Model"]:
        """
        Create a subtype named `name` inheriting properties and settings from this model.
        """
        options = dict(options or {})
        props = {k: dict(v) for k, v in cls.properties.items()}
        for prop, spec in (properties or {}).items():
            props[prop] = normalize_property(spec)

        settings = merge_settings(cls.settings, {k: v for k, v in options.items() if k not in ("base", "super")})

        attrs = {
            "model_name": name,
            "properties": props,
            "settings": settings,
            "data_source": None,
            "app": None,
            "_listeners": {},
            "__module__": cls.__module__,
        }
        model = type(name, (*bases, cls), attrs)
        model.setup()
        return model

    @classmethod
    def setup(cls) -> None:
        """Hook run on every new model type."""

    # -----------------------------
    # Events
    # -----------------------------

    @classmethod
    def on(cls, event: str, listener: Callable[..., Any]) -> None:
        cls._listeners.setdefault(event, []).append(listener)

    @classmethod
    def emit(cls, event: str, *args: Any) -> None:
        for listener in list(cls._listeners.get(event, [])):
            listener(*args)

    # -----------------------------
    # Data source
    # -----------------------------

    @classmethod
    def attach_to(cls, data_source: Any) -> None:
        data_source.attach(cls)
        cls.data_source = data_source
        cls.emit("dataSourceAttached", data_source)

    @classmethod
    def is_attached(cls) -> bool:
        return cls.data_source is not None


class PersistedModel(Model):
    """Model with basic CRUD support through its data source."""

    model_name: ClassVar[str] = "PersistedModel"

    @classmethod
    def _require_data_source(cls) -> Any:
        ds = cls.data_source
        if ds is None:
            raise ModelNotAttachedError(
                f"Model '{cls.model_name}' is not attached to a data source. "
                "Configure it with a `dataSource` before persisting instances."
            )
        return ds

    def _values(self) -> Dict[str, Any]:
        return {prop: getattr(self, prop, None) for prop in self.properties if prop != "id"}

    @classmethod
    def _from_row(cls, row: Mapping[str, Any]) -> "PersistedModel":
        return cls(**dict(row))

    def save(self) -> "PersistedModel":
        ds = self._require_data_source()
        table = ds.table_for(type(self))
        values = self._values()
        with ds.session() as sess:
            if self.id is not None:
                res = sess.execute(update(table).where(table.c.id == self.id).values(**values))
                if res.rowcount:
                    return self
                values["id"] = self.id
            res = sess.execute(insert(table).values(**values))
            if self.id is None:
                self.id = res.inserted_primary_key[0]
        return self

    @classmethod
    def create(cls, **data: Any) -> "PersistedModel":
        return cls(**data).save()

    @classmethod
    def find_by_id(cls, id: Any) -> Optional["PersistedModel"]:
        ds = cls._require_data_source()
        table = ds.table_for(cls)
        with ds.session() as sess:
            row = sess.execute(select(table).where(table.c.id == id)).mappings().first()
        return cls._from_row(row) if row is not None else None

    @classmethod
    def find(cls, where: Optional[Mapping[str, Any]] = None) -> List["PersistedModel"]:
        ds = cls._require_data_source()
        table = ds.table_for(cls)
        stmt = select(table)
        for col, value in (where or {}).items():
            stmt = stmt.where(table.c[col] == value)
        with ds.session() as sess:
            rows = sess.execute(stmt.order_by(table.c.id)).mappings().all()
        return [cls._from_row(r) for r in rows]

    @classmethod
    def count(cls) -> int:
        ds = cls._require_data_source()
        table = ds.table_for(cls)
        with ds.session() as sess:
            return int(sess.execute(select(func.count()).select_from(table)).scalar_one())

    @classmethod
    def exists(cls, id: Any) -> bool:
        return cls.find_by_id(id) is not None

    @classmethod
    def destroy_by_id(cls, id: Any) -> int:
        ds = cls._require_data_source()
        table = ds.table_for(cls)
        with ds.session() as sess:
            return int(sess.execute(delete(table).where(table.c.id == id)).rowcount or 0)


class MixinRegistry:
    """Named mixins available to model definitions (`"mixins": {"TimeStamp": true}`)."""

    def __init__(self) -> None:
        self._mixins: Dict[str, Any] = {}

    def define(self, name: str, value: Any) -> None:
        if not is_mixin(value):
            raise TypeError(f"Mixin '{name}' must be callable or marked with @mixin (got {type(value)!r})")
        self._mixins[name] = value

    def get(self, name: str) -> Any:
        return self._mixins.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._mixins

    def __iter__(self) -> Iterator[str]:
        return iter(self._mixins)

    def apply(self, model: type[Model], name: str, options: Any = None) -> bool:
        value = self._mixins.get(name)
        if value is None:
            return False
        opts = dict(options) if isinstance(options, Mapping) else {}
        if isinstance(value, type) and issubclass(value, Model):
            for prop, spec in value.properties.items():
                model.properties.setdefault(prop, dict(spec))
            for attr, member in vars(value).items():
                if not attr.startswith("_") and attr not in vars(Model) and callable(member):
                    setattr(model, attr, member)
        else:
            value(model, opts)
        return True


class ModelBuilder:
    """Name -> model type mapping of one registry, plus its mixins."""

    def __init__(self) -> None:
        self.models: Dict[str, type[Model]] = {}
        self.mixins = MixinRegistry()
        self.default_model_base_class: Optional[type[Model]] = None

    def register(self, model: type[Model]) -> type[Model]:
        self.models[model.model_name] = model
        return model

    def get(self, name: str) -> Optional[type[Model]]:
        return self.models.get(name)
