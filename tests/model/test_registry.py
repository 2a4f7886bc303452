# tests/model/test_registry.py
from __future__ import annotations

import logging

import pytest

from loopline.datasource import DataSource
from loopline.exceptions import DataSourceError, ModelNotFoundError
from loopline.model.base import Model, PersistedModel
from loopline.model.registry import Registry, build_model_options_from_config


@pytest.fixture
def registry() -> Registry:
    return Registry()


def test_registries_do_not_share_root_models() -> None:
    r1, r2 = Registry(), Registry()
    assert r1.get_model("PersistedModel") is not r2.get_model("PersistedModel")
    assert issubclass(r1.get_model("PersistedModel"), PersistedModel)
    assert r1.get_model("Model").registry is r1


def test_options_merge_top_level_keys() -> None:
    opts = build_model_options_from_config({"name": "A", "base": "B", "options": {"base": "C", "x": 1}})
    assert opts == {"base": "C", "x": 1}


def test_create_model_both_call_styles(registry: Registry) -> None:
    a = registry.create_model("Author", {"firstName": "string"}, {"strict": True})
    b = registry.create_model({"name": "Book", "properties": {"title": "string"}, "strict": False})

    assert a.model_name == "Author"
    assert a.properties["firstName"] == {"type": "string"}
    assert a.settings["strict"] is True
    assert b.settings["strict"] is False
    assert issubclass(a, registry.get_model("PersistedModel"))
    assert registry.find_model("Book") is b
    assert b.registry is registry


def test_create_model_inherits_from_named_base(registry: Registry) -> None:
    user = registry.create_model({"name": "User", "properties": {"email": "string"}, "hidden": ["password"]})
    admin = registry.create_model({"name": "Admin", "base": "User", "properties": {"level": "number"}})

    assert issubclass(admin, user)
    assert set(admin.properties) == {"email", "level"}
    assert admin.settings["hidden"] == ["password"]
    assert "base" not in admin.settings


def test_create_model_unknown_base_fails(registry: Registry) -> None:
    with pytest.raises(ModelNotFoundError, match="extending an unknown model `Ghost`"):
        registry.create_model({"name": "Haunted", "base": "Ghost"})


def test_create_model_requires_string_name(registry: Registry) -> None:
    with pytest.raises(TypeError):
        registry.create_model({"properties": {}})


def test_configure_model_merges_relations_and_acls(registry: Registry) -> None:
    model = registry.create_model(
        {
            "name": "Order",
            "relations": {"customer": {"type": "belongsTo", "model": "Customer"}},
            "acls": [{"accessType": "*", "principalType": "ROLE", "principalId": "$everyone", "permission": "DENY"}],
        }
    )

    registry.configure_model(
        model,
        {
            "dataSource": None,
            "relations": {"customer": {"foreignKey": "customerId"}, "items": {"type": "hasMany"}},
            "acls": [
                {"accessType": "*", "principalType": "ROLE", "principalId": "$everyone", "permission": "ALLOW"},
                {"accessType": "READ", "principalType": "ROLE", "principalId": "$owner", "permission": "ALLOW"},
            ],
        },
    )

    assert model.settings["relations"]["customer"] == {
        "type": "belongsTo",
        "model": "Customer",
        "foreignKey": "customerId",
    }
    assert model.settings["relations"]["items"] == {"type": "hasMany"}
    assert [a["permission"] for a in model.settings["acls"]] == ["ALLOW", "ALLOW"]
    assert len(model.settings["acls"]) == 2


def test_configure_model_rejects_protected_options(registry: Registry, caplog: pytest.LogCaptureFixture) -> None:
    model = registry.create_model({"name": "Thing"})

    with caplog.at_level(logging.WARNING, logger="loopline"):
        registry.configure_model(model, {"dataSource": False, "options": {"base": "Other", "plural": "things"}})

    assert model.settings["plural"] == "things"
    assert "base" not in model.settings
    assert "cannot be reconfigured" in caplog.text


def test_configure_model_warns_on_bad_shapes(registry: Registry, caplog: pytest.LogCaptureFixture) -> None:
    model = registry.create_model({"name": "Thing"})

    with caplog.at_level(logging.WARNING, logger="loopline"):
        registry.configure_model(model, {"relations": [], "acls": {}, "options": "x"})

    text = caplog.text
    assert "relations property" in text
    assert "acls property" in text
    assert "options property" in text
    assert "missing `dataSource`" in text


def test_configure_model_attaches_data_source(registry: Registry) -> None:
    model = registry.create_model({"name": "Note", "properties": {"body": "string"}})
    ds = registry.memory()

    registry.configure_model(model, {"dataSource": ds})

    assert model.data_source is ds
    assert "Note" in ds.models


def test_configure_model_rejects_non_data_source(registry: Registry) -> None:
    model = registry.create_model({"name": "Note"})
    with pytest.raises(DataSourceError):
        registry.configure_model(model, {"dataSource": "db"})


def test_null_data_source_is_not_a_warning(registry: Registry, caplog: pytest.LogCaptureFixture) -> None:
    model = registry.create_model({"name": "Note"})
    with caplog.at_level(logging.DEBUG, logger="loopline"):
        registry.configure_model(model, {"dataSource": None})

    assert model.data_source is None
    assert not [r for r in caplog.records if r.levelno >= logging.WARNING]


def test_get_model_and_get_model_by_type(registry: Registry) -> None:
    with pytest.raises(ModelNotFoundError):
        registry.get_model("Missing")

    user = registry.create_model({"name": "User"})
    custom = registry.create_model({"name": "CustomUser", "base": "User"})

    assert registry.get_model_by_type("User") is custom
    assert registry.get_model_by_type(custom) is custom
    with pytest.raises(TypeError):
        registry.get_model_by_type(42)  # type: ignore[arg-type]
    assert user.model_name == "User"


def test_memory_data_sources_are_cached(registry: Registry) -> None:
    ds = registry.memory("cache")
    assert isinstance(ds, DataSource)
    assert registry.memory("cache") is ds
    assert registry.memory("other") is not ds


def test_mixins_are_applied_by_name(registry: Registry) -> None:
    def timestamps(model, options):
        model.properties["createdAt"] = {"type": "date", "required": options.get("required", False)}

    registry.model_builder.mixins.define("TimeStamp", timestamps)
    model = registry.create_model({"name": "Post", "mixins": {"TimeStamp": {"required": True}, "Unknown": True}})

    assert model.properties["createdAt"] == {"type": "date", "required": True}


def test_model_class_mixin_copies_properties_and_methods(registry: Registry) -> None:
    class Taggable(Model):
        properties = {"tags": {"type": "array"}}

        def tag_count(self) -> int:
            return len(self.tags or [])

    registry.model_builder.mixins.define("Taggable", Taggable)
    post = registry.create_model({"name": "Post", "mixins": ["Taggable"]})

    assert "tags" in post.properties
    assert post(tags=["a", "b"]).tag_count() == 2


def test_mixin_registry_rejects_plain_values(registry: Registry) -> None:
    with pytest.raises(TypeError):
        registry.model_builder.mixins.define("Bad", {"not": "callable"})


def test_non_object_relation_is_skipped(registry: Registry, caplog: pytest.LogCaptureFixture) -> None:
    model = registry.create_model({"name": "Order", "relations": {"customer": {"type": "belongsTo"}}})

    with caplog.at_level(logging.WARNING, logger="loopline"):
        registry.configure_model(
            model,
            {
                "dataSource": None,
                "relations": {"customer": "hasOne", "items": {"type": "hasMany"}},
                "acls": ["$everyone", {"accessType": "READ", "permission": "ALLOW"}],
            },
        )

    assert model.settings["relations"] == {"customer": {"type": "belongsTo"}, "items": {"type": "hasMany"}}
    assert model.settings["acls"] == [{"accessType": "READ", "permission": "ALLOW"}]
    assert "Relation `customer`" in caplog.text
    assert "$everyone" in caplog.text
