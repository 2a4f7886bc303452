# tests/model/test_base.py
from __future__ import annotations

import pytest

from loopline.exceptions import ModelNotAttachedError
from loopline.model.base import add_acl, is_mixin, merge_settings, mixin, normalize_property
from loopline.model.registry import Registry


@pytest.fixture
def registry() -> Registry:
    return Registry()


def test_normalize_property_shapes() -> None:
    assert normalize_property("string") == {"type": "string"}
    assert normalize_property({"type": "number", "required": True}) == {"type": "number", "required": True}
    assert normalize_property({"default": 1}) == {"default": 1, "type": "any"}
    assert normalize_property(int) == {"type": "int"}
    assert normalize_property(None) == {"type": "any"}


def test_add_acl_replaces_matching_entry() -> None:
    acls = [{"accessType": "READ", "principalType": "ROLE", "principalId": "$everyone", "permission": "ALLOW"}]
    add_acl(acls, {"accessType": "READ", "principalType": "ROLE", "principalId": "$everyone", "permission": "DENY"})
    add_acl(acls, {"accessType": "WRITE", "principalType": "ROLE", "principalId": "$everyone", "permission": "DENY"})

    assert [(a["accessType"], a["permission"]) for a in acls] == [("READ", "DENY"), ("WRITE", "DENY")]


def test_merge_settings_does_not_touch_base() -> None:
    base = {"hidden": ["a"], "relations": {"r": {"type": "hasMany"}}}
    merged = merge_settings(base, {"hidden": ["a", "b"], "relations": {"r": {"model": "X"}}, "strict": True})

    assert merged == {"hidden": ["a", "b"], "relations": {"r": {"type": "hasMany", "model": "X"}}, "strict": True}
    assert base == {"hidden": ["a"], "relations": {"r": {"type": "hasMany"}}}


def test_mixin_marker() -> None:
    @mixin
    class Marker:
        pass

    assert is_mixin(Marker)
    assert is_mixin(lambda model, options: None)
    assert not is_mixin({"a": 1})


def test_instance_defaults_and_to_dict(registry: Registry) -> None:
    user = registry.create_model(
        {
            "name": "User",
            "properties": {"email": "string", "password": "string", "roles": {"type": "array", "default": []}},
            "hidden": ["password"],
        }
    )
    u1 = user(email="a@example.com", password="secret")
    u2 = user()
    u1.roles.append("admin")

    assert u1.to_dict() == {"id": None, "email": "a@example.com", "roles": ["admin"]}
    assert u2.roles == []


def test_persisted_model_requires_data_source(registry: Registry) -> None:
    note = registry.create_model({"name": "Note", "properties": {"body": "string"}})
    with pytest.raises(ModelNotAttachedError):
        note(body="x").save()
    with pytest.raises(ModelNotAttachedError):
        note.count()


def test_crud_through_memory_data_source(registry: Registry) -> None:
    note = registry.create_model({"name": "Note", "properties": {"body": "string", "stars": "number"}})
    note.attach_to(registry.memory())

    first = note.create(body="hello", stars=3)
    second = note(body="world").save()
    assert first.id is not None and second.id is not None

    found = note.find_by_id(first.id)
    assert found is not None
    assert (found.body, found.stars) == ("hello", 3)

    first.body = "changed"
    first.save()
    assert note.find_by_id(first.id).body == "changed"

    assert note.count() == 2
    assert [n.body for n in note.find({"body": "world"})] == ["world"]
    assert note.exists(second.id)

    assert note.destroy_by_id(second.id) == 1
    assert note.find_by_id(second.id) is None
    assert note.count() == 1


def test_events_are_per_model(registry: Registry) -> None:
    a = registry.create_model({"name": "A"})
    b = registry.create_model({"name": "B"})
    seen: list[object] = []
    a.on("dataSourceAttached", seen.append)

    ds = registry.memory()
    b.attach_to(ds)
    assert seen == []

    a.attach_to(ds)
    assert seen == [ds]
    assert a.is_attached()


def test_merge_settings_skips_non_object_entries() -> None:
    merged = merge_settings(
        {"relations": {"r": {"type": "hasMany"}}},
        {"relations": {"r": "oops", "s": {"type": "belongsTo"}}, "acls": ["nope", {"accessType": "READ"}]},
    )

    assert merged["relations"] == {"r": {"type": "hasMany"}, "s": {"type": "belongsTo"}}
    assert merged["acls"] == [{"accessType": "READ"}]
