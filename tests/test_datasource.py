# tests/test_datasource.py
from __future__ import annotations

from pathlib import Path

import pytest
import sqlalchemy as sa

from loopline.datasource import (
    Connector,
    DataSource,
    MemoryConnector,
    SqlAlchemyConnector,
    column_type_for,
    resolve_connector,
)
from loopline.exceptions import DataSourceError
from loopline.model.registry import Registry


def test_column_types() -> None:
    assert column_type_for({"type": "string"}) is sa.String
    assert column_type_for({"type": "Number"}) is sa.Float
    assert column_type_for({"type": ["string"]}) is sa.JSON
    assert column_type_for({"type": "geopoint"}) is sa.JSON


def test_resolve_connector_variants() -> None:
    assert isinstance(resolve_connector("memory"), MemoryConnector)
    assert isinstance(resolve_connector(SqlAlchemyConnector), SqlAlchemyConnector)
    inst = MemoryConnector()
    assert resolve_connector(inst) is inst
    with pytest.raises(DataSourceError, match="Unknown connector"):
        resolve_connector("mongodb")
    with pytest.raises(DataSourceError):
        resolve_connector(42)


def test_data_source_requires_connector() -> None:
    with pytest.raises(DataSourceError):
        DataSource("db", {})


def test_default_for_type_is_rejected() -> None:
    with pytest.raises(DataSourceError, match="defaultForType"):
        DataSource("db", {"connector": "memory", "defaultForType": "db"})


def test_connector_must_initialize() -> None:
    class Lazy(Connector):
        name = "lazy"

        def initialize(self, data_source: DataSource) -> None:
            pass

    with pytest.raises(DataSourceError, match="did not initialize"):
        DataSource("db", {"connector": Lazy})


def test_name_defaults_to_connector_name() -> None:
    ds = DataSource(None, {"connector": "memory"})
    assert ds.name == "memory"
    assert ds.get_types() == ("db",)


def test_sqlalchemy_connector_needs_automigrate(tmp_path: Path) -> None:
    registry = Registry()
    note = registry.create_model({"name": "Note", "properties": {"body": "string"}})
    url = f"sqlite+pysqlite:///{tmp_path / 'notes.db'}"

    ds = DataSource("db", {"connector": "sqlalchemy", "url": url})
    note.attach_to(ds)
    assert not sa.inspect(ds.db.engine).has_table("Note")

    ds.automigrate()
    assert sa.inspect(ds.db.engine).has_table("Note")
    note.create(body="persisted")
    assert note.count() == 1
    ds.disconnect()


def test_sqlalchemy_connector_database_section(tmp_path: Path) -> None:
    registry = Registry()
    note = registry.create_model({"name": "Note", "properties": {"body": "string"}})
    ds = DataSource(
        "db",
        {"connector": "sqlalchemy", "automigrate": True, "database": {"sqlite_path": str(tmp_path / "x.db")}},
    )
    note.attach_to(ds)

    assert sa.inspect(ds.db.engine).has_table("Note")
    assert (tmp_path / "x.db").exists()
    ds.disconnect()


def test_table_for_unattached_model() -> None:
    registry = Registry()
    note = registry.create_model({"name": "Note"})
    with pytest.raises(DataSourceError, match="not attached"):
        DataSource("db", {"connector": "memory"}).table_for(note)


def test_reattach_replaces_table_definition() -> None:
    registry = Registry()
    note = registry.create_model({"name": "Note", "properties": {"body": "string"}})
    ds = DataSource("db", {"connector": "memory"})
    ds.attach(note)
    note.properties["title"] = {"type": "string"}

    table = ds.attach(note)
    assert "title" in table.c
    assert ds.table_for(note) is table
