"""
Data sources and connectors.

A data source turns attached model types into SQLAlchemy tables and runs their queries.

Built-in connectors:
  memory      SQLite in-memory database, tables created on attach.
  sqlalchemy  any SQLAlchemy URL (`url`) or a `database` section (see DatabaseSettings);
              tables are created on attach only with `automigrate: true`, otherwise
              call `DataSource.automigrate()` deliberately.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, ClassVar, Dict, Iterator, List, Mapping, Optional

import sqlalchemy as sa
from sqlalchemy import Column, MetaData, Table
from sqlalchemy.orm import Session

from loopline.config import DatabaseSettings
from loopline.database import SessionManager
from loopline.exceptions import DataSourceError

logger = logging.getLogger(__name__)

# Declared property type -> SQLAlchemy column type
PROPERTY_TYPES: Dict[str, Any] = {
    "string": sa.String,
    "text": sa.Text,
    "number": sa.Float,
    "integer": sa.Integer,
    "int": sa.Integer,
    "boolean": sa.Boolean,
    "bool": sa.Boolean,
    "date": sa.DateTime,
    "datetime": sa.DateTime,
    "object": sa.JSON,
    "array": sa.JSON,
    "any": sa.JSON,
}


def column_type_for(spec: Mapping[str, Any]) -> Any:
    type_name = spec.get("type", "any")
    if isinstance(type_name, list):
        return sa.JSON
    return PROPERTY_TYPES.get(str(type_name).lower(), sa.JSON)


class Connector:
    """Base connector: sets up `data_source.db` in `initialize()`."""

    name: ClassVar[str] = "connector"
    types: ClassVar[tuple[str, ...]] = ("db",)

    def initialize(self, data_source: "DataSource") -> None:
        raise NotImplementedError

    def auto_migrate(self, data_source: "DataSource") -> bool:
        return bool(data_source.settings.get("automigrate", False))


class MemoryConnector(Connector):
    name = "memory"

    def initialize(self, data_source: "DataSource") -> None:
        data_source.db = SessionManager.in_memory()

    def auto_migrate(self, data_source: "DataSource") -> bool:
        return True


class SqlAlchemyConnector(Connector):
    name = "sqlalchemy"

    def initialize(self, data_source: "DataSource") -> None:
        settings = data_source.settings
        url = settings.get("url")
        if url:
            data_source.db = SessionManager.from_url(str(url))
            return
        db_settings = DatabaseSettings.model_validate(settings.get("database") or {})
        data_source.db = SessionManager.from_settings(db_settings)


BUILTIN_CONNECTORS: Dict[str, type[Connector]] = {
    MemoryConnector.name: MemoryConnector,
    SqlAlchemyConnector.name: SqlAlchemyConnector,
}


def resolve_connector(connector: Any) -> Connector:
    """Accept a Connector instance, a Connector class or a built-in connector name."""
    if isinstance(connector, Connector):
        return connector
    if isinstance(connector, type) and issubclass(connector, Connector):
        return connector()
    if isinstance(connector, str):
        cls = BUILTIN_CONNECTORS.get(connector)
        if cls is None:
            raise DataSourceError(
                f"Unknown connector '{connector}'. Known: {sorted(BUILTIN_CONNECTORS)}"
            )
        return cls()
    raise DataSourceError(f"Invalid connector {connector!r}")


class DataSource:
    """
    Named connection to a database plus the tables of the models attached to it.
    """

    def __init__(self, name: Optional[str], settings: Optional[Mapping[str, Any]] = None) -> None:
        settings = dict(settings or {})
        if "connector" not in settings:
            raise DataSourceError("can not create data source without a `connector` setting")
        if settings.get("defaultForType"):
            raise DataSourceError('DataSource option "defaultForType" is no longer supported')

        self.connector = resolve_connector(settings.pop("connector"))
        self.name = name or self.connector.name
        self.settings = settings
        self.metadata = MetaData()
        self.models: Dict[str, type] = {}
        self._tables: Dict[str, Table] = {}
        self.db: Optional[SessionManager] = None

        self.connector.initialize(self)
        if self.db is None:
            raise DataSourceError(f"Connector '{self.connector.name}' did not initialize data source '{self.name}'")

    def __repr__(self) -> str:
        return f"<DataSource {self.name!r} connector={self.connector.name!r}>"

    def get_types(self) -> tuple[str, ...]:
        return tuple(self.connector.types)

    # -----------------------------
    # Tables
    # -----------------------------

    def define_table(self, model: type) -> Table:
        name = model.model_name
        existing = self._tables.get(name)
        if existing is not None:
            self.metadata.remove(existing)

        columns: List[Column] = [Column("id", sa.Integer, primary_key=True, autoincrement=True)]
        for prop, spec in model.properties.items():
            if prop == "id":
                continue
            columns.append(
                Column(prop, column_type_for(spec), nullable=not bool(spec.get("required", False)))
            )

        table = Table(name, self.metadata, *columns)
        self._tables[name] = table
        return table

    def attach(self, model: type) -> Table:
        table = self.define_table(model)
        self.models[model.model_name] = model
        if self.connector.auto_migrate(self):
            assert self.db is not None
            table.create(self.db.engine, checkfirst=True)
        logger.debug("Attached model `%s` to dataSource `%s`", model.model_name, self.name)
        return table

    def table_for(self, model: type) -> Table:
        try:
            return self._tables[model.model_name]
        except KeyError as e:
            raise DataSourceError(
                f"Model '{model.model_name}' is not attached to data source '{self.name}'"
            ) from e

    def automigrate(self) -> None:
        """Create missing tables for every attached model (checkfirst=True)."""
        assert self.db is not None
        try:
            self.metadata.create_all(self.db.engine, checkfirst=True)
        except Exception as e:
            raise DataSourceError(f"Failed to create tables for data source '{self.name}': {e}") from e

    # -----------------------------
    # Sessions
    # -----------------------------

    @contextmanager
    def session(self) -> Iterator[Session]:
        assert self.db is not None
        with self.db.session() as sess:
            yield sess

    def disconnect(self) -> None:
        if self.db is not None:
            self.db.dispose()
