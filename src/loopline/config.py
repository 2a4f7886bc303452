# src/loopline/config.py
from __future__ import annotations

import json
from contextlib import contextmanager
from contextvars import ContextVar
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterator, List, Literal, Optional

from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
    YamlConfigSettingsSource,
)
from sqlalchemy.engine import URL

from loopline.exceptions import LooplineRuntimeError


class ConfigError(LooplineRuntimeError):
    """Raised for unreadable or unsupported configuration files."""


DEFAULT_CONFIG_FILES = ("loopline.toml", "loopline.yaml", "loopline.yml")

# The file source is chosen per `get_settings()` call; settings classes are not.
_active_config_file: ContextVar[Optional[Path]] = ContextVar("loopline_config_file", default=None)


def find_config_file(directory: Optional[Path] = None) -> Optional[Path]:
    directory = directory or Path.cwd()
    for name in DEFAULT_CONFIG_FILES:
        candidate = directory / name
        if candidate.is_file():
            return candidate
    return None


def _file_source(settings_cls: type[BaseSettings], path: Path) -> PydanticBaseSettingsSource:
    suffix = path.suffix.lower()
    if suffix == ".toml":
        return TomlConfigSettingsSource(settings_cls, toml_file=path)
    if suffix in (".yaml", ".yml"):
        return YamlConfigSettingsSource(settings_cls, yaml_file=path)
    raise ConfigError(f"Unsupported config file type: {path} (expected .toml/.yaml/.yml)")


@contextmanager
def _using_config_file(path: Optional[Path]) -> Iterator[None]:
    token = _active_config_file.set(path)
    try:
        yield
    finally:
        _active_config_file.reset(token)


# ─────────────────────────────────────────────────────────────
# Sections
# ─────────────────────────────────────────────────────────────


class LoggingSettings(BaseModel):
    level: Literal["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"] = "WARNING"
    format: str = "%(asctime)-20s %(name)-32s %(levelname)-8s: %(message)s"


class LoaderSettings(BaseModel):
    """
    Defaults used by `loopline.load()` when the caller leaves them out.
    """

    sources: List[str] = Field(
        default_factory=lambda: ["./models"],
        description="Model source directories, resolved against the project root.",
    )
    data_source: str = Field("default", description="Data source for models without explicit configuration.")
    schema_extension: Literal[".json"] = Field(".json", description="Extension of model definition files.")

    # noinspection PyNestedDecorators
    @field_validator("sources")
    @classmethod
    def _validate_sources(cls, v: List[str]) -> List[str]:
        cleaned = [s.strip() for s in v if (s or "").strip()]
        if not cleaned:
            raise ValueError("sources must contain at least one directory")
        return cleaned


_DEFAULT_DRIVERS = {"sqlite": "pysqlite"}
_DEFAULT_PORTS = {"postgresql": 5432}


class DatabaseSettings(BaseModel):
    """
    Database section of the `sqlalchemy` connector.

    A full `url` wins; otherwise the URL is assembled from the parts below.
    SQLite without `sqlite_path` means a private in-memory database.
    """

    url: Optional[str] = Field(None, description="Full SQLAlchemy URL.")
    dialect: Literal["postgresql", "sqlite"] = "sqlite"
    driver: Optional[str] = Field(None, description="e.g. psycopg for Postgres.")

    host: str = "localhost"
    port: Optional[int] = None
    database: str = "loopline"
    username: Optional[str] = None
    password: Optional[SecretStr] = None

    sqlite_path: Optional[Path] = None
    pool_pre_ping: bool = True

    @property
    def in_memory(self) -> bool:
        return not self.url and self.dialect == "sqlite" and self.sqlite_path is None

    def sqlalchemy_url(self) -> URL | str:
        if self.url:
            return self.url

        driver = self.driver or _DEFAULT_DRIVERS.get(self.dialect)
        drivername = f"{self.dialect}+{driver}" if driver else self.dialect

        if self.dialect == "sqlite":
            return URL.create(drivername, database=":memory:" if self.sqlite_path is None else str(self.sqlite_path))

        return URL.create(
            drivername,
            username=self.username,
            password=self.password.get_secret_value() if self.password else None,
            host=self.host,
            port=self.port or _DEFAULT_PORTS.get(self.dialect),
            database=self.database,
        )


# ─────────────────────────────────────────────────────────────
# Settings
# ─────────────────────────────────────────────────────────────


class AppSettings(BaseSettings):
    """
    loopline settings, highest precedence first:

    1. keyword arguments (`get_settings(**overrides)`)
    2. LOOPLINE_* environment variables, sections nested with `__`
       (LOOPLINE_LOADER__DATA_SOURCE=db)
    3. .env / .env.local
    4. the config file (explicit, or loopline.toml / loopline.yaml in the cwd)
    5. defaults
    """

    model_config = SettingsConfigDict(
        env_prefix="LOOPLINE_",
        env_nested_delimiter="__",
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
        validate_default=True,
    )

    app_name: str = "loopline"

    logging: LoggingSettings = LoggingSettings()
    loader: LoaderSettings = LoaderSettings()
    database: DatabaseSettings = DatabaseSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        sources = [init_settings, env_settings, dotenv_settings]
        path = _active_config_file.get()
        if path is not None:
            sources.append(_file_source(settings_cls, path))
        return tuple(sources)


@lru_cache(maxsize=16)
def _cached_settings(config_file: Optional[str], overrides_json: str) -> AppSettings:
    with _using_config_file(Path(config_file) if config_file else None):
        return AppSettings(**json.loads(overrides_json))


def get_settings(*, config_file: Optional[str | Path] = None, **overrides: Any) -> AppSettings:
    """
    Cached settings for this process.

    Without `config_file` the cwd is searched for loopline.toml / loopline.yaml / loopline.yml.
    `overrides` take precedence over every other source.
    """
    if config_file is None:
        path = find_config_file()
    else:
        path = Path(config_file)
        if not path.is_file():
            raise ConfigError(f"Config file not found: {path}")

    key = json.dumps(overrides, sort_keys=True, default=str)
    return _cached_settings(str(path) if path is not None else None, key)


def clear_settings_cache() -> None:
    _cached_settings.cache_clear()
