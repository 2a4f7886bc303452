from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Self

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from loopline.config import DatabaseSettings


@dataclass(slots=True)
class SessionManager:
    engine: Engine

    @classmethod
    def from_settings(cls, s: DatabaseSettings) -> Self:
        if s.in_memory:
            return cls.in_memory()
        engine = create_engine(
            s.sqlalchemy_url(),
            pool_pre_ping=s.pool_pre_ping,
            future=True,
        )
        return cls(engine=engine)

    @classmethod
    def from_url(cls, url: str) -> Self:
        if url in ("sqlite://", "sqlite:///:memory:", "sqlite+pysqlite:///:memory:"):
            return cls.in_memory()
        return cls(engine=create_engine(url, future=True))

    @classmethod
    def in_memory(cls) -> Self:
        # One shared connection, otherwise every checkout sees an empty database.
        engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            future=True,
        )
        return cls(engine=engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        sess = Session(self.engine, future=True)
        try:
            yield sess
            # If we reach here without exception -> commit
            sess.commit()
        except Exception:
            # On error -> rollback
            sess.rollback()
            raise
        finally:
            sess.close()

    def dispose(self) -> None:
        self.engine.dispose()

