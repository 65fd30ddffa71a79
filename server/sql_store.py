"""SQLite engine and transaction scope for the server record store."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from server.schemas import Base


def _configure_connection(dbapi_connection: Any, _record: Any) -> None:
    # Window rows rely on ON DELETE CASCADE, which SQLite only honours per connection.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _build_engine(db_path: Path | None, busy_timeout: float, echo: bool) -> Engine:
    if db_path is None:
        return create_engine(
            "sqlite+pysqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=echo,
        )
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return create_engine(
        f"sqlite+pysqlite:///{db_path}",
        connect_args={"timeout": busy_timeout, "check_same_thread": False},
        echo=echo,
    )


class SQLStore:
    """Owns the engine; ``db_path=None`` keeps everything in memory."""

    def __init__(self, db_path: Path | None = None, *, busy_timeout: float = 5.0, echo: bool = False) -> None:
        self.db_path = db_path
        self.engine = _build_engine(db_path, busy_timeout, echo)
        event.listen(self.engine, "connect", _configure_connection)
        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)

    def create_all(self) -> None:
        Base.metadata.create_all(self.engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        """One transaction: commits on success and rolls back on error."""
        sess = self._session_factory()
        try:
            yield sess
            sess.commit()
        except Exception:
            sess.rollback()
            raise
        finally:
            sess.close()

    def dispose(self) -> None:
        self.engine.dispose()
