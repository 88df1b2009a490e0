from __future__ import annotations

import os
import sqlite3
from contextlib import closing, contextmanager
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional

from .schema import CREATE_TABLES_SQL, get_pragma_settings

UNSET: Any = object()


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def to_db(value: Optional[datetime]) -> Optional[str]:
    """Normalize a datetime to the stored UTC ISO string (naive values are UTC)."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).replace(microsecond=0).isoformat()


def from_db(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def placeholders(values: Iterable[Any]) -> str:
    return ", ".join("?" for _ in values)


def date_param(value: date) -> str:
    return value.isoformat()


class BaseRepository:
    """Shared SQLite plumbing. Each repository opens one connection per call."""

    def __init__(self, db_path: Optional[Path] = None):
        root = Path(__file__).resolve().parents[2]
        default_path = root / "data" / "taskflow.db"
        env_path = os.getenv("TASKFLOW_DB_PATH")
        if db_path:
            self.db_path = Path(db_path)
        elif env_path:
            self.db_path = Path(env_path)
        else:
            self.db_path = default_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """One transaction on a fresh connection, closed on exit."""
        with closing(sqlite3.connect(self.db_path)) as conn:
            conn.row_factory = sqlite3.Row
            for pragma in get_pragma_settings():
                conn.execute(pragma)
            with conn:
                yield conn

    def _initialize(self) -> None:
        with self._connect() as conn:
            conn.executescript(CREATE_TABLES_SQL)
            conn.commit()

    @staticmethod
    def _now() -> str:
        return to_db(utc_now())
