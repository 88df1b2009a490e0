"""SQLite storage shared by every repository."""

from .base import UNSET, BaseRepository, from_db, to_db, utc_now

__all__ = ["UNSET", "BaseRepository", "from_db", "to_db", "utc_now"]
