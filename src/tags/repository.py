from __future__ import annotations

import sqlite3
from typing import Any, Iterable, List, Optional

from src.storage import UNSET, BaseRepository
from src.storage.base import placeholders

from .models import Tag


class TagRepository(BaseRepository):
    """Per-user tags. Names are unique per user."""

    @staticmethod
    def _row_to_tag(row: sqlite3.Row) -> Tag:
        keys = row.keys()
        return Tag(
            id=row["id"],
            user_id=row["user_id"],
            name=row["name"],
            color=row["color"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            task_count=row["task_count"] if "task_count" in keys else 0,
        )

    def list(self, user_id: int) -> List[Tag]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT g.*, (SELECT COUNT(*) FROM task_tag tt WHERE tt.tag_id = g.id) AS task_count
                FROM tags g
                WHERE g.user_id = ?
                ORDER BY g.name COLLATE NOCASE
                """,
                (user_id,),
            ).fetchall()
        return [self._row_to_tag(row) for row in rows]

    def get(self, tag_id: int) -> Optional[Tag]:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT g.*, (SELECT COUNT(*) FROM task_tag tt WHERE tt.tag_id = g.id) AS task_count
                FROM tags g WHERE g.id = ?
                """,
                (tag_id,),
            ).fetchone()
        return self._row_to_tag(row) if row else None

    def get_by_name(self, user_id: int, name: str) -> Optional[Tag]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM tags WHERE user_id = ? AND name = ?", (user_id, name)
            ).fetchone()
        return self._row_to_tag(row) if row else None

    def owned_ids(self, user_id: int, tag_ids: Iterable[int]) -> set[int]:
        """Return the subset of ``tag_ids`` that belongs to the user."""
        ids = list(dict.fromkeys(tag_ids))
        if not ids:
            return set()
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT id FROM tags WHERE user_id = ? AND id IN ({placeholders(ids)})",
                [user_id, *ids],
            ).fetchall()
        return {row["id"] for row in rows}

    def create(self, user_id: int, name: str, color: Optional[str] = None) -> Tag:
        """Insert a tag.

        Raises:
            sqlite3.IntegrityError: the user already has a tag with this name
        """
        now = self._now()
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO tags (user_id, name, color, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (user_id, name, color, now, now),
            )
            conn.commit()
            tag_id = cursor.lastrowid
        return self.get(tag_id)

    def update(
        self, tag_id: int, *, name: Optional[str] = None, color: Any = UNSET
    ) -> Optional[Tag]:
        fields: list[str] = []
        params: list[object] = []
        if name is not None:
            fields.append("name = ?")
            params.append(name)
        if color is not UNSET:
            fields.append("color = ?")
            params.append(color)
        if not fields:
            return self.get(tag_id)

        fields.append("updated_at = ?")
        params.append(self._now())
        params.append(tag_id)
        with self._connect() as conn:
            conn.execute(f"UPDATE tags SET {', '.join(fields)} WHERE id = ?", params)
            conn.commit()
        return self.get(tag_id)

    def delete(self, tag_id: int) -> bool:
        """Delete a tag; its task links go with it."""
        with self._connect() as conn:
            conn.execute("DELETE FROM task_tag WHERE tag_id = ?", (tag_id,))
            cursor = conn.execute("DELETE FROM tags WHERE id = ?", (tag_id,))
            conn.commit()
            return cursor.rowcount > 0
