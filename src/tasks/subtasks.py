from __future__ import annotations

import sqlite3
from typing import List, Optional

from src.storage import BaseRepository

from .models import Subtask


class SubtaskRepository(BaseRepository):
    """Checklist items of a task, kept in ``order``."""

    @staticmethod
    def _row_to_subtask(row: sqlite3.Row) -> Subtask:
        return Subtask(
            id=row["id"],
            task_id=row["task_id"],
            title=row["title"],
            description=row["description"],
            is_completed=bool(row["is_completed"]),
            order=row["position"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def list(self, task_id: int) -> List[Subtask]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM subtasks WHERE task_id = ? ORDER BY position, id", (task_id,)
            ).fetchall()
        return [self._row_to_subtask(row) for row in rows]

    def get(self, subtask_id: int) -> Optional[Subtask]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM subtasks WHERE id = ?", (subtask_id,)).fetchone()
        return self._row_to_subtask(row) if row else None

    def create(
        self,
        task_id: int,
        title: str,
        description: Optional[str] = None,
        order: Optional[int] = None,
    ) -> Subtask:
        """Insert a subtask; without ``order`` it goes after the last one."""
        now = self._now()
        with self._connect() as conn:
            if order is None:
                row = conn.execute(
                    "SELECT MAX(position) AS max_position FROM subtasks WHERE task_id = ?",
                    (task_id,),
                ).fetchone()
                order = 0 if row["max_position"] is None else row["max_position"] + 1
            cursor = conn.execute(
                """
                INSERT INTO subtasks (task_id, title, description, is_completed, position, created_at, updated_at)
                VALUES (?, ?, ?, 0, ?, ?, ?)
                """,
                (task_id, title, description, order, now, now),
            )
            conn.commit()
            subtask_id = cursor.lastrowid
        return self.get(subtask_id)

    def update(
        self,
        subtask_id: int,
        *,
        title: Optional[str] = None,
        description: Optional[str] = None,
        is_completed: Optional[bool] = None,
        order: Optional[int] = None,
    ) -> Optional[Subtask]:
        fields: list[str] = []
        params: list[object] = []
        if title is not None:
            fields.append("title = ?")
            params.append(title)
        if description is not None:
            fields.append("description = ?")
            params.append(description)
        if is_completed is not None:
            fields.append("is_completed = ?")
            params.append(int(is_completed))
        if order is not None:
            fields.append("position = ?")
            params.append(order)
        if not fields:
            return self.get(subtask_id)

        fields.append("updated_at = ?")
        params.extend([self._now(), subtask_id])
        with self._connect() as conn:
            conn.execute(f"UPDATE subtasks SET {', '.join(fields)} WHERE id = ?", params)
            conn.commit()
        return self.get(subtask_id)

    def toggle(self, subtask_id: int) -> Optional[Subtask]:
        with self._connect() as conn:
            conn.execute(
                "UPDATE subtasks SET is_completed = 1 - is_completed, updated_at = ? WHERE id = ?",
                (self._now(), subtask_id),
            )
            conn.commit()
        return self.get(subtask_id)

    def delete(self, subtask_id: int) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM subtasks WHERE id = ?", (subtask_id,))
            conn.commit()
            return cursor.rowcount > 0
