from __future__ import annotations

import sqlite3
from typing import Any, Dict, List, Optional, Set

from src.storage import UNSET, BaseRepository

from .models import DEFAULT_COLOR, DEFAULT_ICON, Project

_SELECT = """
    SELECT p.*,
        (SELECT COUNT(*) FROM tasks t WHERE t.project_id = p.id AND t.is_completed = 0) AS task_count
    FROM projects p
"""


class ProjectRepository(BaseRepository):
    """Per-user projects. Names are unique per user."""

    @staticmethod
    def _row_to_project(row: sqlite3.Row) -> Project:
        return Project(
            id=row["id"],
            user_id=row["user_id"],
            parent_id=row["parent_id"],
            name=row["name"],
            color=row["color"],
            icon=row["icon"],
            is_favorite=bool(row["is_favorite"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            task_count=row["task_count"],
        )

    def list(self, user_id: int, favorites_only: bool = False) -> List[Project]:
        """Projects ordered favorites first, then by name."""
        query = _SELECT + " WHERE p.user_id = ?"
        if favorites_only:
            query += " AND p.is_favorite = 1"
        query += " ORDER BY p.is_favorite DESC, p.name COLLATE NOCASE"
        with self._connect() as conn:
            rows = conn.execute(query, (user_id,)).fetchall()
        return [self._row_to_project(row) for row in rows]

    def tree(self, user_id: int) -> List[Project]:
        """Root projects with ``children`` filled recursively."""
        projects = self.list(user_id)
        by_id: Dict[int, Project] = {project.id: project for project in projects}
        roots: List[Project] = []
        for project in projects:
            parent = by_id.get(project.parent_id) if project.parent_id else None
            if parent is None:
                roots.append(project)
            else:
                parent.children.append(project)
        return roots

    def get(self, project_id: int) -> Optional[Project]:
        with self._connect() as conn:
            row = conn.execute(_SELECT + " WHERE p.id = ?", (project_id,)).fetchone()
        return self._row_to_project(row) if row else None

    def get_by_name(self, user_id: int, name: str) -> Optional[Project]:
        with self._connect() as conn:
            row = conn.execute(
                _SELECT + " WHERE p.user_id = ? AND p.name = ?", (user_id, name)
            ).fetchone()
        return self._row_to_project(row) if row else None

    def descendant_ids(self, project_id: int) -> Set[int]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                WITH RECURSIVE descendants(id) AS (
                    SELECT id FROM projects WHERE parent_id = ?
                    UNION
                    SELECT p.id FROM projects p JOIN descendants d ON p.parent_id = d.id
                )
                SELECT id FROM descendants
                """,
                (project_id,),
            ).fetchall()
        return {row["id"] for row in rows}

    def create(
        self,
        user_id: int,
        name: str,
        color: Optional[str] = None,
        icon: Optional[str] = None,
        parent_id: Optional[int] = None,
        is_favorite: bool = False,
    ) -> Project:
        """Insert a project.

        Raises:
            sqlite3.IntegrityError: the user already has a project with this name
        """
        now = self._now()
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO projects (user_id, parent_id, name, color, icon, is_favorite, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id,
                    parent_id,
                    name,
                    color or DEFAULT_COLOR,
                    icon or DEFAULT_ICON,
                    int(is_favorite),
                    now,
                    now,
                ),
            )
            conn.commit()
            project_id = cursor.lastrowid
        return self.get(project_id)

    def update(
        self,
        project_id: int,
        *,
        name: Optional[str] = None,
        color: Optional[str] = None,
        icon: Optional[str] = None,
        is_favorite: Optional[bool] = None,
        parent_id: Any = UNSET,
    ) -> Optional[Project]:
        fields: list[str] = []
        params: list[object] = []

        if name is not None:
            fields.append("name = ?")
            params.append(name)
        if color is not None:
            fields.append("color = ?")
            params.append(color)
        if icon is not None:
            fields.append("icon = ?")
            params.append(icon)
        if is_favorite is not None:
            fields.append("is_favorite = ?")
            params.append(int(is_favorite))
        if parent_id is not UNSET:
            fields.append("parent_id = ?")
            params.append(parent_id)

        if not fields:
            return self.get(project_id)

        fields.append("updated_at = ?")
        params.append(self._now())
        params.append(project_id)

        with self._connect() as conn:
            conn.execute(f"UPDATE projects SET {', '.join(fields)} WHERE id = ?", params)
            conn.commit()
        return self.get(project_id)

    def delete(self, project_id: int) -> bool:
        """Delete a project; its tasks move to the inbox and children become roots."""
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM projects WHERE id = ?", (project_id,))
            conn.commit()
            return cursor.rowcount > 0
