from __future__ import annotations

import sqlite3
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

from src.storage import UNSET, BaseRepository, from_db, to_db
from src.storage.base import escape_like, placeholders
from src.tags.models import Tag

from .filters import TaskFilter, TaskSort
from .models import Page, Task, TaskPriority

_SELECT = """
    SELECT t.*,
        (SELECT COUNT(*) FROM subtasks s WHERE s.task_id = t.id) AS subtasks_total,
        (SELECT COUNT(*) FROM subtasks s WHERE s.task_id = t.id AND s.is_completed = 1) AS subtasks_completed
    FROM tasks t
"""


class TaskRepository(BaseRepository):
    """SQLite-backed task storage with tag links and subtask counters."""

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        keys = row.keys()
        return Task(
            id=row["id"],
            user_id=row["user_id"],
            project_id=row["project_id"],
            title=row["title"],
            description=row["description"] or "",
            priority=TaskPriority(row["priority"]),
            due_date=from_db(row["due_date"]),
            is_completed=bool(row["is_completed"]),
            completed_at=from_db(row["completed_at"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            subtasks_total=row["subtasks_total"] if "subtasks_total" in keys else 0,
            subtasks_completed=row["subtasks_completed"] if "subtasks_completed" in keys else 0,
        )

    @staticmethod
    def _attach_tags(conn: sqlite3.Connection, tasks: List[Task]) -> List[Task]:
        if not tasks:
            return tasks
        by_id: Dict[int, Task] = {task.id: task for task in tasks}
        ids = list(by_id)
        rows = conn.execute(
            f"""
            SELECT tt.task_id, g.*
            FROM task_tag tt JOIN tags g ON g.id = tt.tag_id
            WHERE tt.task_id IN ({placeholders(ids)})
            ORDER BY g.name COLLATE NOCASE
            """,
            ids,
        ).fetchall()
        for row in rows:
            by_id[row["task_id"]].tags.append(
                Tag(
                    id=row["id"],
                    user_id=row["user_id"],
                    name=row["name"],
                    color=row["color"],
                    created_at=row["created_at"],
                    updated_at=row["updated_at"],
                )
            )
        return tasks

    @staticmethod
    def _sync_tags(conn: sqlite3.Connection, task_id: int, tag_ids: Iterable[int], now: str) -> None:
        conn.execute("DELETE FROM task_tag WHERE task_id = ?", (task_id,))
        conn.executemany(
            "INSERT OR IGNORE INTO task_tag (task_id, tag_id, created_at) VALUES (?, ?, ?)",
            [(task_id, tag_id, now) for tag_id in dict.fromkeys(tag_ids)],
        )

    def _where(self, user_id: int, task_filter: Optional[TaskFilter]) -> tuple[str, List[Any]]:
        clauses, params = (task_filter or TaskFilter()).to_sql("t")
        clauses.insert(0, "t.user_id = ?")
        params.insert(0, user_id)
        return " AND ".join(clauses), params

    def list(
        self,
        user_id: int,
        task_filter: Optional[TaskFilter] = None,
        sort: Optional[TaskSort] = None,
        page: int = 1,
        per_page: int = 15,
    ) -> Page[Task]:
        """One page of the user's tasks matching ``task_filter``."""
        where, params = self._where(user_id, task_filter)
        order, order_params = (sort or TaskSort()).to_sql(
            "t", search=task_filter.search if task_filter else None
        )
        page = max(1, page)
        offset = (page - 1) * per_page

        with self._connect() as conn:
            total = conn.execute(
                f"SELECT COUNT(*) AS total FROM tasks t WHERE {where}", params
            ).fetchone()["total"]
            if offset >= total:
                rows = []
            else:
                rows = conn.execute(
                    f"{_SELECT} WHERE {where} ORDER BY {order} LIMIT ? OFFSET ?",
                    [*params, *order_params, per_page, offset],
                ).fetchall()
            items = self._attach_tags(conn, [self._row_to_task(row) for row in rows])
        return Page(items=items, total=total, page=page, per_page=per_page)

    def find(
        self,
        user_id: int,
        task_filter: Optional[TaskFilter] = None,
        sort: Optional[TaskSort] = None,
        limit: Optional[int] = None,
    ) -> List[Task]:
        """Unpaginated variant of :meth:`list`."""
        where, params = self._where(user_id, task_filter)
        order, order_params = (sort or TaskSort()).to_sql(
            "t", search=task_filter.search if task_filter else None
        )
        query = f"{_SELECT} WHERE {where} ORDER BY {order}"
        params = [*params, *order_params]
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
            return self._attach_tags(conn, [self._row_to_task(row) for row in rows])

    def count(self, user_id: int, task_filter: Optional[TaskFilter] = None) -> int:
        where, params = self._where(user_id, task_filter)
        with self._connect() as conn:
            row = conn.execute(f"SELECT COUNT(*) AS total FROM tasks t WHERE {where}", params).fetchone()
        return row["total"]

    def titles(self, user_id: int, partial: str, limit: int = 5) -> List[str]:
        where, params = self._where(user_id, None)
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT t.title FROM tasks t WHERE {where} AND t.title LIKE ? ESCAPE '\\' "
                "ORDER BY t.created_at DESC, t.id DESC LIMIT ?",
                [*params, f"%{escape_like(partial)}%", limit],
            ).fetchall()
        return [row["title"] for row in rows]

    def calendar(
        self,
        user_id: int,
        start: date,
        end: date,
        priorities: Optional[List[TaskPriority]] = None,
        include_completed: bool = False,
    ) -> List[Task]:
        """Tasks due within ``start``..``end`` (inclusive), earliest first."""
        task_filter = TaskFilter(due_from=start, due_to=end, priorities=list(priorities or []))
        if not include_completed:
            task_filter.is_completed = False
        return self.find(user_id, task_filter, TaskSort("due_date", "asc"))

    def get(self, task_id: int) -> Optional[Task]:
        with self._connect() as conn:
            row = conn.execute(_SELECT + " WHERE t.id = ?", (task_id,)).fetchone()
            if row is None:
                return None
            return self._attach_tags(conn, [self._row_to_task(row)])[0]

    def create(
        self,
        user_id: int,
        title: str,
        description: str = "",
        priority: TaskPriority = TaskPriority.MEDIUM,
        due_date: Optional[datetime] = None,
        project_id: Optional[int] = None,
        tag_ids: Iterable[int] = (),
        is_completed: bool = False,
    ) -> Task:
        now = self._now()
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO tasks (user_id, project_id, title, description, priority, due_date,
                                   is_completed, completed_at, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id,
                    project_id,
                    title,
                    description or "",
                    TaskPriority(priority).value,
                    to_db(due_date),
                    int(is_completed),
                    now if is_completed else None,
                    now,
                    now,
                ),
            )
            task_id = cursor.lastrowid
            self._sync_tags(conn, task_id, tag_ids, now)
            conn.commit()
        return self.get(task_id)

    def update(
        self,
        task_id: int,
        *,
        title: Optional[str] = None,
        description: Optional[str] = None,
        priority: Optional[TaskPriority] = None,
        due_date: Any = UNSET,
        project_id: Any = UNSET,
        is_completed: Optional[bool] = None,
        tag_ids: Optional[Iterable[int]] = None,
    ) -> Optional[Task]:
        """Partial update. ``tag_ids`` replaces the tag set when given."""
        fields: list[str] = []
        params: list[object] = []

        if title is not None:
            fields.append("title = ?")
            params.append(title)
        if description is not None:
            fields.append("description = ?")
            params.append(description)
        if priority is not None:
            fields.append("priority = ?")
            params.append(TaskPriority(priority).value)
        if due_date is not UNSET:
            fields.append("due_date = ?")
            params.append(to_db(due_date))
        if project_id is not UNSET:
            fields.append("project_id = ?")
            params.append(project_id)
        if is_completed is not None:
            fields.append("is_completed = ?")
            params.append(int(is_completed))
            # keep the original completion time when already completed
            fields.append(
                "completed_at = CASE WHEN ? = 1 THEN COALESCE(completed_at, ?) ELSE NULL END"
            )
            params.extend([int(is_completed), self._now()])

        now = self._now()
        with self._connect() as conn:
            if fields:
                fields.append("updated_at = ?")
                params.extend([now, task_id])
                conn.execute(f"UPDATE tasks SET {', '.join(fields)} WHERE id = ?", params)
            if tag_ids is not None:
                self._sync_tags(conn, task_id, tag_ids, now)
                conn.execute("UPDATE tasks SET updated_at = ? WHERE id = ?", (now, task_id))
            conn.commit()
        return self.get(task_id)

    def complete(self, task_id: int) -> Optional[Task]:
        return self.update(task_id, is_completed=True)

    def incomplete(self, task_id: int) -> Optional[Task]:
        return self.update(task_id, is_completed=False)

    def update_date(self, task_id: int, due_date: Optional[datetime]) -> Optional[Task]:
        return self.update(task_id, due_date=due_date)

    def delete(self, task_id: int) -> bool:
        """Delete a task with its tag links, subtasks and reminders."""
        with self._connect() as conn:
            conn.execute("DELETE FROM task_tag WHERE task_id = ?", (task_id,))
            cursor = conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
            conn.commit()
            return cursor.rowcount > 0
