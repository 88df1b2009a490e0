"""Task filter and sort builders.

Shared by the task list, search, saved views and navigation counters so that a
stored saved-view filter means exactly what the same list query means.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, List, Mapping, Optional, Tuple

from src.storage import UNSET
from src.storage.base import escape_like

from .models import TaskPriority, TaskStatus

SORT_FIELDS = ("due_date", "priority", "created_at", "title")
SEARCH_SORT_FIELDS = ("relevance",) + SORT_FIELDS
SORT_DIRECTIONS = ("asc", "desc")

PRIORITY_RANK_SQL = "CASE {col} WHEN 'high' THEN 1 WHEN 'medium' THEN 2 ELSE 3 END"


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return bool(value)
    if isinstance(value, str) and value.strip().lower() in ("1", "true", "yes"):
        return True
    if isinstance(value, str) and value.strip().lower() in ("0", "false", "no"):
        return False
    raise ValueError(f"Invalid boolean: {value!r}")


def _parse_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


@dataclass
class TaskFilter:
    """Conditions applied to the caller's tasks.

    ``project_id`` is UNSET for "any project" and None for the inbox.
    """

    search: Optional[str] = None
    priority: Optional[TaskPriority] = None
    is_completed: Optional[bool] = None
    tag_id: Optional[int] = None
    project_id: Any = UNSET
    due_on: Optional[date] = None
    due_from: Optional[date] = None
    due_to: Optional[date] = None
    priorities: List[TaskPriority] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "TaskFilter":
        """Build a filter from query parameters or a stored saved-view document.

        Raises:
            ValueError: a value cannot be interpreted
        """
        result = cls()

        search = data.get("search")
        if search is not None and str(search).strip():
            result.search = str(search).strip()

        priority = data.get("priority")
        if priority not in (None, "", "all"):
            result.priority = TaskPriority(priority)

        if data.get("status") not in (None, ""):
            result.is_completed = TaskStatus(data["status"]).as_completed_flag()
        if data.get("is_completed") is not None:
            result.is_completed = _parse_bool(data["is_completed"])

        tag_id = data.get("tag_id")
        if tag_id not in (None, ""):
            result.tag_id = int(tag_id)

        if "project_id" in data:
            project_id = data["project_id"]
            if project_id is None or project_id == "null":
                result.project_id = None
            elif project_id != "":
                result.project_id = int(project_id)

        due = data.get("due_date")
        if isinstance(due, Mapping):
            if due.get("from"):
                result.due_from = _parse_date(due["from"])
            if due.get("to"):
                result.due_to = _parse_date(due["to"])
        elif due not in (None, ""):
            result.due_on = _parse_date(due)

        return result

    def to_mapping(self) -> dict:
        data: dict = {}
        if self.search:
            data["search"] = self.search
        if self.priority is not None:
            data["priority"] = self.priority.value
        if self.is_completed is not None:
            data["is_completed"] = self.is_completed
        if self.tag_id is not None:
            data["tag_id"] = self.tag_id
        if self.project_id is not UNSET:
            data["project_id"] = self.project_id
        if self.due_on is not None:
            data["due_date"] = self.due_on.isoformat()
        elif self.due_from is not None or self.due_to is not None:
            data["due_date"] = {
                key: value.isoformat()
                for key, value in (("from", self.due_from), ("to", self.due_to))
                if value is not None
            }
        return data

    def applied(self) -> List[str]:
        """Names of the active conditions."""
        names = []
        if self.search:
            names.append("search")
        if self.priority is not None or self.priorities:
            names.append("priority")
        if self.is_completed is not None:
            names.append("is_completed")
        if self.tag_id is not None:
            names.append("tag_id")
        if self.project_id is not UNSET:
            names.append("project_id")
        if self.due_on or self.due_from or self.due_to:
            names.append("due_date")
        return names

    def to_sql(self, alias: str = "t") -> Tuple[List[str], List[Any]]:
        """WHERE clauses (to be AND-ed) and their parameters."""
        clauses: List[str] = []
        params: List[Any] = []

        if self.search:
            pattern = f"%{escape_like(self.search)}%"
            clauses.append(
                f"({alias}.title LIKE ? ESCAPE '\\' OR {alias}.description LIKE ? ESCAPE '\\')"
            )
            params.extend([pattern, pattern])
        if self.priority is not None:
            clauses.append(f"{alias}.priority = ?")
            params.append(self.priority.value)
        if self.priorities:
            clauses.append(f"{alias}.priority IN ({', '.join('?' for _ in self.priorities)})")
            params.extend(p.value for p in self.priorities)
        if self.is_completed is not None:
            clauses.append(f"{alias}.is_completed = ?")
            params.append(int(self.is_completed))
        if self.tag_id is not None:
            clauses.append(
                f"EXISTS (SELECT 1 FROM task_tag tt WHERE tt.task_id = {alias}.id AND tt.tag_id = ?)"
            )
            params.append(self.tag_id)
        if self.project_id is None:
            clauses.append(f"{alias}.project_id IS NULL")
        elif self.project_id is not UNSET:
            clauses.append(f"{alias}.project_id = ?")
            params.append(self.project_id)
        if self.due_on is not None:
            clauses.append(f"date({alias}.due_date) = ?")
            params.append(self.due_on.isoformat())
        if self.due_from is not None:
            clauses.append(f"date({alias}.due_date) >= ?")
            params.append(self.due_from.isoformat())
        if self.due_to is not None:
            clauses.append(f"date({alias}.due_date) <= ?")
            params.append(self.due_to.isoformat())

        return clauses, params


@dataclass
class TaskSort:
    """ORDER BY for task queries. ``relevance`` only applies to searches."""

    field: str = "created_at"
    direction: str = "desc"

    def __post_init__(self):
        if self.field not in SEARCH_SORT_FIELDS:
            raise ValueError(f"Unsupported sort field: {self.field}")
        self.direction = self.direction.lower()
        if self.direction not in SORT_DIRECTIONS:
            raise ValueError(f"Unsupported sort direction: {self.direction}")

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "TaskSort":
        if not data or not data.get("field"):
            return cls()
        return cls(field=str(data["field"]), direction=str(data.get("direction") or "asc"))

    def to_mapping(self) -> dict:
        return {"field": self.field, "direction": self.direction}

    def to_sql(self, alias: str = "t", search: Optional[str] = None) -> Tuple[str, List[Any]]:
        direction = self.direction.upper()
        params: List[Any] = []

        if self.field == "relevance":
            if not search:
                return f"{alias}.created_at {direction}, {alias}.id {direction}", params
            escaped = escape_like(search)
            order = (
                f"CASE WHEN {alias}.title LIKE ? ESCAPE '\\' THEN 1 "
                f"WHEN {alias}.title LIKE ? ESCAPE '\\' THEN 2 "
                f"WHEN {alias}.description LIKE ? ESCAPE '\\' THEN 3 ELSE 4 END, "
                f"{alias}.created_at {direction}, {alias}.id {direction}"
            )
            params.extend([f"{escaped}%", f"%{escaped}%", f"%{escaped}%"])
            return order, params

        if self.field == "priority":
            # desc puts high priority first
            rank_direction = "ASC" if direction == "DESC" else "DESC"
            rank = PRIORITY_RANK_SQL.format(col=f"{alias}.priority")
            return f"{rank} {rank_direction}, {alias}.created_at DESC, {alias}.id DESC", params

        if self.field == "due_date":
            return (
                f"{alias}.due_date IS NULL, {alias}.due_date {direction}, {alias}.id {direction}",
                params,
            )

        if self.field == "title":
            return f"{alias}.title COLLATE NOCASE {direction}, {alias}.id {direction}", params

        return f"{alias}.created_at {direction}, {alias}.id {direction}", params
