from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Generic, List, Optional, TypeVar

from src.tags.models import Tag


class TaskPriority(str, Enum):
    """Task priority, ranked high → low."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return {"high": 1, "medium": 2, "low": 3}[self.value]


class TaskStatus(str, Enum):
    """List filter over ``is_completed``."""

    PENDING = "pending"
    COMPLETED = "completed"
    ALL = "all"

    def as_completed_flag(self) -> Optional[bool]:
        if self is TaskStatus.ALL:
            return None
        return self is TaskStatus.COMPLETED


@dataclass(slots=True)
class Task:
    """A persisted task with its tags and subtask counters."""

    id: int
    user_id: int
    project_id: Optional[int]
    title: str
    description: str
    priority: TaskPriority
    due_date: Optional[datetime]
    is_completed: bool
    completed_at: Optional[datetime]
    created_at: str
    updated_at: str
    tags: List[Tag] = field(default_factory=list)
    subtasks_total: int = 0
    subtasks_completed: int = 0

    @property
    def subtask_progress(self) -> int:
        if self.subtasks_total == 0:
            return 0
        return int(round(self.subtasks_completed / self.subtasks_total * 100))

    @property
    def all_subtasks_completed(self) -> bool:
        return self.subtasks_total > 0 and self.subtasks_completed == self.subtasks_total


@dataclass(slots=True)
class Subtask:
    id: int
    task_id: int
    title: str
    description: Optional[str]
    is_completed: bool
    order: int
    created_at: str
    updated_at: str


T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    """One page of a paginated query."""

    items: List[T]
    total: int
    page: int
    per_page: int

    @property
    def last_page(self) -> int:
        return max(1, math.ceil(self.total / self.per_page)) if self.per_page else 1
