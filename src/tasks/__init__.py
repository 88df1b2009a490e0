"""Tasks, subtasks and task search."""

from .filters import SORT_FIELDS, TaskFilter, TaskSort
from .models import Page, Subtask, Task, TaskPriority, TaskStatus
from .repository import TaskRepository
from .search import TaskSearchService
from .subtasks import SubtaskRepository

__all__ = [
    "Page",
    "SORT_FIELDS",
    "Subtask",
    "SubtaskRepository",
    "Task",
    "TaskFilter",
    "TaskPriority",
    "TaskRepository",
    "TaskSearchService",
    "TaskSort",
    "TaskStatus",
]
