from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from src.tasks.filters import TaskFilter, TaskSort

DISPLAY_MODES = ("list", "calendar", "board")


@dataclass(slots=True)
class SavedView:
    """A named filter/sort combination applied to the task list at read time."""

    id: int
    user_id: int
    name: str
    filters: Dict[str, Any] = field(default_factory=dict)
    sort_order: Dict[str, Any] = field(default_factory=dict)
    display_mode: str = "list"
    icon: Optional[str] = None
    is_default: bool = False
    created_at: str = ""
    updated_at: str = ""

    def task_filter(self) -> TaskFilter:
        return TaskFilter.from_mapping(self.filters)

    def task_sort(self) -> TaskSort:
        return TaskSort.from_mapping(self.sort_order)
