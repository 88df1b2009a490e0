from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

DEFAULT_COLOR = "#3B82F6"
DEFAULT_ICON = "folder"


@dataclass(slots=True)
class Project:
    """A task folder. ``parent_id`` forms a simple tree."""

    id: int
    user_id: int
    parent_id: Optional[int]
    name: str
    color: str
    icon: str
    is_favorite: bool
    created_at: str
    updated_at: str
    task_count: int = 0  # open tasks only
    children: List["Project"] = field(default_factory=list)
