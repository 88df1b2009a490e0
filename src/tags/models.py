from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(slots=True)
class Tag:
    id: int
    user_id: int
    name: str
    color: Optional[str]
    created_at: str
    updated_at: str
    task_count: int = 0
