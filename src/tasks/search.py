from __future__ import annotations

import logging
from typing import List, Optional

from .filters import TaskFilter, TaskSort
from .models import Page, Task
from .repository import TaskRepository

logger = logging.getLogger(__name__)

QUICK_SEARCH_MAX = 20
SUGGESTION_LIMIT = 5


class TaskSearchService:
    """Text search over the caller's tasks, composed on top of TaskFilter."""

    def __init__(self, tasks: TaskRepository):
        self.tasks = tasks

    def search(
        self,
        user_id: int,
        query: Optional[str],
        task_filter: Optional[TaskFilter] = None,
        sort: Optional[TaskSort] = None,
        page: int = 1,
        per_page: int = 15,
    ) -> Page[Task]:
        task_filter = task_filter or TaskFilter()
        task_filter.search = query.strip() if query and query.strip() else None
        sort = sort or TaskSort("relevance", "desc")
        result = self.tasks.list(user_id, task_filter, sort, page=page, per_page=per_page)
        logger.debug("Search %r for user %s matched %s tasks", query, user_id, result.total)
        return result

    def quick_search(
        self,
        user_id: int,
        query: str,
        task_filter: Optional[TaskFilter] = None,
        limit: int = 10,
    ) -> List[Task]:
        """Best matches for autocomplete, at most 20."""
        task_filter = task_filter or TaskFilter()
        task_filter.search = query.strip()
        limit = max(1, min(limit, QUICK_SEARCH_MAX))
        return self.tasks.find(user_id, task_filter, TaskSort("relevance", "desc"), limit=limit)

    def suggestions(self, user_id: int, partial: str, limit: int = SUGGESTION_LIMIT) -> List[str]:
        return self.tasks.titles(user_id, partial.strip(), limit=limit)

    def stats(self, user_id: int, query: str) -> dict:
        total = self.tasks.count(user_id, TaskFilter(search=query.strip()))
        return {"query": query, "total_matches": total}

    def has_results(self, user_id: int, query: str, task_filter: Optional[TaskFilter] = None) -> bool:
        task_filter = task_filter or TaskFilter()
        task_filter.search = query.strip()
        return self.tasks.count(user_id, task_filter) > 0
