import sqlite3
from datetime import date, datetime, timezone

import pytest

from src.accounts import UserRepository
from src.projects import ProjectRepository
from src.tags import TagRepository
from src.tasks import (
    SubtaskRepository,
    TaskFilter,
    TaskPriority,
    TaskRepository,
    TaskSearchService,
    TaskSort,
)


@pytest.fixture
def db(tmp_path):
    return tmp_path / "tasks.db"


@pytest.fixture
def user_id(db):
    return UserRepository(db_path=db).create("Alice", "alice@example.com", "x").id


@pytest.fixture
def repo(db):
    return TaskRepository(db_path=db)


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def test_task_crud_cycle(repo, user_id):
    created = repo.create(
        user_id,
        "Write report",
        description="Quarterly numbers",
        priority=TaskPriority.HIGH,
        due_date=utc(2025, 12, 1, 9, 0),
    )
    assert created.title == "Write report"
    assert created.priority is TaskPriority.HIGH
    assert created.due_date == utc(2025, 12, 1, 9, 0)
    assert created.is_completed is False
    assert created.completed_at is None

    updated = repo.update(created.id, description="Sent", due_date=None)
    assert updated.description == "Sent"
    assert updated.due_date is None
    assert updated.title == "Write report"

    completed = repo.complete(created.id)
    assert completed.is_completed is True
    assert completed.completed_at is not None

    reopened = repo.incomplete(created.id)
    assert reopened.is_completed is False
    assert reopened.completed_at is None

    assert repo.delete(created.id) is True
    assert repo.get(created.id) is None
    assert repo.delete(created.id) is False


def test_tags_are_replaced_on_update(db, repo, user_id):
    tags = TagRepository(db_path=db)
    work = tags.create(user_id, "work", "#FF0000")
    home = tags.create(user_id, "home")

    task = repo.create(user_id, "Tagged", tag_ids=[work.id, home.id])
    assert [tag.name for tag in task.tags] == ["home", "work"]

    task = repo.update(task.id, tag_ids=[home.id])
    assert [tag.name for tag in task.tags] == ["home"]

    tags.delete(home.id)
    assert repo.get(task.id).tags == []


def test_filters(db, repo, user_id):
    project = ProjectRepository(db_path=db).create(user_id, "Work")
    tag = TagRepository(db_path=db).create(user_id, "urgent")

    repo.create(user_id, "Inbox item", due_date=utc(2025, 5, 1, 10))
    in_project = repo.create(user_id, "Project item", project_id=project.id, tag_ids=[tag.id])
    done = repo.create(user_id, "Done item", priority=TaskPriority.LOW, is_completed=True)
    repo.create(user_id, "Later", description="has 100% coverage", due_date=utc(2025, 5, 10, 8))

    def titles(**kwargs):
        return {task.title for task in repo.find(user_id, TaskFilter(**kwargs))}

    assert titles(project_id=None) == {"Inbox item", "Done item", "Later"}
    assert titles(project_id=project.id) == {"Project item"}
    assert titles(tag_id=tag.id) == {"Project item"}
    assert titles(is_completed=True) == {"Done item"}
    assert titles(priority=TaskPriority.LOW) == {"Done item"}
    assert titles(search="ITEM") == {"Inbox item", "Project item", "Done item"}
    assert titles(search="100%") == {"Later"}
    assert titles(due_on=date(2025, 5, 1)) == {"Inbox item"}
    assert titles(due_from=date(2025, 5, 2), due_to=date(2025, 5, 31)) == {"Later"}
    assert repo.count(user_id, TaskFilter(is_completed=False)) == 3
    assert done.completed_at is not None
    assert in_project.project_id == project.id


def test_tenant_isolation(db, repo, user_id):
    other = UserRepository(db_path=db).create("Bob", "bob@example.com", "x").id
    repo.create(user_id, "Mine")
    repo.create(other, "Theirs")

    assert [task.title for task in repo.find(user_id)] == ["Mine"]
    assert repo.count(other) == 1


def test_sorting(repo, user_id):
    repo.create(user_id, "b low", priority=TaskPriority.LOW, due_date=utc(2025, 1, 3))
    repo.create(user_id, "A high", priority=TaskPriority.HIGH)
    repo.create(user_id, "c medium", priority=TaskPriority.MEDIUM, due_date=utc(2025, 1, 1))

    def order(field, direction):
        return [task.title for task in repo.find(user_id, sort=TaskSort(field, direction))]

    assert order("priority", "desc") == ["A high", "c medium", "b low"]
    assert order("priority", "asc") == ["b low", "c medium", "A high"]
    assert order("title", "asc") == ["A high", "b low", "c medium"]
    assert order("due_date", "asc") == ["c medium", "b low", "A high"]
    assert order("due_date", "desc") == ["b low", "c medium", "A high"]
    assert order("created_at", "desc") == ["c medium", "A high", "b low"]


def test_pagination(repo, user_id):
    for index in range(7):
        repo.create(user_id, f"Task {index}")

    first = repo.list(user_id, page=1, per_page=3)
    assert first.total == 7
    assert first.last_page == 3
    assert [task.title for task in first.items] == ["Task 6", "Task 5", "Task 4"]

    last = repo.list(user_id, page=3, per_page=3)
    assert [task.title for task in last.items] == ["Task 0"]
    assert repo.list(user_id, page=4, per_page=3).items == []


def test_calendar_range_is_inclusive(repo, user_id):
    repo.create(user_id, "Start", due_date=utc(2025, 3, 1, 0, 0))
    repo.create(user_id, "End", due_date=utc(2025, 3, 31, 23, 59), priority=TaskPriority.HIGH)
    repo.create(user_id, "Outside", due_date=utc(2025, 4, 1, 0, 0))
    repo.create(user_id, "Closed", due_date=utc(2025, 3, 15), is_completed=True)

    tasks = repo.calendar(user_id, date(2025, 3, 1), date(2025, 3, 31))
    assert [task.title for task in tasks] == ["Start", "End"]

    tasks = repo.calendar(user_id, date(2025, 3, 1), date(2025, 3, 31), include_completed=True)
    assert [task.title for task in tasks] == ["Start", "Closed", "End"]

    tasks = repo.calendar(user_id, date(2025, 3, 1), date(2025, 3, 31), priorities=[TaskPriority.HIGH])
    assert [task.title for task in tasks] == ["End"]


def test_search_relevance_and_helpers(repo, user_id):
    repo.create(user_id, "Notes about meeting", description="")
    repo.create(user_id, "Unrelated", description="meeting agenda inside")
    repo.create(user_id, "Meeting prep")
    search = TaskSearchService(repo)

    result = search.search(user_id, "meeting")
    assert [task.title for task in result.items] == ["Meeting prep", "Notes about meeting", "Unrelated"]
    assert result.total == 3

    quick = search.quick_search(user_id, "meeting", limit=50)
    assert len(quick) == 3
    assert search.suggestions(user_id, "prep") == ["Meeting prep"]
    assert search.stats(user_id, "meeting") == {"query": "meeting", "total_matches": 3}
    assert search.has_results(user_id, "nothing-like-this") is False


def test_subtasks_order_and_progress(db, repo, user_id):
    subtasks = SubtaskRepository(db_path=db)
    task = repo.create(user_id, "With checklist")

    first = subtasks.create(task.id, "First")
    second = subtasks.create(task.id, "Second")
    assert (first.order, second.order) == (0, 1)
    pinned = subtasks.create(task.id, "Pinned", order=0)
    assert pinned.order == 0

    subtasks.toggle(first.id)
    loaded = repo.get(task.id)
    assert loaded.subtasks_total == 3
    assert loaded.subtasks_completed == 1
    assert loaded.subtask_progress == 33

    updated = subtasks.update(second.id, title="Second step", is_completed=True)
    assert updated.title == "Second step"
    assert updated.is_completed is True

    assert subtasks.delete(pinned.id) is True
    assert repo.get(task.id).all_subtasks_completed is True

    repo.delete(task.id)
    assert subtasks.list(task.id) == []


def test_page_far_past_the_end_is_empty(repo, user_id):
    repo.create(user_id, "Only")
    page = repo.list(user_id, page=10**20, per_page=15)
    assert page.items == []
    assert page.total == 1


def test_connections_are_closed(repo, user_id, monkeypatch):
    opened = []
    real_connect = sqlite3.connect

    def tracking_connect(*args, **kwargs):
        conn = real_connect(*args, **kwargs)
        opened.append(conn)
        return conn

    monkeypatch.setattr("src.storage.base.sqlite3.connect", tracking_connect)
    task = repo.create(user_id, "Close me")
    repo.update(task.id, title="Closed")
    with pytest.raises(sqlite3.IntegrityError):
        repo.create(user_id + 1000, "No such user")

    assert opened
    for conn in opened:
        with pytest.raises(sqlite3.ProgrammingError):
            conn.execute("SELECT 1")
    assert repo.get(task.id).title == "Closed"
