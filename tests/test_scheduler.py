"""ReminderScheduler tests"""

import time
from unittest.mock import MagicMock

import pytest

from src.notifications import DispatchResult
from src.taskflow.scheduler import ReminderScheduler


@pytest.fixture
def service():
    mock = MagicMock()
    mock.process.return_value = DispatchResult(due=2, sent=1, failed=1)
    return mock


def test_run_once_records_result(service):
    """A run stores its result in the status"""
    scheduler = ReminderScheduler(service, interval_seconds=60)

    result = scheduler.run_once()

    assert result.dispatched == 2
    status = scheduler.get_status()
    assert status["runs"] == 1
    assert status["last_result"]["sent"] == 1
    assert status["last_result"]["dispatched"] == 2
    assert status["last_error"] is None
    assert status["last_run_at"] is not None


def test_run_once_keeps_going_after_failure(service):
    """An exception in the service is recorded instead of raised"""
    service.process.side_effect = RuntimeError("database is locked")
    scheduler = ReminderScheduler(service)

    assert scheduler.run_once() is None
    status = scheduler.get_status()
    assert status["runs"] == 1
    assert status["last_error"] == "database is locked"


def test_start_and_stop(service):
    """start / stop toggle the running flag and are idempotent"""
    scheduler = ReminderScheduler(service, interval_seconds=1)

    scheduler.start()
    scheduler.start()
    assert scheduler.is_running()

    time.sleep(1.5)
    scheduler.stop()
    scheduler.stop()

    assert not scheduler.is_running()
    assert service.process.called


def test_set_interval(service):
    scheduler = ReminderScheduler(service, interval_seconds=60)
    scheduler.set_interval(5)
    assert scheduler.get_status()["interval_seconds"] == 5

    with pytest.raises(ValueError):
        scheduler.set_interval(0)
