"""Pytest configuration and shared fixtures."""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Ensure src directory is in Python path for all tests
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from todo_analytics.record import TaskRecord  # noqa: E402


# Friday 2024-03-15 14:30 UTC
FIXED_NOW = datetime(2024, 3, 15, 14, 30, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock for cache expiry tests."""

    def __init__(self, start: datetime = FIXED_NOW):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs):
        self.current += timedelta(**kwargs)


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_record():
    """Factory building TaskRecords relative to the fixed now.

    ``age`` is how long before now the task was created; ``took`` is how long
    after creation it was completed (completed tasks only).
    """
    counter = {"n": 0}

    def _make(age=timedelta(hours=1), completed=False, took=timedelta(hours=1),
              title="Task", description="", created=None):
        counter["n"] += 1
        create_time = created if created is not None else FIXED_NOW - age
        return TaskRecord(
            id=f"t{counter['n']}",
            title=title,
            description=description,
            completed=completed,
            create_time=create_time,
            update_time=create_time + took if completed else None,
        )

    return _make


@pytest.fixture
def mixed_records(make_record):
    """7 recent completed tasks and 3 pending tasks created ten days ago."""
    records = [make_record(age=timedelta(hours=2 + i * 4), completed=True,
                           took=timedelta(hours=1), title=f"Done {i}")
               for i in range(7)]
    records += [make_record(age=timedelta(days=10), title=f"Stale {i}") for i in range(3)]
    return records
