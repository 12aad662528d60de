"""Shared fixtures: a task store on tmp_path with a controllable clock."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from tada.task_model import Task
from tada.task_storage import TaskStore

TZ = timezone(timedelta(hours=1))


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: int = 1) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 1, 12, 9, 30, 0, tzinfo=TZ))


@pytest.fixture
def root(tmp_path: Path) -> Path:
    return tmp_path / ".tada"


@pytest.fixture
def store(root: Path, clock: FakeClock) -> TaskStore:
    return TaskStore(root, clock=clock)


@pytest.fixture
def add(store: TaskStore, clock: FakeClock):
    """Save a task and step the clock so every file gets its own name."""

    def _add(topic: str, title: str, **fields) -> Path:
        path = store.save(topic, Task(title=title, **fields))
        clock.advance()
        return path

    return _add


@pytest.fixture
def project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """A working directory holding .tada, with config and colour isolated."""
    (tmp_path / ".tada").mkdir()
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("TADA_DIR", raising=False)
    monkeypatch.delenv("FORCE_COLOR", raising=False)
    monkeypatch.setenv("NO_COLOR", "1")
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    return tmp_path / ".tada"
