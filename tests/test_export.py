"""Tests for the CSV, JSON and Markdown exporters."""

from __future__ import annotations

import csv
import io
import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from tada.errors import StorageError, ValidationError
from tada.export import CSV_HEADER, export_tasks, write_csv, write_json, write_markdown
from tada.task_model import Task, TaskRecord, TaskStatus

TZ = timezone(timedelta(hours=1))


@pytest.fixture
def records() -> list[TaskRecord]:
    done = Task(
        title="Ship it",
        description="with, commas",
        priority=1,
        status=TaskStatus.DONE,
        tags=["work", "release"],
        created_at=datetime(2026, 1, 12, 9, 30, tzinfo=TZ),
        completed_at=datetime(2026, 1, 13, 17, 0, tzinfo=TZ),
    )
    open_task = Task(title="Plan", created_at=datetime(2026, 1, 14, 8, 0, tzinfo=TZ))
    return [
        TaskRecord(task=done, path=Path("a.md"), topic="Proj"),
        TaskRecord(task=open_task, path=Path("b.md")),
    ]


def test_csv_header_and_rows(records: list[TaskRecord]) -> None:
    out = io.StringIO()

    write_csv(records, out)

    rows = list(csv.reader(io.StringIO(out.getvalue())))
    assert rows[0] == CSV_HEADER
    assert rows[1] == [
        "Ship it",
        "with, commas",
        "1",
        "done",
        "work,release",
        "2026-01-12T09:30:00+01:00",
        "2026-01-13T17:00:00+01:00",
    ]
    assert rows[2][0] == "Plan"
    assert rows[2][6] == ""


def test_json_is_a_list_of_task_objects(records: list[TaskRecord]) -> None:
    out = io.StringIO()

    write_json(records, out)

    data = json.loads(out.getvalue())
    assert [t["title"] for t in data] == ["Ship it", "Plan"]
    assert "topic" not in data[0]
    assert data[1]["completed_at"] is None


def test_markdown_only_lists_completed_at_when_set(records: list[TaskRecord]) -> None:
    out = io.StringIO()

    write_markdown(records, out)

    text = out.getvalue()
    assert text.startswith("# Ship it\n\n- **Description:** with, commas\n")
    assert "- **Tags:** work, release\n" in text
    assert text.count("**Completed At:**") == 1


def test_export_to_stdout(records: list[TaskRecord], capsys: pytest.CaptureFixture[str]) -> None:
    export_tasks(records, "csv", "-")

    assert capsys.readouterr().out.startswith("Title,Description,Priority")


def test_export_to_file(records: list[TaskRecord], tmp_path: Path) -> None:
    out = tmp_path / "tasks.md"

    export_tasks(records, "markdown", out)

    assert "# Plan" in out.read_text(encoding="utf-8")


def test_export_unknown_format(records: list[TaskRecord]) -> None:
    with pytest.raises(ValidationError):
        export_tasks(records, "xml")


def test_export_unwritable_destination(records: list[TaskRecord], tmp_path: Path) -> None:
    with pytest.raises(StorageError):
        export_tasks(records, "json", tmp_path / "missing" / "out.json")
