"""Export writers: CSV, JSON and a Markdown document.

Topics are dropped; each writer takes a flat list of records.
"""

from __future__ import annotations

import csv
import json
import logging
import sys
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path
from typing import TextIO

from tada.errors import StorageError, ValidationError
from tada.task_model import TaskRecord

logger = logging.getLogger(__name__)

EXPORT_FORMATS = ("csv", "json", "md", "markdown")
CSV_HEADER = ["Title", "Description", "Priority", "Status", "Tags", "CreatedAt", "CompletedAt"]


def _ts(value: datetime | None) -> str:
    return value.isoformat() if value else ""


def write_csv(records: Sequence[TaskRecord], out: TextIO) -> None:
    writer = csv.writer(out, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for record in records:
        task = record.task
        writer.writerow(
            [
                task.title,
                task.description,
                str(task.priority),
                task.status.value,
                ",".join(task.tags),
                _ts(task.created_at),
                _ts(task.completed_at),
            ]
        )


def write_json(records: Sequence[TaskRecord], out: TextIO) -> None:
    json.dump([r.task.to_dict() for r in records], out, indent=2, ensure_ascii=False)
    out.write("\n")


def write_markdown(records: Sequence[TaskRecord], out: TextIO) -> None:
    for record in records:
        task = record.task
        out.write(f"# {task.title}\n\n")
        out.write(f"- **Description:** {task.description}\n")
        out.write(f"- **Priority:** {task.priority}\n")
        out.write(f"- **Status:** {task.status.value}\n")
        out.write(f"- **Tags:** {', '.join(task.tags)}\n")
        out.write(f"- **Created At:** {_ts(task.created_at)}\n")
        if task.completed_at:
            out.write(f"- **Completed At:** {_ts(task.completed_at)}\n")
        out.write("\n")


_WRITERS = {
    "csv": write_csv,
    "json": write_json,
    "md": write_markdown,
    "markdown": write_markdown,
}


def export_tasks(records: Sequence[TaskRecord], fmt: str, destination: str | Path | None = None) -> None:
    """Write records in fmt to a file, or to stdout when destination is None or "-".

    Raises:
        ValidationError: If fmt is not a supported format
        StorageError: If the output file cannot be written
    """
    writer = _WRITERS.get(fmt)
    if writer is None:
        raise ValidationError(f"unsupported format: {fmt}")

    if destination is None or str(destination) in ("", "-"):
        writer(records, sys.stdout)
        return

    path = Path(destination)
    try:
        with path.open("w", encoding="utf-8", newline="") as fh:
            writer(records, fh)
    except OSError as e:
        raise StorageError(f"failed to create output file: {e}") from e
    logger.debug("Exported %d tasks to %s as %s", len(records), path, fmt)
