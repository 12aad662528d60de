#!/usr/bin/env python3
"""Task model: a single todo item and its Markdown/YAML file format.

A task file looks like:

    ---
    title: Write spec
    description: First draft
    priority: 2
    status: todo
    tags:
    - docs
    created_at: '2026-01-12T09:30:00+01:00'
    ---

    # Write spec

    First draft

Empty description, zero priority, empty tags and an unset completed_at are
omitted from the frontmatter. The body is derived from the frontmatter and is
never read back.

Usage:
    from tada.task_model import Task, TaskStatus

    task = Task(title="Write spec", tags=["docs"])
    content = task.to_markdown()

    loaded = Task.from_markdown(content)
    record = TaskRecord(task=loaded, path=path, topic="Proj")
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from tada.errors import TaskParseError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_PRIORITY = 3


class TaskStatus(Enum):
    """Task lifecycle states."""

    TODO = "todo"
    IN_PROGRESS = "in-progress"
    DONE = "done"
    CANCELLED = "cancelled"
    PAUSED = "paused"


# Order used by the TUI status cycle (s / S), wrapping at both ends
STATUS_CYCLE: tuple[TaskStatus, ...] = (
    TaskStatus.TODO,
    TaskStatus.IN_PROGRESS,
    TaskStatus.DONE,
    TaskStatus.PAUSED,
    TaskStatus.CANCELLED,
)

STATUS_ICONS = {
    TaskStatus.TODO: "○",
    TaskStatus.IN_PROGRESS: "◐",
    TaskStatus.DONE: "●",
    TaskStatus.PAUSED: "⏸",
    TaskStatus.CANCELLED: "✗",
}


def parse_status(value: str) -> TaskStatus:
    """Parse a user-supplied status string.

    Raises:
        ValidationError: If value is not one of the known statuses
    """
    try:
        return TaskStatus(value)
    except ValueError:
        valid = ", ".join(s.value for s in TaskStatus)
        raise ValidationError(f"invalid status '{value}' (expected one of: {valid})") from None


def cycle_status(status: TaskStatus, direction: int) -> TaskStatus:
    """Step through STATUS_CYCLE, wrapping around."""
    idx = STATUS_CYCLE.index(status) if status in STATUS_CYCLE else 0
    return STATUS_CYCLE[(idx + direction) % len(STATUS_CYCLE)]


def _parse_timestamp(value: Any, field_name: str) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError as e:
            raise TaskParseError(f"invalid {field_name} '{value}'") from e
    raise TaskParseError(f"invalid {field_name} {value!r}")


@dataclass
class Task:
    """A single todo item.

    Identity is not stored: the store addresses tasks by (topic, title) and
    by file path.
    """

    title: str
    description: str = ""
    priority: int = DEFAULT_PRIORITY  # lower = more urgent
    status: TaskStatus = TaskStatus.TODO
    tags: list[str] = field(default_factory=list)
    created_at: datetime | None = None
    completed_at: datetime | None = None

    @classmethod
    def slugify_title(cls, title: str) -> str:
        """Generate a filesystem-safe slug from a title.

        Spaces become hyphens, slashes and every character outside
        [a-z0-9-] are dropped, runs of hyphens collapse and edge hyphens are
        trimmed.
        """
        slug = title.lower().replace(" ", "-").replace("/", "")
        slug = re.sub(r"[^a-z0-9-]", "", slug)
        slug = re.sub(r"-+", "-", slug)
        return slug.strip("-")

    def copy(self) -> Task:
        """Return an independent copy (tags list included)."""
        return Task(
            title=self.title,
            description=self.description,
            priority=self.priority,
            status=self.status,
            tags=list(self.tags),
            created_at=self.created_at,
            completed_at=self.completed_at,
        )

    def to_frontmatter(self) -> dict[str, Any]:
        """Convert task to frontmatter dictionary.

        Returns:
            Dictionary suitable for YAML serialization, in file field order
        """
        fm: dict[str, Any] = {"title": self.title}
        if self.description:
            fm["description"] = self.description
        if self.priority:
            fm["priority"] = self.priority
        fm["status"] = self.status.value
        if self.tags:
            fm["tags"] = list(self.tags)
        fm["created_at"] = self.created_at.isoformat() if self.created_at else None
        if self.completed_at:
            fm["completed_at"] = self.completed_at.isoformat()
        return fm

    @classmethod
    def from_frontmatter(cls, fm: dict[str, Any]) -> Task:
        """Create Task from frontmatter dictionary.

        Args:
            fm: Frontmatter dictionary from YAML

        Returns:
            Task instance

        Raises:
            TaskParseError: If title is missing or a field has the wrong type
        """
        title = fm.get("title")
        if title is None or title == "":
            raise TaskParseError("task frontmatter missing required field: title")

        status_str = fm.get("status") or TaskStatus.TODO.value
        try:
            status = TaskStatus(status_str)
        except ValueError:
            logger.warning("Invalid status '%s' (task: %s), coercing to 'todo'", status_str, title)
            status = TaskStatus.TODO

        priority = fm.get("priority", 0)
        if isinstance(priority, str):
            priority = int(priority) if priority.lstrip("-").isdigit() else 0
        if not isinstance(priority, int) or isinstance(priority, bool):
            raise TaskParseError(f"invalid priority {priority!r} (task: {title})")

        tags = fm.get("tags") or []
        if not isinstance(tags, list):
            raise TaskParseError(f"tags must be a list (task: {title})")

        description = fm.get("description") or ""

        return cls(
            title=str(title),
            description=str(description),
            priority=priority,
            status=status,
            tags=[str(t) for t in tags],
            created_at=_parse_timestamp(fm.get("created_at"), "created_at"),
            completed_at=_parse_timestamp(fm.get("completed_at"), "completed_at"),
        )

    def to_markdown(self) -> str:
        """Convert task to markdown with YAML frontmatter."""
        yaml_str = yaml.dump(
            self.to_frontmatter(),
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
        )
        parts = ["---\n", yaml_str, "---\n\n", f"# {self.title}\n\n"]
        if self.description:
            parts.append(f"{self.description}\n\n")
        return "".join(parts)

    @classmethod
    def from_markdown(cls, content: str) -> Task:
        """Parse task from markdown with YAML frontmatter.

        Raises:
            TaskParseError: If frontmatter is missing or invalid
        """
        if not content.startswith("---\n"):
            raise TaskParseError("invalid task file format: missing YAML frontmatter")

        header, sep, _body = content[4:].partition("\n---\n")
        if not sep:
            # Frontmatter closed at end of file without a trailing newline
            if content.rstrip().endswith("\n---"):
                header = content[4:].rstrip()[: -len("\n---")]
            else:
                raise TaskParseError("invalid task file format: unterminated YAML frontmatter")

        try:
            fm = yaml.safe_load(header)
        except yaml.YAMLError as e:
            raise TaskParseError(f"failed to parse YAML frontmatter: {e}") from e

        if not isinstance(fm, dict):
            raise TaskParseError("frontmatter is not a mapping")
        return cls.from_frontmatter(fm)

    @classmethod
    def from_file(cls, path: Path) -> Task:
        """Load task from file.

        Raises:
            OSError: If the file cannot be read
            TaskParseError: If the content is not a valid task
        """
        return cls.from_markdown(path.read_text(encoding="utf-8"))

    def to_dict(self) -> dict[str, Any]:
        """Plain dictionary for JSON/YAML output (all fields present)."""
        return {
            "title": self.title,
            "description": self.description,
            "priority": self.priority,
            "status": self.status.value,
            "tags": list(self.tags),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }

    def __repr__(self) -> str:
        return f"Task(title={self.title!r}, status={self.status.value}, priority={self.priority})"


@dataclass
class TaskRecord:
    """A task plus where it lives. Rebuilt on every scan; the path is the identity."""

    task: Task
    path: Path
    topic: str = ""

    @property
    def short_id(self) -> str:
        """First five characters of the filename (used by `show`)."""
        name = self.path.name
        return name[:5] if len(name) > 5 else ""

    def to_dict(self) -> dict[str, Any]:
        return {"topic": self.topic, "path": str(self.path), **self.task.to_dict()}
