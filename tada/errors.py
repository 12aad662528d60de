"""Exception hierarchy shared by the store, the command layer and the TUI.

Every error a user can trigger derives from TadaError so front ends can
catch one type at the operation boundary and render a message.
"""

from __future__ import annotations


class TadaError(Exception):
    """Base class for all tada errors."""


class TaskNotFoundError(TadaError):
    """Lookup by (topic, title) or short id matched nothing."""

    def __init__(self, title: str = "", topic: str = ""):
        self.title = title
        self.topic = topic
        ref = f"{topic}/{title}" if topic else title
        super().__init__(f"task not found: {ref}" if ref else "task not found")


class NoMatchError(TadaError):
    """A bulk predicate matched zero tasks."""

    def __init__(self, message: str = "no matching tasks found"):
        super().__init__(message)


class StorageError(TadaError, OSError):
    """Filesystem operation failed (permission, missing path, disk full)."""


class TaskParseError(TadaError, ValueError):
    """A task file's frontmatter is missing or malformed."""


class ValidationError(TadaError, ValueError):
    """User input rejected before touching the store."""
