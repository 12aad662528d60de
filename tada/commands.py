#!/usr/bin/env python3
"""Command operations: one function per user-facing verb.

Each operation loads from the store, locates or filters in memory, then
writes back through the store. Nothing here prints; `tada.cli` renders the
results and errors.

Usage:
    from tada.commands import add_task, list_tasks

    record = add_task(store, "Proj/Write spec", tags=["docs"])
    for record in list_tasks(store, search="docs", sort_by="priority"):
        ...
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from tada.config import TadaConfig
from tada.errors import NoMatchError, TaskNotFoundError, ValidationError
from tada.export import EXPORT_FORMATS, export_tasks
from tada.task_model import DEFAULT_PRIORITY, Task, TaskRecord, TaskStatus, parse_status
from tada.task_query import (
    filter_records,
    find_by_short_id,
    find_task,
    flatten,
    parse_ref,
    sort_records,
)
from tada.task_storage import TaskStore

logger = logging.getLogger(__name__)

STATS_STATUS_ORDER = (
    TaskStatus.TODO,
    TaskStatus.IN_PROGRESS,
    TaskStatus.DONE,
    TaskStatus.PAUSED,
    TaskStatus.CANCELLED,
)


class BulkAction(Enum):
    DELETE = "delete"
    COMPLETE = "complete"
    MOVE = "move"


@dataclass
class Stats:
    by_status: dict[str, int] = field(default_factory=dict)
    by_topic: dict[str, int] = field(default_factory=dict)
    by_tag: dict[str, int] = field(default_factory=dict)
    archived: int = 0


def split_tags(values: list[str] | None) -> list[str]:
    """Flatten repeated, comma-separated tag options, keeping order and duplicates."""
    tags: list[str] = []
    for value in values or []:
        tags.extend(t.strip() for t in value.split(",") if t.strip())
    return tags


def add_task(
    store: TaskStore,
    ref: str,
    *,
    description: str = "",
    priority: int = DEFAULT_PRIORITY,
    tags: list[str] | None = None,
    status: str | None = None,
    config: TadaConfig | None = None,
) -> TaskRecord:
    """Save a new task from a `[topic/]title` reference.

    Status falls back to the configured default_status, then todo.

    Raises:
        ValidationError: If the title is empty or the status is unknown
        StorageError: If the file cannot be written
    """
    topic, title = parse_ref(ref.strip())
    if not title.strip():
        raise ValidationError("title must not be empty")

    status_value = status or (config.default_status if config else "") or TaskStatus.TODO.value
    task = Task(
        title=title,
        description=description,
        priority=priority,
        status=parse_status(status_value),
        tags=list(tags or []),
    )
    path = store.save(topic, task)
    logger.info("Added %r in topic %r", title, topic)
    return TaskRecord(task=task, path=path, topic=topic)


def list_tasks(
    store: TaskStore,
    *,
    status: str | None = None,
    search: str = "",
    sort_by: str = "created",
) -> list[TaskRecord]:
    """All active tasks matching the filters, in a stable sort."""
    status_filter = parse_status(status) if status else None
    records = filter_records(flatten(store.load_all()), search=search, status=status_filter)
    return sort_records(records, sort_by)


def edit_task(
    store: TaskStore,
    ref: str,
    *,
    description: str = "",
    priority: int | None = None,
    tags: list[str] | None = None,
    status: str | None = None,
) -> TaskRecord:
    """Overwrite the supplied fields and rewrite the task at its existing path.

    Description and tags are only replaced when non-empty. Priority is
    replaced whenever it is not None, so 0 can be set.
    """
    new_status = parse_status(status) if status else None
    topic, title = parse_ref(ref)
    record = find_task(store.load_all(), topic, title)

    task = record.task
    if description:
        task.description = description
    if priority is not None:
        task.priority = priority
    if tags:
        task.tags = list(tags)
    if new_status is not None:
        task.status = new_status
    store.write(record)
    return record


def delete_task(store: TaskStore, ref: str) -> TaskRecord:
    topic, title = parse_ref(ref)
    record = find_task(store.load_all(), topic, title)
    store.delete(record.path)
    return record


def move_task(store: TaskStore, ref: str, new_topic: str) -> Path:
    topic, title = parse_ref(ref)
    record = find_task(store.load_all(), topic, title)
    return store.move(record, new_topic.strip("/"))


def copy_task(store: TaskStore, ref: str, new_topic: str) -> Path:
    topic, title = parse_ref(ref)
    record = find_task(store.load_all(), topic, title)
    return store.copy(record, new_topic.strip("/"))


def complete_task(store: TaskStore, ref: str) -> Path:
    topic, title = parse_ref(ref)
    return store.complete(topic, title)


def bulk_apply(
    store: TaskStore,
    action: BulkAction,
    *,
    search: str = "",
    tag: str = "",
    status: str | None = None,
    target_topic: str = "",
) -> list[TaskRecord]:
    """Apply one action to every task matching all given predicates.

    Returns:
        The matched records

    Raises:
        NoMatchError: If nothing matches
    """
    status_filter = parse_status(status) if status else None
    if action is BulkAction.MOVE and not target_topic:
        raise ValidationError("--move requires a topic")

    matches = filter_records(
        flatten(store.load_all()), search=search, tag=tag, status=status_filter
    )
    if not matches:
        raise NoMatchError("No matching tasks found.")

    for record in matches:
        if action is BulkAction.DELETE:
            store.delete(record.path)
        elif action is BulkAction.COMPLETE:
            store.complete(record.topic, record.task.title)
        else:
            store.move(record, target_topic.strip("/"))
    logger.info("Bulk %s on %d tasks", action.value, len(matches))
    return matches


def export_all(store: TaskStore, fmt: str, destination: str | None = None) -> int:
    """Export every active task. Returns the number exported."""
    if fmt not in EXPORT_FORMATS:
        raise ValidationError(f"unsupported format: {fmt}")
    records = flatten(store.load_all())
    export_tasks(records, fmt, destination)
    return len(records)


def show_task(store: TaskStore, ref: str) -> TaskRecord:
    """Look up by five-character short id, else by `[topic/]title`."""
    tasks = store.load_all()
    if len(ref) == 5 and "/" not in ref:
        try:
            return find_by_short_id(tasks, ref)
        except TaskNotFoundError:
            logger.debug("No task with id %s, trying as a title", ref)
    topic, title = parse_ref(ref)
    return find_task(tasks, topic, title)


def compute_stats(store: TaskStore) -> Stats:
    stats = Stats(by_status={s.value: 0 for s in STATS_STATUS_ORDER})
    topic_counts: dict[str, int] = {}
    tag_counts: dict[str, int] = {}
    for topic, records in store.load_all().items():
        topic_counts[topic] = topic_counts.get(topic, 0) + len(records)
        for record in records:
            stats.by_status[record.task.status.value] += 1
            for tag in record.task.tags:
                tag_counts[tag] = tag_counts.get(tag, 0) + 1
    stats.by_topic = dict(sorted(topic_counts.items()))
    stats.by_tag = dict(sorted(tag_counts.items()))
    stats.archived = len(flatten(store.load_archive()))
    return stats
