"""Lookup, filtering and sorting over the topic -> records mapping.

Shared by the command layer and the TUI so both resolve `topic/title`
references and free-text search the same way.
"""

from __future__ import annotations

from collections.abc import Iterable

from tada.errors import TaskNotFoundError, ValidationError
from tada.task_model import TaskRecord, TaskStatus

SORT_KEYS = ("created", "priority", "title", "status")

TaskTree = dict[str, list[TaskRecord]]


def parse_ref(ref: str) -> tuple[str, str]:
    """Split `topic/title` on the last slash. No slash means the root topic."""
    topic, sep, title = ref.rpartition("/")
    if not sep:
        return "", ref
    return topic, title


def flatten(tasks: TaskTree) -> list[TaskRecord]:
    """All records, topics in mapping order."""
    return [record for records in tasks.values() for record in records]


def find_task(tasks: TaskTree, topic: str, title: str) -> TaskRecord:
    """Exact (topic, title) lookup. With duplicates the last match wins.

    Raises:
        TaskNotFoundError: If nothing matches
    """
    found = None
    for record in tasks.get(topic, []):
        if record.task.title == title:
            found = record
    if found is None:
        raise TaskNotFoundError(title=title, topic=topic)
    return found


def find_by_short_id(tasks: TaskTree, short_id: str) -> TaskRecord:
    """Last record whose filename starts with short_id."""
    found = None
    for record in flatten(tasks):
        if record.short_id and record.short_id == short_id:
            found = record
    if found is None:
        raise TaskNotFoundError(title=short_id)
    return found


def matches_search(record: TaskRecord, query: str) -> bool:
    """Case-insensitive substring match over title, description, tags and topic."""
    q = query.lower()
    task = record.task
    haystacks = (task.title, task.description, ",".join(task.tags), record.topic)
    return any(q in h.lower() for h in haystacks)


def filter_records(
    records: Iterable[TaskRecord],
    *,
    search: str = "",
    tag: str = "",
    status: TaskStatus | None = None,
) -> list[TaskRecord]:
    """AND of the given predicates; an empty predicate matches everything."""
    result = []
    for record in records:
        if search and not matches_search(record, search):
            continue
        if tag and tag not in record.task.tags:
            continue
        if status is not None and record.task.status != status:
            continue
        result.append(record)
    return result


def _created_key(record: TaskRecord) -> float:
    created = record.task.created_at
    return created.timestamp() if created else float("-inf")


def sort_records(records: list[TaskRecord], sort_by: str) -> list[TaskRecord]:
    """Stable sort by one of SORT_KEYS. Status compares by its string value.

    Raises:
        ValidationError: If sort_by is not a known key
    """
    if sort_by == "priority":
        return sorted(records, key=lambda r: r.task.priority)
    if sort_by == "title":
        return sorted(records, key=lambda r: r.task.title)
    if sort_by == "status":
        return sorted(records, key=lambda r: r.task.status.value)
    if sort_by == "created":
        return sorted(records, key=_created_key)
    raise ValidationError(f"invalid sort key '{sort_by}' (expected one of: {', '.join(SORT_KEYS)})")
