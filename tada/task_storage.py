#!/usr/bin/env python3
"""Task storage: one Markdown file per task, topics as directories.

Directory Structure:
    <root>/                      (the .tada directory)
    ├── config.yaml
    ├── tasks/
    │   ├── 20260112-093000-buy-milk.md
    │   └── Proj/
    │       └── Sub/
    │           └── 20260112-094512-write-spec.md
    └── archive/
        └── Proj/
            └── 20260110-170000-old-thing.md

A task's topic is the directory it lives in, relative to tasks/ ("" for the
root topic). Completing a task moves its file to the same relative place under
archive/.

The store keeps no state between calls and takes no locks: every read rescans
the tree, and the last writer wins.

Usage:
    from tada.task_storage import TaskStore

    store = TaskStore(root)
    path = store.save("Proj", Task(title="Write spec"))

    tasks = store.load_all()          # {"Proj": [TaskRecord, ...]}
    store.complete("Proj", "Write spec")
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from collections.abc import Callable, Iterator
from datetime import datetime
from pathlib import Path

import yaml

from tada.errors import StorageError, TaskNotFoundError, TaskParseError
from tada.task_model import Task, TaskRecord, TaskStatus

logger = logging.getLogger(__name__)

TASKS_DIR = "tasks"
ARCHIVE_DIR = "archive"


def _local_now() -> datetime:
    return datetime.now().astimezone()


class TaskStore:
    """File-backed task store rooted at a .tada directory.

    Every public method that touches the filesystem raises StorageError on
    failure; the original OSError is chained.
    """

    def __init__(self, root: Path, clock: Callable[[], datetime] | None = None):
        """Initialize task storage.

        Args:
            root: The .tada directory holding tasks/ and archive/
            clock: Returns "now" as an aware datetime. Defaults to local time.
        """
        self.root = Path(root)
        self.tasks_dir = self.root / TASKS_DIR
        self.archive_dir = self.root / ARCHIVE_DIR
        self.clock = clock or _local_now

    def topic_dir(self, topic: str, *, archived: bool = False) -> Path:
        base = self.archive_dir if archived else self.tasks_dir
        return base / topic if topic else base

    def ensure_directories(self) -> None:
        """Create root, tasks/ and archive/ if missing. Safe to call repeatedly."""
        for directory in (self.root, self.tasks_dir, self.archive_dir):
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise StorageError(f"failed to create directory {directory}: {e}") from e

    def generate_filename(self, title: str) -> str:
        """Build `<YYYYMMDD-HHMMSS>-<slug>.md` from the store clock and title."""
        stamp = self.clock().strftime("%Y%m%d-%H%M%S")
        return f"{stamp}-{Task.slugify_title(title)}.md"

    def _atomic_write(self, path: Path, content: str) -> None:
        """Write content to path via a temp file in the same directory.

        Raises:
            StorageError: If the directory cannot be created or the write fails
        """
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(
                suffix=".tmp",
                prefix=path.stem + "_",
                dir=path.parent,
            )
        except OSError as e:
            raise StorageError(f"failed to write {path}: {e}") from e

        try:
            os.close(fd)
            temp = Path(temp_path)
            temp.write_text(content, encoding="utf-8")
            temp.replace(path)
        except OSError as e:
            Path(temp_path).unlink(missing_ok=True)
            raise StorageError(f"failed to write {path}: {e}") from e
        logger.debug("Wrote %s", path)

    def save(self, topic: str, task: Task) -> Path:
        """Save a new task under tasks/<topic>/.

        Assigns created_at when unset. The filename comes from the clock at
        second resolution, so saving the same title twice within one second
        overwrites the first file.

        Args:
            topic: Topic path ("" for root)
            task: Task to save

        Returns:
            Path of the written file

        Raises:
            StorageError: If the directory or file cannot be written
        """
        self.ensure_directories()
        if task.created_at is None:
            task.created_at = self.clock()
        path = self.topic_dir(topic) / self.generate_filename(task.title)
        self._atomic_write(path, task.to_markdown())
        return path

    def write(self, record: TaskRecord) -> None:
        """Rewrite a task in place at its existing path."""
        self._atomic_write(record.path, record.task.to_markdown())

    def delete(self, path: Path) -> None:
        try:
            path.unlink()
        except OSError as e:
            raise StorageError(f"failed to delete {path}: {e}") from e
        logger.debug("Deleted %s", path)

    def move(self, record: TaskRecord, new_topic: str) -> Path:
        """Move a task file into tasks/<new_topic>/, keeping its filename."""
        dest_dir = self.topic_dir(new_topic)
        dest = dest_dir / record.path.name
        try:
            dest_dir.mkdir(parents=True, exist_ok=True)
            record.path.replace(dest)
        except OSError as e:
            raise StorageError(f"failed to move {record.path} to {dest_dir}: {e}") from e
        logger.debug("Moved %s -> %s", record.path, dest)
        return dest

    def copy(self, record: TaskRecord, new_topic: str) -> Path:
        """Duplicate a task file into tasks/<new_topic>/, keeping its filename.

        Copying into the task's own topic leaves the file as it is.
        """
        dest_dir = self.topic_dir(new_topic)
        dest = dest_dir / record.path.name
        if dest == record.path:
            logger.debug("Copy of %s onto itself skipped", record.path)
            return dest
        try:
            dest_dir.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(record.path, dest)
        except OSError as e:
            raise StorageError(f"failed to copy {record.path} to {dest_dir}: {e}") from e
        logger.debug("Copied %s -> %s", record.path, dest)
        return dest

    def restore_minimal(self, path: Path, title: str) -> None:
        """Recreate a deleted task file carrying only its title.

        This is the undo-of-delete restore: every other field comes back empty.
        """
        header = yaml.dump({"title": title}, default_flow_style=False, allow_unicode=True)
        self._atomic_write(path, f"---\n{header}---\n\n# {title}\n\n")

    def _walk_error(self, error: OSError) -> None:
        if error.filename is not None and Path(error.filename) in (self.tasks_dir, self.archive_dir):
            raise StorageError(f"failed to read {error.filename}: {error.strerror}") from error
        logger.warning("Skipping unreadable directory %s: %s", error.filename, error.strerror)

    def _iter_markdown_files(self, base: Path) -> Iterator[Path]:
        """Yield every .md file under base, directories and files in sorted order."""
        for root, dirs, files in base.walk(on_error=self._walk_error):
            dirs.sort()
            for filename in sorted(files):
                if filename.endswith(".md") and not filename.startswith("."):
                    yield root / filename

    def _load_tree(self, base: Path) -> dict[str, list[TaskRecord]]:
        self.ensure_directories()
        result: dict[str, list[TaskRecord]] = {}
        for md_file in self._iter_markdown_files(base):
            try:
                task = Task.from_file(md_file)
            except (TaskParseError, ValueError, OSError) as e:
                logger.warning("Skipping %s: %s", md_file, e)
                continue
            rel = md_file.parent.relative_to(base)
            topic = "" if rel == Path(".") else rel.as_posix()
            result.setdefault(topic, []).append(TaskRecord(task=task, path=md_file, topic=topic))
        return result

    def load_all(self) -> dict[str, list[TaskRecord]]:
        """Scan tasks/ and group every parseable task by topic.

        Files that fail to parse are skipped with a warning.

        Raises:
            StorageError: If tasks/ itself cannot be traversed
        """
        return self._load_tree(self.tasks_dir)

    def load_archive(self) -> dict[str, list[TaskRecord]]:
        """Same as load_all, over archive/."""
        return self._load_tree(self.archive_dir)

    def complete(self, topic: str, title: str) -> Path:
        """Mark the first (topic, title) match done and move it to archive/.

        The archived copy is written and read back before the original is
        removed. If the removal fails the task stays in both trees and
        StorageError is raised; nothing is rolled back.

        Returns:
            Path of the archived file

        Raises:
            TaskNotFoundError: If no task matches
            StorageError: If the archive write, verification or removal fails
        """
        record = next(
            (r for r in self.load_all().get(topic, []) if r.task.title == title),
            None,
        )
        if record is None:
            raise TaskNotFoundError(title=title, topic=topic)

        task = record.task
        task.status = TaskStatus.DONE
        task.completed_at = self.clock()

        dest = self.topic_dir(topic, archived=True) / record.path.name
        content = task.to_markdown()
        self._atomic_write(dest, content)
        try:
            written = dest.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(f"failed to verify archived file {dest}: {e}") from e
        if written != content:
            raise StorageError(f"archived file {dest} does not match what was written")

        try:
            record.path.unlink()
        except OSError as e:
            raise StorageError(
                f"archived {dest} but failed to remove {record.path}: {e}"
            ) from e
        logger.debug("Archived %s -> %s", record.path, dest)
        return dest
