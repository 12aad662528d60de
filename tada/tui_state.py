"""Interactive session state machine.

TuiModel holds a snapshot of the store and reacts to canonical key names
("j", "S", "space", "enter", "esc", "backspace", "tab", "shift+tab",
"left", "right", "up", "down", "ctrl+c"). Every key is handled to
completion, store I/O happens inline, and after any mutation the whole tree
is reloaded from disk rather than patched.

Nothing here imports Textual. `render_lines()` returns styled spans that the
app shell turns into Rich text, which keeps the model testable with plain
key sequences.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from tada.errors import TadaError, ValidationError
from tada.export import export_tasks
from tada.task_model import (
    DEFAULT_PRIORITY,
    STATUS_ICONS,
    Task,
    TaskRecord,
    TaskStatus,
    cycle_status,
)
from tada.task_query import matches_search, parse_ref
from tada.task_storage import TaskStore
from tada.theme import Theme, get_theme

logger = logging.getLogger(__name__)

DEFAULT_HEIGHT = 24
RESERVED_LINES = 4
POPUP_WIDTH = 50

FIELD_TITLE = 0
FIELD_DESCRIPTION = 1
FIELD_PRIORITY = 2
FIELD_STATUS = 3
FIELD_TAGS = 4
FIELD_SAVE = 5
FIELD_CANCEL = 6
FIELD_COUNT = 7

EXPORT_FORMAT_KEYS = {"1": "csv", "2": "json", "3": "md"}

LIST_HELP = "j/k: move • space: expand • enter: edit • a: add • r: refresh • d: delete • q: quit"


# Span roles understood by the app shell
PLAIN = "plain"
HEADER = "header"
MUTED = "muted"
TOPIC = "topic"
FOCUS = "focus"
ACCENT = "accent"
ERROR = "error"


@dataclass
class Line:
    spans: list[tuple[str, str]] = field(default_factory=list)
    selected: bool = False

    @property
    def text(self) -> str:
        return "".join(text for text, _role in self.spans)


def _line(text: str = "", role: str = PLAIN) -> Line:
    return Line(spans=[(text, role)] if text else [])


@dataclass
class Item:
    """One row of the flattened list: a topic header or a task."""

    text: str
    topic: str
    record: TaskRecord | None = None

    @property
    def is_topic(self) -> bool:
        return self.record is None


@dataclass
class TaskForm:
    field: int = FIELD_TITLE
    title: str = ""
    description: str = ""
    priority: str = str(DEFAULT_PRIORITY)
    status: TaskStatus = TaskStatus.TODO
    tags: str = ""

    @classmethod
    def from_task(cls, task: Task) -> TaskForm:
        return cls(
            title=task.title,
            description=task.description,
            priority=str(task.priority),
            status=task.status,
            tags=", ".join(task.tags),
        )

    def next_field(self, direction: int) -> None:
        self.field = (self.field + direction) % FIELD_COUNT

    def cycle_status(self, direction: int) -> None:
        self.status = cycle_status(self.status, direction)

    def cycle_priority(self, direction: int) -> None:
        p = int(self.priority) if self.priority.isdigit() else DEFAULT_PRIORITY
        self.priority = str(min(5, max(1, p + direction)))

    def backspace(self) -> None:
        name = _TEXT_FIELDS.get(self.field)
        if name:
            setattr(self, name, getattr(self, name)[:-1])

    def type_char(self, char: str) -> None:
        if self.field == FIELD_PRIORITY and not char.isdigit():
            return
        name = _TEXT_FIELDS.get(self.field)
        if name:
            setattr(self, name, getattr(self, name) + char)

    def parsed_tags(self) -> list[str]:
        if not self.tags.strip():
            return []
        return [t.strip() for t in self.tags.split(",")]

    def parsed_priority(self, fallback: int) -> int:
        return int(self.priority) if self.priority.isdigit() else fallback


_TEXT_FIELDS = {
    FIELD_TITLE: "title",
    FIELD_DESCRIPTION: "description",
    FIELD_PRIORITY: "priority",
    FIELD_TAGS: "tags",
}


@dataclass
class ListMode:
    pass


@dataclass
class EditMode:
    record: TaskRecord
    form: TaskForm


@dataclass
class AddMode:
    form: TaskForm


Mode = ListMode | EditMode | AddMode


class UndoKind(Enum):
    DELETE = "delete"
    COMPLETE = "complete"


@dataclass
class UndoEntry:
    kind: UndoKind
    record: TaskRecord


@dataclass
class ExportPrompt:
    step: int = 0  # 0: choose format, 1: type path
    format: str = ""
    path: str = ""


def _is_printable(key: str) -> bool:
    return len(key) == 1 and key.isprintable()


def _task_row_text(task: Task) -> str:
    title = task.title if task.priority == DEFAULT_PRIORITY else f"[{task.priority}] {task.title}"
    return f"{STATUS_ICONS.get(task.status, '○')} {title}"


def _box(rows: list[Line], border_role: str) -> list[Line]:
    """Draw a rounded box of fixed width around rows."""
    inner = POPUP_WIDTH - 4
    out = [Line(spans=[("╭" + "─" * (POPUP_WIDTH - 2) + "╮", border_role)])]
    for row in rows:
        pad = max(0, inner - len(row.text))
        out.append(Line(spans=[("│ ", border_role), *row.spans, (" " * pad + " │", border_role)]))
    out.append(Line(spans=[("╰" + "─" * (POPUP_WIDTH - 2) + "╯", border_role)]))
    return out


class TuiModel:
    """State and key handling for the interactive session."""

    def __init__(self, store: TaskStore, theme: Theme | None = None, height: int = 0):
        self.store = store
        self.theme = theme or get_theme(None)
        self.height = height

        self.tasks: dict[str, list[TaskRecord]] = {}
        self.items: list[Item] = []
        self.selected = 0
        self.expanded: set[str] = set()
        self.mode: Mode = ListMode()

        self.undo_stack: list[UndoEntry] = []
        self.selected_items: set[int] = set()
        self.last_select: int | None = None
        self.yanked: TaskRecord | None = None

        self.search_mode = False
        self.search_query = ""
        self.show_details = False
        self.confirm_delete = False
        self.pending_delete: TaskRecord | None = None
        self.to_archive: list[TaskRecord] = []
        self.export_prompt: ExportPrompt | None = None

        self.message = ""
        self.error = ""
        self.quit_requested = False

    # --- Loading ---

    def reload(self) -> None:
        """Replace the snapshot with a fresh scan and rebuild the rows."""
        try:
            self.tasks = self.store.load_all()
        except (TadaError, OSError) as e:
            logger.warning("Failed to load tasks: %s", e)
            self.error = f"Error loading tasks: {e}"
            self.tasks = {}
        self.build_items()

    def _queued(self, record: TaskRecord) -> bool:
        return any(r.path == record.path for r in self.to_archive)

    def _visible_records(self, records: list[TaskRecord]) -> list[TaskRecord]:
        # Done tasks stay visible only while they wait to be archived on exit
        return [r for r in records if r.task.status != TaskStatus.DONE or self._queued(r)]

    def build_items(self) -> None:
        """Flatten the tree: non-root topics (with tasks when expanded), then root tasks."""
        items: list[Item] = []
        for topic, records in self.tasks.items():
            if not topic:
                continue
            items.append(Item(text=topic, topic=topic))
            if topic in self.expanded:
                for record in self._visible_records(records):
                    items.append(Item(text="  " + _task_row_text(record.task), topic=topic, record=record))
        for record in self._visible_records(self.tasks.get("", [])):
            items.append(Item(text=_task_row_text(record.task), topic="", record=record))

        self.items = items
        if self.selected >= len(items):
            self.selected = max(0, len(items) - 1)

    # --- Search ---

    def _row_matches(self, index: int) -> bool:
        item = self.items[index]
        q = self.search_query
        if item.record is not None:
            return matches_search(item.record, q)
        if q.lower() in item.topic.lower():
            return True
        return any(matches_search(r, q) for r in self.tasks.get(item.topic, []))

    def visible_indices(self) -> list[int]:
        """Indices into items that survive the active search query."""
        if not self.search_query:
            return list(range(len(self.items)))
        return [i for i in range(len(self.items)) if self._row_matches(i)]

    def _snap_selection(self) -> None:
        visible = self.visible_indices()
        if visible and self.selected not in visible:
            self.selected = visible[0]

    def _move(self, direction: int) -> None:
        visible = self.visible_indices()
        if not visible:
            return
        if self.selected not in visible:
            self.selected = visible[0]
            return
        pos = visible.index(self.selected) + direction
        self.selected = visible[min(len(visible) - 1, max(0, pos))]

    # --- Key dispatch ---

    def handle_key(self, key: str) -> None:
        self.error = ""
        if self.export_prompt is not None:
            self._handle_export_key(key)
            return

        if self.search_mode and isinstance(self.mode, ListMode):
            if key == "esc":
                if self.selected_items:
                    self._clear_selection()
                else:
                    self.search_mode = False
                    self.search_query = ""
                return
            if key == "backspace":
                self.search_query = self.search_query[:-1]
                return
            if key == "space" or _is_printable(key):
                self.search_query += " " if key == "space" else key
                self._snap_selection()
                return

        if isinstance(self.mode, (EditMode, AddMode)):
            self._handle_form_key(key)
        else:
            self._handle_list_key(key)

    def _current(self) -> Item | None:
        if 0 <= self.selected < len(self.items):
            return self.items[self.selected]
        return None

    def _current_record(self) -> TaskRecord | None:
        item = self._current()
        return item.record if item else None

    def _clear_selection(self) -> None:
        self.selected_items = set()
        self.last_select = None

    def _selected_records(self) -> list[TaskRecord]:
        return [
            self.items[i].record
            for i in sorted(self.selected_items)
            if i < len(self.items) and self.items[i].record is not None
        ]

    def _handle_list_key(self, key: str) -> None:
        if self.confirm_delete:
            self._handle_confirm_key(key)
            return

        handler = {
            "q": self._quit,
            "ctrl+c": self._quit,
            "/": self._start_search,
            "i": self._toggle_details,
            "y": self._yank,
            "p": self._paste,
            "d": self._delete,
            "e": self._edit_current,
            "s": lambda: self._cycle_status(1),
            "S": lambda: self._cycle_status(-1),
            "j": lambda: self._move(1),
            "down": lambda: self._move(1),
            "k": lambda: self._move(-1),
            "up": lambda: self._move(-1),
            "space": self._activate,
            "enter": self._activate,
            "a": self._start_add,
            "r": self.reload,
            "u": self._undo,
            "x": self._start_export,
            "v": self._toggle_select,
            "V": self._range_select,
            "esc": self._escape,
        }.get(key)
        if handler is not None:
            handler()

    # --- List actions ---

    def _quit(self) -> None:
        """Archive everything queued by the status cycle, then stop."""
        for record in self.to_archive:
            try:
                self.store.complete(record.topic, record.task.title)
            except (TadaError, OSError) as e:
                logger.warning("Could not archive %r on exit: %s", record.task.title, e)
        self.to_archive = []
        self.quit_requested = True

    def _start_search(self) -> None:
        self.search_mode = True
        self.search_query = ""

    def _toggle_details(self) -> None:
        self.show_details = not self.show_details

    def _yank(self) -> None:
        record = self._current_record()
        if record is not None:
            self.yanked = record

    def _paste(self) -> None:
        if self.yanked is None:
            return
        source = self.yanked.task
        copy = Task(
            title=f"{source.title} (Copy)",
            description=source.description,
            priority=source.priority,
            status=source.status,
            tags=list(source.tags),
        )
        try:
            self.store.save(self.yanked.topic, copy)
        except (TadaError, OSError) as e:
            self.error = f"Paste failed: {e}"
            return
        self.reload()

    def _delete(self) -> None:
        if self.selected_items:
            for record in self._selected_records():
                try:
                    self.store.delete(record.path)
                except (TadaError, OSError) as e:
                    logger.warning("Bulk delete skipped %s: %s", record.path, e)
                    continue
                self.undo_stack.append(UndoEntry(UndoKind.DELETE, record))
            self.message = "Bulk delete complete. Press 'u' to undo last."
            self._clear_selection()
            self.reload()
            return
        record = self._current_record()
        if record is not None:
            self.confirm_delete = True
            self.pending_delete = record

    def _handle_confirm_key(self, key: str) -> None:
        if key == "y":
            record = self.pending_delete
            self.confirm_delete = False
            self.pending_delete = None
            if record is not None:
                try:
                    self.store.delete(record.path)
                except (TadaError, OSError) as e:
                    self.error = f"Delete failed: {e}"
                else:
                    self.undo_stack.append(UndoEntry(UndoKind.DELETE, record))
                    self.message = "Task deleted. Press 'u' to undo."
            self.reload()
        elif key in ("n", "esc"):
            self.confirm_delete = False
            self.pending_delete = None

    def _edit_current(self) -> None:
        record = self._current_record()
        if record is not None:
            self.mode = EditMode(record=record, form=TaskForm.from_task(record.task))

    def _activate(self) -> None:
        item = self._current()
        if item is None:
            return
        if item.is_topic:
            self.expanded ^= {item.topic}
            self.build_items()
        else:
            self._edit_current()

    def _write_status(self, record: TaskRecord, direction: int) -> bool:
        """Cycle one task's status and write it in place. True if it landed on done going forward."""
        record.task.status = cycle_status(record.task.status, direction)
        self.store.write(record)
        if direction > 0 and record.task.status == TaskStatus.DONE:
            self.to_archive.append(record)
            self.undo_stack.append(UndoEntry(UndoKind.COMPLETE, record))
            return True
        return False

    def _cycle_status(self, direction: int) -> None:
        try:
            if self.selected_items and direction > 0:
                for record in self._selected_records():
                    self._write_status(record, direction)
                self.message = "Bulk status cycle complete. Press 'u' to undo last."
            else:
                record = self._current_record()
                if record is None:
                    return
                if self._write_status(record, direction):
                    self.message = "Task completed. Press 'u' to undo."
        except (TadaError, OSError) as e:
            self.error = f"Failed to update status: {e}"
        self.reload()

    def _start_add(self) -> None:
        item = self._current()
        form = TaskForm()
        if item is not None and item.topic:
            form.title = f"{item.topic}/"
        self.mode = AddMode(form=form)

    def _undo(self) -> None:
        if not self.undo_stack:
            return
        entry = self.undo_stack.pop()
        record = entry.record
        try:
            if entry.kind is UndoKind.DELETE:
                self.store.restore_minimal(record.path, record.task.title)
                self.message = "Undo: Task restored."
            else:
                record.task.status = TaskStatus.TODO
                record.task.completed_at = None
                self.store.write(record)
                self.to_archive = [r for r in self.to_archive if r.path != record.path]
                self.message = "Undo: Task marked as not completed."
        except (TadaError, OSError) as e:
            self.error = f"Undo failed: {e}"
        self.reload()

    def _start_export(self) -> None:
        if self.selected_items:
            self.export_prompt = ExportPrompt()

    def _toggle_select(self) -> None:
        self.selected_items ^= {self.selected}
        self.last_select = None

    def _range_select(self) -> None:
        if self.last_select is None:
            self.last_select = self.selected
            self.selected_items = {self.selected}
            return
        start, end = sorted((self.last_select, self.selected))
        self.selected_items |= set(range(start, end + 1))
        self.last_select = None

    def _escape(self) -> None:
        if self.selected_items or self.last_select is not None:
            self._clear_selection()
        elif self.search_mode:
            self.search_mode = False
            self.search_query = ""
        elif self.show_details:
            self.show_details = False

    # --- Export prompt ---

    def _handle_export_key(self, key: str) -> None:
        prompt = self.export_prompt
        if key == "esc":
            self.export_prompt = None
            return
        if prompt.step == 0:
            fmt = EXPORT_FORMAT_KEYS.get(key)
            if fmt:
                prompt.format = fmt
                prompt.step = 1
            return
        if key == "backspace":
            prompt.path = prompt.path[:-1]
        elif key == "enter" and prompt.path:
            self._export_selected(prompt.format, prompt.path)
            self.export_prompt = None
        elif key == "space":
            prompt.path += " "
        elif _is_printable(key):
            prompt.path += key

    def _export_selected(self, fmt: str, path: str) -> None:
        records = self._selected_records()
        try:
            if not records:
                raise ValidationError("no tasks selected")
            export_tasks(records, fmt, path)
        except (TadaError, OSError) as e:
            self.message = f"Export failed: {e}"
            return
        self.message = f"Exported selected tasks to {path}"

    # --- Edit / add forms ---

    def _handle_form_key(self, key: str) -> None:
        form = self.mode.form
        if key in ("esc", "ctrl+c"):
            self.mode = ListMode()
        elif key == "tab":
            form.next_field(1)
        elif key == "shift+tab":
            form.next_field(-1)
        elif key == "enter":
            if form.field == FIELD_SAVE:
                self._save_form()
            elif form.field == FIELD_CANCEL:
                self.mode = ListMode()
        elif key in ("left", "right", "h", "l") and form.field in (FIELD_STATUS, FIELD_PRIORITY):
            direction = 1 if key in ("right", "l") else -1
            if form.field == FIELD_STATUS:
                form.cycle_status(direction)
            else:
                form.cycle_priority(direction)
        elif key == "backspace":
            form.backspace()
        elif key == "space":
            form.type_char(" ")
        elif _is_printable(key):
            form.type_char(key)

    def _save_form(self) -> None:
        try:
            if isinstance(self.mode, EditMode):
                self._save_edit(self.mode)
            else:
                self._save_add(self.mode)
        except (TadaError, OSError) as e:
            self.error = str(e)
            return
        self.mode = ListMode()
        self.reload()

    def _save_edit(self, mode: EditMode) -> None:
        form = mode.form
        if not form.title:
            raise ValidationError("title cannot be empty")
        task = mode.record.task
        task.title = form.title
        task.description = form.description
        task.priority = form.parsed_priority(task.priority)
        task.status = form.status
        task.tags = form.parsed_tags()
        self.store.write(mode.record)

    def _save_add(self, mode: AddMode) -> None:
        form = mode.form
        if not form.title:
            raise ValidationError("title cannot be empty")
        topic, title = parse_ref(form.title)
        if not title:
            raise ValidationError("title cannot be empty")
        task = Task(
            title=title,
            description=form.description,
            priority=form.parsed_priority(DEFAULT_PRIORITY),
            status=form.status,
            tags=form.parsed_tags(),
        )
        self.store.save(topic, task)

    # --- Rendering ---

    def window(self) -> list[int]:
        """Indices of the rows that fit on screen, centred on the selection."""
        visible = self.visible_indices()
        height = self.height or DEFAULT_HEIGHT
        size = max(1, height - RESERVED_LINES)
        if len(visible) <= size:
            return visible
        pos = visible.index(self.selected) if self.selected in visible else 0
        start = max(0, pos - size // 2)
        end = start + size
        if end > len(visible):
            end = len(visible)
            start = max(0, end - size)
        return visible[start:end]

    def render_lines(self) -> list[Line]:
        if isinstance(self.mode, EditMode):
            return self._render_form("Edit Task", "tab: next field • enter: save/cancel • esc: back", "Save", "")
        if isinstance(self.mode, AddMode):
            return self._render_form("Add New Task", "tab: next field • enter: add/cancel • esc: back", "Add", "(required)")
        return self._render_list()

    def _render_list(self) -> list[Line]:
        lines = [_line("TADA - Todo Manager", HEADER), _line(LIST_HELP, MUTED), _line()]

        if self.confirm_delete and self.pending_delete is not None:
            prompt = Line(spans=[
                ("Delete task '", FOCUS),
                (self.pending_delete.task.title, PLAIN),
                ("'? (y/n)", FOCUS),
            ])
            return lines + _box([prompt], FOCUS)

        if self.search_mode:
            lines.append(Line(spans=[("/", FOCUS), (self.search_query + "█", PLAIN)]))

        if not self.items:
            lines.append(_line("No tasks found. Press 'a' to add a task.", MUTED))
        else:
            for i in self.window():
                lines.extend(self._render_row(i))

        if self.export_prompt is not None:
            if self.export_prompt.step == 0:
                lines.append(_line("Export format: 1) csv  2) json  3) md  (esc to cancel)", FOCUS))
            else:
                lines.append(Line(spans=[("Export to file: ", FOCUS), (self.export_prompt.path + "█", PLAIN)]))
        if self.message:
            lines.append(_line(self.message, FOCUS))
        if self.error:
            lines.append(_line(self.error, ERROR))
        return lines

    def _render_row(self, index: int) -> list[Line]:
        item = self.items[index]
        row = Line(selected=index == self.selected)
        if self.selected_items:
            row.spans.append(("[✔] " if index in self.selected_items else "    ", FOCUS))
        if item.is_topic:
            icon = "▼" if item.topic in self.expanded else "▶"
            row.spans.append((f"{icon} {item.text}", TOPIC))
        else:
            row.spans.append((item.text, PLAIN))

        out = [row]
        if self.show_details and index == self.selected and item.record is not None:
            task = item.record.task
            detail = [
                _line("Task Details", ACCENT),
                Line(spans=[("Title: ", FOCUS), (task.title, PLAIN)]),
                Line(spans=[("Description: ", FOCUS), (task.description, PLAIN)]),
                Line(spans=[("Priority: ", FOCUS), (str(task.priority), PLAIN)]),
                Line(spans=[("Status: ", FOCUS), (task.status.value, PLAIN)]),
                Line(spans=[("Tags: ", FOCUS), (", ".join(task.tags), PLAIN)]),
                _line("(Press esc/i to close)", MUTED),
            ]
            out.extend(_box(detail, ACCENT))
        return out

    def _render_form(self, heading: str, help_text: str, submit: str, title_help: str) -> list[Line]:
        form = self.mode.form
        lines = [_line(heading, HEADER), _line(help_text, MUTED), _line()]
        fields = [
            ("Title:", form.title, title_help),
            ("Description:", form.description, ""),
            ("Priority:", form.priority, "(1-5, default 3)"),
            ("Status:", form.status.value, "(h/l to change)"),
            ("Tags:", form.tags, "(comma separated)"),
        ]
        for i, (label, value, help_text) in enumerate(fields):
            focused = i == form.field
            spans = [(label, FOCUS if focused else PLAIN), (" " + value + ("█" if focused else ""), PLAIN)]
            if help_text:
                spans.append((" " + help_text, MUTED))
            lines.append(Line(spans=spans))
        lines.append(_line())
        lines.append(Line(spans=[
            (f"[{submit}]", FOCUS if form.field == FIELD_SAVE else PLAIN),
            (" ", PLAIN),
            ("[Cancel]", FOCUS if form.field == FIELD_CANCEL else PLAIN),
        ]))
        if self.error:
            lines.append(_line(self.error, ERROR))
        return lines

    def plain_text(self) -> str:
        return "\n".join(line.text for line in self.render_lines())
