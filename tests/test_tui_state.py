"""Key-sequence tests for the interactive session model."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from tada.task_model import Task, TaskStatus
from tada.task_storage import TaskStore
from tada.tui_state import (
    FIELD_PRIORITY,
    FIELD_SAVE,
    FIELD_TITLE,
    AddMode,
    EditMode,
    ListMode,
    TaskForm,
    TuiModel,
)


def _press(model: TuiModel, *keys: str) -> None:
    for key in keys:
        model.handle_key(key)


def _type(model: TuiModel, text: str) -> None:
    for char in text:
        model.handle_key("space" if char == " " else char)


def _texts(model: TuiModel) -> list[str]:
    return [item.text for item in model.items]


def _select(model: TuiModel, text: str) -> None:
    model.selected = _texts(model).index(text)


@pytest.fixture
def model(store: TaskStore) -> TuiModel:
    m = TuiModel(store, height=24)
    m.reload()
    return m


@pytest.fixture
def seeded(store: TaskStore, add) -> TuiModel:
    add("", "Buy milk", description="keep me", tags=["shop"])
    add("Proj", "Write spec")
    add("", "Old news", status=TaskStatus.DONE)
    m = TuiModel(store, height=24)
    m.reload()
    return m


def test_topics_first_then_root_tasks_without_done(seeded: TuiModel) -> None:
    assert _texts(seeded) == ["Proj", "○ Buy milk"]
    assert seeded.items[0].is_topic


def test_priority_prefix_only_when_not_default(model: TuiModel, add) -> None:
    add("", "Urgent", priority=1)
    add("", "Normal")

    model.reload()

    assert _texts(model) == ["○ [1] Urgent", "○ Normal"]


def test_empty_list_prompt(model: TuiModel) -> None:
    assert "No tasks found. Press 'a' to add a task." in model.plain_text()


def test_navigation_clamps(seeded: TuiModel) -> None:
    _press(seeded, "k")
    assert seeded.selected == 0

    _press(seeded, "j", "j", "down", "j")
    assert seeded.selected == 1

    _press(seeded, "up")
    assert seeded.selected == 0


def test_space_toggles_topic(seeded: TuiModel) -> None:
    _press(seeded, "space")
    assert _texts(seeded) == ["Proj", "  ○ Write spec", "○ Buy milk"]
    assert "▼ Proj" in seeded.plain_text()

    _press(seeded, "enter")
    assert _texts(seeded) == ["Proj", "○ Buy milk"]
    assert "▶ Proj" in seeded.plain_text()


def test_enter_on_task_opens_edit(seeded: TuiModel) -> None:
    _select(seeded, "○ Buy milk")

    _press(seeded, "enter")

    assert isinstance(seeded.mode, EditMode)
    assert seeded.mode.form.title == "Buy milk"
    assert "Edit Task" in seeded.plain_text()

    _press(seeded, "esc")
    assert isinstance(seeded.mode, ListMode)


def test_search_filters_rows_until_escape(seeded: TuiModel) -> None:
    _press(seeded, "/")
    _type(seeded, "milk")

    assert [seeded.items[i].text for i in seeded.visible_indices()] == ["○ Buy milk"]
    assert seeded.selected == 1
    assert "/milk█" in seeded.plain_text()

    _press(seeded, "backspace")
    assert seeded.search_query == "mil"

    _press(seeded, "esc")
    assert not seeded.search_mode
    assert seeded.visible_indices() == [0, 1]


def test_search_keeps_topic_with_matching_task(seeded: TuiModel) -> None:
    _press(seeded, "/")
    _type(seeded, "spec")

    assert seeded.visible_indices() == [0]


def test_details_and_escape_chain(seeded: TuiModel) -> None:
    _select(seeded, "○ Buy milk")
    _press(seeded, "i", "v", "/")

    text = seeded.plain_text()
    assert "Task Details" in text
    assert "Description: keep me" in text

    _press(seeded, "esc")
    assert seeded.selected_items == set()
    assert seeded.search_mode

    _press(seeded, "esc")
    assert not seeded.search_mode
    assert seeded.show_details

    _press(seeded, "esc")
    assert not seeded.show_details


def test_yank_and_paste_copies_into_same_topic(seeded: TuiModel, store: TaskStore) -> None:
    _press(seeded, "space")
    _select(seeded, "  ○ Write spec")

    _press(seeded, "y", "p")

    titles = sorted(r.task.title for r in store.load_all()["Proj"])
    assert titles == ["Write spec", "Write spec (Copy)"]
    assert "  ○ Write spec (Copy)" in _texts(seeded)


def test_delete_asks_for_confirmation(seeded: TuiModel, store: TaskStore) -> None:
    _select(seeded, "○ Buy milk")

    _press(seeded, "d")
    assert "Delete task 'Buy milk'? (y/n)" in seeded.plain_text()

    _press(seeded, "x")
    assert seeded.confirm_delete

    _press(seeded, "n")
    assert not seeded.confirm_delete
    assert "○ Buy milk" in _texts(seeded)

    _press(seeded, "d", "y")
    assert "○ Buy milk" not in _texts(seeded)
    assert seeded.message == "Task deleted. Press 'u' to undo."


def test_undo_delete_restores_title_only(seeded: TuiModel, store: TaskStore) -> None:
    _select(seeded, "○ Buy milk")
    path = seeded.items[seeded.selected].record.path

    _press(seeded, "d", "y", "u")

    restored = Task.from_file(path)
    assert restored.title == "Buy milk"
    assert restored.description == ""
    assert restored.tags == []
    assert seeded.message == "Undo: Task restored."
    assert "○ [0] Buy milk" in _texts(seeded)


def test_bulk_delete_skips_confirmation(store: TaskStore, add, model: TuiModel) -> None:
    add("", "One")
    add("", "Two")
    add("", "Three")
    model.reload()

    _press(model, "v", "j", "v")
    assert "[✔] ○ One" in model.plain_text()

    _press(model, "d")

    assert _texts(model) == ["○ Three"]
    assert model.message == "Bulk delete complete. Press 'u' to undo last."
    assert len(model.undo_stack) == 2

    _press(model, "u")
    assert sorted(r.task.title for r in store.load_all()[""]) == ["Three", "Two"]


def test_cycle_to_done_queues_until_quit(seeded: TuiModel, store: TaskStore) -> None:
    _select(seeded, "○ Buy milk")
    path = seeded.items[seeded.selected].record.path

    _press(seeded, "s")
    assert Task.from_file(path).status == TaskStatus.IN_PROGRESS

    _press(seeded, "s")
    assert Task.from_file(path).status == TaskStatus.DONE
    assert seeded.message == "Task completed. Press 'u' to undo."
    assert "● Buy milk" in _texts(seeded)
    assert path.exists()

    _press(seeded, "q")

    assert seeded.quit_requested
    assert not path.exists()
    assert [r.task.title for r in store.load_archive()[""]] == ["Buy milk"]


def test_quit_logs_archive_failures_and_still_quits(
    seeded: TuiModel, store: TaskStore, caplog: pytest.LogCaptureFixture
) -> None:
    _select(seeded, "○ Buy milk")
    path = seeded.items[seeded.selected].record.path
    _press(seeded, "s", "s")
    path.unlink()

    with caplog.at_level(logging.WARNING):
        _press(seeded, "q")

    assert seeded.quit_requested
    assert seeded.to_archive == []
    assert "Could not archive 'Buy milk'" in caplog.text
    assert store.load_archive() == {}


def test_undo_complete_restores_at_original_path(seeded: TuiModel, store: TaskStore) -> None:
    _select(seeded, "○ Buy milk")
    path = seeded.items[seeded.selected].record.path

    _press(seeded, "s", "s", "u")

    task = Task.from_file(path)
    assert task.status == TaskStatus.TODO
    assert task.completed_at is None
    assert task.description == "keep me"
    assert seeded.to_archive == []
    assert seeded.message == "Undo: Task marked as not completed."

    _press(seeded, "q")
    assert store.load_archive() == {}


def test_backward_cycle_never_queues(seeded: TuiModel) -> None:
    _select(seeded, "○ Buy milk")
    path = seeded.items[seeded.selected].record.path

    _press(seeded, "S")

    assert Task.from_file(path).status == TaskStatus.CANCELLED
    assert seeded.to_archive == []
    assert "✗ Buy milk" in _texts(seeded)


def test_bulk_cycle_forward(store: TaskStore, add, model: TuiModel) -> None:
    a = add("", "A")
    b = add("", "B", status=TaskStatus.IN_PROGRESS)
    model.reload()

    _press(model, "V", "j", "V", "s")

    assert Task.from_file(a).status == TaskStatus.IN_PROGRESS
    assert Task.from_file(b).status == TaskStatus.DONE
    assert [r.path for r in model.to_archive] == [b]
    assert model.message == "Bulk status cycle complete. Press 'u' to undo last."


def test_range_select(store: TaskStore, add, model: TuiModel) -> None:
    for title in ("A", "B", "C", "D"):
        add("", title)
    model.reload()

    _press(model, "j", "V", "j", "j", "V")

    assert model.selected_items == {1, 2, 3}
    assert model.last_select is None


def test_range_select_upwards(store: TaskStore, add, model: TuiModel) -> None:
    for title in ("A", "B", "C", "D"):
        add("", title)
    model.reload()

    _press(model, "j", "j", "j", "V", "k", "k", "V")

    assert model.selected_items == {1, 2, 3}
    assert model.last_select is None


def test_export_selected_tasks(store: TaskStore, add, model: TuiModel, tmp_path: Path) -> None:
    add("", "A")
    add("", "B")
    model.reload()
    out = tmp_path / "picked.json"

    _press(model, "j", "v", "x")
    assert "Export format" in model.plain_text()
    _press(model, "2")
    _type(model, str(out))
    _press(model, "enter")

    assert model.export_prompt is None
    assert model.message == f"Exported selected tasks to {out}"
    assert [t["title"] for t in json.loads(out.read_text())] == ["B"]


def test_export_needs_a_selection_and_esc_aborts(store: TaskStore, add, model: TuiModel) -> None:
    add("", "A")
    model.reload()

    _press(model, "x")
    assert model.export_prompt is None

    _press(model, "v", "x", "1", "esc")
    assert model.export_prompt is None
    assert model.selected_items == {0}


def test_add_form_prefills_topic(seeded: TuiModel, store: TaskStore) -> None:
    _press(seeded, "a")
    assert isinstance(seeded.mode, AddMode)
    assert seeded.mode.form.title == "Proj/"

    _type(seeded, "New one")
    _press(seeded, "tab", "tab", "backspace", "1", "tab", "l")
    _press(seeded, "tab", "tab", "enter")

    assert isinstance(seeded.mode, ListMode)
    [new] = [r.task for r in store.load_all()["Proj"] if r.task.title == "New one"]
    assert (new.priority, new.status) == (1, TaskStatus.IN_PROGRESS)


def test_add_form_rejects_empty_title(seeded: TuiModel) -> None:
    _select(seeded, "○ Buy milk")

    _press(seeded, "a", "shift+tab", "shift+tab", "enter")

    assert isinstance(seeded.mode, AddMode)
    assert seeded.mode.form.field == FIELD_SAVE
    assert "title cannot be empty" in seeded.plain_text()


def test_edit_form_saves_in_place(seeded: TuiModel, store: TaskStore) -> None:
    _select(seeded, "○ Buy milk")
    path = seeded.items[seeded.selected].record.path

    _press(seeded, "e", "tab", "tab")
    assert seeded.mode.form.field == FIELD_PRIORITY
    _press(seeded, "x", "backspace", "7", "right")
    assert seeded.mode.form.priority == "5"
    _press(seeded, "tab", "tab")
    _type(seeded, ", home")
    _press(seeded, "tab", "enter")

    assert isinstance(seeded.mode, ListMode)
    task = Task.from_file(path)
    assert task.priority == 5
    assert task.tags == ["shop", "home"]
    assert task.description == "keep me"
    assert [r.path for r in store.load_all()[""]].count(path) == 1
    assert [r.task.title for r in store.load_all()[""]].count("Buy milk") == 1


def test_edit_form_rejects_empty_title(seeded: TuiModel) -> None:
    _select(seeded, "○ Buy milk")

    _press(seeded, "e", *["backspace"] * len("Buy milk"))
    _press(seeded, "shift+tab", "shift+tab", "enter")

    assert isinstance(seeded.mode, EditMode)
    assert seeded.error == "title cannot be empty"


def test_form_helpers() -> None:
    form = TaskForm(priority="9")

    form.cycle_priority(1)
    assert form.priority == "5"
    form.priority = ""
    form.cycle_priority(-1)
    assert form.priority == "2"

    form.field = FIELD_TITLE
    for _ in range(7):
        form.next_field(1)
    assert form.field == FIELD_TITLE

    form.tags = " a, b "
    assert form.parsed_tags() == ["a", "b"]


def test_refresh_picks_up_external_changes(seeded: TuiModel, store: TaskStore) -> None:
    store.save("", Task(title="From elsewhere"))

    _press(seeded, "r")

    assert "○ From elsewhere" in _texts(seeded)


def test_window_follows_selection(store: TaskStore, add) -> None:
    for n in range(20):
        add("", f"Task {n:02d}")
    model = TuiModel(store, height=10)
    model.reload()

    assert model.window() == [0, 1, 2, 3, 4, 5]

    _press(model, *["j"] * 15)

    assert model.window() == [12, 13, 14, 15, 16, 17]
    assert sum(1 for line in model.render_lines() if line.selected) == 1
