"""Textual shell around TuiModel.

The app owns no task state: it translates key events into canonical names,
hands them to the model, and repaints a single Static from
`TuiModel.render_lines()`.
"""

from __future__ import annotations

import logging
from pathlib import Path

from rich.text import Text
from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import Static

from tada.task_storage import TaskStore
from tada.theme import Theme, get_theme
from tada.tui_state import ACCENT, ERROR, FOCUS, HEADER, MUTED, TOPIC, Line, TuiModel

logger = logging.getLogger(__name__)

LOG_FILE_NAME = "tui.log"


def canonical_key(key: str, character: str | None) -> str:
    """Map a Textual key event onto the names TuiModel understands."""
    if key == "space":
        return "space"
    if character and len(character) == 1 and character.isprintable():
        return character
    if key == "escape":
        return "esc"
    return key


def role_styles(theme: Theme) -> dict[str, str]:
    return {
        HEADER: "bold",
        MUTED: theme.rich(theme.muted),
        TOPIC: theme.rich(theme.accent, bold=True),
        FOCUS: theme.rich(theme.warning, bold=True),
        ACCENT: theme.rich(theme.accent, bold=True),
        ERROR: theme.rich(theme.error, bold=True),
    }


def to_rich(lines: list[Line], styles: dict[str, str]) -> Text:
    text = Text()
    for n, line in enumerate(lines):
        if n:
            text.append("\n")
        start = len(text)
        for chunk, role in line.spans:
            text.append(chunk, style=styles.get(role, ""))
        if line.selected:
            text.stylize("reverse", start, len(text))
    return text


class TadaApp(App[None]):
    CSS = """
    Screen {
        layout: vertical;
    }

    #body {
        height: 1fr;
        padding: 0 1;
    }
    """

    # Claim keys Textual would otherwise use for focus and quitting
    BINDINGS = [
        Binding("ctrl+c", "forward('ctrl+c')", "Quit", show=False, priority=True),
        Binding("tab", "forward('tab')", show=False, priority=True),
        Binding("shift+tab", "forward('shift+tab')", show=False, priority=True),
        Binding("escape", "forward('esc')", show=False, priority=True),
    ]

    def __init__(self, session: TuiModel) -> None:
        super().__init__()
        self.session = session
        self.styles_by_role = role_styles(session.theme)
        self.body: Static

    def compose(self) -> ComposeResult:
        yield Static("", id="body")

    def on_mount(self) -> None:
        self.body = self.query_one("#body", Static)
        self.session.height = self.size.height
        self.session.reload()
        self._refresh_body()

    def on_resize(self, event: events.Resize) -> None:
        self.session.height = event.size.height
        self._refresh_body()

    def on_key(self, event: events.Key) -> None:
        event.stop()
        self._dispatch(canonical_key(event.key, event.character))

    def action_forward(self, key: str) -> None:
        self._dispatch(key)

    def _dispatch(self, key: str) -> None:
        self.session.handle_key(key)
        if self.session.quit_requested:
            self.exit()
            return
        self._refresh_body()

    def _refresh_body(self) -> None:
        if hasattr(self, "body"):
            self.body.update(to_rich(self.session.render_lines(), self.styles_by_role))


def run_tui(store: TaskStore, theme: Theme | None = None) -> None:
    """Run the interactive session until the user quits.

    Logging is redirected to <root>/tui.log for the lifetime of the process
    so records do not draw over the screen.
    """
    store.ensure_directories()
    log_path = Path(store.root) / LOG_FILE_NAME
    logging.basicConfig(
        filename=log_path,
        level=logging.getLogger().level or logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        force=True,
    )
    logger.info("Starting TUI on %s", store.root)
    TadaApp(TuiModel(store, theme=theme or get_theme(None))).run()
