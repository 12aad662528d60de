"""Color palettes for the CLI printer and the TUI.

A Theme is chosen once from the `theme` config key and passed to whatever
renders; nothing here is mutated at runtime.

- Colors are xterm 16-color indices so the same palette drives raw ANSI
  (CLI) and Rich styles (TUI).
- ANSI output is disabled when the stream is not a TTY unless FORCE_COLOR is
  set, and always disabled by NO_COLOR.
"""

from __future__ import annotations

import logging
import os
import re
import sys
from dataclasses import dataclass
from typing import TextIO

logger = logging.getLogger(__name__)

_ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")


@dataclass(frozen=True)
class Theme:
    name: str
    accent: int
    muted: int
    warning: int
    success: int = 10
    error: int = 9
    popup_background: int = 0

    def rich(self, color: int, *, bold: bool = False, reverse: bool = False) -> str:
        """Rich style string for one of this palette's colors."""
        parts = ["bold"] if bold else []
        if reverse:
            parts.append("reverse")
        parts.append(f"color({color})")
        return " ".join(parts)


THEMES: dict[str, Theme] = {
    "default": Theme(name="default", accent=12, muted=8, warning=11),
    "dark": Theme(name="dark", accent=4, muted=8, warning=11),
    "light": Theme(name="light", accent=12, muted=7, warning=11),
}


def get_theme(name: str | None) -> Theme:
    if not name:
        return THEMES["default"]
    theme = THEMES.get(name)
    if theme is None:
        logger.debug("Unknown theme '%s', using default", name)
        return THEMES["default"]
    return theme


def color_enabled(stream: TextIO | None = None) -> bool:
    """Whether ANSI escapes should be written to stream."""
    if os.environ.get("NO_COLOR") is not None:
        return False
    if os.environ.get("FORCE_COLOR", "").lower() in {"1", "true", "yes", "on"}:
        return True
    stream = stream or sys.stdout
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


def visible_len(text: str) -> int:
    """Length of text with ANSI escapes removed."""
    return len(_ANSI_RE.sub("", text))


def _ansi_fg(color: int) -> str:
    return f"\033[{30 + color}m" if color < 8 else f"\033[{90 + color - 8}m"


class Painter:
    """Wraps text in ANSI codes for a theme, or passes it through when disabled."""

    def __init__(self, theme: Theme, enabled: bool):
        self.theme = theme
        self.enabled = enabled

    def paint(self, text: str, color: int, *, bold: bool = False) -> str:
        if not self.enabled:
            return text
        prefix = ("\033[1m" if bold else "") + _ansi_fg(color)
        return f"{prefix}{text}\033[0m"

    def bold(self, text: str) -> str:
        return f"\033[1m{text}\033[0m" if self.enabled else text

    def accent(self, text: str, *, bold: bool = False) -> str:
        return self.paint(text, self.theme.accent, bold=bold)

    def muted(self, text: str) -> str:
        return self.paint(text, self.theme.muted)

    def success(self, text: str) -> str:
        return self.paint(text, self.theme.success, bold=True)

    def error(self, text: str) -> str:
        return self.paint(text, self.theme.error, bold=True)

    def warning(self, text: str) -> str:
        return self.paint(text, self.theme.warning)
