"""Level-gated, spinner-capable console logging built on Rich.

There is no module-level logger.  The CLI constructs one :class:`Logger`,
calls :meth:`Logger.set_level` once at start-up, and hands the instance to
every core component.  Components constructed without one get a fresh
default ``Logger()``.
"""

from __future__ import annotations

import contextlib
from collections.abc import Iterator

from rich.console import Console
from rich.markup import escape

from .errors import ValidationError

LEVELS: dict[str, int] = {
    "debug": 10,
    "info": 20,
    "success": 25,
    "warning": 30,
    "error": 40,
    "silent": 100,
}

_STYLES: dict[str, tuple[str, str]] = {
    "debug": ("dim", "·"),
    "info": ("blue", "ℹ"),
    "success": ("green", "✓"),
    "warning": ("yellow", "⚠"),
    "error": ("red", "✗"),
}


class Logger:
    """Console logger with a process-wide level set explicitly by the caller."""

    def __init__(self, console: Console | None = None, level: str = "info") -> None:
        self.console = console or Console()
        self._level = LEVELS["info"]
        self.set_level(level)

    @property
    def level(self) -> str:
        for name, value in LEVELS.items():
            if value == self._level:
                return name
        return "info"

    def set_level(self, level: str) -> None:
        """Set the minimum level that is printed.

        Raises:
            ValidationError: If *level* is not one of :data:`LEVELS`.
        """
        key = level.lower()
        if key not in LEVELS:
            raise ValidationError(
                f"Unknown log level: {level!r}",
                {"level": level, "supported": list(LEVELS)},
            )
        self._level = LEVELS[key]

    def is_enabled(self, level: str) -> bool:
        return LEVELS[level] >= self._level

    def _emit(self, level: str, message: str) -> None:
        if not self.is_enabled(level):
            return
        style, glyph = _STYLES[level]
        self.console.print(f"[{style}]{glyph}[/{style}] {escape(message)}", soft_wrap=True)

    def debug(self, message: str) -> None:
        self._emit("debug", message)

    def info(self, message: str) -> None:
        self._emit("info", message)

    def success(self, message: str) -> None:
        self._emit("success", message)

    def warning(self, message: str) -> None:
        self._emit("warning", message)

    def error(self, message: str) -> None:
        self._emit("error", message)

    @contextlib.contextmanager
    def spinner(self, message: str) -> Iterator[None]:
        """Show a spinner while the body runs.

        Nothing is drawn when ``info`` is filtered out or the console is not
        a terminal.
        """
        if not self.is_enabled("info") or not self.console.is_terminal:
            yield
            return
        with self.console.status(f"[bold cyan]{escape(message)}[/bold cyan]"):
            yield
