"""
UI helpers shared by the burrow CLI.
"""

from __future__ import annotations

import threading
from typing import Optional

from rich.console import Console, RenderableType
from rich.text import Text

from .language import render_message


class TerminalUI:
    """Thin wrapper around rich.Console to standardize CLI I/O.

    The lock is re-entrant because the interrupt handler runs on the main
    thread and may print while that thread is already inside a write.
    """

    def __init__(self, console: Optional[Console] = None) -> None:
        self._console = console or Console(markup=False, highlight=False, soft_wrap=True)
        self._lock = threading.RLock()
        self._last_carriage_width = 0
        self._serial = 0

    @property
    def is_terminal(self) -> bool:
        return bool(getattr(self._console, "is_terminal", False))

    @property
    def output_serial(self) -> int:
        """Counter bumped by every write; lets callers tell whether they were the last writer."""

        return self._serial

    def print(self, message: RenderableType = "", *, end: str = "\n") -> None:
        with self._lock:
            if self._last_carriage_width:
                self._write_raw("\n")
            self._console.print(
                message,
                end=end,
                soft_wrap=True,
            )
            try:
                self._console.file.flush()
            except Exception:  # noqa: BLE001
                pass
            self._last_carriage_width = 0
            self._serial += 1

    def input(self, prompt: RenderableType) -> str:
        self.flush()
        with self._lock:
            self._serial += 1
        return self._console.input(prompt)

    def carriage(self, message: RenderableType, padding: str = "") -> None:
        """Rewrite the current terminal line in place."""

        with self._lock:
            with self._console.capture() as capture:
                self._console.print(message, end="", soft_wrap=True)
            rendered = capture.get()
            visible_width = Text.from_ansi(rendered).cell_len
            padding_text = padding
            padding_width = len(padding_text)
            residual = self._last_carriage_width - (visible_width + padding_width)
            if residual > 0:
                padding_text += " " * residual
                padding_width += residual
            self._write_raw("\r" + rendered + padding_text)
            self._last_carriage_width = max(1, visible_width + padding_width)
            self._serial += 1

    def end_carriage(self) -> None:
        """Terminate a carriage line so later output starts on a fresh line."""

        with self._lock:
            if self._last_carriage_width:
                self._write_raw("\n")
                self._last_carriage_width = 0
                self._serial += 1

    def erase_lines(self, count: int) -> None:
        """Move the cursor up ``count`` lines and clear everything below it."""

        if count <= 0 or not self.is_terminal:
            return
        with self._lock:
            self._write_raw(f"\x1b[{count}F\x1b[J")
            self._last_carriage_width = 0
            self._serial += 1

    def blank(self) -> None:
        self.print()

    def flush(self) -> None:
        with self._lock:
            try:
                self._console.file.flush()
            except Exception:  # noqa: BLE001
                pass
            self._last_carriage_width = 0

    def _write_raw(self, data: str) -> None:
        try:
            self._console.file.write(data)
            self._console.file.flush()
        except Exception:  # noqa: BLE001
            pass


def show_message(
    ui: TerminalUI,
    key: str,
    language: str,
    *,
    tone: Optional[str] = None,
    **kwargs: object,
) -> None:
    """Helper to print a localized message with consistent styling."""

    ui.print(render_message(key, language, tone=tone, **kwargs))


__all__ = ["TerminalUI", "show_message"]
