"""
Code presentation channels: the terminal line, a QR block, and the clipboard.
"""

from __future__ import annotations

import logging
import threading
from typing import Iterable, List, Optional, Sequence

import pyperclip
import qrcode
from rich.text import Text

from .engine import Role
from .ui import TerminalUI, show_message

logger = logging.getLogger(__name__)


class PresentationChannel:
    """One surface the code is shown on. Subclasses implement ``open`` and ``close``."""

    name = "channel"

    def open(self, code: str) -> None:
        raise NotImplementedError

    def close(self) -> None:
        raise NotImplementedError


class TextChannel(PresentationChannel):
    name = "text"

    def __init__(self, ui: TerminalUI, language: str, role: Role = Role.SEND) -> None:
        self.ui = ui
        self.language = language
        self.role = role

    def open(self, code: str) -> None:
        if self.role is Role.SEND:
            show_message(self.ui, "code_announce", self.language, code=code)
            show_message(self.ui, "code_instructions", self.language, code=code)
            show_message(self.ui, "waiting_peer", self.language)
        else:
            show_message(self.ui, "code_receiving", self.language, code=code)

    def close(self) -> None:
        # Printed lines stay in the scroll-back.
        return None


def render_qr_lines(data: str, *, border: int = 1) -> List[str]:
    """Render ``data`` as QR rows, two modules per character using half blocks."""

    qr = qrcode.QRCode(border=border, error_correction=qrcode.constants.ERROR_CORRECT_L)
    qr.add_data(data)
    qr.make(fit=True)
    matrix = qr.get_matrix()
    lines: List[str] = []
    for top_index in range(0, len(matrix), 2):
        top = matrix[top_index]
        bottom = matrix[top_index + 1] if top_index + 1 < len(matrix) else [False] * len(top)
        row = []
        for upper, lower in zip(top, bottom):
            if upper and lower:
                row.append("█")
            elif upper:
                row.append("▀")
            elif lower:
                row.append("▄")
            else:
                row.append(" ")
        lines.append("".join(row))
    return lines


class QRChannel(PresentationChannel):
    """
    Draw the code as a QR block. On close the block is erased, but only when
    nothing else was printed below it in the meantime.
    """

    name = "qr"

    def __init__(self, ui: TerminalUI, language: str) -> None:
        self.ui = ui
        self.language = language
        self._height = 0
        self._serial: Optional[int] = None

    def open(self, code: str) -> None:
        lines = render_qr_lines(code)
        show_message(self.ui, "code_qr_caption", self.language)
        for line in lines:
            self.ui.print(Text(line))
        self._height = len(lines) + 1
        self._serial = self.ui.output_serial

    def close(self) -> None:
        if self._serial is None:
            return
        if self.ui.output_serial == self._serial:
            self.ui.erase_lines(self._height)
        self._serial = None
        self._height = 0


class ClipboardChannel(PresentationChannel):
    """
    Copy the code to the system clipboard. On close the previous clipboard
    content is put back, unless the user copied something else meanwhile or
    the previous content could not be read.
    """

    name = "clipboard"

    def __init__(self, ui: TerminalUI, language: str) -> None:
        self.ui = ui
        self.language = language
        self._code: Optional[str] = None
        self._previous: Optional[str] = None

    def open(self, code: str) -> None:
        try:
            previous = pyperclip.paste()
        except pyperclip.PyperclipException as exc:
            logger.debug("could not read clipboard before copying: %s", exc)
            previous = None
        pyperclip.copy(code)
        self._previous = previous
        self._code = code
        show_message(self.ui, "clipboard_copied", self.language)

    def close(self) -> None:
        if self._code is None:
            return
        code, previous = self._code, self._previous
        self._code = None
        self._previous = None
        if previous is None or pyperclip.paste() != code:
            return
        pyperclip.copy(previous)


class ActiveChannels:
    """Channels opened for one session. ``dismiss`` closes each of them exactly once."""

    def __init__(self, channels: Sequence[PresentationChannel] = ()) -> None:
        self._channels: List[PresentationChannel] = list(channels)
        self._lock = threading.Lock()
        self._dismissed = False

    @property
    def channels(self) -> List[PresentationChannel]:
        return list(self._channels)

    @property
    def dismissed(self) -> bool:
        return self._dismissed

    def __len__(self) -> int:
        return len(self._channels)

    def dismiss(self) -> bool:
        with self._lock:
            if self._dismissed:
                return False
            self._dismissed = True
        # Reverse order so the most recent output is erased first.
        for channel in reversed(self._channels):
            try:
                channel.close()
            except Exception as exc:  # noqa: BLE001
                logger.warning("failed to close %s channel: %s", channel.name, exc)
        return True


class CodePresenter:
    """Open every configured channel for a code; a failing channel degrades to a warning."""

    def __init__(
        self,
        channels: Iterable[PresentationChannel],
        ui: TerminalUI,
        language: str,
    ) -> None:
        self.channels = list(channels)
        self.ui = ui
        self.language = language

    def present(self, code: str) -> ActiveChannels:
        if not code:
            raise ValueError("code must not be empty")
        opened: List[PresentationChannel] = []
        for channel in self.channels:
            try:
                channel.open(code)
            except Exception as exc:  # noqa: BLE001
                logger.warning("%s channel failed: %s", channel.name, exc)
                show_message(self.ui, "channel_failed", self.language, channel=channel.name, error=exc)
                continue
            opened.append(channel)
        return ActiveChannels(opened)

    def dismiss(self, active: Optional[ActiveChannels]) -> bool:
        if active is None:
            return False
        return active.dismiss()


def channels_from_config(
    ui: TerminalUI,
    language: str,
    *,
    role: Role,
    qr_enabled: bool = False,
    clipboard_enabled: bool = False,
) -> List[PresentationChannel]:
    """Build the channel set; QR and clipboard only make sense for the side that owns the code."""

    channels: List[PresentationChannel] = [TextChannel(ui, language, role)]
    if role is Role.SEND:
        if clipboard_enabled:
            channels.append(ClipboardChannel(ui, language))
        if qr_enabled:
            channels.append(QRChannel(ui, language))
    return channels


__all__ = [
    "ActiveChannels",
    "ClipboardChannel",
    "CodePresenter",
    "PresentationChannel",
    "QRChannel",
    "TextChannel",
    "channels_from_config",
    "render_qr_lines",
]
