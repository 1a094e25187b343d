"""
Formatting and terminal helpers for burrow.
"""

from __future__ import annotations

import os

SIZE_SUFFIXES = ["B", "KB", "MB", "GB", "TB", "PB"]


def format_size(num_bytes: int) -> str:
    """
    Convert a byte count into a human-friendly string, e.g. 1.25 MB.
    """

    value = float(max(0, num_bytes))
    for suffix in SIZE_SUFFIXES:
        if value < 1024.0 or suffix == SIZE_SUFFIXES[-1]:
            if suffix == "B":
                return f"{int(value)} {suffix}"
            return f"{value:.2f} {suffix}"
        value /= 1024.0
    return f"{value:.2f} {SIZE_SUFFIXES[-1]}"


def format_rate(num_bytes_per_second: float) -> str:
    """
    Convert a transfer rate (bytes per second) into a readable string, e.g. 2.4 MB.

    The caller appends the "/s" unit so the value can be localized.
    """

    if num_bytes_per_second <= 0:
        return "0 B"
    return format_size(int(num_bytes_per_second))


def format_duration(seconds: float) -> str:
    """Render a duration as ``42s``, ``3m05s`` or ``1h02m``."""

    total = int(max(0.0, seconds))
    if total < 60:
        return f"{total}s"
    minutes, secs = divmod(total, 60)
    if minutes < 60:
        return f"{minutes}m{secs:02d}s"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h{minutes:02d}m"


def flush_input_buffer() -> None:
    """
    Best-effort attempt to clear any pending user input so buffered keystrokes
    do not leak into the next prompt.
    """

    try:
        if os.name == "nt":
            import msvcrt

            while msvcrt.kbhit():
                msvcrt.getwch()
        else:
            import sys
            import termios

            termios.tcflush(sys.stdin, termios.TCIFLUSH)
    except Exception:  # noqa: BLE001
        pass
