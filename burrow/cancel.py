"""
Cooperative cancellation: a shared one-shot token and the signal listener
that sets it.
"""

from __future__ import annotations

import logging
import os
import signal
import threading
from typing import Callable, Dict, Iterable, Optional

from .ui import TerminalUI, show_message

logger = logging.getLogger(__name__)

FORCED_EXIT_STATUS = 130


class CancelToken:
    """One-shot cancellation flag. Once set it stays set; setting it again is a no-op."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled") -> bool:
        """Signal the token. Returns True only for the call that actually set it."""

        with self._lock:
            if self._event.is_set():
                return False
            self._reason = reason
            self._event.set()
        logger.debug("cancel token set: %s", reason)
        return True

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._event.wait(timeout)


class CancellationMonitor:
    """
    Turn interrupt signals into cancellation of a shared token.

    The first interrupt sets the token and prints a notice; a second one
    before ``stop`` terminates the process immediately through ``force_exit``.
    """

    def __init__(
        self,
        token: Optional[CancelToken] = None,
        *,
        ui: Optional[TerminalUI] = None,
        language: str = "en",
        signals: Iterable[int] = (signal.SIGINT, signal.SIGTERM),
        force_exit: Callable[[int], object] = os._exit,
    ) -> None:
        self.token = token or CancelToken()
        self.ui = ui
        self.language = language
        self._signals = tuple(signals)
        self._force_exit = force_exit
        self._previous: Dict[int, object] = {}
        self._interrupts = 0
        self._lock = threading.Lock()
        self._installed = False

    @property
    def interrupts(self) -> int:
        return self._interrupts

    def start(self) -> CancelToken:
        if self._installed:
            return self.token
        if threading.current_thread() is threading.main_thread():
            for signum in self._signals:
                try:
                    self._previous[signum] = signal.getsignal(signum)
                    signal.signal(signum, self._handle_signal)
                except (OSError, ValueError) as exc:
                    logger.debug("could not install handler for signal %s: %s", signum, exc)
        else:
            logger.debug("not on the main thread; interrupts will not be observed")
        self._installed = True
        return self.token

    def stop(self) -> None:
        if not self._installed:
            return
        for signum, previous in self._previous.items():
            try:
                signal.signal(signum, previous)
            except (OSError, ValueError, TypeError) as exc:
                logger.debug("could not restore handler for signal %s: %s", signum, exc)
        self._previous.clear()
        self._installed = False

    def interrupt(self) -> None:
        """Record one interrupt. Also callable directly, without a real signal."""

        with self._lock:
            self._interrupts += 1
            count = self._interrupts
        if count == 1:
            self.token.cancel("interrupted")
            if self.ui is not None:
                show_message(self.ui, "cancel_requested", self.language)
            return
        logger.warning("second interrupt received, exiting without cleanup")
        if self.ui is not None:
            show_message(self.ui, "cancel_forced", self.language)
        self._force_exit(FORCED_EXIT_STATUS)

    def _handle_signal(self, signum, frame) -> None:  # noqa: ARG002 - signal handler signature
        logger.debug("received signal %s", signum)
        self.interrupt()

    def __enter__(self) -> CancelToken:
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()


__all__ = ["CancelToken", "CancellationMonitor", "FORCED_EXIT_STATUS"]
