"""
Live progress line for a running transfer.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from rich.text import Text

from .engine import EventStream, OutcomeTag, ProgressSample, TransferOutcome
from .language import render_message
from .ui import TerminalUI
from .utils import format_duration, format_rate, format_size

logger = logging.getLogger(__name__)

MIN_PROGRESS_RATE_WINDOW = 0.1
DEFAULT_STALL_AFTER = 5.0


class ProgressReporter:
    """Unifies refresh cadence, rate and ETA formatting for one transfer.

    The newest absolute byte count wins; samples that would move the bar
    backwards are ignored, so the displayed percentage never decreases.
    """

    def __init__(
        self,
        ui: TerminalUI,
        language: str,
        *,
        min_interval: float = 0.1,
        stall_after: float = DEFAULT_STALL_AFTER,
        enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ui = ui
        self._language = language
        self._min_interval = min_interval
        self._stall_after = stall_after
        self._enabled = enabled
        self._clock = clock
        self._lock = threading.Lock()
        self._bytes_done = 0
        self._bytes_total = 0
        self._elapsed = 0.0
        self._samples = 0
        self._last_sample_at: Optional[float] = None
        self._last_render_at: Optional[float] = None
        self._displayed_percent = 0
        self._line_width = 0
        self._finished = False

    @property
    def min_interval(self) -> float:
        return self._min_interval

    @property
    def displayed_percent(self) -> int:
        return self._displayed_percent

    @property
    def bytes_done(self) -> int:
        return self._bytes_done

    @property
    def finished(self) -> bool:
        return self._finished

    def observe(self, sample: ProgressSample) -> int:
        """Fold one sample into the display and return the percentage now shown."""

        with self._lock:
            if self._finished:
                return self._displayed_percent
            self._last_sample_at = self._clock()
            self._samples += 1
            if sample.bytes_done < self._bytes_done:
                logger.debug("ignoring stale progress sample %s < %s", sample.bytes_done, self._bytes_done)
                return self._displayed_percent
            self._bytes_done = sample.bytes_done
            if sample.bytes_total > 0:
                self._bytes_total = sample.bytes_total
            self._elapsed = max(self._elapsed, sample.elapsed)
            self._displayed_percent = max(self._displayed_percent, self._percent())
            self._render_locked(force=False)
            return self._displayed_percent

    def render(self, *, force: bool = False) -> bool:
        with self._lock:
            if self._finished:
                return False
            return self._render_locked(force=force)

    def finish(self, outcome: TransferOutcome) -> bool:
        """Draw the closing frame. Only the first call has any effect."""

        with self._lock:
            if self._finished:
                return False
            self._finished = True
            aborted = outcome.tag is not OutcomeTag.SUCCESS
            if self._samples == 0:
                if aborted and self._enabled:
                    self._paint(render_message("progress_aborted_idle", self._language))
                    self._ui.end_carriage()
                return True
            if not aborted:
                if self._bytes_total > 0:
                    self._bytes_done = self._bytes_total
                self._displayed_percent = 100
            if self._enabled:
                self._draw(aborted=aborted, stalled_for=None)
                self._ui.end_carriage()
            return True

    def attach(self, stream: EventStream) -> "ProgressHandle":
        handle = ProgressHandle(self, stream)
        handle.start()
        return handle

    def _percent(self) -> int:
        if self._bytes_total <= 0:
            return 0
        return max(0, min(100, int(self._bytes_done * 100 / self._bytes_total)))

    def _render_locked(self, *, force: bool) -> bool:
        if self._samples == 0:
            return False
        now = self._clock()
        if not force and self._last_render_at is not None:
            if now - self._last_render_at < self._min_interval:
                return False
        self._last_render_at = now
        if not self._enabled:
            return True
        stalled_for: Optional[float] = None
        if self._last_sample_at is not None and now - self._last_sample_at >= self._stall_after:
            stalled_for = now - self._last_sample_at
        self._draw(aborted=False, stalled_for=stalled_for)
        return True

    def _draw(self, *, aborted: bool, stalled_for: Optional[float]) -> None:
        elapsed = max(self._elapsed, MIN_PROGRESS_RATE_WINDOW)
        rate = self._bytes_done / elapsed if self._bytes_done else 0.0
        remaining = max(0, self._bytes_total - self._bytes_done)
        if remaining == 0:
            eta = format_duration(0)
        elif rate > 0:
            eta = format_duration(remaining / rate)
        else:
            eta = "--"
        message = render_message(
            "progress_line",
            self._language,
            percent=self._displayed_percent,
            transferred=format_size(self._bytes_done),
            total=format_size(self._bytes_total),
            rate=format_rate(rate),
            eta=eta,
        )
        if stalled_for is not None:
            message.append_text(
                render_message(
                    "progress_stalled",
                    self._language,
                    tone="warning",
                    elapsed=format_duration(stalled_for),
                )
            )
        if aborted:
            message.append_text(render_message("progress_aborted", self._language, tone="error"))
        self._paint(message)

    def _paint(self, message: Text) -> None:
        if len(message.plain) > self._line_width:
            self._line_width = len(message.plain)
        padding = " " * max(0, self._line_width - len(message.plain))
        self._ui.carriage(message, padding)


class ProgressHandle:
    """Background consumer of an ``EventStream`` feeding a ``ProgressReporter``."""

    def __init__(self, reporter: ProgressReporter, stream: EventStream) -> None:
        self._reporter = reporter
        self._stream = stream
        self._done = threading.Event()
        self._stop = threading.Event()
        self._outcome: Optional[TransferOutcome] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def outcome(self) -> Optional[TransferOutcome]:
        return self._outcome

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def start(self) -> None:
        self._thread = threading.Thread(target=self._consume, name="burrow-progress", daemon=True)
        self._thread.start()

    def wait(self, timeout: Optional[float] = None) -> Optional[TransferOutcome]:
        """Return the stream's outcome, or None if it has not arrived within ``timeout``."""

        self._done.wait(timeout)
        return self._outcome

    def abandon(self, outcome: TransferOutcome) -> None:
        """Stop consuming and close the display with ``outcome``, whatever the engine does later."""

        self._stop.set()
        self._reporter.finish(outcome)
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=1.0)

    def _consume(self) -> None:
        interval = max(self._reporter.min_interval, 0.05)
        while not self._stop.is_set():
            event = self._stream.next_event(timeout=interval)
            if event is None:
                self._reporter.render()
                continue
            if isinstance(event, TransferOutcome):
                self._reporter.finish(event)
                self._outcome = event
                self._done.set()
                return
            self._reporter.observe(event)


__all__ = ["DEFAULT_STALL_AFTER", "ProgressHandle", "ProgressReporter"]
