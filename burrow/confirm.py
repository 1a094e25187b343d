"""
Receive-side confirmation of the sender's offer.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Callable, Optional

from .cancel import CancelToken
from .engine import TransferKind, TransferMetadata
from .language import render_message
from .ui import TerminalUI, show_message
from .utils import flush_input_buffer, format_size

logger = logging.getLogger(__name__)

ACCEPT_ANSWERS = {"y", "yes", "是", "shi"}
TEXT_PREVIEW_LIMIT = 200


class Decision(Enum):
    ACCEPT = "accept"
    REJECT = "reject"


def text_preview(text: str, limit: int = TEXT_PREVIEW_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


class ConfirmationGate:
    """
    Show the offer and wait for one accept/reject answer.

    The keystroke read runs on a helper thread while this thread polls the
    cancel token, so an interrupt resolves the gate as a rejection instead of
    leaving it blocked on stdin. ``reason`` records why it rejected.
    """

    def __init__(
        self,
        ui: TerminalUI,
        language: str,
        cancel: CancelToken,
        *,
        auto_accept: bool = False,
        poll_interval: float = 0.1,
        reader: Optional[Callable[[object], str]] = None,
    ) -> None:
        self.ui = ui
        self.language = language
        self.cancel = cancel
        self.auto_accept = auto_accept
        self.poll_interval = poll_interval
        self._reader = reader or ui.input
        self._used = False
        self.decision: Optional[Decision] = None
        self.reason: Optional[str] = None

    def confirm(self, metadata: TransferMetadata) -> Decision:
        if self._used:
            raise RuntimeError("confirmation gate already used")
        self._used = True
        self._show_offer(metadata)
        if self.cancel.is_cancelled:
            return self._decide(Decision.REJECT, "cancelled")
        if self.auto_accept:
            show_message(self.ui, "auto_accepted", self.language)
            return self._decide(Decision.ACCEPT, "auto")
        answer = self._read_answer()
        if answer is None:
            return self._decide(Decision.REJECT, "cancelled")
        if answer.strip().lower() in ACCEPT_ANSWERS:
            return self._decide(Decision.ACCEPT, "user")
        return self._decide(Decision.REJECT, "user")

    def _decide(self, decision: Decision, reason: str) -> Decision:
        logger.debug("confirmation resolved: %s (%s)", decision.value, reason)
        self.decision = decision
        self.reason = reason
        return decision

    def _show_offer(self, metadata: TransferMetadata) -> None:
        size = format_size(metadata.size)
        if metadata.kind is TransferKind.TEXT:
            show_message(self.ui, "offer_text", self.language, size=size)
            preview = text_preview(metadata.text or "")
            for line in preview.splitlines() or [""]:
                show_message(self.ui, "offer_text_preview", self.language, preview=line)
        elif metadata.kind is TransferKind.DIRECTORY:
            show_message(self.ui, "offer_directory", self.language, name=metadata.name, size=size)
        else:
            show_message(self.ui, "offer_file", self.language, name=metadata.name, size=size)

    def _read_answer(self) -> Optional[str]:
        """Return the typed line, "" on EOF, or None if cancellation won the race."""

        result: dict = {}
        done = threading.Event()
        prompt = render_message("prompt_accept", self.language)

        def worker() -> None:
            try:
                result["answer"] = self._reader(prompt)
            except EOFError:
                result["answer"] = ""
            except Exception as exc:  # noqa: BLE001
                logger.debug("reading confirmation failed: %s", exc)
                result["answer"] = ""
            finally:
                done.set()

        flush_input_buffer()
        threading.Thread(target=worker, name="burrow-confirm-input", daemon=True).start()
        while not done.wait(self.poll_interval):
            if self.cancel.is_cancelled:
                self.ui.blank()
                return None
        if self.cancel.is_cancelled:
            return None
        return result.get("answer", "")


__all__ = ["ACCEPT_ANSWERS", "ConfirmationGate", "Decision", "text_preview"]
