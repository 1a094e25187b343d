"""
Session orchestration: one send or receive from code handling to the final
status line.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, FrozenSet, List, Optional, TypeVar

from .cancel import CancelToken
from .config import DEFAULT_CANCEL_GRACE
from .confirm import ConfirmationGate, Decision
from .engine import (
    EngineCancelled,
    OutcomeTag,
    PayloadDescriptor,
    RendezvousError,
    Role,
    TransferEngine,
    TransferError,
    TransferKind,
    TransferMetadata,
    TransferOutcome,
)
from .presenter import ActiveChannels, CodePresenter, channels_from_config
from .progress import ProgressHandle, ProgressReporter
from .ui import TerminalUI, show_message
from .utils import format_duration, format_size

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SessionState(Enum):
    INIT = "init"
    CODE_ALLOCATION = "code_allocation"
    CODE_ALLOCATED = "code_allocated"
    CONFIRMATION = "confirmation"
    TRANSFERRING = "transferring"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES: FrozenSet[SessionState] = frozenset(
    {SessionState.COMPLETED, SessionState.FAILED, SessionState.CANCELLED}
)

ALLOWED_TRANSITIONS: Dict[SessionState, FrozenSet[SessionState]] = {
    SessionState.INIT: frozenset(
        {SessionState.CODE_ALLOCATION, SessionState.FAILED, SessionState.CANCELLED}
    ),
    SessionState.CODE_ALLOCATION: frozenset(
        {SessionState.CODE_ALLOCATED, SessionState.FAILED, SessionState.CANCELLED}
    ),
    SessionState.CODE_ALLOCATED: frozenset(
        {
            SessionState.CONFIRMATION,
            SessionState.TRANSFERRING,
            SessionState.FAILED,
            SessionState.CANCELLED,
        }
    ),
    SessionState.CONFIRMATION: frozenset(
        {SessionState.TRANSFERRING, SessionState.FAILED, SessionState.CANCELLED}
    ),
    SessionState.TRANSFERRING: frozenset(
        {SessionState.COMPLETED, SessionState.FAILED, SessionState.CANCELLED}
    ),
    SessionState.COMPLETED: frozenset(),
    SessionState.FAILED: frozenset(),
    SessionState.CANCELLED: frozenset(),
}


class ErrorKind(Enum):
    RENDEZVOUS = "rendezvous"
    TRANSFER = "transfer"
    USER_REJECTED = "user_rejected"
    CANCELLED = "cancelled"


class InvalidTransition(RuntimeError):
    """Raised when the session is asked to move along an edge the state machine lacks."""


@dataclass
class Session:
    role: Role
    kind: Optional[TransferKind] = None
    code: Optional[str] = None
    state: SessionState = SessionState.INIT
    history: List[SessionState] = field(default_factory=lambda: [SessionState.INIT])

    def advance(self, target: SessionState) -> None:
        if target not in ALLOWED_TRANSITIONS[self.state]:
            raise InvalidTransition(f"{self.state.value} -> {target.value}")
        if target is SessionState.CONFIRMATION and self.role is not Role.RECEIVE:
            raise InvalidTransition("only receiving sessions confirm offers")
        logger.debug("session %s: %s -> %s", self.role.value, self.state.value, target.value)
        self.state = target
        self.history.append(target)


@dataclass(frozen=True)
class SessionConfig:
    """Per-session knobs, resolved by the CLI from saved settings and flags."""

    qr_enabled: bool = False
    clipboard_enabled: bool = False
    auto_accept: bool = False
    cancel_grace_period: float = DEFAULT_CANCEL_GRACE
    poll_interval: float = 0.1


@dataclass(frozen=True)
class SessionResult:
    state: SessionState
    role: Role
    error_kind: Optional[ErrorKind] = None
    reason: Optional[str] = None
    bytes_transferred: int = 0
    elapsed: float = 0.0
    code: Optional[str] = None
    metadata: Optional[TransferMetadata] = None
    saved_path: Optional[Path] = None
    text: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.state is SessionState.COMPLETED


class SessionController:
    """
    Drive one session through the state machine.

    This is the only place that decides the terminal state and prints the
    final line. Presentation channels are dismissed and the engine closed on
    every path out of ``run``.
    """

    def __init__(
        self,
        engine: TransferEngine,
        ui: TerminalUI,
        language: str,
        config: SessionConfig,
        cancel: CancelToken,
        *,
        presenter: Optional[CodePresenter] = None,
        reporter: Optional[ProgressReporter] = None,
        gate: Optional[ConfirmationGate] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.engine = engine
        self.ui = ui
        self.language = language
        self.config = config
        self.cancel = cancel
        self.presenter = presenter
        self.reporter = reporter or ProgressReporter(ui, language)
        self.gate = gate or ConfirmationGate(
            ui,
            language,
            cancel,
            auto_accept=config.auto_accept,
            poll_interval=config.poll_interval,
        )
        self._clock = clock
        self.session: Optional[Session] = None
        self._used = False

    def run(self, role: Role, payload: PayloadDescriptor, code: Optional[str] = None) -> SessionResult:
        if self._used:
            raise RuntimeError("a session controller runs exactly one session")
        self._used = True
        if role is Role.RECEIVE and not code:
            raise ValueError("receiving requires a code")

        session = Session(role=role, kind=payload.kind)
        self.session = session
        presenter = self.presenter or CodePresenter(
            channels_from_config(
                self.ui,
                self.language,
                role=role,
                qr_enabled=self.config.qr_enabled,
                clipboard_enabled=self.config.clipboard_enabled,
            ),
            self.ui,
            self.language,
        )
        started = self._clock()
        active: Optional[ActiveChannels] = None
        try:
            result, active = self._drive(session, presenter, payload, code, started)
        finally:
            presenter.dismiss(active)
            try:
                self.engine.close()
            except Exception as exc:  # noqa: BLE001
                logger.warning("engine close failed: %s", exc)
        self._report(result)
        return result

    # State machine -----------------------------------------------------

    def _drive(
        self,
        session: Session,
        presenter: CodePresenter,
        payload: PayloadDescriptor,
        code: Optional[str],
        started: float,
    ):
        active: Optional[ActiveChannels] = None
        metadata: Optional[TransferMetadata] = None

        def finish(state: SessionState, **kwargs) -> SessionResult:
            session.advance(state)
            return SessionResult(
                state=state,
                role=session.role,
                elapsed=self._clock() - started,
                code=session.code,
                metadata=metadata,
                **kwargs,
            )

        def cancelled() -> SessionResult:
            return finish(
                SessionState.CANCELLED,
                error_kind=ErrorKind.CANCELLED,
                reason=self.cancel.reason or "cancelled",
            )

        if self.cancel.is_cancelled:
            return cancelled(), active

        session.advance(SessionState.CODE_ALLOCATION)
        try:
            if session.role is Role.SEND:
                allocated = self._call_cancellable(lambda: self.engine.allocate_code(self.cancel))
            else:
                assert code is not None
                allocated = code.strip()
                show_message(self.ui, "connecting", self.language)
                metadata = self._call_cancellable(lambda: self.engine.redeem_code(allocated, self.cancel))
        except EngineCancelled:
            return cancelled(), active
        except (RendezvousError, OSError) as exc:
            if self.cancel.is_cancelled:
                return cancelled(), active
            logger.info("rendezvous failed: %s", exc)
            return finish(SessionState.FAILED, error_kind=ErrorKind.RENDEZVOUS, reason=str(exc)), active
        if self.cancel.is_cancelled:
            return cancelled(), active

        session.code = allocated
        session.advance(SessionState.CODE_ALLOCATED)
        active = presenter.present(allocated)

        if session.role is Role.RECEIVE:
            assert metadata is not None
            session.advance(SessionState.CONFIRMATION)
            session.kind = metadata.kind
            decision = self.gate.confirm(metadata)
            if decision is Decision.REJECT or self.cancel.is_cancelled:
                self.engine.decline()
                if self.gate.reason == "cancelled" or self.cancel.is_cancelled:
                    return cancelled(), active
                return (
                    finish(
                        SessionState.CANCELLED,
                        error_kind=ErrorKind.USER_REJECTED,
                        reason="rejected",
                    ),
                    active,
                )

        if self.cancel.is_cancelled:
            return cancelled(), active

        session.advance(SessionState.TRANSFERRING)
        try:
            stream = self.engine.start_transfer(session.role, payload, self.cancel)
        except (TransferError, OSError, ValueError) as exc:
            return finish(SessionState.FAILED, error_kind=ErrorKind.TRANSFER, reason=str(exc)), active
        handle = self.reporter.attach(stream)
        outcome = self._await_outcome(handle)

        if self.cancel.is_cancelled or outcome.tag is OutcomeTag.CANCELLED:
            return (
                finish(
                    SessionState.CANCELLED,
                    error_kind=ErrorKind.CANCELLED,
                    reason=self.cancel.reason or outcome.reason or "cancelled",
                    bytes_transferred=outcome.bytes_transferred,
                ),
                active,
            )
        if outcome.tag is OutcomeTag.FAILED:
            kind = ErrorKind.RENDEZVOUS if outcome.rendezvous else ErrorKind.TRANSFER
            return (
                finish(
                    SessionState.FAILED,
                    error_kind=kind,
                    reason=outcome.reason or "unknown error",
                    bytes_transferred=outcome.bytes_transferred,
                ),
                active,
            )
        return (
            finish(
                SessionState.COMPLETED,
                bytes_transferred=outcome.bytes_transferred,
                saved_path=outcome.saved_path,
                text=outcome.text,
            ),
            active,
        )

    def _await_outcome(self, handle: ProgressHandle) -> TransferOutcome:
        """Wait for the stream's outcome; after cancellation wait at most the grace period."""

        while True:
            outcome = handle.wait(self.config.poll_interval)
            if outcome is not None:
                return outcome
            if self.cancel.is_cancelled:
                break
        grace = max(0.0, self.config.cancel_grace_period)
        outcome = handle.wait(grace)
        if outcome is not None:
            return outcome
        logger.warning("transfer engine did not stop within %.1fs, giving up on it", grace)
        forced = TransferOutcome.cancelled("engine did not acknowledge cancellation")
        handle.abandon(forced)
        return forced

    def _call_cancellable(self, func: Callable[[], T]) -> T:
        """Run a blocking engine call on a helper thread so the cancel token can interrupt it."""

        box: dict = {}
        done = threading.Event()

        def worker() -> None:
            try:
                box["result"] = func()
            except Exception as exc:  # noqa: BLE001
                box["error"] = exc
            finally:
                done.set()

        threading.Thread(target=worker, name="burrow-engine-call", daemon=True).start()
        while not done.wait(self.config.poll_interval):
            if self.cancel.is_cancelled:
                if not done.wait(max(0.0, self.config.cancel_grace_period)):
                    logger.warning("engine call ignored cancellation, abandoning it")
                    raise EngineCancelled()
                break
        if "error" in box:
            raise box["error"]
        return box["result"]

    # Reporting ---------------------------------------------------------

    def _report(self, result: SessionResult) -> None:
        if result.state is SessionState.COMPLETED:
            size = format_size(result.bytes_transferred)
            elapsed = format_duration(result.elapsed)
            if result.role is Role.SEND:
                show_message(self.ui, "send_complete", self.language, size=size, elapsed=elapsed)
            elif result.text is not None:
                show_message(self.ui, "receive_complete_text", self.language, text=result.text)
            else:
                name = result.metadata.name if result.metadata else ""
                show_message(
                    self.ui,
                    "receive_complete_file",
                    self.language,
                    name=name,
                    size=size,
                    elapsed=elapsed,
                    path=result.saved_path,
                )
        elif result.state is SessionState.FAILED:
            key = (
                "session_failed_rendezvous"
                if result.error_kind is ErrorKind.RENDEZVOUS
                else "session_failed_transfer"
            )
            show_message(self.ui, key, self.language, reason=result.reason)
        elif result.error_kind is ErrorKind.USER_REJECTED:
            show_message(self.ui, "session_rejected", self.language)
        else:
            show_message(self.ui, "session_cancelled", self.language)


__all__ = [
    "ALLOWED_TRANSITIONS",
    "ErrorKind",
    "InvalidTransition",
    "Session",
    "SessionConfig",
    "SessionController",
    "SessionResult",
    "SessionState",
    "TERMINAL_STATES",
]
