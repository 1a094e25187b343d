"""
Transfer engine contract consumed by the session layer.

An engine allocates or redeems codes, negotiates with the peer, and moves the
payload in the background while publishing progress samples on an
``EventStream``. The stream always ends with exactly one ``TransferOutcome``.
"""

from __future__ import annotations

import queue
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Union

if TYPE_CHECKING:  # pragma: no cover
    from .cancel import CancelToken


class RendezvousError(Exception):
    """Raised when a code cannot be allocated, redeemed, or confirmed with the peer."""


class InvalidCodeError(RendezvousError):
    """Raised when a code is malformed."""


class TransferError(Exception):
    """Raised when the data channel fails or the payload does not verify."""


class EngineCancelled(Exception):
    """Raised by engine calls that stopped because the cancel token fired."""


class Role(Enum):
    SEND = "send"
    RECEIVE = "receive"


class TransferKind(Enum):
    FILE = "file"
    TEXT = "text"
    DIRECTORY = "directory"


@dataclass(frozen=True)
class ProgressSample:
    bytes_done: int
    bytes_total: int
    elapsed: float

    @property
    def fraction(self) -> float:
        if self.bytes_total <= 0:
            return 1.0
        return max(0.0, min(1.0, self.bytes_done / self.bytes_total))


@dataclass(frozen=True)
class TransferMetadata:
    """What the sender offers. ``size`` is the number of bytes that will cross the wire."""

    name: str
    size: int
    kind: TransferKind
    text: Optional[str] = None


PeerMetadata = TransferMetadata


@dataclass(frozen=True)
class PayloadDescriptor:
    kind: Optional[TransferKind]
    path: Optional[Path] = None
    text: Optional[str] = None
    destination: Optional[Path] = None

    @classmethod
    def for_file(cls, path: Union[str, Path]) -> "PayloadDescriptor":
        return cls(kind=TransferKind.FILE, path=Path(path))

    @classmethod
    def for_directory(cls, path: Union[str, Path]) -> "PayloadDescriptor":
        return cls(kind=TransferKind.DIRECTORY, path=Path(path))

    @classmethod
    def for_text(cls, text: str) -> "PayloadDescriptor":
        return cls(kind=TransferKind.TEXT, text=text)

    @classmethod
    def for_destination(cls, directory: Union[str, Path]) -> "PayloadDescriptor":
        """Receive-side descriptor: the kind is decided by the sender's offer."""

        return cls(kind=None, destination=Path(directory))


class OutcomeTag(Enum):
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class TransferOutcome:
    tag: OutcomeTag
    reason: Optional[str] = None
    bytes_transferred: int = 0
    saved_path: Optional[Path] = None
    text: Optional[str] = None
    rendezvous: bool = False

    @classmethod
    def success(
        cls,
        bytes_transferred: int = 0,
        *,
        saved_path: Optional[Path] = None,
        text: Optional[str] = None,
    ) -> "TransferOutcome":
        return cls(
            OutcomeTag.SUCCESS,
            bytes_transferred=bytes_transferred,
            saved_path=saved_path,
            text=text,
        )

    @classmethod
    def failed(
        cls, reason: str, *, bytes_transferred: int = 0, rendezvous: bool = False
    ) -> "TransferOutcome":
        return cls(
            OutcomeTag.FAILED,
            reason=reason,
            bytes_transferred=bytes_transferred,
            rendezvous=rendezvous,
        )

    @classmethod
    def cancelled(cls, reason: str = "cancelled", *, bytes_transferred: int = 0) -> "TransferOutcome":
        return cls(OutcomeTag.CANCELLED, reason=reason, bytes_transferred=bytes_transferred)


class EventStream:
    """Single-consumer sequence of progress samples terminated by one outcome.

    The producer calls ``publish`` any number of times and ``finish`` once;
    later ``finish`` calls are ignored and later samples are dropped.
    """

    def __init__(self) -> None:
        self._queue: "queue.Queue[Union[ProgressSample, TransferOutcome]]" = queue.Queue()
        self._lock = threading.Lock()
        self._finished = False
        self._outcome: Optional[TransferOutcome] = None

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def outcome(self) -> Optional[TransferOutcome]:
        return self._outcome

    def publish(self, sample: ProgressSample) -> None:
        with self._lock:
            if self._finished:
                return
            self._queue.put(sample)

    def finish(self, outcome: TransferOutcome) -> bool:
        with self._lock:
            if self._finished:
                return False
            self._finished = True
            self._outcome = outcome
            self._queue.put(outcome)
            return True

    def next_event(
        self, timeout: Optional[float] = None
    ) -> Optional[Union[ProgressSample, TransferOutcome]]:
        """Return the next sample or the outcome, or None if nothing arrived within ``timeout``."""

        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None


class TransferEngine(ABC):
    """Protocol implementation driven by ``SessionController``.

    ``allocate_code`` and ``redeem_code`` block and must return or raise
    ``EngineCancelled`` promptly once ``cancel`` fires. ``start_transfer``
    returns immediately; the work happens in the background.
    """

    @abstractmethod
    def allocate_code(self, cancel: "CancelToken") -> str:
        ...

    @abstractmethod
    def redeem_code(self, code: str, cancel: "CancelToken") -> TransferMetadata:
        ...

    @abstractmethod
    def start_transfer(
        self, role: Role, payload: PayloadDescriptor, cancel: "CancelToken"
    ) -> EventStream:
        ...

    def decline(self) -> None:
        """Tell the sender its offer was refused. Receive role only."""

    def close(self) -> None:
        """Release sockets and background work. Safe to call more than once."""


__all__ = [
    "EngineCancelled",
    "EventStream",
    "InvalidCodeError",
    "OutcomeTag",
    "PayloadDescriptor",
    "PeerMetadata",
    "ProgressSample",
    "RendezvousError",
    "Role",
    "TransferEngine",
    "TransferError",
    "TransferKind",
    "TransferMetadata",
    "TransferOutcome",
]
