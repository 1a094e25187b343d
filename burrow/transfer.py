"""
LAN transfer engine for burrow.

The sender listens on TCP and announces its nameplate over UDP; the receiver
finds it, runs a SPAKE2 exchange keyed by the full code, confirms the
key, reads the offer, and pulls the payload as a raw encrypted stream.
"""

from __future__ import annotations

import contextlib
import hashlib
import json
import logging
import os
import secrets
import shutil
import socket
import struct
import tempfile
import threading
import time
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from . import __version__
from .cancel import CancelToken
from .discovery import DISCOVERY_PORT, NameplateBeacon, locate_sender
from .engine import (
    EngineCancelled,
    EventStream,
    InvalidCodeError,
    OutcomeTag,
    PayloadDescriptor,
    ProgressSample,
    RendezvousError,
    Role,
    TransferEngine,
    TransferError,
    TransferKind,
    TransferMetadata,
    TransferOutcome,
)
from .security import (
    RECEIVER_LABEL,
    SENDER_LABEL,
    CodeExchange,
    StreamCipher,
    compute_file_sha256,
    confirmation_tag,
    decode_bytes,
    derive_direction_key,
    encode_bytes,
    random_nonce,
    verify_confirmation,
)
from .wordlist import default_wordlist, format_code, parse_code

logger = logging.getLogger(__name__)

BUFFER_SIZE = 512 * 1024
PROTOCOL_VERSION = 2
DEFAULT_TRANSFER_PORT = 45856
DEFAULT_RENDEZVOUS_TIMEOUT = 60.0
MAX_NAMEPLATE = 999
MAX_MESSAGE_SIZE = 16 * 1024 * 1024
POLL_INTERVAL = 0.2
CONNECT_TIMEOUT = 10.0
HANDSHAKE_TIMEOUT = 10.0
ARCHIVE_FORMAT = "zip-store"

_LENGTH = struct.Struct(">I")


class _StrayConnection(Exception):
    """A connection dropped before the sender revealed anything keyed by the code."""


class SecureChannel:
    """Length-prefixed JSON messages plus a raw byte stream over one TCP socket.

    Messages are plaintext until ``enable_encryption`` is called; from then on
    every byte written or read passes through the direction's ChaCha20 stream.
    Every blocking read polls ``cancel`` so a stalled peer never pins the caller.
    """

    def __init__(self, sock: socket.socket) -> None:
        self._sock = sock
        self._send_lock = threading.Lock()
        self._send_cipher: Optional[StreamCipher] = None
        self._recv_cipher: Optional[StreamCipher] = None
        self._closed = False
        try:
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        except OSError:
            pass
        sock.settimeout(POLL_INTERVAL)

    @property
    def encrypted(self) -> bool:
        return self._send_cipher is not None

    @property
    def closed(self) -> bool:
        return self._closed

    def enable_encryption(self, send_key: bytes, recv_key: bytes, nonce: bytes) -> None:
        self._send_cipher = StreamCipher(send_key, nonce)
        self._recv_cipher = StreamCipher(recv_key, nonce)

    def send_message(self, message: dict) -> None:
        body = json.dumps(message, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
        if len(body) > MAX_MESSAGE_SIZE:
            raise TransferError("control message too large")
        with self._send_lock:
            if self._send_cipher is not None:
                body = self._send_cipher.process(body)
            self._sendall(_LENGTH.pack(len(body)) + body)

    def recv_message(self, cancel: Optional[CancelToken] = None, timeout: Optional[float] = None) -> dict:
        """Read one control message; ``timeout`` bounds the whole read in seconds."""

        deadline = None if timeout is None else time.monotonic() + timeout
        (length,) = _LENGTH.unpack(self._read_exact(_LENGTH.size, cancel, deadline))
        if length > MAX_MESSAGE_SIZE:
            raise TransferError("control message too large")
        body = self._read_exact(length, cancel, deadline)
        if self._recv_cipher is not None:
            body = self._recv_cipher.process(body)
        try:
            message = json.loads(body.decode("utf-8"))
        except (ValueError, UnicodeDecodeError) as exc:
            raise TransferError("malformed control message") from exc
        if not isinstance(message, dict):
            raise TransferError("malformed control message")
        return message

    def send_data(self, data: bytes) -> None:
        with self._send_lock:
            if self._send_cipher is not None:
                data = self._send_cipher.process(data)
            self._sendall(data)

    def recv_data(self, size: int, cancel: Optional[CancelToken] = None) -> bytes:
        data = self._read_exact(size, cancel)
        if self._recv_cipher is not None:
            data = self._recv_cipher.process(data)
        return data

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        with contextlib.suppress(OSError):
            self._sock.shutdown(socket.SHUT_RDWR)
        with contextlib.suppress(OSError):
            self._sock.close()

    def _sendall(self, data: bytes) -> None:
        view = memoryview(data)
        while view:
            try:
                sent = self._sock.send(view)
            except (socket.timeout, TimeoutError):
                continue
            except OSError as exc:
                raise ConnectionError("peer disconnected") from exc
            view = view[sent:]

    def _read_exact(self, size: int, cancel: Optional[CancelToken], deadline: Optional[float] = None) -> bytes:
        buffer = bytearray()
        while len(buffer) < size:
            if cancel is not None and cancel.is_cancelled:
                raise EngineCancelled()
            if deadline is not None and time.monotonic() >= deadline:
                raise TimeoutError("peer did not answer in time")
            try:
                chunk = self._sock.recv(min(BUFFER_SIZE, size - len(buffer)))
            except (socket.timeout, TimeoutError):
                continue
            except OSError as exc:
                raise ConnectionError("peer disconnected") from exc
            if not chunk:
                raise ConnectionError("peer disconnected")
            buffer.extend(chunk)
        return bytes(buffer)


@dataclass
class PreparedPayload:
    """Sender-side payload ready to be offered."""

    kind: TransferKind
    name: str
    size: int
    sha256: str
    path: Optional[Path] = None
    text: Optional[str] = None
    original_size: Optional[int] = None
    cleanup_path: Optional[Path] = None

    def offer_message(self) -> dict:
        message = {
            "type": "offer",
            "kind": self.kind.value,
            "name": self.name,
            "size": self.size,
            "sha256": self.sha256,
        }
        if self.kind is TransferKind.TEXT:
            message["text"] = self.text
        if self.kind is TransferKind.DIRECTORY:
            message["archive"] = ARCHIVE_FORMAT
            if self.original_size is not None:
                message["original_size"] = self.original_size
        return message

    def discard(self) -> None:
        if self.cleanup_path:
            with contextlib.suppress(OSError):
                self.cleanup_path.unlink()
            self.cleanup_path = None


@dataclass(frozen=True)
class ReceivedOffer:
    metadata: TransferMetadata
    sha256: str


def prepare_payload(payload: PayloadDescriptor) -> PreparedPayload:
    """Validate a send-side descriptor and compute what goes into the offer."""

    if payload.kind is TransferKind.TEXT:
        text = payload.text or ""
        encoded = text.encode("utf-8")
        return PreparedPayload(
            kind=TransferKind.TEXT,
            name="text",
            size=len(encoded),
            sha256=hashlib.sha256(encoded).hexdigest(),
            text=text,
        )
    if payload.path is None:
        raise ValueError("payload has no path")
    path = Path(payload.path)
    if not path.exists():
        raise FileNotFoundError(f"path does not exist: {path}")
    if path.is_dir():
        if payload.kind is TransferKind.FILE:
            raise ValueError(f"{path} is a directory")
        archive, original_size = create_zip_from_directory(path)
        try:
            size = archive.stat().st_size
            digest = compute_file_sha256(archive)
        except Exception:
            with contextlib.suppress(OSError):
                archive.unlink()
            raise
        return PreparedPayload(
            kind=TransferKind.DIRECTORY,
            name=path.resolve().name or "directory",
            size=size,
            sha256=digest,
            path=archive,
            original_size=original_size,
            cleanup_path=archive,
        )
    if payload.kind is TransferKind.DIRECTORY:
        raise ValueError(f"{path} is not a directory")
    if not path.is_file():
        raise ValueError("path must be a file or directory")
    return PreparedPayload(
        kind=TransferKind.FILE,
        name=path.name,
        size=path.stat().st_size,
        sha256=compute_file_sha256(path),
        path=path,
    )


def parse_offer(message: dict) -> ReceivedOffer:
    if message.get("type") != "offer":
        raise RendezvousError(f"unexpected message from sender: {message.get('type')!r}")
    try:
        kind = TransferKind(message.get("kind"))
    except ValueError as exc:
        raise RendezvousError("sender offered an unsupported payload") from exc
    size = message.get("size")
    digest = message.get("sha256")
    if not isinstance(size, int) or isinstance(size, bool) or size < 0:
        raise RendezvousError("sender offered an invalid size")
    if not isinstance(digest, str) or not digest:
        raise RendezvousError("sender offer is missing its checksum")
    name = os.path.basename(str(message.get("name") or "")) or "received.bin"
    text: Optional[str] = None
    if kind is TransferKind.TEXT:
        text = message.get("text")
        if not isinstance(text, str):
            raise RendezvousError("sender offered text without a message")
    if kind is TransferKind.DIRECTORY and message.get("archive") != ARCHIVE_FORMAT:
        raise RendezvousError("unsupported archive format")
    return ReceivedOffer(TransferMetadata(name=name, size=size, kind=kind, text=text), digest)


def prepare_destination(directory: Path, filename: str) -> Path:
    """Return a path in ``directory`` that does not exist yet: ``name``, ``name(1)``, ..."""

    target = directory / filename
    if not target.exists():
        return target
    stem = target.stem
    suffix = target.suffix
    counter = 1
    while True:
        candidate = directory / f"{stem}({counter}){suffix}"
        if not candidate.exists():
            return candidate
        counter += 1


def create_zip_from_directory(directory: Path) -> Tuple[Path, int]:
    fd, temp_name = tempfile.mkstemp(prefix="burrow-send-", suffix=".zip")
    os.close(fd)
    temp_path = Path(temp_name)
    total_bytes = 0
    added_dirs: set = set()

    with zipfile.ZipFile(temp_path, "w", compression=zipfile.ZIP_STORED, allowZip64=True) as archive:
        for dirpath, dirnames, filenames in os.walk(directory):
            current = Path(dirpath)
            relative = current.relative_to(directory)
            if relative != Path("."):
                _add_zip_directory_entry(archive, added_dirs, relative)
            for name in filenames:
                file_path = current / name
                rel_name = relative / name if relative != Path(".") else Path(name)
                archive.write(file_path, arcname=_zip_arcname(rel_name))
                try:
                    total_bytes += file_path.stat().st_size
                except OSError:
                    pass

    return temp_path, total_bytes


def extract_directory_archive(archive_path: Path, destination: Path) -> None:
    destination.mkdir(parents=True, exist_ok=False)
    target_root = destination.resolve()
    with zipfile.ZipFile(archive_path) as archive:
        for member in archive.infolist():
            name = member.filename
            if not name:
                continue
            resolved = (destination / name).resolve(strict=False)
            if target_root not in resolved.parents and resolved != target_root:
                raise TransferError("archive member escapes destination directory")
        archive.extractall(destination)


def _zip_arcname(path: Path) -> str:
    return str(path).replace(os.sep, "/")


def _add_zip_directory_entry(archive: zipfile.ZipFile, added: set, relative: Path) -> None:
    arc = _zip_arcname(relative)
    if not arc.endswith("/"):
        arc += "/"
    if arc in added:
        return
    archive.writestr(zipfile.ZipInfo(arc), b"")
    added.add(arc)


class LanTransferEngine(TransferEngine):
    """``TransferEngine`` that pairs peers on the local network."""

    def __init__(
        self,
        *,
        code_length: int = 2,
        port: Optional[int] = None,
        static_peer: Optional[Tuple[str, Optional[int]]] = None,
        rendezvous_timeout: float = DEFAULT_RENDEZVOUS_TIMEOUT,
        discovery_port: int = DISCOVERY_PORT,
        handshake_timeout: float = HANDSHAKE_TIMEOUT,
        announce: bool = True,
    ) -> None:
        self.code_length = code_length
        self.bind_port = port
        self.static_peer = static_peer
        self.rendezvous_timeout = rendezvous_timeout
        self.discovery_port = discovery_port
        self.handshake_timeout = handshake_timeout
        self.announce = announce

        self._code: Optional[str] = None
        self._listener: Optional[socket.socket] = None
        self._beacon: Optional[NameplateBeacon] = None
        self._channel: Optional[SecureChannel] = None
        self._offer: Optional[ReceivedOffer] = None
        self._worker: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._closed = False

    @property
    def code(self) -> Optional[str]:
        return self._code

    @property
    def port(self) -> Optional[int]:
        if self._listener is None:
            return None
        return self._listener.getsockname()[1]

    # Send role ---------------------------------------------------------

    def allocate_code(self, cancel: CancelToken) -> str:
        if cancel.is_cancelled:
            raise EngineCancelled()
        if self._code is not None:
            return self._code
        self._listener = self._bind_listener()
        nameplate = secrets.randbelow(MAX_NAMEPLATE) + 1
        words = default_wordlist(self.code_length).choose_words()
        self._code = format_code(nameplate, words)
        logger.info("listening on TCP port %s with nameplate %s", self.port, nameplate)
        if self.announce:
            self._beacon = NameplateBeacon(nameplate, self.port, port=self.discovery_port)
            self._beacon.start()
        return self._code

    def _bind_listener(self) -> socket.socket:
        if self.bind_port is None:
            candidates = [DEFAULT_TRANSFER_PORT, 0]
        else:
            candidates = [self.bind_port]
        last_error: Optional[OSError] = None
        for candidate in candidates:
            trial = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            try:
                trial.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
                trial.bind(("", candidate))
            except OSError as exc:
                last_error = exc
                trial.close()
                continue
            trial.listen()
            trial.settimeout(POLL_INTERVAL)
            return trial
        raise RendezvousError(f"failed to bind transfer socket: {last_error}")

    # Receive role ------------------------------------------------------

    def redeem_code(self, code: str, cancel: CancelToken) -> TransferMetadata:
        nameplate, words = parse_code(code)
        full_code = format_code(nameplate, "-".join(words))
        self._code = full_code
        host, port = self._resolve_sender(nameplate, cancel)
        logger.info("connecting to sender at %s:%s", host, port)
        channel = SecureChannel(self._connect(host, port, cancel))
        with self._lock:
            if self._closed:
                channel.close()
                raise EngineCancelled()
            self._channel = channel
        try:
            self._receiver_handshake(channel, full_code, cancel)
            self._offer = parse_offer(channel.recv_message(cancel))
        except ConnectionError as exc:
            channel.close()
            raise RendezvousError("sender closed the connection") from exc
        except TimeoutError as exc:
            channel.close()
            raise RendezvousError("sender did not answer the handshake") from exc
        except TransferError as exc:
            channel.close()
            raise RendezvousError(str(exc)) from exc
        except (EngineCancelled, RendezvousError):
            channel.close()
            raise
        logger.info(
            "offer received: %s (%s bytes, %s)",
            self._offer.metadata.name,
            self._offer.metadata.size,
            self._offer.metadata.kind.value,
        )
        return self._offer.metadata

    def _resolve_sender(self, nameplate: int, cancel: CancelToken) -> Tuple[str, int]:
        if self.static_peer is not None:
            host, port = self.static_peer
            return host, port or DEFAULT_TRANSFER_PORT
        location = locate_sender(
            nameplate, cancel=cancel, timeout=self.rendezvous_timeout, port=self.discovery_port
        )
        return location.ip, location.port

    def _connect(self, host: str, port: int, cancel: CancelToken) -> socket.socket:
        deadline = time.monotonic() + self.rendezvous_timeout
        while True:
            if cancel.is_cancelled:
                raise EngineCancelled()
            try:
                return socket.create_connection((host, port), timeout=CONNECT_TIMEOUT)
            except ConnectionRefusedError as exc:
                if time.monotonic() >= deadline:
                    raise RendezvousError(f"could not connect to {host}:{port}: {exc}") from exc
                cancel.wait(0.5)
            except OSError as exc:
                raise RendezvousError(f"could not connect to {host}:{port}: {exc}") from exc

    def _receiver_handshake(self, channel: SecureChannel, code: str, cancel: CancelToken) -> None:
        exchange = CodeExchange(code)
        channel.send_message(
            {
                "type": "hello",
                "protocol": PROTOCOL_VERSION,
                "version": __version__,
                "pake": encode_bytes(exchange.outbound),
            }
        )
        # The sender may still be busy turning away another connection.
        welcome = channel.recv_message(cancel, timeout=self.rendezvous_timeout)
        if welcome.get("type") == "error":
            raise RendezvousError(str(welcome.get("reason") or "sender refused the connection"))
        if welcome.get("type") != "welcome":
            raise RendezvousError("unexpected handshake response from sender")
        try:
            session_key = exchange.finish(decode_bytes(str(welcome["pake"])))
            nonce = decode_bytes(str(welcome["nonce"]))
            if len(nonce) != 16:
                raise ValueError("nonce must be 16 bytes")
        except (KeyError, ValueError) as exc:
            raise RendezvousError("sender sent invalid key material") from exc
        if not verify_confirmation(session_key, SENDER_LABEL, welcome.get("confirm")):
            with contextlib.suppress(ConnectionError):
                channel.send_message({"type": "error", "reason": "key confirmation failed"})
            raise InvalidCodeError("key confirmation failed; check that the code was typed correctly")
        channel.send_message({"type": "confirm", "confirm": confirmation_tag(session_key, RECEIVER_LABEL)})
        channel.enable_encryption(
            derive_direction_key(session_key, RECEIVER_LABEL),
            derive_direction_key(session_key, SENDER_LABEL),
            nonce,
        )

    def decline(self) -> None:
        channel = self._channel
        if channel is None or channel.closed:
            return
        try:
            channel.send_message({"type": "reject"})
        except (ConnectionError, TransferError) as exc:
            logger.debug("could not deliver rejection: %s", exc)
        channel.close()

    # Transfer ----------------------------------------------------------

    def start_transfer(
        self, role: Role, payload: PayloadDescriptor, cancel: CancelToken
    ) -> EventStream:
        if role is Role.SEND and self._listener is None:
            raise RuntimeError("allocate_code must be called before sending")
        if role is Role.RECEIVE and (self._channel is None or self._offer is None):
            raise RuntimeError("redeem_code must succeed before receiving")
        stream = EventStream()
        target = self._run_send if role is Role.SEND else self._run_receive
        self._worker = threading.Thread(
            target=self._run_guarded,
            args=(target, payload, cancel, stream),
            name=f"burrow-transfer-{role.value}",
            daemon=True,
        )
        self._worker.start()
        return stream

    def _run_guarded(self, target, payload: PayloadDescriptor, cancel: CancelToken, stream: EventStream) -> None:
        progress = {"bytes": 0}
        try:
            outcome = target(payload, cancel, stream, progress)
        except EngineCancelled:
            outcome = TransferOutcome.cancelled(bytes_transferred=progress["bytes"])
        except RendezvousError as exc:
            outcome = TransferOutcome.failed(str(exc), bytes_transferred=progress["bytes"], rendezvous=True)
        except ConnectionError as exc:
            reason = str(exc) or "peer disconnected"
            outcome = TransferOutcome.failed(reason, bytes_transferred=progress["bytes"])
        except (TransferError, OSError, ValueError) as exc:
            outcome = TransferOutcome.failed(str(exc), bytes_transferred=progress["bytes"])
        except Exception as exc:  # noqa: BLE001
            logger.exception("transfer worker crashed")
            outcome = TransferOutcome.failed(f"internal error: {exc}", bytes_transferred=progress["bytes"])
        if cancel.is_cancelled and outcome.tag is not OutcomeTag.SUCCESS:
            outcome = TransferOutcome.cancelled(bytes_transferred=progress["bytes"])
        logger.debug("transfer finished: %s (%s)", outcome.tag.value, outcome.reason)
        stream.finish(outcome)

    def _run_send(self, payload: PayloadDescriptor, cancel: CancelToken, stream: EventStream, progress: dict) -> TransferOutcome:
        prepared = prepare_payload(payload)
        try:
            channel = self._await_receiver(cancel)
            channel.send_message(prepared.offer_message())
            reply = channel.recv_message(cancel)
            if reply.get("type") == "reject":
                return TransferOutcome.failed("peer rejected the transfer")
            if reply.get("type") != "accept":
                raise TransferError(f"unexpected reply to offer: {reply.get('type')!r}")

            started = time.monotonic()
            stream.publish(ProgressSample(0, prepared.size, 0.0))
            if prepared.kind is not TransferKind.TEXT and prepared.path is not None:
                with prepared.path.open("rb") as handle:
                    while True:
                        if cancel.is_cancelled:
                            raise EngineCancelled()
                        chunk = handle.read(BUFFER_SIZE)
                        if not chunk:
                            break
                        channel.send_data(chunk)
                        progress["bytes"] += len(chunk)
                        stream.publish(ProgressSample(progress["bytes"], prepared.size, time.monotonic() - started))
            else:
                progress["bytes"] = prepared.size
                stream.publish(ProgressSample(prepared.size, prepared.size, time.monotonic() - started))

            ack = channel.recv_message(cancel)
            if ack.get("type") != "ack":
                raise TransferError(f"unexpected reply after data: {ack.get('type')!r}")
            if not ack.get("ok"):
                raise TransferError(str(ack.get("reason") or "integrity mismatch"))
            return TransferOutcome.success(progress["bytes"])
        finally:
            prepared.discard()

    def _accept_receiver(self, cancel: CancelToken) -> SecureChannel:
        listener = self._listener
        if listener is None:
            raise EngineCancelled()
        while True:
            if cancel.is_cancelled:
                raise EngineCancelled()
            try:
                conn, addr = listener.accept()
            except (socket.timeout, TimeoutError):
                continue
            except OSError as exc:
                if cancel.is_cancelled or self._closed:
                    raise EngineCancelled() from exc
                raise
            logger.info("receiver connected from %s:%s", addr[0], addr[1])
            channel = SecureChannel(conn)
            with self._lock:
                if self._closed:
                    channel.close()
                    raise EngineCancelled()
                self._channel = channel
            return channel

    def _await_receiver(self, cancel: CancelToken) -> SecureChannel:
        """Accept connections until one completes the handshake.

        Connections that go silent or never send a usable hello are dropped
        and the listener keeps waiting. Once the sender has answered with its
        own key exchange message the code is spent: a failed confirmation
        fails the session.
        """

        while True:
            channel = self._accept_receiver(cancel)
            try:
                self._sender_handshake(channel, cancel)
            except _StrayConnection as exc:
                logger.info("dropping connection without a valid hello: %s", exc)
                with self._lock:
                    if self._channel is channel:
                        self._channel = None
                channel.close()
                continue
            return channel

    def _sender_handshake(self, channel: SecureChannel, cancel: CancelToken) -> None:
        try:
            hello = channel.recv_message(cancel, timeout=self.handshake_timeout)
        except (ConnectionError, TimeoutError, TransferError) as exc:
            raise _StrayConnection(str(exc)) from exc
        if hello.get("type") != "hello":
            raise _StrayConnection(f"unexpected message {hello.get('type')!r}")
        exchange = CodeExchange(self._code or "")
        try:
            session_key = exchange.finish(decode_bytes(str(hello["pake"])))
        except (KeyError, ValueError) as exc:
            raise _StrayConnection("invalid key exchange message") from exc
        nonce = random_nonce()
        try:
            channel.send_message(
                {
                    "type": "welcome",
                    "protocol": PROTOCOL_VERSION,
                    "version": __version__,
                    "pake": encode_bytes(exchange.outbound),
                    "nonce": encode_bytes(nonce),
                    "confirm": confirmation_tag(session_key, SENDER_LABEL),
                }
            )
            reply = channel.recv_message(cancel, timeout=self.handshake_timeout)
        except (ConnectionError, TimeoutError, TransferError) as exc:
            raise RendezvousError("receiver did not complete key confirmation") from exc
        if reply.get("type") == "error" or not verify_confirmation(
            session_key, RECEIVER_LABEL, reply.get("confirm")
        ):
            raise RendezvousError("key confirmation failed; the receiver used a different code")
        channel.enable_encryption(
            derive_direction_key(session_key, SENDER_LABEL),
            derive_direction_key(session_key, RECEIVER_LABEL),
            nonce,
        )

    def _run_receive(self, payload: PayloadDescriptor, cancel: CancelToken, stream: EventStream, progress: dict) -> TransferOutcome:
        channel = self._channel
        offer = self._offer
        assert channel is not None and offer is not None
        metadata = offer.metadata
        if cancel.is_cancelled:
            raise EngineCancelled()

        if metadata.kind is TransferKind.TEXT:
            channel.send_message({"type": "accept"})
            text = metadata.text or ""
            ok = hashlib.sha256(text.encode("utf-8")).hexdigest() == offer.sha256
            channel.send_message({"type": "ack", "ok": ok, "reason": None if ok else "integrity mismatch"})
            if not ok:
                raise TransferError("integrity mismatch")
            progress["bytes"] = metadata.size
            stream.publish(ProgressSample(metadata.size, metadata.size, 0.0))
            return TransferOutcome.success(metadata.size, text=text)

        destination = Path(payload.destination or Path.cwd())
        destination.mkdir(parents=True, exist_ok=True)
        dest_path = prepare_destination(destination, metadata.name)
        temp_archive: Optional[Path] = None
        output_path = dest_path
        if metadata.kind is TransferKind.DIRECTORY:
            fd, temp_name = tempfile.mkstemp(prefix="burrow-recv-", suffix=".zip")
            os.close(fd)
            temp_archive = Path(temp_name)
            output_path = temp_archive

        completed = False
        try:
            channel.send_message({"type": "accept"})
            started = time.monotonic()
            stream.publish(ProgressSample(0, metadata.size, 0.0))
            hasher = hashlib.sha256()
            with output_path.open("wb") as handle:
                remaining = metadata.size
                while remaining > 0:
                    chunk = channel.recv_data(min(BUFFER_SIZE, remaining), cancel)
                    handle.write(chunk)
                    hasher.update(chunk)
                    remaining -= len(chunk)
                    progress["bytes"] = metadata.size - remaining
                    stream.publish(ProgressSample(progress["bytes"], metadata.size, time.monotonic() - started))
            if hasher.hexdigest() != offer.sha256:
                with contextlib.suppress(ConnectionError):
                    channel.send_message({"type": "ack", "ok": False, "reason": "integrity mismatch"})
                raise TransferError("integrity mismatch")
            if temp_archive is not None:
                extract_directory_archive(temp_archive, dest_path)
            channel.send_message({"type": "ack", "ok": True})
            completed = True
            return TransferOutcome.success(progress["bytes"], saved_path=dest_path)
        finally:
            if temp_archive is not None:
                with contextlib.suppress(OSError):
                    temp_archive.unlink()
            if not completed:
                _remove_partial(dest_path)

    # Teardown ----------------------------------------------------------

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        if self._beacon is not None:
            self._beacon.stop()
        if self._channel is not None:
            self._channel.close()
        if self._listener is not None:
            with contextlib.suppress(OSError):
                self._listener.close()
        worker = self._worker
        if worker is not None and worker.is_alive() and worker is not threading.current_thread():
            worker.join(timeout=1.0)
        logger.debug("engine closed")


def _remove_partial(path: Path) -> None:
    with contextlib.suppress(OSError):
        if path.is_dir():
            shutil.rmtree(path)
        elif path.exists():
            path.unlink()


__all__ = [
    "DEFAULT_TRANSFER_PORT",
    "LanTransferEngine",
    "PreparedPayload",
    "ReceivedOffer",
    "SecureChannel",
    "create_zip_from_directory",
    "extract_directory_archive",
    "parse_offer",
    "prepare_destination",
    "prepare_payload",
]
