"""
Nameplate discovery using UDP broadcast beacons.

The sender announces ``{nameplate, port}`` until the session ends; the
receiver listens for the nameplate taken from its code and connects to the
advertised TCP port.
"""

from __future__ import annotations

import json
import logging
import socket
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from . import __version__
from .engine import EngineCancelled, RendezvousError

if TYPE_CHECKING:  # pragma: no cover
    from .cancel import CancelToken

logger = logging.getLogger(__name__)

DISCOVERY_PORT = 45855
BEACON_INTERVAL = 1.0
MESSAGE_TYPE = "burrow-offer"


@dataclass(frozen=True)
class SenderLocation:
    ip: str
    port: int
    version: str


def build_beacon_payload(nameplate: int, port: int) -> bytes:
    payload = {
        "type": MESSAGE_TYPE,
        "nameplate": nameplate,
        "port": port,
        "version": __version__,
    }
    return json.dumps(payload).encode("utf-8")


def parse_beacon_payload(data: bytes) -> Optional[dict]:
    """Return the decoded beacon, or None for anything that is not a well-formed offer."""

    if not data:
        return None
    try:
        message = json.loads(data.decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        return None
    if not isinstance(message, dict) or message.get("type") != MESSAGE_TYPE:
        return None
    nameplate = message.get("nameplate")
    port = message.get("port")
    if not isinstance(nameplate, int) or not isinstance(port, int):
        return None
    if not 1 <= port <= 65535:
        return None
    return message


class NameplateBeacon:
    """
    Periodically broadcast the sender's nameplate and transfer port on the LAN.
    """

    def __init__(
        self,
        nameplate: int,
        transfer_port: int,
        port: int = DISCOVERY_PORT,
        interval: float = BEACON_INTERVAL,
    ) -> None:
        self.nameplate = nameplate
        self.transfer_port = transfer_port
        self.port = port
        self.interval = interval
        self._running = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._running.is_set()

    def start(self) -> None:
        if self._running.is_set():
            return
        self._running.set()
        self._thread = threading.Thread(
            target=self._beacon_loop, name="burrow-discovery-beacon", daemon=True
        )
        self._thread.start()
        logger.debug("beacon started for nameplate %s on port %s", self.nameplate, self.transfer_port)

    def stop(self) -> None:
        if not self._running.is_set():
            return
        self._running.clear()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=1.0)
        logger.debug("beacon stopped for nameplate %s", self.nameplate)

    def _send(self, address: tuple) -> None:
        payload = build_beacon_payload(self.nameplate, self.transfer_port)
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
                sock.sendto(payload, address)
        except OSError as exc:
            logger.debug("beacon send to %s failed: %s", address, exc)

    def _beacon_loop(self) -> None:
        while self._running.is_set():
            self._send(("255.255.255.255", self.port))
            self._send(("127.0.0.1", self.port))
            for _ in range(max(1, int(self.interval * 10))):
                if not self._running.is_set():
                    break
                time.sleep(0.1)


def locate_sender(
    nameplate: int,
    *,
    cancel: "CancelToken",
    timeout: float,
    port: int = DISCOVERY_PORT,
) -> SenderLocation:
    """Wait for a beacon carrying ``nameplate``.

    Raises RendezvousError when nothing is heard before ``timeout`` and
    EngineCancelled as soon as the cancel token fires.
    """

    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        if hasattr(socket, "SO_REUSEPORT"):
            try:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)
            except OSError:
                pass
        sock.bind(("", port))
    except OSError as exc:
        raise RendezvousError(f"cannot listen for senders on UDP port {port}: {exc}") from exc

    deadline = time.monotonic() + timeout
    with sock:
        sock.settimeout(0.2)
        while True:
            if cancel.is_cancelled:
                raise EngineCancelled()
            if time.monotonic() >= deadline:
                raise RendezvousError(f"no sender found for nameplate {nameplate}")
            try:
                data, addr = sock.recvfrom(4096)
            except (socket.timeout, TimeoutError):
                continue
            except OSError:
                continue
            message = parse_beacon_payload(data)
            if message is None or message["nameplate"] != nameplate:
                continue
            version = message.get("version") or "unknown"
            logger.debug("found sender for nameplate %s at %s:%s", nameplate, addr[0], message["port"])
            return SenderLocation(ip=addr[0], port=message["port"], version=str(version))


__all__ = [
    "DISCOVERY_PORT",
    "NameplateBeacon",
    "SenderLocation",
    "build_beacon_payload",
    "locate_sender",
    "parse_beacon_payload",
]
