"""
Security helpers: SPAKE2 key agreement keyed by the code, key confirmation,
stream cipher, and hashing.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import os
from pathlib import Path

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms
from spake2 import SPAKE2_Symmetric
from spake2.spake2 import SPAKEError

PAKE_APP_ID = b"burrow.lan/transfer"

SENDER_LABEL = "sender"
RECEIVER_LABEL = "receiver"


class CodeExchange:
    """One SPAKE2 run keyed by the full transfer code.

    Both peers send ``outbound`` and feed the other side's message into
    ``finish``. A peer that does not know the code learns nothing it can test
    offline; it gets exactly one guess per exchange, which the confirmation
    tags reveal as wrong.
    """

    def __init__(self, code: str) -> None:
        self._spake = SPAKE2_Symmetric(code.encode("utf-8"), idSymmetric=PAKE_APP_ID)
        self.outbound: bytes = self._spake.start()

    def finish(self, inbound: bytes) -> bytes:
        """Return the 32-byte session key; raises ValueError for an unusable message."""

        if len(inbound) != len(self.outbound):
            raise ValueError("key exchange message has the wrong length")
        try:
            return self._spake.finish(inbound)
        except SPAKEError as exc:
            raise ValueError(f"key exchange rejected: {exc}") from exc


def derive_direction_key(session_key: bytes, label: str) -> bytes:
    """Return the key used for traffic written by ``label`` (sender or receiver)."""

    return hashlib.sha256(session_key + b"burrow-direction:" + label.encode("ascii")).digest()


def confirmation_tag(session_key: bytes, label: str) -> str:
    digest = hmac.new(session_key, b"burrow-confirm:" + label.encode("ascii"), hashlib.sha256)
    return digest.hexdigest()


def verify_confirmation(session_key: bytes, label: str, tag: object) -> bool:
    if not isinstance(tag, str):
        return False
    return hmac.compare_digest(confirmation_tag(session_key, label), tag)


def encode_bytes(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii")


def decode_bytes(value: str) -> bytes:
    return base64.urlsafe_b64decode(value.encode("ascii"))


def compute_file_sha256(path: Path) -> str:
    """Return the SHA-256 hex digest of a file."""

    digest = hashlib.sha256()
    with path.open("rb") as handle:
        while True:
            chunk = handle.read(128 * 1024)
            if not chunk:
                break
            digest.update(chunk)
    return digest.hexdigest()


class StreamCipher:
    """ChaCha20 stream cipher backed by cryptography's C extensions.

    Each direction of a connection owns one instance; encryption and
    decryption are the same keystream XOR, so the peer mirrors it with an
    instance built from the same key and nonce.
    """

    _KEY_SIZE = 32
    _NONCE_SIZE = 16

    def __init__(self, key: bytes, nonce: bytes) -> None:
        if len(key) < self._KEY_SIZE:
            raise ValueError("session key must be at least 32 bytes for ChaCha20")
        if len(nonce) != self._NONCE_SIZE:
            raise ValueError("nonce must be exactly 16 bytes for ChaCha20")
        algorithm = algorithms.ChaCha20(key[: self._KEY_SIZE], nonce)
        self._context = Cipher(algorithm, mode=None).encryptor()

    def process(self, data: bytes) -> bytes:
        if not data:
            return b""
        return self._context.update(data)


def random_nonce(size: int = 16) -> bytes:
    return os.urandom(size)

