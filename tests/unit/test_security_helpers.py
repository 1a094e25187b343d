from __future__ import annotations

from pathlib import Path

import pytest

import burrow.security as security


def test_encode_decode_bytes() -> None:
    data = b"\x00\x01burrow"

    assert security.decode_bytes(security.encode_bytes(data)) == data


def test_code_exchange_agrees_for_matching_codes() -> None:
    sender = security.CodeExchange("7-crossover-clockwork")
    receiver = security.CodeExchange("7-crossover-clockwork")

    key_a = sender.finish(receiver.outbound)
    key_b = receiver.finish(sender.outbound)

    assert key_a == key_b
    assert len(key_a) == 32


def test_code_exchange_differs_for_different_codes() -> None:
    sender = security.CodeExchange("7-crossover-clockwork")
    receiver = security.CodeExchange("7-crossover-clocks")

    assert sender.finish(receiver.outbound) != receiver.finish(sender.outbound)


def test_code_exchange_messages_are_fresh_per_run() -> None:
    first = security.CodeExchange("7-crossover-clockwork")
    second = security.CodeExchange("7-crossover-clockwork")

    assert first.outbound != second.outbound


def test_code_exchange_rejects_malformed_message() -> None:
    exchange = security.CodeExchange("1-a")

    with pytest.raises(ValueError):
        exchange.finish(b"short")


def test_code_exchange_rejects_reflected_message() -> None:
    exchange = security.CodeExchange("1-a")

    with pytest.raises(ValueError):
        exchange.finish(exchange.outbound)


def test_transcript_cannot_be_checked_against_the_code_offline() -> None:
    # An eavesdropper replaying the sender's message with the right code in a
    # fresh exchange still derives an unrelated key.
    sender = security.CodeExchange("7-crossover-clockwork")
    peer = security.CodeExchange("7-wrong-guess")
    session_key = sender.finish(peer.outbound)
    tag = security.confirmation_tag(session_key, security.SENDER_LABEL)

    replay = security.CodeExchange("7-crossover-clockwork")
    forged_key = replay.finish(sender.outbound)

    assert security.verify_confirmation(forged_key, security.SENDER_LABEL, tag) is False


def test_confirmation_tags_are_directional() -> None:
    key = b"k" * 32
    sender_tag = security.confirmation_tag(key, security.SENDER_LABEL)

    assert security.verify_confirmation(key, security.SENDER_LABEL, sender_tag) is True
    assert security.verify_confirmation(key, security.RECEIVER_LABEL, sender_tag) is False
    assert security.verify_confirmation(b"x" * 32, security.SENDER_LABEL, sender_tag) is False
    assert security.verify_confirmation(key, security.SENDER_LABEL, None) is False


def test_direction_keys_differ() -> None:
    key = b"k" * 32

    sender_key = security.derive_direction_key(key, security.SENDER_LABEL)
    receiver_key = security.derive_direction_key(key, security.RECEIVER_LABEL)

    assert sender_key != receiver_key
    assert len(sender_key) == 32


def test_compute_file_sha256(tmp_path: Path) -> None:
    target = tmp_path / "data.bin"
    target.write_bytes(b"abc")

    assert (
        security.compute_file_sha256(target)
        == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
    )


def test_stream_cipher_validates_parameters() -> None:
    with pytest.raises(ValueError):
        security.StreamCipher(b"short", security.random_nonce())
    with pytest.raises(ValueError):
        security.StreamCipher(b"k" * 32, b"short")


def test_stream_cipher_empty_input() -> None:
    cipher = security.StreamCipher(b"k" * 32, security.random_nonce())

    assert cipher.process(b"") == b""
