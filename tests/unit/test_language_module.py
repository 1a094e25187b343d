from __future__ import annotations

from burrow.language import LANGUAGES, MESSAGES, MESSAGE_TONES, get_message, render_message


def test_all_languages_share_message_keys() -> None:
    english = set(MESSAGES["en"])
    for code in LANGUAGES:
        assert set(MESSAGES[code]) == english, code


def test_toned_keys_exist() -> None:
    assert set(MESSAGE_TONES) <= set(MESSAGES["en"])


def test_get_message_falls_back_to_english() -> None:
    assert get_message("session_rejected", "fr") == "Transfer rejected."
    assert get_message("no_such_key", "en") == "no_such_key"


def test_render_message_applies_tone() -> None:
    text = render_message("session_failed_transfer", "en", reason="peer disconnected")

    assert text.plain == "Transfer failed: peer disconnected"
    assert text.spans
