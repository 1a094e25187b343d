from __future__ import annotations

import pyperclip
import pytest

import burrow.presenter as presenter
from burrow.engine import Role
from burrow.presenter import (
    ActiveChannels,
    ClipboardChannel,
    CodePresenter,
    PresentationChannel,
    QRChannel,
    TextChannel,
    channels_from_config,
    render_qr_lines,
)


class RecordingUI:
    def __init__(self) -> None:
        self.lines = []
        self.erased = []
        self.output_serial = 0

    def print(self, message="", *, end="\n") -> None:
        self.lines.append(getattr(message, "plain", str(message)))
        self.output_serial += 1

    def erase_lines(self, count: int) -> None:
        self.erased.append(count)


class RecordingChannel(PresentationChannel):
    def __init__(self, name: str, log: list, *, fail_open: bool = False, fail_close: bool = False) -> None:
        self.name = name
        self.log = log
        self.fail_open = fail_open
        self.fail_close = fail_close

    def open(self, code: str) -> None:
        if self.fail_open:
            raise RuntimeError("no display")
        self.log.append(("open", self.name, code))

    def close(self) -> None:
        self.log.append(("close", self.name))
        if self.fail_close:
            raise RuntimeError("boom")


class FakeClipboard:
    def __init__(self, content: str = "", *, readable: bool = True) -> None:
        self.content = content
        self.readable = readable

    def paste(self) -> str:
        if not self.readable:
            raise pyperclip.PyperclipException("no clipboard")
        return self.content

    def copy(self, value: str) -> None:
        self.content = value


@pytest.fixture
def clipboard(monkeypatch):
    fake = FakeClipboard("previous")
    monkeypatch.setattr(presenter.pyperclip, "paste", fake.paste)
    monkeypatch.setattr(presenter.pyperclip, "copy", fake.copy)
    return fake


def test_text_channel_for_sender_announces_code() -> None:
    ui = RecordingUI()
    TextChannel(ui, "en", Role.SEND).open("7-crossover-clockwork")

    assert ui.lines[0] == "Wormhole code is: 7-crossover-clockwork"
    assert "burrow receive 7-crossover-clockwork" in ui.lines[1]


def test_text_channel_for_receiver_echoes_code() -> None:
    ui = RecordingUI()
    TextChannel(ui, "en", Role.RECEIVE).open("7-crossover-clockwork")

    assert ui.lines == ["Receiving with code 7-crossover-clockwork"]


def test_render_qr_lines_produces_square_block() -> None:
    lines = render_qr_lines("7-crossover-clockwork")

    assert lines
    assert len({len(line) for line in lines}) == 1
    assert set("".join(lines)) <= {" ", "█", "▀", "▄"}


def test_qr_channel_erases_when_still_last_output() -> None:
    ui = RecordingUI()
    channel = QRChannel(ui, "en")
    channel.open("7-crossover-clockwork")
    height = len(ui.lines)

    channel.close()
    channel.close()

    assert ui.erased == [height]


def test_qr_channel_keeps_block_when_output_followed() -> None:
    ui = RecordingUI()
    channel = QRChannel(ui, "en")
    channel.open("7-crossover-clockwork")
    ui.print("later output")

    channel.close()

    assert ui.erased == []


def test_clipboard_channel_restores_previous_content(clipboard) -> None:
    ui = RecordingUI()
    channel = ClipboardChannel(ui, "en")

    channel.open("7-crossover-clockwork")
    assert clipboard.content == "7-crossover-clockwork"
    channel.close()

    assert clipboard.content == "previous"
    assert ui.lines == ["Code copied to clipboard."]


def test_clipboard_channel_leaves_user_changes_alone(clipboard) -> None:
    channel = ClipboardChannel(RecordingUI(), "en")
    channel.open("7-crossover-clockwork")
    clipboard.content = "something the user copied"

    channel.close()

    assert clipboard.content == "something the user copied"


def test_clipboard_channel_leaves_code_when_previous_unreadable(clipboard) -> None:
    clipboard.readable = False
    channel = ClipboardChannel(RecordingUI(), "en")
    channel.open("7-crossover-clockwork")
    clipboard.readable = True

    channel.close()

    assert clipboard.content == "7-crossover-clockwork"


def test_presenter_skips_failing_channel_with_warning() -> None:
    ui = RecordingUI()
    log = []
    channels = [
        RecordingChannel("text", log),
        RecordingChannel("qr", log, fail_open=True),
        RecordingChannel("clipboard", log),
    ]

    active = CodePresenter(channels, ui, "en").present("7-a-b")

    assert len(active) == 2
    assert [entry[1] for entry in log] == ["text", "clipboard"]
    assert any("via qr" in line for line in ui.lines)


def test_presenter_rejects_empty_code() -> None:
    with pytest.raises(ValueError):
        CodePresenter([], RecordingUI(), "en").present("")


def test_dismiss_closes_in_reverse_once() -> None:
    log = []
    presenter_obj = CodePresenter(
        [RecordingChannel("text", log), RecordingChannel("clipboard", log, fail_close=True), RecordingChannel("qr", log)],
        RecordingUI(),
        "en",
    )
    active = presenter_obj.present("7-a-b")
    log.clear()

    assert presenter_obj.dismiss(active) is True
    assert presenter_obj.dismiss(active) is False
    assert presenter_obj.dismiss(None) is False

    assert log == [("close", "qr"), ("close", "clipboard"), ("close", "text")]
    assert active.dismissed is True


def test_empty_active_channels_dismiss() -> None:
    active = ActiveChannels()

    assert active.dismiss() is True
    assert active.channels == []


def test_channels_from_config_orders_and_filters_by_role() -> None:
    ui = RecordingUI()

    send = channels_from_config(ui, "en", role=Role.SEND, qr_enabled=True, clipboard_enabled=True)
    receive = channels_from_config(ui, "en", role=Role.RECEIVE, qr_enabled=True, clipboard_enabled=True)

    assert [channel.name for channel in send] == ["text", "clipboard", "qr"]
    assert [channel.name for channel in receive] == ["text"]
