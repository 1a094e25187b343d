"""Unit tests for burrow.cli helper utilities."""

from __future__ import annotations

import logging
import sys
from types import SimpleNamespace

import pytest

import burrow.cli as cli
from burrow.engine import Role
from burrow.session import SessionResult, SessionState
from burrow.wordlist import Wordlist, default_wordlist


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("192.168.1.5", ("192.168.1.5", None)),
        ("192.168.1.5:5000", ("192.168.1.5", 5000)),
        ("desk.local", ("desk.local", None)),
        ("desk.local:45856", ("desk.local", 45856)),
        ("[fe80::1]:7000", ("fe80::1", 7000)),
        ("[::1]", ("::1", None)),
        ("::1", ("::1", None)),
    ],
)
def test_parse_peer_address_accepts(raw: str, expected) -> None:
    assert cli.parse_peer_address(raw) == expected


@pytest.mark.parametrize("raw", ["", "   ", "host:abc", "host:0", "host:70000", "[::1", "[::1]x", "bad host"])
def test_parse_peer_address_rejects(raw: str) -> None:
    assert cli.parse_peer_address(raw) is None


def test_normalize_on_off() -> None:
    assert cli.normalize_on_off("ON") is True
    assert cli.normalize_on_off(" off ") is False
    assert cli.normalize_on_off("开") is True
    assert cli.normalize_on_off("sometimes") is None
    assert cli.normalize_on_off(None) is None


@pytest.mark.parametrize(
    ("state", "code"),
    [
        (SessionState.COMPLETED, cli.EXIT_OK),
        (SessionState.FAILED, cli.EXIT_FAILED),
        (SessionState.CANCELLED, cli.EXIT_CANCELLED),
    ],
)
def test_exit_code_for(state: SessionState, code: int) -> None:
    assert cli.exit_code_for(SessionResult(state=state, role=Role.SEND)) == code


def test_code_completions_keep_nameplate() -> None:
    wordlist = default_wordlist(2)

    assert cli.code_completions(wordlist, "7-chi") == ["7-chicago"]
    assert cli.code_completions(wordlist, "7-crossover-clo") == ["7-crossover-clockwork"]
    assert cli.code_completions(wordlist, "chi") == []
    assert cli.code_completions(wordlist, "x-chi") == []


def test_code_completions_follow_cursor() -> None:
    wordlist = Wordlist(2, [["crossover", "drumbeat"], ["clockwork", "cobra"]])

    assert cli.code_completions(wordlist, "7-cr-cobra", 4) == ["7-crossover"]
    assert cli.code_completions(wordlist, "7-crossover-c", 13) == ["7-crossover-clockwork", "7-crossover-cobra"]
    assert cli.code_completions(wordlist, "7-cr", 1) == []


def test_install_code_completion_reads_line_buffer(monkeypatch: pytest.MonkeyPatch) -> None:
    wordlist = Wordlist(2, [["crossover", "drumbeat"], ["clockwork", "cobra"]])
    installed = {}
    fake_readline = SimpleNamespace(
        get_line_buffer=lambda: "7-dr-cobra",
        get_begidx=lambda: 0,
        get_endidx=lambda: 4,
        set_completer_delims=lambda delims: None,
        set_completer=lambda completer: installed.update(completer=completer),
        parse_and_bind=lambda binding: None,
    )
    monkeypatch.setitem(sys.modules, "readline", fake_readline)

    assert cli.install_code_completion(wordlist) is True
    complete = installed["completer"]
    assert complete("7-dr", 0) == "7-drumbeat"
    assert complete("7-dr", 1) is None


def test_configure_logging_levels(monkeypatch: pytest.MonkeyPatch) -> None:
    recorded = {}
    monkeypatch.setattr(cli.logging, "basicConfig", lambda **kwargs: recorded.update(kwargs))
    monkeypatch.delenv(cli.DEBUG_ENV, raising=False)

    assert cli.configure_logging(0) == logging.WARNING
    assert cli.configure_logging(1) == logging.INFO
    assert cli.configure_logging(2) == logging.DEBUG
    assert recorded["force"] is True
    assert isinstance(recorded["handlers"][0], cli.RichHandler)

    monkeypatch.setenv(cli.DEBUG_ENV, "1")
    assert cli.configure_logging(0) == logging.DEBUG


def test_localized_parser_uses_translated_usage(capsys: pytest.CaptureFixture[str]) -> None:
    parser = cli.build_parser("zh")

    with pytest.raises(SystemExit) as excinfo:
        parser.parse_args(["receive", "--bogus"])

    assert excinfo.value.code == cli.EXIT_USAGE
    captured = capsys.readouterr()
    assert "用法:" in captured.err


def test_build_parser_parses_receive_flags() -> None:
    args = cli.build_parser("en").parse_args(
        ["receive", "7-crossover-clockwork", "--dir", "/tmp/in", "-y", "--peer", "10.0.0.2", "-vv"]
    )

    assert args.command == "receive"
    assert args.code == "7-crossover-clockwork"
    assert args.dir == "/tmp/in"
    assert args.yes is True
    assert args.peer == "10.0.0.2"
    assert args.verbose == 2


def test_build_parser_parses_send_flags() -> None:
    args = cli.build_parser("en").parse_args(["send", "file.bin", "--qr", "--code-length", "3", "--port", "0"])

    assert args.path == "file.bin"
    assert args.qr is True
    assert args.clipboard is False
    assert args.code_length == 3
    assert args.port == 0


def test_main_dispatches_receive(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli, "load_config", lambda: SimpleNamespace(language="en"))
    captured = {}

    def fake_run_receive(code, *, dir_arg=None, assume_yes=False, peer_arg=None, verbosity=0):
        captured.update(code=code, dir_arg=dir_arg, assume_yes=assume_yes, peer_arg=peer_arg, verbosity=verbosity)
        return cli.EXIT_CANCELLED

    monkeypatch.setattr(cli, "run_receive_command", fake_run_receive)

    exit_code = cli.main(["receive", "7-a-b", "-y", "-v"])

    assert exit_code == cli.EXIT_CANCELLED
    assert captured == {"code": "7-a-b", "dir_arg": None, "assume_yes": True, "peer_arg": None, "verbosity": 1}


def test_main_dispatches_send_dir(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli, "load_config", lambda: SimpleNamespace(language="en"))
    captured = {}

    def fake_run_send(path, **kwargs):
        captured["path"] = path
        captured.update(kwargs)
        return cli.EXIT_OK

    monkeypatch.setattr(cli, "run_send_command", fake_run_send)

    assert cli.main(["send-dir", "photos", "--clipboard"]) == cli.EXIT_OK
    assert captured["path"] == "photos"
    assert captured["directory_only"] is True
    assert captured["clipboard"] is True


def test_main_without_arguments_prints_help(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    monkeypatch.setattr(cli, "load_config", lambda: SimpleNamespace(language="en"))

    assert cli.main([]) == cli.EXIT_USAGE
    assert "usage:" in capsys.readouterr().out
