from __future__ import annotations

import signal
import threading
from types import SimpleNamespace

from burrow.cancel import FORCED_EXIT_STATUS, CancellationMonitor, CancelToken


class RecordingUI:
    def __init__(self) -> None:
        self.lines = []

    def print(self, message="", *, end="\n") -> None:
        self.lines.append(getattr(message, "plain", str(message)))


def test_cancel_token_sets_once() -> None:
    token = CancelToken()

    assert token.is_cancelled is False
    assert token.cancel("interrupted") is True
    assert token.cancel("other") is False
    assert token.is_cancelled is True
    assert token.reason == "interrupted"


def test_cancel_token_wait_unblocks_other_threads() -> None:
    token = CancelToken()
    seen = SimpleNamespace(value=None)

    def waiter() -> None:
        seen.value = token.wait(timeout=2.0)

    thread = threading.Thread(target=waiter)
    thread.start()
    token.cancel()
    thread.join(timeout=2.0)

    assert seen.value is True
    assert token.wait(timeout=0) is True


def test_first_interrupt_cancels_and_notifies() -> None:
    ui = RecordingUI()
    exits = []
    monitor = CancellationMonitor(ui=ui, force_exit=exits.append)

    monitor.interrupt()

    assert monitor.token.is_cancelled is True
    assert monitor.token.reason == "interrupted"
    assert exits == []
    assert any("Interrupt received" in line for line in ui.lines)


def test_second_interrupt_forces_exit() -> None:
    ui = RecordingUI()
    exits = []
    monitor = CancellationMonitor(ui=ui, force_exit=exits.append)

    monitor.interrupt()
    monitor.interrupt()

    assert exits == [FORCED_EXIT_STATUS]
    assert monitor.interrupts == 2
    assert ui.lines[-1] == "Forced exit."


def test_monitor_installs_and_restores_handlers(monkeypatch) -> None:
    installed = {}
    original = object()

    monkeypatch.setattr(signal, "getsignal", lambda signum: original)
    monkeypatch.setattr(signal, "signal", lambda signum, handler: installed.__setitem__(signum, handler))

    token = CancelToken()
    monitor = CancellationMonitor(token, signals=(signal.SIGINT,), force_exit=lambda code: None)

    with monitor as active:
        assert active is token
        handler = installed[signal.SIGINT]
        handler(signal.SIGINT, None)
        assert token.is_cancelled is True

    assert installed[signal.SIGINT] is original


def test_monitor_off_main_thread_does_not_install(monkeypatch) -> None:
    calls = []
    monkeypatch.setattr(signal, "signal", lambda *args: calls.append(args))
    monitor = CancellationMonitor(force_exit=lambda code: None)
    result = {}

    def worker() -> None:
        result["token"] = monitor.start()
        monitor.stop()

    thread = threading.Thread(target=worker)
    thread.start()
    thread.join(timeout=2.0)

    assert result["token"] is monitor.token
    assert calls == []
