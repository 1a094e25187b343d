from __future__ import annotations

from types import SimpleNamespace

from burrow.engine import EventStream, ProgressSample, TransferOutcome
from burrow.progress import ProgressReporter


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingUI:
    def __init__(self) -> None:
        self.frames = []
        self.ended = 0

    def carriage(self, message, padding: str = "") -> None:
        self.frames.append(message.plain)

    def end_carriage(self) -> None:
        self.ended += 1


def _reporter(**kwargs):
    ui = RecordingUI()
    clock = FakeClock()
    reporter = ProgressReporter(ui, "en", clock=clock, **kwargs)
    return SimpleNamespace(ui=ui, clock=clock, reporter=reporter)


def test_displayed_percent_never_decreases() -> None:
    ctx = _reporter(min_interval=0.0)
    shown = []
    for done in (40, 40, 70, 60):
        ctx.clock.advance(0.5)
        shown.append(ctx.reporter.observe(ProgressSample(done, 100, ctx.clock.now)))

    assert shown == [40, 40, 70, 70]
    assert ctx.reporter.bytes_done == 70


def test_rendering_is_rate_limited() -> None:
    ctx = _reporter(min_interval=1.0)

    ctx.reporter.observe(ProgressSample(10, 100, 0.1))
    ctx.clock.advance(0.2)
    ctx.reporter.observe(ProgressSample(20, 100, 0.3))
    ctx.clock.advance(1.0)
    ctx.reporter.observe(ProgressSample(30, 100, 1.3))

    assert len(ctx.ui.frames) == 2
    assert ctx.ui.frames[-1].startswith(" 30%")


def test_success_forces_full_bar() -> None:
    ctx = _reporter(min_interval=0.0)
    ctx.reporter.observe(ProgressSample(50, 100, 1.0))

    assert ctx.reporter.finish(TransferOutcome.success(100)) is True

    assert ctx.reporter.displayed_percent == 100
    assert ctx.ui.frames[-1].startswith("100%")
    assert ctx.ui.ended == 1


def test_failure_marks_frame_aborted_and_finishes_once() -> None:
    ctx = _reporter(min_interval=0.0)
    ctx.reporter.observe(ProgressSample(50, 100, 1.0))

    assert ctx.reporter.finish(TransferOutcome.failed("peer disconnected")) is True
    assert ctx.reporter.finish(TransferOutcome.success(100)) is False

    assert ctx.ui.frames[-1].endswith("aborted")
    assert ctx.reporter.displayed_percent == 50
    assert ctx.ui.ended == 1


def test_finish_without_samples_marks_abort() -> None:
    ctx = _reporter()

    assert ctx.reporter.finish(TransferOutcome.cancelled()) is True
    assert ctx.reporter.finish(TransferOutcome.failed("late")) is False

    assert ctx.ui.frames == ["Transfer aborted before any data moved."]
    assert ctx.ui.ended == 1
    assert ctx.reporter.finished is True


def test_finish_without_samples_on_success_draws_nothing() -> None:
    ctx = _reporter()

    assert ctx.reporter.finish(TransferOutcome.success(0)) is True

    assert ctx.ui.frames == []
    assert ctx.ui.ended == 0


def test_finish_without_samples_respects_disabled_reporter() -> None:
    ctx = _reporter(enabled=False)

    ctx.reporter.finish(TransferOutcome.failed("peer disconnected"))

    assert ctx.ui.frames == []


def test_samples_after_finish_are_ignored() -> None:
    ctx = _reporter(min_interval=0.0)
    ctx.reporter.observe(ProgressSample(10, 100, 1.0))
    ctx.reporter.finish(TransferOutcome.cancelled())
    frames = list(ctx.ui.frames)

    ctx.reporter.observe(ProgressSample(90, 100, 2.0))

    assert ctx.ui.frames == frames
    assert ctx.reporter.render(force=True) is False


def test_stall_suffix_after_silence() -> None:
    ctx = _reporter(min_interval=0.0, stall_after=2.0)
    ctx.reporter.observe(ProgressSample(10, 100, 1.0))
    ctx.clock.advance(3.0)

    assert ctx.reporter.render() is True
    assert "stalled" in ctx.ui.frames[-1]


def test_disabled_reporter_stays_silent() -> None:
    ctx = _reporter(min_interval=0.0, enabled=False)
    ctx.reporter.observe(ProgressSample(10, 100, 1.0))
    ctx.reporter.finish(TransferOutcome.success(100))

    assert ctx.ui.frames == []
    assert ctx.ui.ended == 0


def test_handle_consumes_stream_until_outcome() -> None:
    ctx = _reporter(min_interval=0.0)
    stream = EventStream()
    handle = ctx.reporter.attach(stream)
    stream.publish(ProgressSample(25, 100, 0.5))
    outcome = TransferOutcome.success(100)
    stream.finish(outcome)

    assert handle.wait(timeout=2.0) is outcome
    assert handle.done is True
    assert ctx.reporter.finished is True
    assert ctx.ui.frames[-1].startswith("100%")


def test_handle_abandon_closes_display() -> None:
    ctx = _reporter(min_interval=0.0)
    stream = EventStream()
    handle = ctx.reporter.attach(stream)
    stream.publish(ProgressSample(25, 100, 0.5))
    handle.wait(timeout=0.2)

    handle.abandon(TransferOutcome.cancelled())
    stream.finish(TransferOutcome.success(100))

    assert ctx.reporter.finished is True
    assert handle.outcome is None
    assert not ctx.ui.frames or not ctx.ui.frames[-1].startswith("100%")
