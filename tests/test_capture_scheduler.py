from __future__ import annotations

import pytest

from core.models import CapturePhase, CaptureSource
from core.services.capture_scheduler import CaptureScheduler
from fakes import FakeClock


class Recorder:
    """Collects scheduler callbacks."""

    def __init__(self) -> None:
        self.captures: list[CaptureSource] = []
        self.phases: list[CapturePhase] = []
        self.countdown: list[int | None] = []

    def capture(self, source: CaptureSource) -> None:
        self.captures.append(source)


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


def _scheduler(clock: FakeClock, recorder: Recorder, interval: int = 5) -> CaptureScheduler:
    return CaptureScheduler(
        clock,
        recorder.capture,
        interval_seconds=interval,
        on_phase_changed=recorder.phases.append,
        on_countdown=recorder.countdown.append,
    )


def test_countdown_then_immediate_capture(clock: FakeClock, recorder: Recorder) -> None:
    scheduler = _scheduler(clock, recorder)

    assert scheduler.request_start() is True
    assert scheduler.phase is CapturePhase.COUNTING_DOWN
    assert scheduler.countdown_remaining == 3

    clock.advance(2000)
    assert scheduler.countdown_remaining == 1
    assert recorder.captures == []

    clock.advance(1000)
    assert scheduler.phase is CapturePhase.CAPTURING
    assert scheduler.countdown_remaining is None
    assert recorder.captures == [CaptureSource.IMMEDIATE]
    assert recorder.countdown == [3, 2, 1, None]
    assert recorder.phases == [CapturePhase.COUNTING_DOWN, CapturePhase.CAPTURING]


def test_interval_ticks_after_immediate_capture(clock: FakeClock, recorder: Recorder) -> None:
    scheduler = _scheduler(clock, recorder, interval=2)
    scheduler.request_start()
    clock.advance(3000)

    clock.advance(6000)

    assert recorder.captures == [CaptureSource.IMMEDIATE] + [CaptureSource.INTERVAL] * 3


def test_double_start_in_same_turn_yields_one_cycle(clock: FakeClock, recorder: Recorder) -> None:
    scheduler = _scheduler(clock, recorder)

    assert scheduler.request_start() is True
    assert scheduler.request_start() is False

    clock.advance(3000)

    assert recorder.phases.count(CapturePhase.CAPTURING) == 1
    assert recorder.captures == [CaptureSource.IMMEDIATE]
    assert clock.repeating_count == 1


def test_start_rejected_while_capturing(clock: FakeClock, recorder: Recorder) -> None:
    scheduler = _scheduler(clock, recorder)
    scheduler.request_start()
    clock.advance(3000)

    assert scheduler.request_start() is False
    assert scheduler.begin_capturing() is False
    assert clock.repeating_count == 1


def test_guard_is_held_only_until_recurring_timer_exists(clock: FakeClock, recorder: Recorder) -> None:
    scheduler = _scheduler(clock, recorder)
    scheduler.request_start()
    assert scheduler.is_start_pending is True

    clock.advance(3000)

    assert scheduler.phase is CapturePhase.CAPTURING
    assert scheduler.is_start_pending is False


def test_stop_while_idle_is_a_noop(clock: FakeClock, recorder: Recorder) -> None:
    scheduler = _scheduler(clock, recorder)

    scheduler.request_stop()
    scheduler.request_stop()

    assert scheduler.phase is CapturePhase.IDLE
    assert recorder.phases == []
    assert clock.cancelled == []


def test_stop_mid_countdown_cancels_without_capturing(clock: FakeClock, recorder: Recorder) -> None:
    scheduler = _scheduler(clock, recorder)
    scheduler.request_start()
    clock.advance(1500)

    scheduler.request_stop()
    clock.advance(60_000)

    assert scheduler.phase is CapturePhase.IDLE
    assert scheduler.countdown_remaining is None
    assert recorder.captures == []
    assert clock.live_handles == []
    assert recorder.countdown[-1] is None


def test_stop_while_capturing_cancels_interval(clock: FakeClock, recorder: Recorder) -> None:
    scheduler = _scheduler(clock, recorder)
    scheduler.request_start()
    clock.advance(3000)

    scheduler.request_stop()
    clock.advance(60_000)

    assert recorder.captures == [CaptureSource.IMMEDIATE]
    assert clock.live_handles == []
    assert scheduler.is_start_pending is False


def test_restart_after_stop(clock: FakeClock, recorder: Recorder) -> None:
    scheduler = _scheduler(clock, recorder)
    scheduler.request_start()
    clock.advance(3000)
    scheduler.request_stop()

    assert scheduler.request_start() is True
    clock.advance(3000)

    assert scheduler.phase is CapturePhase.CAPTURING
    assert recorder.captures == [CaptureSource.IMMEDIATE, CaptureSource.IMMEDIATE]
    assert clock.repeating_count == 1


def test_stale_timers_are_ignored_after_stop(recorder: Recorder) -> None:
    # A clock whose cancel has no effect: old callbacks keep firing
    leaky = FakeClock(cancel_works=False)
    scheduler = _scheduler(leaky, recorder, interval=1)
    scheduler.request_start()
    leaky.advance(3000)
    scheduler.request_stop()

    leaky.advance(5000)
    assert recorder.captures == [CaptureSource.IMMEDIATE]

    scheduler.request_start()
    leaky.advance(3000)
    leaky.advance(2000)
    # Only the new cycle's immediate + two interval ticks count
    assert recorder.captures == [CaptureSource.IMMEDIATE] * 2 + [CaptureSource.INTERVAL] * 2


def test_interval_change_only_while_idle(clock: FakeClock, recorder: Recorder) -> None:
    scheduler = _scheduler(clock, recorder)

    assert scheduler.set_interval_seconds(0) is True
    assert scheduler.interval_seconds == 1
    assert scheduler.set_interval_seconds(7) is True

    scheduler.request_start()
    assert scheduler.set_interval_seconds(2) is False
    clock.advance(3000)
    assert scheduler.set_interval_seconds(2) is False
    assert scheduler.interval_seconds == 7

    clock.advance(7000)
    assert recorder.captures == [CaptureSource.IMMEDIATE, CaptureSource.INTERVAL]


def test_begin_capturing_directly(clock: FakeClock, recorder: Recorder) -> None:
    scheduler = _scheduler(clock, recorder)

    assert scheduler.begin_capturing() is True
    assert scheduler.begin_capturing() is False

    assert recorder.captures == [CaptureSource.IMMEDIATE]
    assert clock.repeating_count == 1


def test_failing_capture_does_not_stop_schedule(clock: FakeClock) -> None:
    calls: list[CaptureSource] = []

    def flaky(source: CaptureSource) -> None:
        calls.append(source)
        if len(calls) == 2:
            raise RuntimeError("boom")

    scheduler = CaptureScheduler(clock, flaky, interval_seconds=1)
    scheduler.request_start()
    clock.advance(3000)
    clock.advance(3000)

    assert len(calls) == 4
    assert scheduler.phase is CapturePhase.CAPTURING


def test_stop_from_inside_immediate_capture(clock: FakeClock) -> None:
    holder: dict[str, CaptureScheduler] = {}

    def stop_now(_source: CaptureSource) -> None:
        holder["s"].request_stop()

    scheduler = CaptureScheduler(clock, stop_now)
    holder["s"] = scheduler
    scheduler.request_start()
    clock.advance(3000)

    assert scheduler.phase is CapturePhase.IDLE
    assert clock.live_handles == []
    assert scheduler.request_start() is True
