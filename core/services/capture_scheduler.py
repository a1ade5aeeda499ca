"""Countdown and recurring-capture state machine.

The scheduler is the single authority on whether a capture cycle is active.
It drives two independently cancelable timers (countdown, recurring capture)
through an injected `IClockTimer` and reports each capture instant through a
callback. It knows nothing about cameras, locations or files.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
import functools
import itertools
import threading
from typing import Any, Union

from loguru import logger

from core.models import CapturePhase, CaptureSource
from core.services.interfaces import IClockTimer

COUNTDOWN_START = 3
COUNTDOWN_TICK_MS = 1000
DEFAULT_INTERVAL_SECONDS = 5


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class CountingDown:
    remaining: int
    timer: Any
    cycle: int


@dataclass(frozen=True)
class Capturing:
    timer: Any
    cycle: int


SessionState = Union[Idle, CountingDown, Capturing]


class CaptureScheduler:
    """Owns the countdown/capture timer lifecycle.

    `on_capture(source)` is invoked once immediately when capturing begins and
    then once per interval. Exceptions it raises are logged and contained to
    that tick. `on_phase_changed(phase)` and `on_countdown(remaining)` are
    optional observers for the UI.
    """

    def __init__(
        self,
        clock: IClockTimer,
        on_capture: Callable[[CaptureSource], None],
        *,
        interval_seconds: int = DEFAULT_INTERVAL_SECONDS,
        countdown_start: int = COUNTDOWN_START,
        on_phase_changed: Callable[[CapturePhase], None] | None = None,
        on_countdown: Callable[[int | None], None] | None = None,
    ) -> None:
        self._clock = clock
        self._on_capture = on_capture
        self._on_phase_changed = on_phase_changed
        self._on_countdown = on_countdown
        self._interval_seconds = max(1, int(interval_seconds))
        self._countdown_start = max(1, int(countdown_start))
        self._state: SessionState = Idle()
        # Held from an accepted start until its recurring timer is installed
        self._start_guard = threading.Lock()
        self._guard_owned = False
        self._cycles = itertools.count(1)

    # Read-only state
    @property
    def phase(self) -> CapturePhase:
        if isinstance(self._state, CountingDown):
            return CapturePhase.COUNTING_DOWN
        if isinstance(self._state, Capturing):
            return CapturePhase.CAPTURING
        return CapturePhase.IDLE

    @property
    def countdown_remaining(self) -> int | None:
        """Seconds left in the countdown, or None outside CountingDown."""
        if isinstance(self._state, CountingDown):
            return self._state.remaining
        return None

    @property
    def interval_seconds(self) -> int:
        return self._interval_seconds

    @property
    def is_start_pending(self) -> bool:
        """True while a start holds the re-entrancy guard."""
        return self._guard_owned

    # Operations
    def request_start(self) -> bool:
        """Begin the countdown. Returns False when the request is rejected."""
        if not isinstance(self._state, Idle):
            logger.warning("Start rejected: capture cycle already {}", self.phase.value)
            return False
        if not self._acquire_guard():
            logger.warning("Start rejected: another start is in progress")
            return False

        cycle = next(self._cycles)
        timer = self._clock.schedule_repeating(
            COUNTDOWN_TICK_MS, functools.partial(self._on_countdown_tick, cycle)
        )
        self._state = CountingDown(remaining=self._countdown_start, timer=timer, cycle=cycle)
        logger.info("Countdown started ({}s)", self._countdown_start)
        self._notify_phase()
        self._notify_countdown(self._countdown_start)
        return True

    def begin_capturing(self) -> bool:
        """Enter Capturing directly. Returns False when a cycle is already active."""
        if isinstance(self._state, Capturing):
            logger.warning("begin_capturing ignored: already capturing")
            return False
        if isinstance(self._state, CountingDown) or not self._acquire_guard():
            logger.warning("begin_capturing ignored: a start is already in progress")
            return False
        self._start_capturing(next(self._cycles))
        return True

    def request_stop(self) -> None:
        """Cancel every live timer and return to Idle. Safe from any phase."""
        state = self._state
        if isinstance(state, Idle) and not self._guard_owned:
            return
        if isinstance(state, (CountingDown, Capturing)) and state.timer is not None:
            self._clock.cancel(state.timer)
            logger.debug("Cancelled {} timer for cycle {}", self.phase.value, state.cycle)
        was_counting = isinstance(state, CountingDown)
        self._state = Idle()
        self._release_guard()
        logger.info("Capture stopped")
        if was_counting:
            self._notify_countdown(None)
        self._notify_phase()

    def set_interval_seconds(self, seconds: int) -> bool:
        """Change the capture interval; only allowed while Idle."""
        if not isinstance(self._state, Idle):
            logger.warning("Interval change rejected while {}", self.phase.value)
            return False
        self._interval_seconds = max(1, int(seconds))
        logger.debug("Capture interval set to {}s", self._interval_seconds)
        return True

    # Internals
    def _acquire_guard(self) -> bool:
        if not self._start_guard.acquire(blocking=False):
            return False
        self._guard_owned = True
        return True

    def _release_guard(self) -> None:
        if self._guard_owned:
            self._guard_owned = False
            self._start_guard.release()

    def _on_countdown_tick(self, cycle: int) -> None:
        state = self._state
        if not isinstance(state, CountingDown) or state.cycle != cycle:
            logger.debug("Stale countdown tick for cycle {} ignored", cycle)
            return
        remaining = state.remaining - 1
        if remaining > 0:
            self._state = CountingDown(remaining=remaining, timer=state.timer, cycle=cycle)
            self._notify_countdown(remaining)
            return
        # Cancel before switching so no countdown handle outlives the phase
        self._clock.cancel(state.timer)
        self._notify_countdown(None)
        self._start_capturing(cycle)

    def _start_capturing(self, cycle: int) -> None:
        # Timer slot is filled right below; the immediate capture only needs the phase
        self._state = Capturing(timer=None, cycle=cycle)
        self._notify_phase()
        logger.info("Capturing every {}s", self._interval_seconds)
        self._fire(CaptureSource.IMMEDIATE)
        if not isinstance(self._state, Capturing) or self._state.cycle != cycle:
            # Stopped from inside the immediate capture
            return
        timer = self._clock.schedule_repeating(
            self._interval_seconds * 1000, functools.partial(self._on_interval_tick, cycle)
        )
        self._state = Capturing(timer=timer, cycle=cycle)
        self._release_guard()

    def _on_interval_tick(self, cycle: int) -> None:
        state = self._state
        if not isinstance(state, Capturing) or state.cycle != cycle or state.timer is None:
            logger.warning("Interval tick skipped: timer for cycle {} is no longer live", cycle)
            return
        self._fire(CaptureSource.INTERVAL)

    def _fire(self, source: CaptureSource) -> None:
        try:
            self._on_capture(source)
        except Exception:  # pylint: disable=broad-exception-caught
            logger.exception("Capture ({}) failed; schedule continues", source.value)

    def _notify_phase(self) -> None:
        if self._on_phase_changed is not None:
            self._on_phase_changed(self.phase)

    def _notify_countdown(self, remaining: int | None) -> None:
        if self._on_countdown is not None:
            self._on_countdown(remaining)
