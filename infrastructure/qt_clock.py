"""`IClockTimer` backed by Qt timers on the GUI event loop."""

from __future__ import annotations

from collections.abc import Callable

from PySide6.QtCore import QObject, Qt, QTimer
from loguru import logger

from core.services.interfaces import IClockTimer


class QtClockTimer(IClockTimer):
    """Schedules callbacks with `QTimer`; the QTimer itself is the handle.

    Timers are created in the thread that owns `parent` (the GUI thread in the
    application), so callbacks run on the event loop and never overlap.
    """

    def __init__(self, parent: QObject | None = None) -> None:
        self._parent = parent
        self._live: set[QTimer] = set()

    @property
    def active_count(self) -> int:
        """Number of timers scheduled and not yet cancelled or fired."""
        return len(self._live)

    def schedule_once(self, delay_ms: int, callback: Callable[[], None]) -> QTimer:
        timer = self._make_timer(delay_ms, single_shot=True)

        def _fire() -> None:
            self._release(timer)
            callback()

        timer.timeout.connect(_fire)
        timer.start()
        return timer

    def schedule_repeating(self, period_ms: int, callback: Callable[[], None]) -> QTimer:
        timer = self._make_timer(period_ms, single_shot=False)
        timer.timeout.connect(callback)
        timer.start()
        return timer

    def cancel(self, handle: QTimer) -> None:
        if handle not in self._live:
            logger.debug("Cancel ignored for unknown or finished timer")
            return
        handle.stop()
        self._release(handle)

    def _make_timer(self, interval_ms: int, single_shot: bool) -> QTimer:
        timer = QTimer(self._parent)
        timer.setTimerType(Qt.PreciseTimer)
        timer.setSingleShot(single_shot)
        timer.setInterval(max(0, int(interval_ms)))
        self._live.add(timer)
        return timer

    def _release(self, timer: QTimer) -> None:
        self._live.discard(timer)
        timer.deleteLater()
