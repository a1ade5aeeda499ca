from __future__ import annotations

from collections.abc import Callable
from typing import Any

from PySide6.QtCore import QRunnable, QThreadPool
from loguru import logger

from core.services.interfaces import ITaskRunner


class _CaptureTask(QRunnable):
    """QRunnable running one capture continuation (embed, save, count).

    This is the outermost boundary of a background tick: anything the
    continuation did not handle itself is logged here and goes no further.
    """

    def __init__(self, fn: Callable[..., None], args: tuple[Any, ...]) -> None:
        super().__init__()
        self._fn = fn
        self._args = args

    def run(self) -> None:  # type: ignore[override]
        try:
            self._fn(*self._args)
        except Exception:  # pragma: no cover - GUI background task  # pylint: disable=broad-exception-caught
            logger.exception("Capture task failed")


class QtTaskRunner(ITaskRunner):
    """Dispatches capture continuations to the global thread pool."""

    def __init__(self, pool: QThreadPool | None = None) -> None:
        self._pool = pool or QThreadPool.globalInstance()

    def submit(self, fn: Callable[..., None], *args: Any) -> None:
        self._pool.start(_CaptureTask(fn, args))

    def wait_for_done(self, timeout_ms: int = -1) -> bool:
        """Block until queued tasks finish; used on shutdown."""
        return self._pool.waitForDone(timeout_ms)
