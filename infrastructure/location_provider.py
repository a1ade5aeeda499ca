"""Asynchronous position lookups through Qt Positioning."""

from __future__ import annotations

from concurrent.futures import Future
import threading

from PySide6.QtCore import QObject
from PySide6.QtPositioning import QGeoPositionInfo, QGeoPositionInfoSource
from loguru import logger

from core.errors import LocationUnavailableError
from core.models import GpsCoordinate
from core.services.interfaces import ILocationProvider

DEFAULT_TIMEOUT_MS = 10000


class QtLocationProvider(ILocationProvider):
    """`ILocationProvider` over `QGeoPositionInfoSource.requestUpdate`.

    Each call returns its own future. A single position update (or error)
    settles every future pending at that moment, so overlapping requests from
    consecutive ticks never wait on each other.
    """

    def __init__(
        self,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        parent: QObject | None = None,
        source: QGeoPositionInfoSource | None = None,
    ) -> None:
        self._timeout_ms = max(0, int(timeout_ms))
        if source is None:
            source = QGeoPositionInfoSource.createDefaultSource(parent)
        self._source = source
        self._pending: list[Future[GpsCoordinate]] = []
        self._lock = threading.Lock()
        if self._source is None:
            logger.warning("No positioning source available; captures will be untagged")
            return
        logger.info("Positioning source: {}", self._source.sourceName())
        self._source.positionUpdated.connect(self._on_position_updated)
        self._source.errorOccurred.connect(self._on_error)

    @property
    def is_available(self) -> bool:
        return self._source is not None

    def get_current_coordinate(self) -> Future[GpsCoordinate]:
        future: Future[GpsCoordinate] = Future()
        if self._source is None:
            future.set_exception(LocationUnavailableError("no positioning source"))
            return future
        with self._lock:
            self._pending.append(future)
        self._source.requestUpdate(self._timeout_ms)
        return future

    def probe(self) -> Future[GpsCoordinate]:
        """Request one position at startup so the OS can prompt for permission."""
        future = self.get_current_coordinate()

        def _report(done: Future[GpsCoordinate]) -> None:
            error = done.exception()
            if error is None:
                logger.info("Location permission granted")
            else:
                logger.warning("Location permission denied or unavailable: {}", error)

        future.add_done_callback(_report)
        return future

    def _take_pending(self) -> list[Future[GpsCoordinate]]:
        with self._lock:
            pending, self._pending = self._pending, []
        return [f for f in pending if f.set_running_or_notify_cancel()]

    def _on_position_updated(self, info: QGeoPositionInfo) -> None:
        coord = info.coordinate()
        if not info.isValid() or not coord.isValid():
            self._fail_all("invalid position update")
            return
        try:
            coordinate = GpsCoordinate(coord.latitude(), coord.longitude())
        except ValueError as ex:
            self._fail_all(str(ex))
            return
        for future in self._take_pending():
            future.set_result(coordinate)

    def _on_error(self, error: QGeoPositionInfoSource.Error) -> None:
        self._fail_all(f"positioning error: {error}")

    def _fail_all(self, reason: str) -> None:
        pending = self._take_pending()
        if pending:
            logger.debug("Failing {} pending location request(s): {}", len(pending), reason)
        for future in pending:
            future.set_exception(LocationUnavailableError(reason))
