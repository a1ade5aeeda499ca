"""ViewModel bridging the capture service to Qt signals."""

from __future__ import annotations

from PySide6.QtCore import QObject, Signal
from loguru import logger

from core.errors import CameraUnavailableError
from core.models import CapturePhase
from core.services.capture_service import CaptureService
from core.services.interfaces import (
    CaptureOutcome,
    IClockTimer,
    ICounter,
    IFrameSource,
    ILocationProvider,
    IPersistor,
    ITaskRunner,
)


class CaptureVM(QObject):
    """Capture view-model.

    Service callbacks may arrive on worker threads (capture continuations run
    in the thread pool); they are re-emitted as Qt signals so that connected
    widgets are updated on the GUI thread.
    """

    phaseChanged = Signal(str)  # CapturePhase value
    countdownChanged = Signal(object)  # int | None
    countChanged = Signal(int)
    captureSaved = Signal(str)  # file name
    warning = Signal(str)
    halted = Signal(str)

    def __init__(
        self,
        clock: IClockTimer,
        frame_source: IFrameSource,
        location_provider: ILocationProvider,
        persistor: IPersistor,
        counter: ICounter,
        *,
        app_tag: str,
        interval_seconds: int,
        task_runner: ITaskRunner | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._service = CaptureService(
            clock,
            frame_source,
            location_provider,
            persistor,
            counter,
            app_tag=app_tag,
            interval_seconds=interval_seconds,
            task_runner=task_runner,
            on_saved=self._on_saved,
            on_warning=self.warning.emit,
            on_halted=self.halted.emit,
            on_phase_changed=self._on_phase_changed,
            on_countdown=self.countdownChanged.emit,
        )

    @property
    def service(self) -> CaptureService:
        return self._service

    @property
    def phase(self) -> CapturePhase:
        return self._service.phase

    @property
    def count(self) -> int:
        return self._service.count

    @property
    def interval_seconds(self) -> int:
        return self._service.scheduler.interval_seconds

    def start(self) -> bool:
        """Start the countdown; a missing camera halts instead of raising."""
        try:
            return self._service.start()
        except CameraUnavailableError as ex:
            self._service.halt(str(ex))
            return False

    def stop(self) -> None:
        self._service.stop()

    def set_interval_seconds(self, seconds: int) -> bool:
        return self._service.set_interval_seconds(seconds)

    def reset_count(self) -> None:
        self._service.reset_count()
        self.countChanged.emit(self._service.count)

    def report_camera_error(self, message: str) -> None:
        """Camera failures while running are fatal to the capture cycle."""
        self._service.halt(f"camera error: {message}")

    def _on_phase_changed(self, phase: CapturePhase) -> None:
        logger.debug("Phase -> {}", phase.value)
        self.phaseChanged.emit(phase.value)

    def _on_saved(self, outcome: CaptureOutcome) -> None:
        self.countChanged.emit(outcome.count)
        self.captureSaved.emit(outcome.file_name)
