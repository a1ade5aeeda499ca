from __future__ import annotations

from pathlib import Path
import sys

from PySide6.QtMultimediaWidgets import QVideoWidget
from PySide6.QtWidgets import QApplication, QMessageBox
from loguru import logger

from app.viewmodels.capture_vm import CaptureVM
from app.views.camera_window import CameraWindow
from app.views.constants import WINDOW_TITLE
from core.errors import CameraUnavailableError
from infrastructure.camera_source import QtCameraFrameSource
from infrastructure.counter_store import JsonCounterStore
from infrastructure.file_persistor import FilePersistor
from infrastructure.location_provider import QtLocationProvider
from infrastructure.logging import init_logging
from infrastructure.qt_clock import QtClockTimer
from infrastructure.settings import JsonSettings, load_capture_settings
from infrastructure.task_runner import QtTaskRunner

BASE_DIR = Path(__file__).parent


def main() -> int:
    settings = JsonSettings(BASE_DIR / "settings.json")
    config = load_capture_settings(settings)
    log_dir = init_logging(config.log_dir, config.log_level)
    logger.info(
        "Starting: interval={}s output={} counter={}",
        config.interval_seconds,
        config.output_dir,
        config.counter_path,
    )

    app = QApplication(sys.argv)

    preview = QVideoWidget()
    clock = QtClockTimer(app)
    runner = QtTaskRunner()
    frame_source = QtCameraFrameSource(preview=preview, jpeg_quality=config.jpeg_quality)
    location = QtLocationProvider(timeout_ms=config.location_timeout_ms, parent=app)
    vm = CaptureVM(
        clock,
        frame_source,
        location,
        FilePersistor(config.output_dir),
        JsonCounterStore(config.counter_path),
        app_tag=config.app_tag,
        interval_seconds=config.interval_seconds,
        task_runner=runner,
    )
    frame_source.set_error_handler(vm.report_camera_error)

    camera_error: str | None = None
    try:
        frame_source.open()
    except CameraUnavailableError as ex:
        logger.error("Error accessing camera: {}", ex)
        camera_error = str(ex)
    location.probe()

    win = CameraWindow(
        vm=vm,
        frame_source=frame_source,
        preview=preview,
        output_dir=config.output_dir,
        log_dir=str(log_dir),
        task_runner=runner,
    )
    win.show()
    if camera_error:
        QMessageBox.warning(win, WINDOW_TITLE, f"Camera unavailable:\n{camera_error}")

    return app.exec()


if __name__ == "__main__":
    raise SystemExit(main())
