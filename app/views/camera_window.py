"""Camera window: live preview plus capture controls.

The window only renders state and forwards user input to `CaptureVM`; all
timing and re-entrancy decisions are made by the capture scheduler, so a
double-clicked Start still yields a single capture cycle.
"""

from __future__ import annotations

from PySide6.QtCore import Qt
from PySide6.QtGui import QCloseEvent, QFont
from PySide6.QtMultimediaWidgets import QVideoWidget
from PySide6.QtWidgets import (
    QHBoxLayout,
    QLabel,
    QMainWindow,
    QMessageBox,
    QPushButton,
    QSizePolicy,
    QSpinBox,
    QVBoxLayout,
    QWidget,
)
from loguru import logger

from app.viewmodels.capture_vm import CaptureVM
from app.views.components.menu_controller import MenuController
from app.views.constants import (
    COUNT_LABEL,
    COUNTDOWN_FONT_PX,
    INTERVAL_MAX_SECONDS,
    INTERVAL_MIN_SECONDS,
    SHUTDOWN_WAIT_MS,
    START_LABEL,
    STARTING_LABEL,
    STATUS_TIMEOUT_MS,
    STOP_LABEL,
    WARNING_TIMEOUT_MS,
    WINDOW_MIN_HEIGHT,
    WINDOW_MIN_WIDTH,
    WINDOW_TITLE,
)
from core.models import CapturePhase
from infrastructure.camera_source import QtCameraFrameSource
from infrastructure.logging import open_in_default_app, open_latest_log, open_log_directory
from infrastructure.task_runner import QtTaskRunner


class CameraWindow(QMainWindow):
    """Main window of the capture application."""

    def __init__(
        self,
        vm: CaptureVM,
        frame_source: QtCameraFrameSource,
        preview: QVideoWidget,
        output_dir: str,
        log_dir: str | None = None,
        task_runner: QtTaskRunner | None = None,
    ) -> None:
        """Create the window.

        Args:
            vm: Capture view-model
            frame_source: Camera source (used for switching devices and shutdown)
            preview: Video widget the camera session renders into
            output_dir: Folder captures are written to
            log_dir: Log folder for the Log menu (default location when None)
            task_runner: Background runner to drain on close
        """
        super().__init__()
        self._vm = vm
        self._frame_source = frame_source
        self._preview = preview
        self._output_dir = output_dir
        self._log_dir = log_dir
        self._runner = task_runner
        self.menu_controller = MenuController(self)

        self._setup_ui()
        self._connect_signals()
        self._apply_phase(self._vm.phase)
        self._on_count_changed(self._vm.count)
        self.statusBar().showMessage("Ready", STATUS_TIMEOUT_MS)

    def _setup_ui(self) -> None:
        self.setWindowTitle(WINDOW_TITLE)
        self.setMinimumSize(WINDOW_MIN_WIDTH, WINDOW_MIN_HEIGHT)

        central = QWidget(self)
        root = QVBoxLayout(central)

        self._preview.setSizePolicy(QSizePolicy.Expanding, QSizePolicy.Expanding)
        self._preview.setAspectRatioMode(Qt.KeepAspectRatio)
        root.addWidget(self._preview, stretch=1)

        self._countdown_label = QLabel("", central)
        self._countdown_label.setAlignment(Qt.AlignCenter)
        font = QFont()
        font.setPixelSize(COUNTDOWN_FONT_PX)
        font.setBold(True)
        self._countdown_label.setFont(font)
        self._countdown_label.hide()
        root.addWidget(self._countdown_label)

        interval_row = QHBoxLayout()
        interval_row.addWidget(QLabel("Capture Interval (seconds)", central))
        self._interval_spin = QSpinBox(central)
        self._interval_spin.setRange(INTERVAL_MIN_SECONDS, INTERVAL_MAX_SECONDS)
        self._interval_spin.setValue(self._vm.interval_seconds)
        interval_row.addWidget(self._interval_spin)
        root.addLayout(interval_row)

        buttons = QHBoxLayout()
        self._switch_button = QPushButton("Switch Camera", central)
        self._switch_button.setVisible(self._frame_source.camera_count > 1)
        buttons.addWidget(self._switch_button)
        self._start_button = QPushButton(START_LABEL, central)
        buttons.addWidget(self._start_button)
        self._stop_button = QPushButton(STOP_LABEL, central)
        buttons.addWidget(self._stop_button)
        root.addLayout(buttons)

        self._count_label = QLabel("", central)
        self._count_label.setAlignment(Qt.AlignCenter)
        root.addWidget(self._count_label)

        self._reset_button = QPushButton("Reset Count", central)
        root.addWidget(self._reset_button)

        self.setCentralWidget(central)
        self.menu_controller.setup_menus()

    def _connect_signals(self) -> None:
        self._start_button.clicked.connect(self._on_start)
        self._stop_button.clicked.connect(self._vm.stop)
        self._switch_button.clicked.connect(self._on_switch_camera)
        self._reset_button.clicked.connect(self._vm.reset_count)
        self._interval_spin.valueChanged.connect(self._on_interval_changed)

        self.menu_controller.connect_actions(
            {
                "start": self._on_start,
                "stop": self._vm.stop,
                "switch_camera": self._on_switch_camera,
                "reset_count": self._vm.reset_count,
                "open_output_directory": lambda: open_in_default_app(self._output_dir),
                "open_latest_log": lambda: open_latest_log(self._log_dir),
                "open_log_directory": lambda: open_log_directory(self._log_dir),
                "exit": self.close,
            }
        )

        self._vm.phaseChanged.connect(lambda value: self._apply_phase(CapturePhase(value)))
        self._vm.countdownChanged.connect(self._on_countdown_changed)
        self._vm.countChanged.connect(self._on_count_changed)
        self._vm.captureSaved.connect(
            lambda name: self.statusBar().showMessage(f"Saved {name}", STATUS_TIMEOUT_MS)
        )
        self._vm.warning.connect(
            lambda message: self.statusBar().showMessage(message, WARNING_TIMEOUT_MS)
        )
        self._vm.halted.connect(self._on_halted)

    # Handlers
    def _on_start(self) -> None:
        if not self._vm.start():
            logger.debug("Start request not accepted (phase={})", self._vm.phase.value)

    def _on_interval_changed(self, value: int) -> None:
        if not self._vm.set_interval_seconds(value):
            self._interval_spin.blockSignals(True)
            self._interval_spin.setValue(self._vm.interval_seconds)
            self._interval_spin.blockSignals(False)

    def _on_switch_camera(self) -> None:
        if self._vm.phase is not CapturePhase.IDLE:
            return
        name = self._frame_source.switch_camera()
        self.statusBar().showMessage(f"Camera: {name}", STATUS_TIMEOUT_MS)

    def _on_countdown_changed(self, remaining: int | None) -> None:
        if remaining is None:
            self._countdown_label.hide()
            return
        self._countdown_label.setText(str(remaining))
        self._countdown_label.show()
        self._start_button.setText(STARTING_LABEL.format(remaining))

    def _on_count_changed(self, count: int) -> None:
        self._count_label.setText(COUNT_LABEL.format(count))

    def _on_halted(self, reason: str) -> None:
        QMessageBox.warning(self, WINDOW_TITLE, f"Capturing stopped:\n{reason}")

    def _apply_phase(self, phase: CapturePhase) -> None:
        idle = phase is CapturePhase.IDLE
        self._interval_spin.setEnabled(idle)
        self._switch_button.setEnabled(idle)
        self._start_button.setVisible(phase is not CapturePhase.CAPTURING)
        self._start_button.setEnabled(idle)
        if idle:
            self._start_button.setText(START_LABEL)
        self._stop_button.setEnabled(not idle)
        for name, enabled in (
            ("start", idle),
            ("stop", not idle),
            ("switch_camera", idle and self._frame_source.camera_count > 1),
        ):
            self.menu_controller.enable_action(name, enabled)

    def closeEvent(self, event: QCloseEvent) -> None:  # noqa: N802
        self._vm.stop()
        self._frame_source.close()
        if self._runner is not None and not self._runner.wait_for_done(SHUTDOWN_WAIT_MS):
            logger.warning("Pending captures did not finish within {} ms", SHUTDOWN_WAIT_MS)
        super().closeEvent(event)
