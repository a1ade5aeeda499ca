"""Live camera frames through Qt Multimedia.

The frame source keeps a reference to the most recent video frame delivered
to the preview's video sink and converts it to JPEG only when a capture asks
for it. The camera device is owned here; the capture path only samples it.
"""

from __future__ import annotations

from collections.abc import Callable
import threading

from PySide6.QtCore import QBuffer, QByteArray, QIODevice, QObject
from PySide6.QtGui import QImage
from PySide6.QtMultimedia import (
    QCamera,
    QCameraDevice,
    QMediaCaptureSession,
    QMediaDevices,
    QVideoFrame,
    QVideoSink,
)
from PySide6.QtMultimediaWidgets import QVideoWidget
from loguru import logger

from core.errors import CameraUnavailableError, EncodeFailureError, FrameNotReadyError
from core.services.interfaces import IFrameSource

DEFAULT_JPEG_QUALITY = 90


def encode_jpeg(image: QImage, quality: int = DEFAULT_JPEG_QUALITY) -> bytes:
    """Encode `image` as JPEG bytes.

    Raises:
        FrameNotReadyError: The image is null or has a zero dimension.
        EncodeFailureError: Qt's JPEG writer produced no output.
    """
    if image.isNull() or image.width() == 0 or image.height() == 0:
        raise FrameNotReadyError(f"frame has no valid dimensions ({image.width()}x{image.height()})")
    if image.format() not in (QImage.Format_RGB32, QImage.Format_RGB888):
        image = image.convertToFormat(QImage.Format_RGB32)
    payload = QByteArray()
    buffer = QBuffer(payload)
    buffer.open(QIODevice.WriteOnly)
    try:
        ok = image.save(buffer, "JPEG", quality)
    finally:
        buffer.close()
    data = bytes(payload.data())
    if not ok or not data:
        raise EncodeFailureError("JPEG writer returned no data")
    return data


class QtCameraFrameSource(IFrameSource):
    """`IFrameSource` over `QCamera` and a `QMediaCaptureSession`.

    When `preview` is given the session renders into it and frames are taken
    from its video sink; otherwise a private `QVideoSink` is used.
    """

    def __init__(
        self,
        preview: QVideoWidget | None = None,
        jpeg_quality: int = DEFAULT_JPEG_QUALITY,
        on_error: Callable[[str], None] | None = None,
        parent: QObject | None = None,
    ) -> None:
        self._quality = max(1, min(100, int(jpeg_quality)))
        self._on_error = on_error
        self._parent = parent
        self._session = QMediaCaptureSession(parent)
        if preview is not None:
            self._session.setVideoOutput(preview)
            self._sink: QVideoSink = preview.videoSink()
        else:
            self._sink = QVideoSink(parent)
            self._session.setVideoSink(self._sink)
        self._sink.videoFrameChanged.connect(self._on_frame)
        self._camera: QCamera | None = None
        self._devices: list[QCameraDevice] = []
        self._device_index = -1
        self._failed = False
        self._frame: QVideoFrame | None = None
        self._frame_lock = threading.Lock()

    def set_error_handler(self, handler: Callable[[str], None] | None) -> None:
        """Install the callback invoked with a message when the camera fails."""
        self._on_error = handler

    # Device handling
    @property
    def is_available(self) -> bool:
        return self._camera is not None and not self._failed

    @property
    def camera_count(self) -> int:
        return len(self._devices)

    @property
    def current_device_name(self) -> str:
        if 0 <= self._device_index < len(self._devices):
            return self._devices[self._device_index].description()
        return ""

    def open(self) -> None:
        """Enumerate cameras and start the preferred one.

        With several cameras a back-facing device is preferred, matching the
        usual dash-mount setup on phones and tablets.

        Raises:
            CameraUnavailableError: No camera device exists.
        """
        self._devices = list(QMediaDevices.videoInputs())
        if not self._devices:
            raise CameraUnavailableError("no camera device found")
        logger.info("Cameras: {}", ", ".join(d.description() for d in self._devices))
        index = 0
        if len(self._devices) > 1:
            for i, device in enumerate(self._devices):
                if device.position() == QCameraDevice.Position.BackFace:
                    index = i
                    break
        self._start_device(index)

    def switch_camera(self) -> str:
        """Move to the next camera device and return its name."""
        if len(self._devices) < 2:
            return self.current_device_name
        self._start_device((self._device_index + 1) % len(self._devices))
        return self.current_device_name

    def close(self) -> None:
        if self._camera is not None:
            self._camera.stop()
            self._camera = None
        with self._frame_lock:
            self._frame = None

    def _start_device(self, index: int) -> None:
        self.close()
        device = self._devices[index]
        camera = QCamera(device, self._parent)
        camera.errorOccurred.connect(self._on_camera_error)
        self._session.setCamera(camera)
        self._camera = camera
        self._device_index = index
        self._failed = False
        camera.start()
        logger.info("Camera started: {}", device.description())

    def _on_camera_error(self, error: QCamera.Error, message: str) -> None:
        if error == QCamera.Error.NoError:
            return
        self._failed = True
        logger.error("Camera error {}: {}", error, message)
        if self._on_error is not None:
            self._on_error(message or str(error))

    def _on_frame(self, frame: QVideoFrame) -> None:
        with self._frame_lock:
            self._frame = QVideoFrame(frame)

    # Capture
    def current_frame_as_image_bytes(self) -> bytes:
        with self._frame_lock:
            frame = self._frame
        if self._camera is None or frame is None or not frame.isValid():
            raise FrameNotReadyError("no video frame received yet")
        return encode_jpeg(frame.toImage(), self._quality)
