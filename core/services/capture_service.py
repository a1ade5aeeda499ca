"""Capture orchestration: frame snapshot, location, EXIF tagging, persistence.

`CaptureService` wires a `CaptureScheduler` to the external capabilities. Each
scheduler tick snapshots a frame synchronously, starts an asynchronous
location lookup and attaches a continuation that embeds GPS, saves and counts
the image. Per-tick failures are logged and contained; they never stop the
schedule.
"""

from __future__ import annotations

from collections.abc import Callable
from concurrent.futures import CancelledError, Future
import functools
import threading
import time
from typing import Any

from loguru import logger

from core.errors import (
    CameraUnavailableError,
    EncodeFailureError,
    ExifEncodingError,
    FormatError,
    FrameNotReadyError,
    LocationUnavailableError,
)
from core.models import CapturePhase, CaptureSource, GpsCoordinate, TickContext
from core.services.capture_scheduler import DEFAULT_INTERVAL_SECONDS, CaptureScheduler
from core.services.exif_gps_codec import ExifGpsCodec
from core.services.interfaces import (
    CaptureOutcome,
    IClockTimer,
    ICounter,
    IFrameSource,
    ILocationProvider,
    IPersistor,
    ITaskRunner,
)

DEFAULT_APP_TAG = "roadmetrics"


def build_capture_filename(app_tag: str, timestamp_ms: int, located: bool) -> str:
    """File name for a capture: `{tag}_{millis}.jpg` or `{tag}_{millis}_no_location.jpg`."""
    if located:
        return f"{app_tag}_{timestamp_ms}.jpg"
    return f"{app_tag}_{timestamp_ms}_no_location.jpg"


def _unix_time_ms() -> int:
    return int(time.time() * 1000)


class InlineTaskRunner(ITaskRunner):
    """Runs continuations on the calling thread."""

    def submit(self, fn: Callable[..., None], *args: Any) -> None:
        fn(*args)


class CaptureService:
    """Composes the scheduler, codec and capture collaborators."""

    def __init__(
        self,
        clock: IClockTimer,
        frame_source: IFrameSource,
        location_provider: ILocationProvider,
        persistor: IPersistor,
        counter: ICounter,
        *,
        codec: ExifGpsCodec | None = None,
        app_tag: str = DEFAULT_APP_TAG,
        interval_seconds: int = DEFAULT_INTERVAL_SECONDS,
        task_runner: ITaskRunner | None = None,
        now_ms: Callable[[], int] | None = None,
        on_saved: Callable[[CaptureOutcome], None] | None = None,
        on_warning: Callable[[str], None] | None = None,
        on_halted: Callable[[str], None] | None = None,
        on_phase_changed: Callable[[CapturePhase], None] | None = None,
        on_countdown: Callable[[int | None], None] | None = None,
    ) -> None:
        """Create a CaptureService.

        Args:
            clock: Timer facility driving countdown and interval ticks.
            frame_source: Live camera frames as JPEG bytes.
            location_provider: Asynchronous coordinate lookups.
            persistor: Destination for finished images.
            counter: Durable capture counter.
            codec: EXIF GPS codec (defaults to `ExifGpsCodec`).
            app_tag: Prefix of generated file names.
            interval_seconds: Initial capture interval.
            task_runner: Where per-tick continuations run (inline by default).
            now_ms: Clock for file-name timestamps (unix milliseconds).
            on_saved: Called after each persisted capture.
            on_warning: Called with a message for each contained failure.
            on_halted: Called when capturing stops because of a fatal error.
            on_phase_changed: Forwarded to the scheduler.
            on_countdown: Forwarded to the scheduler.
        """
        self._frame_source = frame_source
        self._location = location_provider
        self._persistor = persistor
        self._counter = counter
        self._codec = codec or ExifGpsCodec()
        self._app_tag = app_tag
        self._runner = task_runner or InlineTaskRunner()
        self._now_ms = now_ms or _unix_time_ms
        self._on_saved = on_saved
        self._on_warning = on_warning
        self._on_halted = on_halted
        self._lock = threading.Lock()
        self._in_flight = 0
        self.scheduler = CaptureScheduler(
            clock,
            self.capture,
            interval_seconds=interval_seconds,
            on_phase_changed=on_phase_changed,
            on_countdown=on_countdown,
        )

    @property
    def phase(self) -> CapturePhase:
        return self.scheduler.phase

    @property
    def count(self) -> int:
        return self._counter.value

    @property
    def captures_in_flight(self) -> int:
        """Continuations dispatched but not finished yet."""
        with self._lock:
            return self._in_flight

    # Controls
    def start(self) -> bool:
        """Request the countdown. Raises `CameraUnavailableError` without a camera."""
        if not self._frame_source.is_available:
            raise CameraUnavailableError("camera is not available")
        return self.scheduler.request_start()

    def stop(self) -> None:
        self.scheduler.request_stop()

    def set_interval_seconds(self, seconds: int) -> bool:
        return self.scheduler.set_interval_seconds(seconds)

    def reset_count(self) -> None:
        self._counter.reset()
        logger.info("Capture counter reset")

    def halt(self, reason: str) -> None:
        """Stop capturing because of a fatal resource failure and report it."""
        logger.error("Capturing halted: {}", reason)
        self.scheduler.request_stop()
        if self._on_halted is not None:
            self._on_halted(reason)

    # Per tick
    def capture(self, source: CaptureSource) -> None:
        """Scheduler callback: snapshot a frame and dispatch its continuation."""
        try:
            frame = self._frame_source.current_frame_as_image_bytes()
        except FrameNotReadyError as ex:
            logger.warning("Capture ({}) skipped: {}", source.value, ex)
            self._warn(f"Frame not ready: {ex}")
            return
        except EncodeFailureError as ex:
            logger.error("Capture ({}) dropped: {}", source.value, ex)
            self._warn(f"Could not encode frame: {ex}")
            return

        ctx = TickContext(source=source, timestamp_ms=self._now_ms(), frame=frame)
        try:
            future = self._location.get_current_coordinate()
        except LocationUnavailableError as ex:
            future = Future()
            future.set_exception(ex)

        with self._lock:
            self._in_flight += 1
        logger.debug("Capture ({}) at {}: {} bytes", source.value, ctx.timestamp_ms, len(frame))
        future.add_done_callback(functools.partial(self._dispatch, ctx))

    def _dispatch(self, ctx: TickContext, future: Future[GpsCoordinate]) -> None:
        try:
            self._runner.submit(self._finish_tick, ctx, future)
        except Exception:  # pylint: disable=broad-exception-caught
            # Called from a Future done-callback
            logger.exception("Could not dispatch capture {}", ctx.timestamp_ms)
            with self._lock:
                self._in_flight -= 1
            self._warn("Could not process capture")

    def _finish_tick(self, ctx: TickContext, future: Future[GpsCoordinate]) -> None:
        try:
            self._complete(ctx, future)
        finally:
            with self._lock:
                self._in_flight -= 1

    def _complete(self, ctx: TickContext, future: Future[GpsCoordinate]) -> None:
        try:
            ctx.coordinate = future.result()
        except (LocationUnavailableError, CancelledError) as ex:
            logger.warning("Location unavailable for capture {}: {}", ctx.timestamp_ms, ex)
            self._warn("Location unavailable, saving without GPS")

        data = ctx.frame
        if ctx.coordinate is not None:
            try:
                data = self._codec.embed_gps(ctx.frame, ctx.coordinate)
            except (FormatError, ExifEncodingError) as ex:
                logger.error("Capture {} dropped, EXIF embedding failed: {}", ctx.timestamp_ms, ex)
                self._warn(f"Could not tag image: {ex}")
                return

        located = ctx.coordinate is not None
        ctx.file_name = build_capture_filename(self._app_tag, ctx.timestamp_ms, located)
        try:
            path = self._persistor.save(data, ctx.file_name)
        except OSError as ex:
            logger.error("Saving {} failed: {}", ctx.file_name, ex)
            self._warn(f"Could not save {ctx.file_name}")
            return

        try:
            count = self._counter.increment()
        except OSError as ex:
            logger.error("Counter update failed after saving {}: {}", ctx.file_name, ex)
            count = self._counter.value

        logger.info("Saved {} ({}, count={})", path, ctx.source.value, count)
        if self._on_saved is not None:
            self._on_saved(
                CaptureOutcome(
                    path=path,
                    file_name=ctx.file_name,
                    source=ctx.source,
                    located=located,
                    count=count,
                )
            )

    def _warn(self, message: str) -> None:
        if self._on_warning is not None:
            self._on_warning(message)
