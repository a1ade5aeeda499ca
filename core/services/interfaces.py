"""Core service interfaces and shared data structures.

This module defines the capabilities the capture core consumes (clock,
frame source, location, persistence, counter) and the small result objects
passed between the core and the UI layer.
"""

from __future__ import annotations

from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any

from core.models import CaptureSource, GpsCoordinate


@dataclass
class CaptureOutcome:
    """Result of one persisted capture.

    Attributes:
        path: Where the image was written.
        file_name: Base name chosen for the image.
        source: What triggered the capture.
        located: Whether GPS metadata was embedded.
        count: Counter value after this capture was counted.
    """

    path: str
    file_name: str
    source: CaptureSource
    located: bool
    count: int


class IClockTimer:
    """Interface for a cancelable timer facility."""

    def schedule_once(self, delay_ms: int, callback: Callable[[], None]) -> Any:
        """Run `callback` once after `delay_ms`. Returns a cancel handle."""
        raise NotImplementedError

    def schedule_repeating(self, period_ms: int, callback: Callable[[], None]) -> Any:
        """Run `callback` every `period_ms` until cancelled. Returns a cancel handle."""
        raise NotImplementedError

    def cancel(self, handle: Any) -> None:
        """Cancel a handle returned by one of the schedule methods."""
        raise NotImplementedError


class IFrameSource:
    """Interface for the live video source."""

    @property
    def is_available(self) -> bool:
        """True when the source has been opened successfully."""
        raise NotImplementedError

    def current_frame_as_image_bytes(self) -> bytes:
        """Return the latest frame as JPEG bytes.

        Raises:
            FrameNotReadyError: No frame with valid dimensions yet.
            EncodeFailureError: The encoder produced no output.
        """
        raise NotImplementedError


class ILocationProvider:
    """Interface for asynchronous position lookups."""

    def get_current_coordinate(self) -> Future[GpsCoordinate]:
        """Start a lookup; the future fails with `LocationUnavailableError`."""
        raise NotImplementedError


class IPersistor:
    """Interface for storing finished captures."""

    def save(self, data: bytes, suggested_name: str) -> str:
        """Persist `data` under `suggested_name` and return the written path."""
        raise NotImplementedError


class ICounter:
    """Interface for the durable capture counter."""

    @property
    def value(self) -> int:
        """Current counter value."""
        raise NotImplementedError

    def increment(self) -> int:
        """Add one and return the new value."""
        raise NotImplementedError

    def reset(self) -> None:
        """Set the counter back to zero."""
        raise NotImplementedError


class ITaskRunner:
    """Interface for dispatching per-tick continuations off the timer path."""

    def submit(self, fn: Callable[..., None], *args: Any) -> None:
        """Run `fn(*args)` in the background."""
        raise NotImplementedError
