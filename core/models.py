"""Core domain models for capture sessions, coordinates and EXIF values."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import math

from core.errors import ExifEncodingError

UINT32_MAX = 0xFFFFFFFF


class CapturePhase(str, Enum):
    """Externally visible phase of the capture session."""

    IDLE = "idle"
    COUNTING_DOWN = "counting_down"
    CAPTURING = "capturing"


class CaptureSource(str, Enum):
    """What triggered a single capture."""

    IMMEDIATE = "immediate"
    INTERVAL = "interval"


@dataclass(frozen=True)
class GpsCoordinate:
    """A WGS84 position in signed decimal degrees."""

    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        for name, value, bound in (
            ("latitude", self.latitude, 90.0),
            ("longitude", self.longitude, 180.0),
        ):
            if not math.isfinite(value) or abs(value) > bound:
                raise ValueError(f"{name} out of range: {value!r}")

    @property
    def latitude_ref(self) -> str:
        """Hemisphere letter for the latitude; 0.0 counts as north."""
        return "N" if self.latitude >= 0 else "S"

    @property
    def longitude_ref(self) -> str:
        """Hemisphere letter for the longitude; 0.0 counts as east."""
        return "E" if self.longitude >= 0 else "W"


@dataclass(frozen=True)
class ExifRational:
    """Unsigned EXIF RATIONAL (two 32-bit integers)."""

    numerator: int
    denominator: int

    def __post_init__(self) -> None:
        if self.denominator == 0:
            raise ExifEncodingError("rational denominator must not be zero")
        for part in (self.numerator, self.denominator):
            if part < 0 or part > UINT32_MAX:
                raise ExifEncodingError(f"rational component out of range: {part}")

    def __float__(self) -> float:
        return self.numerator / self.denominator


@dataclass
class TickContext:
    """State owned by a single capture tick.

    Created when the frame is snapshotted and discarded once the result has
    been persisted (or the attempt dropped). Nothing here is shared between
    ticks.
    """

    source: CaptureSource
    timestamp_ms: int
    frame: bytes
    coordinate: GpsCoordinate | None = None
    file_name: str | None = None
