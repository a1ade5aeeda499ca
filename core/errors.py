"""Exception hierarchy shared by the capture core and its adapters."""

from __future__ import annotations


class CaptureError(Exception):
    """Base class for all capture pipeline errors."""


class FrameNotReadyError(CaptureError):
    """The frame source has no frame with valid dimensions yet."""


class EncodeFailureError(CaptureError):
    """The image encoder produced no output for a frame."""


class LocationUnavailableError(CaptureError):
    """No coordinate could be obtained for a capture attempt."""


class FormatError(CaptureError):
    """The input is not a well-formed JPEG container."""


class ExifEncodingError(CaptureError):
    """The EXIF block could not be encoded consistently."""


class CameraUnavailableError(CaptureError):
    """The camera could not be opened or failed while running."""
