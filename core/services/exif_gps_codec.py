"""EXIF GPS embedding for JPEG byte streams.

The EXIF block is produced by piexif with only the GPS IFD populated (the 0th
IFD then holds just the GPS pointer). It is wrapped in an APP1 segment and
spliced into the JPEG container here rather than with `piexif.insert`, which
drops the JFIF APP0 segment. An existing EXIF APP1 segment is replaced in
place; every other byte of the container is copied unchanged.

All functions are pure: inputs are never mutated and a result is either a
complete, valid byte string or an exception.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
import math
import struct

from loguru import logger
import piexif

from core.errors import ExifEncodingError, FormatError
from core.models import ExifRational, GpsCoordinate

# JPEG markers
SOI = b"\xff\xd8"
MARKER_PREFIX = 0xFF
APP1 = 0xE1
SOS = 0xDA
EOI = 0xD9
TEM = 0x01
RST0, RST7 = 0xD0, 0xD7
EXIF_HEADER = b"Exif\x00\x00"
MAX_SEGMENT_LENGTH = 0xFFFF

SECONDS_DENOMINATOR = 100


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def decimal_to_rationals(value: float) -> tuple[ExifRational, ExifRational, ExifRational]:
    """Convert signed decimal degrees to EXIF (degrees, minutes, seconds).

    The sign is dropped; callers encode it as the hemisphere reference.
    Seconds are stored as fixed point with two decimals, halves rounded up.
    """
    absolute = abs(value)
    degrees = math.floor(absolute)
    minutes_decimal = (absolute - degrees) * 60
    minutes = math.floor(minutes_decimal)
    seconds_decimal = (minutes_decimal - minutes) * 60
    return (
        ExifRational(int(degrees), 1),
        ExifRational(int(minutes), 1),
        ExifRational(_round_half_up(seconds_decimal * SECONDS_DENOMINATOR), SECONDS_DENOMINATOR),
    )


def _as_piexif_rationals(parts: tuple[ExifRational, ...]) -> tuple[tuple[int, int], ...]:
    return tuple((p.numerator, p.denominator) for p in parts)


def gps_ifd(coordinate: GpsCoordinate) -> dict[int, object]:
    """piexif GPS IFD holding the four tags that describe `coordinate`."""
    return {
        piexif.GPSIFD.GPSLatitudeRef: coordinate.latitude_ref,
        piexif.GPSIFD.GPSLatitude: _as_piexif_rationals(decimal_to_rationals(coordinate.latitude)),
        piexif.GPSIFD.GPSLongitudeRef: coordinate.longitude_ref,
        piexif.GPSIFD.GPSLongitude: _as_piexif_rationals(decimal_to_rationals(coordinate.longitude)),
    }


def build_exif_payload(coordinate: GpsCoordinate) -> bytes:
    """`Exif\\0\\0` header plus the TIFF block carrying `coordinate`."""
    exif_dict = {
        "0th": {},
        "Exif": {},
        "GPS": gps_ifd(coordinate),
        "Interop": {},
        "1st": {},
        "thumbnail": None,
    }
    try:
        payload = piexif.dump(exif_dict)
    except (ValueError, TypeError, struct.error) as ex:
        raise ExifEncodingError(f"could not encode GPS tags: {ex}") from ex
    return payload


def build_app1_segment(coordinate: GpsCoordinate) -> bytes:
    """Complete APP1 marker segment carrying the EXIF GPS block."""
    payload = build_exif_payload(coordinate)
    length = len(payload) + 2
    if length > MAX_SEGMENT_LENGTH:
        raise ExifEncodingError(f"APP1 segment too large: {length} bytes")
    return bytes((MARKER_PREFIX, APP1)) + struct.pack(">H", length) + payload


@dataclass(frozen=True)
class JpegSegment:
    """Location of one marker segment inside a JPEG byte string.

    `start` points at the first 0xFF of the marker (fill bytes included),
    `body` at the first byte after the length field and `end` one past the
    segment. Standalone markers have `body == end`.
    """

    marker: int
    start: int
    body: int
    end: int


def iter_header_segments(data: bytes) -> Iterator[JpegSegment]:
    """Yield the marker segments between SOI and the first scan (SOS included).

    Raises:
        FormatError: Missing SOI, a truncated segment, or no scan at all.
    """
    if data[:2] != SOI:
        raise FormatError("missing start-of-image marker")
    size = len(data)
    pos = 2
    while True:
        if pos >= size:
            raise FormatError("stream ends before the image scan")
        if data[pos] != MARKER_PREFIX:
            raise FormatError(f"expected marker at offset {pos}, found 0x{data[pos]:02x}")
        start = pos
        while pos < size and data[pos] == MARKER_PREFIX:
            pos += 1
        if pos >= size:
            raise FormatError("truncated marker at end of stream")
        marker = data[pos]
        pos += 1
        if marker == TEM or RST0 <= marker <= RST7:
            yield JpegSegment(marker, start, pos, pos)
            continue
        if marker == EOI:
            raise FormatError("end-of-image reached before any scan data")
        if pos + 2 > size:
            raise FormatError(f"truncated length for marker 0x{marker:02x}")
        (length,) = struct.unpack_from(">H", data, pos)
        end = pos + length
        if length < 2 or end > size:
            raise FormatError(f"marker 0x{marker:02x} length {length} exceeds stream")
        yield JpegSegment(marker, start, pos + 2, end)
        if marker == SOS:
            return
        pos = end


def is_exif_segment(data: bytes, segment: JpegSegment) -> bool:
    return segment.marker == APP1 and data[segment.body : segment.body + 6] == EXIF_HEADER


def splice_app1(data: bytes, app1: bytes) -> bytes:
    """Insert `app1` after SOI, or replace the existing EXIF APP1 in place.

    Additional EXIF APP1 segments (rare, but seen in edited files) are dropped
    so that the result carries exactly one.
    """
    existing = [s for s in iter_header_segments(data) if is_exif_segment(data, s)]
    if not existing:
        return data[:2] + app1 + data[2:]
    logger.debug("Replacing {} existing EXIF segment(s)", len(existing))
    parts = [data[: existing[0].start], app1]
    cursor = existing[0].end
    for extra in existing[1:]:
        parts.append(data[cursor : extra.start])
        cursor = extra.end
    parts.append(data[cursor:])
    return b"".join(parts)



class ExifGpsCodec:
    """Embeds GPS positions in JPEG EXIF metadata."""

    def embed_gps(self, jpeg_bytes: bytes | bytearray | memoryview, coordinate: GpsCoordinate) -> bytes:
        """Return a copy of `jpeg_bytes` carrying `coordinate` as EXIF GPS tags.

        Raises:
            FormatError: `jpeg_bytes` is not a well-formed JPEG container.
            ExifEncodingError: The EXIF block could not be encoded.
        """
        data = bytes(jpeg_bytes)
        app1 = build_app1_segment(coordinate)
        return splice_app1(data, app1)
