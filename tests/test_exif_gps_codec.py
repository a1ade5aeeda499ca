from __future__ import annotations

import io
import struct

import piexif
import pytest
from PIL import Image

from core.errors import ExifEncodingError, FormatError
from core.models import ExifRational, GpsCoordinate
from core.services.exif_gps_codec import (
    EXIF_HEADER,
    ExifGpsCodec,
    build_app1_segment,
    decimal_to_rationals,
    iter_header_segments,
    is_exif_segment,
)
from fakes import read_gps_degrees

# Half a metre expressed in degrees of latitude
HALF_METRE_DEG = 0.5 / 111_320


def _gps(data: bytes) -> dict:
    return piexif.load(data)["GPS"]


def _exif_segment_count(data: bytes) -> int:
    return sum(1 for s in iter_header_segments(data) if is_exif_segment(data, s))


def _minimal_jpeg() -> bytes:
    """SOI, a JFIF APP0, an SOS header, some scan bytes and EOI."""
    app0 = b"\xff\xe0" + struct.pack(">H", 16) + b"JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00"
    sos = b"\xff\xda" + struct.pack(">H", 8) + b"\x01\x01\x00\x00\x3f\x00"
    return b"\xff\xd8" + app0 + sos + b"\x12\x34\xff\x00\x56" + b"\xff\xd9"


@pytest.mark.parametrize(
    ("lat", "lon", "refs"),
    [
        (0.0, 0.0, (b"N", b"E")),
        (-33.9, 151.2, (b"S", b"E")),
        (48.85, -2.35, (b"N", b"W")),
    ],
)
def test_hemisphere_references(jpeg_bytes: bytes, lat: float, lon: float, refs) -> None:
    out = ExifGpsCodec().embed_gps(jpeg_bytes, GpsCoordinate(lat, lon))
    gps = _gps(out)
    assert (gps[piexif.GPSIFD.GPSLatitudeRef], gps[piexif.GPSIFD.GPSLongitudeRef]) == refs


def test_decimal_to_rationals_splits_degrees_minutes_seconds() -> None:
    degrees, minutes, seconds = decimal_to_rationals(48.8584)
    assert degrees == ExifRational(48, 1)
    assert minutes == ExifRational(51, 1)
    assert seconds.denominator == 100
    assert abs(float(seconds) - (0.8584 * 60 - 51) * 60) <= 0.01


def test_decimal_to_rationals_ignores_sign() -> None:
    assert decimal_to_rationals(-2.35) == decimal_to_rationals(2.35)


def test_seconds_are_hundredths() -> None:
    # 0.000125 deg -> 0.45 s
    _, _, seconds = decimal_to_rationals(10.000125)
    assert seconds == ExifRational(45, 100)


def test_half_hundredths_round_up() -> None:
    # 2**-7 deg is exactly 28.125 s; Python's round() would give 2812
    _, _, seconds = decimal_to_rationals(10.0078125)
    assert seconds == ExifRational(2813, 100)


def test_zero_denominator_is_rejected() -> None:
    with pytest.raises(ExifEncodingError):
        ExifRational(1, 0)


def test_app1_segment_layout() -> None:
    segment = build_app1_segment(GpsCoordinate(48.8584, 2.2945))
    assert segment[:2] == b"\xff\xe1"
    (length,) = struct.unpack(">H", segment[2:4])
    assert length == len(segment) - 2
    assert segment[4:10] == EXIF_HEADER
    # Big-endian TIFF header pointing at the 0th IFD right after it
    assert segment[10:18] == b"MM\x00\x2a\x00\x00\x00\x08"


def test_insert_without_existing_app1_only_adds_segment(jpeg_bytes: bytes) -> None:
    coordinate = GpsCoordinate(-33.9, 151.2)
    segment = build_app1_segment(coordinate)
    assert _exif_segment_count(jpeg_bytes) == 0

    out = ExifGpsCodec().embed_gps(jpeg_bytes, coordinate)

    assert len(out) == len(jpeg_bytes) + len(segment)
    assert out[:2] == jpeg_bytes[:2]
    assert out[2 : 2 + len(segment)] == segment
    assert out[2 + len(segment) :] == jpeg_bytes[2:]


def test_existing_exif_is_replaced_in_place(jpeg_with_exif: bytes) -> None:
    assert _exif_segment_count(jpeg_with_exif) == 1
    assert piexif.load(jpeg_with_exif)["0th"][piexif.ImageIFD.Make] == b"TestMaker"

    out = ExifGpsCodec().embed_gps(jpeg_with_exif, GpsCoordinate(48.8584, 2.2945))

    assert _exif_segment_count(out) == 1
    loaded = piexif.load(out)
    assert piexif.ImageIFD.Make not in loaded["0th"]
    assert loaded["GPS"][piexif.GPSIFD.GPSLatitude] == ((48, 1), (51, 1), (3024, 100))
    # Everything after the old segment is untouched
    old = next(s for s in iter_header_segments(jpeg_with_exif) if is_exif_segment(jpeg_with_exif, s))
    assert out.endswith(jpeg_with_exif[old.end :])
    assert out[: old.start] == jpeg_with_exif[: old.start]


@pytest.mark.parametrize(
    "coordinate",
    [GpsCoordinate(48.8584, 2.2945), GpsCoordinate(-33.8568, 151.2153), GpsCoordinate(64.1466, -21.9426)],
)
def test_reextracted_position_is_within_half_a_metre(
    jpeg_with_exif: bytes, coordinate: GpsCoordinate
) -> None:
    codec = ExifGpsCodec()
    out = codec.embed_gps(jpeg_with_exif, coordinate)

    decoded = read_gps_degrees(out)
    assert decoded is not None
    assert abs(decoded[0] - coordinate.latitude) < HALF_METRE_DEG
    assert abs(decoded[1] - coordinate.longitude) < HALF_METRE_DEG


def test_output_still_decodes_as_image(jpeg_bytes: bytes) -> None:
    out = ExifGpsCodec().embed_gps(jpeg_bytes, GpsCoordinate(1.5, 2.5))
    with Image.open(io.BytesIO(out)) as im:
        im.load()
        assert im.size == (16, 12)


def test_input_buffer_is_not_mutated(jpeg_bytes: bytes) -> None:
    buffer = bytearray(jpeg_bytes)
    ExifGpsCodec().embed_gps(buffer, GpsCoordinate(10.0, 20.0))
    assert bytes(buffer) == jpeg_bytes


def test_embedding_is_deterministic(jpeg_bytes: bytes) -> None:
    codec = ExifGpsCodec()
    coordinate = GpsCoordinate(12.3456, -65.4321)
    assert codec.embed_gps(jpeg_bytes, coordinate) == codec.embed_gps(jpeg_bytes, coordinate)


def test_handcrafted_container_keeps_scan_bytes() -> None:
    data = _minimal_jpeg()
    out = ExifGpsCodec().embed_gps(data, GpsCoordinate(0.0, 0.0))
    assert out.endswith(data[2:])
    assert read_gps_degrees(out) == (0.0, 0.0)
    assert _gps(out)[piexif.GPSIFD.GPSLatitudeRef] == b"N"


@pytest.mark.parametrize(
    "data",
    [
        b"",
        b"GIF89a\x00\x00",
        b"\x89PNG\r\n\x1a\n",
        b"\xff\xd8",  # SOI only, no scan
        b"\xff\xd8\xff\xd9",  # EOI before any scan
        b"\xff\xd8\xff\xe0\x00\x10JFIF",  # truncated APP0
        b"\xff\xd8\x00\x00\x00",  # garbage where a marker should be
    ],
)
def test_malformed_container_raises_format_error(data: bytes) -> None:
    with pytest.raises(FormatError):
        ExifGpsCodec().embed_gps(data, GpsCoordinate(1.0, 1.0))


def test_embedded_gps_ifd_contents(jpeg_bytes: bytes) -> None:
    out = ExifGpsCodec().embed_gps(jpeg_bytes, GpsCoordinate(-33.9, 151.2))

    assert _gps(out) == {
        piexif.GPSIFD.GPSLatitudeRef: b"S",
        piexif.GPSIFD.GPSLatitude: ((33, 1), (53, 1), (6000, 100)),
        piexif.GPSIFD.GPSLongitudeRef: b"E",
        piexif.GPSIFD.GPSLongitude: ((151, 1), (11, 1), (6000, 100)),
    }


def test_zeroth_ifd_only_points_at_gps(jpeg_bytes: bytes) -> None:
    loaded = piexif.load(ExifGpsCodec().embed_gps(jpeg_bytes, GpsCoordinate(5.0, 6.0)))
    assert set(loaded["0th"]) == {piexif.ImageIFD.GPSTag}
    assert loaded["Exif"] == {}
    assert loaded["1st"] == {}
    assert loaded["thumbnail"] is None


def test_out_of_range_rational_is_an_encoding_error() -> None:
    with pytest.raises(ExifEncodingError):
        ExifRational(2**32, 1)


def test_coordinate_range_is_validated() -> None:
    with pytest.raises(ValueError):
        GpsCoordinate(90.5, 0.0)
    with pytest.raises(ValueError):
        GpsCoordinate(0.0, float("nan"))
