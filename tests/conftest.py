"""Shared pytest configuration and fixtures for the capture test suite."""

from __future__ import annotations

from pathlib import Path
import sys

import pytest

# Ensure the project root is in the path for imports
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from fakes import FakeClock, FakeFrameSource, MemoryCounter, MemoryPersistor, make_jpeg  # noqa: E402


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def jpeg_bytes() -> bytes:
    """A real JPEG without any APP1 segment."""
    return make_jpeg()


@pytest.fixture
def jpeg_with_exif() -> bytes:
    """A real JPEG whose APP1 carries an unrelated EXIF tag (Make)."""
    from PIL import Image

    exif = Image.Exif()
    exif[0x010F] = "TestMaker"
    return make_jpeg(exif=exif.tobytes())


@pytest.fixture
def frame_source(jpeg_bytes: bytes) -> FakeFrameSource:
    return FakeFrameSource(jpeg_bytes)


@pytest.fixture
def persistor() -> MemoryPersistor:
    return MemoryPersistor()


@pytest.fixture
def counter() -> MemoryCounter:
    return MemoryCounter()
