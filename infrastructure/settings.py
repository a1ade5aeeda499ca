"""Settings access helpers for JSON-based configuration."""

from __future__ import annotations

from dataclasses import dataclass
import json
import os
from pathlib import Path
from typing import Any

from loguru import logger

DEFAULT_OUTPUT_DIR = str(Path.home() / "Pictures" / "RoadMetrics")
DEFAULT_COUNTER_PATH = str(Path.home() / ".roadmetrics" / "counter.json")


class JsonSettings:
    """Lightweight JSON settings reader with dotted-key access."""

    def __init__(self, settings_path: str | Path) -> None:
        self._path = Path(settings_path)
        if not self._path.exists():
            raise FileNotFoundError(f"settings.json not found: {self._path}")
        with self._path.open("r", encoding="utf-8") as f:
            self._data = json.load(f)

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str, default: Any | None = None) -> Any:
        """Return value for dotted `key`, or `default` if not present."""
        parts = key.split(".")
        node: Any = self._data
        for part in parts:
            if isinstance(node, dict) and part in node:
                node = node[part]
            else:
                return default
        return node

    def get_int(self, key: str, default: int, minimum: int | None = None) -> int:
        """Return `key` as int, falling back to `default` on missing/invalid values."""
        raw = self.get(key, default)
        try:
            value = int(raw)
        except (ValueError, TypeError):
            logger.warning("Invalid integer for {}: {!r}, using {}", key, raw, default)
            value = default
        if minimum is not None and value < minimum:
            logger.warning("{} below minimum {}: {}", key, minimum, value)
            value = minimum
        return value

    def get_path(self, key: str, default: str) -> str:
        """Return `key` as a path with `~` and environment variables expanded."""
        raw = self.get(key, default)
        if not isinstance(raw, str) or not raw.strip():
            raw = default
        return os.path.expanduser(os.path.expandvars(raw))


@dataclass
class CaptureSettings:
    """Typed view of the values the capture application reads from settings.json."""

    app_tag: str = "roadmetrics"
    interval_seconds: int = 5
    jpeg_quality: int = 90
    output_dir: str = DEFAULT_OUTPUT_DIR
    location_timeout_ms: int = 10000
    counter_path: str = DEFAULT_COUNTER_PATH
    log_dir: str | None = None
    log_level: str = "INFO"


def load_capture_settings(settings: JsonSettings) -> CaptureSettings:
    """Build `CaptureSettings` from `settings`, applying defaults and bounds."""
    defaults = CaptureSettings()
    app_tag = str(settings.get("app_tag", defaults.app_tag) or defaults.app_tag)
    quality = settings.get_int("capture.jpeg_quality", defaults.jpeg_quality, minimum=1)
    log_dir = settings.get_path("logging.dir", "") if settings.get("logging.dir") else None
    return CaptureSettings(
        app_tag=app_tag,
        interval_seconds=settings.get_int(
            "capture.interval_seconds", defaults.interval_seconds, minimum=1
        ),
        jpeg_quality=min(100, quality),
        output_dir=settings.get_path("capture.output_dir", defaults.output_dir),
        location_timeout_ms=settings.get_int(
            "location.timeout_ms", defaults.location_timeout_ms, minimum=0
        ),
        counter_path=settings.get_path("counter.path", defaults.counter_path),
        log_dir=log_dir or None,
        log_level=str(settings.get("logging.level", defaults.log_level)).upper(),
    )
