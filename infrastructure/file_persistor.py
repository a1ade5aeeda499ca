"""Filesystem persistence for finished captures."""

from __future__ import annotations

import os
from pathlib import Path

from loguru import logger

from core.services.interfaces import IPersistor


class FilePersistor(IPersistor):
    """Writes captures into a single output directory.

    Files are written to a temporary name first and renamed into place, so a
    reader never sees a half-written JPEG.
    """

    def __init__(self, output_dir: str | Path) -> None:
        self._dir = Path(output_dir)

    @property
    def output_dir(self) -> Path:
        return self._dir

    def save(self, data: bytes, suggested_name: str) -> str:
        name = Path(suggested_name).name
        if not name or name in {".", ".."}:
            raise ValueError(f"invalid file name: {suggested_name!r}")
        self._dir.mkdir(parents=True, exist_ok=True)
        target = self._dir / name
        tmp = self._dir / f".{name}.part"
        try:
            with tmp.open("wb") as f:
                f.write(data)
            os.replace(tmp, target)
        except OSError:
            try:
                tmp.unlink()
            except OSError:
                pass
            raise
        logger.debug("Wrote {} bytes to {}", len(data), target)
        return str(target)
