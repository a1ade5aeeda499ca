"""Durable capture counter stored as a small JSON document."""

from __future__ import annotations

import json
import os
from pathlib import Path
import threading

from loguru import logger

from core.services.interfaces import ICounter

COUNTER_KEY = "imagesCount"


class JsonCounterStore(ICounter):
    """Counter persisted to `path` after every change.

    All read-modify-write cycles go through one lock, so concurrent
    increments from capture continuations are never lost.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()
        self._value = self._load()

    def _load(self) -> int:
        try:
            with self._path.open("r", encoding="utf-8") as f:
                raw = json.load(f).get(COUNTER_KEY, 0)
            return max(0, int(raw))
        except FileNotFoundError:
            return 0
        except (OSError, ValueError, TypeError, AttributeError) as ex:
            logger.warning("Counter file {} unreadable, starting at 0: {}", self._path, ex)
            return 0

    def _write(self, value: int) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_name(self._path.name + ".tmp")
        with tmp.open("w", encoding="utf-8") as f:
            json.dump({COUNTER_KEY: value}, f)
        os.replace(tmp, self._path)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def value(self) -> int:
        with self._lock:
            return self._value

    def increment(self) -> int:
        """Add one, persist, and return the new value.

        The in-memory value is updated even if writing fails; the `OSError`
        is re-raised so the caller can report it.
        """
        with self._lock:
            self._value += 1
            value = self._value
            self._write(value)
        return value

    def reset(self) -> None:
        with self._lock:
            self._value = 0
            self._write(0)
