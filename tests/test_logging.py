from __future__ import annotations

import os
from pathlib import Path
import time

from loguru import logger

from infrastructure.logging import find_latest_log_file, init_logging


def test_init_logging_creates_directory_and_file(tmp_path: Path) -> None:
    log_dir = tmp_path / "logs"

    returned = init_logging(str(log_dir), "DEBUG")
    logger.debug("hello from the capture tests")
    logger.complete()

    assert returned == log_dir
    latest = find_latest_log_file(str(log_dir))
    assert latest is not None
    assert "hello from the capture tests" in latest.read_text(encoding="utf-8")
    logger.remove()


def test_find_latest_log_file_picks_newest(tmp_path: Path) -> None:
    old = tmp_path / "app_20240101.log"
    new = tmp_path / "app_20240102.log"
    old.write_text("a", encoding="utf-8")
    new.write_text("b", encoding="utf-8")
    past = time.time() - 3600
    os.utime(old, (past, past))

    assert find_latest_log_file(str(tmp_path)) == new


def test_find_latest_log_file_without_logs(tmp_path: Path) -> None:
    assert find_latest_log_file(str(tmp_path / "missing")) is None
    assert find_latest_log_file(str(tmp_path)) is None
