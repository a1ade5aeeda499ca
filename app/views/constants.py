"""
UI/view constants centralized for reuse across view modules.
"""

from __future__ import annotations

WINDOW_TITLE: str = "RoadMetrics Camera"
WINDOW_MIN_WIDTH: int = 480
WINDOW_MIN_HEIGHT: int = 640

INTERVAL_MIN_SECONDS: int = 1
INTERVAL_MAX_SECONDS: int = 3600

COUNTDOWN_FONT_PX: int = 96
STATUS_TIMEOUT_MS: int = 3000
WARNING_TIMEOUT_MS: int = 5000
SHUTDOWN_WAIT_MS: int = 5000

START_LABEL: str = "Start"
STARTING_LABEL: str = "Starting ({})..."
STOP_LABEL: str = "Stop"
COUNT_LABEL: str = "Images captured: {}"
