"""MenuController: Manages menu creation and action connections."""

from __future__ import annotations

from collections.abc import Callable

from PySide6.QtGui import QAction
from PySide6.QtWidgets import QMainWindow, QMenuBar


class MenuController:
    """Manages the camera window's menus.

    Actions are created once and looked up by name, so the window can toggle
    them as the capture phase changes.
    """

    def __init__(self, main_window: QMainWindow) -> None:
        """Initialize with main window reference.

        Args:
            main_window: The QMainWindow to create menus for
        """
        self.window = main_window
        self.actions: dict[str, QAction] = {}

    def setup_menus(self) -> dict[str, QAction]:
        """Create all menus and return action references."""
        menubar = QMenuBar(self.window)

        capture_menu = menubar.addMenu("Capture")
        self.actions["start"] = capture_menu.addAction("Start")
        self.actions["stop"] = capture_menu.addAction("Stop")
        self.actions["switch_camera"] = capture_menu.addAction("Switch Camera")
        capture_menu.addSeparator()
        self.actions["reset_count"] = capture_menu.addAction("Reset Count")
        self.actions["open_output_directory"] = capture_menu.addAction("Open Output Folder")
        capture_menu.addSeparator()
        self.actions["exit"] = capture_menu.addAction("Exit")

        log_menu = menubar.addMenu("Log")
        self.actions["open_latest_log"] = log_menu.addAction("Open Latest Log")
        self.actions["open_log_directory"] = log_menu.addAction("Open Log Directory")

        self.window.setMenuBar(menubar)
        return self.actions

    def connect_actions(self, handlers: dict[str, Callable]) -> None:
        """Connect menu actions to their handler methods.

        Args:
            handlers: Dictionary mapping action names to handler callables
        """
        for name, action in self.actions.items():
            handler = handlers.get(name)
            if handler is not None:
                action.triggered.connect(handler)
        if "exit" not in handlers:
            self.actions["exit"].triggered.connect(self.window.close)

    def enable_action(self, name: str, enabled: bool = True) -> None:
        action = self.actions.get(name)
        if action:
            action.setEnabled(enabled)
