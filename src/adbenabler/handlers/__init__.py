"""
Request handlers.

    CommandHandlers   /set-secret, /data and /command
"""

from .commands import (
    CommandHandlers,
    OPEN_ACCESSIBILITY_SETTINGS,
    TRIGGER_ADB_DIALOG_TAP,
)

__all__ = [
    "CommandHandlers",
    "OPEN_ACCESSIBILITY_SETTINGS",
    "TRIGGER_ADB_DIALOG_TAP",
]
