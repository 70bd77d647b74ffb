"""
=============================================================================
COLLABORATORS
=============================================================================

The listener never touches the UI or the device directly. It talks to two
narrow interfaces supplied by whoever embeds it:

    ┌──────────────────┐   open_settings_ui()    ┌──────────────────────┐
    │                  │ ──────────────────────► │ AutomationController │
    │  Command routes  │                         └──────────────────────┘
    │                  │   publish(type, pw)     ┌──────────────────────┐
    │                  │ ──────────────────────► │ NotificationSink     │
    └──────────────────┘                         └──────────────────────┘

Provided implementations:

    AdbAutomationController  opens the accessibility settings screen on a
                             device via `adb shell am start`
    QueueNotificationSink    publish/subscribe: each subscriber gets its
                             own queue.Queue of PasswordNotification
    LoggingNotificationSink  logs that credentials arrived (never the value)

=============================================================================
"""

import logging
import queue
import shutil
import subprocess
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional


logger = logging.getLogger(__name__)


ACCESSIBILITY_SETTINGS_ACTION = "android.settings.ACCESSIBILITY_SETTINGS"


class AutomationError(Exception):
    """Raised when the automation backend cannot perform an action."""


class AutomationController(ABC):
    """UI-automation capabilities the command route can invoke."""

    @abstractmethod
    def open_settings_ui(self) -> None:
        """Bring up the accessibility settings screen."""
        pass


class NotificationSink(ABC):
    """Receives credential payloads delivered over /data."""

    @abstractmethod
    def publish(self, password_type: str, password: str) -> None:
        pass


class AdbAutomationController(AutomationController):
    """
    Drives the device through the adb command-line tool.

    open_settings_ui() runs:

        adb [-s SERIAL] shell am start -a android.settings.ACCESSIBILITY_SETTINGS

    Args:
        adb_path: adb executable name or path, resolved through PATH.
        serial:   Device serial; None lets adb pick the only device.
        timeout:  Seconds before the adb call is abandoned.
    """

    def __init__(self, adb_path: str = "adb", serial: Optional[str] = None, timeout: float = 15.0):
        self.adb_path = adb_path
        self.serial = serial
        self.timeout = timeout

    def open_settings_ui(self) -> None:
        self._run_shell(["am", "start", "-a", ACCESSIBILITY_SETTINGS_ACTION])
        logger.info("Opened accessibility settings on device")

    def _run_shell(self, args: List[str]) -> str:
        adb = shutil.which(self.adb_path)
        if not adb:
            raise AutomationError(f"adb executable not found: {self.adb_path}")

        cmd = [adb]
        if self.serial:
            cmd += ["-s", self.serial]
        cmd += ["shell", *args]

        try:
            result = subprocess.run(
                cmd,
                check=True,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise AutomationError(f"adb timed out after {self.timeout}s") from e
        except subprocess.CalledProcessError as e:
            reason = (e.stderr or e.stdout or str(e)).strip()
            raise AutomationError(f"adb failed: {reason}") from e

        return result.stdout


@dataclass(frozen=True)
class PasswordNotification:
    password_type: str
    password: str

    def __repr__(self) -> str:
        return f"PasswordNotification(password_type={self.password_type!r}, password=***)"


class QueueNotificationSink(NotificationSink):
    """
    Fan-out channel for received credentials.

        sink = QueueNotificationSink()
        inbox = sink.subscribe()
        ...
        note = inbox.get(timeout=1.0)   # PasswordNotification

    Every subscriber sees every notification published after it
    subscribed. publish() never blocks: subscriber queues are unbounded.
    """

    def __init__(self):
        self._subscribers: List[queue.Queue] = []
        self._lock = threading.Lock()

    def subscribe(self) -> "queue.Queue[PasswordNotification]":
        inbox: "queue.Queue[PasswordNotification]" = queue.Queue()
        with self._lock:
            self._subscribers.append(inbox)
        return inbox

    def unsubscribe(self, inbox: queue.Queue) -> None:
        with self._lock:
            if inbox in self._subscribers:
                self._subscribers.remove(inbox)

    def publish(self, password_type: str, password: str) -> None:
        note = PasswordNotification(password_type, password)
        with self._lock:
            subscribers = list(self._subscribers)

        for inbox in subscribers:
            inbox.put_nowait(note)

        logger.debug(f"Delivered {password_type!r} credentials to {len(subscribers)} subscriber(s)")


class LoggingNotificationSink(NotificationSink):
    """Default sink for the CLI: records arrival, not content."""

    def publish(self, password_type: str, password: str) -> None:
        logger.info(f"Received password data: type={password_type!r}, length={len(password)}")
