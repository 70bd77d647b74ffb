"""
=============================================================================
ADBENABLER - Secret-Protected Command Listener
=============================================================================

A small HTTP-like listener for the local network. A paired client sets a
shared secret once, then posts credentials and device commands that are
only acted on when they carry the same secret.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                     │
    │   POST /set-secret   {"secretKey"}                 store secret     │
    │   POST /data         {"secretKey", "passwordType",                  │
    │                       "password"}                  NotificationSink │
    │   POST /command      {"secretKey", "action"}       Automation       │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    adbenabler/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m adbenabler)
    ├── server.py            # CommandServer
    ├── config.py            # ServerConfig dataclass
    ├── auth.py              # Shared-secret check
    ├── store.py             # Secret stores (memory, JSON file)
    ├── collaborators.py     # adb automation, notification sinks
    ├── core/                # Socket, connection, handler threads
    ├── http/                # Request parsing, responses, router
    ├── handlers/            # /set-secret, /data, /command
    └── middleware/          # Access logging

=============================================================================
QUICK START
=============================================================================

    from adbenabler import CommandServer, ServerConfig, QueueNotificationSink

    sink = QueueNotificationSink()
    inbox = sink.subscribe()

    server = CommandServer(ServerConfig(port=8080), sink=sink)
    server.start()

    notification = inbox.get()      # blocks until a client posts /data

=============================================================================
"""

__version__ = "1.0.0"
__author__ = "adbenabler contributors"

from .collaborators import (
    AdbAutomationController,
    AutomationController,
    AutomationError,
    LoggingNotificationSink,
    NotificationSink,
    PasswordNotification,
    QueueNotificationSink,
)
from .config import ServerConfig
from .core import BindError
from .server import CommandServer, configure_logging, get_local_ip
from .store import FileSecretStore, MemorySecretStore, SecretStore

__all__ = [
    "__version__",
    "CommandServer",
    "ServerConfig",
    "BindError",
    "configure_logging",
    "get_local_ip",
    # Secret storage
    "SecretStore",
    "MemorySecretStore",
    "FileSecretStore",
    # Collaborators
    "AutomationController",
    "AdbAutomationController",
    "AutomationError",
    "NotificationSink",
    "QueueNotificationSink",
    "LoggingNotificationSink",
    "PasswordNotification",
]
