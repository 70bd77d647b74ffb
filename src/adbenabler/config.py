"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Every tunable of the command listener in one dataclass.

    ┌─────────────────────────────────────────────────────────────────────┐
    │   Priority (highest to lowest):                                     │
    │                                                                     │
    │   1. Command-line flags      python -m adbenabler --port 9000       │
    │   2. Environment variables   ADBENABLER_PORT=9000                   │
    │   3. Defaults below                                                 │
    └─────────────────────────────────────────────────────────────────────┘

The server itself only ever sees a ServerConfig instance; environment and
flags are handled by the CLI.

=============================================================================
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional


ENV_PREFIX = "ADBENABLER_"


@dataclass
class ServerConfig:
    """
    Configuration for the command listener.

    Development:
        ServerConfig(host="127.0.0.1", port=0, log_level="DEBUG")

    On a LAN, reachable by the companion app:
        ServerConfig(host="0.0.0.0", port=8080, secret_store_path="~/.adbenabler.json")
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    host: str = "0.0.0.0"
    """Interface to bind. "0.0.0.0" listens on every interface."""

    port: int = 8080
    """TCP port. 0 lets the OS pick a free one (used by tests)."""

    backlog: int = 50

    read_timeout: Optional[float] = 30.0
    """
    Seconds a client may stay silent while its request is read.
    None blocks indefinitely. Expiry answers 408.
    """

    accept_poll_interval: float = 0.5
    """accept() timeout; stop() takes effect within this many seconds."""

    # ─────────────────────────────────────────────────────────────────────
    # REQUESTS
    # ─────────────────────────────────────────────────────────────────────

    max_body_size: int = 1024 * 1024
    """Largest accepted Content-Length. Larger bodies get 413."""

    # ─────────────────────────────────────────────────────────────────────
    # COLLABORATORS
    # ─────────────────────────────────────────────────────────────────────

    secret_store_path: Optional[str] = None
    """JSON file holding the shared secret. None keeps it in memory only."""

    adb_path: str = "adb"
    adb_serial: Optional[str] = None
    """Target device for adb when more than one is attached."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

            ADBENABLER_HOST          bind address (default: 0.0.0.0)
            ADBENABLER_PORT          port (default: 8080)
            ADBENABLER_READ_TIMEOUT  seconds, or "none" (default: 30)
            ADBENABLER_SECRET_FILE   secret store path (default: in memory)
            ADBENABLER_ADB_SERIAL    adb device serial (default: none)
            ADBENABLER_LOG_LEVEL     DEBUG, INFO, ... (default: INFO)

        Raises:
            ValueError: If a numeric variable does not parse.
        """
        defaults = cls()
        return cls(
            host=os.getenv(ENV_PREFIX + "HOST", defaults.host),
            port=int(os.getenv(ENV_PREFIX + "PORT", str(defaults.port))),
            read_timeout=parse_timeout(
                os.getenv(ENV_PREFIX + "READ_TIMEOUT", str(defaults.read_timeout))
            ),
            secret_store_path=os.getenv(ENV_PREFIX + "SECRET_FILE") or None,
            adb_serial=os.getenv(ENV_PREFIX + "ADB_SERIAL") or None,
            log_level=os.getenv(ENV_PREFIX + "LOG_LEVEL", defaults.log_level),
        )

    def validate(self) -> None:
        """Raise ValueError on the first invalid setting."""
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.read_timeout is not None and self.read_timeout <= 0:
            raise ValueError("read_timeout must be > 0 or None")

        if self.accept_poll_interval <= 0:
            raise ValueError("accept_poll_interval must be > 0")

        if self.max_body_size < 0:
            raise ValueError("max_body_size must be >= 0")

        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ValueError(f"Unknown log level: {self.log_level}")


def parse_timeout(value: str) -> Optional[float]:
    """"none", "off" or "" disable the timeout; anything else is seconds."""
    if value.strip().lower() in ("", "none", "off"):
        return None
    return float(value)
