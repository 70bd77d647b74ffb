"""
=============================================================================
COMMAND LISTENER CLI ENTRY POINT
=============================================================================

    # Defaults: all interfaces, port 8080, secret kept in memory
    python -m adbenabler

    # Persist the secret and target one device
    python -m adbenabler --secret-file ~/.adbenabler.json --adb-serial emulator-5554

    # Installed console script
    adbenabler --port 9000 --log-level DEBUG

Settings come from ADBENABLER_* environment variables first (see
ServerConfig.from_env); flags given on the command line override them.

=============================================================================
"""

import argparse
import logging
import os
import signal
import sys
from typing import List, Optional

from . import __version__
from .collaborators import AdbAutomationController, LoggingNotificationSink
from .config import ServerConfig, parse_timeout
from .core import BindError
from .server import CommandServer, configure_logging
from .store import FileSecretStore, MemorySecretStore


logger = logging.getLogger("adbenabler")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="adbenabler",
        description="Listen on the local network for secret-protected device commands",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  adbenabler                                   # 0.0.0.0:8080, in-memory secret
  adbenabler --port 9000                       # Custom port
  adbenabler --secret-file ~/.adbenabler.json  # Keep the secret across restarts
  adbenabler --adb-serial emulator-5554        # Pick one of several devices
        """,
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--host", "-H", help="Address to bind (default: 0.0.0.0)")
    parser.add_argument("--port", "-p", type=int, help="Port to listen on (default: 8080)")
    parser.add_argument(
        "--read-timeout",
        type=parse_timeout,
        default=argparse.SUPPRESS,
        help='Seconds to wait for a request, or "none" (default: 30)',
    )

    # ─────────────────────────────────────────────────────────────────────
    # COLLABORATORS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--secret-file", "-s",
        help="JSON file holding the shared secret (default: in memory only)",
    )
    parser.add_argument("--adb-serial", help="adb device serial (default: the only device)")

    # ─────────────────────────────────────────────────────────────────────
    # META
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--log-level", "-l",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"adbenabler {__version__}",
    )
    return parser


def build_config(args: argparse.Namespace) -> ServerConfig:
    """Environment settings with any flags given layered on top."""
    config = ServerConfig.from_env()

    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if "read_timeout" in vars(args):
        config.read_timeout = args.read_timeout
    if args.secret_file is not None:
        config.secret_store_path = args.secret_file
    if args.adb_serial is not None:
        config.adb_serial = args.adb_serial
    if args.log_level is not None:
        config.log_level = args.log_level

    config.validate()
    return config


def build_server(config: ServerConfig) -> CommandServer:
    if config.secret_store_path:
        store = FileSecretStore(os.path.expanduser(config.secret_store_path))
    else:
        store = MemorySecretStore()

    return CommandServer(
        config,
        store=store,
        automation=AdbAutomationController(config.adb_path, serial=config.adb_serial),
        sink=LoggingNotificationSink(),
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = build_config(args)
    except ValueError as e:
        print(f"adbenabler: invalid configuration: {e}", file=sys.stderr)
        return 2

    configure_logging(config.log_level)
    server = build_server(config)

    # stop() only flips state and closes the listener, so it is safe to
    # call from a signal handler.
    def handle_signal(signum, frame):
        logger.info(f"Received {signal.Signals(signum).name}, shutting down")
        server.stop()

    previous = {sig: signal.signal(sig, handle_signal) for sig in (signal.SIGINT, signal.SIGTERM)}

    try:
        server.serve_forever()
    except BindError as e:
        print(f"adbenabler: {e.strerror}", file=sys.stderr)
        return 1
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)

    if not server.wait_for_handlers(timeout=5.0):
        logger.warning("Some connections were still being handled at exit")
    return 0


if __name__ == "__main__":
    sys.exit(main())
