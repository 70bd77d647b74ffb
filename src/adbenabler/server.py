"""
=============================================================================
COMMAND SERVER
=============================================================================

Ties the pieces together into the listener the companion app talks to.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                     │
    │   SocketServer ──accept──► HandlerThreads.spawn(_process_connection)│
    │                                        │                            │
    │                                        ▼                            │
    │                             RequestParser.parse(conn.reader)        │
    │                                        │                            │
    │                     405 / 400 / 413 / 408 ◄── parse errors          │
    │                                        │                            │
    │                                        ▼                            │
    │                   MiddlewarePipeline(Router.handle)                 │
    │                     LoggingMiddleware ─► auth ─► CommandHandlers    │
    │                                        │                            │
    │                                        ▼                            │
    │                             ResponseWriter.write ──► close          │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

Failure handling per connection:

    MalformedRequestError     its own status and message (405, 400, 413)
    read timeout              408 "Request timeout."
    anything else             500 "Server error: <message>"

Nothing raised while serving one connection reaches the accept loop or any
other connection. Only a failed bind is fatal, and only to start().

=============================================================================
"""

import ipaddress
import logging
import socket
import threading
from typing import Iterable, Optional

from .auth import Authenticator
from .collaborators import (
    AutomationController,
    LoggingNotificationSink,
    NotificationSink,
)
from .config import ServerConfig
from .core import Connection, ConnectionState, HandlerThreads, SocketServer
from .handlers import CommandHandlers
from .http import (
    HTTPStatus,
    MalformedRequestError,
    RequestParser,
    Response,
    ResponseWriter,
    internal_error,
    text_response,
)
from .http.router import Router
from .middleware import LoggingMiddleware, Middleware, MiddlewarePipeline
from .store import MemorySecretStore, SecretStore


logger = logging.getLogger(__name__)


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class _NoAutomation(AutomationController):
    def open_settings_ui(self) -> None:
        raise RuntimeError("No automation controller configured")


class CommandServer:
    """
    The command listener.

    Usage:
        server = CommandServer(
            ServerConfig(port=8080),
            store=FileSecretStore("~/.adbenabler.json"),
            automation=AdbAutomationController(),
            sink=QueueNotificationSink(),
        )
        server.start()          # returns once bound
        ...
        server.stop()

    Or block until stop() is called from elsewhere (signal handler):

        server.serve_forever()

    Args:
        config:     Listener settings; defaults to ServerConfig().
        store:      Holds the shared secret; defaults to an in-memory store.
        automation: Receives openAccessibilitySettings commands.
        sink:       Receives credentials posted to /data.
        middleware: Wrapped around the router, outermost first. Defaults to
                    a single LoggingMiddleware.
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        store: Optional[SecretStore] = None,
        automation: Optional[AutomationController] = None,
        sink: Optional[NotificationSink] = None,
        middleware: Optional[Iterable[Middleware]] = None,
    ):
        self.config = config or ServerConfig()
        self.config.validate()

        self.store = store if store is not None else MemorySecretStore()
        self.automation = automation if automation is not None else _NoAutomation()
        self.sink = sink if sink is not None else LoggingNotificationSink()

        self._parser = RequestParser(max_body_size=self.config.max_body_size)
        self._writer = ResponseWriter()

        self._router = Router(Authenticator(self.store))
        CommandHandlers(self.store, self.automation, self.sink).register(self._router)

        self._middleware = MiddlewarePipeline()
        for mw in middleware if middleware is not None else [LoggingMiddleware()]:
            self._middleware.add(mw)
        self._handler = self._middleware.wrap(self._router.handle)

        self._threads = HandlerThreads()
        self._socket_server: Optional[SocketServer] = None
        self._lifecycle_lock = threading.RLock()
        self._stopped = threading.Event()
        self._stopped.set()

    @property
    def port(self) -> int:
        """Bound port once started (the real one when configured with 0)."""
        if self._socket_server is not None:
            return self._socket_server.port
        return self.config.port

    @property
    def is_running(self) -> bool:
        return self._socket_server is not None and self._socket_server.is_running

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self, port: Optional[int] = None) -> None:
        """
        Bind, listen and start accepting in the background.

        Args:
            port: Overrides config.port for this run.

        Raises:
            BindError: If the port cannot be bound.
            RuntimeError: If the server is already running.
        """
        with self._lifecycle_lock:
            if self._socket_server is not None:
                raise RuntimeError("Server already running")
            self._stopped.clear()

            # A fresh listener per run so stop() then start() re-binds.
            socket_server = SocketServer(
                host=self.config.host,
                port=self.config.port if port is None else port,
                backlog=self.config.backlog,
                poll_interval=self.config.accept_poll_interval,
                read_timeout=self.config.read_timeout,
            )
            try:
                socket_server.bind()
                socket_server.start(self._handle_connection)
            except BaseException:
                socket_server.shutdown()
                self._stopped.set()
                raise

            self._socket_server = socket_server

        logger.info(
            f"Command server started on {self.config.host}:{socket_server.port} "
            f"(LAN address {get_local_ip()}:{socket_server.port})"
        )

    def stop(self) -> None:
        """
        Stop accepting connections. Safe to call when already stopped.

        Handlers already running are left to finish; use
        wait_for_handlers() to wait for them.
        """
        with self._lifecycle_lock:
            socket_server, self._socket_server = self._socket_server, None

        if socket_server is not None:
            socket_server.shutdown()
            logger.info("Command server stopped")
        self._stopped.set()

    def serve_forever(self, port: Optional[int] = None) -> None:
        """start(), then block until stop() is called."""
        self.start(port)
        try:
            self._stopped.wait()
        finally:
            self.stop()

    def wait_for_handlers(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for in-flight connection handlers.

        Returns:
            True if none are left running, False on timeout.
        """
        return self._threads.join(timeout)

    def __enter__(self) -> "CommandServer":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection) -> None:
        """Called on the accept thread; hands the connection to its own thread."""
        self._threads.spawn(self._process_connection, conn)

    def _process_connection(self, conn: Connection) -> None:
        """Serve exactly one request on conn, then close it (handler thread)."""
        with conn:
            response = self._build_response(conn)

            conn.state = ConnectionState.WRITING
            self._writer.write(conn, response)

    def _build_response(self, conn: Connection) -> Response:
        prefix = f"[{conn.id}] {conn.client_ip}:{conn.client_port}"

        try:
            conn.state = ConnectionState.READING
            request = self._parser.parse(conn.reader, conn.address)
        except MalformedRequestError as e:
            logger.info(f"{prefix} Rejected request: {e.status.value} {e}")
            return text_response(e.status, str(e))
        except socket.timeout:
            logger.info(f"{prefix} Timed out reading request")
            return text_response(HTTPStatus.REQUEST_TIMEOUT, "Request timeout.")
        except Exception as e:
            logger.exception(f"{prefix} Error reading request: {e}")
            return internal_error(str(e))

        conn.state = ConnectionState.PROCESSING
        try:
            return self._handler(request)
        except Exception as e:
            logger.exception(f"{prefix} Error handling {request.path}: {e}")
            return internal_error(str(e))


def get_local_ip() -> str:
    """
    Best guess at this host's LAN IPv4 address, for telling clients where
    to connect. Returns "N/A" when only loopback or link-local addresses
    are available.
    """
    candidates = []

    # No packets are sent: connect() on a UDP socket only picks the route.
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as udp:
            udp.connect(("10.255.255.255", 1))
            candidates.append(udp.getsockname()[0])
    except OSError:
        pass

    try:
        infos = socket.getaddrinfo(socket.gethostname(), None, socket.AF_INET)
        candidates.extend(info[4][0] for info in infos)
    except OSError:
        pass

    for candidate in candidates:
        try:
            address = ipaddress.IPv4Address(candidate)
        except ValueError:
            continue
        if not (address.is_loopback or address.is_link_local or address.is_unspecified):
            return candidate

    return "N/A"


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for the CLI."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.getLogger("adbenabler").setLevel(numeric_level)
