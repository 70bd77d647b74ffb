"""
=============================================================================
LISTENING SOCKET
=============================================================================

Owns the bound TCP socket and the accept loop.

    bind() ──► listen() ──► accept loop (background thread)
                                │
                                ├──► accept() ──► Connection ──► callback
                                │      (times out every poll interval
                                │       so stop() is noticed)
                                │
                                └──► exit on stop() or accept error
                                        └──► socket closed exactly once

SO_REUSEADDR lets a stop() / start() cycle re-bind the same port right
away instead of waiting out TIME_WAIT.

=============================================================================
"""

import logging
import socket
import threading
from typing import Callable, Optional, Tuple

from .connection import Connection


logger = logging.getLogger(__name__)


class BindError(OSError):
    """The listening socket could not be bound (port in use, no permission)."""


class SocketServer:
    """
    Bound socket plus accept loop.

    Usage:
        server = SocketServer("0.0.0.0", 8080)
        server.bind()
        server.start(handle_connection)   # returns; loop runs in background
        ...
        server.shutdown()                 # loop exits, socket closed

    Args:
        host:          Interface to bind ("0.0.0.0" for all).
        port:          TCP port; 0 lets the OS choose.
        backlog:       Pending-connection queue length for listen().
        poll_interval: accept() timeout, bounding how long stop takes.
        read_timeout:  Passed to each Connection as its read deadline.
    """

    def __init__(
        self,
        host: str = "0.0.0.0",
        port: int = 8080,
        backlog: int = 50,
        poll_interval: float = 0.5,
        read_timeout: Optional[float] = None,
    ):
        self.host = host
        self.port = port
        self.backlog = backlog
        self.poll_interval = poll_interval
        self.read_timeout = read_timeout

        self._socket: Optional[socket.socket] = None
        self._thread: Optional[threading.Thread] = None
        self._running = False
        self._close_lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); port is the real one after bind(port=0)."""
        return (self.host, self.port)

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.settimeout(self.poll_interval)
        return sock

    def bind(self):
        """
        Create, bind and listen.

        Raises:
            BindError: If the address cannot be bound.
        """
        sock = self._create_socket()
        try:
            sock.bind((self.host, self.port))
            sock.listen(self.backlog)
        except OSError as e:
            sock.close()
            logger.error(f"Failed to bind to {self.host}:{self.port}: {e}")
            raise BindError(e.errno, f"Cannot bind {self.host}:{self.port}: {e.strerror or e}") from e

        self.port = sock.getsockname()[1]
        self._socket = sock
        logger.info(f"Listening on {self.host}:{self.port}")

    def start(self, connection_handler: Callable[[Connection], None]):
        """
        Run the accept loop in a background thread. bind() is called first
        if it has not been already.
        """
        if self._running:
            raise RuntimeError("Socket server already running")
        if self._socket is None:
            self.bind()

        self._running = True
        self._thread = threading.Thread(
            target=self._accept_loop,
            args=(connection_handler,),
            name="accept-loop",
            daemon=True,
        )
        self._thread.start()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        sock = self._socket
        try:
            while self._running:
                try:
                    client_socket, client_address = sock.accept()
                except socket.timeout:
                    continue  # Poll tick: re-check _running
                except OSError as e:
                    if self._running:
                        logger.error(f"Accept error: {e}")
                    break

                logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

                conn = Connection(
                    socket=client_socket,
                    address=client_address,
                    timeout=self.read_timeout,
                )

                try:
                    connection_handler(conn)
                except Exception as e:
                    logger.exception(f"[{conn.id}] Could not dispatch connection: {e}")
                    conn.close()
        finally:
            self._running = False
            self._close_socket()

    def shutdown(self, timeout: Optional[float] = None):
        """
        Stop accepting and close the socket. Idempotent.

        Waits for the accept loop to exit (it notices within one poll
        interval). Connections already handed off keep running.
        """
        self._running = False

        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout if timeout is not None else self.poll_interval * 4)
        self._thread = None

        # Covers bind() without start(), and a loop that did not exit in time
        self._close_socket()

    def _close_socket(self):
        with self._close_lock:
            sock, self._socket = self._socket, None
        if sock is None:
            return

        try:
            sock.close()
        except OSError:
            pass
        logger.info(f"Stopped listening on {self.host}:{self.port}")
