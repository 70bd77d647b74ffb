"""
=============================================================================
CONNECTION
=============================================================================

Wraps one accepted client socket for the lifetime of one request.

There is no keep-alive: every connection carries exactly one request and
one response, then closes.

    NEW ──► READING ──► PROCESSING ──► WRITING ──► CLOSED
     │         │             │             │          ▲
     └─────────┴─────────────┴─────────────┴──────────┘
                  (any failure closes as well)

TCP is a byte stream, so the request is read through a buffered file
object (socket.makefile("rb")). readline() and read(n) on it take care of
reassembling whatever chunks recv() happens to return.

=============================================================================
"""

import logging
import socket
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import BinaryIO, Optional


logger = logging.getLogger(__name__)


DRAIN_TIMEOUT = 0.5
"""Upper bound, in seconds, on discarding leftover input before close."""


class ConnectionState(Enum):
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    A client connection.

    Attributes:
        socket:     The accepted client socket.
        address:    Client (ip, port).
        id:         Short random id used to correlate log lines.
        timeout:    Per-read deadline in seconds; None blocks indefinitely.
        state:      Current lifecycle state.
        created_at: Accept time.

    Use as a context manager so the socket is closed on every exit path:

        with Connection(sock, addr) as conn:
            request = parser.parse(conn.reader, conn.address)
            ...
    """

    socket: socket.socket
    address: tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    timeout: Optional[float] = None
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)

    _reader: Optional[BinaryIO] = field(default=None, repr=False)

    def __post_init__(self):
        # Accepted sockets inherit nothing useful from the listener's poll
        # timeout; set blocking mode with our own read deadline.
        self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def client_port(self) -> int:
        return self.address[1]

    @property
    def age(self) -> float:
        """Seconds since accept."""
        return time.time() - self.created_at

    @property
    def reader(self) -> BinaryIO:
        """Buffered binary reader over the socket, created on first use."""
        if self._reader is None:
            self._reader = self.socket.makefile("rb")
        return self._reader

    @property
    def is_closed(self) -> bool:
        return self.state == ConnectionState.CLOSED

    def close(self):
        """
        Close the connection. Safe to call more than once.

        shutdown(SHUT_WR) first sends FIN so the client sees the end of
        the response promptly, then the reader and socket are released.
        """
        if self.state == ConnectionState.CLOSED:
            return

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Peer already gone

        # Unread request bytes (e.g. the body of a rejected GET) would make
        # close() send RST, and the client could lose our response.
        self._drain()

        if self._reader is not None:
            try:
                self._reader.close()
            except OSError:
                pass
            self._reader = None

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.age:.3f}s")

    def _drain(self, limit: float = DRAIN_TIMEOUT):
        deadline = time.time() + limit
        try:
            while True:
                remaining = deadline - time.time()
                if remaining <= 0:
                    break
                self.socket.settimeout(remaining)
                if not self.socket.recv(4096):
                    break
        except OSError:
            pass  # Timeout or reset, we're closing anyway

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
