"""
Networking core: the listening socket, per-connection wrapper and
handler threads.

    SocketServer     bind, listen, accept loop (socket_server.py)
    Connection       one accepted client socket (connection.py)
    HandlerThreads   one daemon thread per connection (handler_threads.py)
"""

from .connection import Connection, ConnectionState
from .handler_threads import HandlerThreads, Worker
from .socket_server import BindError, SocketServer

__all__ = [
    "BindError",
    "Connection",
    "ConnectionState",
    "HandlerThreads",
    "SocketServer",
    "Worker",
]
