"""
=============================================================================
RESPONSE FORMATTING AND WRITING
=============================================================================

Every answer the listener sends has the same shape: a status line, three
fixed headers and a short plain-text body.

    ┌─────────────────────────────────────────────────────────────────────┐
    │  HTTP/1.1 200 OK\r\n                     ← status line              │
    │  Content-Type: text/plain\r\n                                       │
    │  Content-Length: 15\r\n                  ← UTF-8 byte count of body │
    │  Access-Control-Allow-Origin: *\r\n      ← browser pairing page     │
    │  \r\n                                    ← end of headers           │
    │  Secret key set.                         ← body                     │
    └─────────────────────────────────────────────────────────────────────┘

Content-Length is computed from the ENCODED body, not the string length:
"Ключ" is 4 characters but 8 bytes. Getting this wrong makes clients
hang waiting for bytes that never come, or truncate the message.

Cross-origin access is unrestricted; the pairing page may be opened from
any origin on the local network.

=============================================================================
"""

import logging
from dataclasses import dataclass, field
from typing import Dict

from .status_codes import HTTPStatus


logger = logging.getLogger(__name__)


@dataclass
class Response:
    """
    A plain-text response.

    Extra headers may be added (the access logger does not, but tests and
    future routes can); the three standard headers are always written.
    """

    status: HTTPStatus = HTTPStatus.OK
    body: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    version: str = "HTTP/1.1"

    @property
    def status_code(self) -> int:
        return int(self.status)

    @property
    def status_text(self) -> str:
        return self.status.phrase

    @property
    def status_line(self) -> str:
        """e.g. "HTTP/1.1 404 Not Found"."""
        return f"{self.version} {self.status_code} {self.status_text}"

    @property
    def encoded_body(self) -> bytes:
        return self.body.encode("utf-8")

    def to_bytes(self) -> bytes:
        """
        Serialize for socket.sendall().

        Header order is fixed so responses are byte-for-byte predictable:
        Content-Type, Content-Length, Access-Control-Allow-Origin, then any
        extra headers in insertion order.
        """
        body = self.encoded_body

        response_headers = {
            "Content-Type": "text/plain",
            "Content-Length": str(len(body)),
            "Access-Control-Allow-Origin": "*",
        }
        for name, value in self.headers.items():
            response_headers.setdefault(name, value)

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        return "\r\n".join(lines).encode("utf-8") + b"\r\n" + body


class ResponseWriter:
    """
    Writes responses to a connection.

    A failed write means the client already went away. The connection is
    about to be closed anyway, so the failure is logged and reported as
    False rather than raised.

    Usage:
        writer = ResponseWriter()
        writer.write(conn, text_response(HTTPStatus.OK, "Secret key set."))
    """

    def write(self, conn, response: Response) -> bool:
        """
        Send a response on a connection.

        Args:
            conn: Connection (anything with .id, .address and .socket).
            response: Response to send.

        Returns:
            True if all bytes were handed to the OS, False otherwise.
        """
        data = response.to_bytes()
        try:
            conn.socket.sendall(data)
            return True
        except OSError as e:
            logger.warning(
                f"[{conn.id}] Failed to write {response.status_code} "
                f"to {conn.address[0]}:{conn.address[1]}: {e}"
            )
            return False


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def text_response(status: HTTPStatus, body: str) -> Response:
    """Build a plain-text response."""
    return Response(status=status, body=body)


def ok(body: str) -> Response:
    return text_response(HTTPStatus.OK, body)


def bad_request(body: str) -> Response:
    return text_response(HTTPStatus.BAD_REQUEST, body)


def not_found(body: str = "Endpoint not found.") -> Response:
    return text_response(HTTPStatus.NOT_FOUND, body)


def internal_error(message: str) -> Response:
    """500 with the error message embedded, as the pairing client expects."""
    return text_response(HTTPStatus.INTERNAL_SERVER_ERROR, f"Server error: {message}")
