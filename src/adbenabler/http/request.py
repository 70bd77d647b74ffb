"""
=============================================================================
REQUEST PARSER
=============================================================================

Parses the minimal HTTP/1.1 subset the listener understands into a
structured Request. Only POST with a JSON body is meaningful; everything
else is rejected early.

=============================================================================
WHAT WE READ OFF THE WIRE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │  POST /data HTTP/1.1\r\n                 ← request line             │
    │  Host: 192.168.1.20:8080\r\n             ← headers, one per line    │
    │  Content-Type: application/json\r\n                                 │
    │  Content-Length: 61\r\n                  ← how many body bytes      │
    │  \r\n                                    ← end of headers           │
    │  {"secretKey": "s3cret", "passwordType": "pin", "password": "1234"} │
    └─────────────────────────────────────────────────────────────────────┘

The parser works on a binary STREAM (socket.makefile("rb") in production,
io.BytesIO in tests) rather than a pre-assembled buffer, so it can reject a
non-POST request after reading a single line.

=============================================================================
FAILURE MODES
=============================================================================

    MethodNotAllowedError   405   request line missing, or method != POST
    MalformedRequestError   413   Content-Length above max_body_size
    InvalidJSONError        400   body is not a JSON object

All three carry the status code and the plain-text message that goes back
to the client, so the connection handler can answer without a lookup table.

Two lenient behaviours are kept on purpose:
    - Missing / non-numeric / negative Content-Length → body length 0
    - Stream ends before Content-Length bytes → the short read is the body

=============================================================================
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Dict, Optional

from .status_codes import HTTPStatus


logger = logging.getLogger(__name__)


class MalformedRequestError(Exception):
    """
    Raised when a request cannot be turned into a Request.

    Carries the HTTP status and the plain-text body that should be sent
    back to the client.
    """

    def __init__(self, message: str, status: HTTPStatus = HTTPStatus.BAD_REQUEST):
        super().__init__(message)
        self.status = status


class MethodNotAllowedError(MalformedRequestError):
    """Request line is absent or the method is not POST."""

    def __init__(self, message: str = "Only POST requests are supported."):
        super().__init__(message, HTTPStatus.METHOD_NOT_ALLOWED)


class InvalidJSONError(MalformedRequestError):
    """Body could not be decoded as a JSON object."""

    def __init__(self, message: str = "Invalid JSON format."):
        super().__init__(message, HTTPStatus.BAD_REQUEST)


class Payload:
    """
    JSON object extracted from a request body.

    Fields are read leniently: a field that is missing, or present with a
    non-string value, reads as "". This is deliberately different from a
    body that is not JSON at all, which never becomes a Payload.

        payload = Payload({"secretKey": "abc", "action": 7})
        payload.get_str("secretKey")   # "abc"
        payload.get_str("action")      # ""  (wrong type)
        payload.get_str("password")    # ""  (absent)
    """

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = dict(data or {})

    @classmethod
    def from_body(cls, body: bytes) -> "Payload":
        """
        Decode a request body.

        Raises:
            InvalidJSONError: Empty body, undecodable bytes, bad syntax,
                              or a top-level value that is not an object.
        """
        try:
            data = json.loads(body.decode("utf-8"))
        except (ValueError, RecursionError) as e:
            raise InvalidJSONError() from e

        if not isinstance(data, dict):
            raise InvalidJSONError()

        return cls(data)

    def get_str(self, name: str) -> str:
        value = self._data.get(name)
        return value if isinstance(value, str) else ""

    def __contains__(self, name: str) -> bool:
        return name in self._data

    def __repr__(self) -> str:
        # Field names only; values may be secrets
        return f"Payload(fields={sorted(self._data)})"


@dataclass
class Request:
    """
    A parsed request.

    Attributes:
        method:         Always "POST" for a successfully parsed request.
        path:           Request target exactly as sent ("/data").
        headers:        Header name (lowercased) → value, last one wins.
        body:           Raw body bytes.
        payload:        Decoded JSON body.
        client_address: (ip, port) of the peer, for logging.
    """

    method: str
    path: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    payload: Payload = field(default_factory=Payload)
    client_address: tuple[str, int] = ("", 0)

    @property
    def content_length(self) -> int:
        """Declared body length; 0 when missing or unusable."""
        return _parse_content_length(self.headers.get("content-length"))

    def get_header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)


class RequestParser:
    """
    Reads one request from a binary stream.

    ==========================================================================
    PARSING ALGORITHM
    ==========================================================================

        stream
          │
          ├──► readline()        request line → method, path
          │       └── not POST? → MethodNotAllowedError (405)
          │
          ├──► readline() ...    headers until blank line / EOF
          │       └── "Name: value" split at first ':'
          │
          ├──► read(n)           n = Content-Length (0 if unusable)
          │       └── n > max_body_size? → MalformedRequestError (413)
          │       └── short read accepted as-is
          │
          └──► Payload.from_body()
                  └── not a JSON object? → InvalidJSONError (400)

    ==========================================================================
    """

    def __init__(self, max_body_size: int = 1024 * 1024, max_line_length: int = 8192):
        """
        Args:
            max_body_size:   Largest Content-Length accepted, in bytes.
            max_line_length: Longest request/header line read in one go.
                             Longer lines are truncated, not rejected.
        """
        self.max_body_size = max_body_size
        self.max_line_length = max_line_length

    def parse(
        self,
        stream: BinaryIO,
        client_address: tuple[str, int] = ("", 0),
    ) -> Request:
        """
        Parse a request from a binary stream.

        Args:
            stream: Object with readline() and read() returning bytes.
            client_address: Peer (ip, port) recorded on the Request.

        Returns:
            Parsed Request with its Payload.

        Raises:
            MalformedRequestError: or one of its subclasses.
        """
        # ─────────────────────────────────────────────────────────────────
        # STEP 1: Request line
        # ─────────────────────────────────────────────────────────────────
        method, path = self._parse_request_line(self._readline(stream))

        # ─────────────────────────────────────────────────────────────────
        # STEP 2: Headers
        # ─────────────────────────────────────────────────────────────────
        headers = self._parse_headers(stream)

        # ─────────────────────────────────────────────────────────────────
        # STEP 3: Body
        # ─────────────────────────────────────────────────────────────────
        content_length = _parse_content_length(headers.get("content-length"))
        if content_length > self.max_body_size:
            raise MalformedRequestError(
                "Request body too large.",
                HTTPStatus.PAYLOAD_TOO_LARGE,
            )

        body = stream.read(content_length) if content_length else b""
        if len(body) < content_length:
            logger.debug(
                f"Short body from {client_address[0]}: "
                f"expected {content_length} bytes, got {len(body)}"
            )

        # ─────────────────────────────────────────────────────────────────
        # STEP 4: JSON payload
        # ─────────────────────────────────────────────────────────────────
        payload = Payload.from_body(body)

        return Request(
            method=method,
            path=path,
            headers=headers,
            body=body,
            payload=payload,
            client_address=client_address,
        )

    def _readline(self, stream: BinaryIO) -> str:
        raw = stream.readline(self.max_line_length)
        return raw.decode("utf-8", errors="replace").rstrip("\r\n")

    def _parse_request_line(self, line: str) -> tuple[str, str]:
        """
        Split "POST /data HTTP/1.1" into ("POST", "/data").

        The version token is ignored. A line with only a method yields an
        empty path, which the router answers with 404.
        """
        parts = line.split()
        if not parts or parts[0] != "POST":
            raise MethodNotAllowedError()

        path = parts[1] if len(parts) > 1 else ""
        return parts[0], path

    def _parse_headers(self, stream: BinaryIO) -> Dict[str, str]:
        """
        Read "Name: value" lines up to the blank line that ends the header
        section (or EOF). Names are lowercased, values trimmed; a repeated
        header keeps its last value. Lines without a colon are skipped.
        """
        headers: Dict[str, str] = {}

        while True:
            line = self._readline(stream)
            if not line:
                break

            name, sep, value = line.partition(":")
            if not sep:
                continue

            headers[name.strip().lower()] = value.strip()

        return headers


def _parse_content_length(value: Optional[str]) -> int:
    if value is None:
        return 0
    value = value.strip()
    if not (value.isascii() and value.isdigit()):
        return 0
    return int(value)


def parse_request(
    stream: BinaryIO,
    client_address: tuple[str, int] = ("", 0),
    max_body_size: int = 1024 * 1024,
) -> Request:
    """
    Convenience function: parse one request with default settings.
    """
    return RequestParser(max_body_size=max_body_size).parse(stream, client_address)
