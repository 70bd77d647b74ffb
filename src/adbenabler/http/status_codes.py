"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The listener only ever answers with a handful of status codes. Each one
maps to a specific outcome of a request:

    ┌──────┬──────────────────────────┬────────────────────────────────────┐
    │ Code │ Reason phrase            │ When                               │
    ├──────┼──────────────────────────┼────────────────────────────────────┤
    │ 200  │ OK                       │ Operation succeeded                │
    │ 400  │ Bad Request              │ Invalid JSON, empty secret,        │
    │      │                          │ unknown command action             │
    │ 401  │ Unauthorized             │ secretKey does not match           │
    │ 403  │ Forbidden                │ No secret configured on device     │
    │ 404  │ Not Found                │ Unknown endpoint                   │
    │ 405  │ Method Not Allowed       │ Anything other than POST           │
    │ 408  │ Request Timeout          │ Client stalled mid-request         │
    │ 413  │ Payload Too Large        │ Content-Length over the limit      │
    │ 500  │ Internal Server Error    │ Unexpected failure in a handler    │
    └──────┴──────────────────────────┴────────────────────────────────────┘

401 vs 403:
    403 here means "the device has not been paired yet", no secret can
    possibly match. 401 means a secret exists and the client got it wrong.

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes used by the listener.

    IntEnum so a status compares equal to its integer code:

        HTTPStatus.OK == 200        # True
        f"{HTTPStatus.NOT_FOUND}"   # "404"
    """

    OK = 200

    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    REQUEST_TIMEOUT = 408
    PAYLOAD_TOO_LARGE = 413

    INTERNAL_SERVER_ERROR = 500

    def __str__(self) -> str:
        return str(self.value)

    @property
    def phrase(self) -> str:
        """
        Reason phrase for the status line.

            HTTP/1.1 401 Unauthorized
                     ─── ────────────
                      │        │
                      │        └── phrase
                      └────────── code
        """
        return _STATUS_PHRASES.get(self, "Unknown")


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.UNAUTHORIZED: "Unauthorized",
    HTTPStatus.FORBIDDEN: "Forbidden",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.REQUEST_TIMEOUT: "Request Timeout",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
}
