"""
=============================================================================
HTTP LAYER
=============================================================================

    request.py       RequestParser, Request, Payload, parse errors
    response.py      Response, ResponseWriter
    status_codes.py  HTTPStatus
    router.py        Router (import from adbenabler.http.router)

The router is not re-exported here: it depends on the authenticator, which
itself depends on request.py.

=============================================================================
"""

from .request import (
    InvalidJSONError,
    MalformedRequestError,
    MethodNotAllowedError,
    Payload,
    Request,
    RequestParser,
    parse_request,
)
from .response import (
    Response,
    ResponseWriter,
    bad_request,
    internal_error,
    not_found,
    ok,
    text_response,
)
from .status_codes import HTTPStatus

__all__ = [
    # Request
    "Request",
    "RequestParser",
    "Payload",
    "parse_request",
    "MalformedRequestError",
    "MethodNotAllowedError",
    "InvalidJSONError",
    # Response
    "Response",
    "ResponseWriter",
    "text_response",
    "ok",
    "bad_request",
    "not_found",
    "internal_error",
    # Status
    "HTTPStatus",
]
