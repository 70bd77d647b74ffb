"""
=============================================================================
ACCESS LOGGING MIDDLEWARE
=============================================================================

Writes one line per handled request:

    192.168.1.57 - - [19/Oct/2026:14:03:11 +0000] "POST /data" 200 23 1.84ms

or, with log_format="json":

    {"client_ip": "192.168.1.57", "method": "POST", "path": "/data", ...}

Only the method, path, status and sizes are recorded. Bodies carry the
shared secret and passwords and are never logged.

Requests rejected before routing (405, invalid JSON, timeouts) never reach
the pipeline; the connection handler logs those itself.

=============================================================================
"""

import json
import logging
import time
from dataclasses import dataclass

from ..http.request import Request
from ..http.response import Response
from .base import Middleware, NextHandler


logger = logging.getLogger(__name__)


@dataclass
class RequestLog:
    """One access-log entry."""

    method: str
    path: str
    client_ip: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        return {
            "client_ip": self.client_ip,
            "method": self.method,
            "path": self.path,
            "status_code": self.status_code,
            "content_length": self.content_length,
            "duration_ms": round(self.duration_ms, 2),
            "timestamp": self.timestamp,
        }

    def to_text(self) -> str:
        """Apache-style line."""
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {self.path}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )


class LoggingMiddleware(Middleware):
    """
    Request timing and access logging.

    Should be added FIRST so its timing covers every other middleware and
    it still logs requests whose handler raised.

    Args:
        log_format: "text" (Apache style) or "json".
        log_level:  Level for access lines.
    """

    def __init__(self, log_format: str = "text", log_level: int = logging.INFO):
        self.log_format = log_format
        self.log_level = log_level

    def __call__(self, request: Request, next: NextHandler) -> Response:
        start_time = time.time()

        try:
            response = next(request)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"Request failed: {request.method} {request.path} "
                f"from {request.client_address[0]} "
                f"- {type(e).__name__}: {e} ({duration_ms:.2f}ms)"
            )
            raise

        duration_ms = (time.time() - start_time) * 1000

        entry = RequestLog(
            method=request.method,
            path=request.path,
            client_ip=request.client_address[0] or "-",
            status_code=response.status_code,
            content_length=len(response.encoded_body),
            duration_ms=duration_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(entry.to_dict()))
        else:
            logger.log(self.log_level, entry.to_text())

        return response
