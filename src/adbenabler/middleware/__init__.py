"""
Middleware wrapping the router.

    Middleware, MiddlewarePipeline   base classes (base.py)
    LoggingMiddleware                access log (logging.py)
"""

from .base import Middleware, MiddlewarePipeline, NextHandler
from .logging import LoggingMiddleware, RequestLog

__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "NextHandler",
    "LoggingMiddleware",
    "RequestLog",
]
