"""
=============================================================================
MIDDLEWARE PIPELINE
=============================================================================

Middleware wraps the router so cross-cutting work (access logging) does
not leak into the command handlers.

    request ──► MW1 ──► MW2 ──► router.handle ──┐
                                                 │
    response ◄── MW1 ◄── MW2 ◄───────────────────┘

Each middleware is a callable taking (request, next) and returning a
Response. It may act before calling next, after it, or short-circuit by
not calling it at all.

=============================================================================
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, List

from ..http.request import Request
from ..http.response import Response


logger = logging.getLogger(__name__)


NextHandler = Callable[[Request], Response]


class Middleware(ABC):
    """Base class for middleware."""

    @abstractmethod
    def __call__(self, request: Request, next: NextHandler) -> Response:
        pass

    @property
    def name(self) -> str:
        return self.__class__.__name__


class MiddlewarePipeline:
    """
    Ordered list of middleware; the first added is the outermost.

        pipeline = MiddlewarePipeline()
        pipeline.add(LoggingMiddleware())
        handler = pipeline.wrap(router.handle)
    """

    def __init__(self):
        self._middleware: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {middleware.name}")
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Build the handler chain.

        Given [MW1, MW2] and handler, returns MW1 → MW2 → handler. We wrap
        in reverse so the first-added middleware ends up outermost.
        """
        current = handler
        for middleware in reversed(self._middleware):
            current = self._create_wrapped_handler(middleware, current)
        return current

    def _create_wrapped_handler(self, middleware: Middleware, next_handler: NextHandler) -> NextHandler:
        def wrapped(request: Request) -> Response:
            return middleware(request, next_handler)
        return wrapped

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self):
        return iter(self._middleware)
