"""
=============================================================================
ROUTER / DISPATCHER
=============================================================================

Maps a parsed request to its operation by EXACT path match. There are no
path parameters, prefixes or methods to consider: by the time a request
reaches the router it is a POST with a valid JSON object body.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         Router.handle()                             │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   request.path ──► lookup ──► no route? ─────────────► 404           │
    │                        │                                             │
    │                        ▼                                             │
    │                  route.protected?                                    │
    │                   │           │                                      │
    │                  no          yes ──► Authenticator.authorize()       │
    │                   │                    │ NOT_CONFIGURED ──► 403      │
    │                   │                    │ UNAUTHORIZED   ──► 401      │
    │                   │                    ▼ AUTHORIZED                  │
    │                   └──────────────► route.handler(request)            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Registration mirrors the decorator style of small web frameworks:

    router = Router(authenticator)

    @router.post("/data", protected=True)
    def receive_data(request):
        ...

=============================================================================
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from ..auth import Authenticator, AuthResult
from .request import Request
from .response import Response, not_found, text_response
from .status_codes import HTTPStatus


logger = logging.getLogger(__name__)


Handler = Callable[[Request], Response]


_AUTH_FAILURES = {
    AuthResult.NOT_CONFIGURED: (HTTPStatus.FORBIDDEN, "Secret key not configured on device."),
    AuthResult.UNAUTHORIZED: (HTTPStatus.UNAUTHORIZED, "Invalid secret key."),
}


@dataclass
class Route:
    """
    A registered operation.

    Attributes:
        path:      Exact request path, e.g. "/command".
        handler:   Called with the Request, returns a Response.
        protected: Require a matching secretKey before calling handler.
    """

    path: str
    handler: Handler
    protected: bool = False


class Router:
    """Exact-match dispatcher with optional shared-secret protection."""

    def __init__(self, authenticator: Authenticator):
        self.authenticator = authenticator
        self._routes: Dict[str, Route] = {}

    def add_route(self, path: str, handler: Handler, protected: bool = False) -> Route:
        """
        Register a handler for a path. Registering the same path twice
        replaces the earlier route.
        """
        route = Route(path=path, handler=handler, protected=protected)
        self._routes[path] = route
        return route

    def post(self, path: str, protected: bool = False):
        """Decorator form of add_route()."""
        def decorator(handler: Handler) -> Handler:
            self.add_route(path, handler, protected=protected)
            return handler
        return decorator

    def match(self, path: str) -> Optional[Route]:
        return self._routes.get(path)

    @property
    def routes(self) -> List[Route]:
        return list(self._routes.values())

    def handle(self, request: Request) -> Response:
        """
        Dispatch a request.

        Returns:
            The handler's response, or the 404/403/401 short-circuit.
        """
        route = self.match(request.path)
        if route is None:
            logger.info(f"No endpoint for {request.path!r} from {request.client_address[0]}")
            return not_found()

        if route.protected:
            result = self.authenticator.authorize(request.payload)
            if result is not AuthResult.AUTHORIZED:
                status, message = _AUTH_FAILURES[result]
                logger.warning(
                    f"Rejected {request.path} from {request.client_address[0]}: {result.value}"
                )
                return text_response(status, message)

        return route.handler(request)
