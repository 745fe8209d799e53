"""
=============================================================================
URL ROUTER
=============================================================================

Maps (method, path) to a handler. Two kinds of route pattern:

- Exact paths:   /, /user-agent
- Wildcard tail: /echo/*rest, /files/*name

=============================================================================
ROUTING TABLE (as registered by minihttp.handlers)
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        ROUTING FLOW                                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Incoming: POST /files/report.txt                                   │
    │        │                                                             │
    │        ▼                                                             │
    │   ┌─────────────────────────────────────────────────────────────┐   │
    │   │  ANY  /              → root                                  │   │
    │   │  ANY  /echo/*rest    → echo                                  │   │
    │   │  ANY  /user-agent    → user_agent                            │   │
    │   │  GET  /files/*name   → files.get                             │   │
    │   │  POST /files/*name   → files.post    ← MATCH!                │   │
    │   └─────────────────────────────────────────────────────────────┘   │
    │        │                                                             │
    │        ▼                                                             │
    │   handler(request)  with request.path_params == {"name": "report.txt"}│
    │                                                                      │
    │   No route for the method, but the path matches another method?     │
    │        → MethodNotAllowed (405, Allow: GET, POST)                   │
    │   No route at all?                                                   │
    │        → NotFound (404)                                              │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
LITERAL MATCHING
=============================================================================

The request path is matched exactly as it arrived:

    - no percent-decoding        /echo/a%20b  → rest = "a%20b"
    - no query-string splitting  /echo/a?b=c  → rest = "a?b=c"
    - no trailing-slash cleanup  /user-agent/ → 404

A wildcard is a literal prefix strip: "/echo/*rest" matches anything that
starts with "/echo/" and captures the remainder (slashes included, and
possibly empty).

First match wins, so register specific routes before broad ones.

=============================================================================
"""

import dataclasses
import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .errors import MethodNotAllowed, NotFound
from .request import HTTPRequest
from .response import HTTPResponse


logger = logging.getLogger(__name__)


# Handler: takes the request, returns a Response Plan (or raises HTTPError)
Handler = Callable[[HTTPRequest], HTTPResponse]


@dataclass
class Route:
    """
    A registered route.

        @router.post("/files/*name")
        def upload(request): ...

        Route(
            path="/files/*name",
            method="POST",         # None = any method
            handler=upload,
            _pattern=re.compile(r"^/files/(?P<name>.*)$"),
            _param_names=["name"],
        )
    """

    path: str
    method: Optional[str]
    handler: Handler

    _pattern: Optional[re.Pattern] = field(default=None, repr=False)
    _param_names: List[str] = field(default_factory=list, repr=False)


@dataclass
class RouteMatch:
    """The route that matched plus its wildcard captures."""

    route: Route
    params: Dict[str, str]


class Router:
    """
    Ordered route table with decorator registration.

        router = Router()

        @router.route("/")
        def root(request):
            return ok()

        @router.get("/files/*name")
        def download(request):
            ...

        response = router.handle(request)   # or raises HTTPError
    """

    def __init__(self):
        self._routes: List[Route] = []

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def add_route(self, path: str, handler: Handler, method: Optional[str] = None) -> Route:
        """
        Register ``handler`` for ``path``.

        Args:
            path: Exact path, or a prefix ending in a "*name" wildcard.
            handler: Callable taking HTTPRequest, returning HTTPResponse.
            method: Method token to match exactly, or None for any.

        Returns:
            The registered Route.
        """
        pattern, param_names = self._compile_pattern(path)
        route = Route(
            path=path,
            method=method,
            handler=handler,
            _pattern=pattern,
            _param_names=param_names,
        )
        self._routes.append(route)
        return route

    def _compile_pattern(self, path: str):
        """
        Compile a route path into an anchored regex.

        =====================================================================
        PATTERN COMPILATION
        =====================================================================

            "/"             → ^/$
            "/user-agent"   → ^/user\\-agent$
            "/echo/*rest"   → ^/echo/(?P<rest>.*)$

        Everything before the "*" is escaped and must match literally.
        The wildcard must come last; it captures the rest of the path.

        =====================================================================
        """
        prefix, star, name = path.partition("*")

        if not star:
            return re.compile("^" + re.escape(path) + "$"), []

        if "/" in name:
            raise ValueError(f"Wildcard must be the last segment: {path}")

        name = name or "wildcard"
        pattern = re.compile("^" + re.escape(prefix) + f"(?P<{name}>.*)$", re.DOTALL)
        return pattern, [name]

    # =========================================================================
    # ROUTE MATCHING
    # =========================================================================

    def match(self, method: str, path: str) -> Optional[RouteMatch]:
        """
        First route whose method and pattern both match, or None.

        Method tokens are compared exactly ("get" is not "GET").
        """
        for route in self._routes:
            if route.method is not None and route.method != method:
                continue

            found = route._pattern.match(path)
            if found:
                return RouteMatch(route=route, params=found.groupdict())

        return None

    def get_allowed_methods(self, path: str) -> List[str]:
        """
        Methods registered for routes matching ``path``.

        Returns an empty list when no route matches the path at all.
        Used for the 405 decision and its Allow header.
        """
        methods: List[str] = []
        for route in self._routes:
            if route._pattern.match(path) and route.method not in methods:
                methods.append(route.method)

        # An any-method route would have matched in match() already
        return [m for m in methods if m is not None]

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Dispatch ``request`` to its handler.

        Returns:
            The handler's Response Plan.

        Raises:
            MethodNotAllowed: Path is known, method is not.
            NotFound: No route matches the path.
            HTTPError: Whatever the handler raised.
        """
        found = self.match(request.method, request.path)

        if found:
            request = dataclasses.replace(request, path_params=found.params)
            return found.route.handler(request)

        allowed = self.get_allowed_methods(request.path)
        if allowed:
            raise MethodNotAllowed(request.method, allowed)

        logger.info("No routes were matched, returning 404")
        raise NotFound()

    # =========================================================================
    # DECORATOR-STYLE ROUTE REGISTRATION
    # =========================================================================

    def route(self, path: str, method: Optional[str] = None) -> Callable[[Handler], Handler]:
        """
        Decorator form of add_route(). ``method=None`` matches any method.

            @router.route("/echo/*rest")
            def echo(request):
                ...
        """
        def decorator(handler: Handler) -> Handler:
            self.add_route(path, handler, method)
            return handler
        return decorator

    def get(self, path: str) -> Callable[[Handler], Handler]:
        """Register a GET route."""
        return self.route(path, "GET")

    def post(self, path: str) -> Callable[[Handler], Handler]:
        """Register a POST route."""
        return self.route(path, "POST")

    # =========================================================================
    # UTILITY METHODS
    # =========================================================================

    def routes(self) -> List[Route]:
        """All registered routes, in match order."""
        return list(self._routes)

    def describe_routes(self) -> List[str]:
        """
        One line per route, e.g. "GET      /files/*name".

        Logged at startup so the table is visible in the server output.
        """
        return [f"{route.method or 'ANY':8} {route.path}" for route in self._routes]
