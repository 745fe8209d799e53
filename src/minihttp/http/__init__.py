"""
=============================================================================
HTTP PROTOCOL IMPLEMENTATION
=============================================================================

The application-layer half of the server: bytes on a buffered stream in,
bytes on the same stream out.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    ONE REQUEST, ONE RESPONSE                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   stream ──► RequestParser ──► Router ──► handler ──► HTTPResponse  │
    │                  │                │                       │          │
    │             BadRequest     NotFound /                write_to()     │
    │                            MethodNotAllowed              │          │
    │                                                          ▼          │
    │                                                        stream       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

    request.py       HTTPRequest, Headers, RequestParser
    response.py      HTTPResponse (plan + writer), ResponseBuilder
    router.py        Router, Route
    errors.py        HTTPError and its subclasses
    status_codes.py  HTTPStatus

=============================================================================
"""

from .errors import (
    HTTPError,
    BadRequest,
    NotFound,
    MethodNotAllowed,
    InternalError,
    ServiceUnavailable,
)
from .request import HTTPRequest, Headers, RequestParser, parse_request
from .response import (
    HTTPResponse,
    ResponseBuilder,
    ok,
    created,
    error_response,
)
from .router import Router, Route, RouteMatch
from .status_codes import HTTPStatus

__all__ = [
    # Errors
    "HTTPError",
    "BadRequest",
    "NotFound",
    "MethodNotAllowed",
    "InternalError",
    "ServiceUnavailable",

    # Request parsing
    "HTTPRequest",
    "Headers",
    "RequestParser",
    "parse_request",

    # Response building and writing
    "HTTPResponse",
    "ResponseBuilder",
    "ok",
    "created",
    "error_response",

    # Routing
    "Router",
    "Route",
    "RouteMatch",

    # Status codes
    "HTTPStatus",
]
