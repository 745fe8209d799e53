"""
=============================================================================
HTTP ERRORS
=============================================================================

Every failure in the request pipeline is raised as an HTTPError carrying
the status code that should go back to the client.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        ERROR TAXONOMY                               │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   HTTPError (status_code, message, headers)                         │
    │       │                                                              │
    │       ├── BadRequest          400  parser, missing header,          │
    │       │                            bad Content-Length               │
    │       ├── NotFound            404  no route, missing file           │
    │       ├── MethodNotAllowed    405  known resource, wrong verb       │
    │       ├── InternalError       500  socket / filesystem failure      │
    │       └── ServiceUnavailable  503  worker pool saturated            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Errors are raised wherever they happen (parser, router, handler, writer)
and caught exactly once, at the connection boundary in HTTPServer, which
turns them into a minimal response and closes the connection. Nothing is
retried.

InternalError is usually raised ``from`` the OSError that caused it, with
a short description of what we were doing at the time:

    try:
        stat = os.fstat(f.fileno())
    except OSError as e:
        raise InternalError("reading file metadata") from e

    str(err) -> "reading file metadata: [Errno 5] Input/output error"

=============================================================================
"""

from typing import List, Optional, Tuple

from .status_codes import HTTPStatus


class HTTPError(Exception):
    """
    Base class for errors that map to an HTTP status.

    Attributes:
        status_code: Status to send back to the client.
        message: Human-readable text, used as the response body.
        headers: Extra response headers (e.g. Allow for 405).
    """

    status_code: HTTPStatus = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        headers: Optional[List[Tuple[str, str]]] = None,
    ):
        super().__init__(message)
        if status_code is not None:
            self.status_code = HTTPStatus(status_code)
        self.message = message
        self.headers = list(headers or [])

    def __str__(self) -> str:
        if self.__cause__ is not None:
            return f"{self.message}: {self.__cause__}"
        return self.message


class BadRequest(HTTPError):
    """The request could not be understood (400)."""

    status_code = HTTPStatus.BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(f"Bad request: {message}")


class NotFound(HTTPError):
    """No route or no file behind the path (404)."""

    status_code = HTTPStatus.NOT_FOUND

    def __init__(self, message: str = "Not found"):
        super().__init__(message)


class MethodNotAllowed(HTTPError):
    """The path exists but not for this method (405)."""

    status_code = HTTPStatus.METHOD_NOT_ALLOWED

    def __init__(self, method: str, allowed: Optional[List[str]] = None):
        headers = [("Allow", ", ".join(allowed))] if allowed else None
        super().__init__(f"Method {method} not allowed", headers=headers)
        self.method = method
        self.allowed = list(allowed or [])


class InternalError(HTTPError):
    """I/O failure while serving the request (500)."""

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR


class ServiceUnavailable(HTTPError):
    """No worker could take the connection (503)."""

    status_code = HTTPStatus.SERVICE_UNAVAILABLE

    def __init__(self, message: str = "Server overloaded"):
        super().__init__(message)
