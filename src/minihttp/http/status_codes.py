"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The status codes this server can put on the wire.

=============================================================================
WHERE EACH CODE COMES FROM
=============================================================================

    ┌────────┬───────────────────────────────────────────────────────────┐
    │  200   │ OK            - /, /echo/<s>, /user-agent, GET /files/<n> │
    │  201   │ Created       - POST /files/<n> stored the upload         │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  400   │ Bad Request   - Malformed request line or header line,   │
    │        │                 missing User-Agent, bad Content-Length   │
    │  404   │ Not Found     - No route, or the file does not exist     │
    │  405   │ Method Not Allowed - /files/<n> with a verb other than   │
    │        │                 GET or POST                               │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  500   │ Internal Server Error - Socket or filesystem failure     │
    │  503   │ Service Unavailable   - Worker pool queue is full        │
    └────────┴───────────────────────────────────────────────────────────┘

The status line we write is just "HTTP/1.1 <code>". The reason phrase is
optional in HTTP/1.1 and we leave it off, but it is still handy for logs
and default error messages, so each member carries one.

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes used by the server.

    IntEnum, so members compare and format as plain integers:

        >>> HTTPStatus.OK == 200
        True
        >>> f"{int(HTTPStatus.NOT_FOUND)}"
        '404'
    """

    # 2xx Success
    OK = 200
    CREATED = 201

    # 4xx Client Errors
    BAD_REQUEST = 400
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405

    # 5xx Server Errors
    INTERNAL_SERVER_ERROR = 500
    SERVICE_UNAVAILABLE = 503

    @property
    def phrase(self) -> str:
        """Reason phrase for this status code (used in logs)."""
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def is_success(self) -> bool:
        """Check if this is a 2xx status code."""
        return 200 <= self < 300

    @property
    def is_client_error(self) -> bool:
        """Check if this is a 4xx status code."""
        return 400 <= self < 500

    @property
    def is_server_error(self) -> bool:
        """Check if this is a 5xx status code."""
        return 500 <= self < 600

    @property
    def is_error(self) -> bool:
        """Check if this is an error status code (4xx or 5xx)."""
        return self >= 400


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.CREATED: "Created",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
}
