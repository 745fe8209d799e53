"""
Small built-in handlers: root, echo and user-agent.

Header values and paths are decoded as ISO-8859-1 by the parser, so
encoding them back the same way returns the exact bytes the client sent.
"""

from ..http.errors import BadRequest
from ..http.request import HEADER_ENCODING, HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder, ok


def root(request: HTTPRequest) -> HTTPResponse:
    """200 with no headers and no body, for any method."""
    return ok()


def echo(request: HTTPRequest) -> HTTPResponse:
    """
    Echo the path remainder after "/echo/" as text/plain.

        GET /echo/abc  →  200, Content-Length: 3, body "abc"
        GET /echo/     →  200, Content-Length: 0
    """
    rest = request.path_params.get("rest", "")
    return ResponseBuilder().text(rest, encoding=HEADER_ENCODING).build()


def user_agent(request: HTTPRequest) -> HTTPResponse:
    """Reply with the client's User-Agent value, or 400 if it sent none."""
    agent = request.user_agent
    if agent is None:
        raise BadRequest("no user agent header in request")
    return ResponseBuilder().text(agent, encoding=HEADER_ENCODING).build()
