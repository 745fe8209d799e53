"""
=============================================================================
REQUEST HANDLERS
=============================================================================

A handler takes an HTTPRequest and returns an HTTPResponse, or raises an
HTTPError that the server turns into an error response.

    ┌──────────────────┬──────────┬────────────────────────────────────────┐
    │ Route            │ Method   │ Handler                                │
    ├──────────────────┼──────────┼────────────────────────────────────────┤
    │ /                │ any      │ basic.root                             │
    │ /echo/*rest      │ any      │ basic.echo                             │
    │ /user-agent      │ any      │ basic.user_agent                       │
    │ /files/*name     │ GET      │ FileHandler.get                        │
    │ /files/*name     │ POST     │ FileHandler.post                       │
    └──────────────────┴──────────┴────────────────────────────────────────┘

Other methods on /files/ get 405 from the router; unknown paths get 404.

=============================================================================
"""

from ..config import ServerConfig
from ..http.router import Router
from .basic import root, echo, user_agent
from .files import FileHandler


def register_routes(router: Router, config: ServerConfig) -> Router:
    """Register the default routes on ``router``, in match order."""
    files = FileHandler(config.directory, confine=config.confine_files, chunk_size=64 * 1024)

    router.add_route("/", root)
    router.add_route("/echo/*rest", echo)
    router.add_route("/user-agent", user_agent)
    router.add_route("/files/*name", files.get, "GET")
    router.add_route("/files/*name", files.post, "POST")
    return router


__all__ = [
    "FileHandler",
    "register_routes",
    "root",
    "echo",
    "user_agent",
]
