"""
=============================================================================
MINIHTTP - Minimal HTTP/1.1 Server on Raw Sockets
=============================================================================

A small HTTP/1.1 server: one request per connection, parsed by hand off a
buffered socket stream, answered from a fixed set of routes.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                           ROUTES                                     │
    ├─────────────────────────────────────────────────────────────────────┤
    │   /                 any      200, empty                             │
    │   /echo/<text>      any      200, text/plain <text>                 │
    │   /user-agent       any      200 with the User-Agent, or 400        │
    │   /files/<name>     GET      200 file contents, or 404              │
    │   /files/<name>     POST     201 after storing the body             │
    │   /files/<name>     other    405                                    │
    │   anything else              404                                    │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    minihttp/
    ├── __init__.py          # Package exports
    ├── __main__.py          # CLI entry point (python -m minihttp)
    ├── server.py            # HTTPServer, create_app
    ├── config.py            # ServerConfig dataclass
    ├── core/                # Transport: listener, pool, connection
    ├── http/                # Protocol: request, response, router, errors
    └── handlers/            # Route handlers (basic, files)

=============================================================================
QUICK START
=============================================================================

    from minihttp import create_app, ServerConfig

    app = create_app(ServerConfig(directory="/tmp/files"))
    app.run()

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig
from .server import HTTPServer, create_app

__all__ = ["HTTPServer", "ServerConfig", "create_app", "__version__"]
