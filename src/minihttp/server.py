"""
=============================================================================
MAIN HTTP SERVER
=============================================================================

Ties the pieces together: listener, worker pool, parser, router, writer.

=============================================================================
ARCHITECTURE OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    HTTP SERVER ARCHITECTURE                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │                        ┌─────────────────┐                          │
    │                        │   HTTPServer    │                          │
    │                        └────────┬────────┘                          │
    │            ┌────────────────────┼────────────────────┐              │
    │            ▼                    ▼                    ▼              │
    │    ┌──────────────┐    ┌──────────────┐    ┌──────────────┐        │
    │    │ SocketServer │    │  ThreadPool  │    │    Router    │        │
    │    │  (accept)    │    │ (concurrency)│    │ (dispatch)   │        │
    │    └──────┬───────┘    └──────┬───────┘    └──────┬───────┘        │
    │           ▼                   ▼                   ▼                 │
    │      Connection ──► _process_connection() ──► handlers             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
ONE CONNECTION, START TO FINISH
=============================================================================

    accept()                                     (listener thread)
       │
       ▼
    _handle_connection ── pool full? ──► 503, close
       │
       ▼                                         (worker thread)
    READING   parser.parse(conn.stream)          BadRequest → 400
       │
    ROUTING   router.handle(request)             NotFound → 404
       │                                         MethodNotAllowed → 405
       │                                         handler errors → 4xx/500
    WRITING   response.write_to(conn.stream)     failure → log, close
       │
    CLOSED    conn.close()

Exactly one request per connection. Any HTTPError raised before the
response head goes out becomes an error response (WRITING_ERROR). Once the
head is on the wire a second status line would corrupt the reply, so later
failures are only logged.

=============================================================================
"""

import logging
import time
from typing import Optional

from .config import ServerConfig
from .core import SocketServer, Connection, ConnectionState, ThreadPool
from .handlers import register_routes
from .http import (
    HTTPError,
    InternalError,
    ServiceUnavailable,
    HTTPRequest,
    HTTPResponse,
    RequestParser,
    Router,
    error_response,
)


logger = logging.getLogger(__name__)
access_logger = logging.getLogger("minihttp.access")

# Upper bound on the 503 write done on the listener thread
REJECT_TIMEOUT = 1.0


class HTTPServer:
    """
    The HTTP server.

    =========================================================================
    USAGE
    =========================================================================

        server = HTTPServer(ServerConfig(port=4221))

        @server.get("/hello")
        def hello(request):
            return ok("hi")

        server.run()          # blocks until SIGINT/SIGTERM or shutdown()

    create_app() returns a server with the default routes already
    registered (/, /echo/, /user-agent, /files/).

    =========================================================================
    """

    def __init__(self, config: Optional[ServerConfig] = None):
        self.config = config or ServerConfig()
        self.config.validate()

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
            queue_size=self.config.queue_size,
        )
        self._parser = RequestParser(
            max_line_size=self.config.max_line_size,
            case_sensitive_headers=self.config.case_sensitive_headers,
        )
        self._router = Router()

    @property
    def router(self) -> Router:
        return self._router

    @property
    def address(self):
        """Bound (host, port) once running; the configured one before."""
        return self._socket_server.address

    # =========================================================================
    # ROUTE REGISTRATION (Decorator Style)
    # =========================================================================

    def route(self, path: str, method: Optional[str] = None):
        return self._router.route(path, method)

    def get(self, path: str):
        return self._router.get(path)

    def post(self, path: str):
        return self._router.post(path)

    # =========================================================================
    # SERVER LIFECYCLE
    # =========================================================================

    def run(self, host: Optional[str] = None, port: Optional[int] = None, configure_logging: bool = True):
        """
        Start the server. Blocks until shutdown.

        Args:
            host: Override config host.
            port: Override config port.
            configure_logging: Call logging.basicConfig with our format.
                               Off when the caller owns logging (tests).

        Raises:
            OSError: The listening socket could not be bound.
        """
        if host:
            self.config.host = host
        if port is not None:
            self.config.port = port

        if configure_logging:
            self.setup_logging()

        self._thread_pool.start()

        logger.info(f"Starting HTTP server on {self.config.host}:{self.config.port}")
        logger.info(f"Serving files from {self.config.directory}")
        for line in self._router.describe_routes():
            logger.debug(f"Route: {line}")

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._stop_pool()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the listening socket is up (for embedding/tests)."""
        return self._socket_server.wait_until_ready(timeout)

    def shutdown(self):
        """
        Ask the server to stop. Returns immediately; run() returns once
        the accept loop has exited and the pool has drained.
        """
        self._socket_server.shutdown()

    def setup_logging(self):
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("minihttp").setLevel(level)

    def _stop_pool(self):
        logger.info("Shutting down server...")
        logger.info(f"Thread pool stats: {self._thread_pool.stats}")
        self._thread_pool.shutdown(wait=True, timeout=self.config.timeout)
        logger.info("Server stopped")

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """
        Hand an accepted connection to the pool (listener thread).

        Never blocks: a saturated pool means an immediate 503.
        """
        logger.info(f"[{conn.id}] accepted new connection from {conn.client_ip}:{conn.client_port}")

        try:
            submitted = self._thread_pool.submit(
                self._process_connection,
                args=(conn,),
            )
        except RuntimeError as e:
            logger.warning(f"[{conn.id}] {e}, closing connection")
            conn.close()
            return

        if not submitted:
            self._reject(conn)

    def _reject(self, conn: Connection):
        """
        Answer 503 on the listener thread without ever waiting on the peer.

        The write gets a short timeout and close() skips the timed drain,
        so accept() is back within about REJECT_TIMEOUT seconds whatever
        the client does.
        """
        logger.warning(f"[{conn.id}] Thread pool full, rejecting connection")
        try:
            conn.socket.settimeout(REJECT_TIMEOUT)
            self._send_error(conn, ServiceUnavailable())
        except OSError as e:
            logger.debug(f"[{conn.id}] Could not send 503: {e}")
        finally:
            conn.close(drain_timeout=0)

    def _process_connection(self, conn: Connection):
        """
        Serve exactly one request on ``conn`` (worker thread).

        Every path out of here closes the connection.
        """
        start_time = time.time()
        request: Optional[HTTPRequest] = None
        status = None

        with conn:
            try:
                conn.state = ConnectionState.READING
                request = self._parser.parse(conn.stream, conn.address)
                logger.info(
                    f"[{conn.id}] Incoming request: {request.method} {request.path} [{request.version}]"
                )

                conn.state = ConnectionState.ROUTING
                response = self._router.handle(request)
                response.check()

                conn.state = ConnectionState.WRITING
                status = response.status
                response.write_to(conn.stream, chunk_size=self.config.buffer_size)

            except HTTPError as e:
                status = self._fail(conn, e)

            except Exception as e:
                logger.exception(f"[{conn.id}] Unexpected error: {e}")
                status = self._fail(conn, InternalError("Internal server error"))

            finally:
                self._log_access(conn, request, status, time.time() - start_time)

    def _fail(self, conn: Connection, error: HTTPError):
        """
        Report ``error`` to the client if nothing has been sent yet.

        Returns the status the client ends up seeing, or None if the
        connection is dropped without a (complete) response.
        """
        if conn.state == ConnectionState.WRITING:
            # Head may already be out, a second status line would be garbage
            logger.error(f"[{conn.id}] Error while writing response: {error}")
            return None

        logger.warning(f"[{conn.id}] Replying {int(error.status_code)}: {error}")
        conn.state = ConnectionState.WRITING_ERROR
        if self._send_error(conn, error):
            return error.status_code
        return None

    def _send_error(self, conn: Connection, error: HTTPError) -> bool:
        """Write the error response for ``error``. Failures are logged only."""
        response: HTTPResponse = error_response(error)
        try:
            response.write_to(conn.stream)
            return True
        except HTTPError as e:
            logger.error(f"[{conn.id}] Error occurred while replying with error response: {e}")
            return False

    def _log_access(self, conn: Connection, request: Optional[HTTPRequest], status, duration: float):
        if request is not None:
            line = f"{request.method} {request.path}"
        else:
            line = "-"
        code = int(status) if status is not None else "-"
        access_logger.info(f'{conn.client_ip} "{line}" {code} {duration * 1000:.1f}ms')


def create_app(config: Optional[ServerConfig] = None) -> HTTPServer:
    """
    Build a server with the default routes.

        /               any method   200, no body
        /echo/*rest     any method   200, text/plain echo of rest
        /user-agent     any method   200 with User-Agent, or 400
        /files/*name    GET          200, file contents, or 404
        /files/*name    POST         201 after storing the body
        /files/*name    other        405
        anything else                404
    """
    server = HTTPServer(config)
    register_routes(server.router, server.config)
    return server
