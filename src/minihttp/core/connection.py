"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket: a buffered two-way byte stream for the
parser and writer, state tracking for logs, and a proper TCP close.

=============================================================================
TCP IS A BYTE STREAM, NOT A MESSAGE PROTOCOL!
=============================================================================

    Client sends:
        send("GET /echo/abc HTTP/1.1\r\nHost: x\r\n\r\n")

    Server might receive:
        recv() → "GET /echo/a"          (partial)
        recv() → "bc HTTP/1.1\r\nHo"    (rest of line + more)
        recv() → "st: x\r\n\r\n"        (end of head)

Rather than gluing recv() chunks together by hand, we let the standard
library do it: ``socket.makefile("rwb")`` returns a buffered reader/writer
pair over the socket.

    ┌─────────────────────────────────────────────────────────────────┐
    │                 conn.stream (io.BufferedRWPair)                  │
    ├─────────────────────────────────────────────────────────────────┤
    │                                                                  │
    │   readline()  → one request/header line, however it was split   │
    │   read(n)     → up to n body bytes (upload)                      │
    │   write(b)    → buffered, nothing hits the socket yet           │
    │   flush()     → everything written so far goes out              │
    │                                                                  │
    └─────────────────────────────────────────────────────────────────┘

=============================================================================
ONE REQUEST PER CONNECTION
=============================================================================

There is no keep-alive: after one response the connection is closed.

    NEW ──► READING ──► ROUTING ──► WRITING ──► CLOSING ──► CLOSED
              │            │           │
              └────────────┴───────────┴──► WRITING_ERROR ──► CLOSING

=============================================================================
"""

import socket
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import BinaryIO, Optional
import uuid


logger = logging.getLogger(__name__)

# Upper bounds on discarding unread client bytes during close()
DRAIN_TIMEOUT = 0.5
DRAIN_LIMIT = 64 * 1024


class ConnectionState(Enum):
    """Where a connection is in its single request/response cycle."""
    NEW = "new"                      # Just accepted
    READING = "reading"              # Parsing request line and headers
    ROUTING = "routing"              # Handler is running (may read the body)
    WRITING = "writing"              # Response head/body going out
    WRITING_ERROR = "writing_error"  # Sending an error response instead
    CLOSING = "closing"              # Shutdown sequence in progress
    CLOSED = "closed"                # Socket released


@dataclass
class Connection:
    """
    A client connection.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    Connection Responsibilities                       │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │  1. BUFFERED STREAM                                                  │
    │     └── conn.stream: readline()/read() for the parser and upload    │
    │     └── write()/flush() for the response writer                     │
    │                                                                      │
    │  2. TIMEOUT                                                          │
    │     └── A peer that stops sending raises socket.timeout             │
    │         instead of holding a worker forever                          │
    │                                                                      │
    │  3. STATE TRACKING                                                   │
    │     └── For logging, and so the server knows whether a response     │
    │         has already started going out                                │
    │                                                                      │
    │  4. GRACEFUL CLOSE                                                   │
    │     └── flush, FIN, drain, close                                    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        id: Short connection identifier (for logging).
        state: Current connection state.
        created_at: Timestamp when connection was accepted.
    """

    socket: socket.socket
    address: tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)

    buffer_size: int = 8192
    timeout: Optional[float] = 30.0

    _stream: Optional[BinaryIO] = field(default=None, repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

        # Buffered reader + writer over the same socket
        self._stream = self.socket.makefile("rwb", buffering=self.buffer_size)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def stream(self) -> BinaryIO:
        """The buffered duplex stream for this connection."""
        return self._stream

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def client_port(self) -> int:
        return self.address[1]

    @property
    def age(self) -> float:
        """Seconds since the connection was accepted."""
        return time.time() - self.created_at

    # =========================================================================
    # CLOSING: Properly terminate the connection
    # =========================================================================

    def close(self, drain_timeout: float = DRAIN_TIMEOUT):
        """
        Close the connection gracefully.

        1. Close the buffered stream (flushes anything still buffered)
        2. shutdown(SHUT_WR): send FIN, the client sees end of response
        3. Drain whatever the client still had in flight (an unread body),
           so the kernel does not answer it with RST and eat our response
        4. close(): release the file descriptor

        The drain is bounded twice: by ``drain_timeout`` seconds in total
        (not per recv) and by DRAIN_LIMIT bytes. A peer that keeps sending
        cannot hold the caller here. ``drain_timeout=0`` only sweeps what
        has already arrived, without waiting.

        Safe to call more than once.
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self._stream.close()
        except OSError as e:
            logger.debug(f"[{self.id}] Flush on close failed: {e}")

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Peer already gone

        self._drain(drain_timeout)

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.age:.3f}s")

    def _drain(self, timeout: float) -> int:
        """Discard incoming bytes until EOF, the deadline, or DRAIN_LIMIT."""
        deadline = time.monotonic() + timeout
        drained = 0

        try:
            while drained < DRAIN_LIMIT:
                remaining = deadline - time.monotonic()
                if remaining > 0:
                    self.socket.settimeout(remaining)
                else:
                    self.socket.setblocking(False)

                chunk = self.socket.recv(4096)
                if not chunk:
                    break
                drained += len(chunk)
        except OSError:
            pass  # Timeout, nothing buffered (non-blocking), or reset

        if drained:
            logger.debug(f"[{self.id}] Drained {drained} unread bytes")
        return drained

    # =========================================================================
    # CONTEXT MANAGER
    # =========================================================================

    def __enter__(self):
        """
        Use with ``with`` for guaranteed cleanup:

            with conn:
                request = parser.parse(conn.stream)
                ...
            # closed here, even on exceptions
        """
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False  # Don't suppress exceptions
