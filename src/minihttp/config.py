"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Everything the server needs to know at startup, in one dataclass.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m minihttp --directory /srv/files                  │
    │                                                                      │
    │   2. Environment variables (ServerConfig.from_env)                  │
    │      └── HTTP_DIRECTORY=/srv/files python -m minihttp               │
    │                                                                      │
    │   3. Defaults below                                                  │
    │      └── 127.0.0.1:4221, ./test-files                               │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The config object is built once and then only read. The file handler gets
the base directory from it explicitly; there is no module-level global.

=============================================================================
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class ServerConfig:
    """
    Configuration for the HTTP server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK     host, port, backlog, buffer_size, timeout
    PARSING     max_line_size, case_sensitive_headers
    THREADING   min_workers, max_workers, queue_size
    FILES       directory, confine_files
    LOGGING     log_level

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """Address to bind. Loopback by default."""

    port: int = 4221
    """TCP port to listen on. 0 lets the OS pick one (tests)."""

    backlog: int = 128
    """Maximum number of queued connections before the OS refuses."""

    buffer_size: int = 8192
    """Buffer size of the per-connection stream, in bytes."""

    timeout: Optional[float] = 30.0
    """
    Socket timeout in seconds for each client connection.
    None = block forever (a stalled peer then holds its worker for good).
    """

    # ─────────────────────────────────────────────────────────────────────
    # PARSING
    # ─────────────────────────────────────────────────────────────────────

    max_line_size: int = 64 * 1024
    """Longest request line or header line accepted (400 beyond this)."""

    case_sensitive_headers: bool = False
    """
    Match header names exactly as written.
    False (default): "user-agent" finds "User-Agent".
    True: only "User-Agent" finds "User-Agent".
    """

    # ─────────────────────────────────────────────────────────────────────
    # THREAD POOL SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    min_workers: int = 4
    """Worker threads started with the server."""

    max_workers: int = 16
    """Upper bound on worker threads, i.e. on concurrent connections."""

    queue_size: int = 100
    """Accepted connections that may wait for a worker before we send 503."""

    # ─────────────────────────────────────────────────────────────────────
    # FILES
    # ─────────────────────────────────────────────────────────────────────

    directory: str = "test-files"
    """Base directory that /files/<name> is resolved against."""

    confine_files: bool = True
    """
    Refuse /files/ paths that resolve outside ``directory``
    (e.g. /files/../../etc/passwd). Refusals are answered with 404.
    """

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """DEBUG, INFO, WARNING or ERROR."""

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        HTTP_HOST       Server host (default: 127.0.0.1)
        HTTP_PORT       Server port (default: 4221)
        HTTP_WORKERS    Max worker threads (default: 16)
        HTTP_TIMEOUT    Socket timeout in seconds (default: 30)
        HTTP_DIRECTORY  Base directory for /files/ (default: test-files)
        HTTP_LOG_LEVEL  Logging level (default: INFO)

        =====================================================================
        """
        return cls(
            host=os.getenv("HTTP_HOST", "127.0.0.1"),
            port=int(os.getenv("HTTP_PORT", "4221")),
            max_workers=int(os.getenv("HTTP_WORKERS", "16")),
            timeout=float(os.getenv("HTTP_TIMEOUT", "30")),
            directory=os.getenv("HTTP_DIRECTORY", "test-files"),
            log_level=os.getenv("HTTP_LOG_LEVEL", "INFO"),
        )

    def validate(self) -> None:
        """
        Validate configuration values at startup (fail fast).

        Raises:
            ValueError: A value is out of range.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.min_workers < 1:
            raise ValueError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")

        if self.queue_size < 1:
            raise ValueError("queue_size must be >= 1")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.max_line_size < 256:
            raise ValueError("max_line_size must be >= 256")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ValueError(f"Unknown log level: {self.log_level}")
