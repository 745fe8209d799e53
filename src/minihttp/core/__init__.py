"""
=============================================================================
CORE SERVER COMPONENTS
=============================================================================

The transport half of the server. Nothing in here knows about HTTP.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         SOCKET SERVER                                │
    │  • Binds the listening socket (127.0.0.1:4221 by default)           │
    │  • Runs the accept() loop                                           │
    │  • Wraps every accepted socket in a Connection                      │
    └─────────────────────────────────────────────────────────────────────┘
                                    │ hands off
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                          THREAD POOL                                 │
    │  • Bounded worker threads over a bounded queue                      │
    │  • submit() returns False when saturated (the server sends 503)     │
    └─────────────────────────────────────────────────────────────────────┘
                                    │ runs
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                          CONNECTION                                  │
    │  • Socket + buffered duplex stream                                  │
    │  • State tracking for one request/response cycle                    │
    │  • Graceful close (flush, FIN, drain, close)                        │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState
from .thread_pool import ThreadPool, Task, Worker, WorkerState

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "ThreadPool",
    "Task",
    "Worker",
    "WorkerState",
]
