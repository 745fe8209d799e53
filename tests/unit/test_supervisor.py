"""
Unit tests for the per-connection supervisor in HTTPServer.

The connection's buffered stream is swapped for a scripted one, so each
test controls exactly what the client sent and where writing breaks.
"""

import io
import logging
import socket
import threading
import time
from typing import Optional

import pytest

from minihttp import ServerConfig, create_app
from minihttp.core.connection import Connection, ConnectionState
from minihttp.http import InternalError, NotFound
from minihttp.http.response import HTTPResponse


class ScriptedStream:
    """Request bytes to read, and a sink that fails after ``allow`` bytes."""

    def __init__(self, request: bytes, allow: Optional[int] = None):
        self._request = io.BytesIO(request)
        self.allow = allow
        self.data = b""
        self.closed = False

    def readline(self, limit: int = -1) -> bytes:
        return self._request.readline(limit)

    def read(self, n: int = -1) -> bytes:
        return self._request.read(n)

    def write(self, b) -> int:
        if self.allow is not None and len(self.data) + len(b) > self.allow:
            raise BrokenPipeError("broken pipe")
        self.data += bytes(b)
        return len(b)

    def flush(self):
        pass

    def close(self):
        self.closed = True


@pytest.fixture
def app(config: ServerConfig):
    return create_app(config)


@pytest.fixture
def connect():
    """Build Connections over socketpairs whose stream is a ScriptedStream."""
    sockets = []

    def make(request: bytes, allow: Optional[int] = None) -> Connection:
        ours, peer = socket.socketpair()
        sockets.extend([ours, peer])
        peer.close()

        conn = Connection(socket=ours, address=("127.0.0.1", 50000))
        conn._stream.close()
        conn._stream = ScriptedStream(request, allow)
        return conn

    yield make

    for sock in sockets:
        sock.close()


class TestProcessConnection:

    def test_success(self, app, connect):
        conn = connect(b"GET /echo/abc HTTP/1.1\r\n\r\n")
        stream = conn.stream

        app._process_connection(conn)

        assert stream.data == (
            b"HTTP/1.1 200\r\n"
            b"Content-Type: text/plain\r\n"
            b"Content-Length: 3\r\n"
            b"\r\n"
            b"abc"
        )
        assert stream.closed
        assert conn.state == ConnectionState.CLOSED

    def test_malformed_request_line(self, app, connect):
        conn = connect(b"GARBAGE\r\n\r\n")
        stream = conn.stream

        app._process_connection(conn)

        assert stream.data.startswith(b"HTTP/1.1 400\r\n")
        assert stream.data.endswith(b"Bad request: no path found in request line")

    def test_unexpected_exception_is_500(self, app, connect, caplog):
        caplog.set_level(logging.INFO, logger="minihttp")

        @app.get("/crash")
        def crash(request):
            raise RuntimeError("handler bug")

        conn = connect(b"GET /crash HTTP/1.1\r\n\r\n")
        stream = conn.stream

        app._process_connection(conn)

        assert stream.data.startswith(b"HTTP/1.1 500\r\n")
        assert stream.data.endswith(b"Internal server error")
        assert b"handler bug" not in stream.data
        assert "Unexpected error: handler bug" in caplog.text

    def test_mismatched_length_answered_with_500(self, app, connect):
        @app.get("/bad-length")
        def bad_length(request):
            return HTTPResponse(headers=[("Content-Length", "10")], body=b"abc")

        conn = connect(b"GET /bad-length HTTP/1.1\r\n\r\n")
        stream = conn.stream

        app._process_connection(conn)

        assert stream.data.startswith(b"HTTP/1.1 500\r\n")
        assert stream.data.count(b"HTTP/1.1 ") == 1

    def test_failure_while_writing_sends_no_second_status(self, app, connect, caplog):
        caplog.set_level(logging.INFO, logger="minihttp")

        @app.get("/short")
        def short(request):
            return HTTPResponse(headers=[("Content-Length", "10")], body=io.BytesIO(b"abc"))

        conn = connect(b"GET /short HTTP/1.1\r\n\r\n")
        stream = conn.stream

        app._process_connection(conn)

        assert stream.data == b"HTTP/1.1 200\r\nContent-Length: 10\r\n\r\nabc"
        assert "Error while writing response" in caplog.text

    def test_failed_error_response_is_logged(self, app, connect, caplog):
        caplog.set_level(logging.INFO, logger="minihttp")
        conn = connect(b"GARBAGE\r\n\r\n", allow=0)
        stream = conn.stream

        app._process_connection(conn)

        assert stream.data == b""
        assert "Error occurred while replying with error response" in caplog.text
        assert conn.state == ConnectionState.CLOSED

    def test_access_line(self, app, connect, caplog):
        caplog.set_level(logging.INFO, logger="minihttp")
        conn = connect(b"GET / HTTP/1.1\r\n\r\n")

        app._process_connection(conn)

        records = [r for r in caplog.records if r.name == "minihttp.access"]
        assert len(records) == 1
        assert '"GET /" 200' in records[0].getMessage()


class TestFail:

    def test_fail_while_writing_returns_none(self, app, connect):
        conn = connect(b"")
        stream = conn.stream
        conn.state = ConnectionState.WRITING

        assert app._fail(conn, InternalError("writing body to stream")) is None
        assert stream.data == b""

        conn.close()

    def test_fail_before_writing_sends_error(self, app, connect):
        conn = connect(b"")
        stream = conn.stream
        conn.state = ConnectionState.ROUTING

        assert app._fail(conn, NotFound()) == 404
        assert conn.state == ConnectionState.WRITING_ERROR
        assert stream.data.startswith(b"HTTP/1.1 404\r\n")

        conn.close()


class TestReject:

    def read_reply(self, sock: socket.socket) -> bytes:
        sock.settimeout(5.0)
        data = b""
        while True:
            chunk = sock.recv(4096)
            if not chunk:
                return data
            data += chunk

    def test_reject_sends_503(self, app):
        ours, peer = socket.socketpair()
        try:
            conn = Connection(socket=ours, address=("127.0.0.1", 50000))
            app._reject(conn)

            reply = self.read_reply(peer)
            assert reply.startswith(b"HTTP/1.1 503\r\n")
            assert reply.endswith(b"Server overloaded")
            assert conn.state == ConnectionState.CLOSED
        finally:
            peer.close()
            ours.close()

    def test_reject_does_not_wait_on_trickling_peer(self, app):
        ours, peer = socket.socketpair()
        stop = threading.Event()

        def trickle():
            while not stop.is_set():
                try:
                    peer.sendall(b"x")
                except OSError:
                    return
                time.sleep(0.05)

        thread = threading.Thread(target=trickle, daemon=True)
        thread.start()
        try:
            time.sleep(0.1)
            conn = Connection(socket=ours, address=("127.0.0.1", 50000))

            start = time.monotonic()
            app._reject(conn)

            assert time.monotonic() - start < 2.0
        finally:
            stop.set()
            thread.join(timeout=5.0)
            peer.close()
            ours.close()
