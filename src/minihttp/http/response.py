"""
=============================================================================
HTTP RESPONSE PLAN AND WRITER
=============================================================================

Handlers describe the reply they want as an HTTPResponse (status, ordered
headers, body source). HTTPResponse.write_to() serializes it onto the
connection's buffered stream.

=============================================================================
WHAT GOES ON THE WIRE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP RESPONSE STRUCTURE                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    HTTP/1.1 200\r\n                      ← status line (no phrase)  │
    │    Content-Type: application/octet-stream\r\n                       │
    │    Content-Length: 5\r\n                 ← in the order given       │
    │    \r\n                                  ← end of head              │
    │    hello                                 ← body                     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Nothing is added behind the handler's back: no Date, no Server, no
automatic Content-Length. A plan with no headers and no body really is
just "HTTP/1.1 200\r\n\r\n".

=============================================================================
BODY SOURCES
=============================================================================

    ┌───────────────┬──────────────────────────────────────────────────────┐
    │ body          │ written as                                           │
    ├───────────────┼──────────────────────────────────────────────────────┤
    │ None          │ nothing                                              │
    │ bytes         │ one write()                                          │
    │ binary stream │ chunked copy until the source is exhausted, or until │
    │ (open file)   │ Content-Length bytes have gone out; source is then   │
    │               │ closed                                               │
    └───────────────┴──────────────────────────────────────────────────────┘

Streaming means a 2 GB file never sits in memory; each worker holds at
most one chunk.

THE CONTENT-LENGTH RULE:
    If a Content-Length header is present, exactly that many body bytes
    are written. A bytes body of the wrong size is refused before anything
    is sent; a streamed source that runs dry early is an InternalError.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import BinaryIO, List, Optional, Tuple, Union

from .errors import HTTPError, InternalError
from .status_codes import HTTPStatus


BodySource = Union[bytes, BinaryIO, None]

# Copy granularity for streamed bodies
DEFAULT_CHUNK_SIZE = 64 * 1024


@dataclass
class HTTPResponse:
    """
    A Response Plan: what to send back, not yet sent.

    =========================================================================
    RESPONSE LIFECYCLE
    =========================================================================

        Handler returns          write_to(stream)           Connection
        HTTPResponse    ─────►   head + body      ─────►    flush, close
            │                       │
        HTTPResponse(            b"HTTP/1.1 200\r\n
          status=200,              Content-Length: 5\r\n
          headers=[...],           \r\n
          body=b"hello"            hello"
        )

    =========================================================================
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: List[Tuple[str, str]] = field(default_factory=list)
    body: BodySource = None
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """"HTTP/1.1 <code>", e.g. "HTTP/1.1 404"."""
        return f"{self.version} {int(self.status)}"

    def add_header(self, name: str, value: str) -> "HTTPResponse":
        """Append a header. Duplicates are kept, order is preserved."""
        self.headers.append((name, value))
        return self

    def get_header(self, name: str) -> Optional[str]:
        """First value for ``name`` (case-insensitive), or None."""
        wanted = name.lower()
        for key, value in self.headers:
            if key.lower() == wanted:
                return value
        return None

    @property
    def content_length(self) -> Optional[int]:
        """Declared Content-Length, or None when the plan has none."""
        value = self.get_header("Content-Length")
        return int(value) if value is not None else None

    @property
    def is_streaming(self) -> bool:
        return self.body is not None and not isinstance(self.body, bytes)

    def head_bytes(self) -> bytes:
        """Status line, headers and the blank line, as bytes."""
        lines = [self.status_line]
        for name, value in self.headers:
            lines.append(f"{name}: {value}")
        lines.append("")
        return ("\r\n".join(lines) + "\r\n").encode("iso-8859-1")

    def check(self) -> None:
        """
        Refuse a plan that cannot be written as declared.

        Runs before anything reaches the wire, so the caller can still
        answer with an error response instead.

        Raises:
            InternalError: Content-Length is not a number, or a bytes body
                           does not have that many bytes.

        A refused streamed body is closed before raising.
        """
        try:
            declared = self.content_length
        except ValueError:
            self.close()
            raise InternalError(
                f"invalid Content-Length {self.get_header('Content-Length')!r} in response"
            )

        if isinstance(self.body, bytes) and declared is not None and declared != len(self.body):
            raise InternalError(
                f"Content-Length {declared} does not match body of {len(self.body)} bytes"
            )

    # =========================================================================
    # WRITER
    # =========================================================================

    def write_to(self, stream: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE) -> int:
        """
        Serialize the response onto ``stream`` and flush it.

        =====================================================================
        STEPS
        =====================================================================

            1. Check a bytes body against Content-Length (before writing)
            2. Write status line + headers + blank line
            3. Write the body (bytes, or chunked copy of a stream)
            4. Flush, so the bytes reach the peer before the socket closes

        =====================================================================

        Args:
            stream: Writable binary stream (the connection's makefile).
            chunk_size: Copy buffer size for streamed bodies.

        Returns:
            Number of body bytes written.

        Raises:
            InternalError: Any read/write/flush failure, or a body that
                           does not match its Content-Length.
        """
        try:
            self.check()
            declared = self.content_length

            try:
                stream.write(self.head_bytes())
            except OSError as e:
                raise InternalError("writing header to stream") from e

            if self.body is None:
                written = 0
            elif isinstance(self.body, bytes):
                try:
                    stream.write(self.body)
                except OSError as e:
                    raise InternalError("writing body to stream") from e
                written = len(self.body)
            else:
                written = _copy_stream(self.body, stream, declared, chunk_size)

            try:
                stream.flush()
            except OSError as e:
                raise InternalError("flushing stream") from e

            return written
        finally:
            self.close()

    def close(self) -> None:
        """Release a streamed body source, if any."""
        if self.is_streaming:
            try:
                self.body.close()
            except OSError:
                pass


def _copy_stream(
    source: BinaryIO,
    sink: BinaryIO,
    limit: Optional[int],
    chunk_size: int,
) -> int:
    """
    Copy ``source`` to ``sink`` until exhaustion or ``limit`` bytes.

    shutil.copyfileobj would do the unbounded case, but we need to stop
    at Content-Length even if the file grew after we measured it.
    """
    written = 0
    while limit is None or written < limit:
        want = chunk_size if limit is None else min(chunk_size, limit - written)
        try:
            chunk = source.read(want)
            if not chunk:
                break
            sink.write(chunk)
        except OSError as e:
            raise InternalError("streaming byte stream to output stream") from e
        written += len(chunk)

    if limit is not None and written < limit:
        raise InternalError(
            f"body source ended {limit - written} bytes short of Content-Length"
        )
    return written


class ResponseBuilder:
    """
    Fluent builder for HTTPResponse.

        response = (ResponseBuilder()
            .status(HTTPStatus.OK)
            .text("hello")
            .build())

    text() and stream() add Content-Type and Content-Length in that order,
    so the head comes out the same way for every route.
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: List[Tuple[str, str]] = []
        self._body: BodySource = None

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        self._status = HTTPStatus(status)
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        """Set a header, replacing an earlier one with the same name."""
        for i, (key, _) in enumerate(self._headers):
            if key.lower() == name.lower():
                self._headers[i] = (name, value)
                return self
        self._headers.append((name, value))
        return self

    def headers(self, headers: List[Tuple[str, str]]) -> "ResponseBuilder":
        for name, value in headers:
            self.header(name, value)
        return self

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        """Raw body, no headers added. Strings are UTF-8 encoded."""
        self._body = body.encode("utf-8") if isinstance(body, str) else body
        return self

    def text(
        self,
        text: Union[str, bytes],
        content_type: str = "text/plain",
        encoding: str = "utf-8",
    ) -> "ResponseBuilder":
        """
        Plain-text body with Content-Type and Content-Length.

        Content-Length is the byte length after encoding, not len(text).
        """
        data = text.encode(encoding) if isinstance(text, str) else text
        self._body = data
        self.header("Content-Type", content_type)
        self.header("Content-Length", str(len(data)))
        return self

    def stream(
        self,
        source: BinaryIO,
        length: int,
        content_type: str = "application/octet-stream",
    ) -> "ResponseBuilder":
        """
        Streamed body of exactly ``length`` bytes read from ``source``.

        The response takes ownership of ``source`` and closes it after
        writing.
        """
        self._body = source
        self.header("Content-Type", content_type)
        self.header("Content-Length", str(length))
        return self

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=list(self._headers),
            body=self._body,
        )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def ok(body: Union[str, bytes, None] = None) -> HTTPResponse:
    """
    200 OK. With no body the response is the bare status line.

    A body gets text/plain with its Content-Length.
    """
    if body is None:
        return HTTPResponse(status=HTTPStatus.OK)
    return ResponseBuilder().status(HTTPStatus.OK).text(body).build()


def created() -> HTTPResponse:
    """201 Created, no headers and no body."""
    return HTTPResponse(status=HTTPStatus.CREATED)


def error_response(error: HTTPError) -> HTTPResponse:
    """
    Turn an HTTPError into the minimal response sent for it.

    The body is the error message only; the underlying OSError (if any)
    goes to the log, not to the client.
    """
    return (ResponseBuilder()
        .status(error.status_code)
        .headers(error.headers)
        .text(error.message)
        .build())
