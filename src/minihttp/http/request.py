"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Reads the front of a buffered byte stream and turns it into a structured
HTTPRequest: request line plus header block. The body is left on the
stream for whichever handler needs it.

=============================================================================
WHAT WE READ
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP REQUEST STRUCTURE                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │  ┌─ REQUEST LINE ─────────────────────────────────────────────────┐ │
    │  │                                                                 │ │
    │  │    POST /files/report.txt HTTP/1.1\r\n                         │ │
    │  │    ─┬── ────────┬──────── ───┬────                              │ │
    │  │     │           │            │                                  │ │
    │  │   Method       Path       Version  (parsed, never acted on)     │ │
    │  │                                                                 │ │
    │  └─────────────────────────────────────────────────────────────────┘ │
    │                                                                      │
    │  ┌─ HEADERS (one readline() each) ────────────────────────────────┐ │
    │  │                                                                 │ │
    │  │    Host: localhost:4221\r\n                                    │ │
    │  │    User-Agent: curl/8.4.0\r\n                                  │ │
    │  │    Content-Length: 5\r\n                                       │ │
    │  │                                                                 │ │
    │  └─────────────────────────────────────────────────────────────────┘ │
    │                                                                      │
    │  ┌─ EMPTY LINE ───────────────────────────────────────────────────┐ │
    │  │    \r\n                    ← parser stops here                  │ │
    │  └─────────────────────────────────────────────────────────────────┘ │
    │                                                                      │
    │  ┌─ BODY ─────────────────────────────────────────────────────────┐ │
    │  │    hello                   ← still on the stream; read later    │ │
    │  │                              via HTTPRequest.iter_body()        │ │
    │  └─────────────────────────────────────────────────────────────────┘ │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
WHY PARSE LINE BY LINE?
=============================================================================

The connection gives us a buffered stream (socket.makefile), so
readline() already handles the "TCP has no message boundaries" problem
for us. Reading line by line means:

1. We never need the whole request in memory.
2. The body stays unread, so a large upload can be streamed straight to
   disk by the file handler.
3. Errors surface at the exact line that was malformed.

=============================================================================
ENCODING
=============================================================================

Request lines and headers are decoded as ISO-8859-1. Every byte maps to
exactly one code point, so nothing can fail to decode and
``text.encode("iso-8859-1")`` gives back the original bytes. That is what
lets /echo/<s> answer with the exact bytes the client sent.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import BinaryIO, Dict, Iterator, List, Optional, Tuple

from .errors import BadRequest, InternalError


# Wire encoding for the request line and header block
HEADER_ENCODING = "iso-8859-1"


class Headers:
    """
    Small ordered mapping of request headers.

    Names keep the casing the client sent. Lookups ignore case unless the
    mapping was built with ``case_sensitive=True``:

        headers = Headers()
        headers.add("User-Agent", "curl/8.4.0")
        headers.get("user-agent")      # "curl/8.4.0"

        strict = Headers(case_sensitive=True)
        strict.add("User-Agent", "curl/8.4.0")
        strict.get("user-agent")       # None

    A repeated name replaces the earlier value (last one wins) but keeps
    its original position.
    """

    def __init__(self, case_sensitive: bool = False):
        self.case_sensitive = case_sensitive
        # lookup key → (name as received, value)
        self._items: Dict[str, Tuple[str, str]] = {}

    def _key(self, name: str) -> str:
        return name if self.case_sensitive else name.lower()

    def add(self, name: str, value: str) -> None:
        """Store a header, replacing any earlier value for the same name."""
        key = self._key(name)
        if key in self._items:
            name = self._items[key][0]
        self._items[key] = (name, value)

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        item = self._items.get(self._key(name))
        return item[1] if item is not None else default

    def items(self) -> List[Tuple[str, str]]:
        """Headers as (name, value) pairs in the order received."""
        return list(self._items.values())

    def __getitem__(self, name: str) -> str:
        return self._items[self._key(name)][1]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self._key(name) in self._items

    def __iter__(self) -> Iterator[str]:
        return (name for name, _ in self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Headers):
            return self.items() == other.items()
        if isinstance(other, dict):
            return dict(self.items()) == other
        return NotImplemented

    # Mutable mapping: equality by content, so not hashable
    __hash__ = None

    def __repr__(self) -> str:
        return f"Headers({dict(self.items())!r})"


@dataclass(frozen=True, eq=False)
class HTTPRequest:
    """
    A parsed HTTP request.

    =========================================================================
    LIFECYCLE
    =========================================================================

        Buffered stream        RequestParser          Router
        (socket.makefile) ──parse──► HTTPRequest ──route──► handler(request)
                                        │
                                        └── stream: the SAME buffered
                                            stream, positioned at the
                                            first body byte

    Built once per connection and never modified. The router hands the
    handler a copy with path_params filled in (dataclasses.replace).
    Compared and hashed by identity: each instance is one request on one
    connection, and its headers are a mutable mapping.

    =========================================================================
    ATTRIBUTES
    =========================================================================

        method:       Request method token, as sent (GET, POST, ...)
        path:         Raw request target, no decoding (/echo/abc)
        version:      Version token (HTTP/1.1). Parsed, not used.
        headers:      Headers mapping
        path_params:  Wildcard captures from the matched route
                      Route "/files/*name" + "/files/a.txt" → {"name": "a.txt"}
        stream:       Where the body (if any) can still be read from
        client_address: (ip, port) of the peer, for logging

    =========================================================================
    """

    method: str
    path: str
    version: str = "HTTP/1.1"
    headers: Headers = field(default_factory=Headers)
    path_params: Dict[str, str] = field(default_factory=dict)
    stream: Optional[BinaryIO] = field(default=None, repr=False, compare=False)
    client_address: Tuple[str, int] = ("", 0)

    @property
    def user_agent(self) -> Optional[str]:
        """The User-Agent header, or None if the client sent none."""
        return self.headers.get("User-Agent")

    @property
    def content_length(self) -> int:
        """
        The Content-Length header as a non-negative integer.

        Unlike a lenient "default to 0", a request body is only read when
        the handler asks for it, and then the length must be stated.

        Raises:
            BadRequest: Header missing, or not a plain run of ASCII digits.
        """
        raw = self.headers.get("Content-Length")
        if raw is None:
            raise BadRequest("no content length header in request")
        # ASCII digits only: int() would also take "+5", " 5" and "5_0"
        if not (raw.isascii() and raw.isdigit()):
            raise BadRequest(f"invalid content length {raw!r}")
        return int(raw)

    def iter_body(self, chunk_size: int = 64 * 1024) -> Iterator[bytes]:
        """
        Yield exactly Content-Length body bytes from the stream, in chunks.

        This is the length-delimited sub-read used for uploads: the stream
        itself is never read to EOF, so a client that keeps its end open
        after sending the body does not stall us.

        Raises:
            BadRequest: Bad Content-Length, or the stream ended early.
            InternalError: The socket read failed.
        """
        remaining = self.content_length
        if remaining and self.stream is None:
            raise BadRequest("request has no body stream")

        while remaining > 0:
            try:
                chunk = self.stream.read(min(chunk_size, remaining))
            except OSError as e:
                raise InternalError("reading request body") from e
            if not chunk:
                raise BadRequest(
                    f"request body ended {remaining} bytes short of Content-Length"
                )
            remaining -= len(chunk)
            yield chunk

    def read_body(self) -> bytes:
        """Read the whole body into memory (small bodies only)."""
        return b"".join(self.iter_body())


class RequestParser:
    """
    Parses the request line and headers off a buffered binary stream.

    ==========================================================================
    PARSER FLOW
    ==========================================================================

        stream.readline()
              │
              ▼
        ┌───────────────────────────────────────────────────────────────────┐
        │  1. Request line ── split on whitespace, at most 3 tokens        │
        │     │  token missing? → BadRequest("no method/path/standard...") │
        │     ▼                                                             │
        │  2. Header lines ── until blank line (or EOF)                    │
        │     │  no ":"?       → BadRequest("invalid header format")        │
        │     │  too long?     → BadRequest("header line too long")         │
        │     ▼                                                             │
        │  3. HTTPRequest(method, path, version, headers, stream)          │
        └───────────────────────────────────────────────────────────────────┘

    No limit on the number of header lines. A stream that ends before the
    blank line simply ends the header block.

    ==========================================================================
    """

    def __init__(self, max_line_size: int = 64 * 1024, case_sensitive_headers: bool = False):
        """
        Args:
            max_line_size: Longest request/header line accepted, in bytes.
            case_sensitive_headers: Build Headers with exact-case lookups.
        """
        self.max_line_size = max_line_size
        self.case_sensitive_headers = case_sensitive_headers

    def parse(
        self,
        stream: BinaryIO,
        client_address: Tuple[str, int] = ("", 0),
    ) -> HTTPRequest:
        """
        Parse one request head from ``stream``.

        Args:
            stream: Readable binary stream with readline() (a socket
                    makefile, or io.BytesIO in tests).
            client_address: Peer (ip, port), carried along for logging.

        Returns:
            The parsed HTTPRequest, with ``stream`` left at the body.

        Raises:
            BadRequest: The request line or a header line is malformed.
            InternalError: Reading from the stream failed.
        """
        request_line = self._read_line(stream, "reading request line")
        method, path, version = self._parse_request_line(request_line)
        headers = self._parse_headers(stream)

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            stream=stream,
            client_address=client_address,
        )

    def _read_line(self, stream: BinaryIO, context: str) -> str:
        """Read one line (terminator included) and decode it."""
        try:
            raw = stream.readline(self.max_line_size + 1)
        except OSError as e:
            raise InternalError(context) from e

        if len(raw) > self.max_line_size:
            raise BadRequest("header line too long")

        return raw.decode(HEADER_ENCODING)

    def _parse_request_line(self, line: str) -> Tuple[str, str, str]:
        """
        Split "METHOD SP PATH SP VERSION" into its three tokens.

        ``str.split(None, 2)`` splits on runs of whitespace and leaves
        anything after the second separator in the version token.
        """
        parts = line.strip().split(None, 2)

        if len(parts) < 1:
            raise BadRequest("no method found in request line")
        if len(parts) < 2:
            raise BadRequest("no path found in request line")
        if len(parts) < 3:
            raise BadRequest("no standard found in request line")

        method, path, version = parts
        return method, path, version

    def _parse_headers(self, stream: BinaryIO) -> Headers:
        headers = Headers(case_sensitive=self.case_sensitive_headers)

        while True:
            line = self._read_line(stream, "reading header line")

            # Blank line ends the header block; so does EOF ("")
            if not line.strip():
                break

            name, sep, value = line.partition(":")
            if not sep:
                raise BadRequest("invalid header format")

            headers.add(name.strip(), value.strip())

        return headers


# =============================================================================
# CONVENIENCE FUNCTION
# =============================================================================

def parse_request(
    stream: BinaryIO,
    client_address: Tuple[str, int] = ("", 0),
    case_sensitive_headers: bool = False,
) -> HTTPRequest:
    """
    Parse a request head from ``stream`` with default parser settings.

    Use RequestParser directly to change the line size limit.
    """
    parser = RequestParser(case_sensitive_headers=case_sensitive_headers)
    return parser.parse(stream, client_address)
