"""
=============================================================================
OUTGOING HTTP REQUEST
=============================================================================

Immutable description of a request to send.

=============================================================================
REQUEST ANATOMY
=============================================================================

    Request(
        method="POST",
        url="https://api.example.com:8443/users?page=1",
        headers=Headers({"Content-Type": "application/json"}),
        body=BufferedBody(b'{"name": "alice"}'),
        protocol_version="1.1",
    )

    url is split on demand:

        https :// api.example.com : 8443 /users?page=1
        ──┬──     ───────┬─────── ──┬─── ──────┬─────
        scheme         host        port     target

    On the wire this becomes:

        POST /users?page=1 HTTP/1.1\r\n
        Host: api.example.com:8443\r\n
        Content-Type: application/json\r\n
        Content-Length: 17\r\n
        \r\n
        {"name": "alice"}

=============================================================================
WHY IMMUTABLE?
=============================================================================

A request may be logged, retried by the caller, or sent twice from two
tasks. If one of them could add a header in place, the other would see
it. Every with_*() method returns a NEW Request instead:

    base = Request.create("GET", "http://example.com/")
    authed = base.with_header("Authorization", "Bearer abc")
    # base is unchanged

=============================================================================
"""

from dataclasses import dataclass, field, replace
from typing import Optional
from urllib.parse import urlsplit

from .body import Body, BodyContent, BufferedBody, as_body
from .headers import Headers, HeadersInit

DEFAULT_PORTS = {"http": 80, "https": 443}


@dataclass(frozen=True)
class Request:
    """
    An HTTP request value object.

    Attributes:
        method:           Request method, uppercase ("GET", "POST", ...)
        url:              Absolute URL. Scheme and host are required to send.
        headers:          Headers to send (case-insensitive, multi-valued)
        body:             BufferedBody or StreamBody
        protocol_version: "1.1" or "1.0"
    """

    method: str
    url: str
    headers: Headers = field(default_factory=Headers)
    body: Body = field(default_factory=BufferedBody)
    protocol_version: str = "1.1"

    @classmethod
    def create(
        cls,
        method: str,
        url: str,
        headers: HeadersInit = None,
        body: BodyContent = None,
        protocol_version: str = "1.1",
    ) -> "Request":
        """Build a request from loose inputs (dict headers, bytes/str body)."""
        return cls(
            method=method.upper(),
            url=url,
            headers=Headers(headers),
            body=as_body(body),
            protocol_version=protocol_version,
        )

    # =========================================================================
    # URL COMPONENTS
    # =========================================================================

    @property
    def scheme(self) -> str:
        return urlsplit(self.url).scheme.lower()

    @property
    def host(self) -> str:
        return urlsplit(self.url).hostname or ""

    @property
    def port(self) -> Optional[int]:
        """Explicit port, else the scheme's default port (None if unknown)."""
        explicit = urlsplit(self.url).port
        if explicit is not None:
            return explicit
        return DEFAULT_PORTS.get(self.scheme)

    @property
    def target(self) -> str:
        """Request target for the request line: path plus query."""
        parts = urlsplit(self.url)
        target = parts.path or "/"
        if parts.query:
            target += "?" + parts.query
        return target

    @property
    def is_absolute(self) -> bool:
        """True if the URL has both scheme and host, i.e. can be sent."""
        try:
            return bool(self.scheme) and bool(self.host)
        except ValueError:
            # Malformed netloc such as an unclosed IPv6 bracket
            return False

    # =========================================================================
    # COPY-ON-WRITE MUTATORS
    # =========================================================================

    def with_header(self, name: str, value) -> "Request":
        """Replace all values of ``name``."""
        return replace(self, headers=self.headers.with_header(name, value))

    def with_added_header(self, name: str, value) -> "Request":
        """Append a value to ``name``, keeping existing ones."""
        return replace(self, headers=self.headers.with_added(name, value))

    def without_header(self, name: str) -> "Request":
        return replace(self, headers=self.headers.without(name))

    def with_body(self, body: BodyContent) -> "Request":
        return replace(self, body=as_body(body))

    def with_method(self, method: str) -> "Request":
        return replace(self, method=method.upper())

    def with_url(self, url: str) -> "Request":
        return replace(self, url=url)

    def with_protocol_version(self, version: str) -> "Request":
        return replace(self, protocol_version=version)
