"""
=============================================================================
HTTP RESPONSE
=============================================================================

Immutable view of a response as it came back from the server.

=============================================================================
TWO WAYS A RESPONSE ARRIVES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │  BUFFERED (default)                                                 │
    │                                                                      │
    │    headers ──► data ──► data ──► end ──► Response(body=Buffered)    │
    │                                           ▲                          │
    │                              the result resolves HERE               │
    │                                                                      │
    ├─────────────────────────────────────────────────────────────────────┤
    │  STREAMING                                                          │
    │                                                                      │
    │    headers ──► Response(body=Stream) ──► data ──► data ──► end      │
    │                ▲                                                     │
    │    the result resolves HERE, body bytes follow through the stream   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

In both cases ``await response.read()`` returns the whole body. With a
streamed body it can only be called once; ``async for chunk in
response.body`` processes data while it is still arriving.

=============================================================================
"""

import json
from dataclasses import dataclass, field
from typing import Any, Optional

from .body import Body, BufferedBody
from .headers import Headers
from .status_codes import HTTPStatus


@dataclass(frozen=True)
class Response:
    """
    An HTTP response value object.

    Attributes:
        protocol_version: "1.1", "1.0", ...
        status_code:      Numeric status (200, 404, ...)
        reason_phrase:    Text after the code ("OK", "Not Found")
        headers:          Response headers
        body:             BufferedBody or StreamBody
    """

    protocol_version: str
    status_code: int
    reason_phrase: str = ""
    headers: Headers = field(default_factory=Headers)
    body: Body = field(default_factory=BufferedBody)

    @property
    def status(self) -> Optional[HTTPStatus]:
        """The status as an HTTPStatus member, None for unknown codes."""
        try:
            return HTTPStatus(self.status_code)
        except ValueError:
            return None

    @property
    def ok(self) -> bool:
        """True for 2xx responses."""
        return 200 <= self.status_code < 300

    @property
    def is_streaming(self) -> bool:
        return self.body.is_stream

    @property
    def status_line(self) -> str:
        return f"HTTP/{self.protocol_version} {self.status_code} {self.reason_phrase}".rstrip()

    @property
    def content_type(self) -> Optional[str]:
        """Media type without parameters, lowercase ("text/html")."""
        value = self.headers.get("Content-Type")
        if not value:
            return None
        return value.split(";")[0].strip().lower()

    @property
    def charset(self) -> Optional[str]:
        """Charset parameter of Content-Type, if any."""
        value = self.headers.get("Content-Type") or ""
        for param in value.split(";")[1:]:
            key, _, val = param.partition("=")
            if key.strip().lower() == "charset" and val:
                return val.strip().strip('"')
        return None

    async def read(self) -> bytes:
        """Whole body as bytes. Drains the stream for streamed bodies."""
        return await self.body.read()

    async def text(self, encoding: Optional[str] = None) -> str:
        """Body decoded with ``encoding``, the declared charset, or UTF-8."""
        data = await self.read()
        return data.decode(encoding or self.charset or "utf-8", errors="replace")

    async def json(self) -> Any:
        """Body parsed as JSON."""
        return json.loads(await self.read())
