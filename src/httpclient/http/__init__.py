"""
=============================================================================
HTTP MESSAGE MODEL
=============================================================================

Value objects for the messages this client sends and receives.

    ┌─────────────────────────────────────────────────────────────────────┐
    │ headers.py       Headers: case-insensitive, multi-valued, immutable │
    │ body.py          BufferedBody / StreamBody / ReadableStream         │
    │ request.py       Request: what to send                              │
    │ response.py      Response: what came back                           │
    │ chunked.py       Chunked transfer encoding, both directions         │
    │ status_codes.py  HTTPStatus and "can this response have a body?"    │
    └─────────────────────────────────────────────────────────────────────┘

None of these objects perform I/O. Sending is the Sender's job.

=============================================================================
"""

from .body import Body, BufferedBody, ReadableStream, StreamBody, as_body
from .chunked import CHUNKED_TERMINATOR, encode_chunk, read_chunked
from .headers import Headers
from .request import Request
from .response import Response
from .status_codes import HTTPStatus, reason_phrase, status_allows_body

__all__ = [
    # Messages
    "Request",
    "Response",
    "Headers",

    # Bodies
    "Body",
    "BufferedBody",
    "StreamBody",
    "ReadableStream",
    "as_body",

    # Chunked framing
    "CHUNKED_TERMINATOR",
    "encode_chunk",
    "read_chunked",

    # Status codes
    "HTTPStatus",
    "reason_phrase",
    "status_allows_body",
]
