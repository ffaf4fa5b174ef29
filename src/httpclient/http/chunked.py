"""
=============================================================================
CHUNKED TRANSFER ENCODING (RFC 7230 §4.1)
=============================================================================

Used when the length of a body is not known up front.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     CHUNKED BODY ON THE WIRE                        │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    5\r\n            ← size of the chunk, lowercase hex              │
    │    hello\r\n        ← exactly that many bytes, then CRLF            │
    │    1a\r\n                                                           │
    │    abcdefghijklmnopqrstuvwxyz\r\n                                   │
    │    0\r\n            ← zero-size chunk: end of body                  │
    │    \r\n             ← (optional trailers would go before this)      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Real servers parse this byte for byte, so the encoder must be exact.
An empty chunk cannot be sent as data: "0\r\n" IS the terminator.

=============================================================================
"""

import asyncio
from typing import AsyncIterator

from ..errors import ProtocolError

CRLF = b"\r\n"

# Zero-size last chunk followed by the empty trailer section.
CHUNKED_TERMINATOR = b"0\r\n\r\n"


def encode_chunk(data: bytes) -> bytes:
    """
    Frame one piece of data as a chunk.

        encode_chunk(b"hello")  →  b"5\\r\\nhello\\r\\n"

    Raises:
        ValueError: for empty data, which would terminate the body.
    """
    if not data:
        raise ValueError("Cannot frame an empty chunk; use CHUNKED_TERMINATOR to end the body")
    return format(len(data), "x").encode("ascii") + CRLF + bytes(data) + CRLF


def parse_chunk_size(line: bytes) -> int:
    """
    Parse a chunk-size line such as b"1a\\r\\n" or b"1a;name=value\\r\\n".

    Chunk extensions after ";" are ignored.
    """
    size_text = line.split(b";", 1)[0].strip()
    try:
        size = int(size_text, 16)
    except ValueError:
        raise ProtocolError(f"Invalid chunk size line: {line!r}")
    if size < 0:
        raise ProtocolError(f"Negative chunk size: {line!r}")
    return size


async def read_chunked(reader: asyncio.StreamReader) -> AsyncIterator[bytes]:
    """
    Decode a chunked body from a stream, yielding the payload of each chunk.

    Stops after the terminating zero-size chunk and its trailers.

    Raises:
        ProtocolError: on malformed framing.
        asyncio.IncompleteReadError: if the peer closes mid-body.
    """
    while True:
        size = parse_chunk_size(await reader.readuntil(CRLF))
        if size == 0:
            break
        data = await reader.readexactly(size)
        if await reader.readexactly(2) != CRLF:
            raise ProtocolError("Chunk data not followed by CRLF")
        yield data

    # Trailer section: header lines until an empty line
    while await reader.readuntil(CRLF) != CRLF:
        pass
