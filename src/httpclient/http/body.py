"""
=============================================================================
MESSAGE BODIES
=============================================================================

A body is either fully in memory or a live byte source that is read as
it arrives.

=============================================================================
THE THREE BODY SHAPES
=============================================================================

    ┌──────────────────────────┬──────────┬───────────────────────────────┐
    │  Variant                 │  size    │  On the wire                  │
    ├──────────────────────────┼──────────┼───────────────────────────────┤
    │  BufferedBody(b"...")    │  len()   │  Content-Length, one write    │
    │  StreamBody(src, size=n) │  n       │  Content-Length, piped as-is  │
    │  StreamBody(src)         │  None    │  Transfer-Encoding: chunked   │
    └──────────────────────────┴──────────┴───────────────────────────────┘

A stream body is SINGLE PASS. Bytes that have been read are gone; there
is no rewind. Iterating a StreamBody a second time raises
BodyConsumedError instead of silently yielding nothing.

ReadableStream is the live source the engine itself produces for
streamed responses: the transport feeds chunks in, the caller iterates
them out.

    transport ──feed()──► [ queue ] ──async for──► caller
              ──end()───►           (StopAsyncIteration)
              ──fail()──►           (exception raised in caller)

=============================================================================
"""

import asyncio
from typing import AsyncIterable, AsyncIterator, Optional, Union

from ..errors import BodyConsumedError

BodyContent = Union["Body", bytes, bytearray, memoryview, str, AsyncIterable[bytes], None]


class _EndOfStream:
    pass


class _StreamFailure:
    def __init__(self, error: BaseException):
        self.error = error


_EOF = _EndOfStream()


class ReadableStream:
    """
    Queue-backed, single-pass async byte source.

    Producer side: ``feed()``, ``end()``, ``fail()``.
    Consumer side: ``async for chunk in stream`` or ``await stream.read()``.
    """

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False     # producer finished (end or fail)
        self._finished = False   # consumer has seen the end

    @property
    def readable(self) -> bool:
        """True until the consumer has reached the end (or the failure)."""
        return not self._finished

    @property
    def closed(self) -> bool:
        """True once the producer called end() or fail()."""
        return self._closed

    def feed(self, data: bytes) -> None:
        if self._closed:
            raise RuntimeError("Cannot feed a closed stream")
        if data:
            self._queue.put_nowait(bytes(data))

    def end(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_EOF)

    def fail(self, error: BaseException) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_StreamFailure(error))

    def __aiter__(self) -> "ReadableStream":
        return self

    async def __anext__(self) -> bytes:
        if self._finished:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _EOF:
            self._finished = True
            raise StopAsyncIteration
        if isinstance(item, _StreamFailure):
            self._finished = True
            raise item.error
        return item

    async def read(self) -> bytes:
        """Drain the stream and return everything that is left."""
        return b"".join([chunk async for chunk in self])


class Body:
    """Common interface of buffered and streamed bodies."""

    is_stream = False

    @property
    def size(self) -> Optional[int]:
        raise NotImplementedError

    @property
    def readable(self) -> bool:
        raise NotImplementedError

    async def read(self) -> bytes:
        raise NotImplementedError


class BufferedBody(Body):
    """A body held completely in memory. Can be read any number of times."""

    def __init__(self, data: Union[bytes, bytearray, memoryview, str] = b""):
        if isinstance(data, str):
            data = data.encode("utf-8")
        self._data = bytes(data)

    @property
    def size(self) -> int:
        return len(self._data)

    @property
    def readable(self) -> bool:
        return True

    def to_bytes(self) -> bytes:
        return self._data

    def __bytes__(self) -> bytes:
        return self._data

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, BufferedBody):
            return self._data == other._data
        if isinstance(other, (bytes, bytearray)):
            return self._data == other
        return NotImplemented

    def __hash__(self):
        return hash(self._data)

    def __repr__(self) -> str:
        return f"BufferedBody({self._data[:32]!r}{'...' if len(self._data) > 32 else ''})"

    async def __aiter__(self) -> AsyncIterator[bytes]:
        if self._data:
            yield self._data

    async def read(self) -> bytes:
        return self._data


class StreamBody(Body):
    """
    A live byte source, optionally with a declared size.

    Any async iterable of bytes works as the source: a ReadableStream,
    an async generator, an aiofiles handle iterated in chunks, ...
    """

    is_stream = True

    def __init__(self, source: AsyncIterable[bytes], size: Optional[int] = None):
        if size is not None and size < 0:
            raise ValueError(f"Stream size must be >= 0, got {size}")
        self._source = source
        self._size = size
        self._consumed = False

    @property
    def size(self) -> Optional[int]:
        return self._size

    @property
    def readable(self) -> bool:
        if self._consumed:
            return False
        # Sources that know they are exhausted (ReadableStream) say so
        return getattr(self._source, "readable", True)

    @property
    def source(self) -> AsyncIterable[bytes]:
        return self._source

    def __repr__(self) -> str:
        return f"StreamBody(size={self._size!r}, consumed={self._consumed})"

    def __aiter__(self) -> AsyncIterator[bytes]:
        if self._consumed:
            raise BodyConsumedError()
        self._consumed = True
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[bytes]:
        async for chunk in self._source:
            if isinstance(chunk, str):
                chunk = chunk.encode("utf-8")
            yield bytes(chunk)

    async def read(self) -> bytes:
        return b"".join([chunk async for chunk in self])


def as_body(content: BodyContent) -> Body:
    """
    Coerce whatever the caller passed as content into a Body.

        None / b"" / ""          → empty BufferedBody
        bytes / str              → BufferedBody
        async iterable of bytes  → StreamBody of unknown size
        Body                     → unchanged
    """
    if content is None:
        return BufferedBody(b"")
    if isinstance(content, Body):
        return content
    if isinstance(content, (bytes, bytearray, memoryview, str)):
        return BufferedBody(content)
    if hasattr(content, "__aiter__"):
        return StreamBody(content)
    raise TypeError(f"Unsupported body type: {type(content).__name__}")
