"""
Unit tests for message bodies and the readable stream.
"""

import pytest

from conftest import iterate
from httpclient.errors import BodyConsumedError
from httpclient.http import BufferedBody, ReadableStream, StreamBody, as_body


class TestReadableStream:
    """Tests for the queue-backed stream."""

    @pytest.mark.asyncio
    async def test_feed_then_end(self):
        """Test that chunks come out in order and iteration stops at end."""
        stream = ReadableStream()
        stream.feed(b"a")
        stream.feed(b"")
        stream.feed(b"b")
        stream.end()

        assert [chunk async for chunk in stream] == [b"a", b"b"]
        assert stream.readable is False
        assert stream.closed is True

    @pytest.mark.asyncio
    async def test_fail_raises_in_consumer(self):
        """Test that fail() surfaces the error after buffered data."""
        stream = ReadableStream()
        stream.feed(b"partial")
        stream.fail(ConnectionResetError("boom"))

        received = []
        with pytest.raises(ConnectionResetError):
            async for chunk in stream:
                received.append(chunk)
        assert received == [b"partial"]

    def test_feed_after_end_rejected(self):
        """Test that a closed stream accepts no more data."""
        stream = ReadableStream()
        stream.end()

        with pytest.raises(RuntimeError):
            stream.feed(b"late")

    @pytest.mark.asyncio
    async def test_end_is_idempotent(self):
        """Test that end() and fail() after end() change nothing."""
        stream = ReadableStream()
        stream.end()
        stream.end()
        stream.fail(ValueError("ignored"))

        assert await stream.read() == b""


class TestBufferedBody:
    """Tests for in-memory bodies."""

    def test_size(self):
        """Test that size is the byte length."""
        assert BufferedBody(b"hello").size == 5
        assert BufferedBody("héllo").size == 6

    def test_not_a_stream(self):
        """Test buffered body flags."""
        body = BufferedBody(b"x")

        assert body.is_stream is False
        assert body.readable is True

    @pytest.mark.asyncio
    async def test_readable_many_times(self):
        """Test that a buffered body can be read repeatedly."""
        body = BufferedBody(b"data")

        assert await body.read() == b"data"
        assert await body.read() == b"data"
        assert [chunk async for chunk in body] == [b"data"]


class TestStreamBody:
    """Tests for live bodies."""

    @pytest.mark.asyncio
    async def test_single_pass(self):
        """Test that a second iteration raises BodyConsumedError."""
        body = StreamBody(iterate([b"a", b"b"]))

        assert await body.read() == b"ab"
        assert body.readable is False
        with pytest.raises(BodyConsumedError):
            await body.read()

    def test_size(self):
        """Test declared and unknown sizes."""
        assert StreamBody(iterate([]), size=10).size == 10
        assert StreamBody(iterate([])).size is None

    def test_negative_size_rejected(self):
        """Test that a negative size is invalid."""
        with pytest.raises(ValueError):
            StreamBody(iterate([]), size=-1)

    @pytest.mark.asyncio
    async def test_readable_follows_source(self):
        """Test that an exhausted ReadableStream source is not readable."""
        source = ReadableStream()
        body = StreamBody(source)
        assert body.readable is True

        source.end()
        await source.read()

        assert body.readable is False

    @pytest.mark.asyncio
    async def test_str_chunks_encoded(self):
        """Test that text chunks from the source become bytes."""
        assert await StreamBody(iterate(["é", b"!"])).read() == "é!".encode("utf-8")


class TestAsBody:
    """Tests for body coercion."""

    def test_none_is_empty(self):
        """Test that None gives an empty buffered body."""
        body = as_body(None)

        assert isinstance(body, BufferedBody)
        assert body.size == 0

    def test_body_passthrough(self):
        """Test that Body instances are returned unchanged."""
        body = BufferedBody(b"x")

        assert as_body(body) is body

    def test_bytearray(self):
        """Test that bytearray is buffered."""
        assert as_body(bytearray(b"abc")) == b"abc"

    def test_unsupported(self):
        """Test that other types are rejected."""
        with pytest.raises(TypeError):
            as_body(object())
