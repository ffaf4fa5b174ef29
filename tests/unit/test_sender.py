"""
Unit tests for the Sender: validation, header normalization, body
strategies and response assembly, all against a stub transport.
"""

import asyncio
import logging

import pytest

from conftest import StubRequest, StubTransport, iterate, respond_with
from httpclient.core.pending import Progress
from httpclient.core.sender import Sender, prepare_request
from httpclient.errors import (
    BodyConsumedError,
    InvalidRequest,
    PartialResponseError,
    TransportError,
)
from httpclient.http import ReadableStream, Request, StreamBody
from httpclient.transport.base import Transport


class TestValidation:
    """Requests that must never reach the transport."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("url", ["/relative/path", "example.com/path", "http:///path"])
    async def test_url_without_scheme_or_host_is_rejected(self, sender, stub_transport, url):
        """Test that a non-absolute URL rejects with InvalidRequest."""
        result = sender.send(Request.create("GET", url))

        with pytest.raises(InvalidRequest):
            await result
        assert stub_transport.requests == []

    @pytest.mark.asyncio
    async def test_transport_open_failure_rejects(self):
        """Test that an exception from open() becomes a rejected result."""
        class RefusingTransport(Transport):
            def open(self, method, url, headers, protocol_version="1.1"):
                raise TransportError("no route")

        result = Sender(RefusingTransport()).send(Request.create("GET", "http://example.com/"))

        with pytest.raises(TransportError, match="no route"):
            await result

    @pytest.mark.asyncio
    async def test_unclosed_ipv6_bracket_is_rejected(self, sender, stub_transport):
        """Test that an unparsable host rejects instead of raising from send()."""
        result = sender.send(Request.create("GET", "http://[::1/"))

        with pytest.raises(InvalidRequest):
            await asyncio.wait_for(result, timeout=1)
        assert stub_transport.requests == []

    @pytest.mark.asyncio
    async def test_out_of_range_port_is_rejected(self):
        """Test that a port above 65535 rejects with InvalidRequest."""
        result = Sender.from_loop().send(Request.create("GET", "http://example.com:99999/"))

        with pytest.raises(InvalidRequest, match="99999"):
            await asyncio.wait_for(result, timeout=1)


class TestHeaderNormalization:
    """Tests for Content-Length / Transfer-Encoding handling."""

    @pytest.mark.asyncio
    async def test_buffered_body_gets_content_length(self, sender, stub_transport, sample_post_request):
        """Test that a known body size is declared."""
        await sender.send(sample_post_request)

        sent = stub_transport.last
        assert sent.headers["Content-Length"] == str(len(b'{"name": "John", "email": "john@example.com"}'))
        assert "Transfer-Encoding" not in sent.headers

    @pytest.mark.asyncio
    async def test_caller_content_length_is_kept(self, sender, stub_transport):
        """Test that an explicit Content-Length is never overwritten."""
        request = Request.create("POST", "http://example.com/", {"Content-Length": "3"}, b"hello")

        await sender.send(request)

        assert stub_transport.last.headers["Content-Length"] == "3"

    @pytest.mark.asyncio
    async def test_empty_body_has_no_framing_headers(self, sender, stub_transport, sample_get_request):
        """Test that an empty body adds neither header."""
        await sender.send(sample_get_request)

        sent = stub_transport.last
        assert "Content-Length" not in sent.headers
        assert "Transfer-Encoding" not in sent.headers

    def test_unknown_size_stream_is_chunked(self):
        """Test that a readable stream without length is marked chunked."""
        request = Request.create("POST", "http://example.com/", body=iterate([b"x"]))

        prepared = prepare_request(request)

        assert prepared.headers.get("Transfer-Encoding") == "chunked"
        assert "Content-Length" not in prepared.headers

    def test_stream_with_content_length_is_not_chunked(self):
        """Test that a caller-declared length suppresses chunked framing."""
        request = Request.create(
            "POST", "http://example.com/", {"Content-Length": "1"}, iterate([b"x"])
        )

        prepared = prepare_request(request)

        assert "Transfer-Encoding" not in prepared.headers

    def test_original_request_unchanged(self, sample_post_request):
        """Test that normalization returns a new request."""
        prepare_request(sample_post_request)

        assert "Content-Length" not in sample_post_request.headers

    @pytest.mark.asyncio
    async def test_multi_value_headers_are_joined(self, sender, stub_transport):
        """Test that repeated headers reach the transport as one line."""
        request = Request.create("GET", "http://example.com/", [("Accept", "text/html"), ("Accept", "*/*")])

        await sender.send(request)

        assert stub_transport.last.headers["Accept"] == "text/html, */*"


class TestBodyStrategies:
    """Tests for how request bodies are handed to the transport."""

    @pytest.mark.asyncio
    async def test_buffered_body_sent_in_end(self, sender, stub_transport):
        """Test that a buffered body is a single end(payload) call."""
        await sender.send(Request.create("PUT", "http://example.com/", body=b"payload"))

        sent = stub_transport.last
        assert sent.end_payload == b"payload"
        assert sent.writes == [b"payload"]

    @pytest.mark.asyncio
    async def test_chunked_framing(self, sender, stub_transport):
        """Test hex-length framing, empty chunk skipping and the terminator."""
        body = iterate([b"hello", b"", b" world", b"x" * 26])

        await sender.send(Request.create("POST", "http://example.com/", body=body))

        assert stub_transport.last.writes == [
            b"5\r\nhello\r\n",
            b"6\r\n world\r\n",
            b"1a\r\n" + b"x" * 26 + b"\r\n",
            b"0\r\n\r\n",
        ]
        assert stub_transport.last.end_payload == b"0\r\n\r\n"

    @pytest.mark.asyncio
    async def test_known_length_stream_is_piped_verbatim(self, sender, stub_transport):
        """Test that a sized stream is forwarded chunk by chunk without framing."""
        body = StreamBody(iterate([b"ab", b"cd"]), size=4)

        await sender.send(Request.create("POST", "http://example.com/", body=body))

        sent = stub_transport.last
        assert sent.headers["Content-Length"] == "4"
        assert sent.writes == [b"ab", b"cd"]
        assert sent.end_payload == b""

    @pytest.mark.asyncio
    async def test_consumed_stream_ends_empty(self, sender, stub_transport):
        """Test that a non-readable source just ends the request."""
        source = ReadableStream()
        source.end()
        await source.read()

        await sender.send(Request.create("POST", "http://example.com/", body=StreamBody(source)))

        sent = stub_transport.last
        assert "Transfer-Encoding" not in sent.headers
        assert sent.writes == []
        assert sent.end_payload == b""

    @pytest.mark.asyncio
    async def test_source_failure_rejects_with_transport_error(self):
        """Test that a failing body source closes the exchange."""
        async def broken():
            yield b"ok"
            raise OSError("disk gone")

        transport = StubTransport()
        result = Sender(transport).send(Request.create("POST", "http://example.com/", body=broken()))

        with pytest.raises(TransportError) as exc_info:
            await result

        assert isinstance(exc_info.value.cause, OSError)
        assert isinstance(transport.last.closed_with, TransportError)


class TestBufferedResponses:
    """Tests for buffered (default) mode."""

    @pytest.mark.asyncio
    async def test_resolves_with_full_body(self):
        """Test that chunks are concatenated in order."""
        transport = StubTransport(respond_with(200, [("X-Id", "7")], [b"ab", b"cd", b"ef"]))

        response = await Sender(transport).send(Request.create("GET", "http://example.com/"))

        assert response.status_code == 200
        assert response.reason_phrase == "OK"
        assert response.headers.get("x-id") == "7"
        assert not response.is_streaming
        assert await response.read() == b"abcdef"

    @pytest.mark.asyncio
    async def test_error_status_is_a_response(self):
        """Test that 404 resolves instead of rejecting."""
        transport = StubTransport(respond_with(404, chunks=[b"nope"], reason="Not Found"))

        response = await Sender(transport).send(Request.create("GET", "http://example.com/missing"))

        assert response.status_code == 404
        assert response.ok is False
        assert await response.text() == "nope"

    @pytest.mark.asyncio
    async def test_short_content_length_rejects(self):
        """Test that fewer bytes than declared is a PartialResponseError."""
        transport = StubTransport(respond_with(200, [("Content-Length", "10")], [b"abcd"]))

        with pytest.raises(PartialResponseError) as exc_info:
            await Sender(transport).send(Request.create("GET", "http://example.com/"))

        assert exc_info.value.received == 4
        assert exc_info.value.expected == 10

    @pytest.mark.asyncio
    async def test_head_ignores_content_length(self):
        """Test that a HEAD response needs no body despite Content-Length."""
        transport = StubTransport(respond_with(200, [("Content-Length", "10")]))

        response = await Sender(transport).send(Request.create("HEAD", "http://example.com/"))

        assert response.headers.get("Content-Length") == "10"
        assert await response.read() == b""

    @pytest.mark.asyncio
    async def test_not_modified_ignores_content_length(self):
        """Test that 304 responses carry no body."""
        transport = StubTransport(respond_with(304, [("Content-Length", "10")], reason="Not Modified"))

        response = await Sender(transport).send(Request.create("GET", "http://example.com/"))

        assert response.status_code == 304

    @pytest.mark.asyncio
    async def test_failure_after_headers_is_partial(self):
        """Test that a drop mid-body rejects with the cause attached."""
        async def responder(request):
            await request.ended.wait()
            request.respond(200, [("Content-Length", "100")])
            request.data(b"some")
            request.fail(ConnectionResetError("peer reset"))

        with pytest.raises(PartialResponseError) as exc_info:
            await Sender(StubTransport(responder)).send(Request.create("GET", "http://example.com/"))

        assert isinstance(exc_info.value.cause, ConnectionResetError)
        assert exc_info.value.received == 4
        assert exc_info.value.expected == 100


class TestFailures:
    """Tests for failures before any response arrives."""

    @pytest.mark.asyncio
    async def test_connection_error_wrapped(self):
        """Test that a raw socket error becomes TransportError with cause."""
        cause = ConnectionRefusedError("refused")

        async def responder(request):
            request.fail(cause)

        with pytest.raises(TransportError) as exc_info:
            await Sender(StubTransport(responder)).send(Request.create("GET", "http://example.com/"))

        assert not isinstance(exc_info.value, PartialResponseError)
        assert exc_info.value.cause is cause

    @pytest.mark.asyncio
    async def test_transport_error_passed_through(self):
        """Test that a TransportError cause is not wrapped twice."""
        error = TransportError("tls handshake failed")

        async def responder(request):
            request.fail(error)

        with pytest.raises(TransportError) as exc_info:
            await Sender(StubTransport(responder)).send(Request.create("GET", "https://example.com/"))

        assert exc_info.value is error

    @pytest.mark.asyncio
    async def test_complete_without_response_rejects(self):
        """Test that end-of-message without a head is an error."""
        async def responder(request):
            request.complete()

        with pytest.raises(TransportError):
            await Sender(StubTransport(responder)).send(Request.create("GET", "http://example.com/"))

    @pytest.mark.asyncio
    async def test_cancel_closes_handle_and_rejects(self):
        """Test that cancel() leaves the result rejected instead of pending."""
        transport = StubTransport()
        result = Sender(transport).send(Request.create("GET", "http://example.com/"))
        await asyncio.sleep(0)

        assert result.cancel() is True

        with pytest.raises(TransportError):
            await result
        assert isinstance(transport.last.closed_with, TransportError)

    @pytest.mark.asyncio
    async def test_cancelled_exchange_task_rejects(self):
        """Test that a cancelled exchange never leaves the caller hanging."""
        sender = Sender(StubTransport())
        result = sender.send(Request.create("GET", "http://example.com/"))
        await asyncio.sleep(0)

        for task in list(sender._exchanges):
            task.cancel()

        with pytest.raises(TransportError):
            await asyncio.wait_for(result, timeout=1)

    @pytest.mark.asyncio
    async def test_crashing_event_stream_is_logged(self, caplog):
        """Test that an unexpected error inside the exchange rejects and is logged."""
        class CrashingRequest(StubRequest):
            async def events(self):
                raise RuntimeError("event stream broke")
                yield

        class CrashingTransport(StubTransport):
            def open(self, method, url, headers, protocol_version="1.1"):
                request = CrashingRequest(method, url, headers, protocol_version)
                self.requests.append(request)
                return request

        caplog.set_level(logging.ERROR, logger="httpclient.core.sender")

        sender = Sender(CrashingTransport())

        with pytest.raises(TransportError):
            await asyncio.wait_for(sender.send(Request.create("GET", "http://example.com/")), timeout=1)
        while sender.active_exchanges:
            await asyncio.sleep(0)

        records = [r for r in caplog.records if r.name == "httpclient.core.sender"]
        assert [r.levelno for r in records] == [logging.ERROR]
        assert isinstance(records[0].exc_info[1], RuntimeError)


class TestStreamingResponses:
    """Tests for streaming mode."""

    @pytest.mark.asyncio
    async def test_headers_available_before_body(self):
        """Test that the result resolves on the head, before any data."""
        gate = asyncio.Event()

        async def responder(request):
            await request.ended.wait()
            request.respond(200, [("X-Stage", "head")])
            await gate.wait()
            request.data(b"abc")
            request.data(b"def")
            request.complete()

        response = await Sender(StubTransport(responder)).send(
            Request.create("GET", "http://example.com/"), streaming=True
        )

        assert response.is_streaming
        assert response.headers.get("X-Stage") == "head"

        gate.set()
        assert await response.read() == b"abcdef"

    @pytest.mark.asyncio
    async def test_failure_mid_stream_raises_in_reader(self):
        """Test that the body stream fails with a TransportError."""
        async def responder(request):
            await request.ended.wait()
            request.respond(200)
            request.data(b"abc")
            request.fail(ConnectionResetError("gone"))

        response = await Sender(StubTransport(responder)).send(
            Request.create("GET", "http://example.com/"), streaming=True
        )

        received = []
        with pytest.raises(TransportError):
            async for chunk in response.body:
                received.append(chunk)
        assert received == [b"abc"]

    @pytest.mark.asyncio
    async def test_short_content_length_fails_stream(self):
        """Test that a truncated streamed body raises PartialResponseError."""
        transport = StubTransport(respond_with(200, [("Content-Length", "8")], [b"abc"]))

        response = await Sender(transport).send(Request.create("GET", "http://example.com/"), streaming=True)

        with pytest.raises(PartialResponseError):
            await response.read()

    @pytest.mark.asyncio
    async def test_stream_is_single_pass(self, sender):
        """Test that iterating the streamed body twice raises."""
        response = await sender.send(Request.create("GET", "http://example.com/"), streaming=True)

        assert await response.read() == b"hello"
        with pytest.raises(BodyConsumedError):
            await response.read()


class TestConcurrency:
    """Tests for many exchanges on one Sender."""

    @pytest.mark.asyncio
    async def test_concurrent_sends_do_not_mix_bodies(self):
        """Test that interleaved events stay with their own exchange."""
        async def responder(request):
            await request.ended.wait()
            request.respond(200)
            name = request.url.rsplit("/", 1)[-1]
            for i in range(5):
                await asyncio.sleep(0)
                request.data(f"{name}{i}".encode())
            request.complete()

        sender = Sender(StubTransport(responder))

        responses = await asyncio.gather(*(
            sender.send(Request.create("GET", f"http://example.com/{name}")) for name in "abc"
        ))

        bodies = [await response.read() for response in responses]
        assert bodies == [b"a0a1a2a3a4", b"b0b1b2b3b4", b"c0c1c2c3c4"]

    @pytest.mark.asyncio
    async def test_one_transport_request_per_send(self, sender, stub_transport):
        """Test that there are no retries or extra requests."""
        await sender.send(Request.create("GET", "http://example.com/"))
        await sender.send(Request.create("GET", "http://example.com/"))

        await asyncio.sleep(0)

        assert len(stub_transport.requests) == 2
        assert sender.active_exchanges == 0


class TestProgressAndLogging:
    """Tests for progress notifications and exchange logs."""

    @pytest.mark.asyncio
    async def test_progress_stages(self, sender, stub_transport):
        """Test that request and response progress arrive in order."""
        seen = []

        result = sender.send(Request.create("GET", "http://example.com/"))
        result.on_progress(seen.append)
        await result

        assert [progress.stage for progress in seen] == ["request", "response"]
        assert seen[0] == Progress("request", stub_transport.last)
        assert seen[1].handle.status_code == 200

    @pytest.mark.asyncio
    async def test_one_log_record_per_exchange(self, sender, caplog):
        """Test that each finished exchange is logged once."""
        caplog.set_level(logging.INFO, logger="httpclient.exchange")

        await sender.send(Request.create("GET", "http://example.com/logged"))

        records = [r for r in caplog.records if r.name == "httpclient.exchange"]
        assert len(records) == 1
        assert "http://example.com/logged" in records[0].getMessage()
        assert records[0].levelno == logging.INFO

    @pytest.mark.asyncio
    async def test_failed_exchange_logged_as_warning(self, caplog):
        """Test that failures are logged at WARNING."""
        caplog.set_level(logging.INFO, logger="httpclient.exchange")

        async def responder(request):
            request.fail(ConnectionRefusedError("refused"))

        with pytest.raises(TransportError):
            await Sender(StubTransport(responder)).send(Request.create("GET", "http://example.com/"))

        records = [r for r in caplog.records if r.name == "httpclient.exchange"]
        assert [r.levelno for r in records] == [logging.WARNING]
