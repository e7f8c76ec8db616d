import logging

import httpx
import pytest

from simple_proxy.forwarder.body import (
    MaterializeAndLog,
    StreamCopy,
    format_block,
    select_body_transfer,
)
from simple_proxy.forwarder.headers import InboundCookie


async def _collect(iterator):
    return b"".join([chunk async for chunk in iterator])


@pytest.fixture
def caplog_uvicorn(caplog):
    logger = logging.getLogger("uvicorn.error")
    orig_propagate = logger.propagate
    logger.propagate = True
    with caplog.at_level(logging.INFO, logger="uvicorn.error"):
        yield caplog
    logger.propagate = orig_propagate


def test_select_body_transfer():
    assert isinstance(select_body_transfer(False), StreamCopy)
    assert isinstance(select_body_transfer(True), MaterializeAndLog)


def test_each_verbose_selection_is_a_fresh_instance():
    assert select_body_transfer(True) is not select_body_transfer(True)


def test_format_block_structure():
    block = format_block("Title::::", ["a", "b"])
    assert block.startswith("\n\n\n\n---")
    assert "Title::::\na\nb\n---" in block
    assert block.endswith("-\n\n\n\n")


class TestStreamCopy:
    @pytest.mark.asyncio
    async def test_request_without_body_sends_none(self, make_request):
        request = make_request(headers=[("host", "h")])
        content = await StreamCopy().request_content(request, [("host", "h")], [])
        assert content is None

    @pytest.mark.asyncio
    async def test_request_body_streams_unchanged(self, make_request):
        body = b"\x00\xffbinary\r\n payload"
        headers = [("host", "h"), ("content-length", str(len(body)))]
        request = make_request(method="POST", headers=headers, body=body)

        content = await StreamCopy().request_content(request, headers, [])

        assert await _collect(content) == body

    @pytest.mark.asyncio
    async def test_response_body_is_raw(self, upstream_response):
        # Not valid gzip: raw relay must not try to decode it
        upstream = upstream_response(
            200, b"\x1f\x8b not decoded", headers=[("content-encoding", "gzip")]
        )
        result = await _collect(StreamCopy().response_content(upstream, []))
        assert result == b"\x1f\x8b not decoded"

    @pytest.mark.asyncio
    async def test_stream_copy_logs_nothing(
        self, make_request, upstream_response, caplog_uvicorn
    ):
        headers = [("host", "h"), ("content-length", "2")]
        request = make_request(method="POST", headers=headers, body=b"hi")
        transfer = StreamCopy()
        await _collect(await transfer.request_content(request, headers, []))
        transfer.outbound_built(httpx.Request("POST", "https://h:1/", content=b"hi"))
        await _collect(transfer.response_content(upstream_response(200, b"ok"), []))

        assert "Incoming Request" not in caplog_uvicorn.text
        assert "Response::::" not in caplog_uvicorn.text


class TestMaterializeAndLog:
    @pytest.mark.asyncio
    async def test_incoming_block(self, make_request, caplog_uvicorn):
        headers = [
            ("host", "localhost:8080"),
            ("content-length", "13"),
            ("cookie", "a=1"),
        ]
        request = make_request(method="PUT", headers=headers, body=b'{"name":"x"}\n')

        content = await MaterializeAndLog().request_content(
            request, headers, [InboundCookie("a", "1")]
        )

        assert await _collect(content) == b'{"name":"x"}\n'
        log = caplog_uvicorn.text
        assert "Incoming Request::::" in log
        assert "Header: host ::: localhost:8080" in log
        assert "Cookie: a ::: 1" in log
        assert 'body: {"name":"x"}' in log
        assert "Method: PUT" in log

    @pytest.mark.asyncio
    async def test_request_without_body(self, make_request):
        request = make_request(headers=[("host", "h")])
        content = await MaterializeAndLog().request_content(request, [("host", "h")], [])
        assert content is None

    @pytest.mark.asyncio
    async def test_non_utf8_body_forwarded_unchanged(self, make_request, caplog_uvicorn):
        body = b"\xff\xfe\x00raw"
        headers = [("host", "h"), ("content-length", str(len(body)))]
        request = make_request(method="POST", headers=headers, body=body)

        content = await MaterializeAndLog().request_content(request, headers, [])

        assert await _collect(content) == body
        assert "body: ��" in caplog_uvicorn.text

    @pytest.mark.asyncio
    async def test_outgoing_block(self, make_request, caplog_uvicorn):
        headers = [("host", "h"), ("content-length", "5")]
        request = make_request(method="POST", headers=headers, body=b"hello")
        transfer = MaterializeAndLog()
        await transfer.request_content(request, headers, [])

        outbound = httpx.Request(
            "POST",
            "https://api.internal:9443/x",
            headers=[("host", "api.internal:9443"), ("content-length", "5")],
            content=b"hello",
        )
        transfer.outbound_built(outbound)

        log = caplog_uvicorn.text
        assert "Outgoing Request::::" in log
        assert "Header: host ::: api.internal:9443" in log
        assert "body: hello" in log
        assert "Method: POST" in log

    @pytest.mark.asyncio
    async def test_response_block_and_bytes(self, upstream_response, caplog_uvicorn):
        upstream = upstream_response(
            404,
            b'{"error":"not found"}',
            headers=[("content-type", "application/json")],
        )

        result = await _collect(
            MaterializeAndLog().response_content(
                upstream, [("content-type", "application/json")]
            )
        )

        assert result == b'{"error":"not found"}'
        log = caplog_uvicorn.text
        assert "Response:::: 404 Not Found" in log
        assert "Header: content-type ::: application/json" in log
        assert 'body: {"error":"not found"}' in log

    @pytest.mark.asyncio
    async def test_chunked_upstream_body_materialized_whole(self, caplog_uvicorn):
        class ChunkedStream(httpx.AsyncByteStream):
            async def __aiter__(self):
                yield b"part1-"
                yield b"part2"

        upstream = httpx.Response(200, stream=ChunkedStream())

        parts = [c async for c in MaterializeAndLog().response_content(upstream, [])]

        assert parts == [b"part1-part2"]
