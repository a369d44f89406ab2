"""Tests for relaying remote HTTP bodies against a local aiohttp server."""

import asyncio
import gzip

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from app.core.services.extraction.providers.scraper import PageScrapeProvider
from app.core.services.streaming import RemoteUrlSource, StreamError, StreamErrorKind, StreamOutcome, StreamSession

FIRST_CHUNK = b'\x00\x00\x00\x18ftypmp42' * 64
SILENT_VIDEO = b'\x00' * 200_000


class FakeCdn:
    """Local media host whose handlers pause until the test releases them."""

    def __init__(self) -> None:
        self.release = asyncio.Event()
        self.server: TestServer | None = None
        self.accept_encoding: str | None = None

    def url(self, path: str) -> str:
        return str(self.server.make_url(path))

    async def slow_video(self, request: web.Request) -> web.StreamResponse:
        response = web.StreamResponse(headers={'Content-Type': 'video/mp4'})
        response.enable_chunked_encoding()
        await response.prepare(request)
        try:
            await response.write(FIRST_CHUNK)
            await self.release.wait()
            await response.write(b'rest-of-body')
            await response.write_eof()
        except ConnectionResetError:
            pass
        return response

    async def truncated_video(self, request: web.Request) -> web.StreamResponse:
        response = web.StreamResponse(headers={'Content-Type': 'video/mp4'})
        response.content_length = 1000
        await response.prepare(request)
        await response.write(b'x' * 100)
        await self.release.wait()
        request.transport.close()
        return response

    async def sized_video(self, request: web.Request) -> web.Response:
        return web.Response(body=b'x' * 1000, content_type='video/mp4')

    async def gzipped_video(self, request: web.Request) -> web.Response:
        # Compresses regardless of Accept-Encoding
        self.accept_encoding = request.headers.get('Accept-Encoding')
        return web.Response(
            body=gzip.compress(SILENT_VIDEO),
            headers={'Content-Type': 'video/mp4', 'Content-Encoding': 'gzip'},
        )

    async def forbidden(self, request: web.Request) -> web.Response:
        return web.Response(status=403, text='Access denied')


@pytest.fixture
async def cdn():
    fake = FakeCdn()
    app = web.Application()
    app.router.add_get('/slow.mp4', fake.slow_video)
    app.router.add_get('/truncated.mp4', fake.truncated_video)
    app.router.add_get('/sized.mp4', fake.sized_video)
    app.router.add_get('/gzipped.mp4', fake.gzipped_video)
    app.router.add_get('/forbidden.mp4', fake.forbidden)
    fake.server = TestServer(app)
    await fake.server.start_server()
    yield fake
    fake.release.set()
    await fake.server.close()


@pytest.fixture
async def fetcher():
    provider = PageScrapeProvider()
    yield provider
    await provider.close()


def relay(fetcher, url: str, sink) -> StreamSession:
    source = RemoteUrlSource(fetcher, url, referer='https://www.tiktok.com/', chunk_size=1024)
    return StreamSession(source, sink, filename='clip.mp4', session_timeout=5, idle_timeout=5)


class TestRemoteRelay:
    async def test_first_chunk_arrives_before_body_completes(self, cdn, fetcher, memory_sink):
        task = asyncio.create_task(relay(fetcher, cdn.url('/slow.mp4'), memory_sink).run())

        await asyncio.wait_for(memory_sink.first_write.wait(), timeout=5)
        assert memory_sink.headers_sent
        assert not task.done()

        cdn.release.set()
        outcome = await asyncio.wait_for(task, timeout=5)

        assert outcome == StreamOutcome.COMPLETED
        assert memory_sink.body == FIRST_CHUNK + b'rest-of-body'
        assert memory_sink.finished

    async def test_disconnect_closes_upstream(self, cdn, fetcher, memory_sink):
        session = relay(fetcher, cdn.url('/slow.mp4'), memory_sink)
        task = asyncio.create_task(session.run())
        await asyncio.wait_for(memory_sink.first_write.wait(), timeout=5)

        memory_sink.disconnect()

        assert await asyncio.wait_for(task, timeout=5) == StreamOutcome.CANCELLED
        assert not session.source.active

    async def test_content_length_is_propagated(self, cdn, fetcher, memory_sink):
        outcome = await relay(fetcher, cdn.url('/sized.mp4'), memory_sink).run()

        assert outcome == StreamOutcome.COMPLETED
        assert memory_sink.headers['Content-Length'] == '1000'
        assert memory_sink.headers['Content-Type'] == 'video/mp4'
        assert len(memory_sink.body) == 1000

    async def test_encoded_body_is_not_announced_with_wire_length(self, cdn, fetcher, memory_sink):
        outcome = await relay(fetcher, cdn.url('/gzipped.mp4'), memory_sink).run()

        assert cdn.accept_encoding == 'identity'
        assert outcome == StreamOutcome.COMPLETED
        assert 'Content-Length' not in memory_sink.headers
        assert memory_sink.body == SILENT_VIDEO

    async def test_upstream_error_status_before_headers(self, cdn, fetcher, memory_sink):
        with pytest.raises(StreamError) as exc_info:
            await relay(fetcher, cdn.url('/forbidden.mp4'), memory_sink).run()

        assert exc_info.value.kind == StreamErrorKind.UPSTREAM_UNAVAILABLE
        assert '403' in exc_info.value.message
        assert memory_sink.error[0] == 502
        assert not memory_sink.headers_sent

    async def test_truncated_upstream_aborts_sink(self, cdn, fetcher, memory_sink):
        task = asyncio.create_task(relay(fetcher, cdn.url('/truncated.mp4'), memory_sink).run())
        await asyncio.wait_for(memory_sink.first_write.wait(), timeout=5)

        cdn.release.set()
        with pytest.raises(StreamError) as exc_info:
            await asyncio.wait_for(task, timeout=5)

        assert exc_info.value.kind == StreamErrorKind.UPSTREAM_UNAVAILABLE
        assert memory_sink.headers_sent
        assert memory_sink.aborted
        assert not memory_sink.finished

    async def test_unreachable_host(self, fetcher, memory_sink, unused_tcp_port):
        with pytest.raises(StreamError) as exc_info:
            await relay(fetcher, f'http://127.0.0.1:{unused_tcp_port}/v.mp4', memory_sink).run()

        assert exc_info.value.kind == StreamErrorKind.UPSTREAM_UNAVAILABLE
        assert memory_sink.error[0] == 502
