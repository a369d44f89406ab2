"""Resolve through fallback, then stream the chosen locator end to end."""

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from app.core.services.extraction import (
    AllProvidersFailed,
    ExtractionErrorKind,
    FallbackOrchestrator,
    ProviderPayload,
    QualityTier,
)
from app.core.services.extraction.providers.scraper import PageScrapeProvider
from app.core.services.streaming import StreamingBridge, StreamKind, StreamOutcome
from tests.fakes import FakeProvider, failing

HD_BODY = b'hd-video-bytes' * 4096
SD_BODY = b'sd-video-bytes' * 16


@pytest.fixture
async def cdn_server():
    async def hd(request: web.Request) -> web.Response:
        assert request.headers['Referer'] == 'https://www.tikwm.com/'
        return web.Response(body=HD_BODY, content_type='video/mp4')

    async def sd(request: web.Request) -> web.Response:
        return web.Response(body=SD_BODY, content_type='video/mp4')

    app = web.Application()
    app.router.add_get('/hd.mp4', hd)
    app.router.add_get('/sd.mp4', sd)
    server = TestServer(app)
    await server.start_server()
    yield server
    await server.close()


@pytest.fixture
async def fetcher():
    provider = PageScrapeProvider()
    yield provider
    await provider.close()


async def test_rate_limited_provider_then_high_quality_stream(cdn_server, fetcher, memory_sink, tiktok_url):
    a = failing('a', ExtractionErrorKind.RATE_LIMITED, 'Free Api Limit')
    b = FakeProvider(
        'b',
        payload=ProviderPayload(
            title='Sunset dance',
            author_handle='sunsetdancer',
            hd_play_url=str(cdn_server.make_url('/hd.mp4')),
            play_url=str(cdn_server.make_url('/sd.mp4')),
            referer='https://www.tikwm.com/',
        ),
    )
    c = FakeProvider('c', payload=ProviderPayload(play_url='https://never.example.com/v.mp4'))

    record = await FallbackOrchestrator([a, b, c]).resolve(tiktok_url)
    bridge = StreamingBridge(fetcher, session_timeout=10, idle_timeout=5)
    outcome = await bridge.stream(record, StreamKind.VIDEO, memory_sink, tier=QualityTier.HIGH_QUALITY)

    assert record.provider == 'b'
    assert c.calls == []
    assert outcome == StreamOutcome.COMPLETED
    assert memory_sink.finished
    assert memory_sink.body == HD_BODY
    assert memory_sink.headers['Content-Disposition'] == 'attachment; filename="Sunset-dance.mp4"'


async def test_all_not_found_makes_exactly_one_attempt_each(tiktok_url):
    providers = [failing(name, ExtractionErrorKind.NOT_FOUND) for name in ('ytdlp', 'tikwm', 'ssstik', 'scraper')]

    with pytest.raises(AllProvidersFailed) as exc_info:
        await FallbackOrchestrator(providers).resolve(tiktok_url)

    assert len(exc_info.value.attempts) == len(providers)
    assert all(len(p.calls) == 1 for p in providers)
