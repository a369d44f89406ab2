"""Tests for the sequential fallback orchestrator."""

from unittest.mock import patch

import pytest

from app.core.services.extraction import (
    AllProvidersFailed,
    ExtractionErrorKind,
    FallbackOrchestrator,
    ProviderPayload,
    QualityTier,
)
from tests.fakes import FakeProvider, failing


class TestResolve:
    """Provider order and fallthrough."""

    async def test_first_success_wins_and_later_providers_are_not_called(self, tiktok_url, media_payload):
        a = failing('a', ExtractionErrorKind.RATE_LIMITED)
        b = FakeProvider('b', payload=media_payload)
        c = FakeProvider('c', payload=media_payload)

        record = await FallbackOrchestrator([a, b, c]).resolve(tiktok_url)

        assert record.provider == 'b'
        assert a.calls == [tiktok_url]
        assert b.calls == [tiktok_url]
        assert c.calls == []

    async def test_zero_locator_payload_falls_through(self, tiktok_url, media_payload):
        empty = FakeProvider('empty', payload=ProviderPayload(title='metadata only', cover='https://c/cover.jpg'))
        good = FakeProvider('good', payload=media_payload)

        record = await FallbackOrchestrator([empty, good]).resolve(tiktok_url)

        assert record.provider == 'good'
        assert empty.calls == [tiktok_url]

    async def test_all_not_found_records_one_attempt_per_provider(self, tiktok_url):
        providers = [failing(name, ExtractionErrorKind.NOT_FOUND) for name in ('a', 'b', 'c')]

        with pytest.raises(AllProvidersFailed) as exc_info:
            await FallbackOrchestrator(providers).resolve(tiktok_url)

        attempts = exc_info.value.attempts
        assert [a.provider for a in attempts] == ['a', 'b', 'c']
        assert all(a.error_kind == ExtractionErrorKind.NOT_FOUND and not a.succeeded for a in attempts)
        assert exc_info.value.url == tiktok_url
        assert 'check the URL' in exc_info.value.user_message

    async def test_unsupported_host_is_skipped_without_calling(self, media_payload):
        url = 'https://x.com/someone/status/1'
        tiktok_only = FakeProvider('tiktok_only', payload=media_payload, hosts=('tiktok.com',))
        anything = FakeProvider('anything', payload=media_payload)

        record = await FallbackOrchestrator([tiktok_only, anything]).resolve(url)

        assert record.provider == 'anything'
        assert tiktok_only.calls == []

    async def test_unexpected_exception_becomes_parse_failure(self, tiktok_url, media_payload):
        broken = FakeProvider('broken', error=KeyError('itemInfo'))
        good = FakeProvider('good', payload=media_payload)

        with patch('app.core.services.extraction.orchestrator.logger') as mock_logger:
            record = await FallbackOrchestrator([broken, good]).resolve(tiktok_url)

        assert record.provider == 'good'
        mock_logger.exception.assert_called_once()

    async def test_unexpected_exception_attempt_is_recorded(self, tiktok_url):
        broken = FakeProvider('broken', error=TypeError('NoneType is not subscriptable'))

        with pytest.raises(AllProvidersFailed) as exc_info:
            await FallbackOrchestrator([broken]).resolve(tiktok_url)

        (attempt,) = exc_info.value.attempts
        assert attempt.error_kind == ExtractionErrorKind.PARSE_FAILURE
        assert 'TypeError' in attempt.message

    async def test_subprocess_record(self, tiktok_url):
        ytdlp = FakeProvider('ytdlp', payload=ProviderPayload(title='t', subprocess_video=True))

        record = await FallbackOrchestrator([ytdlp]).resolve(tiktok_url)

        assert record.locator(QualityTier.HIGH_QUALITY).url is None


class TestLifecycle:
    def test_requires_providers(self):
        with pytest.raises(ValueError):
            FallbackOrchestrator([])

    async def test_context_manager_closes_providers(self, media_payload):
        providers = [FakeProvider('a', payload=media_payload), FakeProvider('b', payload=media_payload)]

        async with FallbackOrchestrator(providers):
            pass

        assert all(p.closed for p in providers)
