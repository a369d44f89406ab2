"""Tests for the yt-dlp provider.

Process tests run a small Python script in place of the yt-dlp binary.
"""

import json
import stat
import sys
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from app.core.services.extraction import ExtractionError, ExtractionErrorKind, LocatorKind, QualityTier
from app.core.services.extraction.providers.ytdlp import YtDlpProvider
from app.core.services.extraction.providers.ytdlp.service import VIDEO_FORMAT, classify_stderr

INFO = {
    'id': '7300000000000000000',
    'title': 'Sunset dance',
    'uploader': 'sunsetdancer',
    'duration': 12.5,
    'thumbnail': 'https://p16.example.com/cover.jpg',
    'thumbnails': [
        {'url': 'https://p16.example.com/small.jpg', 'preference': -2},
        {'url': 'https://p16.example.com/large.jpg', 'preference': 1},
    ],
    'formats': [
        {'format_id': 'download', 'url': 'https://v16.example.com/a.mp4', 'vcodec': 'h264', 'acodec': 'aac'},
    ],
}


def fake_binary(tmp_path: Path, body: str) -> str:
    script = tmp_path / 'yt-dlp'
    script.write_text(f'#!{sys.executable}\nimport sys\n{body}\n')
    script.chmod(script.stat().st_mode | stat.S_IEXEC)
    return str(script)


class TestCommands:
    def test_stream_command_writes_to_stdout(self):
        command = YtDlpProvider(binary='yt-dlp').build_stream_command('https://www.tiktok.com/@u/video/1')

        assert command[0] == 'yt-dlp'
        assert command[command.index('--output') + 1] == '-'
        assert command[command.index('--format') + 1] == VIDEO_FORMAT
        assert '--no-part' in command
        assert command[-1] == 'https://www.tiktok.com/@u/video/1'

    @pytest.mark.parametrize(
        ('stderr', 'kind'),
        [
            ('ERROR: Unsupported URL: https://example.com', ExtractionErrorKind.UNSUPPORTED),
            ('ERROR: [TikTok] 1: HTTP Error 429: Too Many Requests', ExtractionErrorKind.RATE_LIMITED),
            ('ERROR: [TikTok] 1: Video unavailable, status code 10204', ExtractionErrorKind.NOT_FOUND),
            ('ERROR: [TikTok] 1: This post is private', ExtractionErrorKind.NOT_FOUND),
            ('ERROR: unable to download webpage: <urlopen error>', ExtractionErrorKind.UNAVAILABLE),
        ],
    )
    def test_classify_stderr(self, stderr, kind):
        assert classify_stderr(stderr) == kind


class TestFetchPayload:
    async def test_payload_from_info(self, tiktok_url):
        provider = YtDlpProvider()
        with patch.object(provider, '_run', AsyncMock(return_value=json.dumps(INFO).encode())):
            record = await provider.extract(tiktok_url)

        assert record.title == 'Sunset dance'
        assert record.author_handle == '@sunsetdancer'
        assert record.thumbnail_url == 'https://p16.example.com/cover.jpg'
        assert record.duration_seconds == 12.5
        assert record.locator(QualityTier.HIGH_QUALITY).kind == LocatorKind.SUBPROCESS
        assert record.locator(QualityTier.AUDIO_ONLY).kind == LocatorKind.SUBPROCESS

    async def test_thumbnail_candidates_when_no_main_thumbnail(self, tiktok_url):
        info = dict(INFO, thumbnail=None)
        provider = YtDlpProvider()
        with patch.object(provider, '_run', AsyncMock(return_value=json.dumps(info).encode())):
            payload = await provider.fetch_payload(tiktok_url)

        assert payload.images == ['https://p16.example.com/large.jpg', 'https://p16.example.com/small.jpg']

    @pytest.mark.parametrize(
        'stdout',
        [b'', b'not json', json.dumps({'title': 'no formats'}).encode(), b'[1, 2, 3]'],
    )
    async def test_unusable_output_is_parse_failure(self, tiktok_url, stdout):
        provider = YtDlpProvider()
        with patch.object(provider, '_run', AsyncMock(return_value=stdout)):
            with pytest.raises(ExtractionError) as exc_info:
                await provider.fetch_payload(tiktok_url)

        assert exc_info.value.kind == ExtractionErrorKind.PARSE_FAILURE


@pytest.mark.slow
class TestProcess:
    """Runs real child processes."""

    async def test_reads_first_json_line(self, tmp_path, tiktok_url):
        body = f'print({json.dumps(json.dumps(INFO))})\nprint("{{}}")'
        provider = YtDlpProvider(binary=fake_binary(tmp_path, body))

        payload = await provider.fetch_payload(tiktok_url)

        assert payload.title == 'Sunset dance'
        assert payload.subprocess_video

    async def test_nonzero_exit_is_classified(self, tmp_path, tiktok_url):
        body = 'sys.stderr.write("ERROR: [TikTok] 1: HTTP Error 404: Not Found\\n")\nsys.exit(1)'
        provider = YtDlpProvider(binary=fake_binary(tmp_path, body))

        with pytest.raises(ExtractionError) as exc_info:
            await provider.fetch_payload(tiktok_url)

        assert exc_info.value.kind == ExtractionErrorKind.NOT_FOUND
        assert exc_info.value.message.startswith('ERROR:')

    async def test_timeout_kills_process(self, tmp_path, tiktok_url):
        provider = YtDlpProvider(binary=fake_binary(tmp_path, 'import time\ntime.sleep(30)'), timeout=0.5)

        with pytest.raises(ExtractionError) as exc_info:
            await provider.fetch_payload(tiktok_url)

        assert exc_info.value.kind == ExtractionErrorKind.TIMEOUT

    async def test_missing_binary(self, tmp_path, tiktok_url):
        provider = YtDlpProvider(binary=str(tmp_path / 'does-not-exist'))

        with pytest.raises(ExtractionError) as exc_info:
            await provider.fetch_payload(tiktok_url)

        assert exc_info.value.kind == ExtractionErrorKind.UNAVAILABLE

    async def test_binary_without_execute_permission(self, tmp_path, tiktok_url):
        script = tmp_path / 'yt-dlp'
        script.write_text('#!/bin/sh\n')
        script.chmod(0o644)
        provider = YtDlpProvider(binary=str(script))

        with pytest.raises(ExtractionError) as exc_info:
            await provider.fetch_payload(tiktok_url)

        assert exc_info.value.kind == ExtractionErrorKind.UNAVAILABLE
        assert str(script) in exc_info.value.message
