"""Tests for locator selection in the streaming bridge."""

from unittest.mock import MagicMock

import pytest

from app.core.services.extraction import MediaLocator, MediaRecord, QualityTier
from app.core.services.ffmpeg import AudioCodec
from app.core.services.streaming import (
    ProcessPipelineSource,
    RemoteUrlSource,
    StreamError,
    StreamErrorKind,
    StreamingBridge,
    StreamKind,
    safe_filename,
)


def make_record(locators: dict[QualityTier, MediaLocator], title: str = 'Sunset dance') -> MediaRecord:
    return MediaRecord(
        source_url='https://www.tiktok.com/@u/video/1',
        provider='test',
        title=title,
        author_handle='@u',
        media_locators=locators,
    )


@pytest.fixture
def bridge() -> StreamingBridge:
    return StreamingBridge(MagicMock(), video_command=lambda url: ['yt-dlp', '-o', '-', url])


class TestVideoSelection:
    def test_requested_tier_first(self, bridge):
        record = make_record(
            {
                QualityTier.HIGH_QUALITY: MediaLocator.remote('https://c/hd.mp4'),
                QualityTier.STANDARD_QUALITY: MediaLocator.remote('https://c/sd.mp4', referer='https://r/'),
            }
        )

        source, filename = bridge.build_source(record, StreamKind.VIDEO, QualityTier.STANDARD_QUALITY)

        assert isinstance(source, RemoteUrlSource)
        assert source.url == 'https://c/sd.mp4'
        assert source.referer == 'https://r/'
        assert filename == 'Sunset-dance.mp4'
        assert source.content_type == 'video/mp4'

    def test_falls_back_to_high_quality(self, bridge):
        record = make_record({QualityTier.HIGH_QUALITY: MediaLocator.remote('https://c/hd.mp4')})

        source, _ = bridge.build_source(record, StreamKind.VIDEO, QualityTier.WATERMARK_FREE)

        assert source.url == 'https://c/hd.mp4'

    def test_audio_tier_request_still_gets_video(self, bridge):
        record = make_record({QualityTier.WATERMARK_FREE: MediaLocator.remote('https://c/nowm.mp4')})

        source, _ = bridge.build_source(record, StreamKind.VIDEO, QualityTier.AUDIO_ONLY)

        assert source.url == 'https://c/nowm.mp4'

    def test_subprocess_locator_runs_ytdlp(self, bridge):
        record = make_record({QualityTier.HIGH_QUALITY: MediaLocator.subprocess()})

        source, _ = bridge.build_source(record, StreamKind.VIDEO)

        assert isinstance(source, ProcessPipelineSource)
        assert source.stages == [['yt-dlp', '-o', '-', 'https://www.tiktok.com/@u/video/1']]

    async def test_no_video_locator_sends_error(self, bridge, memory_sink):
        record = make_record({QualityTier.AUDIO_ONLY: MediaLocator.remote('https://c/music.mp3')})

        with pytest.raises(StreamError) as exc_info:
            await bridge.stream(record, StreamKind.VIDEO, memory_sink)

        assert exc_info.value.kind == StreamErrorKind.UPSTREAM_UNAVAILABLE
        assert memory_sink.error[0] == 502


class TestAudioSelection:
    def test_remote_audio_is_relayed(self, bridge):
        record = make_record(
            {
                QualityTier.HIGH_QUALITY: MediaLocator.remote('https://c/hd.mp4'),
                QualityTier.AUDIO_ONLY: MediaLocator.remote('https://c/music.mp3'),
            }
        )

        source, filename = bridge.build_source(record, StreamKind.AUDIO)

        assert isinstance(source, RemoteUrlSource)
        assert source.url == 'https://c/music.mp3'
        assert filename == 'Sunset-dance.mp3'

    def test_audio_is_cut_from_video_otherwise(self, bridge):
        record = make_record({QualityTier.HIGH_QUALITY: MediaLocator.remote('https://c/hd.mp4')})

        source, _ = bridge.build_source(record, StreamKind.AUDIO)

        assert isinstance(source, ProcessPipelineSource)
        ytdlp_stage, ffmpeg_stage = source.stages
        assert ytdlp_stage[-1] == record.source_url
        assert ffmpeg_stage[ffmpeg_stage.index('-i') + 1] == 'pipe:0'
        assert ffmpeg_stage[-1] == 'pipe:1'
        assert AudioCodec.MP3.value in ffmpeg_stage
        assert source.content_type == 'audio/mpeg'

    def test_subprocess_audio_locator_uses_pipeline(self, bridge):
        record = make_record({QualityTier.AUDIO_ONLY: MediaLocator.subprocess()})

        source, _ = bridge.build_source(record, StreamKind.AUDIO)

        assert len(source.stages) == 2

    def test_custom_audio_command(self):
        bridge = StreamingBridge(MagicMock(), video_command=lambda url: ['v', url], audio_command=['cat'])
        record = make_record({QualityTier.HIGH_QUALITY: MediaLocator.subprocess()})

        source, _ = bridge.build_source(record, StreamKind.AUDIO)

        assert source.stages == [['v', record.source_url], ['cat']]


class TestSafeFilename:
    @pytest.mark.parametrize(
        ('title', 'expected'),
        [
            ('Sunset dance', 'Sunset-dance.mp4'),
            ('Café "quotes" / slashes', 'Cafe-quotes-slashes.mp4'),
            ('🔥🔥🔥', 'video.mp4'),
            ('a' * 200, f'{"a" * 80}.mp4'),
        ],
    )
    def test_safe_filename(self, title, expected):
        assert safe_filename(title, 'mp4') == expected
