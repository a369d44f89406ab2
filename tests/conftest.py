"""Pytest configuration and fixtures.

Test Markers:
    - Default: Unit tests run automatically
    - @pytest.mark.manual: Integration tests against real services or binaries
    - @pytest.mark.slow: Tests that spawn real child processes

Run commands:
    pytest                          # Run unit tests only (default)
    pytest -m manual                # Run manual/integration tests
    pytest -m "not slow"            # Skip tests that spawn child processes
    pytest -m ""                    # Run ALL tests (no filter)
"""

import pytest
from faker import Faker

from app.core.services.extraction import ProviderPayload
from tests.fakes import MemorySink


@pytest.fixture(scope='session')
def faker() -> Faker:
    return Faker()


@pytest.fixture
def tiktok_url(faker: Faker) -> str:
    return f'https://www.tiktok.com/@{faker.user_name()}/video/{faker.random_number(digits=19, fix_len=True)}'


@pytest.fixture
def media_payload(faker: Faker) -> ProviderPayload:
    return ProviderPayload(
        title=faker.sentence(),
        author_handle=faker.user_name(),
        author_avatar='https://cdn.example.com/avatar.jpg',
        cover='https://cdn.example.com/cover.jpg',
        duration=15,
        no_watermark_url='https://cdn.example.com/nowm.mp4',
        hd_play_url='https://cdn.example.com/hd.mp4',
        play_url='https://cdn.example.com/play.mp4',
        audio_url='https://cdn.example.com/music.mp3',
    )


@pytest.fixture
def memory_sink() -> MemorySink:
    return MemorySink()
