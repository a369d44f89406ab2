#!/usr/bin/env python
"""Resolve a social video link and optionally save the stream to disk.

Runs the same provider fallback and streaming bridge the web app uses, so it
is handy for checking a link or a provider order without starting the server.

Usage:
    python scripts/resolve_media.py <url> [--audio] [--out DIR] [--providers tikwm,scraper]

Examples:
    # Print the resolved record only
    python scripts/resolve_media.py "https://www.tiktok.com/@user/video/123"

    # Resolve and save the video into ./downloads
    python scripts/resolve_media.py "https://vm.tiktok.com/ZMabc/" --out downloads

    # Save the audio track using only the tikwm provider
    PROVIDER_ORDER=tikwm python scripts/resolve_media.py "https://www.tiktok.com/@user/video/123" --audio --out .
"""

import argparse
import asyncio
import re
import sys
from pathlib import Path

# Add app to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from app.core.services.extraction import AllProvidersFailed  # noqa: E402
from app.core.deps import get_pipeline  # noqa: E402
from app.core.services.streaming import ByteSinkInterface, StreamError, StreamKind  # noqa: E402

FILENAME_PATTERN = re.compile(r'filename="([^"]+)"')


class FileSink(ByteSinkInterface):
    """Writes the streamed body into ``directory`` under the advertised filename."""

    def __init__(self, directory: Path):
        self.directory = directory
        self.path: Path | None = None
        self._file = None
        self._closed = False

    @property
    def headers_sent(self) -> bool:
        return self._file is not None

    @property
    def closed(self) -> bool:
        return self._closed

    async def prepare(self, headers: dict[str, str]) -> None:
        match = FILENAME_PATTERN.search(headers.get('Content-Disposition', ''))
        self.path = self.directory / (match.group(1) if match else 'video.mp4')
        self.directory.mkdir(parents=True, exist_ok=True)
        self._file = self.path.open('wb')

    async def write(self, chunk: bytes) -> None:
        self._file.write(chunk)

    async def finish(self) -> None:
        self._file.close()
        self._closed = True

    async def send_error(self, status: int, message: str) -> None:
        print(f'❌ Stream failed ({status}): {message}')
        self._closed = True

    async def abort(self) -> None:
        if self._file is not None:
            self._file.close()
            print(f'⚠️  Partial file left at {self.path}')
        self._closed = True

    async def wait_closed(self) -> None:
        while not self._closed:
            await asyncio.sleep(0.5)


async def main(args: argparse.Namespace) -> int:
    order = [name.strip() for name in args.providers.split(',')] if args.providers else None
    pipeline = get_pipeline(order)

    try:
        print(f'\n🔎 Resolving {args.url}')
        try:
            record = await pipeline.orchestrator.resolve(args.url)
        except AllProvidersFailed as e:
            print(f'❌ {e.user_message}')
            for attempt in e.attempts:
                error_kind = attempt.error_kind.value if attempt.error_kind else 'ok'
                print(f"   {attempt.provider}: {error_kind} {attempt.message or ''}")
            return 1

        print(f'✅ Resolved by {record.provider}')
        print(record.model_dump_json(indent=2))

        if not args.out:
            return 0

        kind = StreamKind.AUDIO if args.audio else StreamKind.VIDEO
        sink = FileSink(Path(args.out).expanduser())
        print(f'\n⏬ Streaming {kind.value}...')
        try:
            outcome = await pipeline.bridge.stream(record, kind, sink)
        except StreamError as e:
            print(f'❌ {e}')
            return 1

        if sink.path is None:
            print(f'⚠️  {outcome.value} before any bytes were written')
            return 1

        size_mb = sink.path.stat().st_size / (1024 * 1024)
        print(f'✅ {outcome.value}: {sink.path} ({size_mb:.2f} MB)')
        return 0
    finally:
        await pipeline.close()


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='Resolve a social video link')
    parser.add_argument('url')
    parser.add_argument('--audio', action='store_true', help='Stream the audio track instead of the video')
    parser.add_argument('--out', help='Directory to save the stream into; omit to only resolve')
    parser.add_argument('--providers', help='Comma separated provider order, overrides PROVIDER_ORDER')
    return parser.parse_args()


if __name__ == '__main__':
    sys.exit(asyncio.run(main(parse_args())))
