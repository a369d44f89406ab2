"""FFmpeg service for stream transcoding.

Builds commands for the local FFmpeg binary; processes are run by the caller
so they can be wired into a pipeline.
"""

import logging

from app.core.configs import app_config
from app.core.services.ffmpeg.schemas import AudioExtractInput

logger = logging.getLogger(__name__)


class FFmpegService:
    """Command builder for the FFmpeg binary."""

    def __init__(self, binary: str | None = None):
        self.binary = binary or app_config.FFMPEG_BINARY

    def build_audio_extract_command(self, input: AudioExtractInput) -> list[str]:
        """Build FFmpeg command that drops video and re-encodes audio.

        Reads a (possibly partial) container from ``input_path`` and writes a
        streamable audio container to ``output_path``.

        Args:
            input: AudioExtractInput with codec and bitrate

        Returns:
            Full command line including the binary
        """
        command = [
            self.binary,
            '-hide_banner',
            '-loglevel',
            'error',
            '-i',
            input.input_path,
            '-vn',
            '-acodec',
            input.codec.value,
            '-ab',
            input.bitrate,
            '-avoid_negative_ts',
            'make_zero',
            '-f',
            input.container,
            input.output_path,
        ]
        logger.debug(f'FFmpeg audio extract command: {" ".join(command)}')
        return command


def get_ffmpeg_service() -> FFmpegService:
    """Get an FFmpeg service instance.

    Returns:
        FFmpegService instance
    """
    return FFmpegService()
