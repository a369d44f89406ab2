from app.core.services.ffmpeg.schemas import AudioCodec, AudioExtractInput
from app.core.services.ffmpeg.service import FFmpegService, get_ffmpeg_service

__all__ = [
    'AudioCodec',
    'AudioExtractInput',
    'FFmpegService',
    'get_ffmpeg_service',
]
