"""FFmpeg service schemas."""

from enum import Enum

from pydantic import BaseModel, Field


class AudioCodec(str, Enum):
    """Audio encoders usable for streamed output."""

    MP3 = 'libmp3lame'
    AAC = 'aac'


# Container format and MIME type per codec; both must be streamable over a pipe
AUDIO_CONTAINERS: dict[AudioCodec, tuple[str, str, str]] = {
    AudioCodec.MP3: ('mp3', 'mp3', 'audio/mpeg'),
    AudioCodec.AAC: ('adts', 'aac', 'audio/aac'),
}


class AudioExtractInput(BaseModel):
    """Input for extracting an audio track from a piped video stream."""

    codec: AudioCodec = Field(AudioCodec.MP3, description='Output audio encoder')
    bitrate: str = Field('192k', pattern=r'^\d+k$', description='Target audio bitrate')
    input_path: str = Field('pipe:0', description='Input path or pipe')
    output_path: str = Field('pipe:1', description='Output path or pipe')

    @property
    def container(self) -> str:
        return AUDIO_CONTAINERS[self.codec][0]

    @property
    def extension(self) -> str:
        return AUDIO_CONTAINERS[self.codec][1]

    @property
    def content_type(self) -> str:
        return AUDIO_CONTAINERS[self.codec][2]
