from app.core.services.streaming.schemas import (
    StreamError,
    StreamErrorKind,
    StreamHeaders,
    StreamKind,
    StreamOutcome,
)
from app.core.services.streaming.service import StreamingBridge, safe_filename
from app.core.services.streaming.session import StreamSession
from app.core.services.streaming.sink import ByteSinkInterface, SinkClosedError
from app.core.services.streaming.sources import ByteSource, ProcessPipelineSource, RemoteUrlSource

__all__ = [
    'ByteSinkInterface',
    'ByteSource',
    'ProcessPipelineSource',
    'RemoteUrlSource',
    'SinkClosedError',
    'StreamError',
    'StreamErrorKind',
    'StreamHeaders',
    'StreamKind',
    'StreamOutcome',
    'StreamSession',
    'StreamingBridge',
    'safe_filename',
]
