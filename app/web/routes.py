"""Download API handlers."""

import json

import structlog
from aiohttp import web
from pydantic import ValidationError

from app.core.services.extraction import AllProvidersFailed
from app.core.services.pipeline import MediaPipeline
from app.core.services.streaming import StreamError, StreamKind
from app.web.ledger import DownloadLedger, DownloadStatus, Quality
from app.web.schemas import QUALITY_TIERS, DownloadRequestIn, DownloadResponse, ErrorResponse
from app.web.sink import AiohttpResponseSink

logger = structlog.get_logger(__name__)

pipeline_key = web.AppKey('pipeline', MediaPipeline)
ledger_key = web.AppKey('ledger', DownloadLedger)

routes = web.RouteTableDef()


def error_response(status: int, message: str, errors: list[dict] | None = None) -> web.Response:
    body = ErrorResponse(message=message, errors=errors)
    return web.json_response(body.model_dump(exclude_none=True), status=status)


@web.middleware
async def error_middleware(request: web.Request, handler) -> web.StreamResponse:
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except Exception:
        logger.exception('Unhandled error', method=request.method, path=request.path)
        return error_response(500, 'Internal server error')


@routes.post('/api/download')
async def create_download(request: web.Request) -> web.Response:
    try:
        body = await request.json()
    except json.JSONDecodeError:
        return error_response(400, 'Request body must be JSON')

    try:
        download_in = DownloadRequestIn.model_validate(body)
    except ValidationError as e:
        errors = e.errors(include_url=False, include_context=False, include_input=False)
        return error_response(400, 'Invalid request data', errors=errors)

    ledger = request.app[ledger_key]
    pipeline = request.app[pipeline_key]

    entry = ledger.create(download_in.url, download_in.quality)
    entry.mark_processing()
    log = logger.bind(request_id=entry.id, url=entry.url)
    log.info('Download requested', quality=entry.quality.value)

    try:
        record = await pipeline.orchestrator.resolve(entry.url)
    except AllProvidersFailed as e:
        entry.mark_failed(str(e))
        log.warning('Download failed', attempts=len(e.attempts))
        return error_response(422, e.user_message)
    except Exception as e:
        entry.mark_failed(f'{type(e).__name__}: {e}')
        raise

    entry.mark_completed(record, metadata={'originalUrl': entry.url, 'quality': entry.quality.value})
    log.info('Download ready', provider=record.provider)
    return web.json_response(DownloadResponse.from_record(entry.id, record).model_dump())


@routes.get('/api/download/{request_id}/status')
async def download_status(request: web.Request) -> web.Response:
    entry = request.app[ledger_key].get(request.match_info['request_id'])
    if entry is None:
        return error_response(404, 'Download request not found')

    return web.json_response(
        {
            'success': True,
            'status': entry.status.value,
            'title': entry.record.title if entry.record else None,
            'error': entry.error,
            'createdAt': entry.created_at.isoformat(),
            'completedAt': entry.completed_at.isoformat() if entry.completed_at else None,
        }
    )


@routes.get('/api/download/{request_id}/{kind:video|audio}')
async def download_media(request: web.Request) -> web.StreamResponse:
    entry = request.app[ledger_key].get(request.match_info['request_id'])
    if entry is None or entry.status != DownloadStatus.COMPLETED or entry.record is None:
        return error_response(404, 'File not found or not ready')

    kind = StreamKind(request.match_info['kind'])
    tier = QUALITY_TIERS[entry.quality] if entry.quality != Quality.AUDIO else None

    sink = AiohttpResponseSink(request)
    try:
        await request.app[pipeline_key].bridge.stream(entry.record, kind, sink, tier=tier)
    except StreamError as e:
        # Already answered or truncated by the session
        logger.info('Stream ended with error', request_id=entry.id, error=str(e), status=e.http_status)
    return sink.result()
