"""aiohttp response adapter for stream sessions."""

import asyncio

import structlog
from aiohttp import web

from app.core.services.streaming import ByteSinkInterface, SinkClosedError

logger = structlog.get_logger(__name__)


class AiohttpResponseSink(ByteSinkInterface):
    """Stream bytes into an aiohttp ``StreamResponse``.

    aiohttp does not cancel handlers when the client goes away, so
    :meth:`wait_closed` polls the transport.
    """

    def __init__(self, request: web.Request, poll_interval: float = 0.25):
        self.request = request
        self.poll_interval = poll_interval
        self._response: web.StreamResponse | None = None
        self._error_response: web.Response | None = None
        self._finished = False
        self._aborted = False

    @property
    def headers_sent(self) -> bool:
        return self._response is not None and self._response.prepared

    @property
    def closed(self) -> bool:
        if self._aborted:
            return True
        transport = self.request.transport
        return transport is None or transport.is_closing()

    async def prepare(self, headers: dict[str, str]) -> None:
        response = web.StreamResponse(status=200, headers=headers)
        if 'Content-Length' not in headers:
            response.enable_chunked_encoding()
        try:
            await response.prepare(self.request)
        except ConnectionResetError as e:
            raise SinkClosedError('client disconnected before headers') from e
        self._response = response

    async def write(self, chunk: bytes) -> None:
        if self._response is None:
            raise RuntimeError('prepare() must be called before write()')
        if self.closed:
            raise SinkClosedError('client disconnected')
        try:
            await self._response.write(chunk)
        except ConnectionResetError as e:
            raise SinkClosedError('client disconnected') from e

    async def finish(self) -> None:
        if self._response is None or self._finished:
            return
        self._finished = True
        try:
            await self._response.write_eof()
        except ConnectionResetError as e:
            raise SinkClosedError('client disconnected at end of body') from e

    async def send_error(self, status: int, message: str) -> None:
        if self.headers_sent:
            raise RuntimeError('Cannot send an error after headers were sent')
        self._error_response = web.json_response({'success': False, 'message': message}, status=status)

    async def abort(self) -> None:
        self._aborted = True
        transport = self.request.transport
        if transport is not None and not transport.is_closing():
            transport.close()
            logger.debug('Response transport closed mid-body', path=self.request.path)

    async def wait_closed(self) -> None:
        while not self.closed:
            await asyncio.sleep(self.poll_interval)

    def result(self) -> web.StreamResponse:
        """Response for the handler to return once the session is over."""
        if self._response is not None:
            return self._response
        if self._error_response is not None:
            return self._error_response
        # Client left before anything was sent
        return web.Response(status=499, reason='Client Closed Request')
