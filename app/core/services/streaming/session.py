"""One bounded-lifetime relay from a byte source to a sink."""

import asyncio
import uuid

import structlog

from app.core.configs import app_config
from app.core.services.streaming.schemas import (
    StreamError,
    StreamErrorKind,
    StreamHeaders,
    StreamOutcome,
)
from app.core.services.streaming.sink import ByteSinkInterface, SinkClosedError
from app.core.services.streaming.sources import ByteSource

logger = structlog.get_logger(__name__)


class StreamSession:
    """Relay bytes from ``source`` to ``sink`` until a terminal event.

    Four triggers can end a session: the pump finishing or failing, the
    session deadline, an idle upstream, and the client disconnecting. Each of
    them settles one shared future through :meth:`_settle`; the first wins
    and later ones are ignored. Cleanup always closes the upstream.
    """

    def __init__(
        self,
        source: ByteSource,
        sink: ByteSinkInterface,
        filename: str,
        session_timeout: float | None = None,
        idle_timeout: float | None = None,
    ):
        self.source = source
        self.sink = sink
        self.filename = filename
        self.session_timeout = (
            session_timeout if session_timeout is not None else app_config.STREAM_SESSION_TIMEOUT_SECONDS
        )
        self.idle_timeout = idle_timeout if idle_timeout is not None else app_config.STREAM_IDLE_TIMEOUT_SECONDS
        self.session_id = uuid.uuid4().hex[:12]
        self.bytes_sent = 0
        self.outcome: StreamOutcome | None = None
        self.error: StreamError | None = None
        self._done: asyncio.Future[StreamOutcome] | None = None
        self._finishing = False
        self._log = logger.bind(session_id=self.session_id)

    def _settle(self, outcome: StreamOutcome, error: StreamError | None = None) -> bool:
        """Record the terminal event. Returns False if one was already recorded."""
        if self._done is None or self._done.done():
            return False
        self.outcome = outcome
        self.error = error
        self._done.set_result(outcome)
        self._log.debug('Session settled', outcome=outcome.value, error=str(error) if error else None)
        return True

    def _writable(self) -> bool:
        return self._done is not None and not self._done.done() and not self.sink.closed

    def _expire(self) -> None:
        self._settle(
            StreamOutcome.FAILED,
            StreamError(StreamErrorKind.TIMEOUT, f'stream exceeded {self.session_timeout}s'),
        )

    async def _read(self) -> bytes:
        try:
            return await asyncio.wait_for(self.source.read(), timeout=self.idle_timeout)
        except asyncio.TimeoutError as e:
            raise StreamError(StreamErrorKind.TIMEOUT, f'no data from upstream for {self.idle_timeout}s') from e

    async def _pump(self) -> None:
        try:
            await self.source.open()

            chunk = await self._read()
            if not chunk:
                # A failing upstream explains itself better than "no data"
                await self.source.finish()
                raise StreamError(StreamErrorKind.UPSTREAM_UNAVAILABLE, 'upstream ended without sending any data')

            if not self._writable():
                return
            headers = StreamHeaders(
                content_type=self.source.content_type,
                filename=self.filename,
                content_length=self.source.content_length,
            )
            await self.sink.prepare(headers.to_http())

            while chunk:
                if not self._writable():
                    return
                await self.sink.write(chunk)
                self.bytes_sent += len(chunk)
                chunk = await self._read()

            await self.source.finish()
            if not self._writable():
                return
            self._finishing = True
            await self.sink.finish()
            self._settle(StreamOutcome.COMPLETED)

        except StreamError as e:
            self._settle(StreamOutcome.FAILED, e)
        except SinkClosedError:
            self._settle(StreamOutcome.CANCELLED)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._log.exception('Stream pump crashed')
            self._settle(StreamOutcome.FAILED, StreamError(StreamErrorKind.ABORTED, f'{type(e).__name__}: {e}'))

    async def _watch_sink(self) -> None:
        await self.sink.wait_closed()
        if not self._finishing:
            self._settle(StreamOutcome.CANCELLED)

    async def run(self) -> StreamOutcome:
        """Relay until completion, disconnect, failure or timeout.

        Returns:
            COMPLETED or CANCELLED (client went away)

        Raises:
            StreamError: On upstream failure, timeout or internal abort
        """
        loop = asyncio.get_running_loop()
        self._done = loop.create_future()
        self._log.info('Stream session started', filename=self.filename, timeout=self.session_timeout)

        pump = asyncio.create_task(self._pump())
        watcher = asyncio.create_task(self._watch_sink())
        deadline = loop.call_later(self.session_timeout, self._expire)

        try:
            await asyncio.shield(self._done)
        except asyncio.CancelledError:
            self._settle(StreamOutcome.CANCELLED)
            raise
        finally:
            deadline.cancel()
            for task in (pump, watcher):
                task.cancel()
            await asyncio.gather(pump, watcher, return_exceptions=True)
            await self.source.close()

        return await self._finalize()

    async def _finalize(self) -> StreamOutcome:
        outcome = self.outcome or StreamOutcome.CANCELLED

        if outcome == StreamOutcome.COMPLETED:
            self._log.info('Stream completed', bytes_sent=self.bytes_sent)
            return outcome

        if outcome == StreamOutcome.CANCELLED:
            self._log.info('Client disconnected, upstream terminated', bytes_sent=self.bytes_sent)
            return outcome

        error = self.error or StreamError(StreamErrorKind.ABORTED, 'stream failed')
        if not self.sink.headers_sent and not self.sink.closed:
            self._log.warning('Stream failed before headers, sending error', error=str(error))
            await self.sink.send_error(error.http_status, error.message)
        else:
            # A committed 200 cannot be taken back; dropping the connection
            # at least leaves the client with a detectably short body.
            self._log.error('Stream failed mid-body, truncating', error=str(error), bytes_sent=self.bytes_sent)
            await self.sink.abort()
        raise error
