"""Upstream byte sources: a remote HTTP body or a subprocess pipeline."""

import asyncio
import os
import signal
from abc import ABC, abstractmethod
from collections import deque

import aiohttp
import structlog

from app.core.configs import app_config
from app.core.services.extraction.base_service import MediaFetcherInterface
from app.core.services.streaming.schemas import StreamError, StreamErrorKind

logger = structlog.get_logger(__name__)

STDERR_TAIL_LINES = 20


class ByteSource(ABC):
    """Upstream side of a stream session."""

    content_type: str = 'application/octet-stream'
    content_length: int | None = None

    @abstractmethod
    async def open(self) -> None:
        """Start the upstream transfer.

        Raises:
            StreamError: If the upstream cannot be reached
        """
        raise NotImplementedError

    @abstractmethod
    async def read(self) -> bytes:
        """Return the next chunk, or ``b''`` at end of stream."""
        raise NotImplementedError

    async def finish(self) -> None:  # noqa: B027
        """Check that the upstream ended cleanly after the last chunk.

        Raises:
            StreamError: If the upstream failed or ended early
        """

    @abstractmethod
    async def close(self) -> None:
        """Terminate the upstream. Safe to call more than once."""
        raise NotImplementedError

    @property
    @abstractmethod
    def active(self) -> bool:
        """Whether an upstream connection or process is still alive."""
        raise NotImplementedError


class RemoteUrlSource(ByteSource):
    """Relay the body of an HTTP GET chunk by chunk."""

    def __init__(
        self,
        fetcher: MediaFetcherInterface,
        url: str,
        referer: str | None = None,
        content_type: str = 'application/octet-stream',
        chunk_size: int | None = None,
    ):
        self.fetcher = fetcher
        self.url = url
        self.referer = referer
        self.content_type = content_type
        self.chunk_size = chunk_size or app_config.STREAM_CHUNK_SIZE
        self.bytes_read = 0
        self._response: aiohttp.ClientResponse | None = None

    async def open(self) -> None:
        try:
            response = await self.fetcher.open_media(self.url, self.referer)
        except TimeoutError as e:
            raise StreamError(StreamErrorKind.TIMEOUT, 'timed out connecting to media host') from e
        except aiohttp.ClientError as e:
            raise StreamError(StreamErrorKind.UPSTREAM_UNAVAILABLE, f'media host unreachable: {e}') from e

        self._response = response
        if response.status >= 400:
            await self.close()
            raise StreamError(
                StreamErrorKind.UPSTREAM_UNAVAILABLE,
                f'media host returned {response.status} {response.reason or ""}'.strip(),
            )

        upstream_type = response.headers.get('Content-Type')
        if upstream_type and not upstream_type.startswith(('text/', 'application/json')):
            self.content_type = upstream_type
        encoding = (response.headers.get('Content-Encoding') or 'identity').strip().lower()
        # aiohttp decodes compressed bodies, so a wire length would undercount
        self.content_length = response.content_length if encoding == 'identity' else None
        logger.info(
            'Remote media opened',
            url=self.url[:100],
            status=response.status,
            content_type=self.content_type,
            size_bytes=self.content_length,
        )

    async def read(self) -> bytes:
        if self._response is None:
            return b''
        try:
            chunk = await self._response.content.read(self.chunk_size)
        except aiohttp.ClientError as e:
            raise StreamError(StreamErrorKind.UPSTREAM_UNAVAILABLE, f'media download interrupted: {e}') from e
        self.bytes_read += len(chunk)
        return chunk

    async def finish(self) -> None:
        if self.content_length is not None and self.bytes_read < self.content_length:
            raise StreamError(
                StreamErrorKind.UPSTREAM_UNAVAILABLE,
                f'media body ended after {self.bytes_read} of {self.content_length} bytes',
            )

    async def close(self) -> None:
        if self._response is not None and not self._response.closed:
            # close() rather than release(): an unread body must not be drained
            self._response.close()
            logger.debug('Remote media closed', url=self.url[:100], bytes_read=self.bytes_read)

    @property
    def active(self) -> bool:
        return self._response is not None and not self._response.closed


class ProcessPipelineSource(ByteSource):
    """Relay stdout of a chain of processes joined by OS pipes.

    Each stage runs in its own process group so that helpers it spawns are
    terminated with it. Failure of any stage fails the whole pipeline.
    """

    def __init__(
        self,
        stages: list[list[str]],
        content_type: str = 'application/octet-stream',
        chunk_size: int | None = None,
        kill_grace: float | None = None,
    ):
        if not stages:
            raise ValueError('A pipeline needs at least one stage')
        self.stages = stages
        self.content_type = content_type
        self.chunk_size = chunk_size or app_config.STREAM_CHUNK_SIZE
        self.kill_grace = kill_grace if kill_grace is not None else app_config.STREAM_KILL_GRACE_SECONDS
        self.processes: list[asyncio.subprocess.Process] = []
        self._stderr: list[deque[str]] = []
        self._stderr_tasks: list[asyncio.Task] = []
        self._closed = False

    @staticmethod
    def _stage_name(command: list[str]) -> str:
        return os.path.basename(command[0])

    async def open(self) -> None:
        stdin_fd: int | None = None
        try:
            for index, command in enumerate(self.stages):
                is_last = index == len(self.stages) - 1
                read_fd = write_fd = None
                if not is_last:
                    read_fd, write_fd = os.pipe()
                try:
                    process = await asyncio.create_subprocess_exec(
                        *command,
                        stdin=stdin_fd if stdin_fd is not None else asyncio.subprocess.DEVNULL,
                        stdout=asyncio.subprocess.PIPE if is_last else write_fd,
                        stderr=asyncio.subprocess.PIPE,
                        start_new_session=True,
                    )
                except OSError as e:
                    if read_fd is not None:
                        os.close(read_fd)
                    raise StreamError(
                        StreamErrorKind.UPSTREAM_UNAVAILABLE,
                        f'could not start {self._stage_name(command)}: {e}',
                    ) from e
                except BaseException:
                    if read_fd is not None:
                        os.close(read_fd)
                    raise
                finally:
                    # Children hold their own copies of the pipe ends
                    if write_fd is not None:
                        os.close(write_fd)
                    if stdin_fd is not None:
                        os.close(stdin_fd)
                        stdin_fd = None

                tail: deque[str] = deque(maxlen=STDERR_TAIL_LINES)
                self.processes.append(process)
                self._stderr.append(tail)
                self._stderr_tasks.append(
                    asyncio.create_task(self._drain_stderr(process, self._stage_name(command), tail))
                )
                stdin_fd = read_fd

            logger.info(
                'Pipeline started',
                stages=[self._stage_name(command) for command in self.stages],
                pids=[p.pid for p in self.processes],
            )
        except BaseException:
            if stdin_fd is not None:
                os.close(stdin_fd)
            await self.close()
            raise

    @staticmethod
    async def _drain_stderr(process: asyncio.subprocess.Process, name: str, tail: deque[str]) -> None:
        if process.stderr is None:
            return
        while True:
            line = await process.stderr.readline()
            if not line:
                return
            text = line.decode('utf-8', errors='replace').rstrip()
            if text:
                tail.append(text)
                logger.debug('Pipeline stderr', stage=name, line=text[:500])

    async def read(self) -> bytes:
        if not self.processes:
            return b''
        stdout = self.processes[-1].stdout
        if stdout is None:
            return b''
        return await stdout.read(self.chunk_size)

    async def finish(self) -> None:
        for command, process, tail in zip(self.stages, self.processes, self._stderr, strict=True):
            try:
                returncode = await asyncio.wait_for(process.wait(), timeout=self.kill_grace)
            except asyncio.TimeoutError as e:
                raise StreamError(
                    StreamErrorKind.UPSTREAM_UNAVAILABLE,
                    f'{self._stage_name(command)} did not exit after end of output',
                ) from e
            if returncode != 0:
                # Let the drain task collect the final stderr lines
                await asyncio.gather(*self._stderr_tasks, return_exceptions=True)
                detail = tail[-1] if tail else 'no diagnostics'
                raise StreamError(
                    StreamErrorKind.UPSTREAM_UNAVAILABLE,
                    f'{self._stage_name(command)} exited with code {returncode}: {detail}',
                )

    def _signal(self, process: asyncio.subprocess.Process, sig: signal.Signals) -> None:
        if process.returncode is not None:
            return
        try:
            os.killpg(process.pid, sig)
        except ProcessLookupError:
            pass
        except PermissionError:
            process.send_signal(sig)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        running = [p for p in self.processes if p.returncode is None]
        for process in running:
            self._signal(process, signal.SIGTERM)

        for process in running:
            try:
                await asyncio.wait_for(process.wait(), timeout=self.kill_grace)
            except asyncio.TimeoutError:
                logger.warning('Pipeline stage ignored SIGTERM, killing', pid=process.pid)
                self._signal(process, signal.SIGKILL)
                await process.wait()

        for task in self._stderr_tasks:
            task.cancel()
        await asyncio.gather(*self._stderr_tasks, return_exceptions=True)

        if running:
            logger.info('Pipeline terminated', pids=[p.pid for p in running])

    @property
    def active(self) -> bool:
        return any(p.returncode is None for p in self.processes)
