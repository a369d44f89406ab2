from abc import ABC, abstractmethod


class SinkClosedError(ConnectionError):
    """The sink can no longer accept bytes."""


class ByteSinkInterface(ABC):
    """Writable destination for streamed bytes, usually an HTTP response."""

    @property
    @abstractmethod
    def headers_sent(self) -> bool:
        """Whether status and headers are committed to the client."""
        raise NotImplementedError

    @property
    @abstractmethod
    def closed(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    async def prepare(self, headers: dict[str, str]) -> None:
        """Commit a 200 status and ``headers``."""
        raise NotImplementedError

    @abstractmethod
    async def write(self, chunk: bytes) -> None:
        """Write one chunk, waiting for the client to drain.

        Raises:
            SinkClosedError: If the client went away
        """
        raise NotImplementedError

    @abstractmethod
    async def finish(self) -> None:
        """Complete the body after the last chunk."""
        raise NotImplementedError

    @abstractmethod
    async def send_error(self, status: int, message: str) -> None:
        """Answer with an error status. Only valid before ``prepare``."""
        raise NotImplementedError

    @abstractmethod
    async def abort(self) -> None:
        """Drop the connection mid-body so the client sees a truncated download."""
        raise NotImplementedError

    @abstractmethod
    async def wait_closed(self) -> None:
        """Return once the client has disconnected."""
        raise NotImplementedError
