"""Shared fixtures for unit tests."""

import io
import logging

import pytest

from webserver.bootstrap.config import ServerConfig
from webserver.transport.context import WorkerContext


class IdleReader:
    """Binary reader that raises TimeoutError once its data is exhausted.

    Mimics a socket file whose peer keeps the connection open but stops
    sending, which is how request bodies without Content-Length end.
    """

    def __init__(self, data: bytes, chunk_size: int = -1):
        self._buffer = io.BytesIO(data)
        self._size = len(data)
        self._chunk_size = chunk_size
        self.timeouts = 0

    def _check_idle(self) -> None:
        if self._buffer.tell() >= self._size:
            self.timeouts += 1
            raise TimeoutError("timed out")

    def readline(self) -> bytes:
        self._check_idle()
        return self._buffer.readline()

    def read1(self, size: int = -1) -> bytes:
        self._check_idle()
        if self._chunk_size > 0:
            size = self._chunk_size if size < 0 else min(size, self._chunk_size)
        return self._buffer.read1(size)


@pytest.fixture(autouse=True)
def enable_log_propagation():
    """Ensure logs propagate to root so caplog can catch them."""
    logger = logging.getLogger("webserver")
    old_propagate = logger.propagate
    logger.propagate = True
    yield
    logger.propagate = old_propagate


@pytest.fixture(name="context")
def fixture_context(tmp_path):
    """Worker context serving a fresh temporary directory."""
    return WorkerContext(
        config=ServerConfig(
            host="127.0.0.1",
            port=0,
            directory=str(tmp_path),
            read_timeout=0.2,
            welcome_path="/bienvenue.html",
        )
    )


@pytest.fixture(name="idle_reader")
def fixture_idle_reader():
    """Factory for readers that time out after their payload."""
    return IdleReader
