"""Connection-scoped log context.

The server handles one connection at a time, from the request line to the
close. Every record logged while a connection is open carries that
connection's id; records logged between connections (startup, accept errors,
shutdown) carry ``-``.
"""

import contextvars
import logging
import uuid
from contextlib import contextmanager
from typing import Any, Iterator, MutableMapping, Optional

NO_CONNECTION = "-"
PROJECT_LOGGER_PREFIX = "webserver."

_active_connection: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "active_connection", default=None
)


def new_connection_id() -> str:
    return uuid.uuid4().hex


def current_connection_id() -> str:
    """Id of the connection being served, or ``-`` between connections."""
    return _active_connection.get() or NO_CONNECTION


@contextmanager
def connection_scope(connection_id: Optional[str] = None) -> Iterator[str]:
    """Tag everything logged inside the block with one connection id.

    The previous value is restored on exit, so a scope never leaks into the
    accept loop even when the handler raises.
    """
    token = _active_connection.set(connection_id or new_connection_id())
    try:
        yield current_connection_id()
    finally:
        _active_connection.reset(token)


def component_for(logger_name: str) -> str:
    """``webserver.transport.worker`` -> ``transport.worker``."""
    if logger_name.startswith(PROJECT_LOGGER_PREFIX):
        return logger_name[len(PROJECT_LOGGER_PREFIX) :]
    return logger_name


class ConnectionLoggerAdapter(logging.LoggerAdapter):
    """Adds ``connection_id`` and ``component`` to every record it emits."""

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> tuple[str, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        extra.setdefault("connection_id", current_connection_id())
        extra["component"] = component_for(self.logger.name)
        kwargs["extra"] = extra
        return msg, kwargs
