"""Listening socket creation."""

import logging
import socket
import sys

from webserver.bootstrap.config import ACCEPT_POLL_SECONDS, ServerConfig
from webserver.domain.connection_context import ConnectionLoggerAdapter

SOCKET_LOGGER = ConnectionLoggerAdapter(logging.getLogger("webserver.socket"), {})


def create_server_socket(config: ServerConfig) -> socket.socket:
    """Bind the listening socket, terminating the process when that fails."""
    try:
        server_socket = socket.create_server((config.host, config.port))
    except OSError as error:
        SOCKET_LOGGER.critical(
            "Failed to bind listening socket",
            extra={
                "event": "bind_failed",
                "host": config.host,
                "port": config.port,
                "error_type": type(error).__name__,
                "error": str(error),
            },
        )
        sys.exit(1)
    server_socket.settimeout(ACCEPT_POLL_SECONDS)
    return server_socket
