"""Main connection acceptance loop."""

import logging
import os
import socket

from webserver.bootstrap.config import ServerConfig
from webserver.bootstrap.socket_factory import create_server_socket
from webserver.domain.connection_context import ConnectionLoggerAdapter
from webserver.lifecycle.state import ServerLifecycle
from webserver.transport.context import WorkerContext
from webserver.transport.worker import handle_client

ACCEPT_LOGGER = ConnectionLoggerAdapter(
    logging.getLogger("webserver.transport.accept"), {}
)


def _handle_accepted_client(
    client_socket: socket.socket,
    client_address: tuple[str, int],
    context: WorkerContext,
) -> None:
    """Apply the idle-read timeout and serve the connection to completion."""
    client_addr_str = f"{client_address[0]}:{client_address[1]}"
    ACCEPT_LOGGER.info(
        "Client connection accepted",
        extra={"event": "connection_accepted", "client": client_addr_str},
    )
    try:
        client_socket.settimeout(context.config.read_timeout)
        handle_client(client_socket, client_address, context)
    except Exception as error:  # pylint: disable=broad-except
        ACCEPT_LOGGER.error(
            "Connection handler failed",
            extra={
                "event": "connection_error",
                "client": client_addr_str,
                "error_type": type(error).__name__,
                "error": str(error),
            },
            exc_info=True,
        )
        client_socket.close()


def serve_forever(
    server_socket: socket.socket, context: WorkerContext, lifecycle: ServerLifecycle
) -> None:
    """Accept and fully serve connections one at a time until asked to stop."""
    while not lifecycle.should_stop():
        try:
            client_socket, client_address = server_socket.accept()
        except socket.timeout:
            continue
        except OSError as error:
            if lifecycle.should_stop():
                break
            ACCEPT_LOGGER.error(
                "Socket accept failed",
                extra={"event": "accept_error", "error_type": type(error).__name__},
            )
            continue

        _handle_accepted_client(client_socket, client_address, context)


def run_server(config: ServerConfig, lifecycle: ServerLifecycle) -> None:
    """Create the listening socket and serve until shutdown is requested."""

    server_socket = create_server_socket(config)
    context = WorkerContext(config=config)

    ACCEPT_LOGGER.info(
        "Server listening for connections",
        extra={
            "event": "server_listening",
            "host": config.host,
            "port": config.port,
            "directory": config.directory,
            "working_directory": os.getcwd(),
            "read_timeout": config.read_timeout,
        },
    )

    try:
        serve_forever(server_socket, context, lifecycle)
    finally:
        server_socket.close()
        ACCEPT_LOGGER.info("Server shutdown complete", extra={"event": "server_stopped"})
