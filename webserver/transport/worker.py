"""Per-connection handling: parse, dispatch, respond, close."""

import logging
import socket
import time
from dataclasses import dataclass, field
from typing import BinaryIO, Optional

from webserver.bootstrap.config import CLOSE_DRAIN_BYTES, FILE_CHUNK_SIZE
from webserver.domain.connection_context import (
    ConnectionLoggerAdapter,
    connection_scope,
)
from webserver.domain.http_types import ConnectionState, HttpRequest, MalformedRequest
from webserver.domain.response_builders import bad_request_response
from webserver.pipeline.io import (
    determine_content_length,
    drain_headers,
    parse_headers,
    parse_request_line,
    read_request_line,
    send_response,
)
from webserver.pipeline.router import route_request
from webserver.transport.context import WorkerContext

WORKER_LOGGER = ConnectionLoggerAdapter(
    logging.getLogger("webserver.transport.worker"), {}
)


@dataclass
class ConnectionSession:
    """One accepted socket, its buffered reader and its current state."""

    client_socket: socket.socket
    client_addr_str: str
    linger: float = 0.0
    state: ConnectionState = ConnectionState.ACCEPTED
    reader: Optional[BinaryIO] = field(default=None, repr=False)

    def open_reader(self) -> BinaryIO:
        if self.reader is None:
            self.reader = self.client_socket.makefile("rb")
        return self.reader

    def advance(self, state: ConnectionState) -> None:
        previous, self.state = self.state, state
        if WORKER_LOGGER.logger.isEnabledFor(logging.DEBUG):
            WORKER_LOGGER.debug(
                "Connection state changed",
                extra={
                    "event": "state_changed",
                    "client": self.client_addr_str,
                    "previous_state": previous.value,
                    "state": state.value,
                },
            )

    def _drain_unread(self) -> int:
        """Discard request bytes the client is still sending.

        Closing a TCP socket with unread input makes the kernel answer with a
        reset, which can destroy a response the client has not read yet.
        Bounded by ``linger`` seconds and ``CLOSE_DRAIN_BYTES``.
        """
        deadline = time.monotonic() + self.linger
        drained = 0
        while drained < CLOSE_DRAIN_BYTES:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            try:
                self.client_socket.settimeout(remaining)
                chunk = self.client_socket.recv(FILE_CHUNK_SIZE)
            except OSError:
                break
            if not chunk:
                break
            drained += len(chunk)
        return drained

    def close(self) -> None:
        """Release the reader and socket; safe to call on any state."""
        if self.reader is not None:
            try:
                self.reader.close()
            except OSError:
                pass
        try:
            self.client_socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass
        else:
            drained = self._drain_unread()
            if drained:
                WORKER_LOGGER.debug(
                    "Discarded unread request bytes",
                    extra={"event": "input_drained", "drained_bytes": drained},
                )
        self.client_socket.close()
        self.advance(ConnectionState.CLOSED)


def _read_request(session: ConnectionSession) -> Optional[HttpRequest]:
    reader = session.open_reader()

    session.advance(ConnectionState.PARSING_REQUEST)
    request_line = read_request_line(reader)
    if request_line is None:
        WORKER_LOGGER.info(
            "Client closed the connection before sending a request",
            extra={"event": "client_disconnected", "client": session.client_addr_str},
        )
        return None

    session.advance(ConnectionState.DRAINING_HEADERS)
    headers = parse_headers(drain_headers(reader))

    request = parse_request_line(request_line)
    request.headers = headers
    request.content_length = determine_content_length(headers)
    WORKER_LOGGER.info(
        "Request parsed",
        extra={
            "event": "request_parsed",
            "client": session.client_addr_str,
            "verb": request.method,
            "path": request.path,
        },
    )
    return request


def _serve(session: ConnectionSession, context: WorkerContext) -> None:
    try:
        request = _read_request(session)
    except MalformedRequest as error:
        WORKER_LOGGER.warning(
            "Malformed request received",
            extra={
                "event": "malformed_request",
                "client": session.client_addr_str,
                "error": str(error),
            },
        )
        session.advance(ConnectionState.RESPONDING)
        send_response(session.client_socket, bad_request_response())
        return

    if request is None:
        return

    session.advance(ConnectionState.DISPATCHING)
    response = route_request(request, session.open_reader(), context)

    session.advance(ConnectionState.RESPONDING)
    bytes_out = send_response(session.client_socket, response)
    WORKER_LOGGER.info(
        "Request complete",
        extra={
            "event": "request_complete",
            "client": session.client_addr_str,
            "verb": request.method,
            "path": request.path,
            "status": response.status,
            "bytes_out": bytes_out,
        },
    )


def handle_client(
    client_socket: socket.socket,
    client_address: tuple[str, int],
    context: WorkerContext,
) -> None:
    """Serve exactly one request on the socket and close it.

    Never raises: every failure is logged here so the accept loop can move on
    to the next connection. Everything logged meanwhile shares one
    connection id.
    """
    session = ConnectionSession(
        client_socket,
        f"{client_address[0]}:{client_address[1]}",
        linger=context.config.read_timeout,
    )

    with connection_scope():
        try:
            _serve(session, context)
        except OSError as error:
            WORKER_LOGGER.error(
                "Error handling client connection",
                extra={
                    "event": "connection_error",
                    "client": session.client_addr_str,
                    "state": session.state.value,
                    "error_type": type(error).__name__,
                    "error": str(error),
                },
            )
        except Exception as error:  # pylint: disable=broad-except
            WORKER_LOGGER.error(
                "Unexpected error while handling connection",
                extra={
                    "event": "worker_error",
                    "client": session.client_addr_str,
                    "state": session.state.value,
                    "error_type": type(error).__name__,
                    "error": str(error),
                },
                exc_info=True,
            )
        finally:
            session.close()
