"""Unit tests for the sequential accept loop and listening socket setup."""

import logging
import socket
import threading
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from webserver.bootstrap.config import ServerConfig
from webserver.bootstrap.socket_factory import create_server_socket
from webserver.lifecycle.state import ServerLifecycle
from webserver.transport.accept_loop import run_server, serve_forever

from tests.utils.http import parse_raw_response, read_until_close


def request(port: int, payload: bytes) -> bytes:
    with socket.create_connection(("127.0.0.1", port), timeout=5) as sock:
        sock.sendall(payload)
        return read_until_close(sock)


def test_bad_connections_do_not_stop_the_loop(context):
    """Malformed and empty connections are isolated from later ones."""

    (Path(context.config.directory) / "ok.txt").write_text("still serving")
    server_socket = create_server_socket(context.config)
    port = server_socket.getsockname()[1]
    lifecycle = ServerLifecycle()
    loop = threading.Thread(
        target=serve_forever, args=(server_socket, context, lifecycle), daemon=True
    )
    loop.start()
    try:
        malformed = parse_raw_response(request(port, b"BROKEN\r\n\r\n"))
        assert malformed.status_line == "HTTP/1.0 400 Bad Request"

        with socket.create_connection(("127.0.0.1", port), timeout=5) as silent:
            silent.shutdown(socket.SHUT_WR)
            assert read_until_close(silent) == b""

        served = parse_raw_response(request(port, b"GET /ok.txt HTTP/1.0\r\n\r\n"))
        assert served.status_line == "HTTP/1.0 200 OK"
        assert served.body == b"still serving"
    finally:
        lifecycle.begin_shutdown()
        loop.join(timeout=5)
        server_socket.close()
    assert not loop.is_alive()


def test_handler_exception_is_logged_and_next_connection_served(context, caplog):
    """An exception escaping the handler closes that socket and moves on."""

    lifecycle = ServerLifecycle()
    first, second = MagicMock(spec=socket.socket), MagicMock(spec=socket.socket)

    def accept_then_stop():
        yield first, ("127.0.0.1", 1)
        yield second, ("127.0.0.1", 2)
        lifecycle.begin_shutdown()
        raise socket.timeout()

    server_socket = MagicMock(spec=socket.socket)
    accepts = accept_then_stop()
    server_socket.accept.side_effect = lambda: next(accepts)

    with patch(
        "webserver.transport.accept_loop.handle_client",
        side_effect=[RuntimeError("handler bug"), None],
    ) as handler:
        serve_forever(server_socket, context, lifecycle)

    assert handler.call_count == 2
    first.close.assert_called_once()
    first.settimeout.assert_called_once_with(context.config.read_timeout)
    second.settimeout.assert_called_once_with(context.config.read_timeout)
    assert any(
        getattr(r, "event", None) == "connection_error" for r in caplog.records
    )


def test_accept_errors_are_logged_and_retried(context, caplog):
    """A failing accept call does not end the loop."""

    lifecycle = ServerLifecycle()
    calls = []

    def flaky_accept():
        calls.append(True)
        if len(calls) == 1:
            raise OSError("EMFILE")
        lifecycle.begin_shutdown()
        raise socket.timeout()

    server_socket = MagicMock(spec=socket.socket)
    server_socket.accept.side_effect = flaky_accept

    serve_forever(server_socket, context, lifecycle)

    assert len(calls) == 2
    assert any(getattr(r, "event", None) == "accept_error" for r in caplog.records)


def test_bind_failure_terminates_process(caplog):
    """A port that cannot be bound is fatal and exits with status 1."""

    with socket.create_server(("127.0.0.1", 0)) as occupied:
        port = occupied.getsockname()[1]
        with pytest.raises(SystemExit) as excinfo:
            create_server_socket(ServerConfig(host="127.0.0.1", port=port))

    assert excinfo.value.code == 1
    assert any(getattr(r, "event", None) == "bind_failed" for r in caplog.records)


def test_run_server_logs_listening_and_stopped(context, caplog):
    """run_server announces the listener and closes it on shutdown."""

    caplog.set_level(logging.INFO, logger="webserver")
    lifecycle = ServerLifecycle()
    lifecycle.begin_shutdown()

    with patch("webserver.transport.accept_loop.create_server_socket") as create:
        listener = MagicMock(spec=socket.socket)
        create.return_value = listener
        run_server(context.config, lifecycle)

    create.assert_called_once_with(context.config)
    listener.close.assert_called_once()
    events = [getattr(r, "event", None) for r in caplog.records]
    assert "server_listening" in events
    assert events[-1] == "server_stopped"
