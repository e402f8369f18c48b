"""Request line parsing, header draining and response framing."""

import logging
import socket
from typing import BinaryIO, Iterable, Optional

from webserver.domain.connection_context import ConnectionLoggerAdapter
from webserver.domain.http_types import (
    PROTOCOL_VERSION,
    SERVER_NAME,
    HttpRequest,
    HttpResponse,
    MalformedRequest,
    Verb,
)

IO_LOGGER = ConnectionLoggerAdapter(logging.getLogger("webserver.pipeline.io"), {})

PATH_SEPARATOR = "/"
HEADER_ENCODING = "iso-8859-1"
# Undecodable target bytes become lone surrogates, which os.fsencode turns
# back into the exact bytes the client sent.
TARGET_ENCODING = "utf-8"
TARGET_ERRORS = "surrogateescape"
CRLF = "\r\n"


def _decode_header_line(raw: bytes) -> str:
    return raw.decode(HEADER_ENCODING).rstrip(CRLF)


def read_request_line(reader: BinaryIO) -> Optional[str]:
    """Read the request line, returning None when the peer sent nothing."""
    raw = reader.readline()
    if not raw:
        return None
    return raw.decode(TARGET_ENCODING, TARGET_ERRORS).rstrip(CRLF)


def parse_request_line(request_line: str) -> HttpRequest:
    """Split the request line into verb and a path relative to the served root.

    Tokens beyond the target (usually the protocol version) are ignored.
    """
    tokens = request_line.split(" ")
    if len(tokens) < 2:
        raise MalformedRequest(f"Expected verb and target, got {len(tokens)} token(s)")
    method, target = tokens[0], tokens[1]
    if target.startswith(PATH_SEPARATOR):
        target = target[len(PATH_SEPARATOR) :]
    return HttpRequest(Verb.from_token(method), method, target)


def drain_headers(reader: BinaryIO) -> list[str]:
    """Consume header lines up to the blank separator line.

    End of stream or the connection's idle timeout also end the header block;
    the lines read so far are returned.
    """
    lines: list[str] = []
    while True:
        try:
            raw = reader.readline()
        except TimeoutError:
            IO_LOGGER.debug(
                "Header block ended by idle timeout",
                extra={"event": "headers_timed_out"},
            )
            break
        if not raw:
            break
        line = _decode_header_line(raw)
        if not line:
            break
        lines.append(line)
    return lines


def parse_headers(lines: Iterable[str]) -> dict[str, str]:
    """Convert raw header lines into a lowercase-keyed dictionary."""
    parsed = {}
    for line in lines:
        name, separator, value = line.partition(":")
        if not separator or not name.strip():
            continue
        parsed[name.strip().lower()] = value.strip()
    return parsed


def determine_content_length(headers: dict[str, str]) -> Optional[int]:
    """Return the declared Content-Length, or None when the header is absent."""
    header_value = headers.get("content-length")
    if header_value is None:
        return None
    try:
        content_length = int(header_value)
    except ValueError as exc:
        raise MalformedRequest("Invalid Content-Length") from exc
    if content_length < 0:
        raise MalformedRequest("Negative Content-Length")
    return content_length


def frame_headers(response: HttpResponse) -> bytes:
    """Serialize the status line and header block, blank line included."""
    lines = [f"{PROTOCOL_VERSION} {response.status}", f"Server: {SERVER_NAME}"]
    lines.extend(f"{name}: {value}" for name, value in response.headers.items())
    return (CRLF.join(lines) + CRLF + CRLF).encode()


def _stream_body(client_socket: socket.socket, chunks: Iterable[bytes]) -> int:
    sent = 0
    try:
        for chunk in chunks:
            client_socket.sendall(chunk)
            sent += len(chunk)
    except OSError as error:
        IO_LOGGER.warning(
            "Response body streaming interrupted",
            extra={
                "event": "body_stream_failed",
                "bytes_out": sent,
                "error_type": type(error).__name__,
                "error": str(error),
            },
        )
    finally:
        close = getattr(chunks, "close", None)
        if close is not None:
            close()
    return sent


def send_response(client_socket: socket.socket, response: HttpResponse) -> int:
    """Frame and send the response, returning the number of bytes written."""
    header_block = frame_headers(response)
    client_socket.sendall(header_block + response.body)
    bytes_out = len(header_block) + len(response.body)
    if response.body_iter is not None:
        bytes_out += _stream_body(client_socket, response.body_iter)
    IO_LOGGER.debug(
        "Sent response",
        extra={
            "event": "response_sent",
            "status": response.status,
            "bytes_out": bytes_out,
        },
    )
    return bytes_out
