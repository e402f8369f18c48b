"""Filesystem operations behind each supported verb."""

import logging
import mimetypes
from pathlib import Path
from typing import BinaryIO, Iterable, Iterator, Optional

from webserver.bootstrap.config import FILE_CHUNK_SIZE
from webserver.domain.connection_context import ConnectionLoggerAdapter
from webserver.domain.http_types import (
    STATUS_CREATED,
    STATUS_NO_CONTENT,
    STATUS_OK,
    HttpRequest,
    HttpResponse,
)
from webserver.domain.response_builders import (
    bad_request_response,
    internal_error_response,
    not_found_response,
    redirect_response,
    status_response,
)

FILE_LOGGER = ConnectionLoggerAdapter(
    logging.getLogger("webserver.handlers.file"), {}
)

DEFAULT_CONTENT_TYPE = "application/octet-stream"
LINE_TERMINATOR = b"\n"


def resolve_target(directory: str, path: str) -> Path:
    """Join the request path onto the served directory as-is."""
    return Path(directory) / path


def stream_file(filepath: Path, chunk_size: int = FILE_CHUNK_SIZE) -> Iterator[bytes]:
    """Yield file contents in fixed-size chunks for streaming responses."""
    with open(filepath, "rb") as file_handle:
        while True:
            chunk = file_handle.read(chunk_size)
            if not chunk:
                break
            yield chunk


def content_type_for_path(filepath: Path) -> str:
    """Best-effort MIME type from the file name, never raising."""
    try:
        mime_type, _ = mimetypes.guess_type(filepath.as_posix())
    except (TypeError, ValueError):
        mime_type = None
    return mime_type or DEFAULT_CONTENT_TYPE


def file_headers(filepath: Path) -> dict[str, str]:
    return {
        "Content-Type": content_type_for_path(filepath),
        "Content-Length": str(filepath.stat().st_size),
    }


def read_file_response(
    request: HttpRequest,
    directory: str,
    welcome_path: str,
    include_body: bool = True,
) -> HttpResponse:
    """Answer GET (include_body) or HEAD for the requested path."""
    if not request.path:
        FILE_LOGGER.info(
            "Redirecting to welcome resource",
            extra={"event": "welcome_redirect", "location": welcome_path},
        )
        return redirect_response(welcome_path)

    target = resolve_target(directory, request.path)
    if not target.is_file():
        FILE_LOGGER.info(
            "File not found",
            extra={
                "event": "file_not_found",
                "path": target.as_posix(),
                "verb": request.method,
            },
        )
        return not_found_response(include_body)

    headers = file_headers(target)
    FILE_LOGGER.info(
        "File read operation complete",
        extra={
            "event": "file_read_complete",
            "path": target.as_posix(),
            "verb": request.method,
            "content_length": int(headers["Content-Length"]),
        },
    )
    body_iter = stream_file(target) if include_body else None
    return HttpResponse(STATUS_OK, headers, body_iter=body_iter)


def delete_file_response(request: HttpRequest, directory: str) -> HttpResponse:
    """Remove a regular file; directories and other entries are refused."""
    target = resolve_target(directory, request.path)
    if not target.exists():
        FILE_LOGGER.info(
            "File not found",
            extra={
                "event": "file_not_found",
                "path": target.as_posix(),
                "verb": request.method,
            },
        )
        return not_found_response()
    if not target.is_file():
        FILE_LOGGER.warning(
            "Refusing to delete a non-regular file",
            extra={"event": "delete_refused", "path": target.as_posix()},
        )
        return bad_request_response()

    try:
        target.unlink()
    except OSError as error:
        FILE_LOGGER.error(
            "File deletion failed",
            extra={
                "event": "delete_failed",
                "path": target.as_posix(),
                "error_type": type(error).__name__,
                "error": str(error),
            },
        )
        return internal_error_response()

    FILE_LOGGER.info(
        "File deleted", extra={"event": "file_deleted", "path": target.as_posix()}
    )
    return status_response(STATUS_NO_CONTENT)


def _lines_until_idle(reader: BinaryIO) -> Iterator[bytes]:
    # readline() discards a partial line when the timeout fires, so lines
    # are split here and an unterminated tail survives the timeout.
    pending = b""
    while True:
        try:
            chunk = reader.read1(FILE_CHUNK_SIZE)
        except TimeoutError:
            FILE_LOGGER.debug(
                "Request body ended by idle timeout",
                extra={"event": "body_idle_timeout"},
            )
            break
        if not chunk:
            break
        *complete, pending = (pending + chunk).split(LINE_TERMINATOR)
        yield from complete
    if pending:
        yield pending


def _declared_lines(reader: BinaryIO, content_length: int) -> Iterator[bytes]:
    received = bytearray()
    while len(received) < content_length:
        try:
            chunk = reader.read1(content_length - len(received))
        except TimeoutError:
            FILE_LOGGER.debug(
                "Request body shorter than declared",
                extra={
                    "event": "body_idle_timeout",
                    "content_length": content_length,
                },
            )
            break
        if not chunk:
            break
        received += chunk
    yield from bytes(received).splitlines()


def _copy_lines(lines: Iterable[bytes], file_handle: BinaryIO) -> int:
    written = 0
    try:
        for line in lines:
            file_handle.write(line.rstrip(b"\r\n") + LINE_TERMINATOR)
            written += 1
    except OSError as error:
        FILE_LOGGER.debug(
            "Body copy aborted",
            extra={
                "event": "body_copy_aborted",
                "lines_written": written,
                "error_type": type(error).__name__,
            },
        )
    return written


def write_file_response(
    request: HttpRequest,
    reader: BinaryIO,
    directory: str,
    append: bool,
) -> HttpResponse:
    """Copy the request body into the target file (POST appends, PUT replaces).

    The body ends at Content-Length when one was declared, otherwise when the
    connection stays idle past its read timeout or the peer stops sending.
    Each received line is stored followed by a single ``\\n``.
    """
    target = resolve_target(directory, request.path)
    created = not target.exists()
    mode = "ab" if append else "wb"

    content_length: Optional[int] = request.content_length
    if content_length is None:
        lines = _lines_until_idle(reader)
    else:
        lines = _declared_lines(reader, content_length)

    with open(target, mode) as file_handle:
        lines_written = _copy_lines(lines, file_handle)
        file_handle.flush()

    FILE_LOGGER.info(
        "File write complete",
        extra={
            "event": "file_write_complete",
            "path": target.as_posix(),
            "verb": request.method,
            "append": append,
            "file_created": created,
            "lines_written": lines_written,
        },
    )
    return status_response(STATUS_CREATED if created else STATUS_OK)
