"""Verb dispatch onto filesystem operations."""

import logging
from typing import BinaryIO

from webserver.domain.connection_context import ConnectionLoggerAdapter
from webserver.domain.http_types import HttpRequest, HttpResponse, Verb
from webserver.domain.response_builders import (
    internal_error_response,
    not_implemented_response,
)
from webserver.handlers.file_handler import (
    delete_file_response,
    read_file_response,
    write_file_response,
)
from webserver.transport.context import WorkerContext

ROUTER_LOGGER = ConnectionLoggerAdapter(
    logging.getLogger("webserver.pipeline.router"), {}
)


def _dispatch(
    request: HttpRequest, reader: BinaryIO, context: WorkerContext
) -> HttpResponse:
    config = context.config
    if request.verb is Verb.GET:
        return read_file_response(request, config.directory, config.welcome_path)
    if request.verb is Verb.HEAD:
        return read_file_response(
            request, config.directory, config.welcome_path, include_body=False
        )
    if request.verb is Verb.DELETE:
        return delete_file_response(request, config.directory)
    if request.verb is Verb.POST:
        return write_file_response(request, reader, config.directory, append=True)
    if request.verb is Verb.PUT:
        return write_file_response(request, reader, config.directory, append=False)

    ROUTER_LOGGER.info(
        "Unsupported verb",
        extra={"event": "verb_not_implemented", "verb": request.method},
    )
    return not_implemented_response()


def route_request(
    request: HttpRequest, reader: BinaryIO, context: WorkerContext
) -> HttpResponse:
    """Run the operation for the request verb, mapping failures to a 500."""
    if ROUTER_LOGGER.logger.isEnabledFor(logging.DEBUG):
        ROUTER_LOGGER.debug(
            "Dispatching request",
            extra={
                "event": "request_dispatched",
                "verb": request.method,
                "path": request.path,
            },
        )
    try:
        return _dispatch(request, reader, context)
    except Exception as error:  # pylint: disable=broad-except
        ROUTER_LOGGER.error(
            "Request dispatch failed",
            extra={
                "event": "dispatch_failed",
                "verb": request.method,
                "path": request.path,
                "error_type": type(error).__name__,
                "error": str(error),
            },
            exc_info=True,
        )
        return internal_error_response(include_body=request.verb is not Verb.HEAD)
