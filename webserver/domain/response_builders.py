"""Pure HTTP response builders."""

from webserver.domain.http_types import (
    STATUS_BAD_REQUEST,
    STATUS_INTERNAL_SERVER_ERROR,
    STATUS_MOVED_PERMANENTLY,
    STATUS_NO_CONTENT,
    STATUS_NOT_FOUND,
    STATUS_NOT_IMPLEMENTED,
    HttpResponse,
)

# Statuses that must never carry a message body.
BODYLESS_STATUSES = frozenset({STATUS_NO_CONTENT})


def status_markup(status: str) -> bytes:
    """Render the minimal HTML body used for bare status responses."""
    return f"<h1>{status}</h1>".encode()


def status_response(status: str, include_body: bool = True) -> HttpResponse:
    """Return a bare status response, optionally carrying the status markup."""
    if not include_body or status in BODYLESS_STATUSES:
        return HttpResponse(status)
    return HttpResponse(status, body=status_markup(status))


def redirect_response(location: str) -> HttpResponse:
    """Produce a permanent redirect without a body."""
    return HttpResponse(STATUS_MOVED_PERMANENTLY, {"Location": location})


def not_found_response(include_body: bool = True) -> HttpResponse:
    return status_response(STATUS_NOT_FOUND, include_body)


def bad_request_response(include_body: bool = True) -> HttpResponse:
    return status_response(STATUS_BAD_REQUEST, include_body)


def internal_error_response(include_body: bool = True) -> HttpResponse:
    return status_response(STATUS_INTERNAL_SERVER_ERROR, include_body)


def not_implemented_response() -> HttpResponse:
    return status_response(STATUS_NOT_IMPLEMENTED)
