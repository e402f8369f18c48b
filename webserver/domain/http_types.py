"""Request, response and connection-state types shared across layers."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

PROTOCOL_VERSION = "HTTP/1.0"
SERVER_NAME = "Bot"

STATUS_OK = "200 OK"
STATUS_CREATED = "201 Created"
STATUS_NO_CONTENT = "204 No Content"
STATUS_MOVED_PERMANENTLY = "301 Moved Permanently"
STATUS_BAD_REQUEST = "400 Bad Request"
STATUS_NOT_FOUND = "404 Not Found"
STATUS_INTERNAL_SERVER_ERROR = "500 Internal Server Error"
STATUS_NOT_IMPLEMENTED = "501 Not Implemented"


class MalformedRequest(ValueError):
    """Raised when the request line or framing headers cannot be used."""


class Verb(str, Enum):
    """Request methods the dispatcher knows how to branch on."""

    GET = "GET"
    HEAD = "HEAD"
    DELETE = "DELETE"
    POST = "POST"
    PUT = "PUT"
    OTHER = "OTHER"

    @classmethod
    def from_token(cls, token: str) -> "Verb":
        """Map a request-line method token onto a verb, OTHER when unknown."""
        try:
            return cls(token)
        except ValueError:
            return cls.OTHER


class ConnectionState(str, Enum):
    """Lifecycle of a single accepted connection."""

    ACCEPTED = "ACCEPTED"
    PARSING_REQUEST = "PARSING_REQUEST"
    DRAINING_HEADERS = "DRAINING_HEADERS"
    DISPATCHING = "DISPATCHING"
    RESPONDING = "RESPONDING"
    CLOSED = "CLOSED"


@dataclass
class HttpRequest:
    """A parsed request line plus whatever header lines were drained."""

    verb: Verb
    method: str
    path: str
    headers: dict[str, str] = field(default_factory=dict)
    content_length: Optional[int] = None


@dataclass
class HttpResponse:
    """Represents a response to be framed and sent to a client."""

    status: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    body_iter: Optional[Iterable[bytes]] = None
