"""Context object handed to every connection handler."""

from dataclasses import dataclass, field

from webserver.bootstrap.config import ServerConfig


@dataclass
class WorkerContext:
    """Dependencies shared by the accept loop and the connection handler."""

    config: ServerConfig = field(default_factory=ServerConfig)
