"""Server configuration and CLI argument parsing."""

import argparse
import os
from dataclasses import dataclass


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value else default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value is not None else default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value is not None else default


DEFAULT_HOST = _env_str("WEBSERVER_HOST", "0.0.0.0")
DEFAULT_PORT = _env_int("WEBSERVER_PORT", 3000)
DEFAULT_DIRECTORY = _env_str("WEBSERVER_DIRECTORY", ".")
DEFAULT_READ_TIMEOUT = _env_float("WEBSERVER_READ_TIMEOUT", 0.1)
DEFAULT_WELCOME_PATH = _env_str("WEBSERVER_WELCOME_PATH", "/bienvenue.html")

ACCEPT_POLL_SECONDS = 0.5
FILE_CHUNK_SIZE = 1024
CLOSE_DRAIN_BYTES = 64 * 1024


@dataclass
class ServerConfig:
    """Listening address, served directory and per-connection timeouts."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    directory: str = DEFAULT_DIRECTORY
    read_timeout: float = DEFAULT_READ_TIMEOUT
    welcome_path: str = DEFAULT_WELCOME_PATH


def _positive_float(value: str) -> float:
    number = float(value)
    if number <= 0:
        raise argparse.ArgumentTypeError("must be a positive number of seconds")
    return number


def parse_cli_args(argv: list[str]) -> argparse.Namespace:
    """Return parsed CLI arguments for server configuration."""
    parser = argparse.ArgumentParser(description="Filesystem-backed HTTP/1.0 server")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument(
        "--directory",
        default=DEFAULT_DIRECTORY,
        help="Directory request paths are resolved against",
    )
    parser.add_argument(
        "--read-timeout",
        type=_positive_float,
        default=DEFAULT_READ_TIMEOUT,
        help="Idle read timeout in seconds; ends request bodies sent without "
        "Content-Length",
    )
    parser.add_argument(
        "--welcome-path",
        default=DEFAULT_WELCOME_PATH,
        help="Redirect target for requests without a path",
    )
    default_log_level = os.getenv("WEBSERVER_LOG_LEVEL", "INFO").upper()
    default_destination = os.getenv("WEBSERVER_LOG_DESTINATION", "stdout")
    default_format = os.getenv("WEBSERVER_LOG_FORMAT", "json").lower()
    parser.add_argument(
        "--log-level",
        default=default_log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
    )
    parser.add_argument(
        "--log-destination",
        default=default_destination,
        help="stdout or a file path",
    )
    parser.add_argument(
        "--log-format",
        default=default_format,
        choices=["json", "text"],
        type=str.lower,
    )
    return parser.parse_args(argv)


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    """Build the server configuration from parsed CLI arguments."""
    return ServerConfig(
        host=args.host,
        port=args.port,
        directory=args.directory,
        read_timeout=args.read_timeout,
        welcome_path=args.welcome_path,
    )
