"""Filesystem-backed HTTP/1.0 server: GET, HEAD, DELETE, POST and PUT on files."""

import logging
import signal
import sys
from typing import Optional

from webserver.bootstrap.config import config_from_args, parse_cli_args
from webserver.bootstrap.logging_setup import configure_logging
from webserver.domain.connection_context import ConnectionLoggerAdapter
from webserver.lifecycle.state import ServerLifecycle
from webserver.transport.accept_loop import run_server

SERVER_LOGGER = ConnectionLoggerAdapter(logging.getLogger("webserver.server"), {})


def main(argv: Optional[list[str]] = None) -> None:
    """Start the server and serve connections sequentially until signalled."""
    args = parse_cli_args(sys.argv[1:] if argv is None else argv)
    configure_logging(
        args.log_level, args.log_destination, use_json=args.log_format == "json"
    )

    config = config_from_args(args)
    lifecycle = ServerLifecycle()

    def shutdown_handler(signum: int, _frame) -> None:
        SERVER_LOGGER.info(
            "Received shutdown signal", extra={"event": "signal", "signal": signum}
        )
        lifecycle.begin_shutdown()

    signal.signal(signal.SIGTERM, shutdown_handler)
    signal.signal(signal.SIGINT, shutdown_handler)

    SERVER_LOGGER.info(
        "Starting web server",
        extra={
            "event": "server_starting",
            "host": config.host,
            "port": config.port,
            "directory": config.directory,
            "read_timeout": config.read_timeout,
            "welcome_path": config.welcome_path,
            "log_destination": args.log_destination,
            "log_level": args.log_level,
            "log_format": args.log_format,
        },
    )
    run_server(config, lifecycle)


if __name__ == "__main__":
    main()
