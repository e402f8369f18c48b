"""Server lifecycle state management."""

import logging
import threading

from webserver.domain.connection_context import ConnectionLoggerAdapter

LIFECYCLE_LOGGER = ConnectionLoggerAdapter(
    logging.getLogger("webserver.lifecycle"), {}
)


class ServerLifecycle:
    """Tracks whether the accept loop has been asked to stop."""

    def __init__(self) -> None:
        self._stop_event = threading.Event()

    def should_stop(self) -> bool:
        """Check if the server should stop accepting new connections."""
        return self._stop_event.is_set()

    def begin_shutdown(self) -> None:
        """Ask the accept loop to exit once the current connection is done."""
        if not self._stop_event.is_set():
            LIFECYCLE_LOGGER.info(
                "Beginning shutdown", extra={"event": "shutdown_requested"}
            )
        self._stop_event.set()
