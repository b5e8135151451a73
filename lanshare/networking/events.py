"""
Notifications emitted by the networking layer.

The server, scanner and downloader never talk to a user interface
directly. They are handed an ``EventSink`` and report log lines, server
state transitions and discovered hosts to it. Sinks may be called from
any task or thread.
"""

import enum
import logging


class ServerState(enum.Enum):
    """Lifecycle states of a FileServer."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    ERROR = "error"


class EventSink:
    """Receiver for notifications from the networking layer.

    The base implementation ignores everything; subclasses override the
    notifications they care about.
    """

    def log(self, text: str) -> None:
        """Record a human-readable log line."""

    def server_status(self, state: ServerState, port: int) -> None:
        """Record a server state transition.

        Args:
            state: The new state
            port: The port the server is (or was trying to be) bound to
        """

    def host_discovered(self, host: str) -> None:
        """Record a peer found by a subnet scan."""


class LoggingEventSink(EventSink):
    """Event sink that forwards every notification to ``logging``."""

    def __init__(self, name: str = "lanshare.events"):
        self._logger = logging.getLogger(name)

    def log(self, text: str) -> None:
        self._logger.info(text)

    def server_status(self, state: ServerState, port: int) -> None:
        self._logger.info(f"Server status: {state.value} (port {port})")

    def host_discovered(self, host: str) -> None:
        self._logger.info(f"Host discovered: {host}")
