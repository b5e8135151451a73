"""
TCP file server that hands out files from a share directory.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional, Set, Union

from . import protocol
from .errors import BindError, ProtocolIOError
from .events import EventSink, ServerState

logger = logging.getLogger(__name__)


def resolve_shared_file(share_root: Path, filename: str) -> Optional[Path]:
    """Resolve a requested name to a regular file inside the share root.

    Args:
        share_root: The directory being shared
        filename: The name requested by the peer

    Returns:
        The resolved path, or None if the name is empty, escapes the share
        root, or does not name a regular file
    """
    if not filename:
        return None

    try:
        root = share_root.resolve()
        candidate = (root / filename).resolve()
        if candidate == root or root not in candidate.parents:
            return None
        if not candidate.is_file():
            return None
    except (OSError, ValueError) as e:
        # Names the filesystem cannot represent (NUL bytes, overlong components)
        logger.debug(f"Unusable file name {filename!r}: {e}")
        return None
    return candidate


class FileServer:
    """Serves one file per accepted connection from a share directory.

    The server moves through ``STOPPED -> STARTING -> RUNNING`` and ends in
    either ``STOPPED`` (after :meth:`stop`) or ``ERROR`` (bind failure or a
    fatal accept-loop error). An instance that reached ``ERROR`` cannot be
    started again.
    """

    def __init__(self, share_root: Union[str, Path], port: int = protocol.DEFAULT_PORT,
                 host: str = "0.0.0.0", events: Optional[EventSink] = None,
                 buffer_size: int = protocol.BUFFER_SIZE):
        """Initialize a new file server.

        Args:
            share_root: Directory whose regular files are served
            port: The port to listen on (0 picks an ephemeral port)
            host: The address to bind to
            events: Sink for log lines and status transitions
            buffer_size: Chunk size used when streaming files
        """
        self.share_root = Path(share_root)
        self.port = port
        self.host = host
        self.events = events or EventSink()
        self.buffer_size = buffer_size
        self.state = ServerState.STOPPED

        self._server: Optional[asyncio.AbstractServer] = None
        self._serve_task: Optional[asyncio.Task] = None
        self._handlers: Set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self.state is ServerState.RUNNING

    def _set_state(self, state: ServerState) -> None:
        self.state = state
        logger.debug(f"File server on port {self.port} is now {state.value}")
        self.events.server_status(state, self.port)

    async def start(self) -> "FileServer":
        """Bind the listening socket and start accepting connections.

        Returns:
            This server, now running

        Raises:
            BindError: If the port is already in use or cannot be bound
            RuntimeError: If the server was already started
        """
        if self.state is not ServerState.STOPPED or self._server is not None:
            raise RuntimeError(f"File server is {self.state.value}, cannot start it again")

        self._set_state(ServerState.STARTING)
        try:
            self._server = await asyncio.start_server(
                self._handle_connection, self.host, self.port
            )
        except OSError as e:
            self.events.log(f"[SERVER] Error starting server: {e}")
            self._set_state(ServerState.ERROR)
            raise BindError(self.port, e) from e

        # Port 0 asks the OS for an ephemeral port; report the real one
        self.port = self._server.sockets[0].getsockname()[1]
        self._set_state(ServerState.RUNNING)
        self._announce_shared_files()

        self._serve_task = asyncio.create_task(self._serve())
        logger.info(f"File server listening on {self.host}:{self.port}, sharing {self.share_root}")
        return self

    async def _serve(self) -> None:
        """Run the accept loop until cancelled."""
        try:
            await self._server.serve_forever()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Fatal error in accept loop on port {self.port}: {e}", exc_info=True)
            self.events.log(f"[SERVER] Server stopped after a fatal error: {e}")
            self._server.close()
            self._set_state(ServerState.ERROR)

    def _announce_shared_files(self) -> None:
        """Emit one log line per file currently in the share root."""
        self.events.log("[SERVER] Server started. Shared files:")
        try:
            names = sorted(p.name for p in self.share_root.iterdir())
        except OSError as e:
            self.events.log(f"[SERVER] Could not list shared files: {e}")
            return

        for name in names:
            self.events.log(f" - {name}")

    async def stop(self) -> None:
        """Stop accepting connections.

        Handlers that are already serving a file run to completion.
        """
        if self._server is None or self.state is not ServerState.RUNNING:
            return

        self._server.close()
        if self._serve_task:
            self._serve_task.cancel()
            await asyncio.gather(self._serve_task, return_exceptions=True)
            self._serve_task = None

        self._set_state(ServerState.STOPPED)
        logger.info(f"File server on port {self.port} stopped")

    async def wait_idle(self) -> None:
        """Wait for every in-flight connection handler to finish."""
        if self._handlers:
            await asyncio.gather(*self._handlers, return_exceptions=True)

    async def _handle_connection(self, reader: asyncio.StreamReader,
                                 writer: asyncio.StreamWriter) -> None:
        """Serve exactly one request on an accepted connection, then close it.

        Args:
            reader: Stream reader for the connection
            writer: Stream writer for the connection
        """
        task = asyncio.current_task()
        if task is not None:
            self._handlers.add(task)

        peer = writer.get_extra_info("peername")
        peer_host = peer[0] if peer else "unknown"
        logger.debug(f"Accepted connection from {peer}")

        try:
            filename = await protocol.read_string(reader)
            path = resolve_shared_file(self.share_root, filename)

            if path is None:
                await protocol.write_string(writer, protocol.ERROR)
                self.events.log(
                    f"[SERVER] Client {peer_host} requested a non-existent file: '{filename}'."
                )
                return

            await protocol.write_string(writer, protocol.OK)
            sent = await self._send_file(path, writer)
            self.events.log(f"[SERVER] File '{filename}' successfully sent to {peer_host}.")
            logger.debug(f"Sent {sent} bytes of {path} to {peer}")

        except (ProtocolIOError, ConnectionError, OSError) as e:
            self.events.log(f"[SERVER] Error during client communication with {peer_host}: {e}")
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except (ConnectionError, OSError) as e:
                logger.debug(f"Error closing connection with {peer}: {e}")
            if task is not None:
                self._handlers.discard(task)

    async def _send_file(self, path: Path, writer: asyncio.StreamWriter) -> int:
        """Stream a file's contents to the writer.

        Returns:
            The number of bytes sent
        """
        sent = 0
        with open(path, "rb") as f:
            while True:
                chunk = f.read(self.buffer_size)
                if not chunk:
                    break
                writer.write(chunk)
                await writer.drain()
                sent += len(chunk)
        return sent
