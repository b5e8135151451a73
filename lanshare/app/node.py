"""
Sharing node: the entry points a front-end drives.
"""

import asyncio
import logging
from typing import Awaitable, Optional, Set

from ..networking import (
    BindError, Downloader, EventSink, FileServer, HostInventory, LoggingEventSink,
    PeerAddress, PeerScanner, ServerState, TransferOutcome
)
from ..utils.settings import Settings

logger = logging.getLogger(__name__)


class SharingNode:
    """Runs the file server, subnet scans and downloads for one front-end.

    Every operation is launched as a task on the running event loop and
    returns immediately. Results reach the front-end through the event
    sink.
    """

    def __init__(self, settings: Optional[Settings] = None, events: Optional[EventSink] = None):
        """Initialize a new sharing node.

        Args:
            settings: Application settings; defaults are used if None
            events: Sink for log lines, status changes and discovered hosts
        """
        self.settings = settings or Settings()
        self.events = events or LoggingEventSink()
        self.server: Optional[FileServer] = None
        self.inventory: Optional[HostInventory] = None
        self.scan_task: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()

    def _spawn(self, coro: Awaitable, name: str) -> asyncio.Task:
        """Run a coroutine in the background and keep a reference to it."""
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Task {task.get_name()} failed: {exc}", exc_info=exc)

    @property
    def server_running(self) -> bool:
        return self.server is not None and self.server.state in (ServerState.STARTING, ServerState.RUNNING)

    def start_server(self) -> Optional[asyncio.Task]:
        """Start serving the share directory.

        Returns:
            The task starting the server, or None if it is already running
        """
        if self.server_running:
            self.events.log(f"[SERVER] Server is already running on port {self.server.port}.")
            return None

        self.server = FileServer(
            self.settings.share_root,
            port=self.settings.port,
            host=self.settings.host,
            events=self.events,
            buffer_size=self.settings.buffer_size,
        )
        return self._spawn(self._start_server(self.server), "start-server")

    async def _start_server(self, server: FileServer) -> None:
        try:
            await server.start()
        except BindError as e:
            # Already reported to the sink by the server
            logger.warning(f"File server did not start: {e}")

    async def stop_server(self) -> None:
        if self.server is not None:
            await self.server.stop()

    def scan_subnet(self) -> HostInventory:
        """Start a new subnet scan.

        The previous inventory is discarded.

        Returns:
            The live inventory, filled in as probes succeed
        """
        scanner = PeerScanner(
            port=self.settings.port,
            events=self.events,
            timeout=self.settings.probe_timeout,
            subnet=self.settings.subnet,
            probe_host=self.settings.probe_host,
            probe_port=self.settings.probe_port,
        )
        self.inventory = HostInventory(self.settings.port)
        self.scan_task = self._spawn(scanner.scan(self.inventory), "scan")
        return self.inventory

    def download(self, host: str, filename: str) -> Optional["asyncio.Task[TransferOutcome]"]:
        """Start downloading a file from a peer.

        Args:
            host: The peer's IP address or host name
            filename: The name of the file on the peer

        Returns:
            The task performing the download, or None if the input was
            incomplete
        """
        host = host.strip()
        if not host or not filename:
            self.events.log("Error: IP address and filename must be filled out.")
            return None

        downloader = Downloader(
            self.settings.download_root,
            events=self.events,
            buffer_size=self.settings.buffer_size,
            connect_timeout=self.settings.connect_timeout,
        )
        peer = PeerAddress(host, self.settings.port)
        return self._spawn(downloader.download(peer, filename), f"download-{filename}")

    async def shutdown(self) -> None:
        """Stop the server and cancel any outstanding work."""
        await self.stop_server()

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        logger.info("Sharing node shut down")
