"""
Client side of the single-file transfer protocol.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from . import protocol
from .errors import ProtocolIOError
from .events import EventSink

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PeerAddress:
    """A remote file server, identified by host and port."""

    host: str
    port: int = protocol.DEFAULT_PORT

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class TransferRequest:
    peer: PeerAddress
    filename: str


class TransferOutcome:
    """Result of one download attempt."""

    succeeded = False


@dataclass(frozen=True)
class Success(TransferOutcome):
    bytes_written: int
    path: Optional[Path] = None

    succeeded = True


@dataclass(frozen=True)
class NotFound(TransferOutcome):
    """The peer answered ERROR: it has no such file."""


@dataclass(frozen=True)
class ConnectionFailed(TransferOutcome):
    reason: str


@dataclass(frozen=True)
class IOFailure(TransferOutcome):
    """The downloaded bytes could not be written locally.

    Anything already written stays on disk.
    """

    reason: str


def resolve_download_path(download_root: Path, filename: str) -> Optional[Path]:
    """Resolve where a download should be written.

    Returns:
        The destination path, or None if the name is empty, is not a
        usable path, or would land outside the download root
    """
    if not filename:
        return None

    try:
        root = download_root.resolve()
        destination = (root / filename).resolve()
    except (OSError, ValueError) as e:
        logger.debug(f"Unusable file name {filename!r}: {e}")
        return None
    if destination == root or root not in destination.parents:
        return None
    return destination


class Downloader:
    """Fetches single files from peers into a download directory."""

    def __init__(self, download_root: Union[str, Path], events: Optional[EventSink] = None,
                 buffer_size: int = protocol.BUFFER_SIZE,
                 connect_timeout: Optional[float] = None):
        """Initialize a new downloader.

        Args:
            download_root: Directory where downloaded files are written
            events: Sink for log lines
            buffer_size: Chunk size used when reading the payload
            connect_timeout: Seconds to wait for the connection; None leaves
                it to the operating system
        """
        self.download_root = Path(download_root)
        self.events = events or EventSink()
        self.buffer_size = buffer_size
        self.connect_timeout = connect_timeout

    async def download(self, peer: Union[PeerAddress, str], filename: str) -> TransferOutcome:
        """Download a file from a peer.

        Exactly one notification describing the outcome is sent to the
        event sink.

        Args:
            peer: The peer to download from; a bare host uses the default port
            filename: The name of the file on the peer

        Returns:
            The outcome of the transfer
        """
        if isinstance(peer, str):
            peer = PeerAddress(peer)

        request = TransferRequest(peer, filename)
        self.events.log(f"[CLIENT] Downloading '{filename}' from {peer.host}...")
        outcome = await self._transfer(request)
        self.events.log(self.describe(request, outcome))
        return outcome

    @staticmethod
    def describe(request: TransferRequest, outcome: TransferOutcome) -> str:
        """Render an outcome as a log line."""
        if isinstance(outcome, Success):
            return (f"[CLIENT] Download of '{request.filename}' successful "
                    f"({outcome.bytes_written} bytes).")
        if isinstance(outcome, NotFound):
            return "[CLIENT] Download failed: The file does not exist on the server."
        if isinstance(outcome, ConnectionFailed):
            return f"[CLIENT] Error during download: {outcome.reason}"
        if isinstance(outcome, IOFailure):
            return f"[CLIENT] Could not save '{request.filename}': {outcome.reason}"
        return f"[CLIENT] Download of '{request.filename}' ended with {outcome!r}"

    async def _transfer(self, request: TransferRequest) -> TransferOutcome:
        destination = resolve_download_path(self.download_root, request.filename)
        if destination is None:
            return IOFailure(f"cannot write {request.filename!r} inside {self.download_root}")

        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(request.peer.host, request.peer.port),
                timeout=self.connect_timeout,
            )
        except asyncio.TimeoutError:
            return ConnectionFailed(f"timed out connecting to {request.peer}")
        except OSError as e:
            return ConnectionFailed(str(e))

        try:
            try:
                await protocol.write_string(writer, request.filename)
                response = await protocol.read_string(reader)
            except (ProtocolIOError, ConnectionError, OSError) as e:
                return ConnectionFailed(str(e))

            if response == protocol.ERROR:
                return NotFound()
            if response != protocol.OK:
                return ConnectionFailed(f"unexpected response '{response}' from {request.peer}")

            return await self._receive(reader, destination)
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except (ConnectionError, OSError) as e:
                logger.debug(f"Error closing connection to {request.peer}: {e}")

    async def _receive(self, reader: asyncio.StreamReader, destination: Path) -> TransferOutcome:
        """Copy the payload into the destination until the peer closes."""
        written = 0
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            with open(destination, "wb") as f:
                while True:
                    try:
                        chunk = await reader.read(self.buffer_size)
                    except (ConnectionError, OSError) as e:
                        logger.warning(f"Connection lost after {written} bytes of {destination.name}")
                        return ConnectionFailed(f"connection lost during transfer: {e}")
                    if not chunk:
                        break
                    f.write(chunk)
                    written += len(chunk)
        except OSError as e:
            return IOFailure(str(e))

        logger.debug(f"Wrote {written} bytes to {destination}")
        return Success(written, destination)
