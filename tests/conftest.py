"""
Shared fixtures for the lanshare test suite.
"""

import socket
import threading
from pathlib import Path
from typing import List, Tuple

import pytest

from lanshare.networking import EventSink, FileServer, ServerState


class RecordingEventSink(EventSink):
    """Event sink that remembers everything it is told."""

    def __init__(self):
        self.lock = threading.Lock()
        self.logs: List[str] = []
        self.statuses: List[Tuple[ServerState, int]] = []
        self.hosts: List[str] = []

    def log(self, text: str) -> None:
        with self.lock:
            self.logs.append(text)

    def server_status(self, state: ServerState, port: int) -> None:
        with self.lock:
            self.statuses.append((state, port))

    def host_discovered(self, host: str) -> None:
        with self.lock:
            self.hosts.append(host)

    @property
    def states(self) -> List[ServerState]:
        return [state for state, _ in self.statuses]


@pytest.fixture
def events():
    return RecordingEventSink()


@pytest.fixture
def share_root(tmp_path) -> Path:
    root = tmp_path / "shared_files"
    root.mkdir()
    (root / "notes.txt").write_bytes(b"hello world!")
    return root


@pytest.fixture
def download_root(tmp_path) -> Path:
    root = tmp_path / "downloads"
    root.mkdir()
    return root


@pytest.fixture
def free_port() -> int:
    """A TCP port on 127.0.0.1 that nothing is listening on."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def make_server(share_root, events):
    """Factory for file servers bound to an ephemeral loopback port."""

    def factory(root=None, port=0, host="127.0.0.1", sink=None):
        return FileServer(root or share_root, port=port, host=host, events=sink or events)

    return factory


@pytest.fixture
def make_events():
    return RecordingEventSink
