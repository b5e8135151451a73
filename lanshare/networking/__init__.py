"""
Networking layer for LAN file sharing.

This package provides the single-file wire protocol, the file server,
the subnet scanner used to find peers, and the downloader.
"""

from .errors import LanShareError, BindError, SubnetDetectionError, ProtocolIOError
from .events import EventSink, LoggingEventSink, ServerState
from .file_server import FileServer
from .scanner import PeerScanner, HostInventory
from .downloader import (
    Downloader, PeerAddress, TransferRequest, TransferOutcome,
    Success, NotFound, ConnectionFailed, IOFailure
)

__all__ = [
    'LanShareError', 'BindError', 'SubnetDetectionError', 'ProtocolIOError',
    'EventSink', 'LoggingEventSink', 'ServerState',
    'FileServer', 'PeerScanner', 'HostInventory',
    'Downloader', 'PeerAddress', 'TransferRequest', 'TransferOutcome',
    'Success', 'NotFound', 'ConnectionFailed', 'IOFailure',
]
