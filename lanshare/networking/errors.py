"""
Exceptions raised by the networking layer.
"""

from typing import Optional


class LanShareError(Exception):
    """Base class for all lanshare errors."""


class BindError(LanShareError):
    """The file server could not bind its listening port."""

    def __init__(self, port: int, reason: Optional[BaseException] = None):
        self.port = port
        self.reason = reason
        message = f"Could not bind port {port}"
        if reason is not None:
            message += f": {reason}"
        super().__init__(message)


class SubnetDetectionError(LanShareError):
    """The local /24 subnet could not be determined."""


class ProtocolIOError(LanShareError):
    """A framed read or write failed on a single connection."""
