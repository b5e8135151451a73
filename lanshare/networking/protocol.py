"""
Wire protocol for single-file transfers.

One connection carries exactly one transfer:

1. the client sends the requested filename as a length-prefixed string;
2. the server answers with the length-prefixed token ``OK`` or ``ERROR``;
3. after ``OK`` the raw file bytes follow until the server closes the
   connection. After ``ERROR`` nothing follows.

Strings are encoded as an unsigned 16-bit big-endian length followed by
that many bytes of UTF-8.
"""

import asyncio
import struct

from .errors import ProtocolIOError

DEFAULT_PORT = 7892
BUFFER_SIZE = 4096

OK = "OK"
ERROR = "ERROR"

_LENGTH = struct.Struct("!H")
MAX_STRING_LENGTH = 0xFFFF


def encode_string(value: str) -> bytes:
    """Encode a string as a length-prefixed UTF-8 frame.

    Args:
        value: The string to encode

    Returns:
        The frame bytes

    Raises:
        ProtocolIOError: If the encoded string does not fit the length prefix
    """
    data = value.encode("utf-8")
    if len(data) > MAX_STRING_LENGTH:
        raise ProtocolIOError(
            f"String of {len(data)} bytes exceeds the {MAX_STRING_LENGTH} byte limit"
        )
    return _LENGTH.pack(len(data)) + data


async def write_string(writer: asyncio.StreamWriter, value: str) -> None:
    """Write a length-prefixed string and flush it."""
    writer.write(encode_string(value))
    await writer.drain()


async def read_string(reader: asyncio.StreamReader) -> str:
    """Read one length-prefixed UTF-8 string.

    Args:
        reader: The stream to read from

    Returns:
        The decoded string

    Raises:
        ProtocolIOError: If the stream ends early or the payload is not UTF-8
    """
    try:
        header = await reader.readexactly(_LENGTH.size)
        (length,) = _LENGTH.unpack(header)
        data = await reader.readexactly(length)
    except asyncio.IncompleteReadError as e:
        raise ProtocolIOError(
            f"Connection closed after {len(e.partial)} of {e.expected} bytes"
        ) from e

    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ProtocolIOError(f"Invalid UTF-8 in string frame: {e}") from e
