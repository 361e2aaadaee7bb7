"""Content-Length framing used on a language server's stdio.

Wire format (one message):

    Content-Length: <n>\\r\\n
    [Other-Header: value\\r\\n]*
    \\r\\n
    <n bytes of UTF-8 JSON>

Only the framing is understood here; bodies are relayed verbatim.
"""

import asyncio
import logging

from ..exception import ChannelIOError, ProtocolError

logger = logging.getLogger(__name__)

HEADER_TERMINATOR = b"\r\n\r\n"
CONTENT_LENGTH = "content-length:"


def encode_message(body) -> bytes:
    """Frame a JSON-RPC body for a language server's stdin.

    The declared length is the UTF-8 byte length of the body, not its
    character count.
    """
    if isinstance(body, str):
        body = body.encode("utf-8")
    header = f"Content-Length: {len(body)}\r\n\r\n".encode("ascii")
    return header + body


def parse_content_length(header: bytes) -> int:
    """Extract the Content-Length value from a raw header block.

    Raises:
        ProtocolError: Missing, zero or unparseable length
    """
    text = header.decode("ascii", errors="replace")
    length = None
    for line in text.split("\r\n"):
        if line.lower().startswith(CONTENT_LENGTH):
            value = line[len(CONTENT_LENGTH):].strip()
            try:
                length = int(value)
            except ValueError:
                raise ProtocolError(f"Unparseable Content-Length: {value!r}")

    if length is None:
        raise ProtocolError("Missing Content-Length header")
    if length <= 0:
        raise ProtocolError(f"Invalid Content-Length: {length}")
    return length


async def read_header(reader: asyncio.StreamReader) -> bytes:
    """Read header bytes up to and including the blank line.

    Raises:
        ChannelIOError: Stream ended before a complete header
        ProtocolError: Header larger than the reader's buffer limit
    """
    try:
        return await reader.readuntil(HEADER_TERMINATOR)
    except asyncio.IncompleteReadError as e:
        raise ChannelIOError(f"Stream closed while reading header ({len(e.partial)} bytes pending)")
    except asyncio.LimitOverrunError as e:
        # Drop what was scanned so the next read starts past it
        await reader.readexactly(e.consumed)
        raise ProtocolError(f"Header exceeds buffer limit ({e.consumed} bytes)")


async def read_body(reader: asyncio.StreamReader, length: int) -> str:
    """Read exactly ``length`` body bytes and decode them as UTF-8.

    Raises:
        ChannelIOError: Stream ended before the body was complete
        ProtocolError: Body is not valid UTF-8
    """
    try:
        data = await reader.readexactly(length)
    except asyncio.IncompleteReadError as e:
        raise ChannelIOError(
            f"Stream closed while reading body ({len(e.partial)}/{length} bytes)"
        )

    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ProtocolError(f"Body is not valid UTF-8: {e}")


async def read_message(reader: asyncio.StreamReader) -> str:
    """Read one framed message and return its body."""
    header = await read_header(reader)
    length = parse_content_length(header)
    return await read_body(reader, length)
