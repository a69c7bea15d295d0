"""Request and response framing for the Brackit server protocol.

Every request is a single opcode byte, the payload and a NUL terminator.
The server answers with the result bytes terminated by NUL, followed by a
status byte. An error status is followed by a NUL terminated diagnostic.
XML output never contains a NUL character, so the terminator is unambiguous.
"""

import logging
from enum import IntEnum
from typing import Callable, Optional

from .exceptions import ProtocolError

logger = logging.getLogger(__name__)

TERMINATOR = b"\x00"
DEFAULT_CHUNK_SIZE = 8192


class Opcode(IntEnum):
    """First byte of every request."""

    QUERY = 0x01
    BEGIN = 0x02
    COMMIT = 0x03
    ROLLBACK = 0x04


class Status(IntEnum):
    """Byte following the result stream of every response."""

    SUCCESS = 0x00
    ERROR = 0x01


def encode_request(opcode: Opcode, payload: bytes = b"") -> bytes:
    """Frame a request for the wire.

    :raises ValueError: if ``payload`` contains the terminator byte
    """
    if TERMINATOR in payload:
        raise ValueError("payload must not contain a NUL byte")
    return bytes([opcode]) + payload + TERMINATOR


class FrameReader:
    """Reads responses from a connected socket.

    Bytes received past the end of one frame are kept for the next read, so a
    single reader must be used for the whole lifetime of the socket.
    """

    def __init__(self, sock, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self._sock = sock
        self._chunk_size = chunk_size
        self._pending = bytearray()

    def _fill(self) -> None:
        data = self._sock.recv(self._chunk_size)
        if not data:
            raise ConnectionResetError("server closed the connection")
        self._pending.extend(data)

    def stream_until_terminator(self, consumer: Callable[[bytes], None]) -> int:
        """Pass bytes to ``consumer`` as they arrive until the terminator.

        :returns: number of bytes handed to ``consumer``
        """
        total = 0
        while True:
            if not self._pending:
                self._fill()

            index = self._pending.find(TERMINATOR)
            if index < 0:
                chunk = bytes(self._pending)
                self._pending.clear()
            else:
                chunk = bytes(self._pending[:index])
                del self._pending[:index + 1]

            if chunk:
                consumer(chunk)
                total += len(chunk)

            if index >= 0:
                return total

    def read_until_terminator(self) -> bytes:
        """Read one complete NUL terminated field."""
        parts = []
        self.stream_until_terminator(parts.append)
        return b"".join(parts)

    def read_byte(self) -> int:
        if not self._pending:
            self._fill()
        value = self._pending[0]
        del self._pending[:1]
        return value

    def read_response(self, consumer: Callable[[bytes], None]) -> Optional[bytes]:
        """Stream one response's result into ``consumer``.

        :returns: ``None`` on success, the raw diagnostic on a server error
        :raises ProtocolError: if the status byte is not recognised
        """
        size = self.stream_until_terminator(consumer)
        status = self.read_byte()

        if status == Status.SUCCESS:
            logger.debug(f"Response complete ({size} bytes)")
            return None
        if status == Status.ERROR:
            return self.read_until_terminator()

        raise ProtocolError(f"unexpected status byte 0x{status:02x}")

    @property
    def has_pending(self) -> bool:
        """True if bytes past the last response are buffered."""
        return bool(self._pending)
