"""Connection to a remote Brackit query server."""

import codecs
import io
import logging
import socket
import threading
from contextlib import contextmanager
from typing import Any, Iterator, Optional, Union

from ..config.settings import Settings, get_settings
from .exceptions import BrackitConnectionError, ProtocolError, QueryError, StateError
from .models import ConnectionState, TransactionState
from .protocol import DEFAULT_CHUNK_SIZE, TERMINATOR, FrameReader, Opcode, encode_request

logger = logging.getLogger(__name__)

Statement = Union[str, bytes]


def _is_binary_sink(sink: Any) -> bool:
    if isinstance(sink, io.TextIOBase):
        return False
    if isinstance(sink, (io.RawIOBase, io.BufferedIOBase)):
        return True
    return "b" in getattr(sink, "mode", "")


class _SinkWriter:
    """Feeds result chunks to a caller's sink.

    Text sinks get incrementally decoded ``str``; binary sinks get the raw
    bytes. A failing sink must not leave the response half read, so its
    error is held back until the response has been drained.
    """

    def __init__(self, sink: Any, encoding: str):
        self._sink = sink
        self._decoder = None
        if sink is not None and not _is_binary_sink(sink):
            self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self.error: Optional[BaseException] = None

    def __call__(self, chunk: bytes) -> None:
        if self._sink is None or self.error is not None:
            return
        try:
            if self._decoder is None:
                self._sink.write(chunk)
            else:
                text = self._decoder.decode(chunk)
                if text:
                    self._sink.write(text)
        except Exception as e:
            self.error = e

    def finish(self) -> None:
        if self._sink is None or self.error is not None:
            return
        try:
            if self._decoder is not None:
                tail = self._decoder.decode(b"", final=True)
                if tail:
                    self._sink.write(tail)
            if hasattr(self._sink, "flush"):
                self._sink.flush()
        except Exception as e:
            self.error = e


class BrackitConnection:
    """A single session with a Brackit server.

    The connection owns its socket exclusively. Use it as a context manager
    so the socket is released on every exit path::

        with BrackitConnection("localhost", 11011) as con:
            con.query("1+1", sys.stdout)

    Only one request may be in flight at a time. Statements run in
    auto-commit mode unless a transaction was started with :meth:`begin`.

    :param host: server host name or address
    :param port: server port
    :param timeout: seconds to wait for connect and each socket read;
                    ``None`` blocks indefinitely
    :param encoding: encoding of statements and of text sink output
    :param chunk_size: maximum bytes read from the socket at once
    :raises BrackitConnectionError: if the server cannot be reached
    """

    def __init__(self, host: str, port: int, timeout: Optional[float] = None,
                 encoding: str = "utf-8", chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.encoding = encoding
        self._state = ConnectionState.CLOSED
        self._transaction_state = TransactionState.NONE
        self._lock = threading.Lock()

        try:
            self._sock = socket.create_connection((host, port), timeout=timeout)
        except OSError as e:
            logger.error(f"Failed to connect to {host}:{port}: {e}")
            raise BrackitConnectionError(
                f"cannot connect to {host}:{port}: {e}", operation="open"
            ) from e

        self._reader = FrameReader(self._sock, chunk_size)
        self._state = ConnectionState.OPEN
        logger.info(f"Connected to Brackit server at {host}:{port}")

    @classmethod
    def open(cls, host: str, port: int, **kwargs) -> "BrackitConnection":
        """Open a connection; equivalent to calling the constructor."""
        return cls(host, port, **kwargs)

    def __enter__(self) -> "BrackitConnection":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def __repr__(self) -> str:
        return (f"<BrackitConnection {self.host}:{self.port} "
                f"{self._state.value} tx={self._transaction_state.value}>")

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def transaction_state(self) -> TransactionState:
        return self._transaction_state

    @property
    def closed(self) -> bool:
        return self._state is ConnectionState.CLOSED

    @property
    def in_transaction(self) -> bool:
        return self._transaction_state is TransactionState.ACTIVE

    def _ensure_open(self, operation: str) -> None:
        if self.closed:
            raise StateError("connection is closed", operation)

    @contextmanager
    def _exchange(self, operation: str) -> Iterator[None]:
        """Hold the connection for one request/response round trip.

        Any transport failure inside the block closes the connection, since
        the position in the response stream is lost.
        """
        self._ensure_open(operation)
        if not self._lock.acquire(blocking=False):
            raise StateError("another request is in progress on this connection", operation)
        try:
            yield
        except BrackitConnectionError as e:
            logger.error(f"Protocol failure during {operation} on {self.host}:{self.port}: {e}")
            self._release()
            raise
        except OSError as e:
            logger.error(f"Transport failure during {operation} on {self.host}:{self.port}: {e}")
            self._release()
            raise BrackitConnectionError(f"connection lost: {e}", operation) from e
        finally:
            self._lock.release()

    def _encode_statement(self, statement: Statement) -> bytes:
        if isinstance(statement, str):
            payload = statement.encode(self.encoding)
        else:
            payload = bytes(statement)
        if not payload:
            raise ValueError("statement must not be empty")
        if TERMINATOR in payload:
            raise ValueError("statement must not contain a NUL byte")
        return payload

    def _round_trip(self, opcode: Opcode, payload: bytes, writer, operation: str) -> Optional[str]:
        with self._exchange(operation):
            self._sock.sendall(encode_request(opcode, payload))
            error = self._reader.read_response(writer)
            # nothing else is in flight, so leftover input means the stream is out of step
            if self._reader.has_pending:
                raise ProtocolError("unexpected bytes after response", operation)
        if error is None:
            return None
        return error.decode(self.encoding, errors="replace")

    def query(self, statement: Statement, sink: Any = None) -> None:
        """Execute a statement and stream its result into ``sink``.

        :param statement: query text; ``bytes`` are sent unmodified
        :param sink: object with a ``write`` method. Binary streams receive
                     raw bytes, anything else receives decoded text.
                     ``None`` discards the output.
        :raises StateError: if the connection is closed or busy
        :raises QueryError: if the server rejects or fails the statement
        :raises BrackitConnectionError: if the transport fails; the
                                        connection is closed afterwards
        """
        self._ensure_open("query")
        payload = self._encode_statement(statement)
        writer = _SinkWriter(sink, self.encoding)

        logger.debug(f"Sending query ({len(payload)} bytes) to {self.host}:{self.port}")
        error = self._round_trip(Opcode.QUERY, payload, writer, "query")
        writer.finish()

        if writer.error is not None:
            raise writer.error
        if error is not None:
            text = statement if isinstance(statement, str) else payload.decode(self.encoding, errors="replace")
            logger.info(f"Query rejected by server: {error}")
            raise QueryError(error, "query", statement=text)

    def _control(self, opcode: Opcode, operation: str) -> None:
        error = self._round_trip(opcode, b"", _SinkWriter(None, self.encoding), operation)
        if error is not None:
            raise QueryError(error, operation)

    def begin(self) -> None:
        """Start an explicit transaction, disabling auto-commit.

        :raises StateError: if a transaction is already active
        """
        self._ensure_open("begin")
        if self.in_transaction:
            raise StateError("a transaction is already active", "begin")
        self._control(Opcode.BEGIN, "begin")
        self._transaction_state = TransactionState.ACTIVE
        logger.debug("Transaction started")

    def commit(self) -> None:
        """Make the active transaction's changes durable.

        :raises StateError: if no transaction is active
        """
        self._end_transaction(Opcode.COMMIT, "commit")

    def rollback(self) -> None:
        """Discard the active transaction's changes.

        :raises StateError: if no transaction is active
        """
        self._end_transaction(Opcode.ROLLBACK, "rollback")

    def _end_transaction(self, opcode: Opcode, operation: str) -> None:
        self._ensure_open(operation)
        if not self.in_transaction:
            raise StateError("no transaction is active", operation)
        try:
            self._control(opcode, operation)
        finally:
            # the server ends the transaction whether or not it succeeded
            self._transaction_state = TransactionState.NONE
        logger.debug(f"Transaction ended by {operation}")

    def _release(self) -> None:
        try:
            self._sock.close()
        finally:
            self._state = ConnectionState.CLOSED
            self._transaction_state = TransactionState.NONE

    def close(self) -> None:
        """Release the socket. Calling close again does nothing."""
        if self.closed:
            return
        if self.in_transaction:
            logger.warning(f"Closing connection to {self.host}:{self.port} with an active transaction")
        self._release()
        logger.info(f"Closed connection to {self.host}:{self.port}")


@contextmanager
def open_connection(settings: Optional[Settings] = None, **overrides) -> Iterator[BrackitConnection]:
    """Open a connection configured from settings and close it on exit.

    Keyword arguments override the matching :class:`BrackitConnection`
    parameters; ``None`` values are ignored.
    """
    settings = settings or get_settings()
    params = {
        "host": settings.brackit_host,
        "port": settings.brackit_port,
        "timeout": settings.brackit_timeout,
        "encoding": settings.brackit_encoding,
        "chunk_size": settings.brackit_chunk_size,
    }
    params.update({key: value for key, value in overrides.items() if value is not None})

    connection = BrackitConnection(**params)
    try:
        yield connection
    finally:
        connection.close()
