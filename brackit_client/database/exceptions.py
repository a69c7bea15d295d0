"""Errors raised by the Brackit connection layer."""

from typing import Optional


class BrackitError(Exception):
    """Base class for all client errors.

    :param message: human readable description
    :param operation: the connection operation that failed, e.g. ``"query"``
    """

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.operation = operation

    def __str__(self) -> str:
        if self.operation:
            return f"{self.operation}: {self.message}"
        return self.message


class BrackitConnectionError(BrackitError):
    """The transport could not be established or was lost.

    A connection that raised this error is closed and must be reopened.
    """


class ProtocolError(BrackitConnectionError):
    """The server sent bytes that do not follow the response framing."""


class QueryError(BrackitError):
    """The server rejected or failed a statement.

    The connection stays usable after this error.
    """

    def __init__(self, message: str, operation: Optional[str] = None,
                 statement: Optional[str] = None):
        super().__init__(message, operation)
        self.statement = statement


class StateError(BrackitError):
    """The operation is not valid in the connection's current state."""
