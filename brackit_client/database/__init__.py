"""Connection to a Brackit server and its error types."""

from .connection import BrackitConnection, open_connection
from .exceptions import (
    BrackitConnectionError,
    BrackitError,
    ProtocolError,
    QueryError,
    StateError,
)
from .models import ConnectionState, QueryResult, TransactionState

__all__ = [
    "BrackitConnection",
    "open_connection",
    "BrackitError",
    "BrackitConnectionError",
    "ProtocolError",
    "QueryError",
    "StateError",
    "ConnectionState",
    "TransactionState",
    "QueryResult",
]
