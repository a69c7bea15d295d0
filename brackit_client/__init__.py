"""Client for Brackit XML query servers."""

__version__ = "0.1.0"

from .database import (  # noqa: E402
    BrackitConnection,
    BrackitConnectionError,
    BrackitError,
    QueryError,
    StateError,
    open_connection,
)

__all__ = [
    "__version__",
    "BrackitConnection",
    "open_connection",
    "BrackitError",
    "BrackitConnectionError",
    "QueryError",
    "StateError",
]
