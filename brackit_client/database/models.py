"""Connection states and result data structures."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class ConnectionState(str, Enum):
    """Lifecycle of a connection. ``CLOSED`` is terminal."""

    OPEN = "open"
    CLOSED = "closed"


class TransactionState(str, Enum):
    """Whether an explicit transaction is running on a connection."""

    NONE = "none"
    ACTIVE = "active"


@dataclass
class QueryResult:
    """Represents the collected output of one statement."""

    statement: str
    output: str
    execution_time: float
    timestamp: datetime
    error: Optional[str] = None

    @property
    def is_success(self) -> bool:
        """Check if the statement was executed successfully."""
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        """Convert the result to a dictionary."""
        return {
            "statement": self.statement,
            "output": self.output,
            "execution_time": self.execution_time,
            "timestamp": self.timestamp.isoformat(),
            "error": self.error,
            "success": self.is_success
        }
