"""
Railway-oriented result types for remote sync operations.
Following Railway programming patterns with Success/Failure variants.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

T = TypeVar('T')
E = TypeVar('E')


@dataclass(frozen=True)
class Success(Generic[T]):
    """Successful operation result."""
    value: T
    metadata: dict[str, Any] | None = None
    timestamp: Optional[datetime] = None

    def __post_init__(self):
        if self.timestamp is None:
            object.__setattr__(self, 'timestamp', datetime.now())

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure(Generic[E]):
    """Failed operation result."""
    error: E
    context: dict[str, Any] | None = None
    recoverable: bool = False
    timestamp: Optional[datetime] = None

    def __post_init__(self):
        if self.timestamp is None:
            object.__setattr__(self, 'timestamp', datetime.now())

    @property
    def ok(self) -> bool:
        return False


# Type alias for Railway Result
Result = Success[T] | Failure[E]


class SyncErrorKind(Enum):
    """Why a sync operation did not happen or did not succeed."""
    DISABLED = "disabled"      # auto-sync switched off
    AUTH = "auth"              # not signed in, sign-in failed, session expired
    NETWORK = "network"        # transport or HTTP failure
    NOT_FOUND = "not_found"    # no backup document in the remote folder
    FORMAT = "format"          # backup content unreadable
    BUSY = "busy"              # another upload/download is in flight
    STORE = "store"            # local store failed during capture/restore


@dataclass(frozen=True)
class SyncFailure:
    """Result of a failed or skipped sync operation."""
    kind: SyncErrorKind
    message: str

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


# Type aliases for common sync results
SyncResult = Result[Any, SyncFailure]
