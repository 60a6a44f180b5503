"""
Error taxonomy for BikeBuilders.

Store and export layers raise these exceptions. The remote sync layer
converts them into railway-style ``Failure`` results instead (see
``bikebuilders.infrastructure.results``).
"""

from __future__ import annotations


class BikeBuildersError(Exception):
    """Base class for all BikeBuilders errors."""


class ValidationError(BikeBuildersError):
    """A required field is missing or a value is out of range."""


class ConstraintViolation(BikeBuildersError):
    """A unique or foreign-key constraint would be violated."""


class Conflict(ConstraintViolation):
    """A row with the same natural key already exists."""


class NotFound(BikeBuildersError):
    """A referenced entity or remote file does not exist."""


class StoreUnavailable(BikeBuildersError):
    """The local store could not be opened or initialized. Fatal."""


class AuthError(BikeBuildersError):
    """Sign-in failed or the remote session expired."""


class NetworkError(BikeBuildersError):
    """Transport or HTTP failure talking to the remote store."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class FormatError(BikeBuildersError):
    """Snapshot content could not be parsed or has an unsupported version."""


class UserCancelled(BikeBuildersError):
    """The user dismissed a picker or share sheet. Not a failure."""
