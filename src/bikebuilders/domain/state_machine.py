"""
State machines for service jobs and remote sync sessions.

Architecture Note:
    - Pure domain logic - no I/O, no database calls
    - The repository and the sync orchestrator both consult this module
      instead of encoding transitions themselves
"""

from __future__ import annotations

from enum import Enum

from bikebuilders.domain.errors import ValidationError
from bikebuilders.domain.models import ServiceStatus


# =============================================================================
# Service lifecycle
# =============================================================================

_SERVICE_TRANSITIONS: dict[ServiceStatus, frozenset[ServiceStatus]] = {
    ServiceStatus.IN_PROGRESS: frozenset({ServiceStatus.IN_PROGRESS, ServiceStatus.COMPLETED}),
    ServiceStatus.COMPLETED: frozenset({ServiceStatus.COMPLETED}),
}


def is_service_transition_allowed(current: ServiceStatus, target: ServiceStatus) -> bool:
    """In Progress may stay or complete; Completed never goes back."""
    return target in _SERVICE_TRANSITIONS[current]


def ensure_service_transition(current: ServiceStatus, target: ServiceStatus) -> None:
    """Raise ValidationError for a backward status transition."""
    if not is_service_transition_allowed(current, target):
        raise ValidationError(
            f"Service status cannot change from '{current.value}' to '{target.value}'"
        )


# =============================================================================
# Remote sync session
# =============================================================================

class SessionState(Enum):
    """State of a remote storage session."""
    SIGNED_OUT = "signed_out"
    AUTHENTICATING = "authenticating"
    SIGNED_IN = "signed_in"  # idle
    SYNCING = "syncing"


class SessionEvent(Enum):
    """Events that move a session between states."""
    SIGN_IN_STARTED = "sign_in_started"
    SIGN_IN_SUCCEEDED = "sign_in_succeeded"
    SIGN_IN_FAILED = "sign_in_failed"
    SYNC_STARTED = "sync_started"
    SYNC_FINISHED = "sync_finished"
    SESSION_EXPIRED = "session_expired"
    SIGNED_OUT = "signed_out"


_SESSION_TRANSITIONS: dict[tuple[SessionState, SessionEvent], SessionState] = {
    (SessionState.SIGNED_OUT, SessionEvent.SIGN_IN_STARTED): SessionState.AUTHENTICATING,
    (SessionState.AUTHENTICATING, SessionEvent.SIGN_IN_SUCCEEDED): SessionState.SIGNED_IN,
    (SessionState.AUTHENTICATING, SessionEvent.SIGN_IN_FAILED): SessionState.SIGNED_OUT,
    (SessionState.SIGNED_IN, SessionEvent.SYNC_STARTED): SessionState.SYNCING,
    (SessionState.SYNCING, SessionEvent.SYNC_FINISHED): SessionState.SIGNED_IN,
    (SessionState.SIGNED_IN, SessionEvent.SESSION_EXPIRED): SessionState.SIGNED_OUT,
    (SessionState.SYNCING, SessionEvent.SESSION_EXPIRED): SessionState.SIGNED_OUT,
}


def next_session_state(state: SessionState, event: SessionEvent) -> SessionState:
    """
    Classify a session event.

    Sign-out is accepted from every state. Any other pair that is not in
    the transition table is a programming error.

    Raises:
        ValueError: If the event is not valid in the given state
    """
    if event is SessionEvent.SIGNED_OUT:
        return SessionState.SIGNED_OUT
    try:
        return _SESSION_TRANSITIONS[(state, event)]
    except KeyError:
        raise ValueError(
            f"Invalid session transition: {event.value} while {state.value}"
        ) from None
