"""
Domain layer package.

Contains pure data models, rules and state machines with no I/O dependencies.
Models are serialized to/from SQLite via the infrastructure layer.
"""

from bikebuilders.domain.models import (
    # Enums
    PaymentStatus,
    ServiceStatus,
    # Entities
    Customer,
    Vehicle,
    Service,
    ServicePart,
    CommonService,
    UserProfile,
    ReminderCandidate,
    # Rules
    compute_payment,
)

from bikebuilders.domain.errors import (
    BikeBuildersError,
    ValidationError,
    ConstraintViolation,
    Conflict,
    NotFound,
    StoreUnavailable,
    AuthError,
    NetworkError,
    FormatError,
    UserCancelled,
)

from bikebuilders.domain.state_machine import (
    SessionState,
    SessionEvent,
    next_session_state,
    ensure_service_transition,
)

__all__ = [
    "PaymentStatus",
    "ServiceStatus",
    "Customer",
    "Vehicle",
    "Service",
    "ServicePart",
    "CommonService",
    "UserProfile",
    "ReminderCandidate",
    "compute_payment",
    "BikeBuildersError",
    "ValidationError",
    "ConstraintViolation",
    "Conflict",
    "NotFound",
    "StoreUnavailable",
    "AuthError",
    "NetworkError",
    "FormatError",
    "UserCancelled",
    "SessionState",
    "SessionEvent",
    "next_session_state",
    "ensure_service_transition",
]
