"""
Domain models for BikeBuilders.

This module contains the core business entities of the garage:
- Customers and the vehicles they own
- Service jobs with their payment state and line items (parts)
- The admin-managed price catalog
- The single garage profile

These models are pure data structures with no I/O dependencies.
They are serialized to/from SQLite via the infrastructure layer.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum


DEFAULT_REMINDER_DAYS = 90


# ============================================================================
# Enumerations
# ============================================================================

class PaymentStatus(Enum):
    """Payment state of a service job."""
    PENDING = "Pending"
    PARTIAL = "Partial"
    PAID = "Paid"


class ServiceStatus(Enum):
    """Lifecycle state of a service job."""
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"


# ============================================================================
# Core Domain Models
# ============================================================================

@dataclass
class Customer:
    """
    A vehicle owner.

    Attributes:
        id: Store-assigned identifier
        name: Owner name (required)
        phone: Unique phone number, None when not given
        address: Postal address
        email: Unique email, None when not given
    """
    id: int | None = None
    name: str = ""
    phone: str | None = None
    address: str | None = None
    email: str | None = None


@dataclass
class Vehicle:
    """
    A registered vehicle.

    The registration number is the natural key and is matched
    case-insensitively. Owner fields are filled in by joined reads.
    """
    reg_number: str = ""
    customer_id: int | None = None
    name: str | None = None
    last_service_date: str | None = None
    last_reading: int | None = None
    reminder_days: int = DEFAULT_REMINDER_DAYS
    owner_name: str | None = None
    owner_phone: str | None = None
    owner_address: str | None = None
    owner_email: str | None = None


@dataclass
class Service:
    """
    A service job for one vehicle.

    Attributes:
        id: Store-assigned identifier
        reg_number: Vehicle the work is done on
        sort_key: Monotonic creation key, used only for ordering
        reading: Odometer reading at intake
        total_amount: Quoted total
        paid_amount: Amount paid so far
        outstanding_balance: total_amount - paid_amount
        payment_status: Pending / Partial / Paid
        status: In Progress / Completed
        started_on: ISO timestamp when work began
        completed_on: ISO timestamp of completion (None while in progress)
        owner_name: Joined owner name for queue display
    """
    id: int | None = None
    reg_number: str = ""
    sort_key: int = 0
    reading: int | None = None
    total_amount: float = 0.0
    paid_amount: float = 0.0
    outstanding_balance: float = 0.0
    payment_status: PaymentStatus = PaymentStatus.PENDING
    status: ServiceStatus = ServiceStatus.IN_PROGRESS
    started_on: str | None = None
    completed_on: str | None = None
    owner_name: str | None = None

    @property
    def is_completed(self) -> bool:
        return self.status is ServiceStatus.COMPLETED


@dataclass
class ServicePart:
    """A line item of a service job. Immutable once created."""
    id: int | None = None
    service_id: int | None = None
    name: str = ""
    amount: float = 0.0


@dataclass
class CommonService:
    """Catalog entry used to pre-fill new service line items."""
    id: int | None = None
    name: str = ""
    default_amount: float = 0.0


@dataclass
class UserProfile:
    """The garage identity. Exactly one row exists."""
    name: str = ""
    email: str = ""
    phone_number: str = ""
    garage_name: str = ""
    address: str = ""


@dataclass
class ReminderCandidate:
    """A vehicle whose reminder interval has elapsed since its last service."""
    vehicle: Vehicle
    days_since_service: int


# ============================================================================
# Payment rules
# ============================================================================

def compute_payment(total_amount: float, paid_amount: float) -> tuple[float, PaymentStatus]:
    """
    Derive outstanding balance and payment status for a payment.

    Paid when nothing is outstanding, Partial when something but not
    everything has been paid, Pending otherwise.

    Returns:
        (outstanding_balance, payment_status)
    """
    balance = round(total_amount - paid_amount, 2)
    if balance <= 0:
        return balance, PaymentStatus.PAID
    if 0 < paid_amount < total_amount:
        return balance, PaymentStatus.PARTIAL
    return balance, PaymentStatus.PENDING


def days_between(start_iso: str, end: datetime) -> int:
    """Whole days from an ISO timestamp to ``end`` (naive values are UTC)."""
    start = datetime.fromisoformat(start_iso.replace("Z", "+00:00"))
    if start.tzinfo is None:
        start = start.replace(tzinfo=timezone.utc)
    if end.tzinfo is None:
        end = end.replace(tzinfo=timezone.utc)
    return (end - start).days


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()
