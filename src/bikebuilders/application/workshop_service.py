"""
Workshop workflows.

The operations the front desk performs, composed from repository calls:
registering a vehicle, opening a job from catalog items, taking payment,
closing the job, and the read views over the results.

Every mutation calls the optional ``on_change`` hook afterwards (the
container wires it to background auto-sync). A failing hook is logged and
never fails the mutation.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from bikebuilders.domain.errors import NotFound
from bikebuilders.domain.models import (
    DEFAULT_REMINDER_DAYS,
    CommonService,
    ReminderCandidate,
    Service,
    ServiceStatus,
    UserProfile,
    Vehicle,
    compute_payment,
    utc_now_iso,
)
from bikebuilders.infrastructure.sqlite.repository import GarageRepository

logger = logging.getLogger(__name__)

LineItem = tuple[str, float]


class WorkshopService:
    """Front-desk workflows over the garage repository."""

    def __init__(
        self,
        repository: GarageRepository,
        on_change: Optional[Callable[[], object]] = None,
    ):
        self.repository = repository
        self.on_change = on_change

    def _notify(self) -> None:
        if self.on_change is None:
            return
        try:
            self.on_change()
        except Exception:
            logger.exception("Change hook failed")

    # ========================================================================
    # Mutations
    # ========================================================================

    def register_vehicle(
        self,
        reg_number: str,
        owner_name: str,
        vehicle_name: str | None = None,
        phone: str | None = None,
        address: str | None = None,
        email: str | None = None,
        reminder_days: int = DEFAULT_REMINDER_DAYS,
    ) -> Vehicle:
        """Create the owner and the vehicle together, or neither."""
        repo = self.repository
        with repo.store.transaction():
            customer_id = repo.create_customer(owner_name, phone, address, email)
            repo.create_vehicle(reg_number, customer_id, vehicle_name, reminder_days)
        logger.info("Registered %s for %s", reg_number, owner_name)
        self._notify()
        return repo.find_vehicle(reg_number)

    def catalog_line_items(self, names: Iterable[str]) -> list[LineItem]:
        """
        Resolve catalog entries to (name, default amount) line items.

        Raises:
            NotFound: If a name is not in the catalog
        """
        items = []
        for name in names:
            entry = self.repository.get_common_service_by_name(name)
            if entry is None:
                raise NotFound(f"'{name}' is not in the price catalog")
            items.append((entry.name, entry.default_amount))
        return items

    def start_service(
        self,
        reg_number: str,
        reading: int | None,
        line_items: Iterable[LineItem],
        started_at: str | None = None,
    ) -> int:
        """Open a job whose total is the sum of its line items."""
        items = list(line_items)
        total = round(sum(amount for _, amount in items), 2)
        repo = self.repository
        with repo.store.transaction():
            service_id = repo.create_service(
                reg_number, reading, total, started_at or utc_now_iso()
            )
            for name, amount in items:
                repo.add_service_part(service_id, name, amount)
        logger.info("Started service %d for %s (total %.2f)", service_id, reg_number, total)
        self._notify()
        return service_id

    def record_payment(self, service_id: int, paid_amount: float) -> Service:
        """Set the amount paid so far and derive balance and payment status."""
        service = self._require_service(service_id)
        balance, payment_status = compute_payment(service.total_amount, paid_amount)
        self.repository.update_service_payment(
            service_id,
            paid_amount=paid_amount,
            status=service.status,
            completed_at=service.completed_on,
            balance=balance,
            payment_status=payment_status,
        )
        self._notify()
        return self.repository.get_service(service_id)

    def complete_service(self, service_id: int, completed_at: str | None = None) -> Service:
        """
        Close a job and stamp the vehicle with its date and reading.

        Completing an already completed job changes nothing.
        """
        service = self._require_service(service_id)
        if service.is_completed:
            return service

        completed_at = completed_at or utc_now_iso()
        repo = self.repository
        with repo.store.transaction():
            repo.update_service_payment(
                service_id,
                paid_amount=service.paid_amount,
                status=ServiceStatus.COMPLETED,
                completed_at=completed_at,
                balance=service.outstanding_balance,
                payment_status=service.payment_status,
            )
            vehicle = repo.find_vehicle(service.reg_number)
            if vehicle is None:
                raise NotFound(f"Vehicle {service.reg_number} not found")
            repo.update_vehicle(
                vehicle.reg_number,
                vehicle.customer_id,
                vehicle.name,
                completed_at,
                service.reading if service.reading is not None else vehicle.last_reading,
            )
        logger.info("Completed service %d for %s", service_id, service.reg_number)
        self._notify()
        return repo.get_service(service_id)

    def set_catalog_price(self, name: str, default_amount: float) -> int:
        service_id = self.repository.upsert_common_service(name, default_amount)
        self._notify()
        return service_id

    def remove_catalog_entry(self, service_id: int) -> None:
        self.repository.delete_common_service(service_id)
        self._notify()

    def update_profile(self, profile: UserProfile) -> None:
        self.repository.update_user_profile(profile)
        self._notify()

    # ========================================================================
    # Views
    # ========================================================================

    def service_history(self, reg_number: str) -> list[Service]:
        return self.repository.list_services_for_vehicle(reg_number)

    def in_progress_queue(self) -> list[Service]:
        return self.repository.list_in_progress_services()

    def price_catalog(self) -> list[CommonService]:
        return self.repository.list_common_services()

    def due_reminders(self, as_of: datetime | None = None) -> list[ReminderCandidate]:
        return self.repository.list_vehicles_due_for_reminder(as_of or datetime.now(timezone.utc))

    def _require_service(self, service_id: int) -> Service:
        service = self.repository.get_service(service_id)
        if service is None:
            raise NotFound(f"Service {service_id} not found")
        return service
