"""
Snapshot Codec.

Turns the whole local dataset into one JSON document and back. Shared by
the local export service and the remote sync service.

Restore is a destructive full replace run inside a single store
transaction: either the document's dataset replaces the old one, or the
old one survives untouched.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field

from pydantic import ValidationError as PydanticValidationError

from bikebuilders.domain.errors import FormatError
from bikebuilders.domain.models import UserProfile, utc_now_iso
from bikebuilders.domain.snapshot import (
    CURRENT_FORMAT_VERSION,
    CommonServiceRecord,
    CustomerRecord,
    ServicePartRecord,
    ServiceRecord,
    Snapshot,
    UserInfoRecord,
    VehicleRecord,
)
from bikebuilders.infrastructure.sqlite.repository import GarageRepository
from bikebuilders.infrastructure.sqlite.store import GarageStore

logger = logging.getLogger(__name__)


@dataclass
class RestoreReport:
    """What a restore wrote, and what it had to leave out."""
    customers: int = 0
    vehicles: int = 0
    services: int = 0
    service_parts: int = 0
    common_services: int = 0
    skipped: dict[str, int] = field(default_factory=dict)

    def skip(self, collection: str) -> None:
        self.skipped[collection] = self.skipped.get(collection, 0) + 1

    @property
    def total_skipped(self) -> int:
        return sum(self.skipped.values())


class SnapshotCodec:
    """
    Capture, restore and (de)serialize full-dataset snapshots.

    Usage:
        codec = SnapshotCodec(repository, store)
        text = codec.dumps(codec.capture())
        report = codec.restore(codec.loads(text))
    """

    def __init__(self, repository: GarageRepository, store: GarageStore) -> None:
        self.repository = repository
        self.store = store

    # ========================================================================
    # Capture
    # ========================================================================

    def capture(self) -> Snapshot:
        """Read every collection and the profile into a snapshot."""
        repo = self.repository

        customers = [
            CustomerRecord(
                customer_id=c.id, name=c.name, phone=c.phone,
                address=c.address, email=c.email,
            )
            for c in repo.list_customers()
        ]
        vehicles = [
            VehicleRecord(
                reg_number=v.reg_number, customer_id=v.customer_id,
                vehicle_name=v.name, last_service_date=v.last_service_date,
                last_reading=v.last_reading, reminder_days=v.reminder_days,
            )
            for v in repo.list_vehicles()
        ]
        services = [
            ServiceRecord(
                service_log_id=s.id, reg_number=s.reg_number, timestamp_key=s.sort_key,
                current_reading=s.reading, total_amount=s.total_amount,
                paid_amount=s.paid_amount, outstanding_balance=s.outstanding_balance,
                payment_status=s.payment_status, status=s.status,
                started_on=s.started_on, completed_on=s.completed_on,
            )
            for s in repo.list_services()
        ]
        parts = [
            ServicePartRecord(
                part_log_id=p.id, service_log_id=p.service_id,
                part_name=p.name, amount=p.amount,
            )
            for p in repo.list_all_service_parts()
        ]
        catalog = [
            CommonServiceRecord(
                service_id=c.id, service_name=c.name, default_amount=c.default_amount,
            )
            for c in repo.list_common_services()
        ]
        profile = repo.get_user_profile()

        snapshot = Snapshot(
            format_version=CURRENT_FORMAT_VERSION,
            exported_at=utc_now_iso(),
            customers=customers,
            vehicles=vehicles,
            services=services,
            service_parts=parts,
            common_services=catalog,
            user_info=UserInfoRecord(
                name=profile.name, email=profile.email,
                phone_number=profile.phone_number,
                garage_name=profile.garage_name, address=profile.address,
            ),
        )
        logger.debug("Captured snapshot: %s", snapshot.counts())
        return snapshot

    # ========================================================================
    # Restore
    # ========================================================================

    def restore(self, snapshot: Snapshot) -> RestoreReport:
        """
        Replace the local dataset with the snapshot's.

        Customers and services get fresh ids; vehicles and parts are
        re-pointed through old-id to new-id maps. Rows whose parent is
        missing from the document are skipped and counted.

        Raises:
            Any repository error; the transaction is rolled back first.
        """
        report = RestoreReport()
        repo = self.repository

        with self.store.transaction():
            repo.clear_dataset()

            customer_ids: dict[int, int] = {}
            for rec in snapshot.customers:
                new_id = repo.create_customer(rec.name, rec.phone, rec.address, rec.email)
                if rec.customer_id is not None:
                    customer_ids[rec.customer_id] = new_id
                report.customers += 1

            restored_regs: set[str] = set()
            for rec in snapshot.vehicles:
                owner = customer_ids.get(rec.customer_id)
                if owner is None:
                    logger.warning(
                        "Skipping vehicle %s: customer %s not in snapshot",
                        rec.reg_number, rec.customer_id,
                    )
                    report.skip("vehicles")
                    continue
                repo.create_vehicle(rec.reg_number, owner, rec.vehicle_name, rec.reminder_days)
                if rec.last_service_date is not None or rec.last_reading is not None:
                    repo.update_vehicle(
                        rec.reg_number, owner, rec.vehicle_name,
                        rec.last_service_date, rec.last_reading,
                    )
                restored_regs.add(rec.reg_number.lower())
                report.vehicles += 1

            service_ids: dict[int, int] = {}
            for rec in snapshot.services:
                if rec.reg_number.lower() not in restored_regs:
                    logger.warning(
                        "Skipping service %s: vehicle %s not in snapshot",
                        rec.service_log_id, rec.reg_number,
                    )
                    report.skip("services")
                    continue
                new_id = self._restore_service(rec)
                if rec.service_log_id is not None:
                    service_ids[rec.service_log_id] = new_id
                report.services += 1

            for rec in snapshot.service_parts:
                service_id = service_ids.get(rec.service_log_id)
                if service_id is None:
                    logger.warning(
                        "Skipping part %r: service %s not in snapshot",
                        rec.part_name, rec.service_log_id,
                    )
                    report.skip("serviceParts")
                    continue
                repo.add_service_part(service_id, rec.part_name, rec.amount)
                report.service_parts += 1

            for rec in snapshot.common_services:
                repo.upsert_common_service(rec.service_name, rec.default_amount)
                report.common_services += 1

            if snapshot.user_info is not None:
                info = snapshot.user_info
                repo.update_user_profile(UserProfile(
                    name=info.name or "",
                    email=info.email or "",
                    phone_number=info.phone_number or "",
                    garage_name=info.garage_name or "",
                    address=info.address or "",
                ))

        if report.total_skipped:
            logger.warning("Restore skipped orphan rows: %s", report.skipped)
        logger.info(
            "Restored %d customers, %d vehicles, %d services, %d parts, %d catalog entries",
            report.customers, report.vehicles, report.services,
            report.service_parts, report.common_services,
        )
        return report

    def _restore_service(self, rec: ServiceRecord) -> int:
        """Insert a service keeping its sort key, amounts and lifecycle state."""
        repo = self.repository
        service_id = repo.create_service(
            rec.reg_number,
            rec.current_reading,
            rec.total_amount,
            rec.started_on,
            sort_key=rec.timestamp_key,
        )
        repo.update_service_payment(
            service_id,
            paid_amount=rec.paid_amount,
            status=rec.status,
            completed_at=rec.completed_on,
            balance=rec.outstanding_balance,
            payment_status=rec.payment_status,
        )
        return service_id

    # ========================================================================
    # Encoding
    # ========================================================================

    @staticmethod
    def dumps(snapshot: Snapshot) -> str:
        """Encode a snapshot as JSON using the legacy field names."""
        return snapshot.model_dump_json(by_alias=True, indent=2)

    @staticmethod
    def loads(text: str | bytes) -> Snapshot:
        """
        Decode and validate a snapshot document.

        Raises:
            FormatError: If the content is not JSON, does not match the
                document shape, or carries an unsupported version
        """
        try:
            data = json.loads(text)
        except (ValueError, TypeError) as e:
            raise FormatError(f"Snapshot is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise FormatError("Snapshot must be a JSON object")
        try:
            return Snapshot.model_validate(data)
        except PydanticValidationError as e:
            raise FormatError(f"Snapshot does not match the expected shape: {e}") from e
