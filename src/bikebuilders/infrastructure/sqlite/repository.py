"""
Garage repository: typed CRUD over the six tables.

Invariants are checked here before the store is touched; SQLite's own
constraints (foreign keys, UNIQUE) are the backstop. Failures raise the
domain exceptions from ``bikebuilders.domain.errors``.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator

from bikebuilders.domain.errors import Conflict, ConstraintViolation, NotFound, ValidationError
from bikebuilders.domain.models import (
    DEFAULT_REMINDER_DAYS,
    CommonService,
    Customer,
    PaymentStatus,
    ReminderCandidate,
    Service,
    ServicePart,
    ServiceStatus,
    UserProfile,
    Vehicle,
    days_between,
)
from bikebuilders.domain.state_machine import ensure_service_transition
from bikebuilders.infrastructure.sqlite.schema import DELETE_ORDER
from bikebuilders.infrastructure.sqlite.store import GarageStore

logger = logging.getLogger(__name__)

_VEHICLE_SELECT = """
    SELECT v.RegNumber, v.CustomerID, v.VehicleName, v.LastServiceDate,
           v.LastReading, v.ReminderDays,
           c.Name AS OwnerName, c.Phone AS OwnerPhone,
           c.Address AS OwnerAddress, c.Email AS OwnerEmail
    FROM Vehicles v
    JOIN Customers c ON v.CustomerID = c.CustomerID
"""

_SERVICE_SELECT = """
    SELECT s.*, c.Name AS OwnerName
    FROM Services s
    LEFT JOIN Vehicles v ON s.RegNumber = v.RegNumber
    LEFT JOIN Customers c ON v.CustomerID = c.CustomerID
"""


def _blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _require(value: str | None, field: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{field} is required")
    return value.strip()


def _escape_like(fragment: str) -> str:
    return fragment.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@contextmanager
def _constraint_guard(action: str) -> Iterator[None]:
    """Translate SQLite integrity errors into ConstraintViolation."""
    try:
        yield
    except sqlite3.IntegrityError as e:
        logger.warning("Constraint violation while %s: %s", action, e)
        raise ConstraintViolation(f"Constraint violation while {action}: {e}") from e


# ============================================================================
# Row mapping
# ============================================================================

def _row_to_customer(row: sqlite3.Row) -> Customer:
    return Customer(
        id=row["CustomerID"],
        name=row["Name"],
        phone=row["Phone"],
        address=row["Address"],
        email=row["Email"],
    )


def _row_to_vehicle(row: sqlite3.Row) -> Vehicle:
    keys = row.keys()
    return Vehicle(
        reg_number=row["RegNumber"],
        customer_id=row["CustomerID"],
        name=row["VehicleName"],
        last_service_date=row["LastServiceDate"],
        last_reading=row["LastReading"],
        reminder_days=(
            row["ReminderDays"] if row["ReminderDays"] is not None else DEFAULT_REMINDER_DAYS
        ),
        owner_name=row["OwnerName"] if "OwnerName" in keys else None,
        owner_phone=row["OwnerPhone"] if "OwnerPhone" in keys else None,
        owner_address=row["OwnerAddress"] if "OwnerAddress" in keys else None,
        owner_email=row["OwnerEmail"] if "OwnerEmail" in keys else None,
    )


def _row_to_service(row: sqlite3.Row) -> Service:
    return Service(
        id=row["ServiceLogID"],
        reg_number=row["RegNumber"],
        sort_key=row["TimestampKey"],
        reading=row["CurrentReading"],
        total_amount=row["TotalAmount"] or 0.0,
        paid_amount=row["PaidAmount"] or 0.0,
        outstanding_balance=row["OutstandingBalance"] or 0.0,
        payment_status=PaymentStatus(row["PaymentStatus"] or PaymentStatus.PENDING.value),
        status=ServiceStatus(row["Status"] or ServiceStatus.IN_PROGRESS.value),
        started_on=row["StartedOn"],
        completed_on=row["CompletedOn"],
        owner_name=row["OwnerName"] if "OwnerName" in row.keys() else None,
    )


def _row_to_part(row: sqlite3.Row) -> ServicePart:
    return ServicePart(
        id=row["PartLogID"],
        service_id=row["ServiceLogID"],
        name=row["PartName"],
        amount=row["Amount"],
    )


def _row_to_common_service(row: sqlite3.Row) -> CommonService:
    return CommonService(
        id=row["ServiceID"],
        name=row["ServiceName"],
        default_amount=row["DefaultAmount"],
    )


class GarageRepository:
    """
    Typed CRUD for customers, vehicles, services, parts, catalog and profile.

    Usage:
        repo = GarageRepository(store)
        customer_id = repo.create_customer("Asha", phone="9000000001")
        repo.create_vehicle("KA01AB1234", customer_id, "Splendor")
        service_id = repo.create_service("KA01AB1234", 12000, 500.0, started_at)
    """

    def __init__(self, store: GarageStore) -> None:
        self.store = store

    # ========================================================================
    # Customer Operations
    # ========================================================================

    def create_customer(
        self,
        name: str,
        phone: str | None = None,
        address: str | None = None,
        email: str | None = None,
    ) -> int:
        """
        Insert a customer.

        Blank phone/email are stored as NULL so that they never collide.

        Returns:
            New CustomerID

        Raises:
            ValidationError: If name is blank
            ConstraintViolation: If phone or email belongs to another customer
        """
        name = _require(name, "Customer name")
        phone, email = _blank_to_none(phone), _blank_to_none(email)

        with self.store.transaction() as conn:
            self._check_contact_unique(conn, phone, email)
            with _constraint_guard("creating customer"):
                cursor = conn.execute(
                    "INSERT INTO Customers (Name, Phone, Address, Email) VALUES (?, ?, ?, ?)",
                    (name, phone, address, email),
                )
        logger.debug("Created customer: %s (id=%d)", name, cursor.lastrowid)
        return cursor.lastrowid

    def get_customer(self, customer_id: int) -> Customer | None:
        """Get a customer by ID."""
        row = self.store.fetch_one("SELECT * FROM Customers WHERE CustomerID = ?", (customer_id,))
        return _row_to_customer(row) if row else None

    def update_customer(
        self,
        customer_id: int,
        name: str,
        phone: str | None = None,
        address: str | None = None,
        email: str | None = None,
    ) -> None:
        """Overwrite a customer's contact details."""
        name = _require(name, "Customer name")
        phone, email = _blank_to_none(phone), _blank_to_none(email)

        with self.store.transaction() as conn:
            if not self._exists(conn, "SELECT 1 FROM Customers WHERE CustomerID = ?", customer_id):
                raise NotFound(f"Customer {customer_id} not found")
            self._check_contact_unique(conn, phone, email, exclude_id=customer_id)
            with _constraint_guard("updating customer"):
                conn.execute(
                    """
                    UPDATE Customers SET Name = ?, Phone = ?, Address = ?, Email = ?
                    WHERE CustomerID = ?
                """,
                    (name, phone, address, email, customer_id),
                )

    def list_customers(self) -> list[Customer]:
        return [
            _row_to_customer(r)
            for r in self.store.fetch_all("SELECT * FROM Customers ORDER BY CustomerID")
        ]

    def _check_contact_unique(
        self,
        conn: sqlite3.Connection,
        phone: str | None,
        email: str | None,
        exclude_id: int | None = None,
    ) -> None:
        for column, value in (("Phone", phone), ("Email", email)):
            if value is None:
                continue
            row = conn.execute(
                f"SELECT CustomerID FROM Customers WHERE {column} = ?", (value,)
            ).fetchone()
            if row and row["CustomerID"] != exclude_id:
                raise ConstraintViolation(
                    f"{column} '{value}' already belongs to customer {row['CustomerID']}"
                )

    # ========================================================================
    # Vehicle Operations
    # ========================================================================

    def create_vehicle(
        self,
        reg_number: str,
        customer_id: int,
        name: str | None = None,
        reminder_days: int = DEFAULT_REMINDER_DAYS,
    ) -> None:
        """
        Register a vehicle for an existing customer.

        Raises:
            ValidationError: If reg_number is blank or reminder_days negative
            NotFound: If the customer does not exist
            Conflict: If the registration number exists (any letter case)
        """
        reg_number = _require(reg_number, "Registration number")
        if reminder_days is None:
            reminder_days = DEFAULT_REMINDER_DAYS
        if reminder_days < 0:
            raise ValidationError("Reminder interval cannot be negative")

        with self.store.transaction() as conn:
            if not self._exists(conn, "SELECT 1 FROM Customers WHERE CustomerID = ?", customer_id):
                raise NotFound(f"Customer {customer_id} not found")
            if self._exists(
                conn, "SELECT 1 FROM Vehicles WHERE RegNumber = ? COLLATE NOCASE", reg_number
            ):
                raise Conflict(f"Vehicle {reg_number} is already registered")
            with _constraint_guard("creating vehicle"):
                conn.execute(
                    """
                    INSERT INTO Vehicles (RegNumber, CustomerID, VehicleName, ReminderDays)
                    VALUES (?, ?, ?, ?)
                """,
                    (reg_number, customer_id, name, reminder_days),
                )
        logger.debug("Registered vehicle %s for customer %d", reg_number, customer_id)

    def find_vehicle(self, reg_number: str) -> Vehicle | None:
        """Case-insensitive exact lookup, joined with owner details."""
        row = self.store.fetch_one(
            _VEHICLE_SELECT + " WHERE v.RegNumber = ? COLLATE NOCASE",
            (reg_number.strip(),),
        )
        return _row_to_vehicle(row) if row else None

    def search_vehicles(self, fragment: str) -> list[Vehicle]:
        """Case-insensitive substring match on the registration number."""
        pattern = f"%{_escape_like(fragment.strip())}%"
        rows = self.store.fetch_all(
            _VEHICLE_SELECT + " WHERE v.RegNumber LIKE ? ESCAPE '\\'",
            (pattern,),
        )
        return [_row_to_vehicle(r) for r in rows]

    def update_vehicle(
        self,
        reg_number: str,
        customer_id: int,
        name: str | None,
        last_service_date: str | None,
        last_reading: int | None,
        reminder_days: int | None = None,
    ) -> None:
        """Overwrite a vehicle's owner, name and last-service details."""
        with self.store.transaction() as conn:
            row = conn.execute(
                "SELECT RegNumber, ReminderDays FROM Vehicles WHERE RegNumber = ? COLLATE NOCASE",
                (reg_number,),
            ).fetchone()
            if row is None:
                raise NotFound(f"Vehicle {reg_number} not found")
            if not self._exists(conn, "SELECT 1 FROM Customers WHERE CustomerID = ?", customer_id):
                raise NotFound(f"Customer {customer_id} not found")
            if reminder_days is None:
                reminder_days = row["ReminderDays"]
            with _constraint_guard("updating vehicle"):
                conn.execute(
                    """
                    UPDATE Vehicles
                    SET CustomerID = ?, VehicleName = ?, LastServiceDate = ?,
                        LastReading = ?, ReminderDays = ?
                    WHERE RegNumber = ?
                """,
                    (customer_id, name, last_service_date, last_reading,
                     reminder_days, row["RegNumber"]),
                )

    def list_vehicles(self) -> list[Vehicle]:
        return [
            _row_to_vehicle(r)
            for r in self.store.fetch_all("SELECT * FROM Vehicles ORDER BY RegNumber")
        ]

    def list_vehicles_due_for_reminder(self, as_of: datetime) -> list[ReminderCandidate]:
        """
        Vehicles whose reminder interval has elapsed by ``as_of``.

        Only vehicles with a recorded service and an owner phone number
        qualify. Most overdue first.
        """
        rows = self.store.fetch_all(
            _VEHICLE_SELECT
            + " WHERE v.LastServiceDate IS NOT NULL AND c.Phone IS NOT NULL AND c.Phone != ''"
        )
        due = []
        for row in rows:
            vehicle = _row_to_vehicle(row)
            try:
                elapsed = days_between(vehicle.last_service_date, as_of)
            except ValueError:
                logger.warning(
                    "Skipping %s: unparsable last service date %r",
                    vehicle.reg_number, vehicle.last_service_date,
                )
                continue
            if elapsed >= vehicle.reminder_days:
                due.append(ReminderCandidate(vehicle=vehicle, days_since_service=elapsed))
        due.sort(key=lambda c: c.days_since_service, reverse=True)
        return due

    # ========================================================================
    # Service Operations
    # ========================================================================

    def create_service(
        self,
        reg_number: str,
        reading: int | None,
        total_amount: float,
        started_at: str,
        sort_key: int | None = None,
    ) -> int:
        """
        Open a service job.

        Args:
            reg_number: Vehicle registration (must exist)
            reading: Odometer reading at intake
            total_amount: Quoted total
            started_at: ISO timestamp when work began
            sort_key: Keep this ordering key instead of assigning a fresh one
                (used when restoring a snapshot)

        Returns:
            New ServiceLogID
        """
        if total_amount is None or total_amount < 0:
            raise ValidationError("Total amount cannot be negative")

        with self.store.transaction() as conn:
            vehicle = conn.execute(
                "SELECT RegNumber FROM Vehicles WHERE RegNumber = ? COLLATE NOCASE",
                (reg_number.strip(),),
            ).fetchone()
            if vehicle is None:
                raise NotFound(f"Vehicle {reg_number} not found")
            if sort_key is None:
                sort_key = self._next_sort_key(conn)
            with _constraint_guard("creating service"):
                cursor = conn.execute(
                    """
                    INSERT INTO Services (
                        RegNumber, TimestampKey, CurrentReading, TotalAmount,
                        OutstandingBalance, StartedOn
                    ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                    (vehicle["RegNumber"], sort_key, reading, total_amount,
                     total_amount, started_at),
                )
        logger.debug("Created service %d for %s", cursor.lastrowid, reg_number)
        return cursor.lastrowid

    @staticmethod
    def _next_sort_key(conn: sqlite3.Connection) -> int:
        """Creation time in ms, bumped past the newest existing key."""
        now_ms = int(time.time() * 1000)
        row = conn.execute("SELECT MAX(TimestampKey) AS k FROM Services").fetchone()
        latest = row["k"] if row and row["k"] is not None else 0
        return max(now_ms, latest + 1)

    def get_service(self, service_id: int) -> Service | None:
        row = self.store.fetch_one(_SERVICE_SELECT + " WHERE s.ServiceLogID = ?", (service_id,))
        return _row_to_service(row) if row else None

    def list_services_for_vehicle(self, reg_number: str) -> list[Service]:
        """Service history of one vehicle, newest first."""
        rows = self.store.fetch_all(
            _SERVICE_SELECT + " WHERE s.RegNumber = ? COLLATE NOCASE ORDER BY s.TimestampKey DESC",
            (reg_number.strip(),),
        )
        return [_row_to_service(r) for r in rows]

    def list_in_progress_services(self) -> list[Service]:
        """The working queue: open jobs, newest first."""
        rows = self.store.fetch_all(
            _SERVICE_SELECT + " WHERE s.Status = ? ORDER BY s.TimestampKey DESC",
            (ServiceStatus.IN_PROGRESS.value,),
        )
        return [_row_to_service(r) for r in rows]

    def list_services(self) -> list[Service]:
        rows = self.store.fetch_all("SELECT * FROM Services ORDER BY TimestampKey")
        return [_row_to_service(r) for r in rows]

    def update_service_payment(
        self,
        service_id: int,
        paid_amount: float,
        status: ServiceStatus,
        completed_at: str | None,
        balance: float,
        payment_status: PaymentStatus,
    ) -> None:
        """
        Record payment and lifecycle state in one mutation.

        Callers compute ``balance`` and ``payment_status`` beforehand
        (see ``domain.models.compute_payment``); they are stored as given.

        Raises:
            NotFound: If the service does not exist
            ValidationError: If paid_amount is negative or status moves backward
        """
        if paid_amount is None or paid_amount < 0:
            raise ValidationError("Paid amount cannot be negative")

        with self.store.transaction() as conn:
            row = conn.execute(
                "SELECT Status, CompletedOn FROM Services WHERE ServiceLogID = ?",
                (service_id,),
            ).fetchone()
            if row is None:
                raise NotFound(f"Service {service_id} not found")
            current = ServiceStatus(row["Status"] or ServiceStatus.IN_PROGRESS.value)
            ensure_service_transition(current, status)

            if status is ServiceStatus.COMPLETED:
                completed_on = completed_at or row["CompletedOn"]
            else:
                completed_on = None

            conn.execute(
                """
                UPDATE Services
                SET PaidAmount = ?, Status = ?, CompletedOn = ?,
                    OutstandingBalance = ?, PaymentStatus = ?
                WHERE ServiceLogID = ?
            """,
                (paid_amount, status.value, completed_on, balance,
                 payment_status.value, service_id),
            )
        logger.debug(
            "Service %d: paid=%.2f status=%s payment=%s",
            service_id, paid_amount, status.value, payment_status.value,
        )

    # ========================================================================
    # Service Part Operations
    # ========================================================================

    def add_service_part(self, service_id: int, name: str, amount: float) -> int:
        """Append a line item to a service. Parts are never updated."""
        name = _require(name, "Part name")
        if amount is None:
            raise ValidationError("Part amount is required")

        with self.store.transaction() as conn:
            if not self._exists(conn, "SELECT 1 FROM Services WHERE ServiceLogID = ?", service_id):
                raise NotFound(f"Service {service_id} not found")
            with _constraint_guard("adding service part"):
                cursor = conn.execute(
                    "INSERT INTO ServiceParts (ServiceLogID, PartName, Amount) VALUES (?, ?, ?)",
                    (service_id, name, amount),
                )
        return cursor.lastrowid

    def list_service_parts(self, service_id: int) -> list[ServicePart]:
        rows = self.store.fetch_all(
            "SELECT * FROM ServiceParts WHERE ServiceLogID = ? ORDER BY PartLogID",
            (service_id,),
        )
        return [_row_to_part(r) for r in rows]

    def list_all_service_parts(self) -> list[ServicePart]:
        return [
            _row_to_part(r)
            for r in self.store.fetch_all("SELECT * FROM ServiceParts ORDER BY PartLogID")
        ]

    # ========================================================================
    # Catalog Operations
    # ========================================================================

    def list_common_services(self) -> list[CommonService]:
        rows = self.store.fetch_all("SELECT * FROM CommonServices ORDER BY ServiceName")
        return [_row_to_common_service(r) for r in rows]

    def get_common_service_by_name(self, name: str) -> CommonService | None:
        row = self.store.fetch_one(
            "SELECT * FROM CommonServices WHERE ServiceName = ?", (name.strip(),)
        )
        return _row_to_common_service(row) if row else None

    def upsert_common_service(
        self, name: str, default_amount: float, service_id: int | None = None
    ) -> int:
        """
        Insert or update a catalog entry.

        With ``service_id`` the entry is renamed/repriced; without it an
        entry of the same name is repriced, or a new one is inserted.

        Raises:
            NotFound: If service_id does not exist
            Conflict: If renaming onto a name another entry holds
        """
        name = _require(name, "Service name")
        if default_amount is None or default_amount < 0:
            raise ValidationError("Default amount cannot be negative")

        with self.store.transaction() as conn:
            by_name = conn.execute(
                "SELECT ServiceID FROM CommonServices WHERE ServiceName = ?", (name,)
            ).fetchone()

            if service_id is None and by_name is not None:
                service_id = by_name["ServiceID"]

            if service_id is None:
                cursor = conn.execute(
                    "INSERT INTO CommonServices (ServiceName, DefaultAmount) VALUES (?, ?)",
                    (name, default_amount),
                )
                logger.debug("Added catalog entry %s", name)
                return cursor.lastrowid

            if not self._exists(
                conn, "SELECT 1 FROM CommonServices WHERE ServiceID = ?", service_id
            ):
                raise NotFound(f"Catalog entry {service_id} not found")
            if by_name is not None and by_name["ServiceID"] != service_id:
                raise Conflict(f"Catalog entry '{name}' already exists")
            conn.execute(
                "UPDATE CommonServices SET ServiceName = ?, DefaultAmount = ? WHERE ServiceID = ?",
                (name, default_amount, service_id),
            )
            return service_id

    def delete_common_service(self, service_id: int) -> None:
        """Remove a catalog entry. Parts keep their own copy of name/amount."""
        with self.store.transaction() as conn:
            conn.execute("DELETE FROM CommonServices WHERE ServiceID = ?", (service_id,))

    # ========================================================================
    # Profile Operations
    # ========================================================================

    def get_user_profile(self) -> UserProfile:
        row = self.store.fetch_one("SELECT * FROM UserInfo WHERE UserID = 1")
        if row is None:
            return UserProfile()
        return UserProfile(
            name=row["Name"] or "",
            email=row["Email"] or "",
            phone_number=row["PhoneNumber"] or "",
            garage_name=row["GarageName"] or "",
            address=row["Address"] or "",
        )

    def update_user_profile(self, profile: UserProfile) -> None:
        with self.store.transaction() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO UserInfo
                    (UserID, Name, Email, PhoneNumber, GarageName, Address)
                VALUES (1, ?, ?, ?, ?, ?)
            """,
                (profile.name, profile.email, profile.phone_number,
                 profile.garage_name, profile.address),
            )

    # ========================================================================
    # Bulk
    # ========================================================================

    def clear_dataset(self) -> None:
        """Delete every row except the profile, children first."""
        with self.store.transaction() as conn:
            for table in DELETE_ORDER:
                conn.execute(f"DELETE FROM {table}")
        logger.info("Cleared dataset")

    @staticmethod
    def _exists(conn: sqlite3.Connection, sql: str, key) -> bool:
        return conn.execute(sql, (key,)).fetchone() is not None
