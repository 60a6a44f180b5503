"""
Tests for the SQLite store, schema and garage repository.
"""

import sqlite3
import tempfile
from datetime import datetime, timezone
from pathlib import Path

import pytest

from bikebuilders.domain.errors import (
    Conflict,
    ConstraintViolation,
    NotFound,
    StoreUnavailable,
    ValidationError,
)
from bikebuilders.domain.models import PaymentStatus, ServiceStatus, UserProfile
from bikebuilders.infrastructure.sqlite import (
    SCHEMA_VERSION,
    GarageRepository,
    GarageStore,
    initialize_schema,
)


class TestSchema:
    """Schema creation and upgrade."""

    def test_initialize_is_idempotent(self):
        conn = sqlite3.connect(":memory:")
        initialize_schema(conn)
        initialize_schema(conn)
        tables = {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
        assert {"Customers", "Vehicles", "Services", "ServiceParts",
                "CommonServices", "UserInfo"} <= tables
        assert conn.execute("SELECT COUNT(*) FROM UserInfo").fetchone()[0] == 1
        version = conn.execute("SELECT value FROM schema_meta WHERE key = 'version'").fetchone()
        assert int(version[0]) == SCHEMA_VERSION
        conn.close()

    def test_upgrade_adds_reminder_days(self):
        conn = sqlite3.connect(":memory:")
        conn.execute("CREATE TABLE Customers (CustomerID INTEGER PRIMARY KEY, Name TEXT NOT NULL)")
        conn.execute(
            "CREATE TABLE Vehicles (RegNumber TEXT PRIMARY KEY, CustomerID INTEGER NOT NULL, "
            "VehicleName TEXT, LastServiceDate TEXT, LastReading INTEGER)"
        )
        conn.execute("INSERT INTO Customers VALUES (1, 'Asha')")
        conn.execute("INSERT INTO Vehicles (RegNumber, CustomerID) VALUES ('KA01AB1234', 1)")

        initialize_schema(conn)

        columns = {r[1] for r in conn.execute("PRAGMA table_info(Vehicles)")}
        assert "ReminderDays" in columns
        assert conn.execute("SELECT ReminderDays FROM Vehicles").fetchone()[0] == 90
        conn.close()

    def test_profile_row_is_singleton(self):
        conn = sqlite3.connect(":memory:")
        initialize_schema(conn)
        with pytest.raises(sqlite3.IntegrityError):
            conn.execute("INSERT INTO UserInfo (UserID, Name) VALUES (2, 'x')")
        conn.close()


class TestGarageStore:

    def setup_method(self):
        self.temp_dir = Path(tempfile.mkdtemp())

    def teardown_method(self):
        import shutil
        shutil.rmtree(self.temp_dir)

    def test_creates_file_and_parent_dirs(self):
        store = GarageStore(self.temp_dir / "nested" / "bikeBuilders.db")
        store.initialize_schema()
        assert (self.temp_dir / "nested" / "bikeBuilders.db").exists()
        store.close()

    def test_unopenable_path_is_store_unavailable(self):
        blocker = self.temp_dir / "blocker"
        blocker.write_text("not a directory")
        store = GarageStore(blocker / "bikeBuilders.db")
        with pytest.raises(StoreUnavailable):
            store.initialize_schema()

    def test_transaction_rolls_back_on_error(self):
        store = GarageStore(":memory:")
        store.initialize_schema()
        with pytest.raises(RuntimeError):
            with store.transaction() as conn:
                conn.execute("INSERT INTO CommonServices (ServiceName, DefaultAmount) VALUES ('A', 1)")
                with store.transaction() as inner:
                    inner.execute(
                        "INSERT INTO CommonServices (ServiceName, DefaultAmount) VALUES ('B', 2)"
                    )
                raise RuntimeError("boom")
        assert store.fetch_all("SELECT * FROM CommonServices") == []
        store.close()


class TestCustomers:

    def setup_method(self):
        self.store = GarageStore(":memory:")
        self.store.initialize_schema()
        self.repo = GarageRepository(self.store)

    def teardown_method(self):
        self.store.close()

    def test_create_and_get_returns_same_values(self):
        customer_id = self.repo.create_customer(
            "Asha", phone="9000000001", address="Indiranagar", email="asha@example.com"
        )
        customer = self.repo.get_customer(customer_id)
        assert customer.name == "Asha"
        assert customer.phone == "9000000001"
        assert customer.address == "Indiranagar"
        assert customer.email == "asha@example.com"

    def test_get_unknown_is_none(self):
        assert self.repo.get_customer(404) is None

    def test_blank_name_is_rejected(self):
        with pytest.raises(ValidationError):
            self.repo.create_customer("   ")

    def test_duplicate_phone_is_rejected(self):
        self.repo.create_customer("Asha", phone="9000000001")
        with pytest.raises(ConstraintViolation):
            self.repo.create_customer("Someone", phone="9000000001")

    def test_duplicate_email_is_rejected(self):
        self.repo.create_customer("Asha", email="a@example.com")
        with pytest.raises(ConstraintViolation):
            self.repo.create_customer("Someone", email="a@example.com")

    def test_blank_contacts_never_collide(self):
        first = self.repo.create_customer("Asha", phone="", email=" ")
        second = self.repo.create_customer("Ravi", phone="", email="")
        assert self.repo.get_customer(first).phone is None
        assert self.repo.get_customer(second).email is None

    def test_update_customer(self):
        customer_id = self.repo.create_customer("Asha", phone="9000000001")
        self.repo.update_customer(customer_id, "Asha K", phone="9000000009")
        assert self.repo.get_customer(customer_id).name == "Asha K"
        assert self.repo.get_customer(customer_id).phone == "9000000009"

    def test_update_customer_keeps_own_phone(self):
        customer_id = self.repo.create_customer("Asha", phone="9000000001")
        self.repo.update_customer(customer_id, "Asha", phone="9000000001")

    def test_update_unknown_customer(self):
        with pytest.raises(NotFound):
            self.repo.update_customer(99, "Nobody")


class TestVehicles:

    def setup_method(self):
        self.store = GarageStore(":memory:")
        self.store.initialize_schema()
        self.repo = GarageRepository(self.store)
        self.owner = self.repo.create_customer("Asha", phone="9000000001")

    def teardown_method(self):
        self.store.close()

    def test_vehicle_needs_existing_customer(self):
        with pytest.raises(NotFound):
            self.repo.create_vehicle("KA01AB1234", 999)

    def test_registration_is_unique_ignoring_case(self):
        self.repo.create_vehicle("KA01AB1234", self.owner)
        with pytest.raises(Conflict):
            self.repo.create_vehicle("ka01ab1234", self.owner)

    def test_find_is_case_insensitive_and_joins_owner(self):
        self.repo.create_vehicle("KA01AB1234", self.owner, "Splendor")
        vehicle = self.repo.find_vehicle("ka01ab1234")
        assert vehicle.reg_number == "KA01AB1234"
        assert vehicle.name == "Splendor"
        assert vehicle.owner_name == "Asha"
        assert vehicle.owner_phone == "9000000001"
        assert vehicle.reminder_days == 90

    def test_find_unknown_is_none(self):
        assert self.repo.find_vehicle("NOPE") is None

    def test_search_is_case_insensitive_substring(self):
        for reg in ("ABC123", "xabcy", "xyz"):
            self.repo.create_vehicle(reg, self.owner)
        found = sorted(v.reg_number for v in self.repo.search_vehicles("abc"))
        assert found == ["ABC123", "xabcy"]

    def test_search_treats_wildcards_literally(self):
        self.repo.create_vehicle("KA_01", self.owner)
        self.repo.create_vehicle("KAX01", self.owner)
        self.repo.create_vehicle("50%OFF", self.owner)
        assert [v.reg_number for v in self.repo.search_vehicles("a_0")] == ["KA_01"]
        assert [v.reg_number for v in self.repo.search_vehicles("%")] == ["50%OFF"]

    def test_update_vehicle_keeps_reminder_days_when_not_given(self):
        self.repo.create_vehicle("KA01AB1234", self.owner, reminder_days=30)
        self.repo.update_vehicle("ka01ab1234", self.owner, "Splendor", "2026-01-01", 12000)
        vehicle = self.repo.find_vehicle("KA01AB1234")
        assert vehicle.reminder_days == 30
        assert vehicle.last_reading == 12000
        assert vehicle.last_service_date == "2026-01-01"

    def test_negative_reminder_days_rejected(self):
        with pytest.raises(ValidationError):
            self.repo.create_vehicle("KA01AB1234", self.owner, reminder_days=-1)


class TestServices:

    def setup_method(self):
        self.store = GarageStore(":memory:")
        self.store.initialize_schema()
        self.repo = GarageRepository(self.store)
        owner = self.repo.create_customer("Asha", phone="9000000001")
        self.repo.create_vehicle("KA01AB1234", owner)

    def teardown_method(self):
        self.store.close()

    def _start(self, total=500.0):
        return self.repo.create_service("KA01AB1234", 12000, total, "2026-01-10T09:00:00+00:00")

    def test_service_needs_existing_vehicle(self):
        with pytest.raises(NotFound):
            self.repo.create_service("NOPE", 0, 100.0, "2026-01-10")

    def test_new_service_is_pending_with_full_balance(self):
        service = self.repo.get_service(self._start(500.0))
        assert service.status is ServiceStatus.IN_PROGRESS
        assert service.payment_status is PaymentStatus.PENDING
        assert service.outstanding_balance == 500.0
        assert service.paid_amount == 0.0
        assert service.owner_name == "Asha"

    def test_sort_keys_strictly_increase(self):
        ids = [self._start() for _ in range(20)]
        keys = [self.repo.get_service(i).sort_key for i in ids]
        assert keys == sorted(keys)
        assert len(set(keys)) == len(keys)

    def test_payment_values_are_stored_as_given(self):
        service_id = self._start(500.0)
        self.repo.update_service_payment(
            service_id, 200.0, ServiceStatus.IN_PROGRESS, None, 300.0, PaymentStatus.PARTIAL
        )
        service = self.repo.get_service(service_id)
        assert service.paid_amount == 200.0
        assert service.outstanding_balance == 300.0
        assert service.payment_status is PaymentStatus.PARTIAL

    def test_completed_service_cannot_reopen(self):
        service_id = self._start()
        self.repo.update_service_payment(
            service_id, 0.0, ServiceStatus.COMPLETED, "2026-01-11", 500.0, PaymentStatus.PENDING
        )
        with pytest.raises(ValidationError):
            self.repo.update_service_payment(
                service_id, 0.0, ServiceStatus.IN_PROGRESS, None, 500.0, PaymentStatus.PENDING
            )

    def test_payment_after_completion_keeps_completion_date(self):
        service_id = self._start()
        self.repo.update_service_payment(
            service_id, 0.0, ServiceStatus.COMPLETED, "2026-01-11", 500.0, PaymentStatus.PENDING
        )
        self.repo.update_service_payment(
            service_id, 500.0, ServiceStatus.COMPLETED, None, 0.0, PaymentStatus.PAID
        )
        assert self.repo.get_service(service_id).completed_on == "2026-01-11"

    def test_payment_on_unknown_service(self):
        with pytest.raises(NotFound):
            self.repo.update_service_payment(
                42, 0.0, ServiceStatus.IN_PROGRESS, None, 0.0, PaymentStatus.PENDING
            )

    def test_negative_payment_rejected(self):
        service_id = self._start()
        with pytest.raises(ValidationError):
            self.repo.update_service_payment(
                service_id, -1.0, ServiceStatus.IN_PROGRESS, None, 501.0, PaymentStatus.PENDING
            )

    def test_in_progress_queue_is_newest_first_without_completed(self):
        first, second, third = self._start(), self._start(), self._start()
        self.repo.update_service_payment(
            second, 0.0, ServiceStatus.COMPLETED, "2026-01-11", 500.0, PaymentStatus.PENDING
        )
        queue = self.repo.list_in_progress_services()
        assert [s.id for s in queue] == [third, first]
        assert all(s.status is ServiceStatus.IN_PROGRESS for s in queue)

    def test_history_is_newest_first(self):
        first, second = self._start(), self._start()
        history = self.repo.list_services_for_vehicle("ka01ab1234")
        assert [s.id for s in history] == [second, first]

    def test_parts(self):
        service_id = self._start()
        self.repo.add_service_part(service_id, "Oil Change", 350.0)
        self.repo.add_service_part(service_id, "Filter", 150.0)
        parts = self.repo.list_service_parts(service_id)
        assert [(p.name, p.amount) for p in parts] == [("Oil Change", 350.0), ("Filter", 150.0)]

    def test_part_needs_existing_service(self):
        with pytest.raises(NotFound):
            self.repo.add_service_part(77, "Oil Change", 350.0)


class TestCatalogAndProfile:

    def setup_method(self):
        self.store = GarageStore(":memory:")
        self.store.initialize_schema()
        self.repo = GarageRepository(self.store)

    def teardown_method(self):
        self.store.close()

    def test_catalog_is_ordered_by_name(self):
        self.repo.upsert_common_service("Wash", 100.0)
        self.repo.upsert_common_service("Brake Pads", 700.0)
        self.repo.upsert_common_service("Oil Change", 500.0)
        assert [c.name for c in self.repo.list_common_services()] == [
            "Brake Pads", "Oil Change", "Wash",
        ]

    def test_upsert_by_name_reprices(self):
        first = self.repo.upsert_common_service("Oil Change", 500.0)
        second = self.repo.upsert_common_service("Oil Change", 550.0)
        assert first == second
        assert self.repo.get_common_service_by_name("Oil Change").default_amount == 550.0

    def test_rename_onto_existing_name_conflicts(self):
        self.repo.upsert_common_service("Oil Change", 500.0)
        wash = self.repo.upsert_common_service("Wash", 100.0)
        with pytest.raises(Conflict):
            self.repo.upsert_common_service("Oil Change", 100.0, service_id=wash)

    def test_delete_is_unconditional(self):
        service_id = self.repo.upsert_common_service("Oil Change", 500.0)
        self.repo.delete_common_service(service_id)
        self.repo.delete_common_service(service_id)
        assert self.repo.list_common_services() == []

    def test_profile_exists_after_initialization(self):
        assert self.repo.get_user_profile() == UserProfile()

    def test_update_profile(self):
        profile = UserProfile(
            name="Kiran", email="kiran@example.com", phone_number="9000000000",
            garage_name="Kiran Bikes", address="Jayanagar",
        )
        self.repo.update_user_profile(profile)
        assert self.repo.get_user_profile() == profile


class TestReminders:

    def setup_method(self):
        self.store = GarageStore(":memory:")
        self.store.initialize_schema()
        self.repo = GarageRepository(self.store)
        self.as_of = datetime(2026, 4, 15, tzinfo=timezone.utc)

    def teardown_method(self):
        self.store.close()

    def _vehicle(self, reg, phone, last_service, reminder_days=90):
        owner = self.repo.create_customer(f"Owner {reg}", phone=phone)
        self.repo.create_vehicle(reg, owner, reminder_days=reminder_days)
        if last_service:
            self.repo.update_vehicle(reg, owner, None, last_service, 1000)

    def test_due_vehicles(self):
        self._vehicle("OLD", "9000000001", "2026-01-01T00:00:00+00:00")
        self._vehicle("OLDER", "9000000002", "2025-10-01T00:00:00+00:00")
        self._vehicle("RECENT", "9000000003", "2026-04-01T00:00:00+00:00")
        self._vehicle("NOPHONE", None, "2025-01-01T00:00:00+00:00")
        self._vehicle("NEVER", "9000000004", None)
        self._vehicle("SHORT", "9000000005", "2026-03-01T00:00:00+00:00", reminder_days=30)

        due = self.repo.list_vehicles_due_for_reminder(self.as_of)

        assert [c.vehicle.reg_number for c in due] == ["OLDER", "OLD", "SHORT"]
        assert due[1].days_since_service == 104

    def test_interval_boundary_is_inclusive(self):
        self._vehicle("EDGE", "9000000001", "2026-01-15T00:00:00+00:00")
        due = self.repo.list_vehicles_due_for_reminder(self.as_of)
        assert [c.days_since_service for c in due] == [90]
