"""
Tests for snapshot capture, restore and JSON encoding.
"""

import json

import pytest

from bikebuilders.application.snapshot_codec import SnapshotCodec
from bikebuilders.domain.errors import ConstraintViolation, FormatError
from bikebuilders.domain.models import PaymentStatus, ServiceStatus, UserProfile
from bikebuilders.domain.snapshot import CURRENT_FORMAT_VERSION
from bikebuilders.infrastructure.sqlite import GarageRepository, GarageStore


def _fresh():
    store = GarageStore(":memory:")
    store.initialize_schema()
    repo = GarageRepository(store)
    return store, repo, SnapshotCodec(repo, store)


def _dataset(repo):
    """Content keyed by natural keys, ignoring store-assigned ids."""
    customers = {c.phone or c.email or c.name: (c.name, c.address, c.email)
                 for c in repo.list_customers()}
    vehicles = {}
    for v in repo.list_vehicles():
        owner = repo.get_customer(v.customer_id)
        vehicles[v.reg_number] = (
            owner.phone, v.name, v.last_service_date, v.last_reading, v.reminder_days,
        )
    services = {}
    for s in repo.list_services():
        services[s.sort_key] = (
            s.reg_number, s.reading, s.total_amount, s.paid_amount, s.outstanding_balance,
            s.payment_status, s.status, s.started_on, s.completed_on,
            tuple((p.name, p.amount) for p in repo.list_service_parts(s.id)),
        )
    catalog = {c.name: c.default_amount for c in repo.list_common_services()}
    return customers, vehicles, services, catalog, repo.get_user_profile()


class TestCapture:

    def test_document_shape(self, populated_repo, codec):
        data = json.loads(codec.dumps(codec.capture()))
        assert data["formatVersion"] == CURRENT_FORMAT_VERSION
        assert data["exportedAt"]
        for key in ("customers", "vehicles", "services", "serviceParts", "commonServices"):
            assert isinstance(data[key], list)
        assert isinstance(data["userInfo"], dict)
        assert {v["RegNumber"] for v in data["vehicles"]} == {
            "KA01AB1234", "KA05XY9999", "MH12CD0001",
        }
        assert data["services"][0]["Status"] == "In Progress"
        assert len(data["serviceParts"]) == 3

    def test_empty_store(self, codec):
        snapshot = codec.capture()
        assert snapshot.counts() == {
            "customers": 0, "vehicles": 0, "services": 0,
            "serviceParts": 0, "commonServices": 0,
        }
        assert snapshot.user_info is not None


class TestRestore:

    def test_round_trip_into_fresh_store(self, populated_repo, codec):
        populated_repo.update_user_profile(UserProfile(name="Kiran", garage_name="Kiran Bikes"))
        services = populated_repo.list_services()
        populated_repo.update_service_payment(
            services[0].id, 500.0, ServiceStatus.COMPLETED, "2026-01-10T18:00:00+00:00",
            0.0, PaymentStatus.PAID,
        )
        text = codec.dumps(codec.capture())

        store, repo, other = _fresh()
        report = other.restore(other.loads(text))

        assert _dataset(repo) == _dataset(populated_repo)
        assert report.customers == 2
        assert report.vehicles == 3
        assert report.services == 2
        assert report.service_parts == 3
        assert report.common_services == 2
        assert report.skipped == {}
        store.close()

    def test_restore_replaces_existing_rows(self, populated_repo, codec):
        snapshot = codec.capture()
        populated_repo.create_customer("Extra", phone="9111111111")
        populated_repo.upsert_common_service("Wash", 100.0)

        codec.restore(snapshot)

        assert populated_repo.get_common_service_by_name("Wash") is None
        assert len(populated_repo.list_customers()) == 2

    def test_restored_service_keeps_sort_key_and_state(self, populated_repo, codec):
        service = populated_repo.list_services()[0]
        populated_repo.update_service_payment(
            service.id, 200.0, ServiceStatus.COMPLETED, "2026-01-12T10:00:00+00:00",
            300.0, PaymentStatus.PARTIAL,
        )
        text = codec.dumps(codec.capture())

        store, repo, other = _fresh()
        other.restore(other.loads(text))

        restored = [s for s in repo.list_services() if s.sort_key == service.sort_key][0]
        assert restored.status is ServiceStatus.COMPLETED
        assert restored.completed_on == "2026-01-12T10:00:00+00:00"
        assert restored.paid_amount == 200.0
        assert restored.outstanding_balance == 300.0
        assert restored.payment_status is PaymentStatus.PARTIAL
        assert repo.list_in_progress_services()[0].reg_number == "MH12CD0001"
        store.close()

    def test_legacy_document_parts_follow_their_service(self, codec, repo):
        legacy = {
            "customers": [{"CustomerID": 7, "Name": "Asha", "Phone": "9000000001"}],
            "vehicles": [{"RegNumber": "KA01AB1234", "CustomerID": 7, "VehicleName": "Splendor"}],
            "services": [
                {"ServiceLogID": 40, "RegNumber": "KA01AB1234", "TimestampKey": 1000,
                 "TotalAmount": 500, "PaidAmount": 0, "OutstandingBalance": 500,
                 "PaymentStatus": "Pending", "Status": "In Progress"},
                {"ServiceLogID": 42, "RegNumber": "KA01AB1234", "TimestampKey": 2000,
                 "TotalAmount": 150, "PaidAmount": 150, "OutstandingBalance": 0,
                 "PaymentStatus": "Paid", "Status": "Completed", "CompletedOn": "2025-12-01"},
            ],
            "serviceParts": [
                {"PartLogID": 1, "ServiceLogID": 42, "PartName": "Chain Lube", "Amount": 150},
                {"PartLogID": 2, "ServiceLogID": 40, "PartName": "Oil Change", "Amount": 500},
            ],
            "commonServices": [{"ServiceID": 3, "ServiceName": "Oil Change", "DefaultAmount": 500}],
            "userInfo": {"Name": "Kiran", "GarageName": "Kiran Bikes"},
        }

        codec.restore(codec.loads(json.dumps(legacy)))

        by_key = {s.sort_key: s for s in repo.list_services()}
        assert [p.name for p in repo.list_service_parts(by_key[2000].id)] == ["Chain Lube"]
        assert [p.name for p in repo.list_service_parts(by_key[1000].id)] == ["Oil Change"]
        assert repo.find_vehicle("KA01AB1234").owner_phone == "9000000001"
        assert repo.get_user_profile().garage_name == "Kiran Bikes"

    def test_orphans_are_skipped_and_counted(self, codec, repo):
        document = {
            "customers": [{"CustomerID": 1, "Name": "Asha"}],
            "vehicles": [
                {"RegNumber": "KA01AB1234", "CustomerID": 1},
                {"RegNumber": "GHOST", "CustomerID": 99},
            ],
            "services": [
                {"ServiceLogID": 5, "RegNumber": "KA01AB1234", "TotalAmount": 100},
                {"ServiceLogID": 6, "RegNumber": "GHOST", "TotalAmount": 100},
            ],
            "serviceParts": [
                {"ServiceLogID": 5, "PartName": "Wash", "Amount": 100},
                {"ServiceLogID": 77, "PartName": "Lost", "Amount": 10},
            ],
        }

        report = codec.restore(codec.loads(json.dumps(document)))

        assert report.skipped == {"vehicles": 1, "services": 1, "serviceParts": 1}
        assert report.total_skipped == 3
        assert [v.reg_number for v in repo.list_vehicles()] == ["KA01AB1234"]
        assert len(repo.list_all_service_parts()) == 1

    def test_failed_restore_keeps_previous_dataset(self, populated_repo, codec):
        before = _dataset(populated_repo)
        broken = {
            "customers": [
                {"CustomerID": 1, "Name": "A", "Phone": "9000000009"},
                {"CustomerID": 2, "Name": "B", "Phone": "9000000009"},
            ],
        }

        with pytest.raises(ConstraintViolation):
            codec.restore(codec.loads(json.dumps(broken)))

        assert _dataset(populated_repo) == before


class TestEncoding:

    @pytest.mark.parametrize("text", [
        "not json",
        "[]",
        '{"formatVersion": 99}',
        '{"vehicles": [{"RegNumber": "", "CustomerID": 1}]}',
        '{"services": [{"RegNumber": "X", "Status": "Cancelled"}]}',
    ])
    def test_bad_content_is_format_error(self, text):
        with pytest.raises(FormatError):
            SnapshotCodec.loads(text)

    def test_loads_accepts_bytes(self):
        snapshot = SnapshotCodec.loads(b'{"customers": [{"Name": "Asha"}]}')
        assert snapshot.customers[0].name == "Asha"
