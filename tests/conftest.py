"""
Shared fixtures for the BikeBuilders test suite.
"""

import pytest

from bikebuilders.application.snapshot_codec import SnapshotCodec
from bikebuilders.infrastructure.sqlite import GarageRepository, GarageStore


@pytest.fixture
def store():
    """In-memory store with the schema created."""
    garage_store = GarageStore(":memory:")
    garage_store.initialize_schema()
    yield garage_store
    garage_store.close()


@pytest.fixture
def repo(store):
    return GarageRepository(store)


@pytest.fixture
def codec(repo, store):
    return SnapshotCodec(repo, store)


@pytest.fixture
def populated_repo(repo):
    """A small garage: two owners, three vehicles, jobs with parts, a catalog."""
    asha = repo.create_customer("Asha", phone="9000000001", email="asha@example.com")
    ravi = repo.create_customer("Ravi", phone="9000000002", address="MG Road")
    repo.create_vehicle("KA01AB1234", asha, "Splendor")
    repo.create_vehicle("KA05XY9999", asha, "Activa", reminder_days=60)
    repo.create_vehicle("MH12CD0001", ravi, "Pulsar")

    first = repo.create_service("KA01AB1234", 12000, 500.0, "2026-01-10T09:00:00+00:00")
    repo.add_service_part(first, "Oil Change", 500.0)
    second = repo.create_service("MH12CD0001", 30000, 850.0, "2026-02-01T09:00:00+00:00")
    repo.add_service_part(second, "Chain Lube", 150.0)
    repo.add_service_part(second, "Brake Pads", 700.0)

    repo.upsert_common_service("Oil Change", 500.0)
    repo.upsert_common_service("Chain Lube", 150.0)
    return repo
