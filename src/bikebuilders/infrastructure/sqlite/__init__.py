"""
SQLite infrastructure package.

Provides the local store and the typed repository over it.
"""

from bikebuilders.infrastructure.sqlite.store import GarageStore
from bikebuilders.infrastructure.sqlite.repository import GarageRepository
from bikebuilders.infrastructure.sqlite.schema import (
    SCHEMA_VERSION,
    initialize_schema,
)

__all__ = [
    "GarageStore",
    "GarageRepository",
    "SCHEMA_VERSION",
    "initialize_schema",
]
