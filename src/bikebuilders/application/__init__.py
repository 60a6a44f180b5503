"""
Application layer package.

Services that orchestrate the domain and infrastructure layers.
"""

from bikebuilders.application.container import Container
from bikebuilders.application.export_service import FilePicker, LocalExportService, ShareTarget
from bikebuilders.application.snapshot_codec import RestoreReport, SnapshotCodec
from bikebuilders.application.sync_service import RemoteSyncService, Session
from bikebuilders.application.workshop_service import WorkshopService

__all__ = [
    "Container",
    "FilePicker",
    "LocalExportService",
    "ShareTarget",
    "RestoreReport",
    "SnapshotCodec",
    "RemoteSyncService",
    "Session",
    "WorkshopService",
]
