"""
Dependency injection container for the application.

Builds the store, repository and services once from the settings and
hands the same instances to every consumer.
"""

import logging
from pathlib import Path
from typing import Optional

from ..domain.config import AppSettings
from ..infrastructure.config.repository import SettingsRepository
from ..infrastructure.config.sync_state import SyncStateStore
from ..infrastructure.credentials.token_cache import TokenCache
from ..infrastructure.remote.auth import (
    CredentialProvider,
    RefreshTokenProvider,
    StaticTokenProvider,
)
from ..infrastructure.remote.drive_client import DriveClient
from ..infrastructure.sqlite.repository import GarageRepository
from ..infrastructure.sqlite.store import GarageStore
from .export_service import LocalExportService
from .snapshot_codec import SnapshotCodec
from .sync_service import RemoteSyncService
from .workshop_service import WorkshopService

logger = logging.getLogger(__name__)

SYNC_STATE_FILENAME = "sync_state.json"


def _secret(value) -> Optional[str]:
    return value.get_secret_value() if value is not None else None


class Container:
    """
    Dependency injection container.

    Usage:
        container = Container(Path("config"))
        container.workshop_service.register_vehicle("KA01AB1234", "Asha")
        container.close()
    """

    def __init__(self, config_dir: Optional[Path] = None, settings: Optional[AppSettings] = None):
        """
        Initialize the container.

        Args:
            config_dir: Directory holding bikebuilders.json
            settings: Explicit settings (skips loading from config_dir)
        """
        self.config_dir = Path(config_dir) if config_dir else Path.cwd() / "config"
        self._settings_repository: Optional[SettingsRepository] = None
        self._settings = settings

        self._store: Optional[GarageStore] = None
        self._repository: Optional[GarageRepository] = None
        self._codec: Optional[SnapshotCodec] = None
        self._sync_service: Optional[RemoteSyncService] = None
        self._export_service: Optional[LocalExportService] = None
        self._workshop_service: Optional[WorkshopService] = None

    @property
    def settings_repository(self) -> SettingsRepository:
        if self._settings_repository is None:
            self._settings_repository = SettingsRepository(self.config_dir)
        return self._settings_repository

    @property
    def settings(self) -> AppSettings:
        """Get the application settings (loaded on first use)."""
        if self._settings is None:
            self._settings = self.settings_repository.load_settings()
        return self._settings

    @property
    def data_dir(self) -> Path:
        return Path(self.settings.data_dir)

    @property
    def store(self) -> GarageStore:
        """Get the SQLite store, schema initialized."""
        if self._store is None:
            store = GarageStore(self.data_dir / self.settings.database_name)
            store.initialize_schema()
            self._store = store
        return self._store

    @property
    def repository(self) -> GarageRepository:
        if self._repository is None:
            self._repository = GarageRepository(self.store)
        return self._repository

    @property
    def codec(self) -> SnapshotCodec:
        if self._codec is None:
            self._codec = SnapshotCodec(self.repository, self.store)
        return self._codec

    def _credential_provider(self) -> CredentialProvider:
        remote = self.settings.remote
        refresh_token = _secret(remote.refresh_token)
        if refresh_token and remote.client_id:
            return RefreshTokenProvider(
                client_id=remote.client_id,
                refresh_token=refresh_token,
                client_secret=_secret(remote.client_secret),
                token_url=remote.token_url,
                timeout=remote.http_timeout,
            )
        # An empty static token fails sign-in with an AuthError
        return StaticTokenProvider(_secret(remote.access_token) or "")

    @property
    def sync_service(self) -> RemoteSyncService:
        """Get the remote sync service."""
        if self._sync_service is None:
            remote = self.settings.remote
            self._sync_service = RemoteSyncService(
                codec=self.codec,
                storage=DriveClient(
                    api_base_url=remote.api_base_url,
                    upload_base_url=remote.upload_base_url,
                    timeout=remote.http_timeout,
                ),
                credential_provider=self._credential_provider(),
                state_store=SyncStateStore(self.data_dir / SYNC_STATE_FILENAME),
                settings=remote,
                token_cache=TokenCache(
                    self.data_dir / "credentials", _secret(remote.token_passphrase)
                ),
            )
        return self._sync_service

    @property
    def export_service(self) -> LocalExportService:
        if self._export_service is None:
            self._export_service = LocalExportService(self.codec, Path(self.settings.export_dir))
        return self._export_service

    @property
    def workshop_service(self) -> WorkshopService:
        """Get the workshop service; every mutation triggers background auto-sync."""
        if self._workshop_service is None:
            self._workshop_service = WorkshopService(
                self.repository,
                on_change=self.sync_service.trigger_auto_sync,
            )
        return self._workshop_service

    def close(self) -> None:
        """Stop background work and close the store."""
        if self._sync_service is not None:
            self._sync_service.shutdown(wait=True)
        if self._store is not None:
            self._store.close()
        logger.debug("Container closed")
