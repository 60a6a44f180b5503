"""
Remote Sync Service.

Keeps exactly one backup document in a remote folder current with the
local dataset. Orchestrates:
- the remote session (sign in, silent renewal, sign out)
- find-or-create of the backup folder, memoized per session
- upload (create or overwrite) and download+restore of the document
- the persisted auto-sync flag and last-sync timestamp
- fire-and-forget auto-sync on a single background worker

Every sync operation returns a Success/Failure result instead of raising.
At most one upload/download runs at a time; an overlapping call fails
immediately with a BUSY result.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from bikebuilders.application.snapshot_codec import SnapshotCodec
from bikebuilders.domain.config import RemoteSettings
from bikebuilders.domain.errors import (
    AuthError,
    BikeBuildersError,
    FormatError,
    NetworkError,
)
from bikebuilders.domain.state_machine import SessionEvent, SessionState, next_session_state
from bikebuilders.infrastructure.config.sync_state import SyncStateStore
from bikebuilders.infrastructure.credentials.token_cache import TokenCache
from bikebuilders.infrastructure.remote.auth import AccessCredential, CredentialProvider
from bikebuilders.infrastructure.remote.drive_client import FOLDER_MIME_TYPE, RemoteStorage
from bikebuilders.infrastructure.results import (
    Failure,
    Result,
    Success,
    SyncErrorKind,
    SyncFailure,
    SyncResult,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Session:
    """An authenticated remote session."""
    account: Optional[str]
    signed_in_at: datetime


def _failure(kind: SyncErrorKind, message: str, **context) -> Failure[SyncFailure]:
    return Failure(
        error=SyncFailure(kind, message),
        context=context or None,
        recoverable=kind in (SyncErrorKind.NETWORK, SyncErrorKind.BUSY),
    )


class RemoteSyncService:
    """
    Orchestrates remote backup of the local dataset.

    Usage:
        sync = RemoteSyncService(codec, DriveClient(), provider, state_store, settings.remote)
        if sync.sign_in().ok:
            result = sync.upload_backup()
            if not result.ok:
                print(result.error)
    """

    def __init__(
        self,
        codec: SnapshotCodec,
        storage: RemoteStorage,
        credential_provider: CredentialProvider,
        state_store: SyncStateStore,
        settings: RemoteSettings | None = None,
        token_cache: TokenCache | None = None,
    ):
        self.codec = codec
        self.storage = storage
        self.credential_provider = credential_provider
        self.state_store = state_store
        self.settings = settings or RemoteSettings()
        self.token_cache = token_cache

        self._state = SessionState.SIGNED_OUT
        self._credential: AccessCredential | None = None
        self._session: Session | None = None
        self._folder_id: str | None = None

        self._state_lock = threading.RLock()
        self._folder_lock = threading.Lock()
        self._sync_lock = threading.Lock()
        self._executor: ThreadPoolExecutor | None = None

        self.last_auto_sync: SyncResult | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session(self) -> Session | None:
        return self._session

    def _transition(self, event: SessionEvent) -> None:
        with self._state_lock:
            previous = self._state
            self._state = next_session_state(previous, event)
            logger.debug("Session %s -> %s (%s)", previous.value, self._state.value, event.value)

    # ========================================================================
    # Session
    # ========================================================================

    def sign_in(self) -> Result[Session, SyncFailure]:
        """Obtain a credential. Idempotent while signed in."""
        with self._state_lock:
            if self._session is not None:
                return Success(self._session)

            self._transition(SessionEvent.SIGN_IN_STARTED)
            try:
                credential = self.credential_provider.acquire()
            except (AuthError, NetworkError) as e:
                self._transition(SessionEvent.SIGN_IN_FAILED)
                logger.warning("Sign-in failed: %s", e)
                return _failure(SyncErrorKind.AUTH, str(e))

            session = self._start_session(credential)
            self._persist_credential(credential)
            logger.info("Signed in to remote storage")
            return Success(session)

    def restore_session(self) -> bool:
        """
        Resume a session from the encrypted token cache.

        Returns:
            True if a usable (possibly renewed) credential was restored
        """
        with self._state_lock:
            if self._session is not None:
                return True
            if self.token_cache is None:
                return False
            data = self.token_cache.load()
            if not data:
                return False
            try:
                credential = AccessCredential.from_dict(data)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Ignoring malformed cached credential: %s", e)
                self.token_cache.clear()
                return False

            self._transition(SessionEvent.SIGN_IN_STARTED)
            self._start_session(credential)
            logger.debug("Restored cached remote session")
            return self.is_signed_in()

    def _start_session(self, credential: AccessCredential) -> Session:
        self._credential = credential
        self._folder_id = None
        self._session = Session(
            account=credential.account,
            signed_in_at=datetime.now(timezone.utc),
        )
        self._transition(SessionEvent.SIGN_IN_SUCCEEDED)
        return self._session

    def _persist_credential(self, credential: AccessCredential) -> None:
        if self.token_cache is not None:
            self.token_cache.save(credential.to_dict())

    def _end_session(self, event: SessionEvent) -> None:
        with self._state_lock:
            self._credential = None
            self._session = None
            self._folder_id = None
            self._transition(event)
            if self.token_cache is not None:
                self.token_cache.clear()

    def sign_out(self) -> None:
        """Discard the credential, the cached folder id and the token cache."""
        self._end_session(SessionEvent.SIGNED_OUT)
        logger.info("Signed out of remote storage")

    def _expire(self, reason: str) -> None:
        logger.warning("Remote session ended: %s", reason)
        with self._state_lock:
            if self._state in (SessionState.SIGNED_IN, SessionState.SYNCING):
                self._end_session(SessionEvent.SESSION_EXPIRED)
            else:
                self._end_session(SessionEvent.SIGNED_OUT)

    def is_signed_in(self) -> bool:
        """True while the session holds a valid credential; renews silently when possible."""
        with self._state_lock:
            credential = self._credential
            if credential is None:
                return False
            if not credential.is_expired():
                return True
            if not self.credential_provider.supports_refresh:
                self._expire("access token expired")
                return False
            try:
                renewed = self.credential_provider.refresh(credential)
            except (AuthError, NetworkError) as e:
                self._expire(f"renewal failed: {e}")
                return False
            self._credential = renewed
            self._persist_credential(renewed)
            logger.debug("Access token renewed")
            return True

    # ========================================================================
    # Backup folder
    # ========================================================================

    def resolve_backup_container(self) -> str:
        """
        Find or create the backup folder; memoized for the session.

        Raises:
            AuthError: If not signed in or the credential is rejected
            NetworkError: On transport or HTTP failure
        """
        with self._state_lock:
            credential = self._credential if self.is_signed_in() else None
        if credential is None:
            raise AuthError("Not signed in")
        return self._resolve_folder(credential.access_token)

    def _resolve_folder(self, token: str) -> str:
        with self._folder_lock:
            if self._folder_id is not None:
                return self._folder_id

            name = self.settings.folder_name
            found = self.storage.search(token, name, mime_type=FOLDER_MIME_TYPE)
            if found:
                folder_id = found[0].id
                logger.debug("Found backup folder %s (%s)", name, folder_id)
            else:
                folder_id = self.storage.create_folder(token, name)
            self._folder_id = folder_id
            return folder_id

    # ========================================================================
    # Upload / Download
    # ========================================================================

    def upload_backup(self) -> SyncResult:
        """Capture the dataset and create or overwrite the remote document."""
        return self._guarded("upload", self._upload)

    def download_backup(self) -> SyncResult:
        """Fetch the remote document and restore it over the local dataset."""
        return self._guarded("download", self._download)

    def _guarded(self, name: str, operation: Callable[[str], SyncResult]) -> SyncResult:
        if not self._sync_lock.acquire(blocking=False):
            logger.info("Skipping %s: another sync is in progress", name)
            return _failure(SyncErrorKind.BUSY, "Another sync is in progress")
        try:
            # A concurrent sign_out must land before the check or after SYNC_STARTED
            with self._state_lock:
                credential = self._credential if self.is_signed_in() else None
                if credential is None:
                    return _failure(SyncErrorKind.AUTH, "Not signed in")
                self._transition(SessionEvent.SYNC_STARTED)
            try:
                return operation(credential.access_token)
            except AuthError as e:
                self._expire(str(e))
                return _failure(SyncErrorKind.AUTH, str(e))
            except NetworkError as e:
                logger.warning("%s failed: %s", name.capitalize(), e)
                return _failure(SyncErrorKind.NETWORK, str(e), status_code=e.status_code)
            except FormatError as e:
                logger.warning("%s failed: %s", name.capitalize(), e)
                return _failure(SyncErrorKind.FORMAT, str(e))
            except (BikeBuildersError, sqlite3.Error) as e:
                logger.error("%s failed in the local store: %s", name.capitalize(), e)
                return _failure(SyncErrorKind.STORE, str(e))
            finally:
                with self._state_lock:
                    if self._state is SessionState.SYNCING:
                        self._transition(SessionEvent.SYNC_FINISHED)
        finally:
            self._sync_lock.release()

    def _upload(self, token: str) -> SyncResult:
        snapshot = self.codec.capture()
        content = self.codec.dumps(snapshot).encode("utf-8")

        folder_id = self._resolve_folder(token)
        file_name = self.settings.backup_file_name
        existing = self.storage.search(token, file_name, parent_id=folder_id)
        file_id = self.storage.upload(
            token,
            file_name,
            content,
            parent_id=folder_id,
            file_id=existing[0].id if existing else None,
        )

        synced_at = datetime.now(timezone.utc)
        self.state_store.set_last_sync_time(synced_at)
        logger.info(
            "%s backup %s (%d bytes)",
            "Updated" if existing else "Created", file_name, len(content),
        )
        return Success(
            file_id,
            metadata={"created": not existing, "counts": snapshot.counts(), "synced_at": synced_at},
        )

    def _download(self, token: str) -> SyncResult:
        folder_id = self._resolve_folder(token)
        file_name = self.settings.backup_file_name
        found = self.storage.search(token, file_name, parent_id=folder_id)
        if not found:
            logger.info("No backup %s in remote folder", file_name)
            return _failure(SyncErrorKind.NOT_FOUND, f"No backup named {file_name}")

        content = self.storage.download(token, found[0].id)
        snapshot = self.codec.loads(content)
        report = self.codec.restore(snapshot)
        return Success(report, metadata={"file_id": found[0].id})

    # ========================================================================
    # Sync state and auto-sync
    # ========================================================================

    def set_auto_sync_enabled(self, enabled: bool) -> None:
        self.state_store.set_auto_sync_enabled(enabled)
        logger.info("Auto-sync %s", "enabled" if enabled else "disabled")

    def is_auto_sync_enabled(self) -> bool:
        return self.state_store.is_auto_sync_enabled()

    def get_last_sync_time(self) -> datetime | None:
        return self.state_store.get_last_sync_time()

    def auto_sync(self) -> SyncResult:
        """Upload when auto-sync is on and a session exists; otherwise a no-op failure."""
        if not self.is_auto_sync_enabled():
            return _failure(SyncErrorKind.DISABLED, "Auto-sync is disabled")
        if self._credential is None:
            return _failure(SyncErrorKind.AUTH, "Not signed in")
        return self.upload_backup()

    def trigger_auto_sync(self) -> Future:
        """
        Run ``auto_sync`` on the background worker.

        The caller never waits on or sees the outcome; it is logged and
        kept in ``last_auto_sync``.
        """
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="auto-sync")
        return self._executor.submit(self._run_auto_sync)

    def _run_auto_sync(self) -> SyncResult:
        try:
            result = self.auto_sync()
        except Exception:
            logger.exception("Auto-sync crashed")
            raise
        self.last_auto_sync = result
        if result.ok:
            logger.debug("Auto-sync uploaded backup")
        elif result.error.kind in (SyncErrorKind.DISABLED, SyncErrorKind.AUTH):
            logger.debug("Auto-sync skipped: %s", result.error)
        else:
            logger.warning("Auto-sync failed: %s", result.error)
        return result

    def shutdown(self, wait: bool = True) -> None:
        """Stop the auto-sync worker."""
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None
