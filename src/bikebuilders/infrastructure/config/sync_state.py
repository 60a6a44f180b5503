"""
Persisted sync metadata.

A small JSON key/value file kept beside the database, outside the
relational store. Key names are the ones earlier releases used.
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

LAST_SYNC_KEY = "last_google_drive_sync"
AUTO_SYNC_ENABLED_KEY = "auto_sync_enabled"


class SyncStateStore:
    """Key/value persistence for last-sync time and the auto-sync flag."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable sync state %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, indent=2), encoding='utf-8')
        tmp.replace(self.path)

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._read().get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            self._write(data)

    # ------------------------------------------------------------------

    def get_last_sync_time(self) -> datetime | None:
        value = self.get(LAST_SYNC_KEY)
        if not value:
            return None
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            logger.warning("Ignoring malformed last sync time: %r", value)
            return None

    def set_last_sync_time(self, when: datetime) -> None:
        self.set(LAST_SYNC_KEY, when.isoformat())

    def is_auto_sync_enabled(self) -> bool:
        # Stored as the string "true"/"false" by earlier releases
        return str(self.get(AUTO_SYNC_ENABLED_KEY, "false")).lower() == "true"

    def set_auto_sync_enabled(self, enabled: bool) -> None:
        self.set(AUTO_SYNC_ENABLED_KEY, "true" if enabled else "false")
        logger.info("Auto sync: %s", "ENABLED" if enabled else "DISABLED")
