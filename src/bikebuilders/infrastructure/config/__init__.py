"""
Configuration infrastructure package.

Settings file loading and persisted sync metadata.
"""

from .repository import SettingsRepository
from .sync_state import SyncStateStore

__all__ = [
    "SettingsRepository",
    "SyncStateStore",
]
