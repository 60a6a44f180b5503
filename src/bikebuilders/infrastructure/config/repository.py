"""
Settings repository for loading and saving config files.

This module provides the infrastructure layer for configuration persistence.
It handles file I/O, environment overrides and basic validation.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict

from pydantic import ValidationError as PydanticValidationError

from bikebuilders.domain.config import AppSettings

logger = logging.getLogger(__name__)

SETTINGS_FILENAME = "bikebuilders"

# Environment variable -> (section, key). Section None means top level.
ENV_OVERRIDES = {
    "BIKEBUILDERS_DATA_DIR": (None, "data_dir"),
    "BIKEBUILDERS_EXPORT_DIR": (None, "export_dir"),
    "BIKEBUILDERS_LOG_FILE": (None, "log_file"),
    "BIKEBUILDERS_DRIVE_FOLDER": ("remote", "folder_name"),
    "BIKEBUILDERS_CLIENT_ID": ("remote", "client_id"),
    "BIKEBUILDERS_CLIENT_SECRET": ("remote", "client_secret"),
    "BIKEBUILDERS_REFRESH_TOKEN": ("remote", "refresh_token"),
    "BIKEBUILDERS_ACCESS_TOKEN": ("remote", "access_token"),
    "BIKEBUILDERS_TOKEN_PASSPHRASE": ("remote", "token_passphrase"),
}


class SettingsRepository:
    """
    Repository for configuration file operations.

    Settings come from ``<config_dir>/bikebuilders.json`` when present,
    then ``BIKEBUILDERS_*`` environment variables, then model defaults.
    """

    def __init__(self, config_dir: Path):
        """
        Initialize the settings repository.

        Args:
            config_dir: Base directory for configuration files
        """
        self.config_dir = Path(config_dir)

    def load_json_file(self, filename: str) -> Dict[str, Any]:
        """
        Load a JSON file from the config directory.

        Args:
            filename: Name of the file to load (without extension)

        Returns:
            Parsed JSON data as dictionary

        Raises:
            FileNotFoundError: If file doesn't exist
            ValueError: If file cannot be parsed
        """
        json_path = self.config_dir / f"{filename}.json"
        if not json_path.exists():
            raise FileNotFoundError(f"Config file '{filename}.json' not found in {self.config_dir}")
        try:
            with open(json_path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            logger.error("Failed to parse JSON file %s: %s", json_path, e)
            raise ValueError(f"Invalid JSON in {json_path}") from e

    def save_json_file(self, filename: str, data: Dict[str, Any]) -> None:
        """
        Save data to a JSON file in the config directory.

        Args:
            filename: Name of the file to save (without extension)
            data: Data to save
        """
        self.config_dir.mkdir(parents=True, exist_ok=True)
        filepath = self.config_dir / f"{filename}.json"
        with open(filepath, 'w', encoding='utf-8') as f:
            f.write(json.dumps(data, indent=2, ensure_ascii=False))
        logger.info("Saved config file: %s", filepath)

    def load_settings(self) -> AppSettings:
        """
        Load application settings.

        Returns:
            Parsed AppSettings domain model

        Raises:
            ValueError: If the settings file or an override is invalid
        """
        try:
            data = self.load_json_file(SETTINGS_FILENAME)
            logger.debug("Loaded settings from %s", self.config_dir)
        except FileNotFoundError:
            data = {}
            logger.debug("No settings file in %s, using defaults", self.config_dir)

        for env_name, (section, key) in ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if not value:
                continue
            target = data.setdefault(section, {}) if section else data
            target[key] = value
            logger.debug("Settings override from %s", env_name)

        try:
            return AppSettings(**data)
        except PydanticValidationError as e:
            logger.error("Failed to load settings: %s", e)
            raise ValueError(f"Invalid settings: {e}") from e

    def save_settings(self, settings: AppSettings) -> None:
        """Persist settings, leaving secrets out of the file."""
        data = settings.model_dump(
            exclude={"remote": {"client_secret", "refresh_token", "access_token", "token_passphrase"}},
        )
        self.save_json_file(SETTINGS_FILENAME, data)
