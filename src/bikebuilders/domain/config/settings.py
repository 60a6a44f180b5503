"""
Application settings domain model.

Controls where data lives locally and how the remote backup is reached.
"""

from typing import Optional

from pydantic import BaseModel, Field, SecretStr


class RemoteSettings(BaseModel):
    """
    Remote backup settings.

    Names default to the values earlier releases used so an existing
    backup folder is found again.
    """

    folder_name: str = Field(
        default="BikeBuilders",
        description="Name of the remote folder that holds the backup document",
        min_length=1,
    )

    backup_file_name: str = Field(
        default="bikebuilders_backup.json",
        description="Fixed name of the backup document inside the folder",
        min_length=1,
    )

    api_base_url: str = Field(
        default="https://www.googleapis.com/drive/v3",
        description="Metadata endpoint of the remote file API",
    )

    upload_base_url: str = Field(
        default="https://www.googleapis.com/upload/drive/v3",
        description="Upload endpoint of the remote file API",
    )

    token_url: str = Field(
        default="https://oauth2.googleapis.com/token",
        description="OAuth2 token endpoint used for silent renewal",
    )

    http_timeout: int = Field(
        default=30,
        description="Timeout in seconds for each remote request",
        ge=1,
        le=300,
    )

    client_id: Optional[str] = Field(None, description="OAuth client id")
    client_secret: Optional[SecretStr] = Field(None, description="OAuth client secret")
    refresh_token: Optional[SecretStr] = Field(
        None, description="Refresh token obtained by the consent flow"
    )
    access_token: Optional[SecretStr] = Field(
        None, description="Pre-obtained access token (no silent renewal)"
    )
    token_passphrase: Optional[SecretStr] = Field(
        None, description="Passphrase for the encrypted token cache; no cache when unset"
    )


class AppSettings(BaseModel):
    """Top-level settings for the local store, exports and remote backup."""

    data_dir: str = Field(
        default="./data",
        description="Directory holding the database and sync state",
    )

    database_name: str = Field(default="bikeBuilders.db", min_length=1)

    export_dir: str = Field(
        default="./exports",
        description="Directory where shareable export files are written",
    )

    log_file: Optional[str] = Field(None, description="Optional log file path")

    remote: RemoteSettings = RemoteSettings()
