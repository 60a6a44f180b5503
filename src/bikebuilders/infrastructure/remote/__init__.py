"""
Remote storage infrastructure package.

HTTP client for the remote file store and the credential providers it uses.
"""

from .auth import (
    AccessCredential,
    CredentialProvider,
    RefreshTokenProvider,
    StaticTokenProvider,
)
from .drive_client import (
    FOLDER_MIME_TYPE,
    DriveClient,
    RemoteFile,
    RemoteStorage,
)

__all__ = [
    "AccessCredential",
    "CredentialProvider",
    "RefreshTokenProvider",
    "StaticTokenProvider",
    "FOLDER_MIME_TYPE",
    "DriveClient",
    "RemoteFile",
    "RemoteStorage",
]
