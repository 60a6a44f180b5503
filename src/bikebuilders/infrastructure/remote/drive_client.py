"""
HTTP client for the remote file store (Google Drive v3 file API).

Only four operations are needed:
- search files by name, optionally inside a parent folder
- create a folder
- multipart create/update of a file's metadata and content
- download a file's content by id
"""

from __future__ import annotations

import json
import logging
import secrets
from dataclasses import dataclass
from typing import Optional, Protocol

import requests

from bikebuilders.domain.errors import AuthError, NetworkError

logger = logging.getLogger(__name__)

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
JSON_MIME_TYPE = "application/json"


@dataclass(frozen=True)
class RemoteFile:
    """A file or folder in the remote store."""
    id: str
    name: str
    mime_type: Optional[str] = None


class RemoteStorage(Protocol):
    """The remote store contract the sync orchestrator depends on."""

    def search(
        self,
        token: str,
        name: str,
        parent_id: Optional[str] = None,
        mime_type: Optional[str] = None,
    ) -> list[RemoteFile]:
        ...

    def create_folder(self, token: str, name: str) -> str:
        ...

    def upload(
        self,
        token: str,
        name: str,
        content: bytes,
        parent_id: Optional[str] = None,
        file_id: Optional[str] = None,
    ) -> str:
        ...

    def download(self, token: str, file_id: str) -> bytes:
        ...


def _quote(value: str) -> str:
    """Escape a literal for the Drive query language."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


class DriveClient:
    """
    requests-based implementation of ``RemoteStorage``.

    Errors:
    - 401/403 raise AuthError (token expired or scope missing)
    - any other non-2xx status or transport failure raises NetworkError
    """

    def __init__(
        self,
        api_base_url: str = "https://www.googleapis.com/drive/v3",
        upload_base_url: str = "https://www.googleapis.com/upload/drive/v3",
        timeout: int = 30,
        session: requests.Session | None = None,
    ):
        self.api_base_url = api_base_url.rstrip("/")
        self.upload_base_url = upload_base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _request(self, method: str, url: str, token: str, **kwargs) -> requests.Response:
        headers = kwargs.pop("headers", {})
        headers["Authorization"] = f"Bearer {token}"
        try:
            response = self.session.request(
                method, url, headers=headers, timeout=self.timeout, **kwargs
            )
        except requests.exceptions.RequestException as e:
            logger.warning("%s %s failed: %s", method, url, e)
            raise NetworkError(f"{method} {url} failed: {e}") from e

        if response.status_code in (401, 403):
            raise AuthError(f"Remote store rejected credentials ({response.status_code})")
        if not response.ok:
            raise NetworkError(
                f"{method} {url} returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        return response

    @staticmethod
    def _payload(response: requests.Response) -> dict:
        """Decode a JSON object reply; anything else is treated as a transport fault."""
        try:
            data = response.json()
        except ValueError as e:
            raise NetworkError(
                f"Expected JSON from remote store, got: {response.text[:200]!r}",
                status_code=response.status_code,
            ) from e
        if not isinstance(data, dict):
            raise NetworkError(
                f"Unexpected reply shape from remote store: {type(data).__name__}",
                status_code=response.status_code,
            )
        return data

    @classmethod
    def _file_id(cls, response: requests.Response) -> str:
        file_id = cls._payload(response).get("id")
        if not file_id:
            raise NetworkError("Remote store reply has no file id", status_code=response.status_code)
        return file_id

    def search(
        self,
        token: str,
        name: str,
        parent_id: Optional[str] = None,
        mime_type: Optional[str] = None,
    ) -> list[RemoteFile]:
        clauses = [f"name='{_quote(name)}'", "trashed=false"]
        if mime_type:
            clauses.append(f"mimeType='{_quote(mime_type)}'")
        if parent_id:
            clauses.append(f"'{_quote(parent_id)}' in parents")

        response = self._request(
            "GET",
            f"{self.api_base_url}/files",
            token,
            params={
                "q": " and ".join(clauses),
                "spaces": "drive",
                "fields": "files(id,name,mimeType)",
            },
        )
        files = self._payload(response).get("files") or []
        if not isinstance(files, list) or not all(isinstance(f, dict) and f.get("id") for f in files):
            raise NetworkError("Malformed file listing from remote store", status_code=response.status_code)
        return [RemoteFile(id=f["id"], name=f.get("name", name), mime_type=f.get("mimeType")) for f in files]

    def create_folder(self, token: str, name: str) -> str:
        response = self._request(
            "POST",
            f"{self.api_base_url}/files",
            token,
            json={"name": name, "mimeType": FOLDER_MIME_TYPE},
        )
        folder_id = self._file_id(response)
        logger.info("Created remote folder %s (%s)", name, folder_id)
        return folder_id

    def upload(
        self,
        token: str,
        name: str,
        content: bytes,
        parent_id: Optional[str] = None,
        file_id: Optional[str] = None,
    ) -> str:
        """
        Create a file (POST) or overwrite an existing one (PATCH).

        Parents are only sent on create; the API rejects them on update.
        """
        metadata = {"name": name, "mimeType": JSON_MIME_TYPE}
        if file_id is None and parent_id:
            metadata["parents"] = [parent_id]

        boundary = f"bikebuilders-{secrets.token_hex(12)}"
        body = b"".join([
            f"--{boundary}\r\n".encode(),
            f"Content-Type: {JSON_MIME_TYPE}; charset=UTF-8\r\n\r\n".encode(),
            json.dumps(metadata).encode(),
            f"\r\n--{boundary}\r\n".encode(),
            f"Content-Type: {JSON_MIME_TYPE}\r\n\r\n".encode(),
            content,
            f"\r\n--{boundary}--".encode(),
        ])

        if file_id:
            method, url = "PATCH", f"{self.upload_base_url}/files/{file_id}"
        else:
            method, url = "POST", f"{self.upload_base_url}/files"

        response = self._request(
            method,
            url,
            token,
            params={"uploadType": "multipart"},
            headers={"Content-Type": f"multipart/related; boundary={boundary}"},
            data=body,
        )
        return self._file_id(response)

    def download(self, token: str, file_id: str) -> bytes:
        response = self._request(
            "GET",
            f"{self.api_base_url}/files/{file_id}",
            token,
            params={"alt": "media"},
        )
        return response.content

    def close(self) -> None:
        """Close the session."""
        if self.session:
            self.session.close()
