"""
Encrypted persistence of the remote access credential.

Keeps a signed-in session across launches. The credential is encrypted
with Fernet using a key derived from a passphrase (PBKDF2-SHA256) and a
per-install salt. Without a passphrase nothing is written to disk.
"""

from __future__ import annotations

import base64
import json
import logging
import secrets
from pathlib import Path
from typing import Any, Dict, Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

logger = logging.getLogger(__name__)


class TokenCache:
    """
    Fernet-encrypted credential file.

    Usage:
        cache = TokenCache(Path("data/credentials"), passphrase="...")
        cache.save({"access_token": "...", "expires_at": "..."})
        data = cache.load()
    """

    # Key derivation parameters
    SALT_LENGTH = 32
    ITERATIONS = 100000
    KEY_LENGTH = 32
    FILENAME = "drive_token.enc"

    def __init__(self, directory: Path, passphrase: Optional[str]):
        """
        Args:
            directory: Directory for the salt and the encrypted token
            passphrase: Secret used to derive the encryption key
        """
        self.directory = Path(directory)
        self.passphrase = passphrase
        self._encryption_key: Optional[bytes] = None

    @property
    def enabled(self) -> bool:
        return bool(self.passphrase)

    @property
    def token_path(self) -> Path:
        return self.directory / self.FILENAME

    def _derive_key(self, password: str, salt: bytes) -> bytes:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=self.KEY_LENGTH,
            salt=salt,
            iterations=self.ITERATIONS,
        )
        return base64.urlsafe_b64encode(kdf.derive(password.encode()))

    def _get_or_create_salt(self) -> bytes:
        salt_file = self.directory / ".salt"
        if salt_file.exists():
            return salt_file.read_bytes()
        salt = secrets.token_bytes(self.SALT_LENGTH)
        salt_file.parent.mkdir(parents=True, exist_ok=True)
        salt_file.write_bytes(salt)
        logger.info("Created new salt file")
        return salt

    def _fernet(self) -> Fernet:
        if self._encryption_key is None:
            if not self.passphrase:
                raise ValueError("Passphrase required for token encryption")
            self._encryption_key = self._derive_key(self.passphrase, self._get_or_create_salt())
        return Fernet(self._encryption_key)

    def save(self, data: Dict[str, Any]) -> None:
        """Encrypt and write the credential. No-op when disabled."""
        if not self.enabled:
            return
        encrypted = self._fernet().encrypt(json.dumps(data).encode())
        self.directory.mkdir(parents=True, exist_ok=True)
        self.token_path.write_bytes(encrypted)
        logger.debug("Saved encrypted credential to %s", self.token_path)

    def load(self) -> Optional[Dict[str, Any]]:
        """
        Read and decrypt the credential.

        Returns:
            The stored data, or None when disabled, absent or unreadable
        """
        if not self.enabled or not self.token_path.exists():
            return None
        try:
            decrypted = self._fernet().decrypt(self.token_path.read_bytes())
            return json.loads(decrypted.decode())
        except (InvalidToken, ValueError) as e:
            logger.warning("Discarding unreadable credential cache: %s", e)
            return None

    def clear(self) -> None:
        """Remove the stored credential (the salt stays)."""
        if self.token_path.exists():
            self.token_path.unlink()
            logger.debug("Removed credential cache")
