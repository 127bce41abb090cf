"""
Encrypted storage for provider API keys.

Keys are encrypted with AES-256-CBC under a process-wide key, each save
drawing a fresh random IV that is stored next to the ciphertext. The store
is a JSON document in the shellai config directory:

    {"credentials": {"openai": {"apiKey": {"iv": "<hex>", "encrypted": "<hex>"}}}}

The default key is derived with scrypt from a fixed passphrase and salt, so
anyone with the file and this source can decrypt it. Pass `key_source` to
supply a key from somewhere else (a keyring, a user passphrase, ...).
"""

import json
import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Callable, Dict, List, Optional

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from .ai.llm import ProviderIdentity
from .config import config_dir, write_json_atomic
from .errors import VaultError

logger = logging.getLogger(__name__)

DEFAULT_PASSPHRASE = b"shellai-secret-key"
DEFAULT_SALT = b"salt"
KEY_LENGTH = 32
IV_LENGTH = 16


@lru_cache(maxsize=None)
def derive_default_key() -> bytes:
    """Derive the fixed process-wide key. scrypt is slow, so this runs once per process."""
    kdf = Scrypt(salt=DEFAULT_SALT, length=KEY_LENGTH, n=2**14, r=8, p=1)
    return kdf.derive(DEFAULT_PASSPHRASE)


@dataclass
class ProviderListing:
    configured: List[ProviderIdentity]
    unconfigured: List[ProviderIdentity]


class SecretVault:
    def __init__(self, path: Optional[Path] = None, key_source: Optional[Callable[[], bytes]] = None):
        self.path = Path(path) if path is not None else config_dir() / "credentials"
        self._key_source = key_source or derive_default_key
        self._key: Optional[bytes] = None
        self._corrupt = False

    @property
    def key(self) -> bytes:
        if self._key is None:
            key = self._key_source()
            if len(key) != KEY_LENGTH:
                raise VaultError(f"Vault key must be {KEY_LENGTH} bytes, got {len(key)}")
            self._key = key
        return self._key

    def _encrypt(self, plaintext: str) -> Dict[str, str]:
        iv = os.urandom(IV_LENGTH)
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()
        encryptor = Cipher(algorithms.AES(self.key), modes.CBC(iv)).encryptor()
        encrypted = encryptor.update(padded) + encryptor.finalize()
        return {"iv": iv.hex(), "encrypted": encrypted.hex()}

    def _decrypt(self, record: Dict[str, str]) -> str:
        try:
            iv = bytes.fromhex(record["iv"])
            encrypted = bytes.fromhex(record["encrypted"])
            decryptor = Cipher(algorithms.AES(self.key), modes.CBC(iv)).decryptor()
            padded = decryptor.update(encrypted) + decryptor.finalize()
            unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
            return (unpadder.update(padded) + unpadder.finalize()).decode("utf-8")
        except (KeyError, TypeError, ValueError) as e:
            # ValueError covers bad hex, a bad IV length, bad padding and bad UTF-8.
            raise VaultError(
                f"Stored API key could not be decrypted: {e}",
                hint="Set the key again with 'shellai config'.",
            ) from e

    def _read(self) -> Dict[str, Dict]:
        self._corrupt = False
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            self._corrupt = True
            logger.warning("Credential store %s is unreadable, treating it as empty: %s", self.path, e)
            return {}

        credentials = data.get("credentials") if isinstance(data, dict) else None
        if not isinstance(credentials, dict):
            return {}
        return credentials

    def _write(self, credentials: Dict[str, Dict]):
        if self._corrupt and self.path.exists():
            backup = self.path.with_name(self.path.name + ".corrupt")
            os.replace(self.path, backup)
            logger.warning("Moved unreadable credential store to %s", backup)
            self._corrupt = False
        write_json_atomic(self.path, {"credentials": credentials})

    def save(self, provider: ProviderIdentity, api_key: str):
        """Encrypt and store `api_key`, replacing any earlier record for `provider`."""
        provider = ProviderIdentity(provider)
        credentials = self._read()
        credentials[provider.value] = {"apiKey": self._encrypt(api_key)}
        self._write(credentials)
        logger.debug("Saved API key for %s", provider.value)

    def get(self, provider: ProviderIdentity) -> Optional[str]:
        """Return the decrypted key, or None if none was ever saved."""
        record = self._read().get(ProviderIdentity(provider).value)
        if not isinstance(record, dict) or not record.get("apiKey"):
            return None
        return self._decrypt(record["apiKey"])

    def list_providers(self) -> ProviderListing:
        credentials = self._read()
        configured = [
            p for p in ProviderIdentity if isinstance(credentials.get(p.value), dict) and credentials[p.value].get("apiKey")
        ]
        unconfigured = [p for p in ProviderIdentity if p not in configured]
        return ProviderListing(configured, unconfigured)
