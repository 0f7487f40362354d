"""
Secure store for connection tokens and TLS client identities.

The login core only talks to the SecureStore protocol. FileSecretStore is
a file-backed implementation: Fernet-encrypted secrets and identity
descriptors live in one HMAC-protected JSON document, and each write replaces
the whole file so a single key is updated atomically.
"""

import base64
import os
from abc import abstractmethod
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .exceptions import StoreError
from .models import ClientIdentity
from .persistence import HmacJsonFile


@runtime_checkable
class SecureStore(Protocol):
    """Protocol defining the interface of the secure credential store."""

    @abstractmethod
    def store_secret(self, key: str, value: str) -> None:
        """
        Store a secret under a key, replacing any previous value.

        Raises:
            StoreError: If the secret cannot be persisted
        """
        ...

    @abstractmethod
    def load_secret(self, key: str) -> Optional[str]:
        """Return the secret stored under ``key``, or None."""
        ...

    @abstractmethod
    def delete_secret(self, key: str) -> None:
        """Remove the secret stored under ``key``; missing keys are ignored."""
        ...

    @abstractmethod
    def load_identity(self, name: str) -> Optional[ClientIdentity]:
        """Return the TLS client identity called ``name``, or None."""
        ...

    @abstractmethod
    def store_identity(self, identity: ClientIdentity) -> None:
        """Register a TLS client identity under its name."""
        ...


class FileSecretStore:
    """
    SecureStore keeping encrypted secrets in an HMAC-protected JSON file.

    Token values and identity passwords are encrypted with Fernet under a key
    derived from the store passphrase with PBKDF2-HMAC-SHA256 and a random
    per-file salt; only key names and certificate paths are stored in clear.
    """

    KDF_ITERATIONS = 480000
    SALT_BYTES = 16

    def __init__(
        self,
        file_path: Path,
        passphrase: str,
        kdf_iterations: int = KDF_ITERATIONS,
    ) -> None:
        """
        Initialize the store.

        Args:
            file_path: Path of the secrets file
            passphrase: Secret the file HMAC and the encryption key derive from
            kdf_iterations: PBKDF2 iteration count

        Raises:
            ValueError: If the passphrase is empty
        """
        if not passphrase:
            raise ValueError("Secret store passphrase cannot be empty")
        self._file = HmacJsonFile(file_path, passphrase)
        self._passphrase = passphrase
        self._kdf_iterations = kdf_iterations
        self._fernet: Optional[Fernet] = None
        self._salt: Optional[bytes] = None
        self._secrets: Optional[dict[str, str]] = None  # key -> Fernet token
        self._identities: Optional[dict[str, dict]] = None

    @property
    def file_path(self) -> Path:
        return self._file.file_path

    def _ensure_loaded(self) -> None:
        if self._secrets is not None and self._identities is not None:
            return
        data = self._file.load() or {}
        secrets = data.get("secrets", {})
        identities = data.get("identities", {})
        salt = data.get("salt")
        if (
            not isinstance(secrets, dict)
            or not isinstance(identities, dict)
            or not isinstance(salt, (str, type(None)))
        ):
            raise StoreError(
                code="parse_error",
                message="Secrets file has an unexpected layout",
                details={"file_path": str(self.file_path)},
            )
        try:
            self._salt = base64.b64decode(salt, validate=True) if salt else None
        except ValueError as e:
            raise StoreError(
                code="parse_error",
                message=f"Secrets file has an invalid salt: {e}",
                details={"file_path": str(self.file_path)},
            ) from e
        self._secrets = {str(k): str(v) for k, v in secrets.items()}
        self._identities = dict(identities)

    def _flush(self) -> None:
        self._file.save({
            "salt": base64.b64encode(self._salt).decode("ascii") if self._salt else None,
            "secrets": self._secrets or {},
            "identities": self._identities or {},
        })

    def _cipher(self) -> Fernet:
        if self._fernet is None:
            if self._salt is None:
                self._salt = os.urandom(self.SALT_BYTES)
            kdf = PBKDF2HMAC(
                algorithm=hashes.SHA256(),
                length=32,
                salt=self._salt,
                iterations=self._kdf_iterations,
            )
            key = base64.urlsafe_b64encode(kdf.derive(self._passphrase.encode("utf-8")))
            self._fernet = Fernet(key)
        return self._fernet

    def _encrypt(self, value: str) -> str:
        return self._cipher().encrypt(value.encode("utf-8")).decode("ascii")

    def _decrypt(self, token: str, name: str) -> str:
        try:
            return self._cipher().decrypt(token.encode("ascii")).decode("utf-8")
        except (InvalidToken, UnicodeError) as e:
            raise StoreError(
                code="decrypt_error",
                message=f"Unable to decrypt {name!r}",
                details={"file_path": str(self.file_path)},
            ) from e

    def store_secret(self, key: str, value: str) -> None:
        if not key:
            raise StoreError(code="invalid_key", message="Secret key cannot be empty")
        self._ensure_loaded()
        previous = self._secrets.get(key)
        self._secrets[key] = self._encrypt(value)
        try:
            self._flush()
        except StoreError:
            # Keep memory and disk in agreement
            if previous is None:
                self._secrets.pop(key, None)
            else:
                self._secrets[key] = previous
            raise

    def load_secret(self, key: str) -> Optional[str]:
        self._ensure_loaded()
        token = self._secrets.get(key)
        if token is None:
            return None
        return self._decrypt(token, key)

    def delete_secret(self, key: str) -> None:
        self._ensure_loaded()
        previous = self._secrets.pop(key, None)
        if previous is None:
            return
        try:
            self._flush()
        except StoreError:
            self._secrets[key] = previous
            raise

    def load_identity(self, name: str) -> Optional[ClientIdentity]:
        self._ensure_loaded()
        data = self._identities.get(name)
        if data is None:
            return None
        try:
            data = dict(data)
            if data.get("password") is not None:
                data["password"] = self._decrypt(data["password"], name)
            return ClientIdentity.from_dict(data)
        except (KeyError, TypeError, AttributeError) as e:
            raise StoreError(
                code="parse_error",
                message=f"Identity {name!r} is malformed: {e}",
                details={"identity": name},
            ) from e

    def store_identity(self, identity: ClientIdentity) -> None:
        self._ensure_loaded()
        record = identity.to_dict()
        if identity.password is not None:
            record["password"] = self._encrypt(identity.password)
        previous = self._identities.get(identity.name)
        self._identities[identity.name] = record
        try:
            self._flush()
        except StoreError:
            if previous is None:
                self._identities.pop(identity.name, None)
            else:
                self._identities[identity.name] = previous
            raise

    def identity_names(self) -> list[str]:
        self._ensure_loaded()
        return sorted(self._identities)
