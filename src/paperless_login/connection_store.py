"""
Connection store for validated server connections.

Stored connections are kept in an HMAC-protected JSON file keyed by their
token key, so there is at most one record per base URL and client identity.
Tokens never enter this file; they live in the secure store and are removed
together with their record.
"""

from pathlib import Path
from typing import Optional

from .exceptions import StoreError
from .models import StoredConnection, token_key_for
from .persistence import HmacJsonFile
from .secret_store import SecureStore


class ConnectionStore:
    """
    Persistent list of StoredConnection records.

    Records are loaded lazily on first access and the whole file is rewritten
    on every change.
    """

    def __init__(
        self,
        file_path: Path,
        hmac_secret: str,
        secret_store: Optional[SecureStore] = None,
    ) -> None:
        """
        Initialize the connection store.

        Args:
            file_path: Path to the connections file (JSON format)
            hmac_secret: Secret key for HMAC computation
            secret_store: Secure store holding the tokens of the records
        """
        self._file = HmacJsonFile(file_path, hmac_secret)
        self._secret_store = secret_store
        self._connections: Optional[dict[str, StoredConnection]] = None

    @property
    def file_path(self) -> Path:
        return self._file.file_path

    def _load(self) -> dict[str, StoredConnection]:
        if self._connections is not None:
            return self._connections

        data = self._file.load() or {}
        records = data.get("connections", [])
        if not isinstance(records, list):
            raise StoreError(
                code="parse_error",
                message="Connections file has an unexpected layout",
                details={"file_path": str(self.file_path)},
            )

        connections: dict[str, StoredConnection] = {}
        for record in records:
            try:
                connection = StoredConnection.from_dict(record)
            except (KeyError, TypeError, ValueError) as e:
                raise StoreError(
                    code="parse_error",
                    message=f"Stored connection is malformed: {e}",
                    details={"file_path": str(self.file_path)},
                ) from e
            connections[connection.token_key] = connection

        self._connections = connections
        return connections

    def _save(self) -> None:
        self._file.save({
            "connections": [c.to_dict() for c in (self._connections or {}).values()],
        })

    def list(self) -> list[StoredConnection]:
        """Return all stored connections sorted by URL."""
        return sorted(self._load().values(), key=lambda c: (c.url, c.identity_name or ""))

    def get(self, url: str, identity_name: Optional[str] = None) -> Optional[StoredConnection]:
        """Return the record for a base URL and identity, or None."""
        return self._load().get(token_key_for(url, identity_name))

    def add(self, connection: StoredConnection) -> None:
        """
        Add or replace a stored connection.

        Raises:
            StoreError: If the file cannot be written
        """
        connections = self._load()
        previous = connections.get(connection.token_key)
        connections[connection.token_key] = connection
        try:
            self._save()
        except StoreError:
            if previous is None:
                connections.pop(connection.token_key, None)
            else:
                connections[connection.token_key] = previous
            raise

    def remove(self, url: str, identity_name: Optional[str] = None) -> bool:
        """
        Remove a stored connection and its token.

        The token goes first: a record without a token is harmless, a token
        without a record could never be removed again.

        Returns:
            True if a record was removed

        Raises:
            StoreError: If either file cannot be written; the record is kept
        """
        connections = self._load()
        key = token_key_for(url, identity_name)
        if key not in connections:
            return False

        if self._secret_store is not None:
            self._secret_store.delete_secret(key)

        removed = connections.pop(key)
        try:
            self._save()
        except StoreError:
            connections[key] = removed
            raise
        return True

    def token_for(self, connection: StoredConnection) -> Optional[str]:
        """Load the token of a stored connection from the secure store."""
        if self._secret_store is None:
            return None
        return self._secret_store.load_secret(connection.token_key)
