"""
HMAC-protected JSON files.

Both the secret store and the connection store keep their data in a single
JSON document whose payload is covered by an HMAC-SHA256, so that tampering
with the file on disk is detected on load.
"""

import hashlib
import hmac
import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .exceptions import StoreError, TamperingError


class HmacJsonFile:
    """
    A versioned JSON document with an HMAC over its payload.

    On disk the file looks like::

        {"version": 1, "updated_at": "...", "data": {...}, "hmac": "..."}
    """

    VERSION = 1
    FILE_MODE = 0o600

    def __init__(self, file_path: Path, hmac_secret: str) -> None:
        """
        Initialize the file wrapper.

        Args:
            file_path: Path to the JSON file
            hmac_secret: Secret key for HMAC computation
        """
        if not hmac_secret:
            raise ValueError("HMAC secret cannot be empty")
        self._file_path = file_path
        self._hmac_secret = hmac_secret.encode("utf-8")

    @property
    def file_path(self) -> Path:
        return self._file_path

    def load(self) -> Optional[dict]:
        """
        Load and verify the payload.

        Returns:
            The payload, or None if the file does not exist

        Raises:
            TamperingError: If HMAC validation fails
            StoreError: If the file cannot be read or parsed
        """
        if not self._file_path.exists():
            return None

        try:
            with open(self._file_path, "r", encoding="utf-8") as f:
                raw_data = json.load(f)
        except json.JSONDecodeError as e:
            raise StoreError(
                code="parse_error",
                message=f"Failed to parse {self._file_path.name}: {e}",
                details={"file_path": str(self._file_path)},
            ) from e
        except OSError as e:
            raise StoreError(
                code="io_error",
                message=f"Failed to read {self._file_path.name}: {e}",
                details={"file_path": str(self._file_path)},
            ) from e

        if not isinstance(raw_data, dict) or not isinstance(raw_data.get("data"), dict):
            raise StoreError(
                code="parse_error",
                message=f"Unexpected layout in {self._file_path.name}",
                details={"file_path": str(self._file_path)},
            )

        stored_hmac = raw_data.get("hmac", "")
        computed_hmac = self.compute_hmac(self._signed_fields(raw_data))
        if not self.validate_hmac(stored_hmac, computed_hmac):
            raise TamperingError(
                code="hmac_mismatch",
                message="HMAC validation failed - data may have been tampered with",
                details={"file_path": str(self._file_path)},
            )

        return raw_data["data"]

    def save(self, data: dict) -> None:
        """
        Write the payload with a fresh HMAC.

        The document is written to an owner-only temporary file and moved
        into place.

        Raises:
            StoreError: If the file cannot be written
        """
        document = {
            "version": self.VERSION,
            "updated_at": datetime.now(timezone.utc).isoformat(),
            "data": data,
        }
        document["hmac"] = self.compute_hmac(self._signed_fields(document))

        tmp_path = self._file_path.with_suffix(self._file_path.suffix + ".tmp")
        try:
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, self.FILE_MODE)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2, sort_keys=True)
            os.chmod(tmp_path, self.FILE_MODE)
            os.replace(tmp_path, self._file_path)
        except (OSError, TypeError, ValueError) as e:
            raise StoreError(
                code="io_error",
                message=f"Failed to write {self._file_path.name}: {e}",
                details={"file_path": str(self._file_path)},
            ) from e

    def _signed_fields(self, document: dict) -> dict:
        return {
            "version": document.get("version"),
            "updated_at": document.get("updated_at"),
            "data": document.get("data", {}),
        }

    def compute_hmac(self, data: dict) -> str:
        """
        Compute HMAC-SHA256 over serialized data.

        Args:
            data: Dictionary to compute HMAC over

        Returns:
            Hexadecimal HMAC string
        """
        serialized = json.dumps(data, sort_keys=True, separators=(",", ":"))
        return hmac.new(
            self._hmac_secret,
            serialized.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    def validate_hmac(self, stored_hmac: str, computed_hmac: str) -> bool:
        """Validate HMAC using constant-time comparison."""
        if not isinstance(stored_hmac, str):
            return False
        return hmac.compare_digest(stored_hmac, computed_hmac)
