"""
Data models for the login negotiator.

This module defines the data structures used for derived URLs, client
identities, connections, persisted connection records, the observable
coordinator states, and the request/response records exchanged with the
transport.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from .enums import (
    ChallengeDisposition,
    ChallengeMethod,
    CredentialMode,
    CredentialStatus,
    LoginStatus,
)
from .exceptions import LoginError


@dataclass(frozen=True)
class ExtraHeader:
    """An additional HTTP header sent with every request of a login attempt."""

    name: str
    value: str

    def to_dict(self) -> dict:
        return {"name": self.name, "value": self.value}

    @classmethod
    def from_dict(cls, data: dict) -> "ExtraHeader":
        return cls(name=str(data["name"]), value=str(data["value"]))


def apply_headers(extra_headers: list[ExtraHeader], headers: dict[str, str]) -> dict[str, str]:
    """Set each extra header on ``headers`` in order; later entries win."""
    for header in extra_headers:
        headers[header.name] = header.value
    return headers


@dataclass(frozen=True)
class ClientIdentity:
    """A TLS client certificate and private key used for mutual TLS."""

    name: str
    certificate_chain: Path  # PEM file, may also contain the key
    private_key: Optional[Path] = None
    password: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "certificate_chain": str(self.certificate_chain),
            "private_key": str(self.private_key) if self.private_key else None,
            "password": self.password,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ClientIdentity":
        private_key = data.get("private_key")
        return cls(
            name=data["name"],
            certificate_chain=Path(data["certificate_chain"]),
            private_key=Path(private_key) if private_key else None,
            password=data.get("password"),
        )


@dataclass(frozen=True)
class DerivedUrl:
    """Base URL of a server and an endpoint URL derived from it."""

    base_url: str  # no trailing slash, no query or fragment
    api_url: str  # base_url + "/<suffix>/"


@dataclass
class User:
    """The user the server reports for an authenticated connection."""

    username: str
    id: Optional[int] = None
    is_superuser: bool = False
    groups: list[int] = field(default_factory=list)
    extra: dict = field(default_factory=dict)  # unrecognised fields, kept verbatim

    KNOWN_FIELDS = ("id", "username", "is_superuser", "groups")

    def to_dict(self) -> dict:
        data = dict(self.extra)
        data.update({
            "id": self.id,
            "username": self.username,
            "is_superuser": self.is_superuser,
            "groups": list(self.groups),
        })
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "User":
        """
        Build a user from a decoded JSON object.

        Raises:
            ValueError: If ``data`` is not an object or has no string username
        """
        if not isinstance(data, dict):
            raise ValueError("User must be a JSON object")
        username = data.get("username")
        if not isinstance(username, str):
            raise ValueError("User object has no username")
        user_id = data.get("id")
        groups = data.get("groups") or []
        return cls(
            username=username,
            id=user_id if isinstance(user_id, int) else None,
            is_superuser=bool(data.get("is_superuser", False)),
            groups=[g for g in groups if isinstance(g, int)] if isinstance(groups, list) else [],
            extra={k: v for k, v in data.items() if k not in cls.KNOWN_FIELDS},
        )


@dataclass
class Connection:
    """Transient bundle used to talk to a server during one validation."""

    url: str
    token: Optional[str] = None
    extra_headers: list[ExtraHeader] = field(default_factory=list)
    identity_name: Optional[str] = None


def token_key_for(url: str, identity_name: Optional[str]) -> str:
    """Secure store key under which the token of a connection is kept."""
    if identity_name:
        return f"token:{url}#{identity_name}"
    return f"token:{url}"


@dataclass
class StoredConnection:
    """
    Persisted record of a validated server connection.

    The token is never part of the record; it is kept in the secure store
    under ``token_key``.
    """

    url: str
    user: User
    extra_headers: list[ExtraHeader] = field(default_factory=list)
    identity_name: Optional[str] = None

    @property
    def token_key(self) -> str:
        return token_key_for(self.url, self.identity_name)

    def to_dict(self) -> dict:
        return {
            "baseUrl": self.url,
            "extraHeaders": [header.to_dict() for header in self.extra_headers],
            "user": self.user.to_dict(),
            "identityName": self.identity_name,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StoredConnection":
        return cls(
            url=data["baseUrl"],
            user=User.from_dict(data["user"]),
            extra_headers=[ExtraHeader.from_dict(h) for h in data.get("extraHeaders", [])],
            identity_name=data.get("identityName"),
        )


@dataclass(frozen=True)
class LoginState:
    """Reachability state of the entered server address."""

    status: LoginStatus
    error: Optional[LoginError] = None

    @classmethod
    def empty(cls) -> "LoginState":
        return cls(LoginStatus.EMPTY)

    @classmethod
    def checking(cls) -> "LoginState":
        return cls(LoginStatus.CHECKING)

    @classmethod
    def valid(cls) -> "LoginState":
        return cls(LoginStatus.VALID)

    @classmethod
    def failure(cls, error: LoginError) -> "LoginState":
        return cls(LoginStatus.ERROR, error)


@dataclass(frozen=True)
class CredentialState:
    """State of the credential validation sequence."""

    status: CredentialStatus
    error: Optional[LoginError] = None

    @classmethod
    def none(cls) -> "CredentialState":
        return cls(CredentialStatus.NONE)

    @classmethod
    def validating(cls) -> "CredentialState":
        return cls(CredentialStatus.VALIDATING)

    @classmethod
    def valid(cls) -> "CredentialState":
        return cls(CredentialStatus.VALID)

    @classmethod
    def failure(cls, error: LoginError) -> "CredentialState":
        return cls(CredentialStatus.ERROR, error)


@dataclass
class LoginAttempt:
    """Inputs of a single credential validation."""

    full_url: str
    credential_mode: CredentialMode = CredentialMode.USERNAME_AND_PASSWORD
    username: str = ""
    password: str = ""
    token: str = ""
    identity_name: Optional[str] = None
    extra_headers: list[ExtraHeader] = field(default_factory=list)


@dataclass
class TransportRequest:
    """A single HTTP request handed to the transport."""

    url: str
    method: str = "GET"
    headers: dict[str, str] = field(default_factory=dict)
    body: Optional[bytes] = None
    timeout: float = 15.0


@dataclass
class TransportResponse:
    """The raw HTTP response returned by the transport."""

    status_code: Optional[int]  # None when the response was not HTTP
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""


@dataclass(frozen=True)
class AuthChallenge:
    """An authentication challenge raised while connecting to a host."""

    method: ChallengeMethod
    host: str
    port: Optional[int] = None


@dataclass(frozen=True)
class ChallengeResponse:
    """Answer to an AuthChallenge."""

    disposition: ChallengeDisposition
    identity: Optional[ClientIdentity] = None

    @property
    def accept(self) -> bool:
        return self.disposition == ChallengeDisposition.USE_CREDENTIAL

    @classmethod
    def default_handling(cls) -> "ChallengeResponse":
        return cls(ChallengeDisposition.PERFORM_DEFAULT_HANDLING)

    @classmethod
    def use_credential(cls, identity: ClientIdentity) -> "ChallengeResponse":
        return cls(ChallengeDisposition.USE_CREDENTIAL, identity)
