"""
Enumeration types for the login negotiator.

These enums provide type-safe constants for URL schemes, credential modes,
state machine statuses, and the error codes used throughout the system.
"""

from enum import Enum


class Scheme(Enum):
    """URL scheme selected for the server address."""

    HTTP = "http"
    HTTPS = "https"

    @property
    def label(self) -> str:
        return f"{self.value}://"


class CredentialMode(Enum):
    """Authentication protocol chosen for a login attempt."""

    USERNAME_AND_PASSWORD = "username_and_password"
    TOKEN = "token"
    NONE = "none"


class LoginStatus(Enum):
    """Reachability status of the entered server address."""

    EMPTY = "empty"
    CHECKING = "checking"
    VALID = "valid"
    ERROR = "error"


class CredentialStatus(Enum):
    """Status of the credential validation sequence."""

    NONE = "none"
    VALIDATING = "validating"
    VALID = "valid"
    ERROR = "error"


class LogLevel(Enum):
    """Logging severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class UrlErrorCode(Enum):
    """Reasons a server address cannot be turned into a URL."""

    EMPTY_INPUT = "empty_input"
    FORBIDDEN_CHARS = "forbidden_chars"
    INVALID_SCHEME = "invalid_scheme"
    EMPTY_HOST = "empty_host"
    INVALID_PORT = "invalid_port"
    IDNA_ERROR = "idna_error"


class LoginErrorKind(Enum):
    """Closed set of actionable login failures."""

    INVALID_URL = "invalid_url"
    REQUEST = "request"
    INVALID_LOGIN = "invalid_login"
    INVALID_TOKEN = "invalid_token"
    CERTIFICATE = "certificate"
    OTHER = "other"


class RequestErrorKind(Enum):
    """Request level failures wrapped by LoginErrorKind.REQUEST."""

    INVALID_RESPONSE = "invalid_response"
    UNSUPPORTED_VERSION = "unsupported_version"
    UNEXPECTED_STATUS_CODE = "unexpected_status_code"
    LOCAL_NETWORK_DENIED = "local_network_denied"


class TransportErrorCategory(Enum):
    """Category of a low-level transport failure."""

    CANCELLED = "cancelled"
    TIMEOUT = "timeout"
    TLS = "tls"
    LOCAL_NETWORK_DENIED = "local_network_denied"
    CONNECTION = "connection"
    OTHER = "other"


class RepositoryErrorCode(Enum):
    """Error codes for the current-user repository."""

    FORBIDDEN = "forbidden"
    UNAUTHORIZED = "unauthorized"
    UNEXPECTED_STATUS = "unexpected_status"
    INVALID_RESPONSE = "invalid_response"
    TRANSPORT = "transport"


class ChallengeMethod(Enum):
    """Authentication method requested by the server during a handshake."""

    CLIENT_CERTIFICATE = "client_certificate"
    SERVER_TRUST = "server_trust"
    HTTP_BASIC = "http_basic"
    OTHER = "other"


class ChallengeDisposition(Enum):
    """How an authentication challenge is answered."""

    USE_CREDENTIAL = "use_credential"
    PERFORM_DEFAULT_HANDLING = "perform_default_handling"
