"""
Paperless Login - connection and authentication negotiator for Paperless servers.

This package derives canonical server URLs from user input, probes servers for
reachability and API version compatibility, validates username/password, token
and mutual-TLS logins, and produces persistable stored-connection records.
"""

__version__ = "0.1.0"
__author__ = "Paperless Login Team"

from paperless_login.exceptions import (
    PaperlessLoginError,
    UrlError,
    RequestError,
    LoginError,
    TransportError,
    StoreError,
    TamperingError,
    RepositoryError,
    DateDecodingError,
    InternalInvariantError,
)
from paperless_login.enums import (
    Scheme,
    CredentialMode,
    LoginStatus,
    CredentialStatus,
    LogLevel,
    UrlErrorCode,
    LoginErrorKind,
    RequestErrorKind,
    TransportErrorCategory,
    RepositoryErrorCode,
    ChallengeMethod,
    ChallengeDisposition,
)
from paperless_login.models import (
    ExtraHeader,
    ClientIdentity,
    DerivedUrl,
    User,
    Connection,
    StoredConnection,
    LoginState,
    CredentialState,
    LoginAttempt,
    TransportRequest,
    TransportResponse,
    AuthChallenge,
    ChallengeResponse,
)
from paperless_login.config import (
    ProbeConfig,
    PersistenceConfig,
    LoggingConfig,
    LoginConfig,
    create_default_config,
    generate_secret,
    load_config_from_file,
    load_config_from_env,
    save_config_to_file,
)
from paperless_login.url_deriver import (
    derive_url,
    is_local_address,
    strip_known_scheme_prefix,
)
from paperless_login.error_taxonomy import (
    classify_exception,
    decode_details,
)
from paperless_login.audit_logger import (
    AuditLogger,
    LogEntry,
)
from paperless_login.secret_store import (
    SecureStore,
    FileSecretStore,
)
from paperless_login.connection_store import ConnectionStore
from paperless_login.identity_provider import (
    ClientIdentityProvider,
    ClientCertificateResponder,
)
from paperless_login.transport import (
    Transport,
    HttpxTransport,
)
from paperless_login.connection_probe import ConnectionProbe
from paperless_login.token_authenticator import TokenAuthenticator
from paperless_login.repository import (
    CurrentUserRepository,
    ApiRepository,
)
from paperless_login.login_coordinator import LoginCoordinator
from paperless_login.date_decoder import decode_date
from paperless_login.messages import (
    get_message,
    describe_error,
    TRANSLATIONS,
    SUPPORTED_LANGUAGES,
    DEFAULT_LANGUAGE,
)

__all__ = [
    # Exceptions
    "PaperlessLoginError",
    "UrlError",
    "RequestError",
    "LoginError",
    "TransportError",
    "StoreError",
    "TamperingError",
    "RepositoryError",
    "DateDecodingError",
    "InternalInvariantError",
    # Enums
    "Scheme",
    "CredentialMode",
    "LoginStatus",
    "CredentialStatus",
    "LogLevel",
    "UrlErrorCode",
    "LoginErrorKind",
    "RequestErrorKind",
    "TransportErrorCategory",
    "RepositoryErrorCode",
    "ChallengeMethod",
    "ChallengeDisposition",
    # Models
    "ExtraHeader",
    "ClientIdentity",
    "DerivedUrl",
    "User",
    "Connection",
    "StoredConnection",
    "LoginState",
    "CredentialState",
    "LoginAttempt",
    "TransportRequest",
    "TransportResponse",
    "AuthChallenge",
    "ChallengeResponse",
    # Configuration
    "ProbeConfig",
    "PersistenceConfig",
    "LoggingConfig",
    "LoginConfig",
    "create_default_config",
    "generate_secret",
    "load_config_from_file",
    "load_config_from_env",
    "save_config_to_file",
    # URL derivation
    "derive_url",
    "is_local_address",
    "strip_known_scheme_prefix",
    # Error taxonomy
    "classify_exception",
    "decode_details",
    # Audit Logger
    "AuditLogger",
    "LogEntry",
    # Persistence
    "SecureStore",
    "FileSecretStore",
    "ConnectionStore",
    # Identities
    "ClientIdentityProvider",
    "ClientCertificateResponder",
    # Network
    "Transport",
    "HttpxTransport",
    "ConnectionProbe",
    "TokenAuthenticator",
    "CurrentUserRepository",
    "ApiRepository",
    # Coordinator
    "LoginCoordinator",
    # Dates
    "decode_date",
    # Messages
    "get_message",
    "describe_error",
    "TRANSLATIONS",
    "SUPPORTED_LANGUAGES",
    "DEFAULT_LANGUAGE",
]
