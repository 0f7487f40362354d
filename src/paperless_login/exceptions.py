"""
Exception classes for the login negotiator.

All exceptions inherit from PaperlessLoginError and provide structured
error information with codes, messages, and optional details. LoginError is
the closed taxonomy surfaced through the coordinator's observable state; the
other classes describe failures of individual collaborators before they are
classified.
"""

from typing import Optional

from .enums import (
    LoginErrorKind,
    RepositoryErrorCode,
    RequestErrorKind,
    TransportErrorCategory,
    UrlErrorCode,
)


class PaperlessLoginError(Exception):
    """Base exception for all login negotiator errors."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"

    def to_dict(self) -> dict:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class UrlError(PaperlessLoginError):
    """Raised when a server address cannot be derived into a URL."""

    def __init__(
        self,
        reason: UrlErrorCode,
        message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.reason = reason
        super().__init__(reason.value, message, details)


class RequestError(PaperlessLoginError):
    """A request-level failure: bad response, version or status code."""

    def __init__(
        self,
        kind: RequestErrorKind,
        message: str,
        status_code: Optional[int] = None,
        detail: Optional[str] = None,
    ) -> None:
        self.kind = kind
        self.status_code = status_code
        self.detail = detail
        details = {}
        if status_code is not None:
            details["status_code"] = status_code
        if detail is not None:
            details["detail"] = detail
        super().__init__(kind.value, message, details)

    @classmethod
    def invalid_response(cls) -> "RequestError":
        return cls(RequestErrorKind.INVALID_RESPONSE, "Server returned an invalid response")

    @classmethod
    def unsupported_version(cls) -> "RequestError":
        return cls(
            RequestErrorKind.UNSUPPORTED_VERSION,
            "Server does not support the required API version",
        )

    @classmethod
    def unexpected_status_code(cls, status_code: int, detail: str) -> "RequestError":
        return cls(
            RequestErrorKind.UNEXPECTED_STATUS_CODE,
            f"Unexpected HTTP status: {status_code}",
            status_code=status_code,
            detail=detail,
        )

    @classmethod
    def local_network_denied(cls) -> "RequestError":
        return cls(
            RequestErrorKind.LOCAL_NETWORK_DENIED,
            "Access to the local network was denied",
        )


class LoginError(PaperlessLoginError):
    """
    Actionable login failure.

    Exactly one of ``url_error``/``request_error`` is set for the
    INVALID_URL/REQUEST kinds; CERTIFICATE and OTHER carry a text ``detail``.
    """

    def __init__(
        self,
        kind: LoginErrorKind,
        message: str,
        url_error: Optional[UrlError] = None,
        request_error: Optional[RequestError] = None,
        detail: Optional[str] = None,
    ) -> None:
        self.kind = kind
        self.url_error = url_error
        self.request_error = request_error
        self.detail = detail
        details: dict = {}
        if url_error is not None:
            details["url_error"] = url_error.to_dict()
        if request_error is not None:
            details["request_error"] = request_error.to_dict()
        if detail is not None:
            details["detail"] = detail
        super().__init__(kind.value, message, details)

    @property
    def request_kind(self) -> Optional[RequestErrorKind]:
        """The wrapped request error kind, if this is a REQUEST error."""
        if self.request_error is None:
            return None
        return self.request_error.kind

    @classmethod
    def invalid_url(cls, error: UrlError) -> "LoginError":
        return cls(LoginErrorKind.INVALID_URL, f"Invalid URL: {error.message}", url_error=error)

    @classmethod
    def request(cls, error: RequestError) -> "LoginError":
        return cls(LoginErrorKind.REQUEST, error.message, request_error=error)

    @classmethod
    def invalid_login(cls) -> "LoginError":
        return cls(LoginErrorKind.INVALID_LOGIN, "Username or password were rejected")

    @classmethod
    def invalid_token(cls) -> "LoginError":
        return cls(LoginErrorKind.INVALID_TOKEN, "Token was rejected by the server")

    @classmethod
    def certificate(cls, detail: str) -> "LoginError":
        return cls(LoginErrorKind.CERTIFICATE, f"Certificate error: {detail}", detail=detail)

    @classmethod
    def other(cls, detail: str) -> "LoginError":
        return cls(LoginErrorKind.OTHER, detail, detail=detail)


class TransportError(PaperlessLoginError):
    """Raised by a transport when a request cannot be completed."""

    def __init__(
        self,
        category: TransportErrorCategory,
        message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.category = category
        super().__init__(category.value, message, details)


class StoreError(PaperlessLoginError):
    """Raised when secret or connection persistence fails."""

    pass


class TamperingError(StoreError):
    """Raised when HMAC validation fails, indicating data tampering."""

    pass


class RepositoryError(PaperlessLoginError):
    """Raised by the current-user repository."""

    def __init__(
        self,
        reason: RepositoryErrorCode,
        message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.reason = reason
        super().__init__(reason.value, message, details)


class DateDecodingError(PaperlessLoginError):
    """Raised when a date string matches none of the accepted formats."""

    def __init__(self, value: str) -> None:
        self.value = value
        super().__init__(
            "invalid_date",
            f"Unable to decode date from string: {value!r}",
            {"value": value},
        )


class InternalInvariantError(PaperlessLoginError):
    """
    Raised when an internal invariant is violated.

    This indicates a defect in the package, never a runtime condition. It is
    not part of the LoginError taxonomy and is never caught by the coordinator.
    """

    pass
