"""
Error classification for the login negotiator.

Maps low-level transport failures, HTTP status codes and collaborator errors
onto the closed LoginError taxonomy. Transport failures are recognised by
exception type and errno along the cause chain, never by message text.
Cancellation is not an error: classifiers return None for it and callers
must leave their state untouched.
"""

import asyncio
import errno
import json
import ssl
from typing import Iterator, Optional

import httpx

from .enums import RepositoryErrorCode, TransportErrorCategory
from .exceptions import (
    LoginError,
    RepositoryError,
    RequestError,
    TransportError,
    UrlError,
)


NO_DETAILS = "no details"

HTTP_OK = 200
HTTP_BAD_REQUEST = 400
HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403
HTTP_NOT_ACCEPTABLE = 406

PERMISSION_ERRNOS = frozenset({errno.EACCES, errno.EPERM})


def decode_details(body: bytes) -> str:
    """
    Extract a human-readable detail from an error response body.

    Returns the ``detail`` field of a JSON object body, else the body decoded
    as UTF-8 text, else a fixed placeholder.
    """
    try:
        data = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        data = None
    if isinstance(data, dict) and isinstance(data.get("detail"), str):
        return data["detail"]

    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError:
        return NO_DETAILS
    return text if text else NO_DETAILS


def _exception_chain(exc: BaseException) -> Iterator[BaseException]:
    seen: set[int] = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def transport_category(exc: BaseException) -> TransportErrorCategory:
    """
    Categorize a transport failure by inspecting its exception chain.

    Args:
        exc: The exception raised while sending a request

    Returns:
        The most specific category found anywhere in the chain
    """
    chain = list(_exception_chain(exc))

    for item in chain:
        if isinstance(item, asyncio.CancelledError):
            return TransportErrorCategory.CANCELLED
        if isinstance(item, TransportError):
            return item.category

    if any(isinstance(item, ssl.SSLError) for item in chain):
        return TransportErrorCategory.TLS

    for item in chain:
        if isinstance(item, PermissionError):
            return TransportErrorCategory.LOCAL_NETWORK_DENIED
        if isinstance(item, OSError) and item.errno in PERMISSION_ERRNOS:
            return TransportErrorCategory.LOCAL_NETWORK_DENIED

    if any(isinstance(item, (httpx.TimeoutException, TimeoutError)) for item in chain):
        return TransportErrorCategory.TIMEOUT

    if any(isinstance(item, (httpx.TransportError, OSError)) for item in chain):
        return TransportErrorCategory.CONNECTION

    return TransportErrorCategory.OTHER


def is_cancellation(exc: BaseException) -> bool:
    """Check whether an exception only signals cancellation."""
    return transport_category(exc) == TransportErrorCategory.CANCELLED


def classify_exception(exc: BaseException) -> Optional[LoginError]:
    """
    Convert any failure into a LoginError.

    Args:
        exc: The exception to classify

    Returns:
        The matching LoginError, or None if the exception is a cancellation
    """
    if isinstance(exc, LoginError):
        return exc
    if isinstance(exc, UrlError):
        return LoginError.invalid_url(exc)
    if isinstance(exc, RequestError):
        return LoginError.request(exc)
    if isinstance(exc, RepositoryError):
        return classify_repository_error(exc)

    category = transport_category(exc)
    if category == TransportErrorCategory.CANCELLED:
        return None
    if category == TransportErrorCategory.TLS:
        return LoginError.certificate(str(exc))
    if category == TransportErrorCategory.LOCAL_NETWORK_DENIED:
        return LoginError.request(RequestError.local_network_denied())
    return LoginError.other(str(exc) or type(exc).__name__)


def classify_probe_status(status_code: int, body: bytes) -> Optional[LoginError]:
    """
    Classify the status of an API probe response.

    Returns:
        None for 200, otherwise the matching LoginError
    """
    if status_code == HTTP_OK:
        return None
    if status_code == HTTP_NOT_ACCEPTABLE:
        return LoginError.request(RequestError.unsupported_version())
    return LoginError.request(
        RequestError.unexpected_status_code(status_code, decode_details(body))
    )


def classify_token_status(status_code: int, body: bytes) -> Optional[LoginError]:
    """
    Classify the status of a token exchange response.

    Returns:
        None for 200, otherwise the matching LoginError
    """
    if status_code == HTTP_OK:
        return None
    if status_code == HTTP_BAD_REQUEST:
        return LoginError.invalid_login()
    return LoginError.request(
        RequestError.unexpected_status_code(status_code, decode_details(body))
    )


def classify_repository_error(error: RepositoryError) -> LoginError:
    """
    Classify a failure of the current-user fetch.

    A forbidden response is reported like an incompatible server: without
    the permission the client cannot work against the server either way.
    """
    if error.reason == RepositoryErrorCode.FORBIDDEN:
        return LoginError.request(RequestError.unsupported_version())
    if error.reason == RepositoryErrorCode.UNAUTHORIZED:
        return LoginError.invalid_token()
    return LoginError.other(error.message)
