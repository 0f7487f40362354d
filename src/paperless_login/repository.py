"""
Current-user repository.

The coordinator validates a freshly built Connection by asking the server who
the connection authenticates as. CurrentUserRepository is the interface it
uses; ApiRepository implements it with ``GET {base}/api/ui_settings/``, whose
body carries the authenticated user under ``"user"``.
"""

import asyncio
import json
from abc import abstractmethod
from typing import Optional, Protocol, runtime_checkable

from .audit_logger import AuditLogger, ComponentLogger
from .config import ProbeConfig
from .connection_probe import accept_header
from .enums import RepositoryErrorCode
from .error_taxonomy import (
    HTTP_FORBIDDEN,
    HTTP_OK,
    HTTP_UNAUTHORIZED,
    classify_exception,
    decode_details,
)
from .exceptions import RepositoryError, UrlError
from .identity_provider import ClientIdentityProvider
from .models import Connection, TransportRequest, User, apply_headers
from .transport import Transport
from .url_deriver import derive_url


UI_SETTINGS_SUFFIX = "api/ui_settings"


@runtime_checkable
class CurrentUserRepository(Protocol):
    """Protocol defining the current-user lookup."""

    @abstractmethod
    async def current_user(self, connection: Connection) -> User:
        """
        Fetch the user a connection is authenticated as.

        Raises:
            RepositoryError: FORBIDDEN and UNAUTHORIZED are distinguishable
                from other failures through ``reason``
            asyncio.CancelledError: If the calling task is cancelled
        """
        ...


class ApiRepository:
    """CurrentUserRepository talking to the server's REST API."""

    def __init__(
        self,
        transport: Transport,
        identity_provider: ClientIdentityProvider,
        config: Optional[ProbeConfig] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        self._transport = transport
        self._identity_provider = identity_provider
        self._config = config or ProbeConfig()
        self._log = ComponentLogger(logger, "ApiRepository")

    def build_request(self, connection: Connection) -> TransportRequest:
        """
        Build the authenticated current-user request.

        Raises:
            RepositoryError: If the connection URL is malformed
        """
        try:
            url = derive_url(connection.url, suffix=UI_SETTINGS_SUFFIX).api_url
        except UrlError as e:
            raise RepositoryError(
                RepositoryErrorCode.TRANSPORT,
                f"Invalid connection URL: {e.message}",
                {"url": connection.url},
            ) from e

        headers = apply_headers(connection.extra_headers, {})
        headers["Accept"] = accept_header(self._config.minimum_api_version)
        if connection.token:
            headers["Authorization"] = f"Token {connection.token}"

        return TransportRequest(
            url=url,
            method="GET",
            headers=headers,
            timeout=self._config.timeout_seconds,
        )

    async def current_user(self, connection: Connection) -> User:
        request = self.build_request(connection)
        identity = self._identity_provider.resolve(connection.identity_name)

        try:
            response = await self._transport.send(
                request,
                self._identity_provider.responder(identity),
            )
        except Exception as e:
            if classify_exception(e) is None:
                raise asyncio.CancelledError() from e
            self._log.error("Current user request failed", error=e, request_url=request.url)
            raise RepositoryError(
                RepositoryErrorCode.TRANSPORT,
                str(e) or type(e).__name__,
                {"url": request.url},
            ) from e

        status = response.status_code
        if status == HTTP_UNAUTHORIZED:
            raise RepositoryError(RepositoryErrorCode.UNAUTHORIZED, "Token was not accepted")
        if status == HTTP_FORBIDDEN:
            raise RepositoryError(
                RepositoryErrorCode.FORBIDDEN,
                "User is not allowed to read the current user",
            )
        if status != HTTP_OK:
            detail = decode_details(response.body)
            raise RepositoryError(
                RepositoryErrorCode.UNEXPECTED_STATUS,
                f"Unexpected HTTP status {status}: {detail}",
                {"status_code": status, "detail": detail},
            )

        try:
            data = json.loads(response.body.decode("utf-8"))
            return User.from_dict(data.get("user") if isinstance(data, dict) else None)
        except (UnicodeDecodeError, ValueError) as e:
            self._log.error("Unable to decode current user", error=e, request_url=request.url)
            raise RepositoryError(
                RepositoryErrorCode.INVALID_RESPONSE,
                f"Unable to decode current user: {e}",
            ) from e
