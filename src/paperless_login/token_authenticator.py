"""
Username/password to API token exchange.

Posts the credentials as JSON to the server's token endpoint and returns the
token from a ``{"token": "..."}`` response. Rejected credentials (HTTP 400)
become LoginError.invalid_login; every other failure is classified through
the error taxonomy.
"""

import asyncio
import json
from typing import Optional, Sequence

from .audit_logger import AuditLogger, ComponentLogger
from .config import ProbeConfig
from .error_taxonomy import classify_exception, classify_token_status, decode_details
from .exceptions import InternalInvariantError, LoginError, RequestError
from .identity_provider import ClientIdentityProvider
from .models import ClientIdentity, ExtraHeader, TransportRequest, apply_headers
from .transport import Transport


def encode_token_request(username: str, password: str) -> bytes:
    """
    Serialize the token request body.

    Raises:
        InternalInvariantError: If serialization fails, which only happens
            when the inputs are not strings
    """
    try:
        return json.dumps({"username": username, "password": password}).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise InternalInvariantError(
            code="token_request_encoding",
            message="Unable to encode token request, this is an internal error",
        ) from e


class TokenAuthenticator:
    """Obtains an API token for a username and password."""

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
        self._log = ComponentLogger(logger, "TokenAuthenticator")

    async def fetch_token(
        self,
        token_url: str,
        username: str,
        password: str,
        extra_headers: Sequence[ExtraHeader] = (),
        identity: Optional[ClientIdentity] = None,
    ) -> str:
        """
        Exchange credentials for a token.

        Args:
            token_url: The token endpoint (``{base}/token/``)
            username: Login name
            password: Password
            extra_headers: Headers added to the request
            identity: Client identity offered on a certificate challenge

        Returns:
            The API token

        Raises:
            LoginError: If the exchange fails
            asyncio.CancelledError: If the calling task is cancelled
        """
        self._log.info(
            "Fetching token from username and password",
            {"username": username, "password": password},
        )

        headers = {"Content-Type": "application/json"}
        apply_headers(list(extra_headers), headers)
        request = TransportRequest(
            url=token_url,
            method="POST",
            headers=headers,
            body=encode_token_request(username, password),
            timeout=self._config.timeout_seconds,
        )

        self._log.info(
            "Sending login request",
            {"headers": [{"name": k, "value": v} for k, v in headers.items()]},
        )

        try:
            response = await self._transport.send(
                request,
                self._identity_provider.responder(identity),
            )
        except Exception as e:
            error = classify_exception(e)
            if error is None:
                raise asyncio.CancelledError() from e
            self._log.error("Token request failed", error=e, request_url=token_url)
            raise error from e

        status = response.status_code
        if status is None:
            raise LoginError.request(RequestError.invalid_response())

        error = classify_token_status(status, response.body)
        if error is not None:
            self._log.error(
                "Token request was not successful",
                request_url=token_url,
                response_status_code=status,
                data={"detail": decode_details(response.body)},
            )
            raise error

        try:
            data = json.loads(response.body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            self._log.error("Token response could not be decoded, even though status code was good", error=e)
            raise LoginError.request(RequestError.invalid_response()) from e

        token = data.get("token") if isinstance(data, dict) else None
        if not isinstance(token, str):
            self._log.error("Token response has no token field")
            raise LoginError.request(RequestError.invalid_response())

        return token
