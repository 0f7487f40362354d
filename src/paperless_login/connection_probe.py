"""
Reachability and API version probe.

A probe sends one ``GET {base}/api/`` request carrying the minimum API version
the client supports and classifies the outcome into a LoginState. The probe
never stores state itself; the LoginCoordinator decides whether a result is
still current and applies it.
"""

import json
from typing import Optional, Sequence

from .audit_logger import AuditLogger, ComponentLogger
from .config import ProbeConfig
from .error_taxonomy import classify_exception, classify_probe_status, decode_details
from .exceptions import LoginError, RequestError, UrlError
from .identity_provider import ClientIdentityProvider
from .models import (
    ClientIdentity,
    ExtraHeader,
    LoginState,
    TransportRequest,
    TransportResponse,
    apply_headers,
)
from .transport import Transport
from .url_deriver import derive_url


def accept_header(minimum_api_version: int) -> str:
    return f"application/json; version={minimum_api_version}"


def is_endpoint_listing(data: object) -> bool:
    """Check that a decoded body maps endpoint names to URL strings."""
    if not isinstance(data, dict):
        return False
    return all(isinstance(k, str) and isinstance(v, str) for k, v in data.items())


class ConnectionProbe:
    """Checks whether a server address points at a compatible API."""

    def __init__(
        self,
        transport: Transport,
        identity_provider: ClientIdentityProvider,
        config: Optional[ProbeConfig] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Initialize the probe.

        Args:
            transport: Transport used to send the probe request
            identity_provider: Supplies the challenge responder
            config: Timeout and minimum API version
            logger: Optional audit logger
        """
        self._transport = transport
        self._identity_provider = identity_provider
        self._config = config or ProbeConfig()
        self._log = ComponentLogger(logger, "ConnectionProbe")

    def build_request(
        self,
        api_url: str,
        extra_headers: Sequence[ExtraHeader] = (),
    ) -> TransportRequest:
        headers = apply_headers(list(extra_headers), {})
        headers["Accept"] = accept_header(self._config.minimum_api_version)
        return TransportRequest(
            url=api_url,
            method="GET",
            headers=headers,
            timeout=self._config.timeout_seconds,
        )

    async def check(
        self,
        url: str,
        extra_headers: Sequence[ExtraHeader] = (),
        identity: Optional[ClientIdentity] = None,
    ) -> Optional[LoginState]:
        """
        Probe a server address.

        Args:
            url: Full server address including the scheme
            extra_headers: Headers added to the request
            identity: Client identity offered on a certificate challenge

        Returns:
            The resulting LoginState, or None if the transport reported
            a cancellation

        Raises:
            asyncio.CancelledError: If the calling task is cancelled
        """
        self._log.info("Checking backend URL", {"url": url})
        if not url:
            return LoginState.empty()

        try:
            derived = derive_url(url)
        except UrlError as e:
            self._log.error("Cannot derive URL", error=e, data={"url": url})
            return LoginState.failure(LoginError.invalid_url(e))

        request = self.build_request(derived.api_url, extra_headers)
        self._log.info(
            "Checking valid-looking URL",
            {
                "api_url": derived.api_url,
                "identity": identity.name if identity else None,
                "headers": [{"name": k, "value": v} for k, v in request.headers.items()],
            },
        )

        try:
            response = await self._transport.send(
                request,
                self._identity_provider.responder(identity),
            )
        except Exception as e:
            error = classify_exception(e)
            if error is None:
                return None
            self._log.error("Checking API error", error=e, request_url=derived.api_url)
            return LoginState.failure(error)

        return self._evaluate(derived.api_url, response)

    def _evaluate(self, api_url: str, response: TransportResponse) -> LoginState:
        status = response.status_code
        if status is None or not 100 <= status <= 599:
            self._log.error("Probe response is not a valid HTTP response", request_url=api_url)
            return LoginState.failure(LoginError.request(RequestError.invalid_response()))

        error = classify_probe_status(status, response.body)
        if error is not None:
            self._log.warn(
                "Checking API status was not 200",
                {"status_code": status, "detail": decode_details(response.body)},
            )
            return LoginState.failure(error)

        try:
            data = json.loads(response.body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            self._log.error("Probe response body is not JSON", error=e, request_url=api_url)
            return LoginState.failure(LoginError.request(RequestError.invalid_response()))

        if not is_endpoint_listing(data):
            self._log.error("Probe response is not an endpoint listing", request_url=api_url)
            return LoginState.failure(LoginError.request(RequestError.invalid_response()))

        self._log.info("Backend URL is valid", {"api_url": api_url})
        return LoginState.valid()
