"""
HTTP transport used by the login core.

The core only depends on the Transport protocol. HttpxTransport implements it
on top of httpx.AsyncClient: it raises a client-certificate challenge before
connecting to an HTTPS host, loads the offered identity into the TLS context,
and converts every httpx failure into a categorized TransportError.
Cancellation of the calling task aborts the request mid-flight. Redirects are
only followed to the origin that answered the challenge when an identity is
offered.
"""

import ssl
from abc import abstractmethod
from typing import Awaitable, Callable, Optional, Protocol, Union, runtime_checkable

import httpx

from .audit_logger import AuditLogger, ComponentLogger
from .enums import ChallengeMethod, TransportErrorCategory
from .error_taxonomy import transport_category
from .exceptions import TransportError
from .identity_provider import ChallengeHandler
from .models import AuthChallenge, ClientIdentity, TransportRequest, TransportResponse


def same_origin_guard(origin: httpx.URL) -> Callable[[httpx.Request], Awaitable[None]]:
    """
    Build a request hook refusing requests that leave ``origin``.

    A redirect to another scheme, host or port fails before any connection
    to the new target is opened.
    """
    expected = (origin.scheme, origin.host, origin.port)

    async def check(request: httpx.Request) -> None:
        target = (request.url.scheme, request.url.host, request.url.port)
        if target != expected:
            raise TransportError(
                TransportErrorCategory.OTHER,
                f"Refusing redirect from {origin.host} to {request.url.host} "
                "while presenting a client certificate",
                {"url": str(origin), "redirect_url": str(request.url)},
            )

    return check


@runtime_checkable
class Transport(Protocol):
    """Protocol defining the interface for HTTP transports."""

    @abstractmethod
    async def send(
        self,
        request: TransportRequest,
        challenge_handler: Optional[ChallengeHandler] = None,
    ) -> TransportResponse:
        """
        Send a request and return the raw response.

        Args:
            request: The request to send
            challenge_handler: Called when the server asks for authentication
                during the handshake

        Returns:
            The response, whatever its status code

        Raises:
            TransportError: If no response could be obtained
        """
        ...


class HttpxTransport:
    """Transport built on httpx.AsyncClient; one client per request."""

    def __init__(
        self,
        verify: Union[bool, str] = True,
        follow_redirects: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Initialize the transport.

        Args:
            verify: Verify server certificates; a path selects a CA bundle
            follow_redirects: Follow HTTP redirects (same origin only while
                a client identity is offered)
            transport: Optional httpx transport (e.g. httpx.MockTransport)
            logger: Optional audit logger
        """
        self._verify = verify
        self._follow_redirects = follow_redirects
        self._transport = transport
        self._log = ComponentLogger(logger, "HttpxTransport")

    async def send(
        self,
        request: TransportRequest,
        challenge_handler: Optional[ChallengeHandler] = None,
    ) -> TransportResponse:
        try:
            url = httpx.URL(request.url)
        except httpx.InvalidURL as e:
            raise TransportError(
                TransportErrorCategory.OTHER,
                f"Invalid request URL: {e}",
                {"url": request.url},
            ) from e

        identity = self._identity_for(url, challenge_handler)
        verify = self._build_verify(identity) if identity else self._verify

        self._log.debug(
            "Sending request",
            {
                "method": request.method,
                "url": request.url,
                "headers": [{"name": k, "value": v} for k, v in request.headers.items()],
                "identity": identity.name if identity else None,
            },
        )

        event_hooks = {"request": [same_origin_guard(url)]} if identity else None

        async with httpx.AsyncClient(
            verify=verify,
            timeout=httpx.Timeout(request.timeout),
            follow_redirects=self._follow_redirects,
            transport=self._transport,
            event_hooks=event_hooks,
        ) as client:
            try:
                response = await client.request(
                    request.method,
                    url,
                    headers=request.headers,
                    content=request.body,
                )
            except TransportError as e:
                self._log.error("Request refused", error=e, request_url=request.url)
                raise
            except httpx.HTTPError as e:
                category = transport_category(e)
                self._log.error(
                    "Request failed",
                    error=e,
                    request_url=request.url,
                    data={"category": category.value},
                )
                raise TransportError(
                    category,
                    str(e) or type(e).__name__,
                    {"url": request.url},
                ) from e

        return TransportResponse(
            status_code=response.status_code,
            headers=dict(response.headers),
            body=response.content,
        )

    def _identity_for(
        self,
        url: httpx.URL,
        challenge_handler: Optional[ChallengeHandler],
    ) -> Optional[ClientIdentity]:
        if challenge_handler is None or url.scheme != "https":
            return None
        answer = challenge_handler(AuthChallenge(
            method=ChallengeMethod.CLIENT_CERTIFICATE,
            host=url.host,
            port=url.port,
        ))
        if answer.accept:
            return answer.identity
        return None

    def _build_verify(self, identity: ClientIdentity) -> ssl.SSLContext:
        """Create a TLS context presenting ``identity`` as client certificate."""
        if isinstance(self._verify, str):
            context = ssl.create_default_context(cafile=self._verify)
        else:
            context = ssl.create_default_context()
            if not self._verify:
                context.check_hostname = False
                context.verify_mode = ssl.CERT_NONE

        try:
            context.load_cert_chain(
                certfile=str(identity.certificate_chain),
                keyfile=str(identity.private_key) if identity.private_key else None,
                password=identity.password,
            )
        except (ssl.SSLError, OSError) as e:
            raise TransportError(
                TransportErrorCategory.TLS,
                f"Unable to load client identity {identity.name!r}: {e}",
                {"identity": identity.name},
            ) from e
        return context
