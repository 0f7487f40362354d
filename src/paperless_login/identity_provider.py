"""
TLS client identity resolution and challenge handling.

An identity is resolved once per login attempt and bound to an immutable
ClientCertificateResponder. The responder only ever offers the identity to
client-certificate challenges; every other challenge, and every challenge
when no identity is available, gets the transport's default handling.
"""

from typing import Callable, Optional

from .audit_logger import AuditLogger, ComponentLogger
from .enums import ChallengeMethod
from .exceptions import StoreError
from .models import AuthChallenge, ChallengeResponse, ClientIdentity
from .secret_store import SecureStore


ChallengeHandler = Callable[[AuthChallenge], ChallengeResponse]


class ClientCertificateResponder:
    """Answers authentication challenges with one fixed identity."""

    def __init__(
        self,
        identity: Optional[ClientIdentity],
        logger: Optional[AuditLogger] = None,
    ) -> None:
        self._identity = identity
        self._log = ComponentLogger(logger, "ClientIdentityProvider")

    @property
    def identity(self) -> Optional[ClientIdentity]:
        return self._identity

    def respond(self, challenge: AuthChallenge) -> ChallengeResponse:
        if challenge.method != ChallengeMethod.CLIENT_CERTIFICATE:
            return ChallengeResponse.default_handling()

        if self._identity is None:
            self._log.info(
                "Client certificate requested but no identity configured",
                {"host": challenge.host},
            )
            return ChallengeResponse.default_handling()

        self._log.info(
            "Offering client identity",
            {"host": challenge.host, "identity": self._identity.name},
        )
        return ChallengeResponse.use_credential(self._identity)

    __call__ = respond


class ClientIdentityProvider:
    """
    Resolves named TLS client identities from the secure store.

    Absence of an identity is a normal path for servers without mutual TLS,
    so lookups never raise: a missing name, an unknown name and a store
    failure all resolve to None.
    """

    def __init__(
        self,
        store: Optional[SecureStore],
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Initialize the provider.

        Args:
            store: Secure store holding the identities, or None
            logger: Optional audit logger
        """
        self._store = store
        self._logger = logger
        self._log = ComponentLogger(logger, "ClientIdentityProvider")

    def resolve(self, name: Optional[str]) -> Optional[ClientIdentity]:
        """
        Look up an identity by name.

        Args:
            name: Identity name, or None when no identity is selected

        Returns:
            The identity, or None if it is not available
        """
        if not name or self._store is None:
            return None

        try:
            identity = self._store.load_identity(name)
        except StoreError as e:
            self._log.error("Error loading identity from secure store", error=e, data={"identity": name})
            return None

        if identity is None:
            self._log.warn("Identity not found in secure store", {"identity": name})
        return identity

    def responder(self, identity: Optional[ClientIdentity]) -> ClientCertificateResponder:
        """Create a challenge responder bound to ``identity``."""
        return ClientCertificateResponder(identity, self._logger)

    def respond_to_challenge(
        self,
        challenge: AuthChallenge,
        identity: Optional[ClientIdentity],
    ) -> ChallengeResponse:
        """Answer a single challenge for the given identity."""
        return self.responder(identity).respond(challenge)
