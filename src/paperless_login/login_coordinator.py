"""
Login coordinator.

The coordinator owns the interactive login state: the host input and its
scheme, the reachability state maintained by debounced probes, and the
credential validation sequence that turns a reachable server and a set of
credentials into a StoredConnection.

All state lives on the event loop the coordinator is used from. A probe
is identified by a generation number; every edit cancels the tracked probe
task and bumps the generation, and a probe only writes ``login_state`` while
its generation is still current. Cancellation never writes any state.
"""

import asyncio
from typing import Callable, Optional

from .audit_logger import AuditLogger, ComponentLogger
from .config import ProbeConfig
from .connection_probe import ConnectionProbe
from .enums import CredentialMode, LoginStatus, Scheme
from .error_taxonomy import classify_repository_error, is_cancellation
from .exceptions import (
    InternalInvariantError,
    LoginError,
    RepositoryError,
    StoreError,
    UrlError,
)
from .identity_provider import ClientIdentityProvider
from .models import (
    Connection,
    CredentialState,
    ExtraHeader,
    LoginAttempt,
    LoginState,
    StoredConnection,
)
from .repository import CurrentUserRepository
from .secret_store import SecureStore
from .token_authenticator import TokenAuthenticator
from .transport import Transport
from . import url_deriver


TOKEN_SUFFIX = "token"

Listener = Callable[[str, object], None]


class LoginCoordinator:
    """
    State machine driving server probing and credential validation.

    Observers subscribe with a callback receiving ``(field_name, state)``
    whenever ``login_state`` or ``credential_state`` changes.
    """

    def __init__(
        self,
        transport: Transport,
        secure_store: SecureStore,
        repository: CurrentUserRepository,
        config: Optional[ProbeConfig] = None,
        logger: Optional[AuditLogger] = None,
        identity_provider: Optional[ClientIdentityProvider] = None,
        probe: Optional[ConnectionProbe] = None,
        authenticator: Optional[TokenAuthenticator] = None,
    ) -> None:
        """
        Initialize the coordinator.

        Args:
            transport: Transport shared by probe and token exchange
            secure_store: Store receiving the tokens of validated connections
            repository: Current-user lookup used to validate a connection
            config: Debounce interval, timeout and minimum API version
            logger: Optional audit logger
            identity_provider: Resolves client identities (built from
                ``secure_store`` if not given)
            probe: Prebuilt probe (built from ``transport`` if not given)
            authenticator: Prebuilt token authenticator
        """
        self._config = config or ProbeConfig()
        self._secure_store = secure_store
        self._repository = repository
        self._log = ComponentLogger(logger, "LoginCoordinator")
        self._identity_provider = identity_provider or ClientIdentityProvider(secure_store, logger)
        self._probe = probe or ConnectionProbe(
            transport, self._identity_provider, self._config, logger
        )
        self._authenticator = authenticator or TokenAuthenticator(
            transport, self._identity_provider, self._config, logger
        )

        self.url: str = ""
        self.scheme: Scheme = Scheme.HTTPS
        self.credential_mode: CredentialMode = CredentialMode.USERNAME_AND_PASSWORD
        self.username: str = ""
        self.password: str = ""
        self.token: str = ""
        self.extra_headers: list[ExtraHeader] = []
        self.selected_identity: Optional[str] = None

        self._login_state = LoginState.empty()
        self._credential_state = CredentialState.none()
        self._listeners: list[Listener] = []
        self._probe_task: Optional[asyncio.Task] = None
        self._generation = 0

    # Observable state

    @property
    def login_state(self) -> LoginState:
        return self._login_state

    @property
    def credential_state(self) -> CredentialState:
        return self._credential_state

    @property
    def login_state_valid(self) -> bool:
        """True once a probe has finished; an error still allows retrying."""
        return self._login_state.status in (LoginStatus.VALID, LoginStatus.ERROR)

    @property
    def full_url(self) -> str:
        return f"{self.scheme.label}{self.url}"

    @property
    def is_local_address(self) -> bool:
        return url_deriver.is_local_address(self.full_url)

    @property
    def probe_task(self) -> Optional[asyncio.Task]:
        return self._probe_task

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a change listener.

        Returns:
            A callable removing the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, field_name: str, state: object) -> None:
        for listener in list(self._listeners):
            listener(field_name, state)

    def _set_login_state(self, state: LoginState) -> None:
        if state == self._login_state:
            return
        self._login_state = state
        self._notify("login_state", state)

    def _set_credential_state(self, state: CredentialState) -> None:
        if state == self._credential_state:
            return
        self._credential_state = state
        self._notify("credential_state", state)

    # Probing

    def on_change_url(self, immediate: bool = False) -> Optional[asyncio.Task]:
        """
        React to an edit of the host input.

        A recognised scheme prefix is moved from ``url`` into ``scheme``. The
        previous probe is cancelled; an empty input resets the state to EMPTY,
        anything else sets CHECKING and schedules a probe after the debounce
        interval (or right away if ``immediate``).

        Must be called from a running event loop.

        Returns:
            The scheduled probe task, or None for an empty input
        """
        scheme, remainder = url_deriver.strip_known_scheme_prefix(self.url)
        if scheme is not None:
            self.scheme = scheme
            self.url = remainder

        self.cancel_probe()

        if not self.url.strip():
            self._set_login_state(LoginState.empty())
            return None

        self._set_login_state(LoginState.checking())
        self._probe_task = asyncio.create_task(
            self._debounced_check(self._generation, immediate)
        )
        return self._probe_task

    def cancel_probe(self) -> None:
        """Cancel the tracked probe without touching ``login_state``."""
        self._generation += 1
        task = self._probe_task
        self._probe_task = None
        if task is not None and not task.done():
            task.cancel()

    async def _debounced_check(self, generation: int, immediate: bool) -> None:
        if not immediate:
            await asyncio.sleep(self._config.debounce_seconds)
        await self._check(generation, self.full_url)

    async def check_url(self, value: Optional[str] = None) -> Optional[LoginState]:
        """
        Probe a server address now and apply the result.

        Args:
            value: Full address to probe (defaults to ``full_url``)

        Returns:
            The applied state, or None if the result was discarded
        """
        return await self._check(self._generation, value if value is not None else self.full_url)

    async def _check(self, generation: int, url: str) -> Optional[LoginState]:
        identity = self._identity_provider.resolve(self.selected_identity)
        state = await self._probe.check(url, list(self.extra_headers), identity)

        if state is None or generation != self._generation:
            self._log.debug("Discarding superseded probe result", {"url": url})
            return None

        self._set_login_state(state)
        return state

    # Credential validation

    def current_attempt(self) -> LoginAttempt:
        """Capture the current input fields as a LoginAttempt."""
        return LoginAttempt(
            full_url=self.full_url,
            credential_mode=self.credential_mode,
            username=self.username,
            password=self.password,
            token=self.token,
            identity_name=self.selected_identity,
            extra_headers=list(self.extra_headers),
        )

    def _fail(self, error: LoginError) -> None:
        self._log.error("Credential validation failed", error=error)
        self._set_credential_state(CredentialState.failure(error))

    async def validate_credentials(
        self,
        attempt: Optional[LoginAttempt] = None,
    ) -> Optional[StoredConnection]:
        """
        Validate credentials against the server.

        Runs the token exchange (username/password mode only), fetches the
        current user with the resulting connection and stores the token of
        a successful connection in the secure store.

        Args:
            attempt: Inputs to validate (defaults to the current fields)

        Returns:
            The stored-connection record, or None on failure; the failure
            is reported through ``credential_state``

        Raises:
            asyncio.CancelledError: If the calling task is cancelled
        """
        attempt = attempt or self.current_attempt()
        self._set_credential_state(CredentialState.validating())

        try:
            base = url_deriver.derive_url(attempt.full_url)
            token_url = url_deriver.derive_url(attempt.full_url, suffix=TOKEN_SUFFIX).api_url
        except UrlError as e:
            self._fail(LoginError.invalid_url(e))
            return None

        identity = self._identity_provider.resolve(attempt.identity_name)

        token: Optional[str] = None
        if attempt.credential_mode == CredentialMode.USERNAME_AND_PASSWORD:
            try:
                token = await self._authenticator.fetch_token(
                    token_url,
                    attempt.username,
                    attempt.password,
                    attempt.extra_headers,
                    identity,
                )
            except LoginError as e:
                self._fail(e)
                return None
        elif attempt.credential_mode == CredentialMode.TOKEN:
            token = attempt.token or None

        connection = Connection(
            url=base.base_url,
            token=token,
            extra_headers=list(attempt.extra_headers),
            identity_name=attempt.identity_name,
        )

        try:
            user = await self._repository.current_user(connection)
        except InternalInvariantError:
            raise
        except RepositoryError as e:
            self._fail(classify_repository_error(e))
            return None
        except Exception as e:
            if is_cancellation(e):
                raise asyncio.CancelledError() from e
            self._fail(LoginError.other(str(e) or type(e).__name__))
            return None

        if (
            attempt.credential_mode == CredentialMode.USERNAME_AND_PASSWORD
            and user.username != attempt.username
        ):
            self._log.warn(
                "Username from login and current user do not match",
                {"login_username": attempt.username, "current_username": user.username},
            )

        stored = StoredConnection(
            url=base.base_url,
            user=user,
            extra_headers=list(attempt.extra_headers),
            identity_name=attempt.identity_name,
        )

        if connection.token is not None:
            try:
                self._secure_store.store_secret(stored.token_key, connection.token)
            except StoreError as e:
                self._fail(LoginError.other(e.message))
                return None

        self._log.info(
            "Credentials validated",
            {"url": stored.url, "username": user.username, "identity": stored.identity_name},
        )
        self._set_credential_state(CredentialState.valid())
        return stored
