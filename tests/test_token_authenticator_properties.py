"""
Property-based tests for the username/password token exchange.
"""

import asyncio
import json
from io import StringIO

import httpx
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from paperless_login.audit_logger import AuditLogger
from paperless_login.enums import LoginErrorKind, RequestErrorKind, TransportErrorCategory
from paperless_login.exceptions import InternalInvariantError, LoginError, TransportError
from paperless_login.identity_provider import ClientIdentityProvider
from paperless_login.models import ExtraHeader
from paperless_login.token_authenticator import TokenAuthenticator, encode_token_request
from paperless_login.transport import HttpxTransport


TOKEN_URL = "https://paperless.example/token/"

credential_strategy = st.text(
    alphabet=st.characters(blacklist_categories=("Cs",)),
    min_size=1,
    max_size=30,
)


def run_async(coro):
    """Run a coroutine to completion."""
    return asyncio.run(coro)


def make_authenticator(handler, logger=None) -> TokenAuthenticator:
    transport = HttpxTransport(transport=httpx.MockTransport(handler), logger=logger)
    return TokenAuthenticator(transport, ClientIdentityProvider(None), logger=logger)


def fetch_error(authenticator: TokenAuthenticator) -> LoginError:
    with pytest.raises(LoginError) as exc_info:
        run_async(authenticator.fetch_token(TOKEN_URL, "alice", "wonderland"))
    return exc_info.value


class TestTokenExchangeProperty:
    """Tests for token exchange results."""

    def test_200_with_token(self) -> None:
        authenticator = make_authenticator(lambda request: httpx.Response(200, json={"token": "abc"}))
        assert run_async(authenticator.fetch_token(TOKEN_URL, "alice", "wonderland")) == "abc"

    def test_400_is_invalid_login(self) -> None:
        authenticator = make_authenticator(
            lambda request: httpx.Response(400, json={"non_field_errors": ["Unable to log in"]})
        )
        assert fetch_error(authenticator).kind == LoginErrorKind.INVALID_LOGIN

    @pytest.mark.parametrize("body", [b"not json", b"{}", b'{"token": 5}', b"[]"])
    def test_200_without_token_is_invalid_response(self, body: bytes) -> None:
        authenticator = make_authenticator(lambda request: httpx.Response(200, content=body))
        error = fetch_error(authenticator)

        assert error.kind == LoginErrorKind.REQUEST
        assert error.request_kind == RequestErrorKind.INVALID_RESPONSE

    @given(status=st.integers(min_value=201, max_value=599).filter(lambda code: code != 400))
    @settings(max_examples=50)
    def test_other_status_is_unexpected(self, status: int) -> None:
        """*For any* status other than 200 and 400, the exchange SHALL fail with that status."""
        authenticator = make_authenticator(lambda request: httpx.Response(status, text="boom"))
        error = fetch_error(authenticator)

        assert error.request_kind == RequestErrorKind.UNEXPECTED_STATUS_CODE
        assert error.request_error.status_code == status
        assert error.request_error.detail == "boom"

    def test_cancellation_propagates(self) -> None:
        class CancelledTransport:
            async def send(self, request, challenge_handler=None):
                raise TransportError(TransportErrorCategory.CANCELLED, "cancelled")

        authenticator = TokenAuthenticator(CancelledTransport(), ClientIdentityProvider(None))
        with pytest.raises(asyncio.CancelledError):
            run_async(authenticator.fetch_token(TOKEN_URL, "alice", "wonderland"))


class TestTokenRequestProperty:
    """Property-based tests for the request sent to the token endpoint."""

    @given(username=credential_strategy, password=credential_strategy)
    @settings(max_examples=50)
    def test_request_carries_credentials(self, username: str, password: str) -> None:
        """*For any* credentials, the POST body SHALL be the JSON encoded credentials."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"token": "tkn"})

        authenticator = make_authenticator(handler)
        run_async(authenticator.fetch_token(
            TOKEN_URL,
            username,
            password,
            extra_headers=[ExtraHeader("X-Proxy", "p")],
        ))

        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == TOKEN_URL
        assert request.headers["content-type"] == "application/json"
        assert request.headers["x-proxy"] == "p"
        assert json.loads(request.content) == {"username": username, "password": password}

    def test_password_is_not_logged(self) -> None:
        output = StringIO()
        logger = AuditLogger(output_format="both", output_stream=output)
        authenticator = make_authenticator(
            lambda request: httpx.Response(200, json={"token": "tkn"}),
            logger=logger,
        )

        run_async(authenticator.fetch_token(TOKEN_URL, "alice", "s3cr3t-pa55"))

        assert "s3cr3t-pa55" not in output.getvalue()
        assert "alice" in output.getvalue()

    def test_encoding_failure_is_internal_error(self) -> None:
        with pytest.raises(InternalInvariantError):
            encode_token_request("alice", object())
