"""
Property-based tests for the error taxonomy.

Uses Hypothesis for property-based testing to verify status code
classification, detail extraction and transport failure categorization.
"""

import asyncio
import errno
import json
import ssl

import httpx
from hypothesis import given, settings
from hypothesis import strategies as st

from paperless_login.enums import (
    LoginErrorKind,
    RepositoryErrorCode,
    RequestErrorKind,
    TransportErrorCategory,
    UrlErrorCode,
)
from paperless_login.error_taxonomy import (
    NO_DETAILS,
    classify_exception,
    classify_probe_status,
    classify_repository_error,
    classify_token_status,
    decode_details,
    is_cancellation,
    transport_category,
)
from paperless_login.exceptions import (
    LoginError,
    RepositoryError,
    TransportError,
    UrlError,
)


# Strategies for generating valid test data

other_status_strategy = st.integers(min_value=100, max_value=599).filter(
    lambda code: code not in (200, 400, 406)
)

detail_strategy = st.text(
    alphabet=st.characters(blacklist_categories=("Cs",)),
    min_size=1,
    max_size=50,
)


def _raise_chain(outer: BaseException, inner: BaseException) -> BaseException:
    """Return ``outer`` with ``inner`` attached as its cause."""
    try:
        try:
            raise inner
        except BaseException as e:
            raise outer from e
    except BaseException as e:
        return e


class TestDecodeDetailsProperty:
    """Property-based tests for detail extraction from error bodies."""

    @given(detail=detail_strategy)
    @settings(max_examples=100)
    def test_json_detail_field_is_used(self, detail: str) -> None:
        """*For any* JSON body with a ``detail`` string, that string SHALL be returned."""
        body = json.dumps({"detail": detail, "other": 1}).encode("utf-8")
        assert decode_details(body) == detail

    @given(text=detail_strategy)
    @settings(max_examples=100)
    def test_plain_text_body_is_used(self, text: str) -> None:
        """*For any* non-JSON-object text body, the text itself SHALL be returned."""
        body = text.encode("utf-8")
        try:
            data = json.loads(text)
        except ValueError:
            data = None
        if isinstance(data, dict) and isinstance(data.get("detail"), str):
            return
        assert decode_details(body) == text

    def test_empty_and_binary_bodies_use_placeholder(self) -> None:
        assert decode_details(b"") == NO_DETAILS
        assert decode_details(b"\xff\xfe\xfa") == NO_DETAILS


class TestStatusClassificationProperty:
    """Property-based tests for HTTP status classification."""

    def test_ok_is_not_an_error(self) -> None:
        assert classify_probe_status(200, b"{}") is None
        assert classify_token_status(200, b"{}") is None

    def test_probe_406_is_unsupported_version(self) -> None:
        error = classify_probe_status(406, b"")
        assert error.kind == LoginErrorKind.REQUEST
        assert error.request_kind == RequestErrorKind.UNSUPPORTED_VERSION

    def test_token_400_is_invalid_login(self) -> None:
        error = classify_token_status(400, b'{"non_field_errors": ["nope"]}')
        assert error.kind == LoginErrorKind.INVALID_LOGIN

    @given(status=other_status_strategy, detail=detail_strategy)
    @settings(max_examples=100)
    def test_other_status_is_unexpected(self, status: int, detail: str) -> None:
        """
        *For any* other status, probe and token classification SHALL report
        an unexpected status code carrying the code and the extracted detail.
        """
        body = json.dumps({"detail": detail}).encode("utf-8")

        for error in (classify_probe_status(status, body), classify_token_status(status, body)):
            assert error.kind == LoginErrorKind.REQUEST
            assert error.request_kind == RequestErrorKind.UNEXPECTED_STATUS_CODE
            assert error.request_error.status_code == status
            assert error.request_error.detail == detail


class TestRepositoryClassificationProperty:
    """Tests for current-user failure classification."""

    def test_forbidden_is_unsupported_version(self) -> None:
        error = classify_repository_error(RepositoryError(RepositoryErrorCode.FORBIDDEN, "forbidden"))
        assert error.kind == LoginErrorKind.REQUEST
        assert error.request_kind == RequestErrorKind.UNSUPPORTED_VERSION

    def test_unauthorized_is_invalid_token(self) -> None:
        error = classify_repository_error(RepositoryError(RepositoryErrorCode.UNAUTHORIZED, "no"))
        assert error.kind == LoginErrorKind.INVALID_TOKEN

    @given(
        reason=st.sampled_from([
            RepositoryErrorCode.UNEXPECTED_STATUS,
            RepositoryErrorCode.INVALID_RESPONSE,
            RepositoryErrorCode.TRANSPORT,
        ]),
        message=detail_strategy,
    )
    @settings(max_examples=50)
    def test_other_failures_are_other(self, reason: RepositoryErrorCode, message: str) -> None:
        """*For any* other repository failure, the result SHALL be OTHER with the message."""
        error = classify_repository_error(RepositoryError(reason, message))
        assert error.kind == LoginErrorKind.OTHER
        assert error.detail == message


class TestTransportCategoryProperty:
    """Tests for transport failure categorization by type and errno."""

    def test_cancellation_is_not_an_error(self) -> None:
        assert classify_exception(asyncio.CancelledError()) is None
        assert classify_exception(TransportError(TransportErrorCategory.CANCELLED, "cancelled")) is None
        assert is_cancellation(_raise_chain(httpx.ConnectError("x"), asyncio.CancelledError()))

    def test_ssl_error_in_chain_is_certificate(self) -> None:
        exc = _raise_chain(httpx.ConnectError("handshake failed"), ssl.SSLError(1, "bad cert"))
        assert transport_category(exc) == TransportErrorCategory.TLS
        assert classify_exception(exc).kind == LoginErrorKind.CERTIFICATE

    def test_certificate_verification_error_is_certificate(self) -> None:
        exc = _raise_chain(
            httpx.ConnectError("verify failed"),
            ssl.SSLCertVerificationError(1, "certificate verify failed"),
        )
        assert classify_exception(exc).kind == LoginErrorKind.CERTIFICATE

    @given(code=st.sampled_from([errno.EACCES, errno.EPERM]))
    @settings(max_examples=10)
    def test_permission_errno_is_local_network_denied(self, code: int) -> None:
        """*For any* permission errno on connect, the result SHALL be LOCAL_NETWORK_DENIED."""
        exc = _raise_chain(httpx.ConnectError("connect failed"), OSError(code, "denied"))

        assert transport_category(exc) == TransportErrorCategory.LOCAL_NETWORK_DENIED
        error = classify_exception(exc)
        assert error.kind == LoginErrorKind.REQUEST
        assert error.request_kind == RequestErrorKind.LOCAL_NETWORK_DENIED

    def test_message_text_is_ignored(self) -> None:
        exc = httpx.ConnectError("certificate permission denied ssl")
        assert transport_category(exc) == TransportErrorCategory.CONNECTION
        assert classify_exception(exc).kind == LoginErrorKind.OTHER

    def test_timeout_is_other_not_cancellation(self) -> None:
        exc = httpx.ReadTimeout("timed out")
        assert transport_category(exc) == TransportErrorCategory.TIMEOUT
        error = classify_exception(exc)
        assert error is not None
        assert error.kind == LoginErrorKind.OTHER

    def test_transport_error_category_is_respected(self) -> None:
        exc = TransportError(TransportErrorCategory.TLS, "client identity unusable")
        assert classify_exception(exc).kind == LoginErrorKind.CERTIFICATE

    def test_login_and_url_errors_pass_through(self) -> None:
        login_error = LoginError.invalid_token()
        assert classify_exception(login_error) is login_error

        url_error = UrlError(UrlErrorCode.EMPTY_HOST, "no host")
        error = classify_exception(url_error)
        assert error.kind == LoginErrorKind.INVALID_URL
        assert error.url_error is url_error
