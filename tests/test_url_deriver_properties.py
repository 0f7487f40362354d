"""
Property-based tests for URL derivation.

Uses Hypothesis for property-based testing to verify derivation, scheme
stripping and local address classification.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from paperless_login.enums import Scheme, UrlErrorCode
from paperless_login.exceptions import UrlError
from paperless_login.url_deriver import (
    derive_url,
    is_local_address,
    strip_known_scheme_prefix,
)


# Strategies for generating valid test data

@st.composite
def label_strategy(draw) -> str:
    """Generate a single DNS label."""
    return draw(st.text(
        alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyz0123456789"),
        min_size=1,
        max_size=12,
    ))


@st.composite
def host_strategy(draw) -> str:
    """Generate dotted host names."""
    labels = draw(st.lists(label_strategy(), min_size=1, max_size=3))
    return ".".join(labels)


@st.composite
def address_strategy(draw) -> str:
    """Generate server addresses as a user would type them."""
    scheme = draw(st.sampled_from(["", "http://", "https://"]))
    host = draw(host_strategy())
    port = draw(st.one_of(st.none(), st.integers(min_value=1, max_value=65535)))
    path = draw(st.lists(label_strategy(), min_size=0, max_size=3))
    trailing = draw(st.sampled_from(["", "/", "//"]))

    address = f"{scheme}{host}"
    if port is not None:
        address += f":{port}"
    if path:
        address += "/" + "/".join(path)
    return address + trailing


class TestDeriveUrlProperty:
    """Property-based tests for derive_url."""

    @given(address=address_strategy())
    @settings(max_examples=200)
    def test_derive_is_idempotent(self, address: str) -> None:
        """
        *For any* valid address, deriving again from the derived base URL
        SHALL yield the same base URL.
        """
        first = derive_url(address)
        second = derive_url(first.base_url)

        assert second.base_url == first.base_url
        assert second.api_url == first.api_url

    @given(address=address_strategy())
    @settings(max_examples=200)
    def test_api_url_extends_base_url(self, address: str) -> None:
        """
        *For any* valid address, the API URL SHALL be the base URL followed
        by ``/api/`` and the base URL SHALL have no trailing slash.
        """
        derived = derive_url(address)

        assert derived.api_url == derived.base_url + "/api/"
        assert not derived.base_url.endswith("/")
        assert derived.base_url.startswith(("http://", "https://"))

    @given(
        address=address_strategy(),
        suffix=st.sampled_from(["token", "api", "api/ui_settings"]),
    )
    @settings(max_examples=100)
    def test_custom_suffix(self, address: str, suffix: str) -> None:
        """*For any* suffix, the endpoint URL SHALL be ``base/suffix/``."""
        derived = derive_url(address, suffix=suffix)

        assert derived.api_url == f"{derived.base_url}/{suffix}/"
        assert derived.base_url == derive_url(address).base_url

    @given(host=host_strategy())
    @settings(max_examples=100)
    def test_host_is_lower_cased(self, host: str) -> None:
        """*For any* host, upper-case input SHALL derive the same base URL."""
        assert derive_url(host.upper()).base_url == derive_url(host).base_url

    @given(host=host_strategy())
    @settings(max_examples=100)
    def test_https_is_default_scheme(self, host: str) -> None:
        """*For any* address without a scheme, https SHALL be assumed."""
        assert derive_url(host).base_url == f"https://{host}"

    def test_examples(self) -> None:
        """Concrete derivations."""
        derived = derive_url("example.com")
        assert derived.base_url == "https://example.com"
        assert derived.api_url == "https://example.com/api/"

        derived = derive_url("http://Example.COM:8000/paperless/")
        assert derived.base_url == "http://example.com:8000/paperless"
        assert derived.api_url == "http://example.com:8000/paperless/api/"

        derived = derive_url("example.com/docs?page=1#top")
        assert derived.base_url == "https://example.com/docs"

        assert derive_url("example.com", suffix="token").api_url == "https://example.com/token/"

    def test_ipv6_host(self) -> None:
        """IPv6 hosts are kept in brackets."""
        derived = derive_url("http://[::1]:8000")
        assert derived.base_url == "http://[::1]:8000"

    def test_internationalized_host(self) -> None:
        """Non-ASCII host names are IDNA encoded."""
        assert derive_url("bücher.example").base_url == "https://xn--bcher-kva.example"


class TestDeriveUrlRejectionProperty:
    """Property-based tests for rejected addresses."""

    @given(value=st.text(alphabet=st.sampled_from(" \t\n"), max_size=5))
    @settings(max_examples=20)
    def test_blank_input_rejected(self, value: str) -> None:
        """*For any* blank input, derivation SHALL fail with EMPTY_INPUT."""
        with pytest.raises(UrlError) as exc_info:
            derive_url(value)
        assert exc_info.value.reason == UrlErrorCode.EMPTY_INPUT

    @given(
        host=host_strategy(),
        char=st.sampled_from(list(' <>"{}|\\^`\x00\x7f')),
    )
    @settings(max_examples=100)
    def test_forbidden_characters_rejected(self, host: str, char: str) -> None:
        """*For any* address containing a forbidden character, derivation SHALL fail."""
        with pytest.raises(UrlError) as exc_info:
            derive_url(f"{host}{char}x")
        assert exc_info.value.reason == UrlErrorCode.FORBIDDEN_CHARS

    @given(
        scheme=st.sampled_from(["ftp", "file", "ws", "gopher"]),
        host=host_strategy(),
    )
    @settings(max_examples=50)
    def test_other_schemes_rejected(self, scheme: str, host: str) -> None:
        """*For any* scheme other than http/https, derivation SHALL fail."""
        with pytest.raises(UrlError) as exc_info:
            derive_url(f"{scheme}://{host}")
        assert exc_info.value.reason == UrlErrorCode.INVALID_SCHEME

    @pytest.mark.parametrize("value", ["https://", "http:///path"])
    def test_missing_host_rejected(self, value: str) -> None:
        with pytest.raises(UrlError) as exc_info:
            derive_url(value)
        assert exc_info.value.reason == UrlErrorCode.EMPTY_HOST

    @pytest.mark.parametrize("value", ["example.com:0", "example.com:65536", "example.com:abc"])
    def test_invalid_port_rejected(self, value: str) -> None:
        with pytest.raises(UrlError) as exc_info:
            derive_url(value)
        assert exc_info.value.reason == UrlErrorCode.INVALID_PORT

    def test_user_information_rejected(self) -> None:
        with pytest.raises(UrlError) as exc_info:
            derive_url("user@example.com")
        assert exc_info.value.reason == UrlErrorCode.FORBIDDEN_CHARS


class TestSchemePrefixProperty:
    """Property-based tests for scheme prefix stripping."""

    @given(
        scheme=st.sampled_from(list(Scheme)),
        rest=st.text(max_size=30),
    )
    @settings(max_examples=100)
    def test_known_prefix_is_stripped(self, scheme: Scheme, rest: str) -> None:
        """*For any* text after a known prefix, the prefix SHALL be split off."""
        found, remainder = strip_known_scheme_prefix(scheme.label + rest)

        assert found == scheme
        assert remainder == rest

    @given(value=st.text(max_size=30))
    @settings(max_examples=100)
    def test_unknown_prefix_is_kept(self, value: str) -> None:
        """*For any* text without a known prefix, the text SHALL be unchanged."""
        if value.startswith(("http://", "https://")):
            return
        assert strip_known_scheme_prefix(value) == (None, value)


class TestLocalAddressProperty:
    """Tests for local address classification."""

    @pytest.mark.parametrize("url", [
        "https://localhost",
        "http://127.0.0.1",
        "http://10.0.0.5",
        "http://172.16.0.1",
        "http://192.168.1.1",
        "http://10.255.255.255",
        "http://172.31.255.255:8000/paperless",
        "https://localhost:8443",
    ])
    def test_local_addresses(self, url: str) -> None:
        assert is_local_address(url)

    @pytest.mark.parametrize("url", [
        "http://11.0.0.1",
        "http://8.8.8.8",
        "http://11.0.0.0",
        "http://9.255.255.255",
        "http://172.15.255.255",
        "http://172.32.0.0",
        "http://192.167.255.255",
        "http://192.169.0.0",
        "https://example.com",
        "https://10.0.0.5.example.com",
        "not a url",
    ])
    def test_remote_addresses(self, url: str) -> None:
        assert not is_local_address(url)

    @given(
        a=st.integers(min_value=0, max_value=255),
        b=st.integers(min_value=0, max_value=255),
        c=st.integers(min_value=0, max_value=255),
    )
    @settings(max_examples=100)
    def test_ten_network_is_local(self, a: int, b: int, c: int) -> None:
        """*For any* address in 10.0.0.0/8, the address SHALL be local."""
        assert is_local_address(f"http://10.{a}.{b}.{c}")

    @given(
        second=st.integers(min_value=0, max_value=255),
        c=st.integers(min_value=0, max_value=255),
    )
    @settings(max_examples=100)
    def test_172_boundary(self, second: int, c: int) -> None:
        """*For any* 172.x address, only 172.16-172.31 SHALL be local."""
        assert is_local_address(f"http://172.{second}.{c}.1") == (16 <= second <= 31)
