"""
Server address derivation and normalization.

Turns the host string a user types into a canonical base URL plus an endpoint
URL below it, strips scheme prefixes while the address is being edited, and
classifies addresses on the local network. Everything here is pure.
"""

import ipaddress
import re
from typing import Optional
from urllib.parse import urlsplit

import idna

from .enums import Scheme, UrlErrorCode
from .exceptions import UrlError
from .models import DerivedUrl


DEFAULT_SUFFIX = "api"

# Characters that can never appear in a server address: control chars,
# whitespace and the delimiters RFC 3986 excludes from URIs.
FORBIDDEN_CHARS_PATTERN = re.compile(r'[\x00-\x20\x7f<>"{}|\\^`]')

SCHEME_PATTERN = re.compile(r"^([A-Za-z][A-Za-z0-9+.\-]*)://(.*)$", re.DOTALL)

IPV4_PATTERN = re.compile(r"^\d+\.\d+\.\d+\.\d+$")

LOCAL_NETWORKS = (
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
)

LOOPBACK = ipaddress.ip_address("127.0.0.1")


def strip_known_scheme_prefix(value: str) -> tuple[Optional[Scheme], str]:
    """
    Split a leading ``http://`` or ``https://`` off an address.

    Args:
        value: The address as typed

    Returns:
        The recognised scheme (or None) and the remaining text
    """
    for scheme in (Scheme.HTTPS, Scheme.HTTP):
        if value.startswith(scheme.label):
            return scheme, value[len(scheme.label):]
    return None, value


def derive_url(raw: str, suffix: str = DEFAULT_SUFFIX) -> DerivedUrl:
    """
    Derive the base URL and an endpoint URL from a server address.

    The address may be a bare host, ``host:port`` or ``host/path``, with or
    without an ``http``/``https`` scheme; ``https`` is assumed when none is
    given. Trailing slashes, query and fragment are removed from the base.

    Args:
        raw: The server address
        suffix: Path segment appended to the base URL ("api", "token", ...)

    Returns:
        DerivedUrl with ``api_url == base_url + "/" + suffix + "/"``

    Raises:
        UrlError: If the address is empty, malformed or has no host
    """
    value = raw.strip() if raw else ""
    if not value:
        raise UrlError(UrlErrorCode.EMPTY_INPUT, "Server address is empty", {"raw_input": raw})

    forbidden = FORBIDDEN_CHARS_PATTERN.findall(value)
    if forbidden:
        raise UrlError(
            UrlErrorCode.FORBIDDEN_CHARS,
            "Server address contains forbidden characters",
            {"raw_input": raw, "forbidden_chars": forbidden},
        )

    match = SCHEME_PATTERN.match(value)
    if match:
        scheme = match.group(1).lower()
        rest = match.group(2)
        if scheme not in (Scheme.HTTP.value, Scheme.HTTPS.value):
            raise UrlError(
                UrlErrorCode.INVALID_SCHEME,
                f"Unsupported scheme: {scheme}",
                {"raw_input": raw, "scheme": scheme},
            )
    else:
        scheme = Scheme.HTTPS.value
        rest = value

    try:
        parts = urlsplit(f"{scheme}://{rest}")
    except ValueError as e:
        # urlsplit rejects unbalanced IPv6 brackets
        raise UrlError(
            UrlErrorCode.EMPTY_HOST,
            f"Server address has no valid host: {e}",
            {"raw_input": raw},
        ) from e

    if "@" in parts.netloc:
        raise UrlError(
            UrlErrorCode.FORBIDDEN_CHARS,
            "Server address must not contain user information",
            {"raw_input": raw},
        )

    host = parts.hostname
    if not host:
        raise UrlError(UrlErrorCode.EMPTY_HOST, "Server address has no host", {"raw_input": raw})

    try:
        port = parts.port
    except ValueError as e:
        raise UrlError(
            UrlErrorCode.INVALID_PORT,
            f"Invalid port: {e}",
            {"raw_input": raw},
        ) from e
    if port is not None and not 1 <= port <= 65535:
        raise UrlError(UrlErrorCode.INVALID_PORT, f"Invalid port: {port}", {"raw_input": raw})

    host = _normalize_host(host, raw)
    netloc = f"[{host}]" if ":" in host else host
    if port is not None:
        netloc = f"{netloc}:{port}"

    base_url = f"{scheme}://{netloc}{parts.path.rstrip('/')}"

    segment = suffix.strip("/")
    api_url = f"{base_url}/{segment}/" if segment else f"{base_url}/"

    return DerivedUrl(base_url=base_url, api_url=api_url)


def _normalize_host(host: str, raw: str) -> str:
    """Lower-case a host name and IDNA-encode it when it is not ASCII."""
    host = host.lower()
    if host.isascii():
        return host
    try:
        return idna.encode(host, uts46=True).decode("ascii")
    except idna.IDNAError as e:
        raise UrlError(
            UrlErrorCode.IDNA_ERROR,
            f"IDNA encoding failed: {e}",
            {"raw_input": raw, "idna_error": str(e)},
        ) from e


def is_local_address(url: str) -> bool:
    """
    Check whether a URL points at this machine or a private network.

    ``localhost``, ``127.0.0.1`` and the RFC 1918 ranges 10.0.0.0/8,
    172.16.0.0/12 and 192.168.0.0/16 are local.

    Args:
        url: Absolute URL including the scheme

    Returns:
        True if the host is local
    """
    host = urlsplit(url).hostname
    if not host:
        return False

    if host == "localhost":
        return True

    if not IPV4_PATTERN.match(host):
        return False

    try:
        address = ipaddress.IPv4Address(host)
    except ValueError:
        return False

    if address == LOOPBACK:
        return True

    return any(address in network for network in LOCAL_NETWORKS)
