"""Outbound URL validation for server-initiated fetches.

.torrent links come from third-party indexer feeds, so fetching them blindly
would let a feed make this server request internal addresses. Every URL is
checked here before the resolver touches the network, and again on each
redirect hop.

Host names are not resolved through DNS; only literal addresses and
``localhost`` names are recognised.
"""

import ipaddress
import socket
from dataclasses import dataclass
from urllib.parse import urlsplit

ALLOWED_SCHEMES = frozenset({"http", "https"})

BLOCKED_NETWORKS = [
    ipaddress.ip_network("0.0.0.0/32"),
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("169.254.0.0/16"),
    ipaddress.ip_network("::/128"),
    ipaddress.ip_network("::1/128"),
    ipaddress.ip_network("fc00::/7"),
    ipaddress.ip_network("fe80::/10"),
]


@dataclass(frozen=True)
class UrlCheck:
    """Outcome of validating a URL."""

    ok: bool
    reason: str | None = None


def _parse_ip(host: str) -> ipaddress.IPv4Address | ipaddress.IPv6Address | None:
    """Parse a literal address, including legacy IPv4 forms like ``0x7f.1``."""
    try:
        return ipaddress.ip_address(host)
    except ValueError:
        pass

    # inet_aton accepts the shorthand/decimal/octal/hex forms resolvers do
    try:
        return ipaddress.IPv4Address(socket.inet_aton(host))
    except OSError:
        return None


def is_blocked_address(address: ipaddress.IPv4Address | ipaddress.IPv6Address) -> bool:
    """Check whether an address is loopback, private, link-local or unspecified."""
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        address = address.ipv4_mapped
    return any(address in network for network in BLOCKED_NETWORKS)


def validate_external_url(url: str) -> UrlCheck:
    """Validate that a URL is safe to fetch from the server.

    Args:
        url: URL taken from indexer feed content.

    Returns:
        ``UrlCheck(ok=True)`` if the URL may be fetched, otherwise
        ``UrlCheck(ok=False, reason=...)``.
    """
    try:
        parsed = urlsplit(url.strip())
        host = parsed.hostname
        # Accessing .port validates it
        _ = parsed.port
    except (ValueError, AttributeError):
        return UrlCheck(ok=False, reason="Invalid URL format")

    scheme = parsed.scheme.lower()
    if scheme not in ALLOWED_SCHEMES:
        return UrlCheck(ok=False, reason=f"Blocked protocol: {scheme or '(none)'}")

    if not host:
        return UrlCheck(ok=False, reason="Invalid URL format")

    host = host.rstrip(".")
    if host == "localhost" or host.endswith(".localhost"):
        return UrlCheck(ok=False, reason="Blocked internal address")

    address = _parse_ip(host)
    if address is not None and is_blocked_address(address):
        return UrlCheck(ok=False, reason="Blocked internal address")

    return UrlCheck(ok=True)
