"""SSRF gate for outbound fetches.

The proxy fetches arbitrary caller-supplied URLs, so every target is
checked before a connection is attempted. The check is purely
syntactic (no DNS lookups): scheme, credentials and literal hosts.
"""

from __future__ import annotations

import ipaddress
from urllib.parse import urlsplit

from streamgate.domain.exceptions import BlockedTargetError, InvalidInputError

ALLOWED_SCHEMES = frozenset({"http", "https"})

_BLOCKED_HOSTNAMES = frozenset(
    {
        "localhost",
        "localhost.localdomain",
        "ip6-localhost",
        "ip6-loopback",
    }
)
_BLOCKED_SUFFIXES = (".localhost", ".internal")


def _parse_ip(hostname: str) -> ipaddress.IPv4Address | ipaddress.IPv6Address | None:
    host = hostname.strip("[]")
    # Bare integers ("2130706433") are resolved to IPv4 by getaddrinfo.
    if host.isdigit():
        try:
            return ipaddress.IPv4Address(int(host))
        except ipaddress.AddressValueError:
            return None
    try:
        ip = ipaddress.ip_address(host.split("%", 1)[0])
    except ValueError:
        return None
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        return ip.ipv4_mapped
    return ip


def is_blocked_host(hostname: str) -> bool:
    """True for loopback, private, link-local, multicast and other internal hosts."""
    host = hostname.lower().rstrip(".")
    if not host:
        return True
    if host in _BLOCKED_HOSTNAMES or host.endswith(_BLOCKED_SUFFIXES):
        return True

    ip = _parse_ip(host)
    if ip is None:
        return False
    return (
        ip.is_loopback
        or ip.is_private
        or ip.is_link_local
        or ip.is_multicast
        or ip.is_unspecified
        or ip.is_reserved
        or not ip.is_global
    )


def has_allowed_scheme(url: str) -> bool:
    try:
        return urlsplit(url).scheme.lower() in ALLOWED_SCHEMES
    except ValueError:
        return False


def check_target(url: str) -> str:
    """Validate *url* as an outbound fetch target and return it.

    Raises:
        InvalidInputError: unparsable URL or scheme other than http(s).
        BlockedTargetError: embedded credentials or an internal host.
    """
    try:
        parts = urlsplit(url.strip())
        hostname = parts.hostname or ""
    except ValueError as exc:
        raise InvalidInputError(f"Malformed URL: {exc}") from exc

    if parts.scheme.lower() not in ALLOWED_SCHEMES:
        raise InvalidInputError(
            f"Invalid scheme: {parts.scheme or '(none)'}. Only http and https are allowed."
        )
    if not hostname:
        raise InvalidInputError("Missing hostname in URL")
    if parts.username is not None or parts.password is not None:
        raise BlockedTargetError("URLs with embedded credentials are not allowed")
    if is_blocked_host(hostname):
        raise BlockedTargetError(f"Blocked hostname: {hostname}")
    return url.strip()


def is_safe_target(url: str) -> bool:
    """Non-raising variant of :func:`check_target`."""
    try:
        check_target(url)
    except (InvalidInputError, BlockedTargetError):
        return False
    return True
