"""
URL checks for configured scrape targets.

Page URLs come from the run config, so they are validated before any request:
public HTTPS hosts only, never loopback, private or link-local addresses.
"""

import ipaddress
import socket
from typing import Optional
from urllib.parse import urlparse


class UnsafeURLError(ValueError):
    """Raised when a scrape target URL is not allowed."""


BLOCKED_HOSTNAMES = frozenset({"localhost", "localhost.localdomain"})


def _is_public(address: str) -> bool:
    ip = ipaddress.ip_address(address)
    return not (
        ip.is_private
        or ip.is_loopback
        or ip.is_link_local
        or ip.is_multicast
        or ip.is_reserved
        or ip.is_unspecified
    )


def _resolve(hostname: str) -> set[str]:
    return {info[4][0] for info in socket.getaddrinfo(hostname, None, socket.AF_UNSPEC)}


def validate_scrape_url(
    url: str,
    allowed_domains: Optional[set[str]] = None,
    resolve_dns: bool = True,
) -> str:
    """
    Validate a page URL before fetching it.

    Args:
        url: Target URL
        allowed_domains: Optional whitelist; subdomains of an entry match
        resolve_dns: Also reject hostnames resolving to non-public addresses

    Returns:
        The stripped URL

    Raises:
        UnsafeURLError: If the URL is not allowed
    """
    url = (url or "").strip()
    parsed = urlparse(url)
    if parsed.scheme != "https":
        raise UnsafeURLError(f"Only HTTPS URLs are allowed: {url!r}")

    hostname = (parsed.hostname or "").lower()
    if not hostname:
        raise UnsafeURLError(f"URL has no hostname: {url!r}")
    if hostname in BLOCKED_HOSTNAMES or hostname.endswith(".localhost"):
        raise UnsafeURLError(f"Access to {hostname} is blocked")

    if allowed_domains is not None and not any(
        hostname == domain or hostname.endswith("." + domain) for domain in allowed_domains
    ):
        raise UnsafeURLError(f"Domain {hostname} is not in the allowed list")

    try:
        literal: Optional[str] = str(ipaddress.ip_address(hostname))
    except ValueError:
        literal = None

    if literal is not None:
        if not _is_public(literal):
            raise UnsafeURLError(f"Access to {hostname} is blocked (non-public address)")
    elif resolve_dns:
        try:
            addresses = _resolve(hostname)
        except socket.gaierror:
            # Unresolvable hosts fail in the HTTP client instead
            addresses = set()
        for address in addresses:
            if not _is_public(address.split("%")[0]):
                raise UnsafeURLError(f"{hostname} resolves to non-public address {address}")

    return url
