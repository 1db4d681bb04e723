"""Transport policy for credential fingerprints."""

from __future__ import annotations

import ipaddress
from urllib.parse import urlsplit

LOCAL_HOSTNAMES = {"localhost"}


def is_loopback_host(hostname: str) -> bool:
    hostname = (hostname or "").lower().rstrip(".")
    if hostname in LOCAL_HOSTNAMES or hostname.endswith(".localhost"):
        return True
    try:
        return ipaddress.ip_address(hostname).is_loopback
    except ValueError:
        return False


def is_allowed_endpoint(url: str) -> bool:
    """Allow encrypted endpoints anywhere and plain http only on loopback."""
    try:
        parts = urlsplit((url or "").strip())
    except ValueError:
        return False
    scheme = parts.scheme.lower()
    if not parts.hostname:
        return False
    if scheme == "https":
        return True
    return scheme == "http" and is_loopback_host(parts.hostname)


def is_valid_http_url(url: str) -> bool:
    try:
        parts = urlsplit((url or "").strip())
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.hostname)
