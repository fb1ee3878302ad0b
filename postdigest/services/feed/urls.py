from __future__ import annotations

from urllib.parse import urlsplit, urlunsplit

CANONICAL_HOST = "twitter.com"
MIRROR_HOSTS = frozenset(
    {
        "x.com",
        "www.x.com",
        "mobile.x.com",
        "twitter.com",
        "www.twitter.com",
        "mobile.twitter.com",
    }
)


def normalize_permanent_url(url: str) -> str:
    """Map mirror hostnames onto one canonical host so equal posts share a key."""
    parts = urlsplit(url.strip())
    host = (parts.hostname or "").lower()
    if host not in MIRROR_HOSTS:
        return url.strip()
    path = parts.path.rstrip("/") or "/"
    return urlunsplit(("https", CANONICAL_HOST, path, "", ""))
