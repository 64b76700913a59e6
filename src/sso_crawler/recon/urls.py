"""URL helpers shared by the frontier, allowlist and link collector."""

from __future__ import annotations

from typing import Optional, Tuple
from urllib.parse import urljoin, urlparse, urlunparse

DEFAULT_PORTS = {"http": 80, "https": 443}

Origin = Tuple[str, str, Optional[int]]


def _canonical_netloc(scheme: str, hostname: str, port: Optional[int], userinfo: str) -> str:
    host = f"[{hostname}]" if ":" in hostname else hostname
    if port is not None and port != DEFAULT_PORTS.get(scheme):
        host = f"{host}:{port}"
    return f"{userinfo}@{host}" if userinfo else host


def normalize_url(url: str, base_url: Optional[str] = None) -> str:
    """Resolve ``url`` against ``base_url`` into the form used as a frontier key.

    The fragment is dropped, scheme and host are lowercased, a default port
    is removed and an empty path becomes ``/``, so ``https://APP.example.com:443``
    and ``https://app.example.com/`` are the same page. Unparseable input is
    returned unchanged.
    """

    try:
        joined = urljoin(base_url, url) if base_url else url
        parsed = urlparse(joined)
        port = parsed.port
    except ValueError:
        return url

    scheme = parsed.scheme.lower()
    hostname = (parsed.hostname or "").lower()
    if not scheme or not hostname:
        return urlunparse(parsed._replace(fragment=""))

    userinfo = parsed.netloc.rpartition("@")[0] if "@" in parsed.netloc else ""
    return urlunparse(
        parsed._replace(
            scheme=scheme,
            netloc=_canonical_netloc(scheme, hostname, port, userinfo),
            path=parsed.path or "/",
            fragment="",
        )
    )


def url_origin(url: str) -> Optional[Origin]:
    """Return ``(scheme, hostname, port)`` with default ports made explicit."""

    try:
        parsed = urlparse(url)
        port = parsed.port
    except ValueError:
        return None

    scheme = parsed.scheme.lower()
    hostname = (parsed.hostname or "").lower()
    if not scheme or not hostname:
        return None
    return scheme, hostname, port if port is not None else DEFAULT_PORTS.get(scheme)


def hostname_of(url: str) -> str:
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""
