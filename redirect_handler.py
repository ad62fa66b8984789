"""Redirect decision for a single request.

The handler only ever returns the literal URL stored in the table, so a
target can never be resolved again as a short label.
"""
from dataclasses import dataclass
from typing import Optional, Union

from redirects import RedirectTable, domain_to_ascii, normalize_short

CACHE_MAX_AGE = 3600  # 1 hour - intermediary caches may hold redirects and 404s this long
CACHE_CONTROL = f"public, max-age={CACHE_MAX_AGE}"


@dataclass(frozen=True)
class Found:
    url: str
    status: int = 302


@dataclass(frozen=True)
class NotFound:
    short: str
    status: int = 404


RedirectResult = Union[Found, NotFound]


def build_location(url: str, path: str = "", query: str = "") -> str:
    """Append a trailing path and query string to a stored target URL."""
    location = url
    path = path.lstrip("/")
    if path:
        location = f"{url.rstrip('/')}/{path}"
    if query:
        location = f"{location}{'&' if '?' in location else '?'}{query}"
    return location


def handle(table: RedirectTable, short: str, path: str = "", query: str = "") -> RedirectResult:
    """Return Found for a known short label, NotFound otherwise."""
    url = table.get(short)
    if url is None:
        return NotFound(normalize_short(short))
    return Found(build_location(url, path, query))


def short_from_host(host: Optional[str], domain: str) -> Optional[str]:
    """Return the short label if host is exactly one label below domain."""
    if not host or not domain:
        return None
    hostname = host.split(":", 1)[0].rstrip(".").lower()
    suffix = "." + domain_to_ascii(domain)
    if not hostname.endswith(suffix):
        return None
    label = hostname[:-len(suffix)]
    if not label or "." in label:
        return None
    return label
