"""Redirect configuration loading and the lookup table built from it.

The configuration is a TOML document holding an array of ``[[redirect]]``
tables, each with a ``short`` subdomain label and the ``url`` it points to.
Parsing is all-or-nothing: a single bad record rejects the whole document.
"""
import ipaddress
import re
import tomllib
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional
from urllib.parse import urlsplit

import idna


_LABEL_PATTERN = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$")
_ALLOWED_SCHEMES = ("http", "https")
_HOST_PATTERN = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?(?:\.[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?)*$")
_UNSAFE_CHARS = re.compile(r"[\s\x00-\x1f\x7f]")


class RedirectError(Exception):
    """Base class for redirect configuration and lookup errors."""


class ParseError(RedirectError):
    """A configuration document or one of its records is malformed."""


class DuplicateKeyError(ParseError):
    """Two records share the same short label (case-insensitively)."""

    def __init__(self, short: str):
        super().__init__(f"duplicate redirect rule for '{short}'")
        self.short = short


class InvalidUrlError(ParseError):
    """A record's url is not an absolute http(s) URL."""

    def __init__(self, short: str, url: str):
        super().__init__(f"invalid url for '{short}': {url!r}")
        self.short = short
        self.url = url


class NotFoundError(RedirectError):
    """No redirect exists for the requested short label."""

    def __init__(self, short: str):
        super().__init__(f"no redirect for '{short}'")
        self.short = short


class InitializationError(RedirectError):
    """No redirect table has been loaded successfully yet."""


class LinkCheckError(RedirectError):
    """One or more redirect targets failed the reachability check."""

    def __init__(self, problems):
        lines = "; ".join(str(p) for p in problems)
        super().__init__(f"{len(problems)} unreachable redirect target(s): {lines}")
        self.problems = list(problems)


@dataclass(frozen=True)
class RedirectEntry:
    short: str
    url: str


def normalize_short(short: str) -> str:
    """Return the canonical (lowercase, stripped) form of a short label."""
    return short.strip().lower()


def domain_to_ascii(domain: str) -> str:
    """Convert Unicode domain names to ASCII using IDNA."""
    domain = domain.strip().rstrip(".")
    if domain.isascii():
        return domain.lower()
    return idna.encode(domain, uts46=True).decode("ascii")


def is_valid_short(short: str) -> bool:
    """Return True if short is a usable DNS label."""
    return bool(_LABEL_PATTERN.match(short))


def _is_valid_hostname(hostname: str) -> bool:
    if ":" in hostname:
        try:
            ipaddress.IPv6Address(hostname)
        except ValueError:
            return False
        return True
    if not hostname.isascii():
        try:
            hostname = idna.encode(hostname, uts46=True).decode("ascii")
        except UnicodeError:
            return False
    return bool(_HOST_PATTERN.match(hostname.rstrip(".")))


def is_valid_url(url: str) -> bool:
    """Return True if url is a well-formed absolute http(s) URL."""
    if _UNSAFE_CHARS.search(url):
        return False
    try:
        parts = urlsplit(url)
        parts.port
    except ValueError:
        return False
    if parts.scheme not in _ALLOWED_SCHEMES or not parts.hostname:
        return False
    return _is_valid_hostname(parts.hostname)


def _require_string(record: Dict, field: str, index: int) -> str:
    value = record.get(field)
    if not isinstance(value, str):
        raise ParseError(f"redirect #{index + 1}: field '{field}' must be a string")
    value = value.strip()
    if not value:
        raise ParseError(f"redirect #{index + 1}: field '{field}' is empty")
    return value


def parse_redirects(text: str) -> List[RedirectEntry]:
    """Parse TOML text into an ordered list of validated redirect entries."""
    try:
        document = tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        raise ParseError(f"invalid TOML: {e}") from e

    records = document.get("redirect")
    if not isinstance(records, list):
        raise ParseError("configuration has no [[redirect]] records")

    entries = []
    seen = set()
    for index, record in enumerate(records):
        if not isinstance(record, dict):
            raise ParseError(f"redirect #{index + 1} is not a table")

        short = normalize_short(_require_string(record, "short", index))
        url = _require_string(record, "url", index)

        if not is_valid_short(short):
            raise ParseError(f"redirect #{index + 1}: '{short}' is not a valid subdomain label")
        if short in seen:
            raise DuplicateKeyError(short)
        if not is_valid_url(url):
            raise InvalidUrlError(short, url)

        seen.add(short)
        entries.append(RedirectEntry(short=short, url=url))

    return entries


def read_redirects_file(path: str) -> str:
    try:
        with open(path, encoding="utf-8") as f:
            return f.read()
    except OSError as e:
        raise ParseError(f"cannot read {path}: {e}") from e


def load_redirects_file(path: str) -> List[RedirectEntry]:
    """Read and parse a redirects file."""
    return parse_redirects(read_redirects_file(path))


class RedirectTable:
    """Immutable short-label to URL mapping.

    Keys are normalized to lowercase on the way in and on lookup, so lookups
    are case-insensitive. Iteration yields the entries in source order.
    """

    __slots__ = ("_entries", "_urls")

    def __init__(self, entries: List[RedirectEntry]):
        urls: Dict[str, str] = {}
        normalized = []
        for entry in entries:
            short = normalize_short(entry.short)
            if short in urls:
                raise DuplicateKeyError(short)
            urls[short] = entry.url
            normalized.append(RedirectEntry(short=short, url=entry.url))
        self._entries = tuple(normalized)
        self._urls = urls

    @classmethod
    def build(cls, entries: List[RedirectEntry]) -> "RedirectTable":
        return cls(entries)

    def get(self, short: str) -> Optional[str]:
        """Return the URL for short, or None if it is unknown."""
        return self._urls.get(normalize_short(short))

    def lookup(self, short: str) -> str:
        """Return the URL for short or raise NotFoundError."""
        url = self.get(short)
        if url is None:
            raise NotFoundError(normalize_short(short))
        return url

    def sorted_entries(self) -> List[RedirectEntry]:
        return sorted(self._entries, key=lambda e: e.short)

    def __contains__(self, short) -> bool:
        return isinstance(short, str) and normalize_short(short) in self._urls

    def __iter__(self) -> Iterator[RedirectEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self):
        return f'<RedirectTable {len(self)} redirects>'
