import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional

import requests

from redirects import LinkCheckError, RedirectEntry, RedirectTable

DEFAULT_TIMEOUT = 10
USER_AGENT = 'rustref-link-checker'


@dataclass(frozen=True)
class LinkProblem:
    url: str
    reason: str
    short: str = ''

    def __str__(self):
        prefix = f"{self.short}: " if self.short else ''
        return f"{prefix}{self.url}: {self.reason}"


def check_url(url: str, http_client: Callable = requests.get,
              timeout: int = DEFAULT_TIMEOUT) -> Optional[LinkProblem]:
    """Verify that url is reachable and answers with a 2xx status."""
    try:
        response = http_client(url, timeout=timeout, allow_redirects=True,
                               headers={'User-Agent': USER_AGENT})
    except requests.RequestException as e:
        return LinkProblem(url, f"request failed: {e}")

    if 200 <= response.status_code < 300:
        return None
    return LinkProblem(url, f"HTTP {response.status_code}")


def check_entries(entries: Iterable[RedirectEntry], http_client: Callable = requests.get,
                  max_workers: int = 8, timeout: int = DEFAULT_TIMEOUT) -> List[LinkProblem]:
    """Check every entry's url concurrently; return problems in entry order."""
    entries = list(entries)
    if not entries:
        return []

    with ThreadPoolExecutor(max_workers=min(max_workers, len(entries))) as pool:
        results = list(pool.map(lambda e: check_url(e.url, http_client, timeout), entries))

    problems = []
    for entry, problem in zip(entries, results):
        if problem is not None:
            problems.append(LinkProblem(problem.url, problem.reason, short=entry.short))
    for problem in problems:
        logging.warning(f"Link check failed for {problem}")
    return problems


def make_table_validator(http_client: Callable = requests.get, max_workers: int = 8):
    """Return a store validator that rejects tables with unreachable targets."""
    def validate(table: RedirectTable):
        problems = check_entries(table, http_client=http_client, max_workers=max_workers)
        if problems:
            raise LinkCheckError(problems)
    return validate
