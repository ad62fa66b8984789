import time
import logging
from dataclasses import dataclass
from typing import Callable, Optional
from threading import RLock

from redirects import (
    InitializationError,
    RedirectError,
    RedirectTable,
    parse_redirects,
    read_redirects_file,
)

STATE_UNLOADED = 'unloaded'
STATE_SERVING = 'serving'


@dataclass(frozen=True)
class RedirectSnapshot:
    """A published redirect table together with where it came from."""
    table: RedirectTable
    source: str
    commit_hash: Optional[str] = None
    commit_url: Optional[str] = None
    loaded_at: float = 0.0


class RedirectStore:
    """Process-wide holder of the current redirect table.

    Readers take ``self._snapshot`` without locking; a load builds a complete
    new snapshot and publishes it with a single assignment, so a request in
    flight sees either the old table or the new one. Writers are serialized
    by a lock. A failed load leaves the published snapshot untouched.
    """

    def __init__(self):
        self._snapshot: Optional[RedirectSnapshot] = None
        self._lock = RLock()

    @property
    def state(self) -> str:
        return STATE_SERVING if self._snapshot is not None else STATE_UNLOADED

    @property
    def snapshot(self) -> RedirectSnapshot:
        """Return the published snapshot or raise InitializationError."""
        snapshot = self._snapshot
        if snapshot is None:
            raise InitializationError("redirect table has not been loaded")
        return snapshot

    @property
    def table(self) -> RedirectTable:
        return self.snapshot.table

    def load_text(self, text: str, source: str, commit_hash: Optional[str] = None,
                  commit_url: Optional[str] = None,
                  validate: Optional[Callable[[RedirectTable], None]] = None) -> RedirectSnapshot:
        """Parse text and publish it as the current table.

        ``validate`` may reject the new table by raising a RedirectError; it
        runs before publication.
        """
        with self._lock:
            return self._load_locked(text, source, commit_hash, commit_url, validate)

    def load_file(self, path: str) -> RedirectSnapshot:
        """Load the redirect table from a TOML file."""
        with self._lock:
            try:
                text = read_redirects_file(path)
            except RedirectError as e:
                self._log_failure(path, e)
                raise
            return self._load_locked(text, path, None, None, None)

    def reload(self, fetch: Callable[[], str], source: str, commit_hash: Optional[str] = None,
               commit_url: Optional[str] = None,
               validate: Optional[Callable[[RedirectTable], None]] = None,
               on_publish: Optional[Callable[[str], None]] = None) -> RedirectSnapshot:
        """Fetch fresh configuration text and publish it.

        Called explicitly by an external trigger such as the GitHub webhook.
        The whole fetch, validate and publish sequence holds the writer lock,
        so overlapping reloads run one at a time and the last one to run is
        the one that stays published. Errors from ``fetch`` propagate
        without touching the current table. ``on_publish`` receives the
        published text while the lock is still held.
        """
        with self._lock:
            logging.info(f"Reloading redirects from {source}")
            text = fetch()
            snapshot = self._load_locked(text, source, commit_hash, commit_url, validate)
            if on_publish is not None:
                on_publish(text)
            return snapshot

    def clear(self):
        """Return to the unloaded state (primarily for testing)."""
        with self._lock:
            self._snapshot = None

    def _load_locked(self, text, source, commit_hash, commit_url, validate):
        try:
            table = RedirectTable.build(parse_redirects(text))
            if validate is not None:
                validate(table)
        except RedirectError as e:
            self._log_failure(source, e)
            raise

        snapshot = RedirectSnapshot(
            table=table,
            source=source,
            commit_hash=commit_hash,
            commit_url=commit_url,
            loaded_at=time.time(),
        )
        self._snapshot = snapshot
        logging.info(f"Loaded {len(table)} redirects from {source}")
        return snapshot

    def _log_failure(self, source: str, error: Exception):
        if self._snapshot is None:
            logging.error(f"Redirect load from {source} failed, service stays unloaded: {error}")
        else:
            logging.error(f"Redirect reload from {source} failed, keeping previous table: {error}")


# Global redirect store instance
redirect_store = RedirectStore()
