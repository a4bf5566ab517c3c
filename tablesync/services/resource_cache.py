"""Per-table cache of the last known server table resource."""

from __future__ import annotations

import logging
import threading
import weakref
from contextlib import contextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

    from tablesync.schemas.tables import SyncTag, TableResource

logger = logging.getLogger(__name__)


class ResourceCache:
    """Holds one ``TableResource`` per table id.

    The cache is the single source of truth for the tags the synchronizer
    believes the server is at. Entries are immutable and replaced wholesale;
    an entry whose schema ETag no longer matches what the server reports is
    evicted, never served. Access to one table id is serialized with a
    per-table lock so read-modify-write sequences cannot interleave.
    """

    def __init__(self) -> None:
        self._resources: dict[str, TableResource] = {}
        # a table's lock lives only while some caller holds it
        self._locks: weakref.WeakValueDictionary[str, threading.RLock] = (
            weakref.WeakValueDictionary()
        )
        self._guard = threading.Lock()

    def _lock_for(self, table_id: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(table_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[table_id] = lock
            return lock

    @contextmanager
    def locked(self, table_id: str) -> Iterator[None]:
        """Hold the table's lock across several cache calls."""
        with self._lock_for(table_id):
            yield

    def get(self, table_id: str) -> TableResource | None:
        with self._lock_for(table_id):
            return self._resources.get(table_id)

    def __contains__(self, table_id: object) -> bool:
        return isinstance(table_id, str) and self.get(table_id) is not None

    def put(self, table_id: str, resource: TableResource) -> None:
        with self._lock_for(table_id):
            self._resources[table_id] = resource

    def remove(self, table_id: str) -> None:
        with self._lock_for(table_id):
            self._resources.pop(table_id, None)

    def invalidate_if_stale(self, table_id: str, observed_schema_etag: str | None) -> bool:
        """Evict the entry when the observed schema ETag differs from the cached one.

        Any difference counts, including ``None`` against a value: a table
        recreated with another schema reuses its id. Returns True when an
        entry was evicted.
        """
        with self._lock_for(table_id):
            cached = self._resources.get(table_id)
            if cached is None or cached.schema_etag == observed_schema_etag:
                return False
            del self._resources[table_id]
            logger.info(
                "Evicted stale table %s: cached schema %s, server reports %s",
                table_id,
                cached.schema_etag,
                observed_schema_etag,
            )
            return True

    def update_data_tag(self, table_id: str, tag: SyncTag) -> None:
        """Record the table's new data ETag.

        No-op when the table is not cached. A schema mismatch means the
        entry is stale, so it is evicted instead of updated.
        """
        with self._lock_for(table_id):
            if self.invalidate_if_stale(table_id, tag.schema_etag):
                return
            cached = self._resources.get(table_id)
            if cached is None:
                return
            self._resources[table_id] = cached.model_copy(update={"data_etag": tag.data_etag})
