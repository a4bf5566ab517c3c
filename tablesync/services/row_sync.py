"""Table lookup and the row-level incremental diff protocol."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from urllib.parse import quote

from tablesync.api.endpoints import join_uri
from tablesync.schemas.tables import (
    IncomingRowModifications,
    RowModification,
    RowResource,
    RowResourceList,
    SyncRow,
    TableDefinition,
    TableDefinitionResource,
    TableResource,
    TableResourceList,
)

if TYPE_CHECKING:
    from tablesync.api.client import ServerClient
    from tablesync.api.endpoints import ServerEndpoints
    from tablesync.schemas.tables import Column, SyncTag
    from tablesync.services.resource_cache import ResourceCache

logger = logging.getLogger(__name__)


class RowSyncService:
    """Table resources and row exchange for one application.

    Every tag the server reports flows back into the ``ResourceCache``.
    Row mutations are never retried here: an insert-or-update is safe to
    repeat, a delete is not.
    """

    def __init__(
        self, client: ServerClient, endpoints: ServerEndpoints, cache: ResourceCache
    ) -> None:
        self.client = client
        self.endpoints = endpoints
        self.cache = cache

    def _remember(self, resource: TableResource) -> TableResource:
        with self.cache.locked(resource.table_id):
            self.cache.invalidate_if_stale(resource.table_id, resource.schema_etag)
            self.cache.put(resource.table_id, resource)
        return resource

    def get_tables(self) -> list[TableResource]:
        """List the server's tables, sorted by id, refreshing the cache for each."""
        resources = self.client.get_model(self.endpoints.tables_uri, TableResourceList)
        tables = [self._remember(resource) for resource in resources.tables]
        return sorted(tables, key=lambda resource: resource.table_id)

    def get_table(self, table_id: str) -> TableResource:
        cached = self.cache.get(table_id)
        if cached is not None:
            return cached
        return self.refresh_table(table_id)

    def refresh_table(self, table_id: str) -> TableResource:
        resource = self.client.get_model(self.endpoints.table_uri(table_id), TableResource)
        return self._remember(resource)

    def get_table_or_none(self, table_id: str) -> TableResource | None:
        for resource in self.get_tables():
            if resource.table_id == table_id:
                return resource
        return None

    def has_table(self, table_id: str) -> bool:
        return table_id in self.cache

    def create_table(
        self, table_id: str, sync_tag: SyncTag, columns: list[Column]
    ) -> TableResource:
        definition = TableDefinition(
            table_id=table_id, schema_etag=sync_tag.schema_etag, columns=columns
        )
        resource = self.client.put_model(
            self.endpoints.table_uri(table_id), definition, TableResource
        )
        self.cache.put(resource.table_id, resource)
        logger.info("Created table %s with schema %s", table_id, resource.schema_etag)
        return resource

    def delete_table(self, table_id: str) -> None:
        self.client.delete(self.endpoints.table_uri(table_id))
        self.cache.remove(table_id)
        logger.info("Deleted table %s", table_id)

    def get_table_definition(self, definition_uri: str) -> TableDefinitionResource:
        definition = self.client.get_model(definition_uri, TableDefinitionResource)
        self.cache.invalidate_if_stale(definition.table_id, definition.schema_etag)
        return definition

    def fetch_changes(self, table_id: str, since_tag: SyncTag) -> IncomingRowModifications:
        """Rows changed since ``since_tag``.

        The table resource is always refreshed first; the result carries the
        table's tag after the fetch, so feeding it back in yields no rows
        until the server changes again.
        """
        resource = self.refresh_table(table_id)
        changes = IncomingRowModifications(tag=resource.sync_tag)
        if since_tag.schema_etag != resource.schema_etag:
            logger.warning(
                "Schema of %s changed from %s to %s",
                table_id,
                since_tag.schema_etag,
                resource.schema_etag,
            )
        if since_tag.data_etag == resource.data_etag:
            return changes

        if since_tag.data_etag is None:
            rows = self.client.get_model(join_uri(resource.data_uri, ""), RowResourceList)
        else:
            rows = self.client.get_model(
                resource.diff_uri, RowResourceList, params={"data_etag": since_tag.data_etag}
            )
        changes.rows = {row.row_id: SyncRow.from_resource(row) for row in rows.rows}
        logger.info(
            "Fetched %d changed row(s) of %s since %s", len(changes.rows), table_id, since_tag
        )
        return changes

    def _row_uri(self, resource: TableResource, row_id: str) -> str:
        return join_uri(resource.data_uri, quote(row_id, safe=""))

    def upsert_row(self, table_id: str, current_tag: SyncTag, row: SyncRow) -> RowModification:
        """Insert or update ``row``; the new table tag comes from the server's response."""
        resource = self.get_table(table_id)
        stored = self.client.put_model(
            self._row_uri(resource, row.row_id), row.to_row(), RowResource
        )
        logger.info(
            "Row %s of %s written; table data ETag now %s",
            stored.row_id,
            table_id,
            stored.data_etag_at_modification,
        )
        tag = current_tag.with_data_etag(stored.data_etag_at_modification)
        self.cache.update_data_tag(table_id, tag)
        return RowModification(row_id=stored.row_id, row_etag=stored.row_etag, tag=tag)

    def delete_row(self, table_id: str, current_tag: SyncTag, row: SyncRow) -> RowModification:
        """Delete ``row``; the response body is the table's new data ETag as plain text.

        An empty body means the server did not confirm the delete. The
        (missing) tag is still recorded since nothing better is known.
        """
        resource = self.get_table(table_id)
        response = self.client.delete(self._row_uri(resource, row.row_id))
        data_etag = _plain_text_etag(response.text, response.headers.get("Content-Type", ""))
        if data_etag is None:
            logger.error(
                "Delete of row %s in %s returned no data ETag; the delete is unconfirmed",
                row.row_id,
                table_id,
            )
        else:
            logger.info(
                "Row %s of %s deleted; table data ETag now %s", row.row_id, table_id, data_etag
            )
        tag = current_tag.with_data_etag(data_etag)
        self.cache.update_data_tag(table_id, tag)
        return RowModification(row_id=row.row_id, row_etag=None, tag=tag)


def _plain_text_etag(body: str, content_type: str) -> str | None:
    text = body.strip()
    if content_type.startswith("application/json") and len(text) >= 2 and text[0] == '"':
        text = text[1:-1]
    return text or None
