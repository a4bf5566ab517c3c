"""Synchronizer: one sync session against one application on one server."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tablesync.api.client import ServerClient
from tablesync.api.endpoints import ServerEndpoints
from tablesync.filesystem.app_files import LocalAppFileSystem
from tablesync.services.auth_service import AcceptAllValidator, TokenInfoValidator
from tablesync.services.file_sync import (
    FileSyncOrchestrator,
    app_level_scope,
    attachment_scope,
    table_level_scope,
)
from tablesync.services.manifest_diff import SyncDirection
from tablesync.services.resource_cache import ResourceCache
from tablesync.services.row_sync import RowSyncService
from tablesync.services.transfer import FileTransfer

if TYPE_CHECKING:
    from collections.abc import Callable

    import httpx

    from tablesync.config import Settings
    from tablesync.filesystem.app_files import AppFileSystem
    from tablesync.schemas.tables import (
        Column,
        IncomingRowModifications,
        RowModification,
        SyncRow,
        SyncTag,
        TableDefinitionResource,
        TableResource,
    )
    from tablesync.services.auth_service import TokenValidator
    from tablesync.services.file_sync import FileSyncResult

logger = logging.getLogger(__name__)


def _direction(push: bool) -> SyncDirection:
    return SyncDirection.PUSH if push else SyncDirection.PULL


class Synchronizer:
    """Composes the cache, row protocol, transfer primitive and file orchestrator.

    The access token is verified before anything else; an ``AuthError`` makes
    the instance unusable and a new one has to be created with a fresh token.
    The resource cache belongs to this instance and is never shared.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        token_validator: TokenValidator | None = None,
        fs: AppFileSystem | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if token_validator is None:
            token_validator = (
                TokenInfoValidator(settings.token_info_url, timeout=settings.connect_timeout)
                if settings.verify_token
                else AcceptAllValidator()
            )
        token_validator.validate(settings.access_token)

        self.settings = settings
        self.endpoints = ServerEndpoints(
            settings.server_url, settings.app_name, settings.client_version
        )
        self.client = ServerClient(
            settings.server_url,
            settings.access_token,
            connect_timeout=settings.connect_timeout,
            read_timeout=settings.read_timeout,
            transport=transport,
        )
        self.cache = ResourceCache()
        self.rows = RowSyncService(self.client, self.endpoints, self.cache)
        self.transfer = FileTransfer(self.client, max_retries=settings.download_max_retries)
        self.fs = fs if fs is not None else LocalAppFileSystem(settings.app_folder)
        self.files = FileSyncOrchestrator(self.client, self.transfer, self.fs)
        logger.debug("Synchronizer ready for %s", self.endpoints.app_uri)

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> Synchronizer:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # Tables

    def get_tables(self) -> list[TableResource]:
        return self.rows.get_tables()

    def get_table(self, table_id: str) -> TableResource:
        return self.rows.get_table(table_id)

    def get_table_or_none(self, table_id: str) -> TableResource | None:
        return self.rows.get_table_or_none(table_id)

    def has_table(self, table_id: str) -> bool:
        return self.rows.has_table(table_id)

    def create_table(
        self, table_id: str, sync_tag: SyncTag, columns: list[Column]
    ) -> TableResource:
        return self.rows.create_table(table_id, sync_tag, columns)

    def delete_table(self, table_id: str) -> None:
        self.rows.delete_table(table_id)

    def get_table_definition(self, definition_uri: str) -> TableDefinitionResource:
        return self.rows.get_table_definition(definition_uri)

    # Rows

    def fetch_changes(self, table_id: str, since_tag: SyncTag) -> IncomingRowModifications:
        return self.rows.fetch_changes(table_id, since_tag)

    def upsert_row(self, table_id: str, current_tag: SyncTag, row: SyncRow) -> RowModification:
        return self.rows.upsert_row(table_id, current_tag, row)

    def delete_row(self, table_id: str, current_tag: SyncTag, row: SyncRow) -> RowModification:
        return self.rows.delete_row(table_id, current_tag, row)

    # Files

    def sync_app_level_files(self, push: bool) -> FileSyncResult:
        """Push or pull application-wide files."""
        self.fs.create_folder("")
        return self.files.sync(app_level_scope(self.endpoints), _direction(push))

    def sync_table_level_files(
        self,
        table_id: str,
        push: bool,
        on_table_properties_changed: Callable[[str], None] | None = None,
    ) -> FileSyncResult:
        """Push or pull one table's files.

        ``on_table_properties_changed`` is called with the table id when a
        pull replaced the table's properties file.
        """
        result = self.files.sync(table_level_scope(self.endpoints, table_id), _direction(push))
        if result.properties_changed and on_table_properties_changed is not None:
            on_table_properties_changed(table_id)
        return result

    def get_file_attachments(
        self, table_id: str, row: SyncRow, should_delete_local: bool
    ) -> FileSyncResult:
        """Pull one row's attachments.

        Pass ``should_delete_local=False`` for rows in conflict so local files
        survive for manual resolution.
        """
        scope = attachment_scope(
            self.endpoints, table_id, row.row_id, allow_local_delete=should_delete_local
        )
        return self.files.sync(scope, SyncDirection.PULL)

    def put_file_attachments(self, table_id: str, row: SyncRow) -> FileSyncResult:
        """Push one row's attachments. Server copies are never deleted."""
        return self.files.sync(
            attachment_scope(self.endpoints, table_id, row.row_id), SyncDirection.PUSH
        )
