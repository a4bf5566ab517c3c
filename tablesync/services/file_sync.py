"""File synchronization for the app-level, table-level and row attachment scopes."""

from __future__ import annotations

import logging
import posixpath
from collections.abc import Callable
from dataclasses import dataclass, field
from functools import partial
from typing import TYPE_CHECKING

from tablesync.exceptions import IntegrityMismatchError, SyncError, UnsafePathError
from tablesync.filesystem.app_files import (
    ASSETS_CSV_FOLDER,
    INSTANCES_FOLDER_NAME,
    directories_excluded_from_sync,
    instance_folder,
    instances_folder,
    table_folder,
    table_properties_path,
)
from tablesync.schemas.manifest import FileManifest, ManifestEntry
from tablesync.services.manifest_diff import (
    ManifestDiff,
    SyncDirection,
    compute_manifest_diff,
    filter_in_table_asset_files,
    filter_out_table_asset_files,
)

if TYPE_CHECKING:
    from tablesync.api.client import ServerClient
    from tablesync.api.endpoints import ServerEndpoints
    from tablesync.filesystem.app_files import AppFileSystem
    from tablesync.services.transfer import FileTransfer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileSyncScope:
    """Everything that distinguishes one file sync scope from another.

    Manifest filenames are relative to ``remote_prefix`` (an app-relative
    folder, empty for the app and table scopes); ``file_uri`` maps such a
    remote path onto its upload/delete locator.
    """

    name: str
    root: str
    manifest_uri: str
    file_uri: Callable[[str], str]
    remote_prefix: str = ""
    exclusions: frozenset[str] = frozenset()
    exclude_table_assets: bool = False
    asset_table_id: str | None = None
    allow_local_delete: bool = True
    allow_remote_delete: bool = True
    immutable: bool = False
    properties_path: str | None = None

    def to_app_path(self, remote_path: str) -> str:
        return self.remote_prefix + remote_path.lstrip("/")

    def to_remote_path(self, app_path: str) -> str:
        return app_path.removeprefix(self.remote_prefix)


def app_level_scope(endpoints: ServerEndpoints) -> FileSyncScope:
    """Application-wide files, minus tables and per-table asset files."""
    return FileSyncScope(
        name="app",
        root="",
        manifest_uri=endpoints.manifest_uri(),
        file_uri=endpoints.file_uri,
        exclusions=directories_excluded_from_sync(exclude_tables_folder=True),
        exclude_table_assets=True,
    )


def table_level_scope(endpoints: ServerEndpoints, table_id: str) -> FileSyncScope:
    """A table's folder (without row attachments) plus its ``assets/csv`` files."""
    return FileSyncScope(
        name=f"table {table_id}",
        root=table_folder(table_id),
        manifest_uri=endpoints.manifest_uri(table_id),
        file_uri=endpoints.file_uri,
        exclusions=frozenset({INSTANCES_FOLDER_NAME}),
        asset_table_id=table_id,
        properties_path=table_properties_path(table_id),
    )


def attachment_scope(
    endpoints: ServerEndpoints,
    table_id: str,
    row_id: str,
    *,
    allow_local_delete: bool = True,
) -> FileSyncScope:
    """One row's attachments.

    Attachments never change once written, so differing hashes are reported
    as integrity failures rather than transferred, and server copies are
    never deleted.
    """
    return FileSyncScope(
        name=f"attachments {table_id}/{row_id}",
        root=instance_folder(table_id, row_id),
        manifest_uri=endpoints.attachment_manifest_uri(table_id, row_id),
        file_uri=lambda path: endpoints.attachment_file_uri(table_id, path),
        remote_prefix=instances_folder(table_id) + "/",
        allow_local_delete=allow_local_delete,
        allow_remote_delete=False,
        immutable=True,
    )


@dataclass
class FileSyncResult:
    """Outcome of one scope's batch. ``success`` only if every file succeeded."""

    scope: str
    direction: SyncDirection
    unchanged: list[str] = field(default_factory=list)
    uploaded: list[str] = field(default_factory=list)
    downloaded: list[str] = field(default_factory=list)
    deleted_local: list[str] = field(default_factory=list)
    deleted_remote: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    properties_changed: bool = False

    @property
    def success(self) -> bool:
        return not self.failed


class FileSyncOrchestrator:
    """Runs the shared push/pull algorithm for any ``FileSyncScope``.

    A failing file never aborts the batch: every file is attempted once,
    failures are logged and collected in the result.
    """

    def __init__(self, client: ServerClient, transfer: FileTransfer, fs: AppFileSystem) -> None:
        self.client = client
        self.transfer = transfer
        self.fs = fs

    def fetch_manifest(self, scope: FileSyncScope) -> list[ManifestEntry]:
        """Fetch the scope's manifest with filenames rewritten to app-relative paths."""
        manifest = self.client.get_model(scope.manifest_uri, FileManifest)
        return [
            entry.model_copy(update={"filename": scope.to_app_path(entry.filename)})
            if entry.filename
            else entry
            for entry in manifest.files
        ]

    def local_paths(self, scope: FileSyncScope) -> list[str]:
        paths = self.fs.list_files(scope.root, scope.exclusions)
        if scope.exclude_table_assets:
            paths = filter_out_table_asset_files(paths)
        if scope.asset_table_id is not None:
            assets = self.fs.list_files(ASSETS_CSV_FOLDER)
            paths.extend(filter_in_table_asset_files(assets, scope.asset_table_id))
        return paths

    def diff(self, scope: FileSyncScope, direction: SyncDirection) -> ManifestDiff:
        manifest: list[ManifestEntry] = []
        unsafe: list[str] = []
        for entry in self.fetch_manifest(scope):
            try:
                if entry.filename:
                    self.fs.resolve(entry.filename)
            except UnsafePathError:
                logger.error(
                    "Refusing manifest path outside the application folder: %s", entry.filename
                )
                unsafe.append(entry.filename)
                continue
            manifest.append(entry)

        diff = compute_manifest_diff(
            self.local_paths(scope), manifest, self.fs.content_hash, direction
        )
        diff.rejected.extend(unsafe)
        return diff

    def sync(self, scope: FileSyncScope, direction: SyncDirection) -> FileSyncResult:
        """Push or pull every file of ``scope``.

        Manifest fetch errors propagate; per-file errors are collected.
        """
        logger.info("Starting %s of %s files", direction, scope.name)
        diff = self.diff(scope, direction)
        result = FileSyncResult(scope=scope.name, direction=direction)
        result.unchanged.extend(diff.unchanged)
        result.failed.extend(diff.rejected)

        if direction is SyncDirection.PUSH:
            self._push(scope, diff, result)
        else:
            self._pull(scope, diff, result)

        if result.success:
            logger.info(
                "Finished %s of %s files: %d up, %d down, %d deleted locally, %d deleted remotely",
                direction,
                scope.name,
                len(result.uploaded),
                len(result.downloaded),
                len(result.deleted_local),
                len(result.deleted_remote),
            )
        else:
            logger.warning(
                "%s of %s files finished with %d failure(s): %s",
                direction,
                scope.name,
                len(result.failed),
                ", ".join(result.failed),
            )
        return result

    def _push(self, scope: FileSyncScope, diff: ManifestDiff, result: FileSyncResult) -> None:
        frozen = set(diff.mismatched) if scope.immutable else set()
        for path in sorted(frozen):
            self._report_integrity_mismatch(scope, path, result)

        # uploads first so a failed upload never leaves the server with neither copy
        for path in diff.to_upload:
            if path in frozen:
                continue
            uri = scope.file_uri(scope.to_remote_path(path))
            if self._attempt("Upload", path, result, partial(self._upload, path, uri)):
                result.uploaded.append(path)

        if not scope.allow_remote_delete:
            return
        for path in diff.to_delete_remote:
            uri = scope.file_uri(scope.to_remote_path(path))
            if self._attempt("Remote delete", path, result, partial(self.transfer.delete, uri)):
                result.deleted_remote.append(path)

    def _pull(self, scope: FileSyncScope, diff: ManifestDiff, result: FileSyncResult) -> None:
        frozen = set(diff.mismatched) if scope.immutable else set()
        for entry in diff.to_download:
            path = entry.filename
            if path in frozen:
                self._report_integrity_mismatch(scope, path, result)
                continue
            if self._attempt("Download", path, result, partial(self._download, entry)):
                result.downloaded.append(path)
                if path == scope.properties_path:
                    result.properties_changed = True

        if not scope.allow_local_delete:
            if diff.to_delete_local:
                logger.info(
                    "Keeping %d local file(s) not on the server for %s",
                    len(diff.to_delete_local),
                    scope.name,
                )
            return
        for path in diff.to_delete_local:
            if self._attempt("Local delete", path, result, partial(self._delete_local, path)):
                result.deleted_local.append(path)

    def _upload(self, path: str, uri: str) -> None:
        self.transfer.upload(self.fs.resolve(path), uri)

    def _download(self, entry: ManifestEntry) -> None:
        path = entry.filename
        self.fs.create_folder(posixpath.dirname(path))
        self.transfer.download(entry.download_url, self.fs.resolve(path))
        actual = self.fs.content_hash(path)
        if actual != entry.md5hash:
            raise IntegrityMismatchError(path, entry.md5hash, actual)

    def _delete_local(self, path: str) -> None:
        if not self.fs.delete_file(path):
            msg = f"Unable to delete {path}"
            raise OSError(msg)

    def _report_integrity_mismatch(
        self, scope: FileSyncScope, path: str, result: FileSyncResult
    ) -> None:
        logger.error(
            "Content of %s differs from the server's copy in %s; attachments must not change",
            path,
            scope.name,
        )
        result.failed.append(path)

    def _attempt(
        self, action: str, path: str, result: FileSyncResult, operation: Callable[[], object]
    ) -> bool:
        try:
            operation()
        except (SyncError, UnsafePathError, OSError) as exc:
            logger.error("%s of %s failed: %s", action, path, exc)
            result.failed.append(path)
            return False
        return True
