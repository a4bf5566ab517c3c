"""Local application folder: layout conventions and file capabilities.

Every path handed to or returned from this module is relative to the
application folder and uses '/' separators, so app-level, table-level and
attachment manifests can all be compared with one algorithm.
"""

from __future__ import annotations

import hashlib
import logging
import os
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Protocol

from tablesync.exceptions import UnsafePathError

if TYPE_CHECKING:
    from collections.abc import Collection

logger = logging.getLogger(__name__)

TABLES_FOLDER_NAME = "tables"
INSTANCES_FOLDER_NAME = "instances"
ASSETS_FOLDER_NAME = "assets"
METADATA_FOLDER_NAME = "metadata"
LOGGING_FOLDER_NAME = "logging"
OUTPUT_FOLDER_NAME = "output"

ASSETS_CSV_FOLDER = f"{ASSETS_FOLDER_NAME}/csv"
TABLE_PROPERTIES_FILE_NAME = "properties.csv"

MD5_PREFIX = "md5:"


def directories_excluded_from_sync(exclude_tables_folder: bool) -> frozenset[str]:
    """Top-level folders never exchanged by the app-level scope."""
    excluded = {METADATA_FOLDER_NAME, LOGGING_FOLDER_NAME, OUTPUT_FOLDER_NAME}
    if exclude_tables_folder:
        excluded.add(TABLES_FOLDER_NAME)
    return frozenset(excluded)


def table_folder(table_id: str) -> str:
    return f"{TABLES_FOLDER_NAME}/{table_id}"


def instances_folder(table_id: str) -> str:
    return f"{table_folder(table_id)}/{INSTANCES_FOLDER_NAME}"


def instance_folder(table_id: str, row_id: str) -> str:
    """Folder holding one row's attachments."""
    return f"{instances_folder(table_id)}/{row_id}"


def table_properties_path(table_id: str) -> str:
    return f"{table_folder(table_id)}/{TABLE_PROPERTIES_FILE_NAME}"


def hash_file(path: Path) -> str:
    """Compute the ``md5:``-prefixed content hash of a file."""
    md5 = hashlib.md5(usedforsecurity=False)
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            md5.update(chunk)
    return MD5_PREFIX + md5.hexdigest()


class AppFileSystem(Protocol):
    """Filesystem capabilities the synchronizer needs."""

    def resolve(self, relative_path: str) -> Path:
        """Absolute location of an app-relative path."""
        ...

    def list_files(self, folder: str, excluding: Collection[str] = ()) -> list[str]:
        """App-relative paths of all files under ``folder``.

        ``excluding`` names immediate children of ``folder`` whose subtrees
        are skipped.
        """
        ...

    def is_file(self, relative_path: str) -> bool: ...

    def content_hash(self, relative_path: str) -> str | None:
        """Content hash of a file, or None when there is no such file."""
        ...

    def create_folder(self, relative_path: str) -> None: ...

    def delete_file(self, relative_path: str) -> bool:
        """Delete a file. Returns False when the file could not be removed."""
        ...


class LocalAppFileSystem:
    """``AppFileSystem`` over a real directory."""

    def __init__(self, app_folder: Path) -> None:
        self.app_folder = app_folder

    def resolve(self, relative_path: str) -> Path:
        """Resolve an app-relative path, rejecting anything outside the app folder."""
        root = self.app_folder.resolve()
        local_path = (root / relative_path).resolve()
        if local_path == root or not local_path.is_relative_to(root):
            msg = f"Path escapes the application folder: {relative_path}"
            raise UnsafePathError(msg)
        return local_path

    def _relative(self, path: Path) -> str:
        return PurePosixPath(path.relative_to(self.app_folder.resolve())).as_posix()

    def list_files(self, folder: str, excluding: Collection[str] = ()) -> list[str]:
        base = self.app_folder.resolve() / folder if folder else self.app_folder.resolve()
        if not base.exists():
            return []
        if not base.is_dir():
            logger.error("Not a directory, nothing to sync under it: %s", base)
            return []

        paths: list[str] = []
        for child in base.iterdir():
            if child.name in excluding:
                continue
            if child.is_dir():
                for root, _dirs, files in os.walk(child):
                    paths.extend(self._relative(Path(root) / name) for name in files)
            else:
                paths.append(self._relative(child))
        return sorted(paths)

    def is_file(self, relative_path: str) -> bool:
        return self.resolve(relative_path).is_file()

    def content_hash(self, relative_path: str) -> str | None:
        path = self.resolve(relative_path)
        if not path.is_file():
            return None
        return hash_file(path)

    def create_folder(self, relative_path: str) -> None:
        folder = self.resolve(relative_path) if relative_path else self.app_folder
        folder.mkdir(parents=True, exist_ok=True)

    def delete_file(self, relative_path: str) -> bool:
        try:
            self.resolve(relative_path).unlink(missing_ok=True)
        except OSError as exc:
            logger.error("Unable to delete %s: %s", relative_path, exc)
            return False
        return True
