"""Manifest diff: compare local files against a server manifest."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from tablesync.filesystem.app_files import ASSETS_CSV_FOLDER

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence

    from tablesync.schemas.manifest import ManifestEntry

logger = logging.getLogger(__name__)


class SyncDirection(StrEnum):
    """Push sends local changes to the server; pull applies server changes locally."""

    PUSH = "push"
    PULL = "pull"


@dataclass
class ManifestDiff:
    """Partition of local paths and manifest entries.

    A push fills ``to_upload`` and ``to_delete_remote``; a pull fills
    ``to_download`` and ``to_delete_local``. ``mismatched`` lists paths present
    on both sides with different content hashes, whichever the direction.
    """

    direction: SyncDirection
    unchanged: list[str] = field(default_factory=list)
    to_upload: list[str] = field(default_factory=list)
    to_delete_remote: list[str] = field(default_factory=list)
    to_download: list[ManifestEntry] = field(default_factory=list)
    to_delete_local: list[str] = field(default_factory=list)
    mismatched: list[str] = field(default_factory=list)
    rejected: list[str] = field(default_factory=list)


def compute_manifest_diff(
    local_paths: Iterable[str],
    manifest: Sequence[ManifestEntry],
    content_hash: Callable[[str], str | None],
    direction: SyncDirection,
) -> ManifestDiff:
    """Classify every local path and manifest entry for one sync direction.

    ``content_hash`` returns the hash of the local file at a relative path, or
    None when no such file exists. Files are equal only when path and content
    hash both match. Local paths left over once every manifest entry is
    consumed are uploaded on a push and deleted on a pull.
    """
    diff = ManifestDiff(direction=direction)
    candidates = dict.fromkeys(local_paths)
    seen: set[str] = set()

    for entry in manifest:
        path = entry.filename
        if not path:
            logger.warning("Manifest entry without a filename: %s", entry.download_url)
            diff.rejected.append(path)
            continue
        if path in seen:
            logger.warning("Duplicate manifest entry ignored: %s", path)
            continue
        seen.add(path)

        local_hash = content_hash(path)
        if local_hash is None:
            if direction is SyncDirection.PUSH:
                diff.to_delete_remote.append(path)
            else:
                diff.to_download.append(entry)
        elif local_hash == entry.md5hash:
            diff.unchanged.append(path)
            candidates.pop(path, None)
        else:
            diff.mismatched.append(path)
            if direction is SyncDirection.PULL:
                # the server copy wins on a pull
                diff.to_download.append(entry)
                candidates.pop(path, None)

    if direction is SyncDirection.PUSH:
        diff.to_upload.extend(candidates)
    else:
        diff.to_delete_local.extend(candidates)
    return diff


def filter_out_table_asset_files(relative_paths: Iterable[str]) -> list[str]:
    """Drop ``assets/csv/`` files; by convention they belong to a table's scope."""
    prefix = ASSETS_CSV_FOLDER + "/"
    return [path for path in relative_paths if not path.startswith(prefix)]


def filter_in_table_asset_files(relative_paths: Iterable[str], table_id: str) -> list[str]:
    """Keep the ``assets/csv/<tableId>.<ext>`` files of one table."""
    prefix = ASSETS_CSV_FOLDER + "/"
    kept: list[str] = []
    for path in relative_paths:
        if not path.startswith(prefix):
            continue
        parts = path.split("/")
        if len(parts) >= 3 and parts[2].split(".")[0] == table_id:
            kept.append(path)
    return kept
