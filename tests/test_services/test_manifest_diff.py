"""Tests for the manifest diff engine and asset path filters."""

from __future__ import annotations

from typing import TYPE_CHECKING

from tablesync.schemas.manifest import ManifestEntry
from tablesync.services.manifest_diff import (
    SyncDirection,
    compute_manifest_diff,
    filter_in_table_asset_files,
    filter_out_table_asset_files,
)

if TYPE_CHECKING:
    from collections.abc import Callable


def _entry(filename: str, md5hash: str) -> ManifestEntry:
    return ManifestEntry(
        filename=filename, md5hash=md5hash, download_url=f"https://example.org/{filename}"
    )


def _hashes(mapping: dict[str, str]) -> Callable[[str], str | None]:
    return mapping.get


class TestPushDiff:
    def test_app_level_push_scenario(self) -> None:
        local = {"a.txt": "md5:a", "b.txt": "md5:b", "c.txt": "md5:c-local"}
        manifest = [_entry("b.txt", "md5:b"), _entry("c.txt", "md5:c"), _entry("d.txt", "md5:d")]

        diff = compute_manifest_diff(local, manifest, _hashes(local), SyncDirection.PUSH)

        assert sorted(diff.to_upload) == ["a.txt", "c.txt"]
        assert diff.to_delete_remote == ["d.txt"]
        assert diff.unchanged == ["b.txt"]
        assert diff.mismatched == ["c.txt"]
        assert diff.to_download == []
        assert diff.to_delete_local == []

    def test_empty_manifest_uploads_everything(self) -> None:
        local = {"a.txt": "md5:a", "sub/b.txt": "md5:b"}
        diff = compute_manifest_diff(local, [], _hashes(local), SyncDirection.PUSH)
        assert diff.to_upload == ["a.txt", "sub/b.txt"]
        assert diff.to_delete_remote == []


class TestPullDiff:
    def test_pull_downloads_new_and_changed_and_deletes_extra(self) -> None:
        local = {"a.txt": "md5:a", "b.txt": "md5:b", "c.txt": "md5:c-local"}
        manifest = [_entry("b.txt", "md5:b"), _entry("c.txt", "md5:c"), _entry("d.txt", "md5:d")]

        diff = compute_manifest_diff(local, manifest, _hashes(local), SyncDirection.PULL)

        assert [entry.filename for entry in diff.to_download] == ["c.txt", "d.txt"]
        assert diff.to_delete_local == ["a.txt"]
        assert diff.unchanged == ["b.txt"]
        assert diff.to_upload == []
        assert diff.to_delete_remote == []

    def test_excluded_local_file_present_in_manifest_is_not_deleted(self) -> None:
        # the file exists on disk but was filtered out of the candidate list
        hashes = {"kept.txt": "md5:k"}
        manifest = [_entry("kept.txt", "md5:k")]
        diff = compute_manifest_diff([], manifest, _hashes(hashes), SyncDirection.PULL)
        assert diff.unchanged == ["kept.txt"]
        assert diff.to_delete_local == []


class TestManifestAnomalies:
    def test_duplicate_entries_are_ignored(self) -> None:
        manifest = [_entry("x.txt", "md5:1"), _entry("x.txt", "md5:2")]
        diff = compute_manifest_diff([], manifest, _hashes({}), SyncDirection.PULL)
        assert [entry.md5hash for entry in diff.to_download] == ["md5:1"]

    def test_empty_filename_is_rejected(self) -> None:
        manifest = [_entry("", "md5:1")]
        diff = compute_manifest_diff([], manifest, _hashes({}), SyncDirection.PULL)
        assert diff.rejected == [""]
        assert diff.to_download == []


class TestAssetFilters:
    PATHS = [
        "assets/index.html",
        "assets/csv/T1.csv",
        "assets/csv/T1.updated.csv",
        "assets/csv/T10.csv",
        "assets/csv/T2.csv",
        "assets/csv/nested/T1.csv",
        "config.json",
    ]

    def test_filter_out_drops_all_csv_assets(self) -> None:
        assert filter_out_table_asset_files(self.PATHS) == ["assets/index.html", "config.json"]

    def test_filter_in_keeps_only_the_tables_files(self) -> None:
        assert filter_in_table_asset_files(self.PATHS, "T1") == [
            "assets/csv/T1.csv",
            "assets/csv/T1.updated.csv",
        ]

    def test_filter_in_does_not_match_prefixes(self) -> None:
        assert filter_in_table_asset_files(["assets/csv/T10.csv"], "T1") == []
