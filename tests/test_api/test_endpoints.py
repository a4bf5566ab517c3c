"""Tests for server URI templates."""

from __future__ import annotations

from tablesync.api.endpoints import ServerEndpoints, escape_path, join_uri

BASE = "https://sync.example.org/"


class TestHelpers:
    def test_join_uri_inserts_single_separator(self) -> None:
        assert join_uri("https://h/a/", "/b", "c") == "https://h/a/b/c"
        assert join_uri("https://h/a", "") == "https://h/a/"

    def test_escape_path_keeps_separators(self) -> None:
        assert escape_path("assets/my file#1.csv") == "assets/my%20file%231.csv"
        assert escape_path("tables\\T1\\a.csv") == "tables/T1/a.csv"


class TestServerEndpoints:
    def test_table_uris(self) -> None:
        endpoints = ServerEndpoints(BASE, "default", "2")
        assert endpoints.app_uri == "https://sync.example.org/odktables/default"
        assert endpoints.tables_uri == "https://sync.example.org/odktables/default/tables/"
        assert endpoints.table_uri("T 1") == (
            "https://sync.example.org/odktables/default/tables/T%201"
        )

    def test_manifest_uris(self) -> None:
        endpoints = ServerEndpoints(BASE, "default", "2")
        assert endpoints.manifest_uri() == (
            "https://sync.example.org/odktables/default/manifest/2/"
        )
        assert endpoints.manifest_uri("T1") == (
            "https://sync.example.org/odktables/default/manifest/2/T1"
        )

    def test_file_uri(self) -> None:
        endpoints = ServerEndpoints(BASE, "default", "2")
        assert endpoints.file_uri("assets/csv/T1.csv") == (
            "https://sync.example.org/odktables/default/files/2/assets/csv/T1.csv"
        )

    def test_attachment_uris(self) -> None:
        endpoints = ServerEndpoints(BASE, "default", "2")
        table = "https://sync.example.org/odktables/default/tables/T1"
        assert endpoints.attachment_manifest_uri("T1", "uuid:1") == (
            f"{table}/attachments/manifest/uuid%3A1"
        )
        assert endpoints.attachment_file_uri("T1", "uuid:1/photo 1.jpg") == (
            f"{table}/attachments/file/uuid%3A1/photo%201.jpg"
        )
