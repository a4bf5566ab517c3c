"""Server URI templates for tables, rows, manifests and files."""

from __future__ import annotations

from urllib.parse import quote


def escape_path(relative_path: str) -> str:
    """Percent-escape each segment of a relative path, keeping the separators."""
    return quote(relative_path.replace("\\", "/"), safe="/")


def join_uri(base: str, *segments: str) -> str:
    """Append segments to a base URI, inserting exactly one '/' between parts."""
    uri = base
    for segment in segments:
        uri = uri.rstrip("/") + "/" + segment.lstrip("/")
    return uri


class ServerEndpoints:
    """Absolute URIs of one application on one server.

    Everything lives under ``/odktables/<app_name>/``; manifests and files are
    additionally versioned by the client version fragment.
    """

    def __init__(self, server_url: str, app_name: str, client_version: str) -> None:
        self.server_url = server_url.rstrip("/")
        self.app_name = app_name
        self.client_version = client_version

    @property
    def app_uri(self) -> str:
        return f"{self.server_url}/odktables/{quote(self.app_name, safe='')}"

    @property
    def tables_uri(self) -> str:
        return f"{self.app_uri}/tables/"

    def table_uri(self, table_id: str) -> str:
        return join_uri(self.tables_uri, quote(table_id, safe=""))

    def manifest_uri(self, table_id: str | None = None) -> str:
        uri = f"{self.app_uri}/manifest/{self.client_version}/"
        if table_id is not None:
            uri = join_uri(uri, quote(table_id, safe=""))
        return uri

    def file_uri(self, relative_path: str) -> str:
        """Upload/delete locator of an app- or table-level file."""
        return join_uri(f"{self.app_uri}/files/{self.client_version}/", escape_path(relative_path))

    def attachment_manifest_uri(self, table_id: str, row_id: str) -> str:
        return join_uri(
            self.table_uri(table_id), "attachments", "manifest", quote(row_id, safe="")
        )

    def attachment_file_uri(self, table_id: str, path_under_instances: str) -> str:
        return join_uri(
            self.table_uri(table_id), "attachments", "file", escape_path(path_under_instances)
        )
