"""File manifest schemas."""

from __future__ import annotations

from pydantic import Field

from tablesync.schemas.tables import WireModel


class ManifestEntry(WireModel):
    """One server-advertised file.

    ``filename`` is unique within a manifest; ``md5hash`` carries the
    ``md5:`` prefix.
    """

    filename: str
    md5hash: str
    download_url: str = Field(alias="downloadUrl")
    content_length: int | None = Field(default=None, alias="contentLength")
    content_type: str | None = Field(default=None, alias="contentType")


class FileManifest(WireModel):
    files: list[ManifestEntry] = Field(default_factory=list)
