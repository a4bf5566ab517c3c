"""Resilient single-file download, upload and delete."""

from __future__ import annotations

import logging
import mimetypes
import os
import tempfile
import zlib
from contextlib import contextmanager
from typing import IO, TYPE_CHECKING

import httpx

from tablesync.exceptions import TransportError
from tablesync.services.retry import run_with_retry

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator
    from pathlib import Path

    from tablesync.api.client import ServerClient

logger = logging.getLogger(__name__)

GZIP_CONTENT_ENCODING = "gzip"
TEMP_SUFFIX = ".tmp"
# window bits that make zlib expect a gzip header and trailer
GZIP_WBITS = zlib.MAX_WBITS | 16


@contextmanager
def atomic_destination(destination: Path) -> Iterator[IO[bytes]]:
    """Write to a temporary sibling of ``destination`` and rename it into place.

    The rename happens only when the block exits normally; on any other exit
    the temporary file is removed and ``destination`` is left untouched.
    """
    destination.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        dir=destination.parent, prefix=f".{destination.name}.", suffix=TEMP_SUFFIX
    )
    try:
        with os.fdopen(fd, "wb") as out:
            yield out
            out.flush()
            os.fsync(out.fileno())
        os.replace(tmp_name, destination)
    finally:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)


@contextmanager
def drained(chunks: Iterator[bytes]) -> Iterator[Iterator[bytes]]:
    """Consume whatever is left of a response body on every exit path.

    A pooled connection can only be reused once its body was read to the end.
    """
    try:
        yield chunks
    finally:
        try:
            for _ in chunks:
                pass
        except httpx.HTTPError as exc:
            logger.debug("Response body could not be drained: %s", exc)


def gunzip(chunks: Iterable[bytes]) -> Iterator[bytes]:
    """Decompress a gzip body, failing when the stream stops before its trailer.

    Concatenated gzip members are decoded one after another.
    """
    decompressor = zlib.decompressobj(GZIP_WBITS)
    try:
        for chunk in chunks:
            while chunk:
                yield decompressor.decompress(chunk)
                chunk = decompressor.unused_data
                if chunk:
                    decompressor = zlib.decompressobj(GZIP_WBITS)
        yield decompressor.flush()
    except zlib.error as exc:
        msg = f"Malformed gzip body: {exc}"
        raise TransportError(msg) from exc
    if not decompressor.eof:
        msg = "Gzip body ended before the end of the compressed stream"
        raise TransportError(msg)


class FileTransfer:
    """Moves one file at a time between the server and the local replica."""

    def __init__(self, client: ServerClient, *, max_retries: int = 1) -> None:
        self.client = client
        self.max_retries = max_retries

    def download(self, url: str, destination: Path) -> bool:
        """Download ``url`` over ``destination``, retrying once on transport failure.

        A second consecutive failure propagates. ``destination`` is only ever
        replaced by a completely received body.
        """
        logger.info("Downloading %s", url)
        run_with_retry(
            lambda: self._download_once(url, destination),
            max_retries=self.max_retries,
            description=f"Download of {url}",
        )
        return True

    def _download_once(self, url: str, destination: Path) -> None:
        headers = {"Accept-Encoding": GZIP_CONTENT_ENCODING}
        with self.client.stream("GET", url, headers=headers) as response:
            if response.status_code != httpx.codes.OK:
                response.read()
                msg = f"GET {url} returned {response.status_code} instead of the whole file"
                raise TransportError(msg, status_code=response.status_code)
            encoding = response.headers.get("Content-Encoding", "").strip().lower()
            compressed = encoding == GZIP_CONTENT_ENCODING
            # gzip is decoded by gunzip() so a body missing its trailer is rejected
            raw = response.iter_raw() if compressed else response.iter_bytes()
            with drained(raw) as chunks, atomic_destination(destination) as out:
                for chunk in gunzip(chunks) if compressed else chunks:
                    out.write(chunk)

    def upload(self, local_path: Path, url: str) -> bool:
        """Stream a local file to ``url`` in a single attempt."""
        content_type = mimetypes.guess_type(local_path.name)[0] or "application/octet-stream"
        logger.info("Uploading %s to %s", local_path, url)
        headers = {
            "Content-Type": content_type,
            "Content-Length": str(local_path.stat().st_size),
        }
        with open(local_path, "rb") as f:
            self.client.request("POST", url, content=f, headers=headers)
        return True

    def delete(self, url: str) -> bool:
        logger.info("Deleting %s", url)
        self.client.delete(url)
        return True
