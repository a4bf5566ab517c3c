"""Shared test fixtures for tablesync."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest

from tablesync.api.client import ServerClient
from tablesync.api.endpoints import ServerEndpoints
from tablesync.config import Settings
from tablesync.synchronizer import Synchronizer
from tests._fake_server import APP_NAME, CLIENT_VERSION, SERVER_URL, FakeTableServer

if TYPE_CHECKING:
    from collections.abc import Generator
    from pathlib import Path

TEST_ACCESS_TOKEN = "test-access-token"


@pytest.fixture
def fake_server() -> FakeTableServer:
    return FakeTableServer()


@pytest.fixture
def transport(fake_server: FakeTableServer) -> httpx.MockTransport:
    return httpx.MockTransport(fake_server.handler)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Create test settings with a temporary application root."""
    return Settings(
        _env_file=None,
        server_url=SERVER_URL,
        app_name=APP_NAME,
        client_version=CLIENT_VERSION,
        app_root=tmp_path / "apps",
        access_token=TEST_ACCESS_TOKEN,
        verify_token=False,
    )


@pytest.fixture
def app_folder(settings: Settings) -> Path:
    folder = settings.app_folder
    folder.mkdir(parents=True, exist_ok=True)
    return folder


@pytest.fixture
def endpoints() -> ServerEndpoints:
    return ServerEndpoints(SERVER_URL, APP_NAME, CLIENT_VERSION)


@pytest.fixture
def server_client(transport: httpx.MockTransport) -> Generator[ServerClient]:
    client = ServerClient(SERVER_URL, TEST_ACCESS_TOKEN, transport=transport)
    yield client
    client.close()


@pytest.fixture
def synchronizer(
    settings: Settings, app_folder: Path, transport: httpx.MockTransport
) -> Generator[Synchronizer]:
    with Synchronizer(settings, transport=transport) as sync:
        yield sync
