"""Tests for the tablesync command-line client."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from unittest.mock import patch

import pytest

from cli.sync_client import _build_parser, _configure_logging, load_settings, main
from tablesync.exceptions import AuthError
from tablesync.synchronizer import Synchronizer
from tests._fake_server import SERVER_URL

if TYPE_CHECKING:
    from collections.abc import Generator
    from pathlib import Path

    import httpx

    from tablesync.config import Settings
    from tests._fake_server import FakeTableServer


@pytest.fixture(autouse=True)
def _wire_fake_server(transport: httpx.MockTransport) -> Generator[None]:
    def factory(settings: Settings) -> Synchronizer:
        return Synchronizer(settings, transport=transport)

    with (
        patch("cli.sync_client.Synchronizer", side_effect=factory),
        patch("cli.sync_client._configure_logging"),
    ):
        yield


def _args(tmp_path: Path, *command: str) -> list[str]:
    return [
        "--dir",
        str(tmp_path),
        "--server",
        SERVER_URL,
        "--token",
        "tok",
        "--no-verify-token",
        *command,
    ]


class TestLoadSettings:
    def test_options_override_settings(self, tmp_path: Path) -> None:
        args = _build_parser().parse_args(
            ["--app", "census", "--debug", *_args(tmp_path, "tables")]
        )
        settings = load_settings(args)
        assert settings.server_url == SERVER_URL
        assert settings.app_folder == tmp_path.resolve() / "census"
        assert settings.access_token == "tok"
        assert settings.verify_token is False
        assert settings.debug is True

    def test_insecure_server_rejected(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["--server", "http://example.com", "tables"]) == 1
        assert "HTTPS is required" in capsys.readouterr().out


class TestCommands:
    def test_no_command_prints_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main([]) == 1
        assert "usage: tablesync" in capsys.readouterr().out

    def test_tables(
        self,
        tmp_path: Path,
        fake_server: FakeTableServer,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        fake_server.add_table("people", data_etag="d1")
        fake_server.add_table("animals", schema_etag="s7")

        assert main(_args(tmp_path, "tables")) == 0

        lines = capsys.readouterr().out.splitlines()
        assert lines == [
            "animals  data=None  schema=s7",
            "people  data=d1  schema=s1",
        ]

    def test_pull_app_and_table_files(
        self,
        tmp_path: Path,
        fake_server: FakeTableServer,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        fake_server.files.update(
            {"index.html": b"<html/>", "tables/T1/properties.csv": b"k,v\n"}
        )

        assert main(_args(tmp_path, "pull", "--table", "T1")) == 0

        out = capsys.readouterr().out
        assert "Download: index.html" in out
        assert "Download: tables/T1/properties.csv" in out
        assert "Table properties changed" in out
        assert (tmp_path / "default" / "tables" / "T1" / "properties.csv").exists()

    def test_push_failure_exits_nonzero(
        self,
        tmp_path: Path,
        fake_server: FakeTableServer,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        (tmp_path / "default").mkdir()
        (tmp_path / "default" / "a.txt").write_bytes(b"a")
        fake_server.forbidden_paths.add("/odktables/default/files/2/a.txt")

        assert main(_args(tmp_path, "push")) == 1

        out = capsys.readouterr().out
        assert "FAILED: a.txt" in out
        assert "Push of app files incomplete." in out

    def test_changes(
        self,
        tmp_path: Path,
        fake_server: FakeTableServer,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        fake_server.add_table("T1")
        fake_server.write_row("T1", "r1", {"name": "a"}, data_etag="d1")
        fake_server.write_row("T1", "r2", {"name": "b"}, data_etag="d2", deleted=True)

        args = _args(tmp_path, "changes", "T1", "--data-etag", "d1", "--schema-etag", "s1")
        assert main(args) == 0

        out = capsys.readouterr().out
        assert "r1" not in out
        assert "r2 etag=" in out
        assert "(deleted)" in out
        assert "Current tag: data=d2 schema=s1" in out

    def test_engine_error_exits_nonzero(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        with patch("cli.sync_client.Synchronizer", side_effect=AuthError("Invalid auth token")):
            assert main(_args(tmp_path, "tables")) == 1
        assert "Error: Invalid auth token" in capsys.readouterr().out

    def test_unknown_table_exits_nonzero(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert main(_args(tmp_path, "changes", "missing")) == 1
        assert "404" in capsys.readouterr().out


class TestConfigureLogging:
    def test_quiets_http_libraries(self) -> None:
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        try:
            _configure_logging(debug=True)
            assert root.level == logging.DEBUG
            assert logging.getLogger("httpx").level == logging.WARNING
            assert logging.getLogger("httpcore").level == logging.WARNING
        finally:
            root.handlers[:] = handlers
            root.setLevel(level)
