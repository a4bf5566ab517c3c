"""CLI for synchronizing a local application folder with a table server."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

from tablesync.config import Settings, validate_server_url
from tablesync.exceptions import SyncError
from tablesync.schemas.tables import SyncTag
from tablesync.synchronizer import Synchronizer

if TYPE_CHECKING:
    from collections.abc import Sequence

    from tablesync.services.file_sync import FileSyncResult

logger = logging.getLogger(__name__)


def _configure_logging(debug: bool) -> None:
    """Configure CLI logging."""
    level = logging.DEBUG if debug else logging.INFO
    fmt = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
    logging.basicConfig(
        level=level,
        format=fmt,
        stream=sys.stderr,
        force=True,
    )
    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tablesync",
        description="Synchronize a local application folder with a table server",
    )
    parser.add_argument("--dir", "-d", help="Directory holding application folders")
    parser.add_argument("--server", "-s", help="Server URL")
    parser.add_argument("--app", "-a", help="Application name")
    parser.add_argument("--token", help="OAuth2 access token")
    parser.add_argument(
        "--allow-insecure-http",
        action="store_true",
        help="Allow http:// server URLs for non-localhost hosts",
    )
    parser.add_argument(
        "--no-verify-token",
        action="store_true",
        help="Do not verify the access token before syncing",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("tables", help="List server tables and their tags")
    for name, help_text in (
        ("pull", "Download application and table files"),
        ("push", "Upload application and table files"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument(
            "--table",
            "-t",
            action="append",
            default=[],
            help="Also sync this table's files (repeatable)",
        )
    changes = subparsers.add_parser("changes", help="Show rows changed since a tag")
    changes.add_argument("table", help="Table id")
    changes.add_argument("--data-etag", help="Data ETag of the last sync")
    changes.add_argument("--schema-etag", help="Schema ETag of the last sync")
    return parser


def load_settings(args: argparse.Namespace) -> Settings:
    """Environment settings overridden by command-line options."""
    overrides: dict[str, Any] = {}
    if args.dir:
        overrides["app_root"] = Path(args.dir).resolve()
    if args.server:
        overrides["server_url"] = args.server
    if args.app:
        overrides["app_name"] = args.app
    if args.token:
        overrides["access_token"] = args.token
    if args.no_verify_token:
        overrides["verify_token"] = False
    if args.debug:
        overrides["debug"] = True
    settings = Settings(**overrides)
    server_url = validate_server_url(settings.server_url, args.allow_insecure_http)
    return settings.model_copy(update={"server_url": server_url})


def _print_result(result: FileSyncResult) -> None:
    for path in result.uploaded:
        print(f"  Upload: {path}")
    for path in result.downloaded:
        print(f"  Download: {path}")
    for path in result.deleted_local:
        print(f"  Delete local: {path}")
    for path in result.deleted_remote:
        print(f"  Delete remote: {path}")
    for path in result.failed:
        print(f"  FAILED: {path}")
    if result.properties_changed:
        print("  Table properties changed")
    status = "complete" if result.success else "incomplete"
    print(f"{result.direction.capitalize()} of {result.scope} files {status}.")


def _sync_files(sync: Synchronizer, push: bool, table_ids: Sequence[str]) -> bool:
    results = [sync.sync_app_level_files(push)]
    for table_id in table_ids:
        results.append(sync.sync_table_level_files(table_id, push))
    for result in results:
        _print_result(result)
    return all(result.success for result in results)


def _show_tables(sync: Synchronizer) -> None:
    tables = sync.get_tables()
    if not tables:
        print("No tables on the server.")
    for table in tables:
        print(f"{table.table_id}  data={table.data_etag}  schema={table.schema_etag}")


def _show_changes(sync: Synchronizer, table_id: str, since: SyncTag) -> None:
    changes = sync.fetch_changes(table_id, since)
    for row_id in sorted(changes.rows):
        row = changes.rows[row_id]
        marker = " (deleted)" if row.deleted else ""
        print(f"  {row_id} etag={row.row_etag}{marker}")
    print(
        f"{len(changes.rows)} changed row(s). "
        f"Current tag: data={changes.tag.data_etag} schema={changes.tag.schema_etag}"
    )


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 1

    try:
        settings = load_settings(args)
    except ValueError as exc:
        print(f"Error: {exc}")
        return 1
    _configure_logging(settings.debug)

    try:
        with Synchronizer(settings) as sync:
            if args.command == "tables":
                _show_tables(sync)
            elif args.command == "changes":
                since = SyncTag(data_etag=args.data_etag, schema_etag=args.schema_etag)
                _show_changes(sync, args.table, since)
            elif not _sync_files(sync, args.command == "push", args.table):
                return 1
    except SyncError as exc:
        logger.error("%s failed: %s", args.command, exc)
        print(f"Error: {exc}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
