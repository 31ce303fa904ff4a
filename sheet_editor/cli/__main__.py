from __future__ import annotations

import argparse
import re
import sys
from pathlib import Path

from dotenv import load_dotenv

from ..config.loader import ConfigError, load_config
from ..excel.grid_io import GridIOError, read_workbook, write_csv_grid, write_workbook
from ..logging.error_log import ErrorLogBuffer
from ..logging.init import get_logger, log_summary, set_level, setup_logging
from ..services.document_store import DocumentStoreError
from ..services.editor import SpreadsheetEditor
from ..services.progress import ProgressTracker
from ..storage.backend import StorageError
from ..storage.record import RecordFormatError

"""CLI entrypoint: maintenance commands over stored documents.

    python -m sheet_editor.cli list
    python -m sheet_editor.cli summary <name>
    python -m sheet_editor.cli export <name> --out <dir> [--format csv|xlsx]
    python -m sheet_editor.cli import <file> [--name <name>]
    python -m sheet_editor.cli delete <name>

Exit codes: 0 success, 1 fatal (config / storage / missing document),
2 partial failure (some sheets could not be exported or imported).
"""

EXIT_SUCCESS_ALL = 0
EXIT_FATAL = 1
EXIT_PARTIAL_FAILURE = 2

_UNSAFE_FILENAME = re.compile(r'[\\/:*?"<>|]')


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv.

    override=True により .env の値で既存環境変数を上書きし、PostgreSQL 接続情報を最優先化。
    """
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="sheet_editor", description="Spreadsheet document maintenance")
    p.add_argument("--config", type=Path, default=Path("config/editor.yml"), help="Config file path")
    p.add_argument("--env-file", type=Path, default=Path(".env"), help="dotenv file with DB settings")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="List stored documents")

    s = sub.add_parser("summary", help="Print the SUMMARY line of a stored document")
    s.add_argument("name")

    e = sub.add_parser("export", help="Export a stored document to CSV (one file per sheet) or XLSX")
    e.add_argument("name")
    e.add_argument("--out", type=Path, default=Path("."), help="Output directory")
    e.add_argument("--format", choices=("csv", "xlsx"), default="csv")

    i = sub.add_parser("import", help="Import a CSV/XLSX file as a new stored document")
    i.add_argument("path", type=Path)
    i.add_argument("--name", help="Document name (default: file name without suffix)")

    d = sub.add_parser("delete", help="Delete a stored document")
    d.add_argument("name")
    return p.parse_args(argv)


def _safe_filename(name: str) -> str:
    return _UNSAFE_FILENAME.sub("_", name)


def _cmd_list(editor: SpreadsheetEditor, args: argparse.Namespace) -> int:
    names = editor.list_documents()
    for name in names:
        print(name)
    get_logger().info(f"documents={len(names)}")
    return EXIT_SUCCESS_ALL


def _cmd_summary(editor: SpreadsheetEditor, args: argparse.Namespace) -> int:
    editor.open_document(args.name)
    log_summary(editor.summary_line()[len("SUMMARY "):])
    return EXIT_SUCCESS_ALL


def _cmd_export(editor: SpreadsheetEditor, args: argparse.Namespace) -> int:
    editor.open_document(args.name)
    store = editor.store
    if args.format == "xlsx":
        path = args.out / f"{_safe_filename(args.name)}.xlsx"
        write_workbook({s: store.get_grid(s) for s in store.sheets}, path)
        get_logger().info(f"exported {len(store.sheets)} sheet(s) to {path}")
        return EXIT_SUCCESS_ALL

    failed = 0
    with ProgressTracker(len(store.sheets), description="Exporting") as progress:
        for sheet in store.sheets:
            progress.start(sheet)
            path = args.out / f"{_safe_filename(args.name)}_{_safe_filename(sheet)}.csv"
            try:
                write_csv_grid(store.get_grid(sheet), path)
            except GridIOError as e:
                get_logger().error(f"export {sheet}: {e}")
                failed += 1
                progress.finish(success=False)
                continue
            get_logger().info(f"exported {sheet} -> {path}")
            progress.finish()
    return EXIT_PARTIAL_FAILURE if failed else EXIT_SUCCESS_ALL


def _cmd_import(editor: SpreadsheetEditor, args: argparse.Namespace) -> int:
    cfg = editor.config
    sheets = read_workbook(args.path, min_rows=cfg.default_rows, min_cols=cfg.default_cols)
    if not sheets:
        get_logger().error(f"no sheets found in {args.path}")
        return EXIT_FATAL

    name = args.name or args.path.stem
    editor.new_document()
    store = editor.store
    imported = 0
    failed = 0
    with ProgressTracker(len(sheets), description="Importing") as progress:
        for sheet_name, grid in sheets.items():
            progress.start(sheet_name)
            try:
                if imported == 0:
                    store.rename_sheet(store.current_sheet, sheet_name)
                else:
                    store.create_sheet(sheet_name)
                store.update_sheet_data(sheet_name, grid, record_undo=False)
            except (DocumentStoreError, ValueError) as e:
                get_logger().error(f"import {sheet_name}: {e}")
                failed += 1
                progress.finish(success=False)
                continue
            imported += 1
            progress.finish()

    if imported == 0:
        return EXIT_FATAL
    editor.save_document(name)
    log_summary(editor.summary_line()[len("SUMMARY "):])
    return EXIT_PARTIAL_FAILURE if failed else EXIT_SUCCESS_ALL


def _cmd_delete(editor: SpreadsheetEditor, args: argparse.Namespace) -> int:
    if not editor.delete_document(args.name):
        get_logger().error(f"document not found: {args.name}")
        return EXIT_FATAL
    get_logger().info(f"deleted {args.name}")
    return EXIT_SUCCESS_ALL


_COMMANDS = {
    "list": _cmd_list,
    "summary": _cmd_summary,
    "export": _cmd_export,
    "import": _cmd_import,
    "delete": _cmd_delete,
}


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # None のときのみシステム引数を読む (テストで main([]) を呼ぶため)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(args.env_file, override=True)

    if args.debug:
        set_level("DEBUG")
        logger.debug("debug mode enabled")

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    error_buffer = ErrorLogBuffer()
    editor = SpreadsheetEditor(cfg, error_buffer=error_buffer)
    try:
        return _COMMANDS[args.command](editor, args)
    except (StorageError, RecordFormatError, GridIOError) as e:
        logger.error(f"{args.command}: {e}")
        return EXIT_FATAL
    finally:
        path = error_buffer.flush()
        if path is not None:
            logger.warning(f"contained errors written to {path}")


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
