from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any

from pymongo.errors import ConnectionFailure, PyMongoError

from voter_ingest import __version__ as TOOL_VERSION
from voter_ingest.config import Settings, configure_logging
from voter_ingest.errors import (
    EXIT_COMMAND_ERROR,
    EXIT_PARSE_FAILED,
    EXIT_PARTIAL,
    EXIT_STORE_UNAVAILABLE,
    EXIT_SUCCESS,
    IngestError,
    TransportFailure,
)
from voter_ingest.loader import ALL_FORMATS

logger = logging.getLogger(__name__)


class CliError(Exception):
    def __init__(self, message: str, code: int = EXIT_COMMAND_ERROR) -> None:
        super().__init__(message)
        self.code = code


class VoterIngestArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise CliError(message, EXIT_COMMAND_ERROR)


def eprint(message: str) -> None:
    print(message, file=sys.stderr)


def emit_human(message: str, *, quiet: bool = False) -> None:
    if not quiet:
        eprint(message)


def json_dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True)


def read_input(path_arg: str) -> tuple[bytes, str]:
    input_path = Path(path_arg)
    if not input_path.exists():
        raise CliError(f"File not found: {input_path}", EXIT_COMMAND_ERROR)
    suffix = input_path.suffix.lower()
    if suffix not in ALL_FORMATS:
        raise CliError(
            f"Unsupported file type '{suffix or '[missing extension]'}'. "
            f"Supported: {', '.join(sorted(ALL_FORMATS))}",
            EXIT_COMMAND_ERROR,
        )
    return input_path.read_bytes(), input_path.name


def load_settings(args: argparse.Namespace) -> Settings:
    try:
        settings = Settings.from_env()
    except ValueError as exc:
        raise CliError(str(exc), EXIT_COMMAND_ERROR) from exc
    batch_size = getattr(args, "batch_size", None)
    if batch_size is not None:
        if batch_size < 1:
            raise CliError("--batch-size must be >= 1", EXIT_COMMAND_ERROR)
        settings = replace(settings, batch_size=batch_size)
    return settings


def open_store(settings: Settings):
    from voter_ingest.store import connect_store

    return connect_store(settings)


# ── Renderers ──────────────────────────────────────────────────────────────────

def render_record_line(document: dict[str, Any]) -> str:
    names = " / ".join(part for part in (document.get("name"), document.get("name_mr")) if part)
    genders = " / ".join(part for part in (document.get("gender"), document.get("gender_mr")) if part)
    extras = [
        f"age {document['age']}" if document.get("age") else "",
        f"EPIC {document['voterIdCard']}" if document.get("voterIdCard") else "",
        f"house {document['houseNumber']}" if document.get("houseNumber") else "",
    ]
    detail = ", ".join(part for part in [genders, *extras] if part)
    serial = document.get("serialNumber") or "-"
    return f"  [{serial}] {names}" + (f" ({detail})" if detail else "")


def render_upload_text(payload: dict[str, Any]) -> str:
    lines = [
        payload["message"],
        f"Header row: {payload['headerRowIndex'] + 1}",
        f"Inserted: {payload['insertedCount']}  Failed: {payload['errorCount']}  Skipped rows: {payload['skippedCount']}",
    ]
    if payload["errorSamples"]:
        lines.append("Failures:")
        lines.extend(
            f"- record {item['index']} (sheet row {item['row']}): {item['message']}"
            for item in payload["errorSamples"]
        )
    warnings = payload.get("summary", {}).get("warnings", [])
    lines.extend(f"Warning: {warning}" for warning in warnings)
    return "\n".join(lines)


def render_preview_text(payload: dict[str, Any]) -> str:
    lines = [
        f"Header row: {payload['headerRowIndex'] + 1} -> {[cell for cell in payload['header'] if cell]}",
        f"Data rows: {payload['totalRows']}  Valid: {payload['validCount']}  Skipped: {payload['skippedCount']}",
    ]
    if payload["skippedRows"]:
        lines.append(f"Skipped sheet rows: {', '.join(str(row) for row in payload['skippedRows'])}")
    if payload["sample"]:
        lines.append("Sample:")
        lines.extend(render_record_line(document) for document in payload["sample"])
    lines.extend(f"Warning: {warning}" for warning in payload["warnings"])
    return "\n".join(lines)


def render_search_text(payload: dict[str, Any]) -> str:
    header = (
        f"{payload['totalCount']} match(es) for '{payload['query']}' "
        f"[{payload['searchLanguage']}] page {payload['currentPage']}/{max(payload['totalPages'], 1)}"
    )
    return "\n".join([header, *(render_record_line(document) for document in payload["data"])])


# ── Parser ─────────────────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = VoterIngestArgumentParser(prog="voter-ingest", description="Voter-roll spreadsheet ingestion")
    subparsers = parser.add_subparsers(dest="command", required=True)

    upload = subparsers.add_parser("upload", help="Ingest a sheet into the store.")
    upload.add_argument("input", help="Input file path")
    upload.add_argument("--sheet", dest="sheet_name", help="Workbook sheet name (default: first sheet)")
    upload.add_argument("--batch-size", dest="batch_size", type=int, help="Records per bulk insert")
    upload.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    upload.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
    upload.add_argument("-v", "--verbose", action="store_true", help="More human logs")

    preview = subparsers.add_parser("preview", help="Parse a sheet without writing anything.")
    preview.add_argument("input", help="Input file path")
    preview.add_argument("--sheet", dest="sheet_name", help="Workbook sheet name (default: first sheet)")
    preview.add_argument("--limit", type=int, default=5, help="Sample records to show")
    preview.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    preview.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
    preview.add_argument("-v", "--verbose", action="store_true", help="More human logs")

    search = subparsers.add_parser("search", help="Search stored records by name or gender.")
    search.add_argument("query", help="Text to look for (script picks the field)")
    search.add_argument("--page", type=int, default=1, help="1-based page number")
    search.add_argument("--limit", type=int, default=None, help="Page size")
    search.add_argument("--json", action="store_true", help="Write machine JSON to stdout")

    clear = subparsers.add_parser("clear", help="Delete every stored record.")
    clear.add_argument("--yes", action="store_true", help="Confirm the deletion")

    serve = subparsers.add_parser("serve", help="Run the HTTP API.")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address")
    serve.add_argument("--port", type=int, default=8000, help="Bind port")

    subparsers.add_parser("version", help="Print version")
    return parser


# ── Commands ───────────────────────────────────────────────────────────────────

def setup_logging(args: argparse.Namespace, settings: Settings) -> None:
    if getattr(args, "quiet", False):
        level = "WARNING"
    elif getattr(args, "verbose", False):
        level = "DEBUG"
    else:
        level = settings.log_level
    configure_logging(level)


def run_upload(args: argparse.Namespace) -> int:
    from voter_ingest.pipeline import ingest_upload

    content, filename = read_input(args.input)
    settings = load_settings(args)
    setup_logging(args, settings)
    store = open_store(settings)
    try:
        payload = ingest_upload(content, filename, store, settings, args.sheet_name)
    finally:
        store.close()
    if args.json:
        print(json_dumps(payload))
    else:
        emit_human(render_upload_text(payload), quiet=args.quiet)
    return EXIT_PARTIAL if payload["errorCount"] else EXIT_SUCCESS


def run_preview(args: argparse.Namespace) -> int:
    from voter_ingest.pipeline import preview_upload

    content, filename = read_input(args.input)
    settings = load_settings(args)
    setup_logging(args, settings)
    payload = preview_upload(content, filename, settings, args.sheet_name, limit=args.limit)
    if args.json:
        print(json_dumps(payload))
    else:
        emit_human(render_preview_text(payload), quiet=args.quiet)
    return EXIT_SUCCESS


def run_search(args: argparse.Namespace) -> int:
    from voter_ingest.contracts import build_contract
    from voter_ingest.search import build_search

    try:
        plan = build_search(args.query)
    except ValueError as exc:
        raise CliError(str(exc), EXIT_COMMAND_ERROR) from exc
    if args.page < 1:
        raise CliError("--page must be >= 1", EXIT_COMMAND_ERROR)
    if args.limit is not None and args.limit < 1:
        raise CliError("--limit must be >= 1", EXIT_COMMAND_ERROR)
    settings = load_settings(args)
    size = args.limit or settings.default_page_size
    store = open_store(settings)
    try:
        data, total = store.search(plan.fields, plan.text, (args.page - 1) * size, size)
    finally:
        store.close()
    payload = {
        "success": True,
        "query": plan.text,
        "searchLanguage": plan.language,
        "count": len(data),
        "totalCount": total,
        "currentPage": args.page,
        "totalPages": -(-total // size),
        "data": data,
        "contract": build_contract("voter_ingest.search"),
    }
    if args.json:
        print(json_dumps(payload))
    else:
        print(render_search_text(payload))
    return EXIT_SUCCESS


def run_clear(args: argparse.Namespace) -> int:
    if not args.yes:
        raise CliError("Refusing to delete every record without --yes", EXIT_COMMAND_ERROR)
    settings = load_settings(args)
    store = open_store(settings)
    try:
        deleted = store.delete_all()
    finally:
        store.close()
    print(f"Deleted {deleted} records")
    return EXIT_SUCCESS


def run_serve(args: argparse.Namespace) -> int:
    import uvicorn

    from voter_ingest.api import create_app

    settings = load_settings(args)
    configure_logging(settings.log_level)
    uvicorn.run(create_app(settings), host=args.host, port=args.port, log_level=settings.log_level.lower())
    return EXIT_SUCCESS


def run_version() -> int:
    print(TOOL_VERSION)
    return EXIT_SUCCESS


def classify_exception(exc: Exception) -> int:
    if isinstance(exc, CliError):
        return exc.code
    if isinstance(exc, IngestError):
        return exc.exit_code
    if isinstance(exc, ConnectionFailure):
        return EXIT_STORE_UNAVAILABLE
    if isinstance(exc, ImportError):
        return EXIT_PARSE_FAILED
    return EXIT_COMMAND_ERROR


def main(argv: list[str] | None = None) -> int:
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        if args.command == "upload":
            return run_upload(args)
        if args.command == "preview":
            return run_preview(args)
        if args.command == "search":
            return run_search(args)
        if args.command == "clear":
            return run_clear(args)
        if args.command == "serve":
            return run_serve(args)
        if args.command == "version":
            return run_version()
        raise CliError(f"Unknown command: {args.command}", EXIT_COMMAND_ERROR)
    except CliError as exc:
        eprint(str(exc))
        return exc.code
    except TransportFailure as exc:
        eprint(f"{exc.message} (inserted before failure: {exc.inserted_count})")
        return exc.exit_code
    except IngestError as exc:
        eprint(exc.message)
        return exc.exit_code
    except ImportError as exc:
        eprint(str(exc))
        return classify_exception(exc)
    except PyMongoError as exc:
        eprint(f"Store error: {exc}")
        return classify_exception(exc)


if __name__ == "__main__":
    raise SystemExit(main())
