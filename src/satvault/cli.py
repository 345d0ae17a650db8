"""SAT Vault CLI.

Usage:
    python -m satvault serve [--host HOST] [--port PORT]
    python -m satvault schema ensure [--table NAME]
    python -m satvault schema show [--table NAME]

Configuration comes from the environment (see satvault.config); a .env file
in the working directory is loaded first.

Exit codes:
    0: Success
    1: Internal error
    2: Configuration missing or store unavailable
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any

from dotenv import load_dotenv
from sqlalchemy.exc import SQLAlchemyError

from satvault.config import ConfigError, Settings, load_settings
from satvault.persistence.db import begin_conn, get_engine, reset_engine
from satvault.persistence.errors import classify_db_error
from satvault.persistence.schema import (
    CREDENTIALS_TABLE,
    FIEL_UPLOADS_TABLE,
    SchemaEnsurer,
    TableSpec,
    get_column_types,
)

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

TABLES: dict[str, TableSpec] = {
    CREDENTIALS_TABLE.name: CREDENTIALS_TABLE,
    FIEL_UPLOADS_TABLE.name: FIEL_UPLOADS_TABLE,
}


def _output_json(data: dict[str, Any]) -> None:
    """Output JSON to stdout with deterministic ordering."""
    print(json.dumps(data, sort_keys=True, indent=2))


def _configure_logging(level: str) -> None:
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)


def _selected_tables(args: argparse.Namespace) -> list[TableSpec]:
    if args.table:
        return [TABLES[args.table]]
    return list(TABLES.values())


def cmd_serve(args: argparse.Namespace, settings: Settings) -> int:
    """Run the HTTP API under uvicorn."""
    import uvicorn

    from satvault.api.main import create_app

    app = create_app(settings=settings)
    port = args.port if args.port is not None else settings.port
    uvicorn.run(app, host=args.host, port=port, log_level=settings.log_level.lower())
    return 0


def cmd_schema_ensure(args: argparse.Namespace, settings: Settings) -> int:
    """Bring the selected tables to their declared shape.

    Exit codes:
        0: all tables ensured
        2: store unavailable or DDL rejected
    """
    ensurer = SchemaEnsurer(get_engine(settings))
    ensured: list[str] = []
    try:
        for table in _selected_tables(args):
            ensurer.ensure(table)
            ensured.append(table.name)
    except SQLAlchemyError as e:
        _output_json(
            {"ensured": ensured, "error": classify_db_error(e).value, "status": "failed"}
        )
        return 2
    finally:
        reset_engine()

    _output_json({"ensured": ensured, "status": "ok"})
    return 0


def cmd_schema_show(args: argparse.Namespace, settings: Settings) -> int:
    """Print column types of the selected tables."""
    try:
        with begin_conn(get_engine(settings)) as conn:
            tables = {t.name: get_column_types(conn, t.name) for t in _selected_tables(args)}
    except SQLAlchemyError as e:
        _output_json({"error": classify_db_error(e).value, "status": "failed"})
        return 2
    finally:
        reset_engine()

    _output_json({"status": "ok", "tables": tables})
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="satvault",
        description="SAT Vault - encrypted storage for SAT credentials",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Listen port (default: $PORT or 3000)",
    )

    schema_parser = subparsers.add_parser("schema", help="Schema operations")
    schema_subparsers = schema_parser.add_subparsers(
        dest="schema_command",
        help="Schema subcommands",
    )
    for name, help_text in [
        ("ensure", "Create or extend tables to their declared shape"),
        ("show", "Print column types of managed tables"),
    ]:
        sub = schema_subparsers.add_parser(name, help=help_text)
        sub.add_argument(
            "--table",
            choices=sorted(TABLES),
            default=None,
            help="Limit to one table (default: all)",
        )

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "schema" and getattr(args, "schema_command", None) is None:
        parser.parse_args(["schema", "--help"])
        return 0

    load_dotenv()
    try:
        settings = load_settings()
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    _configure_logging(settings.log_level)

    try:
        if args.command == "serve":
            return cmd_serve(args, settings)
        if args.schema_command == "ensure":
            return cmd_schema_ensure(args, settings)
        return cmd_schema_show(args, settings)
    except Exception:
        logger.exception("Command %s failed", args.command)
        return 1


if __name__ == "__main__":
    sys.exit(main())
