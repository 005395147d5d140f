#!/usr/bin/env python
"""
Command Line Entry Point

Usage:
    bsf-farm init-db
    bsf-farm drop-db --yes
    bsf-farm ddl --dialect mysql > schema.sql
    bsf-farm seed --random-state 7
    bsf-farm load exports/feedings.csv --table feedings
    bsf-farm load exports/ --format csv
    bsf-farm health
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

import structlog

from bsf_farm.config import get_settings
from bsf_farm.config.logging import configure_logging
from bsf_farm.database.connection import (
    check_database_health,
    close_database,
    create_schema,
    drop_schema,
    init_database,
)
from bsf_farm.database.ddl import DIALECTS, render_ddl
from bsf_farm.exceptions import BSFFarmError
from bsf_farm.ingestion.loader import FileFormat, LoadStatus, TableFileConfig, TableLoader
from bsf_farm.ingestion.seed_db import seed_database

logger = structlog.get_logger(__name__)


async def _with_database(args: argparse.Namespace) -> int:
    await init_database(args.database_url)
    try:
        return await args.handler(args)
    finally:
        await close_database()


async def cmd_init_db(args: argparse.Namespace) -> int:
    await create_schema()
    return 0


async def cmd_drop_db(args: argparse.Namespace) -> int:
    if not args.yes:
        logger.error("Refusing to drop the schema without --yes")
        return 2
    if get_settings().is_production:
        logger.error("Refusing to drop the schema in production")
        return 2
    await drop_schema()
    return 0


async def cmd_seed(args: argparse.Namespace) -> int:
    if args.create:
        await create_schema()
    counts = await seed_database(random_state=args.random_state)
    print(json.dumps(counts, indent=2))
    return 0


async def cmd_load(args: argparse.Namespace) -> int:
    loader = TableLoader(
        enable_validation=not args.no_validation,
        strict_validation=args.strict or None,
    )
    path = Path(args.path)

    if path.is_dir():
        file_format = FileFormat(args.format or "csv")
        results = await loader.load_directory(path, file_format=file_format, target_table=args.table)
    else:
        if not args.table:
            logger.error("--table is required when loading a single file")
            return 2
        config = TableFileConfig(
            file_path=path,
            target_table=args.table,
            file_format=FileFormat(args.format) if args.format else None,
        )
        results = [await loader.load(config)]

    for result in results:
        print(result.model_dump_json())
    return 0 if all(r.status == LoadStatus.COMPLETED for r in results) else 1


async def cmd_health(args: argparse.Namespace) -> int:
    health = await check_database_health()
    print(json.dumps(health))
    return 0 if health["status"] == "healthy" else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bsf-farm", description="BSF farm database tooling")
    parser.add_argument(
        "--database-url",
        default=None,
        help="Async SQLAlchemy URL (default: from DB_* settings)",
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    parser.add_argument("--log-format", choices=["json", "text"], default=None, help="Override LOG_FORMAT")

    subparsers = parser.add_subparsers(dest="command", required=True)

    init_db = subparsers.add_parser("init-db", help="Create all tables and indices")
    init_db.set_defaults(handler=cmd_init_db)

    drop_db = subparsers.add_parser("drop-db", help="Drop all tables")
    drop_db.add_argument("--yes", action="store_true", help="Confirm dropping every table")
    drop_db.set_defaults(handler=cmd_drop_db)

    ddl = subparsers.add_parser("ddl", help="Print the schema DDL without connecting")
    ddl.add_argument("--dialect", choices=sorted(DIALECTS), default="postgresql")

    seed = subparsers.add_parser("seed", help="Populate the schema with a demo farm")
    seed.add_argument("--random-state", type=int, default=None)
    seed.add_argument("--create", action="store_true", help="Create the schema first")
    seed.set_defaults(handler=cmd_seed)

    load = subparsers.add_parser("load", help="Load a file or a directory of files")
    load.add_argument("path", help="File or directory to load")
    load.add_argument("--table", default=None, help="Target table (defaults to file names for directories)")
    load.add_argument("--format", choices=[f.value for f in FileFormat], default=None)
    load.add_argument("--strict", action="store_true", help="Treat validation warnings as failures")
    load.add_argument("--no-validation", action="store_true", help="Skip validation")
    load.set_defaults(handler=cmd_load)

    health = subparsers.add_parser("health", help="Check database connectivity")
    health.set_defaults(handler=cmd_health)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(log_level=args.log_level, log_format=args.log_format)
    structlog.contextvars.bind_contextvars(command=args.command)

    if args.command == "ddl":
        sys.stdout.write(render_ddl(args.dialect))
        return 0

    try:
        return asyncio.run(_with_database(args))
    except BSFFarmError as e:
        logger.error("Command failed", command=args.command, error=str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
