"""Command line entry point: run one statement and print the rows as JSON."""

import argparse
import asyncio
import logging
import os
import re
import sys
from typing import Any, Optional

from lanston.core import Database
from lanston.errors import LanstonError
from lanston.models.config import DatabaseConfig
from lanston.utils.serialization import rows_to_json

logger = logging.getLogger(__name__)

INTEGER_RE = re.compile(r"[-+]?\d+")
DECIMAL_RE = re.compile(r"[-+]?(\d+\.\d*|\.\d+)([eE][-+]?\d+)?")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lanston",
        description="Run one SQL statement and print the returned rows as JSON.",
    )
    parser.add_argument("statement", help="SQL text, positional placeholders allowed")
    parser.add_argument(
        "params",
        nargs="*",
        help="Positional parameters; integers and decimals are sent as numbers",
    )
    parser.add_argument(
        "--text", action="store_true", help="Send every parameter as text"
    )
    parser.add_argument(
        "--url", help="Connection URL (defaults to DATABASE_URL from env/.env)"
    )
    parser.add_argument(
        "--indent", action="store_true", help="Pretty-print the JSON output"
    )
    parser.add_argument(
        "--verbose", action="store_true", help="Log query diagnostics"
    )
    return parser


def coerce_param(value: str) -> Any:
    """Convert a command line argument to int or float when it reads as one."""
    if INTEGER_RE.fullmatch(value):
        return int(value)
    if DECIMAL_RE.fullmatch(value):
        return float(value)
    return value


async def main(argv: Optional[list[str]] = None) -> int:
    """Run the statement given on the command line."""
    args = build_parser().parse_args(argv)

    if args.verbose:
        logging.getLogger("lanston.query_stats").setLevel(logging.DEBUG)

    params = None
    if args.params:
        params = args.params if args.text else [coerce_param(p) for p in args.params]

    config = DatabaseConfig(url=args.url) if args.url else DatabaseConfig.from_env()

    async with Database(config) as db:
        result = await db.query(args.statement, params)

    if result.columns:
        print(rows_to_json(result.rows, indent=args.indent))
    else:
        print(f"{result.row_count} row(s) affected")
    return 0


def cli_entry() -> None:
    """Synchronous entry point for the ``lanston`` console script."""
    logging.basicConfig(level=logging.INFO)

    # asyncpg requires the selector loop on Windows
    if os.name == "nt":
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())  # type: ignore[attr-defined]

    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        sys.exit(130)
    except (LanstonError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    cli_entry()
