"""
Command-line interface for shopsync operations.

    shopsync init-db            create tables
    shopsync sync [--shop D]    run a sync now and print the report
    shopsync serve              run the HTTP API with uvicorn
"""

import argparse
import asyncio
import json
import sys
from typing import List, Optional

from shopsync.bootstrap import build_context
from shopsync.core.models import SyncTrigger
from shopsync.utils.config import get_settings
from shopsync.utils.exceptions import ShopSyncError
from shopsync.utils.logger import get_logger, setup_logging


cli_logger = get_logger(__name__)


class ShopSyncCLI:
    """Command handlers sharing one lazily built context."""

    def __init__(self):
        self.context = None

    def _init_context(self):
        if self.context is None:
            self.context = build_context(get_settings())
        return self.context

    async def cmd_init_db(self, args) -> int:
        context = self._init_context()
        try:
            if args.drop:
                await context.database.drop_models()
            await context.database.init_models()
        finally:
            await context.database.dispose()
        print("Database tables created")
        return 0

    async def cmd_sync(self, args) -> int:
        context = self._init_context()
        try:
            report = await context.orchestrator.run_sync(args.shop, trigger=SyncTrigger.MANUAL)
        finally:
            await context.database.dispose()

        print(json.dumps(report.to_dict(), indent=2))
        return 0 if report.success else 2


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shopsync",
        description="Multi-tenant Shopify data sync service",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    init_parser = subparsers.add_parser("init-db", help="Create database tables")
    init_parser.add_argument("--drop", action="store_true", help="Drop existing tables first")

    sync_parser = subparsers.add_parser("sync", help="Run a sync for one or all tenants")
    sync_parser.add_argument("--shop", help="Shop domain (default: all installed tenants)")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="0.0.0.0")
    serve_parser.add_argument("--port", type=int, default=8000)
    serve_parser.add_argument("--reload", action="store_true")

    return parser


async def run_command(args) -> int:
    """Dispatch an async command."""
    cli = ShopSyncCLI()
    try:
        if args.command == "init-db":
            return await cli.cmd_init_db(args)
        elif args.command == "sync":
            return await cli.cmd_sync(args)
        else:
            print(f"Unknown command: {args.command}")
            return 1
    except ShopSyncError as e:
        cli_logger.error(f"CLI operation failed: {e}")
        print(f"Operation failed: {e.message}")
        return 1


def serve(args) -> int:
    import uvicorn

    uvicorn.run(
        "shopsync.api.main:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
    )
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the console script."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    if args.command == "serve":
        return serve(args)

    try:
        settings = get_settings()
    except ShopSyncError as e:
        print(f"Configuration error: {e.message}")
        return 1

    setup_logging(settings)

    try:
        return asyncio.run(run_command(args))
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 130


def cli_entry_point():
    sys.exit(main())


if __name__ == "__main__":
    cli_entry_point()
