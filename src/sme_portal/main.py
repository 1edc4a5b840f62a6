#!/usr/bin/env python3
"""CLI entry point for the SME portal.

Usage:
    sme-portal serve --port 3001
    sme-portal init-db
    sme-portal --verbose check-env

Example:
    # Create tables, then start the API with auto-reload
    sme-portal init-db
    sme-portal --debug serve --reload
"""

import argparse
import asyncio
import sys
from typing import Optional

import uvicorn

from .config import Config, ConfigError, config
from .logging_utils import setup_logging
from .models import close_database, ensure_database, init_database


def check_environment(settings: Config = config) -> dict[str, bool]:
    """Report which settings the configured backends need are present.

    Returns:
        Dictionary mapping setting names to their availability.
    """
    status = {
        "DATABASE_URL": bool(settings.DATABASE_URL),
    }
    if settings.LLM_PROVIDER == "anthropic":
        status["ANTHROPIC_API_KEY"] = bool(settings.ANTHROPIC_API_KEY)
    else:
        status["OPENAI_API_KEY"] = bool(settings.OPENAI_API_KEY)
    if settings.SEARCH_BACKEND == "firecrawl":
        status["FIRECRAWL_API_KEY"] = bool(settings.FIRECRAWL_API_KEY)
    return status


def print_env_status(status: dict[str, bool], settings: Config = config, verbose: bool = False) -> bool:
    """Print setting status.

    Returns:
        True if every required setting is present.
    """
    print("\nEnvironment Status:")
    print("-" * 40)

    missing = []
    for name, present in status.items():
        symbol = "✓" if present else "✗"
        print(f"  [{symbol}] {name} (required)")
        if not present:
            missing.append(name)

    if verbose:
        print()
        print(f"  APP_ENV         = {settings.APP_ENV}")
        print(f"  LLM_PROVIDER    = {settings.LLM_PROVIDER}")
        print(f"  SEARCH_BACKEND  = {settings.SEARCH_BACKEND}")
        print(f"  DEPLOY_DOMAIN   = {settings.DEPLOY_DOMAIN}")

    print("-" * 40)

    if missing:
        print(f"\nError: Missing required settings: {', '.join(missing)}")
        return False
    return True


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="sme-portal",
        description="Discover social-media-only SMEs, build and deploy their websites",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose output")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=config.API_HOST, help="Bind address")
    serve.add_argument("--port", type=int, default=config.API_PORT, help="Bind port")
    serve.add_argument("--reload", action="store_true", help="Reload on code changes")

    subparsers.add_parser("init-db", help="Create database tables")
    subparsers.add_parser("check-env", help="Show which settings are present")

    return parser


async def run_init_db() -> bool:
    """Create the database if needed, then its tables.

    Returns:
        True if the database itself had to be created.
    """
    created = await ensure_database()
    try:
        await init_database()
    finally:
        await close_database()
    return created


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the CLI.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    level = "DEBUG" if args.debug else ("INFO" if args.verbose else None)
    # None lets DEBUG / LOG_LEVEL / LOG_FORMAT from config decide
    logger = setup_logging(level=level)

    if args.command == "check-env":
        ok = print_env_status(check_environment(), verbose=args.verbose)
        return 0 if ok else 1

    if args.command == "init-db":
        if asyncio.run(run_init_db()):
            print("Database created.")
        print("Database tables created.")
        return 0

    try:
        config.validate_for_llm()
        config.validate_for_search()
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        print(f"\nError: {e}")
        return 1

    uvicorn.run(
        "sme_portal.api:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="debug" if args.debug else "info",
        log_config=None,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
