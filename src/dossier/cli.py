"""Command-line interface for DOSSIER.

Provides commands for running company and person analyses from the terminal.

Usage:
    dossier company "Acme Corp"
    dossier person "Jane Doe" --title CTO --company "Acme Corp" --format json
    dossier task recent_news "Acme Corp"
    dossier cache stats
    dossier cache invalidate company:acme-corp
"""

import argparse
import asyncio
import json
import logging
import sys
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Optional

from dossier import __version__
from dossier.cache import CacheService
from dossier.pipeline import AnalysisService, Orchestrator

logger = logging.getLogger(__name__)

_executor = ThreadPoolExecutor(max_workers=1)


def create_parser() -> argparse.ArgumentParser:
    """Build the `dossier` parser with its company, person, task, cache and version commands."""
    parser = argparse.ArgumentParser(
        prog="dossier",
        description="DOSSIER: company and person intelligence",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  dossier company "Acme Corp"
  dossier person "Jane Doe" --title CTO --company "Acme Corp"
  dossier task financial_snapshot "Acme Corp" --format json
  dossier cache invalidate company:acme-corp
        """,
    )

    # Shared --format option
    output = argparse.ArgumentParser(add_help=False)
    output.add_argument(
        "--format",
        type=str,
        choices=["text", "json"],
        default="text",
        help="Output format (default: text)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    company_parser = subparsers.add_parser(
        "company",
        parents=[output],
        help="Analyze a company",
        description="Assemble a company record (served from cache when fresh)",
    )
    company_parser.add_argument("name", type=str, help="Company name (e.g., 'Acme Corp')")

    person_parser = subparsers.add_parser(
        "person",
        parents=[output],
        help="Analyze a person",
        description="Assemble a person record (served from cache when fresh)",
    )
    person_parser.add_argument("name", type=str, help="Person's full name")
    person_parser.add_argument("--title", type=str, default="", help="Job title")
    person_parser.add_argument("--company", type=str, default="", help="Employer name")

    task_parser = subparsers.add_parser(
        "task",
        parents=[output],
        help="Run a single knowledge task (uncached)",
    )
    task_parser.add_argument("task_name", type=str, help="Task name (e.g., recent_news)")
    task_parser.add_argument("task_args", nargs="*", help="Prompt arguments, entity name first")

    cache_parser = subparsers.add_parser("cache", help="Inspect or invalidate the cache")
    cache_sub = cache_parser.add_subparsers(dest="cache_command")
    cache_sub.add_parser("stats", parents=[output], help="Show cache statistics")
    invalidate_parser = cache_sub.add_parser(
        "invalidate",
        parents=[output],
        help="Remove a key from every cache location",
    )
    invalidate_parser.add_argument("key", type=str, help="Cache key (e.g., company:acme-corp)")

    subparsers.add_parser("version", help="Show version information")

    return parser


def _run_async(coro):
    """Drive a coroutine to completion on a private loop in the worker thread."""
    def _target():
        loop = asyncio.new_event_loop()
        try:
            return loop.run_until_complete(coro)
        finally:
            loop.close()

    future = _executor.submit(_target)
    return future.result()


def _print(payload: dict[str, Any], fmt: str) -> None:
    if fmt == "json":
        print(json.dumps(payload, indent=2, default=str))
        return
    for key, value in payload.items():
        if isinstance(value, (dict, list)):
            value = json.dumps(value, indent=2, default=str)
        print(f"{key}: {value}")


async def _analyze(kind: str, args: argparse.Namespace) -> dict[str, Any]:
    async with CacheService.from_settings() as cache:
        async with Orchestrator.from_settings(cache=cache) as orchestrator:
            service = AnalysisService(orchestrator, cache)
            if kind == "company":
                response = await service.company(args.name)
            else:
                response = await service.person(args.name, args.title, args.company)
    return response.to_dict()


def cmd_analyze(args: argparse.Namespace) -> int:
    """Execute the company or person command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    try:
        logger.info("Running %s analysis for %s", args.command, args.name)
        payload = _run_async(_analyze(args.command, args))
        _print(payload, args.format)
        return 0 if payload.get("success") else 1

    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130
    except Exception as e:
        logger.error("Analysis failed: %s", e, exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1


async def _run_task(task_name: str, task_args: list[str]) -> dict[str, Any]:
    async with Orchestrator.from_settings() as orchestrator:
        result = await orchestrator.execute_task(task_name, *task_args)
    return result.to_dict()


def cmd_task(args: argparse.Namespace) -> int:
    """Execute the task command."""
    try:
        payload = _run_async(_run_task(args.task_name, args.task_args))
        _print(payload, args.format)
        return 0

    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130
    except Exception as e:
        logger.error("Task %s failed: %s", args.task_name, e)
        print(f"Error: {e}", file=sys.stderr)
        return 1


async def _cache_command(args: argparse.Namespace) -> dict[str, Any]:
    cache = CacheService.from_settings()
    if args.cache_command == "invalidate":
        return await cache.delete_from_all_sources(args.key)
    return await cache.stats()


def cmd_cache(args: argparse.Namespace) -> int:
    """Execute the cache stats / invalidate commands."""
    if args.cache_command is None:
        print("Usage: dossier cache {stats,invalidate}", file=sys.stderr)
        return 2
    try:
        payload = _run_async(_cache_command(args))
        _print(payload, args.format)
        return 0 if payload.get("success", True) else 1
    except Exception as e:
        logger.error("Cache command failed: %s", e)
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_version(args: argparse.Namespace) -> int:
    """Print the package version."""
    print(f"DOSSIER v{__version__}")
    print("Company and person intelligence")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main CLI entry point.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    from dossier.config import settings

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command in ("company", "person"):
        return cmd_analyze(args)
    elif args.command == "task":
        return cmd_task(args)
    elif args.command == "cache":
        return cmd_cache(args)
    elif args.command == "version":
        return cmd_version(args)
    else:
        # No command specified
        parser.print_help()
        return 0


def cli_entry() -> None:
    """`dossier` console script."""
    sys.exit(main())


if __name__ == "__main__":
    cli_entry()
