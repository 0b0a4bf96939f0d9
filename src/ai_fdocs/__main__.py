from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from ai_fdocs.cache.store import CacheStore
from ai_fdocs.config import AppConfig, SyncMode, TomlConfigLoader
from ai_fdocs.config.models import ConfigLoadRequest
from ai_fdocs.core.errors import FdocsError
from ai_fdocs.core.formatters import (
    format_check_failures,
    format_status_json,
    format_status_table,
    is_github_actions,
)
from ai_fdocs.logging import init_logging
from ai_fdocs.resolver import resolve_lock_versions
from ai_fdocs.sources import GitHubFetcher, HttpClient, LatestDocsFetcher, resolve_github_token
from ai_fdocs.status.engine import PackageStatus, collect_status, collect_status_latest
from ai_fdocs.sync.orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)


def _parse_mode(value: str) -> SyncMode:
    try:
        return SyncMode.parse(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        default="ai-fdocs.toml",
        help="Path to ai-fdocs.toml (default: ai-fdocs.toml)",
    )
    common.add_argument(
        "--mode",
        type=_parse_mode,
        default=None,
        help="Override settings.sync_mode: lockfile, latest_docs or hybrid",
    )

    parser = argparse.ArgumentParser(prog="ai-fdocs", description="Version-pinned dependency docs for AI assistants")
    subparsers = parser.add_subparsers(dest="command", required=True, help="Command to run")

    # Command: sync
    sync_parser = subparsers.add_parser("sync", parents=[common], help="Fetch docs for configured packages")
    sync_parser.add_argument("--force", action="store_true", help="Ignore the cache and refetch everything")

    # Command: status
    status_parser = subparsers.add_parser("status", parents=[common], help="Show docs status per package")
    status_parser.add_argument("--format", choices=("table", "json"), default="table", help="Output format")

    # Command: check
    check_parser = subparsers.add_parser(
        "check",
        parents=[common],
        help="Exit non-zero when any package docs are missing, outdated or corrupted",
    )
    check_parser.add_argument("--format", choices=("table", "json"), default="table", help="Output format")

    return parser


async def _load_config(args: argparse.Namespace) -> AppConfig:
    loader = TomlConfigLoader()
    request = ConfigLoadRequest(toml_path=args.config)
    return await loader.load(request)


def _resolve_mode(args: argparse.Namespace, config: AppConfig) -> SyncMode:
    return args.mode if args.mode is not None else config.settings.sync_mode


async def _run_sync(args: argparse.Namespace) -> int:
    config = await _load_config(args)
    init_logging(config.logging)
    mode = _resolve_mode(args, config)
    logger.info("Loaded config. path=%s mode=%s", args.config, mode.value)

    lock_versions = None
    if mode is not SyncMode.LATEST_DOCS:
        lock_versions = resolve_lock_versions(Path(config.settings.lock_file))

    store = CacheStore(Path(config.settings.output_dir))
    async with HttpClient() as http:
        orchestrator = SyncOrchestrator(
            config,
            store=store,
            github=GitHubFetcher(http, token=resolve_github_token()),
            latest=LatestDocsFetcher(http),
            lock_versions=lock_versions,
        )
        await orchestrator.run(mode, force=args.force)
    return 0


async def _collect_statuses(args: argparse.Namespace) -> list[PackageStatus]:
    config = await _load_config(args)
    init_logging(config.logging)
    mode = _resolve_mode(args, config)
    store = CacheStore(Path(config.settings.output_dir))

    if mode is SyncMode.LATEST_DOCS:
        async with HttpClient() as http:
            return await collect_status_latest(config, store, LatestDocsFetcher(http))

    lock_versions = resolve_lock_versions(Path(config.settings.lock_file))
    return collect_status(config, lock_versions, store)


def _print_statuses(output_format: str, statuses: list[PackageStatus]) -> None:
    if output_format == "json":
        print(format_status_json(statuses))
    else:
        print(format_status_table(statuses), end="")


async def _run_status(args: argparse.Namespace) -> int:
    statuses = await _collect_statuses(args)
    _print_statuses(args.format, statuses)
    return 0


async def _run_check(args: argparse.Namespace) -> int:
    statuses = await _collect_statuses(args)
    _print_statuses(args.format, statuses)

    failing = [s for s in statuses if s.status.is_problem]
    if not failing:
        return 0

    for line in format_check_failures(
        statuses,
        github_actions=is_github_actions(os.environ),
        output_format=args.format,
    ):
        print(line, file=sys.stderr)
    logger.error("Docs check failed. problems=%d", len(failing))
    return 1


async def _main_async(argv: Optional[list[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command == "sync":
        return await _run_sync(args)
    if args.command == "status":
        return await _run_status(args)
    return await _run_check(args)


def main(argv: Optional[list[str]] = None) -> None:
    try:
        exit_code = asyncio.run(_main_async(argv))
    except KeyboardInterrupt:
        logger.info("Interrupted by user.")
        exit_code = 130
    except FdocsError as e:
        logger.error("%s", e)
        exit_code = 1
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
