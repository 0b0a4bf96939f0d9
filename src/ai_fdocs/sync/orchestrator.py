from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Mapping, Optional

from ai_fdocs.cache.store import CacheStore
from ai_fdocs.config.models import AppConfig, PackageConfig, SyncMode
from ai_fdocs.core.errors import FdocsError, SyncErrorKind
from ai_fdocs.core.models import DocsArtifact, FetchedFile, SourceKind, SyncOutcome, SyncStats
from ai_fdocs.sources.docsrs import LatestDocsFetcher, is_docsrs_fallback_eligible
from ai_fdocs.sources.github import GitHubFetcher
from ai_fdocs.sync.requests import README_PATH, build_requests, collect_fetched_files, is_readme_request

logger = logging.getLogger(__name__)

PackageJob = Callable[[str, PackageConfig], Awaitable[SyncOutcome]]


class SyncOrchestrator:
    """
    Runs one sync pass over every configured package.

    Each package is an independent job; a failing job is recorded in the stats and never
    stops the others.
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        store: CacheStore,
        github: GitHubFetcher,
        latest: LatestDocsFetcher,
        lock_versions: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._config = config
        self._settings = config.settings
        self._store = store
        self._github = github
        self._latest = latest
        self._lock_versions: Mapping[str, str] = dict(lock_versions or {})
        self._force = False

    async def run(self, mode: SyncMode, *, force: bool = False) -> SyncStats:
        self._force = force
        logger.info(
            "Starting sync. mode=%s packages=%d concurrency=%d force=%s",
            mode.value,
            len(self._config.packages),
            self._settings.sync_concurrency,
            force,
        )

        if mode is not SyncMode.LATEST_DOCS and self._settings.prune:
            removed = self._store.prune(self._config.packages.keys(), self._lock_versions)
            if removed:
                logger.info("Pruned stale cache entries. count=%d", len(removed))

        if mode is SyncMode.LOCKFILE:
            job: PackageJob = self._sync_lockfile_package
        elif mode is SyncMode.HYBRID:
            job = self._sync_hybrid_package
        else:
            job = self._sync_latest_package

        outcomes = await self._run_jobs(job)
        stats = SyncStats()
        for outcome in outcomes:
            stats.record(outcome)

        logger.info(
            "Sync complete. mode=%s synced=%d cached=%d skipped=%d errors=%d",
            mode.value,
            stats.synced,
            stats.cached,
            stats.skipped,
            stats.errors,
        )
        if stats.errors:
            logger.info("Sync error breakdown. %s", stats.error_breakdown())
        return stats

    async def _run_jobs(self, job: PackageJob) -> list[SyncOutcome]:
        semaphore = asyncio.Semaphore(self._settings.sync_concurrency)

        async def run_limited(name: str, package: PackageConfig) -> SyncOutcome:
            async with semaphore:
                return await job(name, package)

        names = list(self._config.packages)
        tasks = [
            asyncio.create_task(run_limited(name, self._config.packages[name]))
            for name in names
        ]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        outcomes: list[SyncOutcome] = []
        for name, result in zip(names, results):
            if isinstance(result, BaseException):
                logger.error(
                    "Package sync failed unexpectedly. package=%s",
                    name,
                    exc_info=(type(result), result, result.__traceback__),
                )
                outcomes.append(SyncOutcome.error(name, SyncErrorKind.OTHER))
                continue
            outcomes.append(result)
        return outcomes

    def _cached_outcome(self, name: str, version: str, package: PackageConfig) -> SyncOutcome:
        logger.info("Package is cached, skipping. package=%s version=%s", name, version)
        return SyncOutcome.cached(name, self._store.read_cached_info(name, version, package))

    def _lock_version(self, name: str) -> Optional[str]:
        version = self._lock_versions.get(name)
        if version is None:
            logger.warning("Package not found in lock file, skipping. package=%s", name)
        return version

    async def _sync_lockfile_package(self, name: str, package: PackageConfig) -> SyncOutcome:
        version = self._lock_version(name)
        if version is None:
            return SyncOutcome.skipped(name)
        if not self._force and self._store.is_cached(name, version):
            return self._cached_outcome(name, version, package)

        logger.info("Syncing package. package=%s version=%s", name, version)
        return await self._sync_from_github(name, package, version, source_kind="github")

    async def _sync_latest_package(self, name: str, package: PackageConfig) -> SyncOutcome:
        try:
            version = await self._latest.resolve_latest_version(name)
        except FdocsError as e:
            logger.warning("Failed to resolve latest version. package=%s error=%s", name, e)
            return SyncOutcome.error(name, e.kind)

        if not self._force and self._store.is_cached(name, version):
            if self._store.is_cached(name, version, ttl_hours=self._settings.latest_ttl_hours):
                return self._cached_outcome(name, version, package)
            logger.info("Cache TTL expired, refreshing. package=%s version=%s", name, version)

        try:
            artifact = await self._latest.fetch_api_markdown(name, version, self._settings.max_file_size_kb)
        except FdocsError as e:
            if not is_docsrs_fallback_eligible(e):
                logger.warning("Documentation page fetch failed. package=%s version=%s error=%s", name, version, e)
                return SyncOutcome.error(name, e.kind)
            logger.warning(
                "Documentation page unavailable, trying GitHub fallback. package=%s version=%s error=%s",
                name,
                version,
                e,
            )
            return await self._sync_from_github(
                name,
                package,
                version,
                source_kind="github_fallback",
                upstream_latest_version=version,
            )

        saved = self._store.save_latest_api_markdown(
            name,
            version,
            artifact=artifact,
            package_config=package,
            max_file_size_kb=self._settings.max_file_size_kb,
        )
        return SyncOutcome.synced(name, saved)

    async def _sync_hybrid_package(self, name: str, package: PackageConfig) -> SyncOutcome:
        version = self._lock_version(name)
        if version is None:
            return SyncOutcome.skipped(name)
        if not self._force and self._store.is_cached(name, version):
            return self._cached_outcome(name, version, package)

        logger.info("Syncing package. package=%s version=%s", name, version)
        artifact: Optional[DocsArtifact]
        try:
            artifact = await self._latest.fetch_api_markdown(name, version, self._settings.max_file_size_kb)
        except FdocsError as e:
            logger.warning(
                "Documentation page fetch failed, using GitHub README. package=%s version=%s error=%s",
                name,
                version,
                e,
            )
            artifact = None

        repo = package.github_repo()
        if repo is None:
            logger.warning("Package has no GitHub repo configured. package=%s", name)
            if artifact is None:
                return SyncOutcome.skipped(name)
            saved = self._store.save_latest_api_markdown(
                name,
                version,
                artifact=artifact,
                package_config=package,
                max_file_size_kb=self._settings.max_file_size_kb,
            )
            return SyncOutcome.synced(name, saved)

        try:
            resolved = await self._github.resolve_ref(repo, name, version)
        except FdocsError as e:
            logger.warning("Failed to resolve git ref. package=%s version=%s error=%s", name, version, e)
            return SyncOutcome.error(name, e.kind)

        requests = build_requests(package.subpath, package.effective_files())
        if artifact is not None:
            requests = [r for r in requests if not is_readme_request(r.original_path)]

        results = await self._github.fetch_files(repo, resolved.git_ref, requests)
        files = collect_fetched_files(results, name, version)
        if artifact is not None:
            files.append(
                FetchedFile(path=README_PATH, source_url=artifact.docsrs_input_url, content=artifact.markdown)
            )
        if not files:
            logger.warning("No files fetched. package=%s version=%s", name, version)
            return SyncOutcome.error(name, SyncErrorKind.NOT_FOUND)

        saved = self._store.save_package_files(
            name,
            version,
            repo=repo,
            resolved=resolved,
            files=files,
            package_config=package,
            max_file_size_kb=self._settings.max_file_size_kb,
            source_kind="hybrid",
        )
        logger.info(
            "Package synced. package=%s version=%s ref=%s docs_page=%s",
            name,
            version,
            resolved.git_ref,
            artifact is not None,
        )
        return SyncOutcome.synced(name, saved)

    async def _sync_from_github(
        self,
        name: str,
        package: PackageConfig,
        version: str,
        *,
        source_kind: SourceKind,
        upstream_latest_version: Optional[str] = None,
    ) -> SyncOutcome:
        repo = package.github_repo()
        if repo is None:
            logger.warning("Package has no GitHub repo configured. package=%s", name)
            if source_kind == "github_fallback":
                return SyncOutcome.error(name, SyncErrorKind.OTHER)
            return SyncOutcome.skipped(name)

        try:
            resolved = await self._github.resolve_ref(repo, name, version)
        except FdocsError as e:
            logger.warning("Failed to resolve git ref. package=%s version=%s error=%s", name, version, e)
            return SyncOutcome.error(name, e.kind)

        requests = build_requests(package.subpath, package.effective_files())
        results = await self._github.fetch_files(repo, resolved.git_ref, requests)
        files = collect_fetched_files(results, name, version)
        if not files:
            logger.warning("No files fetched. package=%s version=%s", name, version)
            return SyncOutcome.error(name, SyncErrorKind.NOT_FOUND)

        saved = self._store.save_package_files(
            name,
            version,
            repo=repo,
            resolved=resolved,
            files=files,
            package_config=package,
            max_file_size_kb=self._settings.max_file_size_kb,
            source_kind=source_kind,
            upstream_latest_version=upstream_latest_version,
            upstream_checked=upstream_latest_version is not None,
        )
        logger.info(
            "Package synced. package=%s version=%s ref=%s fallback=%s",
            name,
            version,
            resolved.git_ref,
            resolved.is_fallback,
        )
        return SyncOutcome.synced(name, saved)
