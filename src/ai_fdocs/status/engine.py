from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Mapping, Optional, Union

from ai_fdocs.cache.io import MetadataDecodeError, parse_metadata_text
from ai_fdocs.cache.models import META_FILENAME, CacheMetadata, SchemaVersion
from ai_fdocs.cache.store import CacheStore
from ai_fdocs.cache.utils import is_latest_cache_fresh
from ai_fdocs.config.models import AppConfig, SyncMode
from ai_fdocs.core.errors import FdocsError
from ai_fdocs.sources.docsrs import LatestDocsFetcher

logger = logging.getLogger(__name__)


class DocsStatus(str, Enum):
    SYNCED = "Synced"
    SYNCED_FALLBACK = "SyncedFallback"
    OUTDATED = "Outdated"
    MISSING = "Missing"
    CORRUPTED = "Corrupted"

    @property
    def is_problem(self) -> bool:
        return self in (DocsStatus.OUTDATED, DocsStatus.MISSING, DocsStatus.CORRUPTED)


@dataclass(slots=True)
class PackageStatus:
    package: str
    lock_version: Optional[str]
    docs_version: Optional[str]
    status: DocsStatus
    reason: str
    reason_code: str
    mode: str
    source_kind: Optional[str] = None


@dataclass(slots=True)
class StatusSummary:
    total: int = 0
    synced: int = 0
    missing: int = 0
    outdated: int = 0
    corrupted: int = 0

    @property
    def has_problems(self) -> bool:
        return self.missing > 0 or self.outdated > 0 or self.corrupted > 0


@dataclass(frozen=True, slots=True)
class _MetaProblem:
    reason: str
    reason_code: str
    source_kind: Optional[str] = None


def _read_meta_for_status(package_dir: Path) -> Union[CacheMetadata, _MetaProblem]:
    meta_path = package_dir / META_FILENAME
    try:
        text = meta_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return _MetaProblem(f"{META_FILENAME} is missing or unreadable", "meta_unreadable")
    try:
        meta = parse_metadata_text(text)
    except MetadataDecodeError as e:
        logger.debug("Cache metadata is invalid. path=%s error=%s", meta_path, e)
        return _MetaProblem(f"{META_FILENAME} has invalid TOML", "meta_invalid_toml")
    if meta.schema_version > SchemaVersion:
        return _MetaProblem(
            f"{META_FILENAME} schema version {meta.schema_version} is newer than supported version {SchemaVersion}",
            "meta_schema_unsupported",
            meta.source_kind,
        )
    return meta


def collect_status(
    config: AppConfig,
    lock_versions: Mapping[str, str],
    store: CacheStore,
) -> list[PackageStatus]:
    """Classify every configured package against the lock file, sorted by name."""
    mode = SyncMode.LOCKFILE.value
    existing = store.scan_existing()
    results: list[PackageStatus] = []

    for name in sorted(config.packages):
        lock_version = lock_versions.get(name)
        if lock_version is None:
            results.append(
                PackageStatus(
                    package=name,
                    lock_version=None,
                    docs_version=None,
                    status=DocsStatus.MISSING,
                    reason="package missing in lock file",
                    reason_code="lockfile_missing_crate",
                    mode=mode,
                )
            )
            continue

        package_dir = store.package_dir(name, lock_version)
        if not package_dir.is_dir():
            other = existing.get(name)
            if other is not None:
                results.append(
                    PackageStatus(
                        package=name,
                        lock_version=lock_version,
                        docs_version=other[0],
                        status=DocsStatus.OUTDATED,
                        reason=f"cached docs version {other[0]} differs from lock version {lock_version}",
                        reason_code="lockfile_version_mismatch",
                        mode=mode,
                    )
                )
            else:
                results.append(
                    PackageStatus(
                        package=name,
                        lock_version=lock_version,
                        docs_version=None,
                        status=DocsStatus.MISSING,
                        reason="no synced docs found for this package",
                        reason_code="lockfile_missing_artifacts",
                        mode=mode,
                    )
                )
            continue

        meta = _read_meta_for_status(package_dir)
        if isinstance(meta, _MetaProblem):
            results.append(
                PackageStatus(
                    package=name,
                    lock_version=lock_version,
                    docs_version=lock_version,
                    status=DocsStatus.CORRUPTED,
                    reason=meta.reason,
                    reason_code=meta.reason_code,
                    mode=mode,
                    source_kind=meta.source_kind,
                )
            )
        elif meta.version != lock_version:
            results.append(
                PackageStatus(
                    package=name,
                    lock_version=lock_version,
                    docs_version=meta.version,
                    status=DocsStatus.OUTDATED,
                    reason=f"metadata version {meta.version} differs from lock version {lock_version}",
                    reason_code="meta_version_mismatch",
                    mode=mode,
                    source_kind=meta.source_kind,
                )
            )
        elif meta.is_fallback:
            results.append(
                PackageStatus(
                    package=name,
                    lock_version=lock_version,
                    docs_version=meta.version,
                    status=DocsStatus.SYNCED_FALLBACK,
                    reason="synced from fallback branch (no exact tag found)",
                    reason_code="lockfile_fallback_branch",
                    mode=mode,
                    source_kind=meta.source_kind or "github",
                )
            )
        else:
            results.append(
                PackageStatus(
                    package=name,
                    lock_version=lock_version,
                    docs_version=meta.version,
                    status=DocsStatus.SYNCED,
                    reason="up to date",
                    reason_code="lockfile_ok",
                    mode=mode,
                    source_kind=meta.source_kind or "github",
                )
            )
    return results


async def collect_status_latest(
    config: AppConfig,
    store: CacheStore,
    fetcher: Optional[LatestDocsFetcher] = None,
    *,
    now: Optional[datetime] = None,
) -> list[PackageStatus]:
    """
    Classify every configured package against its highest cached version.

    With a fetcher, the registry is re-queried when the recorded upstream check is missing or
    older than the TTL. Registry failures leave the cached classification unchanged.
    """
    mode = SyncMode.LATEST_DOCS.value
    existing = store.scan_existing()
    results: list[PackageStatus] = []

    for name in sorted(config.packages):
        found = existing.get(name)
        if found is None:
            results.append(
                PackageStatus(
                    package=name,
                    lock_version=None,
                    docs_version=None,
                    status=DocsStatus.MISSING,
                    reason="no synced docs found for this package",
                    reason_code="latest_missing_artifacts",
                    mode=mode,
                )
            )
            continue

        docs_version, package_dir = found
        meta = _read_meta_for_status(package_dir)
        if isinstance(meta, _MetaProblem):
            results.append(
                PackageStatus(
                    package=name,
                    lock_version=None,
                    docs_version=docs_version,
                    status=DocsStatus.CORRUPTED,
                    reason=meta.reason,
                    reason_code=meta.reason_code,
                    mode=mode,
                    source_kind=meta.source_kind,
                )
            )
            continue

        source_kind = meta.source_kind or "docsrs"
        if meta.is_fallback or source_kind == "github_fallback":
            status = DocsStatus.SYNCED_FALLBACK
            reason = "latest-docs synced via GitHub fallback"
            reason_code = "latest_ok_fallback"
        else:
            status = DocsStatus.SYNCED
            reason = "latest-docs up to date"
            reason_code = "latest_ok_docsrs"

        needs_check = meta.upstream_checked_at is None or not is_latest_cache_fresh(
            meta.upstream_checked_at, config.settings.latest_ttl_hours, now
        )
        if fetcher is not None and needs_check:
            try:
                latest = await fetcher.resolve_latest_version(name)
            except FdocsError as e:
                logger.warning("Latest version check failed. package=%s error=%s", name, e)
            else:
                if latest != docs_version:
                    status = DocsStatus.OUTDATED
                    reason = f"latest version {latest} is newer than cached {docs_version}"
                    reason_code = "latest_version_mismatch"

        results.append(
            PackageStatus(
                package=name,
                lock_version=None,
                docs_version=docs_version,
                status=status,
                reason=reason,
                reason_code=reason_code,
                mode=mode,
                source_kind=source_kind,
            )
        )
    return results


def summarize(statuses: list[PackageStatus]) -> StatusSummary:
    summary = StatusSummary(total=len(statuses))
    for item in statuses:
        if item.status in (DocsStatus.SYNCED, DocsStatus.SYNCED_FALLBACK):
            summary.synced += 1
        elif item.status is DocsStatus.MISSING:
            summary.missing += 1
        elif item.status is DocsStatus.OUTDATED:
            summary.outdated += 1
        else:
            summary.corrupted += 1
    return summary
