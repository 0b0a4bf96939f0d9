from __future__ import annotations

import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional, Sequence

from ai_fdocs.cache.io import read_metadata_file, write_metadata_file
from ai_fdocs.cache.models import META_FILENAME, CacheMetadata, SchemaVersion
from ai_fdocs.cache.utils import (
    format_date,
    is_latest_cache_fresh,
    is_version_better,
    package_dir_name,
    split_name_version,
    utc_now,
)
from ai_fdocs.config.models import PackageConfig
from ai_fdocs.content.processing import (
    flatten_filename,
    inject_header,
    process_fetched_file,
    truncate_if_needed,
)
from ai_fdocs.core.models import DocsArtifact, FetchedFile, ResolvedRef, SavedPackage, SourceKind

logger = logging.getLogger(__name__)

API_MARKDOWN_FILENAME = "API.md"


class CacheStore:
    """
    On-disk cache of `{output_dir}/{package}@{version}/` entries.

    Metadata is written last, so an entry without a readable metadata file is never trusted.
    """

    def __init__(self, output_dir: Path) -> None:
        self._output_dir = Path(output_dir)

    def package_dir(self, package_name: str, version: str) -> Path:
        return self._output_dir / package_dir_name(package_name, version)

    def meta_path(self, package_name: str, version: str) -> Path:
        return self.package_dir(package_name, version) / META_FILENAME

    def read_meta(self, package_name: str, version: str) -> Optional[CacheMetadata]:
        return read_metadata_file(self.meta_path(package_name, version))

    def is_cached(
        self,
        package_name: str,
        version: str,
        *,
        ttl_hours: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        """
        True when the entry exists and its metadata records exactly `version`.

        With `ttl_hours`, the metadata fetch date must also be within the TTL.
        """
        if not self.package_dir(package_name, version).is_dir():
            return False
        meta = self.read_meta(package_name, version)
        if meta is None or meta.version != version or meta.schema_version > SchemaVersion:
            return False
        if ttl_hours is not None:
            return is_latest_cache_fresh(meta.fetched_at, ttl_hours, now)
        return True

    def read_cached_info(
        self,
        package_name: str,
        version: str,
        package_config: PackageConfig,
    ) -> Optional[SavedPackage]:
        package_dir = self.package_dir(package_name, version)
        meta = self.read_meta(package_name, version)
        if meta is None:
            return None
        try:
            files = sorted(
                entry.name
                for entry in package_dir.iterdir()
                if entry.is_file() and not entry.name.startswith(".")
            )
        except OSError as e:
            logger.warning("Failed to list cached package files. path=%s error=%s", package_dir, e)
            return None
        return SavedPackage(
            name=package_name,
            version=version,
            git_ref=meta.git_ref,
            is_fallback=meta.is_fallback,
            files=files,
            ai_notes=package_config.ai_notes,
            source_kind=meta.source_kind,
        )

    def _reset_package_dir(self, package_name: str, version: str) -> Path:
        package_dir = self.package_dir(package_name, version)
        if package_dir.exists():
            shutil.rmtree(package_dir)
        package_dir.mkdir(parents=True, exist_ok=True)
        return package_dir

    def save_package_files(
        self,
        package_name: str,
        version: str,
        *,
        repo: str,
        resolved: ResolvedRef,
        files: Sequence[FetchedFile],
        package_config: PackageConfig,
        max_file_size_kb: int,
        source_kind: SourceKind,
        upstream_latest_version: Optional[str] = None,
        upstream_checked: bool = False,
        now: Optional[datetime] = None,
    ) -> SavedPackage:
        current = now or utc_now()
        package_dir = self._reset_package_dir(package_name, version)

        saved_names: list[str] = []
        any_truncated = False
        for fetched in files:
            content, truncated = process_fetched_file(
                fetched,
                repo=repo,
                version=version,
                resolved=resolved,
                max_size_kb=max_file_size_kb,
                fetched_on=current.date(),
            )
            any_truncated = any_truncated or truncated
            flat_name = flatten_filename(fetched.path)
            (package_dir / flat_name).write_text(content, encoding="utf-8")
            logger.debug("Saved cached file. path=%s", package_dir / flat_name)
            saved_names.append(flat_name)

        meta = CacheMetadata(
            version=version,
            git_ref=resolved.git_ref,
            fetched_at=format_date(current),
            is_fallback=resolved.is_fallback,
            source_kind=source_kind,
            upstream_latest_version=upstream_latest_version,
            upstream_checked_at=format_date(current) if upstream_checked else None,
            truncated=any_truncated,
        )
        write_metadata_file(package_dir / META_FILENAME, meta)

        logger.info(
            "Package files saved. package=%s version=%s files=%d path=%s",
            package_name,
            version,
            len(saved_names),
            package_dir,
        )
        return SavedPackage(
            name=package_name,
            version=version,
            git_ref=resolved.git_ref,
            is_fallback=resolved.is_fallback,
            files=saved_names,
            ai_notes=package_config.ai_notes,
            source_kind=source_kind,
        )

    def save_latest_api_markdown(
        self,
        package_name: str,
        version: str,
        *,
        artifact: DocsArtifact,
        package_config: PackageConfig,
        max_file_size_kb: int,
        now: Optional[datetime] = None,
    ) -> SavedPackage:
        current = now or utc_now()
        package_dir = self._reset_package_dir(package_name, version)

        markdown, truncated = truncate_if_needed(artifact.markdown, max_file_size_kb)
        content = inject_header(
            markdown,
            source="docs.rs",
            git_ref=version,
            original_path=API_MARKDOWN_FILENAME,
            source_url=artifact.docsrs_input_url,
            fetched_on=current.date(),
        )
        (package_dir / API_MARKDOWN_FILENAME).write_text(content, encoding="utf-8")

        meta = CacheMetadata(
            version=version,
            git_ref=version,
            fetched_at=format_date(current),
            is_fallback=False,
            source_kind="docsrs",
            upstream_latest_version=version,
            upstream_checked_at=format_date(current),
            docsrs_input_url=artifact.docsrs_input_url,
            truncated=artifact.truncated or truncated,
        )
        write_metadata_file(package_dir / META_FILENAME, meta)

        logger.info(
            "Documentation page saved. package=%s version=%s truncated=%s path=%s",
            package_name,
            version,
            meta.truncated,
            package_dir,
        )
        return SavedPackage(
            name=package_name,
            version=version,
            git_ref=version,
            is_fallback=False,
            files=[API_MARKDOWN_FILENAME],
            ai_notes=package_config.ai_notes,
            source_kind="docsrs",
        )

    def scan_existing(self) -> Dict[str, tuple[str, Path]]:
        """Map each package with a cache directory to its highest cached version and that directory."""
        best: Dict[str, tuple[str, Path]] = {}
        if not self._output_dir.is_dir():
            return best
        for entry in self._output_dir.iterdir():
            if not entry.is_dir():
                continue
            parsed = split_name_version(entry.name)
            if parsed is None:
                continue
            name, version = parsed
            current = best.get(name)
            if current is None or is_version_better(version, current[0]):
                best[name] = (version, entry)
        return best

    def prune(self, configured: Iterable[str], lock_versions: Mapping[str, str]) -> list[str]:
        """
        Remove entries for packages no longer configured or whose version differs from the lock file.

        Returns the removed directory names.
        """
        if not self._output_dir.is_dir():
            return []

        configured_names = set(configured)
        removed: list[str] = []
        for entry in sorted(self._output_dir.iterdir()):
            if not entry.is_dir():
                continue
            parsed = split_name_version(entry.name)
            if parsed is None:
                continue
            name, version = parsed
            if name in configured_names and lock_versions.get(name) == version:
                continue
            logger.info("Pruning stale cache entry. path=%s", entry)
            try:
                shutil.rmtree(entry)
            except OSError as e:
                logger.warning("Failed to prune cache entry. path=%s error=%s", entry, e)
                continue
            removed.append(entry.name)
        return removed
