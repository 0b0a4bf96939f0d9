from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence

from ai_fdocs.core.errors import OptionalFileNotFoundError
from ai_fdocs.core.models import FetchedFile, FileRequest
from ai_fdocs.sources.github import FileFetchResult

logger = logging.getLogger(__name__)

README_PATH = "README.md"
CHANGELOG_PATH = "CHANGELOG.md"

_README_CANDIDATES = ("README.md", "Readme.md", "readme.md")
_CHANGELOG_CANDIDATES = ("CHANGELOG.md", "Changelog.md", "changelog.md")


def build_requests(subpath: Optional[str], explicit_files: Optional[Sequence[str]]) -> list[FileRequest]:
    """
    Explicit files are each required with a single candidate.

    Without them, README and CHANGELOG are requested as optional files under `subpath`.
    """
    if explicit_files is not None:
        return [FileRequest(original_path=f, candidates=(f,), required=True) for f in explicit_files]

    trimmed = (subpath or "").strip("/")
    prefix = f"{trimmed}/" if trimmed else ""
    return [
        FileRequest(
            original_path=f"{prefix}{README_PATH}",
            candidates=tuple(f"{prefix}{c}" for c in _README_CANDIDATES),
            required=False,
        ),
        FileRequest(
            original_path=f"{prefix}{CHANGELOG_PATH}",
            candidates=tuple(f"{prefix}{c}" for c in _CHANGELOG_CANDIDATES),
            required=False,
        ),
    ]


def is_readme_request(path: str) -> bool:
    """Match `README.md` in any case, at the repo root or under a subpath."""
    return path.rpartition("/")[2].lower() == README_PATH.lower()


def collect_fetched_files(
    results: Iterable[FileFetchResult],
    package_name: str,
    version: str,
) -> list[FetchedFile]:
    """Keep successful fetches. Optional misses are dropped silently; other failures are logged."""
    files: list[FetchedFile] = []
    for result in results:
        if result.file is not None:
            files.append(result.file)
            continue
        if isinstance(result.error, OptionalFileNotFoundError):
            logger.debug(
                "Optional file not found. package=%s version=%s path=%s",
                package_name,
                version,
                result.request.original_path,
            )
            continue
        logger.warning(
            "File fetch failed. package=%s version=%s path=%s error=%s",
            package_name,
            version,
            result.request.original_path,
            result.error,
        )
    return files
