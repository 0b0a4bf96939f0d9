from __future__ import annotations

from datetime import date
from typing import Optional

from ai_fdocs.content.changelog import truncate_changelog
from ai_fdocs.core.models import FetchedFile, ResolvedRef

HEADER_EXTENSIONS = (".md", ".markdown", ".html", ".htm")


def truncation_marker(max_size_kb: int) -> str:
    return f"[TRUNCATED by ai-fdocs at {max_size_kb}KB]"


def floor_utf8_boundary(data: bytes, index: int) -> int:
    """Move `index` back until it does not point into the middle of a UTF-8 sequence."""
    index = min(index, len(data))
    while 0 < index < len(data) and (data[index] & 0xC0) == 0x80:
        index -= 1
    return index


def truncate_if_needed(content: str, max_size_kb: int) -> tuple[str, bool]:
    max_bytes = max_size_kb * 1024
    data = content.encode("utf-8")
    if len(data) <= max_bytes:
        return content, False

    boundary = floor_utf8_boundary(data, max_bytes)
    truncated = data[:boundary].decode("utf-8")
    return f"{truncated}\n\n{truncation_marker(max_size_kb)}\n", True


def flatten_filename(file_path: str) -> str:
    return file_path.strip("/").replace("/", "__")


def should_inject_header(file_path: str) -> bool:
    return file_path.lower().endswith(HEADER_EXTENSIONS)


def is_changelog_path(file_path: str) -> bool:
    return "changelog" in file_path.lower()


def inject_header(
    content: str,
    *,
    source: str,
    git_ref: str,
    original_path: str,
    source_url: str,
    fetched_on: date,
    is_fallback: bool = False,
    version: Optional[str] = None,
) -> str:
    header = (
        f"<!-- AI-FDOCS: source={source} ref={git_ref} path={original_path} "
        f"fetched={fetched_on.isoformat()} -->\n"
        f"<!-- AI-FDOCS: url={source_url} -->\n"
    )
    if is_fallback:
        header = (
            f"<!-- AI-FDOCS WARNING: No tag found for version {version}. Fetched from '{git_ref}' "
            "branch. Content may not match installed version. -->\n"
        ) + header
    return f"{header}\n{content}"


def process_fetched_file(
    file: FetchedFile,
    *,
    repo: str,
    version: str,
    resolved: ResolvedRef,
    max_size_kb: int,
    fetched_on: date,
) -> tuple[str, bool]:
    """
    Apply changelog windowing, size truncation and the provenance header to one fetched file.

    Returns the processed text and whether size truncation happened.
    """
    content = file.content
    if is_changelog_path(file.path):
        content = truncate_changelog(content, version)

    content, truncated = truncate_if_needed(content, max_size_kb)

    if should_inject_header(file.path):
        content = inject_header(
            content,
            source=f"github.com/{repo}",
            git_ref=resolved.git_ref,
            original_path=file.path,
            source_url=file.source_url,
            fetched_on=fetched_on,
            is_fallback=resolved.is_fallback,
            version=version,
        )
    return content, truncated
