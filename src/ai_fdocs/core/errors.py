from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Optional, Sequence


class SyncErrorKind(str, Enum):
    AUTH = "auth"
    RATE_LIMIT = "rate_limit"
    NETWORK = "network"
    NOT_FOUND = "not_found"
    OTHER = "other"


class FdocsError(Exception):
    """Base error. Every subclass knows its sync error kind when it is raised."""

    kind: SyncErrorKind = SyncErrorKind.OTHER


class ConfigNotFoundError(FdocsError):
    def __init__(self, path: Path) -> None:
        super().__init__(f"Config file not found at: {path}")
        self.path = path


class ConfigParseError(FdocsError):
    def __init__(self, path: Path, detail: str) -> None:
        super().__init__(f"Config parsing error in {path}: {detail}")
        self.path = path


class InvalidConfigError(FdocsError):
    def __init__(self, detail: str) -> None:
        super().__init__(f"Invalid config: {detail}")


class LockFileNotFoundError(FdocsError):
    def __init__(self, path: Path) -> None:
        super().__init__(f"Lock file not found at: {path}. Please run 'cargo build' first.")
        self.path = path


class LockFileParseError(FdocsError):
    def __init__(self, path: Path, detail: str) -> None:
        super().__init__(f"Lock file parsing error in {path}: {detail}")
        self.path = path


class AuthError(FdocsError):
    kind = SyncErrorKind.AUTH

    def __init__(self, url: str, status: int) -> None:
        super().__init__(f"GitHub authentication failed for {url}: HTTP {status}")
        self.url = url
        self.status = status


class RateLimitError(FdocsError):
    kind = SyncErrorKind.RATE_LIMIT

    def __init__(self, url: str, status: int) -> None:
        super().__init__(
            f"GitHub API rate limit exceeded for {url}: HTTP {status}. Set GITHUB_TOKEN/GH_TOKEN."
        )
        self.url = url
        self.status = status


class HttpStatusError(FdocsError):
    def __init__(self, url: str, status: int) -> None:
        super().__init__(f"HTTP request failed for {url}: status {status}")
        self.url = url
        self.status = status
        if status == 404:
            self.kind = SyncErrorKind.NOT_FOUND
        elif 500 <= status < 600:
            self.kind = SyncErrorKind.NETWORK
        else:
            self.kind = SyncErrorKind.OTHER


class NetworkError(FdocsError):
    kind = SyncErrorKind.NETWORK

    def __init__(self, url: str, cause: Optional[BaseException] = None) -> None:
        detail = f"{type(cause).__name__}: {cause}" if cause is not None else "request failed"
        super().__init__(f"HTTP request failed for {url}: {detail}")
        self.url = url
        self.cause = cause


class UpstreamFileNotFoundError(FdocsError):
    kind = SyncErrorKind.NOT_FOUND

    def __init__(self, repo: str, path: str, tried: Sequence[str]) -> None:
        super().__init__(f"GitHub file not found: {repo} / {path} (candidates tried: {list(tried)})")
        self.repo = repo
        self.path = path
        self.tried = list(tried)


class OptionalFileNotFoundError(FdocsError):
    kind = SyncErrorKind.NOT_FOUND

    def __init__(self, path: str) -> None:
        super().__init__(f"Optional file not found: {path}")
        self.path = path

