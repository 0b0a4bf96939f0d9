from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Optional

from ai_fdocs.core.errors import SyncErrorKind

SourceKind = Literal["github", "github_fallback", "docsrs", "hybrid"]


@dataclass(frozen=True, slots=True)
class ResolvedRef:
    git_ref: str
    is_fallback: bool


@dataclass(frozen=True, slots=True)
class FileRequest:
    original_path: str
    candidates: tuple[str, ...]
    required: bool


@dataclass(slots=True)
class FetchedFile:
    path: str
    source_url: str
    content: str


@dataclass(frozen=True, slots=True)
class DocsArtifact:
    markdown: str
    docsrs_input_url: str
    truncated: bool


@dataclass(slots=True)
class SavedPackage:
    name: str
    version: str
    git_ref: str
    is_fallback: bool
    files: list[str] = field(default_factory=list)
    ai_notes: str = ""
    source_kind: Optional[str] = None


OutcomeKind = Literal["synced", "cached", "skipped", "error"]


@dataclass(frozen=True, slots=True)
class SyncOutcome:
    """Result of one package sync attempt. Aggregated, never persisted."""

    package: str
    kind: OutcomeKind
    saved: Optional[SavedPackage] = None
    error_kind: Optional[SyncErrorKind] = None

    @classmethod
    def synced(cls, package: str, saved: SavedPackage) -> SyncOutcome:
        return cls(package=package, kind="synced", saved=saved)

    @classmethod
    def cached(cls, package: str, saved: Optional[SavedPackage]) -> SyncOutcome:
        return cls(package=package, kind="cached", saved=saved)

    @classmethod
    def skipped(cls, package: str) -> SyncOutcome:
        return cls(package=package, kind="skipped")

    @classmethod
    def error(cls, package: str, kind: SyncErrorKind) -> SyncOutcome:
        return cls(package=package, kind="error", error_kind=kind)


@dataclass(slots=True)
class SyncStats:
    synced: int = 0
    cached: int = 0
    skipped: int = 0
    errors: int = 0
    errors_by_kind: dict[SyncErrorKind, int] = field(
        default_factory=lambda: {kind: 0 for kind in SyncErrorKind}
    )
    saved: list[SavedPackage] = field(default_factory=list)

    def record(self, outcome: SyncOutcome) -> None:
        if outcome.kind == "synced":
            self.synced += 1
        elif outcome.kind == "cached":
            self.cached += 1
        elif outcome.kind == "skipped":
            self.skipped += 1
        else:
            self.errors += 1
            kind = outcome.error_kind or SyncErrorKind.OTHER
            self.errors_by_kind[kind] += 1
        if outcome.saved is not None:
            self.saved.append(outcome.saved)

    def error_breakdown(self) -> str:
        return (
            f"auth={self.errors_by_kind[SyncErrorKind.AUTH]} "
            f"rate_limit={self.errors_by_kind[SyncErrorKind.RATE_LIMIT]} "
            f"network={self.errors_by_kind[SyncErrorKind.NETWORK]} "
            f"not_found={self.errors_by_kind[SyncErrorKind.NOT_FOUND]} "
            f"other={self.errors_by_kind[SyncErrorKind.OTHER]}"
        )
