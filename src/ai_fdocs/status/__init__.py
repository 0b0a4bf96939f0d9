from __future__ import annotations

from ai_fdocs.status.engine import (
    DocsStatus,
    PackageStatus,
    StatusSummary,
    collect_status,
    collect_status_latest,
    summarize,
)

__all__ = [
    "DocsStatus",
    "PackageStatus",
    "StatusSummary",
    "collect_status",
    "collect_status_latest",
    "summarize",
]
