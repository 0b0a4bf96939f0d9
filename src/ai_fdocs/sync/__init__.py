from __future__ import annotations

from ai_fdocs.sync.orchestrator import SyncOrchestrator
from ai_fdocs.sync.requests import build_requests, collect_fetched_files, is_readme_request

__all__ = [
    "SyncOrchestrator",
    "build_requests",
    "collect_fetched_files",
    "is_readme_request",
]
