from __future__ import annotations

from ai_fdocs.sources.docsrs import LatestDocsFetcher, is_docsrs_fallback_eligible
from ai_fdocs.sources.github import FileFetchResult, GitHubFetcher
from ai_fdocs.sources.http import HttpClient, HttpResponse, resolve_github_token

__all__ = [
    "FileFetchResult",
    "GitHubFetcher",
    "HttpClient",
    "HttpResponse",
    "LatestDocsFetcher",
    "is_docsrs_fallback_eligible",
    "resolve_github_token",
]
