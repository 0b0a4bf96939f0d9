from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from ai_fdocs.core.errors import (
    AuthError,
    FdocsError,
    HttpStatusError,
    OptionalFileNotFoundError,
    RateLimitError,
    UpstreamFileNotFoundError,
)
from ai_fdocs.core.models import FetchedFile, FileRequest, ResolvedRef
from ai_fdocs.sources.http import HttpClient, HttpResponse

logger = logging.getLogger(__name__)

GITHUB_API_BASE_URL = "https://api.github.com"
GITHUB_RAW_BASE_URL = "https://raw.githubusercontent.com"


@dataclass(slots=True)
class FileFetchResult:
    request: FileRequest
    file: Optional[FetchedFile] = None
    error: Optional[FdocsError] = None


def tag_candidates(package_name: str, version: str) -> list[str]:
    return [
        f"v{version}",
        version,
        f"{package_name}-v{version}",
        f"{package_name}-{version}",
    ]


def _status_error(url: str, status: int) -> FdocsError:
    if status == 401:
        return AuthError(url, status)
    if status in (403, 429):
        return RateLimitError(url, status)
    return HttpStatusError(url, status)


class GitHubFetcher:
    """Resolves a package version to a git ref and fetches files from it."""

    def __init__(
        self,
        http: HttpClient,
        *,
        token: Optional[str] = None,
        api_base_url: str = GITHUB_API_BASE_URL,
        raw_base_url: str = GITHUB_RAW_BASE_URL,
    ) -> None:
        self._http = http
        self._api_base_url = api_base_url.rstrip("/")
        self._raw_base_url = raw_base_url.rstrip("/")
        self._headers = {"Accept": "application/vnd.github+json"}
        if token:
            self._headers["Authorization"] = f"Bearer {token}"
        else:
            logger.warning(
                "No GITHUB_TOKEN or GH_TOKEN found. Rate limit is 60 req/hr; set a token for 5000 req/hr."
            )

    def api_tag_url(self, repo: str, tag: str) -> str:
        return f"{self._api_base_url}/repos/{repo}/git/ref/tags/{tag}"

    def api_repo_url(self, repo: str) -> str:
        return f"{self._api_base_url}/repos/{repo}"

    def raw_file_url(self, repo: str, git_ref: str, path: str) -> str:
        return f"{self._raw_base_url}/{repo}/{git_ref}/{path}"

    async def _get(self, url: str) -> HttpResponse:
        return await self._http.send_with_retry(url, headers=self._headers)

    async def resolve_ref(self, repo: str, package_name: str, version: str) -> ResolvedRef:
        for tag in tag_candidates(package_name, version):
            url = self.api_tag_url(repo, tag)
            response = await self._get(url)
            if response.ok:
                logger.debug("Resolved version tag. repo=%s tag=%s", repo, tag)
                return ResolvedRef(git_ref=tag, is_fallback=False)
            if response.status != 404:
                raise _status_error(url, response.status)

        logger.warning(
            "No tag found for version, falling back to default branch. repo=%s package=%s version=%s",
            repo,
            package_name,
            version,
        )
        url = self.api_repo_url(repo)
        response = await self._get(url)
        if not response.ok:
            raise _status_error(url, response.status)

        try:
            default_branch = json.loads(response.text).get("default_branch")
        except (ValueError, AttributeError) as e:
            raise FdocsError(f"Invalid repository metadata for {repo}: {e}") from e
        if not isinstance(default_branch, str) or not default_branch:
            raise FdocsError(f"Repository metadata for {repo} has no default branch")

        return ResolvedRef(git_ref=default_branch, is_fallback=True)

    async def fetch_file(self, repo: str, git_ref: str, request: FileRequest) -> FetchedFile:
        tried: list[str] = []
        for candidate in request.candidates:
            tried.append(candidate)
            url = self.raw_file_url(repo, git_ref, candidate)
            response = await self._get(url)
            if response.status == 404:
                continue
            if not response.ok:
                raise _status_error(url, response.status)
            return FetchedFile(path=request.original_path, source_url=url, content=response.text)

        if request.required:
            raise UpstreamFileNotFoundError(repo, request.original_path, tried)
        raise OptionalFileNotFoundError(request.original_path)

    async def fetch_files(
        self,
        repo: str,
        git_ref: str,
        requests: Sequence[FileRequest],
    ) -> list[FileFetchResult]:
        """Fetch each request in order. A failure is recorded on its own result and never stops the others."""
        results: list[FileFetchResult] = []
        for request in requests:
            try:
                fetched = await self.fetch_file(repo, git_ref, request)
            except FdocsError as e:
                results.append(FileFetchResult(request=request, error=e))
                continue
            results.append(FileFetchResult(request=request, file=fetched))
        return results
