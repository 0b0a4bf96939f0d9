from __future__ import annotations

import json
import logging

from ai_fdocs.content.processing import truncate_if_needed
from ai_fdocs.core.errors import FdocsError, HttpStatusError, NetworkError
from ai_fdocs.core.models import DocsArtifact
from ai_fdocs.sources.html_markdown import extract_docs_links, extract_main_content, extract_title
from ai_fdocs.sources.http import HttpClient

logger = logging.getLogger(__name__)

REGISTRY_BASE_URL = "https://crates.io"
DOCS_BASE_URL = "https://docs.rs"
MAX_API_LINKS = 20


def is_docsrs_fallback_eligible(error: BaseException) -> bool:
    """True when the documentation host failure should be retried through the GitHub path."""
    if isinstance(error, HttpStatusError):
        return error.status in (404, 429) or 500 <= error.status < 600
    return isinstance(error, NetworkError)


class LatestDocsFetcher:
    """Looks up the newest published version and renders its documentation page as markdown."""

    def __init__(
        self,
        http: HttpClient,
        *,
        registry_base_url: str = REGISTRY_BASE_URL,
        docs_base_url: str = DOCS_BASE_URL,
    ) -> None:
        self._http = http
        self._registry_base_url = registry_base_url.rstrip("/")
        self._docs_base_url = docs_base_url.rstrip("/")

    def docs_page_url(self, package_name: str, version: str) -> str:
        return f"{self._docs_base_url}/crate/{package_name}/{version}"

    async def resolve_latest_version(self, package_name: str) -> str:
        url = f"{self._registry_base_url}/api/v1/crates/{package_name}"
        response = await self._http.send_with_retry(url, reject_auth_failures=False)
        if not response.ok:
            raise HttpStatusError(url, response.status)

        try:
            data = json.loads(response.text).get("crate") or {}
        except (ValueError, AttributeError) as e:
            raise FdocsError(f"Invalid registry response for '{package_name}': {e}") from e

        stable = (data.get("max_stable_version") or "").strip()
        if stable:
            return stable
        latest = (data.get("max_version") or "").strip()
        if latest:
            return latest
        raise FdocsError(f"Registry response for '{package_name}' has no max version")

    async def fetch_api_markdown(self, package_name: str, version: str, max_file_size_kb: int) -> DocsArtifact:
        url = self.docs_page_url(package_name, version)
        response = await self._http.send_with_retry(url, reject_auth_failures=False)
        if not response.ok:
            raise HttpStatusError(url, response.status)

        markdown = self.render_markdown(package_name, version, response.text)
        markdown, truncated = truncate_if_needed(markdown, max_file_size_kb)
        logger.debug(
            "Rendered documentation page. package=%s version=%s bytes=%d truncated=%s",
            package_name,
            version,
            len(markdown.encode("utf-8")),
            truncated,
        )
        return DocsArtifact(markdown=markdown, docsrs_input_url=url, truncated=truncated)

    def render_markdown(self, package_name: str, version: str, html: str) -> str:
        input_url = self.docs_page_url(package_name, version)
        module_name = package_name.replace("-", "_")
        title = extract_title(html) or f"{package_name} {version}"
        links = extract_docs_links(package_name, version, html)[:MAX_API_LINKS]
        main_content = extract_main_content(html, self._docs_base_url)

        parts = [
            f"# {package_name}@{version}\n\n",
            "## Overview\n\n",
            f"Generated from docs.rs page **{title}** for `{package_name}` `{version}`.\n\n",
        ]
        if main_content:
            parts.append("## Documentation\n\n")
            parts.append(f"{main_content}\n\n")

        parts.append("## API Reference\n\n")
        parts.append(f"- [crate page]({input_url})\n")
        parts.append(f"- [rustdoc root]({self._docs_base_url}/{package_name}/{version}/{module_name}/)\n")
        for link in links:
            parts.append(f"- [{link}]({self._docs_base_url}{link})\n")

        parts.append("\n## Example\n\n")
        parts.append(f"```rust\nuse {module_name} as _;\n```\n\n")
        parts.append("---\n")
        parts.append(f"Source: {input_url}\n")
        return "".join(parts)
