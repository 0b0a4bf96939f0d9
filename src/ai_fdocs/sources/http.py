from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

import aiohttp

from ai_fdocs import USER_AGENT
from ai_fdocs.core.errors import AuthError, NetworkError, RateLimitError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
MAX_RETRY_ATTEMPTS = 3
RETRY_BASE_BACKOFF_SECONDS = 0.5

TOKEN_ENV_VARS = ("GITHUB_TOKEN", "GH_TOKEN")


def resolve_github_token(environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
    source = os.environ if environ is None else environ
    for name in TOKEN_ENV_VARS:
        value = (source.get(name) or "").strip()
        if value:
            return value
    return None


@dataclass(frozen=True, slots=True)
class HttpResponse:
    status: int
    text: str
    url: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


async def _backoff_sleep(seconds: float) -> None:
    await asyncio.sleep(seconds)


class HttpClient:
    """
    Shared aiohttp session with the retry policy used by every upstream call.

    Server errors and connection failures are retried with exponential backoff. With
    `reject_auth_failures=True`, 401 raises `AuthError` and 403/429 raise `RateLimitError`
    immediately; otherwise 429 is retried like a server error. Any other response is returned
    to the caller, 404 included.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_attempts: int = MAX_RETRY_ATTEMPTS,
        base_backoff_seconds: float = RETRY_BASE_BACKOFF_SECONDS,
        user_agent: str = USER_AGENT,
    ) -> None:
        self._timeout_seconds = timeout_seconds
        self._max_attempts = max(1, max_attempts)
        self._base_backoff_seconds = base_backoff_seconds
        self._user_agent = user_agent
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> HttpClient:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()

    async def start(self) -> None:
        """Open the underlying session."""
        if self._session is not None:
            return
        timeout = aiohttp.ClientTimeout(total=self._timeout_seconds)
        self._session = aiohttp.ClientSession(
            timeout=timeout,
            headers={"User-Agent": self._user_agent},
        )

    async def stop(self) -> None:
        """Close the underlying session."""
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def _get(self, url: str, headers: Optional[Mapping[str, str]]) -> HttpResponse:
        if self._session is None:
            await self.start()
        assert self._session is not None
        async with self._session.get(url, headers=dict(headers or {})) as response:
            text = await response.text(errors="replace")
            return HttpResponse(status=response.status, text=text, url=url)

    async def send_with_retry(
        self,
        url: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        reject_auth_failures: bool = True,
    ) -> HttpResponse:
        backoff = self._base_backoff_seconds

        for attempt in range(1, self._max_attempts + 1):
            try:
                response = await self._get(url, headers)
            except (aiohttp.ClientConnectionError, asyncio.TimeoutError) as e:
                if attempt < self._max_attempts:
                    logger.debug(
                        "Network error, retrying. url=%s attempt=%d/%d backoff_seconds=%s error=%s",
                        url,
                        attempt + 1,
                        self._max_attempts,
                        backoff,
                        e,
                    )
                    await _backoff_sleep(backoff)
                    backoff *= 2
                    continue
                raise NetworkError(url, e) from e
            except aiohttp.ClientError as e:
                raise NetworkError(url, e) from e

            status = response.status
            if reject_auth_failures:
                if status == 401:
                    raise AuthError(url, status)
                if status in (403, 429):
                    raise RateLimitError(url, status)

            retryable = status >= 500 or (not reject_auth_failures and status == 429)
            if retryable and attempt < self._max_attempts:
                logger.debug(
                    "Upstream error status, retrying. url=%s status=%d attempt=%d/%d backoff_seconds=%s",
                    url,
                    status,
                    attempt + 1,
                    self._max_attempts,
                    backoff,
                )
                await _backoff_sleep(backoff)
                backoff *= 2
                continue

            return response

        raise NetworkError(url)
