"""Shared aiohttp JSON client with bounded timeouts and retry/backoff."""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Dict, Optional

import aiohttp

logger = logging.getLogger(__name__)


@dataclass
class HttpResult:
    ok: bool
    status: int
    data: Optional[Any]
    error: str = ""


class JsonHttpClient:
    """
    Thin JSON client used by every network collaborator.

    One lazily created session per client, a total timeout on every request,
    and exponential backoff with jitter for 429/5xx and transport errors.
    Failures come back as ``HttpResult(ok=False)``; callers decide which
    domain error to raise.
    """

    def __init__(
        self,
        timeout_seconds: float = 10.0,
        headers: Optional[Dict[str, str]] = None,
        retry_attempts: int = 3,
        backoff_base_seconds: float = 0.5,
        backoff_max_seconds: float = 8.0,
    ):
        self._timeout = aiohttp.ClientTimeout(total=max(1.0, float(timeout_seconds)))
        self._headers = {"Accept": "application/json", **(headers or {})}
        self.retry_attempts = max(1, int(retry_attempts))
        self.backoff_base_seconds = backoff_base_seconds
        self.backoff_max_seconds = backoff_max_seconds
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout, headers=self._headers)
        return self._session

    async def close(self):
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    def _delay(self, attempt: int, status: int) -> float:
        delay = min(self.backoff_max_seconds, self.backoff_base_seconds * (2 ** max(0, attempt - 1)))
        if status == 429:
            delay = min(self.backoff_max_seconds, delay * 2)
        return delay + random.uniform(0.0, 0.25)

    async def get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        max_attempts: Optional[int] = None,
    ) -> HttpResult:
        return await self._request("GET", url, params=params, max_attempts=max_attempts)

    async def post_json(
        self,
        url: str,
        payload: Any,
        max_attempts: int = 1,
    ) -> HttpResult:
        """POST is not retried unless the caller asks for it."""
        return await self._request("POST", url, payload=payload, max_attempts=max_attempts)

    async def _request(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        payload: Any = None,
        max_attempts: Optional[int] = None,
    ) -> HttpResult:
        attempts = max(1, int(max_attempts or self.retry_attempts))
        result = HttpResult(ok=False, status=0, data=None, error="not attempted")

        for attempt in range(1, attempts + 1):
            status = 0
            try:
                session = await self._get_session()
                async with session.request(method, url, params=params, json=payload) as response:
                    status = response.status
                    if 200 <= status < 300:
                        try:
                            data = await response.json(content_type=None)
                        except ValueError as e:
                            return HttpResult(ok=False, status=status, data=None, error=f"malformed JSON: {e}")
                        return HttpResult(ok=True, status=status, data=data)

                    body = await response.text()
                    result = HttpResult(ok=False, status=status, data=None, error=f"HTTP {status}: {body[:300]}")
                    if status != 429 and not 500 <= status <= 599:
                        return result
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                result = HttpResult(ok=False, status=status, data=None, error=f"{type(e).__name__}: {e}")

            if attempt < attempts:
                delay = self._delay(attempt, status)
                logger.debug(f"{method} {url} failed ({result.error}); retry {attempt}/{attempts - 1} in {delay:.2f}s")
                await asyncio.sleep(delay)

        return result
