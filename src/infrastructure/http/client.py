"""
infrastructure.http.client - Blocking JSON-over-HTTP calls made async.

Uses requests via run_in_executor. Every failure is raised as
ToolExecutionError with a message that names the failure kind
(timeout, network error, rate limit, HTTP status), so the coordinator can
tell transient failures from permanent ones by reading the text.
"""

from __future__ import annotations

import asyncio
import logging
from functools import partial
from typing import Any, Optional

import requests

from domain.exceptions import ToolExecutionError

logger = logging.getLogger(__name__)


class JsonHttpClient:
    """GET requests that return decoded JSON."""

    def __init__(self, timeout: float = 10.0, user_agent: str = "local-agent/0.1"):
        self._timeout = timeout
        self._headers = {"User-Agent": user_agent, "Accept": "application/json"}

    async def get_json(
        self,
        url: str,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> Any:
        """Fetch url and decode the JSON body.

        Raises:
            ToolExecutionError: On connection failure, timeout, non-2xx status
                or an undecodable body.
        """
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(
            None, partial(self._get, url, params or {}, headers or {}),
        )

    def _get(self, url: str, params: dict[str, Any], headers: dict[str, str]) -> Any:
        """Synchronous request (runs in thread pool)."""
        logger.debug("GET %s", url)
        try:
            response = requests.get(
                url,
                params=params,
                headers={**self._headers, **headers},
                timeout=self._timeout,
            )
        except requests.exceptions.Timeout as e:
            raise ToolExecutionError(f"Request timeout after {self._timeout}s: {url}") from e
        except requests.exceptions.ConnectionError as e:
            raise ToolExecutionError(f"Network error: could not reach {url}") from e
        except requests.exceptions.RequestException as e:
            raise ToolExecutionError(f"Request failed: {e}") from e

        if response.status_code == 429:
            raise ToolExecutionError(f"Rate limit exceeded (HTTP 429) at {url}")
        if not response.ok:
            raise ToolExecutionError(
                f"HTTP {response.status_code} from {url}: {response.text[:200]}"
            )
        try:
            return response.json()
        except ValueError as e:
            raise ToolExecutionError(f"Invalid JSON from {url}") from e
