"""Shared HTTP helpers used by registry clients.

Two flavours live here: a blocking ``get_json`` built on requests for one-shot
downloads done before the event loop starts, and ``AsyncHttpClient``, a thin
aiohttp session wrapper used for the concurrent per-package fetches.
"""
from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Dict, Optional

import aiohttp
import requests

from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled, Timer
from errors import RegistryHttpError

logger = logging.getLogger(__name__)


def _default_headers(headers: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    merged = {"User-Agent": Constants.USER_AGENT, "Accept": "application/json"}
    if headers:
        merged.update(headers)
    return merged


def get_json(url: str, *, headers: Optional[Dict[str, str]] = None) -> Any:
    """Perform a blocking GET with retries and return the decoded JSON body.

    Raises:
        RegistryHttpError: After HTTP_RETRY_MAX failed attempts, on a non-2xx
            status, or when the body is not JSON.
    """
    last_exception = None

    for attempt in range(Constants.HTTP_RETRY_MAX):
        with Timer() as t:
            try:
                response = requests.get(
                    url,
                    timeout=Constants.REQUEST_TIMEOUT,
                    headers=_default_headers(headers),
                )
            except requests.RequestException as exc:  # includes Timeout
                last_exception = str(exc)
                if is_debug_enabled(logger):
                    logger.debug(
                        "HTTP request exception",
                        extra=extra_context(
                            event="http_exception",
                            component="http_client",
                            action="GET",
                            attempt=attempt + 1,
                            target=url,
                        ),
                    )
                time.sleep(Constants.HTTP_RETRY_BASE_DELAY_SEC * (2 ** attempt))
                continue

        logger.info("GET %s %dms", url, t.duration_ms())

        if response.status_code >= 500:
            last_exception = f"{response.status_code} {response.reason}"
            time.sleep(Constants.HTTP_RETRY_BASE_DELAY_SEC * (2 ** attempt))
            continue
        if not 200 <= response.status_code < 300:
            raise RegistryHttpError(
                url, f"{response.status_code} {response.reason}", response.status_code
            )
        try:
            return response.json()
        except ValueError as exc:
            raise RegistryHttpError(url, f"invalid JSON body ({exc})") from exc

    raise RegistryHttpError(
        url, f"request failed after {Constants.HTTP_RETRY_MAX} attempts: {last_exception}"
    )


class AsyncHttpClient:
    """Async JSON client sharing one aiohttp session across many requests."""

    def __init__(self, timeout: int = Constants.REQUEST_TIMEOUT, limit: int = Constants.BATCH_SIZE):
        """Initialize the client.

        Args:
            timeout: Total request timeout in seconds.
            limit: Maximum simultaneous connections.
        """
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._limit = limit
        self._session: Optional[aiohttp.ClientSession] = None

    async def start(self) -> None:
        """Start the HTTP session."""
        if self._session is None:
            connector = aiohttp.TCPConnector(limit=self._limit)
            self._session = aiohttp.ClientSession(
                timeout=self._timeout,
                connector=connector,
                headers=_default_headers(),
            )

    async def stop(self) -> None:
        """Stop the HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    async def fetch_json(self, url: str) -> Any:
        """GET a URL and decode its JSON body.

        Raises:
            RegistryHttpError: On connection errors, timeouts, non-2xx status
                or an undecodable body.
        """
        if self._session is None:
            await self.start()
        assert self._session is not None

        with Timer() as t:
            try:
                async with self._session.get(url) as response:
                    body = await response.text()
                    status = response.status
                    reason = response.reason
            except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
                raise RegistryHttpError(url, str(exc) or type(exc).__name__) from exc

        logger.info("GET %s %dms", url, t.duration_ms())

        if not 200 <= status < 300:
            raise RegistryHttpError(url, f"{status} {reason}", status)
        try:
            return json.loads(body)
        except json.JSONDecodeError as exc:
            raise RegistryHttpError(url, f"invalid JSON body ({exc})") from exc

    async def __aenter__(self) -> "AsyncHttpClient":
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.stop()
