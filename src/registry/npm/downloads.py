"""Weekly download counts per package name, cached across runs.

Downloads are attributed to the package as a whole: the downloads API is not
version-aware, so one count is kept per name no matter how many versions are
installed. A failed lookup yields ``UNKNOWN_DOWNLOADS`` (-1) and is never
written to disk.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from typing import Dict, Optional

from common.schema_validate import DOWNLOADS_CACHE_SCHEMA, SchemaError, validate
from constants import Constants
from errors import RegistryHttpError
from registry.npm.client import NpmRegistryClient

logger = logging.getLogger(__name__)


class PopularityCache:
    """Name-scoped weekly download cache with single-flight lookups."""

    def __init__(self, client: NpmRegistryClient, cache_dir: str, enabled: bool = True):
        self._client = client
        self._path = os.path.join(cache_dir, Constants.DOWNLOADS_CACHE_FILE)
        self._enabled = enabled
        self._counts: Dict[str, int] = {}
        self._inflight: Dict[str, "asyncio.Task[int]"] = {}
        self._dirty = False

    def load(self) -> None:
        """Read the cache file; an unreadable file is treated as empty."""
        self._counts = {}
        if not self._enabled or not os.path.isfile(self._path):
            return
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
            validate(DOWNLOADS_CACHE_SCHEMA, data, what=f"downloads cache {self._path}")
        except (OSError, ValueError) as e:
            logger.error("Failed to read download cache %s: %s", self._path, e)
            return
        self._counts = {name: int(count) for name, count in data.items()}

    def save(self) -> None:
        """Write the cache back once per run; failures are logged only."""
        if not self._enabled or not self._dirty:
            return
        try:
            os.makedirs(os.path.dirname(self._path), exist_ok=True)
            with open(self._path, "w", encoding="utf-8") as f:
                json.dump(self._counts, f, indent=2, sort_keys=True)
            self._dirty = False
        except OSError as e:
            logger.error("Failed to write download cache %s: %s", self._path, e)

    def cached(self, package_name: str) -> Optional[int]:
        return self._counts.get(package_name)

    async def get(self, package_name: str) -> int:
        """Return last week's downloads for a package, or -1 when unknown."""
        if package_name in self._counts:
            return self._counts[package_name]

        task = self._inflight.get(package_name)
        if task is None:
            task = asyncio.ensure_future(self._fetch(package_name))
            self._inflight[package_name] = task
        try:
            return await task
        finally:
            self._inflight.pop(package_name, None)

    async def _fetch(self, package_name: str) -> int:
        try:
            downloads = await self._client.fetch_weekly_downloads(package_name)
        except (RegistryHttpError, SchemaError) as e:
            logger.error("Failed to fetch weekly downloads for %s: %s", package_name, e)
            return Constants.UNKNOWN_DOWNLOADS

        self._counts[package_name] = downloads
        self._dirty = True
        return downloads
