"""Durable per-package cache of npm registry metadata.

Registry documents can be several megabytes, but publish times, licenses and
install scripts of a published version never change. Only those fields are
kept, one JSON file per package name, so a later run for the same versions
needs no network access at all.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from typing import Any, Dict, Optional

from analysis.models import RegistryCacheRecord
from common.logging_utils import extra_context, is_debug_enabled
from common.schema_validate import REGISTRY_CACHE_SCHEMA, validate
from constants import Constants
from errors import RegistryDataError
from registry.npm.client import NpmRegistryClient

logger = logging.getLogger(__name__)


def reduce_package_document(
    package_name: str, version: str, doc: Dict[str, Any], url: str
) -> RegistryCacheRecord:
    """Check a registry document for ``version`` and keep only the needed fields.

    Raises:
        RegistryDataError: When ``versions`` or ``time`` is missing, or when
            either does not describe the requested version.
    """
    versions = doc.get("versions")
    if not versions:
        raise RegistryDataError(f"No versions field in {url}")
    if version not in versions:
        raise RegistryDataError(f"{package_name}@{version} was not found in the registry!")

    time = doc.get("time")
    if not time:
        raise RegistryDataError(f"No time field in {url}")
    if not isinstance(time.get(version), str):
        raise RegistryDataError(f"{package_name}@{version} has no time field in the registry!")

    reduced = {}
    for v, data in versions.items():
        scripts = data.get("scripts")
        reduced[v] = {
            "license": data.get("license"),
            "scripts": scripts if isinstance(scripts, dict) else None,
        }
    return RegistryCacheRecord(time=dict(time), versions=reduced)


class RegistryMetadataCache:
    """Registry metadata keyed by package name, sharded one file per package."""

    def __init__(self, client: NpmRegistryClient, cache_dir: str, enabled: bool = True):
        """Initialize the cache.

        Args:
            client: Registry client used on a miss.
            cache_dir: Directory holding ``<package>.json`` files.
            enabled: When False the disk is neither read nor written.
        """
        self._client = client
        self._cache_dir = cache_dir
        self._enabled = enabled

    def cache_file(self, package_name: str) -> str:
        # Scoped names nest under their @scope directory
        return os.path.join(self._cache_dir, f"{package_name}.json")

    def _read(self, package_name: str) -> Optional[RegistryCacheRecord]:
        path = self.cache_file(package_name)
        if not os.path.isfile(path):
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            validate(REGISTRY_CACHE_SCHEMA, data, what=f"registry cache file {path}")
        except (OSError, ValueError) as e:  # JSONDecodeError and SchemaError are ValueErrors
            logger.error("Failed to read cache for %s: %s", package_name, e)
            return None

        # A new cache format means the registry is queried again and the file rebuilt
        if data["formatVersion"] != Constants.REGISTRY_CACHE_FORMAT_VERSION:
            logger.debug(
                "Cache format %s for %s is outdated", data["formatVersion"], package_name
            )
            return None
        return RegistryCacheRecord(time=data["time"], versions=data["versions"])

    def _write(self, package_name: str, record: RegistryCacheRecord) -> None:
        path = self.cache_file(package_name)
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(record.to_dict(Constants.REGISTRY_CACHE_FORMAT_VERSION), f, indent=2)
        except (OSError, TypeError) as e:
            logger.error("Failed to write cache in %s: %s", path, e)

    async def get(self, package_name: str, version: str) -> RegistryCacheRecord:
        """Return metadata covering ``version``, from disk when possible.

        Raises:
            RegistryHttpError: When the registry cannot be reached.
            RegistryDataError: When the registry lacks the requested version.
            SchemaError: When the registry response is malformed.
        """
        if self._enabled:
            cached = await asyncio.to_thread(self._read, package_name)
            if cached is not None and cached.has_version(version):
                if is_debug_enabled(logger):
                    logger.debug(
                        "Registry cache hit",
                        extra=extra_context(
                            event="cache_hit", component="metadata_cache", target=package_name
                        ),
                    )
                return cached

        url = self._client.package_url(package_name)
        doc = await self._client.fetch_package_document(package_name)
        record = reduce_package_document(package_name, version, doc, url)

        if self._enabled:
            await asyncio.to_thread(self._write, package_name, record)
        return record
