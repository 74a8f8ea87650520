"""Batch orchestration of registry lookups and policy evaluation.

Dependencies are processed in fixed-size chunks: every dependency of a chunk
runs concurrently, chunks run one after another. Results keep the order of
the input list so the final warning set is deterministic.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Set

from analysis.models import Dependency, PolicyConfig, PolicyWarning, RegistryCacheRecord
from analysis.policy_rules import evaluate_dependency
from common.logging_utils import Timer, extra_context, is_debug_enabled
from common.schema_validate import SchemaError
from constants import Constants
from errors import RegistryDataError, RegistryHttpError
from registry.npm.downloads import PopularityCache
from registry.npm.metadata_cache import RegistryMetadataCache

logger = logging.getLogger(__name__)


def chunked(items: Sequence[Dependency], size: int) -> List[Sequence[Dependency]]:
    return [items[i:i + size] for i in range(0, len(items), size)]


class PolicyRunner:
    """Evaluate a dependency list against a policy with bounded concurrency."""

    def __init__(
        self,
        config: PolicyConfig,
        metadata_cache: RegistryMetadataCache,
        popularity_cache: PopularityCache,
        batch_size: int = Constants.BATCH_SIZE,
        now: Optional[datetime] = None,
    ):
        self._config = config
        self._metadata_cache = metadata_cache
        self._popularity_cache = popularity_cache
        self._batch_size = max(1, batch_size)
        self._now = now
        # Names already sent to the popularity cache during this run
        self._queried: Set[str] = set()

    async def _load_record(self, dep: Dependency) -> Optional[RegistryCacheRecord]:
        try:
            return await self._metadata_cache.get(dep.name, dep.version)
        except (RegistryHttpError, RegistryDataError, SchemaError) as e:
            logger.error("Failed to fetch %s from registry: %s", dep.identity, e)
            return None

    async def _load_downloads(self, dep: Dependency) -> int:
        if self._config.min_weekly_downloads <= 0:
            return Constants.UNKNOWN_DOWNLOADS
        # Claimed before the first await so a sibling in the same chunk skips it
        if dep.name in self._queried:
            return Constants.UNKNOWN_DOWNLOADS
        self._queried.add(dep.name)
        return await self._popularity_cache.get(dep.name)

    async def _check(self, dep: Dependency) -> List[PolicyWarning]:
        downloads_task = self._load_downloads(dep)
        record, downloads = await asyncio.gather(self._load_record(dep), downloads_task)
        now = self._now or datetime.now(timezone.utc)
        return evaluate_dependency(dep, self._config, record, downloads, now)

    async def run(self, deps: Sequence[Dependency]) -> List[PolicyWarning]:
        """Evaluate every dependency and return all warnings in dependency order."""
        warnings: List[PolicyWarning] = []
        with Timer() as timer:
            for chunk in chunked(deps, self._batch_size):
                results = await asyncio.gather(*(self._check(dep) for dep in chunk))
                for problems in results:
                    warnings.extend(problems)

        if is_debug_enabled(logger):
            logger.debug(
                "Policy evaluation finished",
                extra=extra_context(
                    event="complete",
                    component="policy_runner",
                    count=len(deps),
                    warnings=len(warnings),
                    duration_ms=timer.duration_ms(),
                ),
            )
        return warnings
