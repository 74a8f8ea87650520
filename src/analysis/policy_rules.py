"""Policy rules evaluated against one installed dependency.

Each rule family is independent and toggled by the policy config. A rule
returns zero or more PolicyWarning objects; their ``cache_key`` is what makes
a warning approvable, so it is chosen to stay stable across runs:

- script: the script name and its body, so an edited script is a new warning
- license: the license string (or "no license")
- minPackageAge: the version, not the elapsed time
- minWeeklyDownloads: the configured threshold, not the measured count
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any, List, Optional

from analysis.models import Dependency, PolicyConfig, PolicyWarning, RegistryCacheRecord
from constants import Constants, WarningType
from errors import RegistryDataError

logger = logging.getLogger(__name__)


def parse_publish_time(value: str) -> datetime:
    """Parse a registry ISO-8601 timestamp into an aware UTC datetime."""
    # Handle the trailing Z that older fromisoformat() rejects
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_age(published: datetime, now: datetime) -> str:
    """Render an age as "N days ago", or "N hours ago" within the first day."""
    elapsed = (now - published).total_seconds()
    days = elapsed / 86400
    if days > 1:
        return f"{math.floor(days)} days ago"
    return f"{math.floor(elapsed / 3600)} hours ago"


def normalize_license(value: Any) -> Optional[str]:
    """Reduce a manifest license field to a comparable string.

    Old manifests use ``{"type": "MIT"}`` objects or lists of them.
    """
    if value is None or value == "":
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        return normalize_license(value.get("type"))
    if isinstance(value, list):
        parts = [normalize_license(item) for item in value]
        joined = " OR ".join(p for p in parts if p)
        return joined or None
    return str(value)


def check_scripts(dep: Dependency, record: RegistryCacheRecord) -> List[PolicyWarning]:
    """Warn about every install-time script the published manifest defines."""
    scripts = record.versions[dep.version].get("scripts") or {}
    problems = []
    for script in Constants.INSTALL_SCRIPTS:
        if script not in scripts:
            continue
        value = scripts[script]
        problems.append(
            PolicyWarning(
                package=dep.identity,
                type=WarningType.SCRIPT,
                message=f'will run script "{script}": "{value}"',
                cache_key=f"{script}: {value}",
            )
        )
        logger.debug("%s will run script %s: %s", dep.identity, script, value)
    return problems


def check_license(dep: Dependency, config: PolicyConfig, record: RegistryCacheRecord) -> List[PolicyWarning]:
    # Only check licenses if a whitelist is configured
    if not config.licenses:
        return []

    license_value = normalize_license(record.versions[dep.version].get("license"))
    if license_value is None:
        return [
            PolicyWarning(
                package=dep.identity,
                type=WarningType.LICENSE,
                message="has no license field in package.json",
                cache_key="no license",
            )
        ]
    if license_value not in config.licenses:
        return [
            PolicyWarning(
                package=dep.identity,
                type=WarningType.LICENSE,
                message=f"has license {license_value} which is not in the whitelist",
                cache_key=license_value,
            )
        ]
    return []


def check_package_age(
    dep: Dependency, config: PolicyConfig, record: RegistryCacheRecord, now: datetime
) -> List[PolicyWarning]:
    """Warn when the installed version was published less than min_package_age ago.

    Raises:
        RegistryDataError: When the publish time cannot be parsed.
    """
    if config.min_package_age.total_seconds() <= 0:
        return []

    raw_time = record.time[dep.version]
    try:
        published = parse_publish_time(raw_time)
    except ValueError as e:
        raise RegistryDataError(f"{dep.identity} has an invalid publish time {raw_time!r}") from e

    if published <= now - config.min_package_age:
        return []

    return [
        PolicyWarning(
            package=dep.identity,
            type=WarningType.MIN_PACKAGE_AGE,
            message=(
                f"is violating the package minAge policy. "
                f"Last published {format_age(published, now)} ({raw_time})"
            ),
            cache_key=dep.version,
        )
    ]


def check_weekly_downloads(package_name: str, config: PolicyConfig, downloads: int) -> List[PolicyWarning]:
    # An unknown count can't be judged too low
    if downloads == Constants.UNKNOWN_DOWNLOADS or config.min_weekly_downloads <= 0:
        return []
    if downloads >= config.min_weekly_downloads:
        return []

    logger.debug(
        "%s had %d downloads last week, which is less than the minWeeklyDownloads threshold of %d",
        package_name,
        downloads,
        config.min_weekly_downloads,
    )
    return [
        PolicyWarning(
            package=package_name,
            type=WarningType.MIN_WEEKLY_DOWNLOADS,
            message=f"had {downloads} downloads last week",
            cache_key=f"minWeeklyDownloads={config.min_weekly_downloads}",
        )
    ]


def evaluate_dependency(
    dep: Dependency,
    config: PolicyConfig,
    record: Optional[RegistryCacheRecord],
    downloads: int = Constants.UNKNOWN_DOWNLOADS,
    now: Optional[datetime] = None,
) -> List[PolicyWarning]:
    """Evaluate every policy rule for one dependency.

    Args:
        dep: The installed dependency.
        config: Policy thresholds and lists.
        record: Registry metadata covering ``dep.version``; None when it could
            not be fetched, which skips the registry-based rules.
        downloads: Weekly downloads to judge for ``dep.name``, or -1 to skip.
        now: Evaluation time; defaults to the current UTC time.

    A malformed publish time is logged and only drops the age check.
    """
    now = now or datetime.now(timezone.utc)
    problems: List[PolicyWarning] = []

    if record is not None:
        try:
            problems.extend(check_package_age(dep, config, record, now))
        except RegistryDataError as e:
            logger.error("Failed to check the age of %s: %s", dep.identity, e)
        problems.extend(check_scripts(dep, record))
        problems.extend(check_license(dep, config, record))

    problems.extend(check_weekly_downloads(dep.name, config, downloads))
    return problems
