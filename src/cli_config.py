"""Policy configuration loading.

A project is configured by the first file found among:

1. the ``--config`` path, when given (it must exist)
2. ``<project>/package-policy.yml`` or ``.yaml``
3. ``~/.package-policy.yml`` or ``.yaml``

Values are merged over the defaults and turned into an immutable
``PolicyConfig``. Invalid values raise ``ConfigError``.
"""

from __future__ import annotations

import logging
import os
from datetime import timedelta
from typing import Any, Dict, List, Mapping, Optional

import yaml
from pytimeparse import parse as parse_seconds

from analysis.models import PolicyConfig
from constants import Constants, DefaultPolicy
from errors import ConfigError

logger = logging.getLogger(__name__)

# Older than this and "now - age" leaves the datetime range
_MAX_PACKAGE_AGE = timedelta(days=365 * 1000)


def default_config() -> Dict[str, Any]:
    """Return the default config as written by ``--init``."""
    return {
        "minPackageAge": DefaultPolicy.MIN_PACKAGE_AGE.value,
        "minWeeklyDownloads": DefaultPolicy.MIN_WEEKLY_DOWNLOADS.value,
        "checkNodeVersion": DefaultPolicy.CHECK_NODE_VERSION.value,
        "licenses": [],
        "blacklist": {},
        "ignore": {},
    }


def candidate_config_files(directory: str) -> List[str]:
    home = os.path.expanduser("~")
    return [os.path.join(directory, name) for name in Constants.CONFIG_FILES] + [
        os.path.join(home, name) for name in Constants.HOME_CONFIG_FILES
    ]


def find_config_file(directory: str, explicit_path: Optional[str] = None) -> Optional[str]:
    """Return the config file that applies to ``directory``, if any.

    Raises:
        ConfigError: When ``explicit_path`` is given but does not exist.
    """
    if explicit_path:
        if not os.path.isfile(explicit_path):
            raise ConfigError(f"Config file {explicit_path} does not exist")
        return explicit_path
    for path in candidate_config_files(directory):
        if os.path.isfile(path):
            return path
    return None


def parse_duration(value: Any) -> timedelta:
    """Parse a duration such as ``2d`` or ``36h``.

    Plain numbers are milliseconds.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ConfigError(f"Invalid duration {value!r}")
    try:
        if isinstance(value, (int, float)):
            return timedelta(milliseconds=value)
        text = value.strip()
        try:
            return timedelta(milliseconds=float(text))
        except ValueError:
            pass
        seconds = parse_seconds(text.lower())
        if seconds is None:
            raise ConfigError(f"Invalid duration {value!r}")
        return timedelta(seconds=seconds)
    except OverflowError as e:
        raise ConfigError(f"Duration {value!r} is out of range") from e


def _string_map(key: str, value: Any) -> Mapping[str, str]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"{key} must be a mapping of package name to version range")
    result = {}
    for name, version_range in value.items():
        if not isinstance(version_range, (str, int, float)) or isinstance(version_range, bool):
            raise ConfigError(f"{key}.{name} must be a version range string")
        result[str(name)] = str(version_range)
    return result


def build_policy_config(raw: Mapping[str, Any]) -> PolicyConfig:
    """Merge raw config values over the defaults and validate them."""
    merged = default_config()
    merged.update({k: v for k, v in raw.items() if v is not None})

    min_weekly_downloads = merged["minWeeklyDownloads"]
    if isinstance(min_weekly_downloads, bool) or not isinstance(min_weekly_downloads, (int, float)):
        raise ConfigError("minWeeklyDownloads must be a number")

    check_node_version = merged["checkNodeVersion"]
    if not isinstance(check_node_version, bool):
        raise ConfigError("checkNodeVersion must be true or false")

    licenses = merged["licenses"] or []
    if not isinstance(licenses, list) or not all(isinstance(x, str) for x in licenses):
        raise ConfigError("licenses must be a list of license identifiers")

    min_package_age = parse_duration(merged["minPackageAge"])
    if abs(min_package_age) > _MAX_PACKAGE_AGE:
        raise ConfigError("minPackageAge must be less than 1000 years")

    return PolicyConfig(
        min_package_age=min_package_age,
        min_weekly_downloads=int(min_weekly_downloads),
        check_node_version=check_node_version,
        licenses=frozenset(licenses),
        blacklist=_string_map("blacklist", merged["blacklist"]),
        ignore=_string_map("ignore", merged["ignore"]),
    )


def load_policy_config(directory: str, explicit_path: Optional[str] = None) -> PolicyConfig:
    """Load the policy config that applies to a project directory.

    Raises:
        ConfigError: When the file cannot be read or holds invalid values.
    """
    path = find_config_file(directory, explicit_path)
    if path is None:
        logger.debug("No config file for %s, using defaults", directory)
        return build_policy_config({})

    try:
        with open(path, "r", encoding="utf-8") as fh:
            raw = yaml.safe_load(fh) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to read config file {path}: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    logger.debug("Using config file %s", path)
    try:
        return build_policy_config(raw)
    except ConfigError as e:
        raise ConfigError(f"{path}: {e}") from e


def write_default_config(directory: str) -> Optional[str]:
    """Write a default package-policy.yml; an existing file is left untouched.

    Returns:
        The created file path, or None when one already existed.
    """
    path = os.path.join(directory, Constants.CONFIG_FILES[0])
    if os.path.exists(path):
        return None
    with open(path, "w", encoding="utf-8") as fh:
        yaml.safe_dump(default_config(), fh, sort_keys=False, default_flow_style=False)
    return path
