"""Lockfile parsing for the npm ecosystem.

Only package-lock.json (lockfileVersion 2 and 3, the flat ``packages`` map)
is supported. Other lockfile formats are detected so they fail fast with a
clear error instead of being half-parsed.
"""

from __future__ import annotations

import json
import logging
import os
import posixpath
from typing import Any, Dict, List

from analysis.models import Dependency, PolicyConfig
from constants import Constants
from errors import BlockedPackageError, LockfileNotFoundError, UnsupportedLockfileError
from versioning.npm_range import satisfies

logger = logging.getLogger(__name__)

_NODE_MODULES = "node_modules/"


def package_name_from_path(install_path: str) -> str:
    """Infer a package name from its lockfile installation path.

    Lockfiles key packages by install path; the name is whatever follows the
    last ``node_modules/`` segment, which keeps scoped names intact.

    >>> package_name_from_path("node_modules/@babel/core/node_modules/debug")
    'debug'
    """
    i = install_path.rfind(_NODE_MODULES)
    if i >= 0:
        return install_path[i + len(_NODE_MODULES):]

    i = install_path.rfind("@")
    if i > 0:
        return install_path[i:]

    return posixpath.basename(install_path)


def find_lockfile(dir_path: str) -> str:
    """Return the package-lock.json path for a project directory.

    Raises:
        UnsupportedLockfileError: When only a yarn, pnpm or bun lockfile exists.
        LockfileNotFoundError: When no lockfile exists at all.
    """
    package_lock = os.path.join(dir_path, Constants.PACKAGE_LOCK_FILE)
    if os.path.isfile(package_lock):
        return package_lock

    for other in (Constants.YARN_LOCK_FILE, Constants.PNPM_LOCK_FILE, *Constants.BUN_LOCK_FILES):
        if os.path.isfile(os.path.join(dir_path, other)):
            raise UnsupportedLockfileError(f"{other} is not supported, only {Constants.PACKAGE_LOCK_FILE}")

    raise LockfileNotFoundError(f"No lockfile found in {dir_path}")


def parse_package_lock(lockfile_path: str) -> Dict[str, Dict[str, Any]]:
    """Load the ``packages`` map of a package-lock.json.

    Raises:
        UnsupportedLockfileError: When the file is not JSON or has no
            ``packages`` map (lockfileVersion 1).
    """
    try:
        with open(lockfile_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise UnsupportedLockfileError(f"{lockfile_path} is not valid JSON: {e}") from e
    except OSError as e:
        raise LockfileNotFoundError(f"Cannot read {lockfile_path}: {e}") from e

    packages = data.get("packages") if isinstance(data, dict) else None
    if not isinstance(packages, dict):
        version = data.get("lockfileVersion") if isinstance(data, dict) else None
        raise UnsupportedLockfileError(
            f"{lockfile_path} has no packages map (lockfileVersion {version} is not supported)"
        )
    return packages


def extract_dependencies(packages: Dict[str, Dict[str, Any]], config: PolicyConfig) -> List[Dependency]:
    """Turn a ``packages`` map into a sorted, de-duplicated dependency list.

    The block list is enforced here, before any network I/O, and takes
    precedence over the ignore list.

    Raises:
        BlockedPackageError: When an entry matches ``config.blacklist``.
    """
    deps: Dict[str, Dependency] = {}

    for install_path, spec in packages.items():
        if install_path == "":
            # Root project
            continue
        if not isinstance(spec, dict):
            continue
        if spec.get("link") is True:
            continue

        version = spec.get("version")
        if not isinstance(version, str) or not version:
            logger.debug("Skipping %s: no installed version", install_path)
            continue

        # An explicit name wins: node_modules/string-width-cjs may hold string-width
        name = spec.get("name") or package_name_from_path(install_path)

        name_with_version = f"{name}@{version}"
        if name_with_version in deps:
            # The same exact package can be installed at several paths
            continue

        blocked_range = config.blacklist.get(name)
        if blocked_range and satisfies(version, blocked_range, include_prerelease=True):
            raise BlockedPackageError(name, version, blocked_range)

        ignore_range = config.ignore.get(name)
        if ignore_range and satisfies(version, ignore_range, include_prerelease=True):
            logger.warning("Ignoring %s (%s)", name_with_version, ignore_range)
            continue

        license_value = spec.get("license")
        deps[name_with_version] = Dependency(
            name=name,
            path=install_path,
            version=version,
            license=license_value if isinstance(license_value, str) else None,
        )

    return sorted(deps.values(), key=lambda d: (d.name, d.version))


def read_installed_dependencies(dir_path: str, config: PolicyConfig) -> List[Dependency]:
    """Read every installed dependency of the project in ``dir_path``."""
    lockfile_path = find_lockfile(dir_path)
    logger.debug("Using lockfile %s", lockfile_path)
    return extract_dependencies(parse_package_lock(lockfile_path), config)
