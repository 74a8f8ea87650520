"""Node.js runtime vulnerability check against the security-wg advisory index.

The index is downloaded at most once per process and held by an explicit
``NodeAdvisoryCache`` instance that callers pass around.
"""

from __future__ import annotations

import logging
import subprocess
from typing import Any, Callable, Dict, List, Optional

from common.http_client import get_json
from common.schema_validate import NODE_ADVISORIES_SCHEMA, validate
from constants import Constants
from versioning.npm_range import intersects

logger = logging.getLogger(__name__)

Advisories = Dict[str, Dict[str, Any]]


class NodeAdvisoryCache:
    """Lazily loaded Node.js core advisories."""

    def __init__(
        self,
        url: str = Constants.NODE_ADVISORIES_URL,
        fetch: Callable[[str], Any] = get_json,
    ):
        self._url = url
        self._fetch = fetch
        self._advisories: Optional[Advisories] = None

    def get(self) -> Advisories:
        """Return the advisory index, downloading it on first use.

        Raises:
            RegistryHttpError: When the index cannot be downloaded.
            SchemaError: When the index is malformed.
        """
        if self._advisories is None:
            data = self._fetch(self._url)
            validate(NODE_ADVISORIES_SCHEMA, data, what="Node.js advisory index")
            self._advisories = data
            logger.debug("Loaded %d Node.js advisories", len(data))
        return self._advisories


def format_advisory(advisory: Dict[str, Any]) -> str:
    display = ", ".join(advisory.get("cve") or [])
    display += f", affects Node.js {advisory['vulnerable']}, patched in {advisory.get('patched', 'n/a')}"
    if advisory.get("overview"):
        display += f"\n{advisory['overview']}\n"
    return display


def check_node_version(version_or_range: str, advisories: Advisories) -> List[str]:
    """List advisories that affect a Node.js version or version range.

    An advisory applies when its ``vulnerable`` range intersects the given
    range and its ``patched`` range does not.
    """
    problems = []
    for advisory in advisories.values():
        if not intersects(version_or_range, advisory["vulnerable"]):
            continue
        patched = advisory.get("patched")
        if patched and intersects(version_or_range, patched):
            continue
        problems.append(format_advisory(advisory))
    return problems


def installed_node_version() -> Optional[str]:
    """Return the version of ``node`` on PATH, or None when it is not installed."""
    try:
        result = subprocess.run(
            ["node", "--version"],
            capture_output=True,
            text=True,
            timeout=10,
            check=False,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        logger.debug("Failed to run node --version: %s", exc)
        return None
    if result.returncode != 0 or not result.stdout.strip():
        return None
    return result.stdout.strip().lstrip("v")
