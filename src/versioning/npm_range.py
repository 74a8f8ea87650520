"""npm semver range matching built on semantic_version.

``satisfies`` mirrors node-semver's ``satisfies(version, range,
{includePrerelease})`` and ``intersects`` answers whether two ranges (or a
version and a range) share at least one version.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, List, Optional

import semantic_version
from semantic_version.base import AllOf, AnyOf, Range

logger = logging.getLogger(__name__)

# node-semver tolerates whitespace between an operator and its version
_OPERATOR_SPACE = re.compile(r"(<=|>=|<|>|=)\s+")


def _normalize_spec(spec_str: str) -> str:
    """Normalize npm range syntax into something NpmSpec parses."""
    s = _OPERATOR_SPACE.sub(r"\1", spec_str.strip())
    return s or "*"


def parse_range(spec_str: str) -> Optional[semantic_version.NpmSpec]:
    """Parse an npm range, returning None when it is not valid npm syntax."""
    try:
        return semantic_version.NpmSpec(_normalize_spec(spec_str))
    except ValueError:
        logger.debug("Invalid semver range %r", spec_str)
        return None


def parse_version(version: str) -> Optional[semantic_version.Version]:
    """Parse a version, tolerating a leading ``v`` or ``=``."""
    try:
        return semantic_version.Version(version.strip().lstrip("=v"))
    except ValueError:
        logger.debug("Invalid semver version %r", version)
        return None


def _with_prereleases(clause):
    """Rebuild a parsed clause so pre-release versions compare like releases."""
    if isinstance(clause, Range):
        return Range(
            clause.operator,
            clause.target,
            prerelease_policy=Range.PRERELEASE_ALWAYS,
            build_policy=clause.build_policy,
        )
    if isinstance(clause, (AllOf, AnyOf)):
        return type(clause)(*[_with_prereleases(c) for c in clause.clauses])
    return clause


def _targets(clause) -> Iterable[semantic_version.Version]:
    if isinstance(clause, Range):
        yield clause.target
    elif isinstance(clause, (AllOf, AnyOf)):
        for child in clause.clauses:
            yield from _targets(child)


def satisfies(version: str, spec_str: str, include_prerelease: bool = False) -> bool:
    """Return True when version falls inside the npm range.

    Invalid versions or ranges never match, like node-semver.
    """
    ver = parse_version(version)
    spec = parse_range(spec_str)
    if ver is None or spec is None:
        return False
    clause = _with_prereleases(spec.clause) if include_prerelease else spec.clause
    return bool(clause.match(ver))


def intersects(left: str, right: str) -> bool:
    """Return True when two npm ranges (or versions) have a common member.

    Every range is a union of intervals whose bounds are the comparator
    targets, so probing each bound, the version just above it and the lowest
    version is enough to find a shared member when one exists.
    """
    left_spec = parse_range(left)
    right_spec = parse_range(right)
    if left_spec is None or right_spec is None:
        return False

    candidates: List[semantic_version.Version] = [semantic_version.Version("0.0.0")]
    for target in list(_targets(left_spec.clause)) + list(_targets(right_spec.clause)):
        candidates.append(target)
        candidates.append(target.next_patch())

    return any(left_spec.clause.match(c) and right_spec.clause.match(c) for c in candidates)
