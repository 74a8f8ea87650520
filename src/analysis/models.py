"""Data models shared by the extractor, evaluator and approval reconciler."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple

from constants import WarningType

# (package identity, warning type value, cache key)
WarningIdentity = Tuple[str, str, str]


@dataclass(frozen=True)
class Dependency:
    """One installed package resolved from the lockfile."""
    name: str
    path: str
    version: str
    license: Optional[str] = None

    @property
    def identity(self) -> str:
        return f"{self.name}@{self.version}"


@dataclass(frozen=True)
class PolicyConfig:
    """Immutable policy thresholds and lists."""
    min_package_age: timedelta = timedelta(days=2)
    min_weekly_downloads: int = 100
    check_node_version: bool = True
    licenses: FrozenSet[str] = frozenset()
    blacklist: Mapping[str, str] = field(default_factory=dict)
    ignore: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class RegistryCacheRecord:
    """Reduced registry metadata for one package name.

    ``time`` maps version to ISO-8601 publish time; ``versions`` maps version
    to ``{"license": ..., "scripts": {...}}``.
    """
    time: Dict[str, Any]
    versions: Dict[str, Dict[str, Any]]

    def has_version(self, version: str) -> bool:
        return version in self.versions and isinstance(self.time.get(version), str)

    def to_dict(self, format_version: int) -> Dict[str, Any]:
        return {
            "formatVersion": format_version,
            "time": self.time,
            "versions": self.versions,
        }


@dataclass(frozen=True)
class PolicyWarning:
    """A single detected policy violation."""
    package: str
    type: WarningType
    message: str
    cache_key: str

    @property
    def identity(self) -> WarningIdentity:
        return (self.package, self.type.value, self.cache_key)


@dataclass(frozen=True)
class ApprovalEntry:
    """A previously accepted warning identity, as persisted."""
    package: str
    type: str
    cache_key: str

    @property
    def identity(self) -> WarningIdentity:
        return (self.package, self.type, self.cache_key)

    @classmethod
    def from_warning(cls, warning: PolicyWarning) -> "ApprovalEntry":
        return cls(warning.package, warning.type.value, warning.cache_key)

    def to_dict(self) -> Dict[str, str]:
        return {"package": self.package, "type": self.type, "cacheKey": self.cache_key}
