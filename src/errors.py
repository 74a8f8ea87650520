"""Exception hierarchy for package-policy.

Fatal errors propagate to the CLI entry point, which maps them to exit codes.
Per-package errors (registry data, HTTP) are caught by the batch runner.
"""

from __future__ import annotations

from constants import ExitCodes


class PackagePolicyError(Exception):
    """Base class for all package-policy errors."""

    exit_code = ExitCodes.FILE_ERROR


class LockfileNotFoundError(PackagePolicyError):
    """Raised when a project directory has no lockfile at all."""


class UnsupportedLockfileError(PackagePolicyError):
    """Raised for lockfile formats other than npm's package-lock.json."""


class BlockedPackageError(PackagePolicyError):
    """Raised when an installed package matches the configured block list."""

    exit_code = ExitCodes.BLOCKED_PACKAGE

    def __init__(self, name: str, version: str, version_range: str):
        super().__init__(f"Blacklisted version {name}@{version} ({version_range})")
        self.name = name
        self.version = version
        self.version_range = version_range


class ConfigError(PackagePolicyError):
    """Raised when a policy config file cannot be loaded or is invalid."""

    exit_code = ExitCodes.CONFIG_ERROR


class RegistryDataError(PackagePolicyError):
    """Raised when registry metadata lacks the fields needed for evaluation."""


class RegistryHttpError(PackagePolicyError):
    """Raised when a registry request fails or returns a non-2xx status."""

    def __init__(self, url: str, message: str, status: int | None = None):
        super().__init__(f"Failed to fetch {url}: {message}")
        self.url = url
        self.status = status
