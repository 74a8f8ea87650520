"""Constants used in the project."""

from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    NODE_VULNERABLE = 2
    EXIT_WARNINGS = 3
    BLOCKED_PACKAGE = 4
    CONFIG_ERROR = 5


class WarningType(Enum):
    """Kinds of policy warnings.

    Args:
        Enum (string): Value persisted in the approval record ``type`` field.
    """

    SCRIPT = "script"
    LICENSE = "license"
    MIN_PACKAGE_AGE = "minPackageAge"
    MIN_WEEKLY_DOWNLOADS = "minWeeklyDownloads"


class DefaultPolicy(Enum):
    """Default policy values for the program.

    Args:
        Enum: Default values used when no config file overrides them.
    """

    MIN_PACKAGE_AGE = "2d"
    MIN_WEEKLY_DOWNLOADS = 100
    CHECK_NODE_VERSION = True


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    REGISTRY_URL_NPM = "https://registry.npmjs.org/"
    REGISTRY_URL_NPM_DOWNLOADS = "https://api.npmjs.org/downloads/point/last-week/"
    NODE_ADVISORIES_URL = (
        "https://raw.githubusercontent.com/nodejs/security-wg/"
        "refs/heads/main/vuln/core/index.json"
    )
    USER_AGENT = "package-policy"

    PACKAGE_JSON_FILE = "package.json"
    PACKAGE_LOCK_FILE = "package-lock.json"
    YARN_LOCK_FILE = "yarn.lock"
    PNPM_LOCK_FILE = "pnpm-lock.yaml"
    BUN_LOCK_FILES = ("bun.lock", "bun.lockb")
    APPROVAL_FILE = "package-policy.lock"
    CONFIG_FILES = ("package-policy.yml", "package-policy.yaml")
    HOME_CONFIG_FILES = (".package-policy.yml", ".package-policy.yaml")
    DEFAULT_CACHE_DIR = "~/.package-policy"
    DOWNLOADS_CACHE_FILE = "package-downloads.json"

    # package.json scripts executed during installation
    INSTALL_SCRIPTS = ("prepare", "preinstall", "install", "postinstall")

    REGISTRY_CACHE_FORMAT_VERSION = 1
    APPROVAL_RECORD_VERSION = 1
    UNKNOWN_DOWNLOADS = -1
    BATCH_SIZE = 32

    LOG_FORMAT = "[%(levelname)s] %(message)s"
    LOG_LEVEL_ENV = "PACKAGE_POLICY_LOG_LEVEL"
    REQUEST_TIMEOUT = 30  # Timeout in seconds for all HTTP requests
    HTTP_RETRY_MAX = 3
    HTTP_RETRY_BASE_DELAY_SEC = 0.3
