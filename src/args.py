"""Argument parsing functionality for package-policy."""

import argparse
import os

from constants import Constants


def _ci_default() -> bool:
    value = os.environ.get("CI", "")
    return value.strip().lower() not in ("", "0", "false", "no")


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    parser = argparse.ArgumentParser(
        prog="package-policy",
        description=(
            "package-policy - Gate npm dependencies on install scripts, licenses, "
            "package age and popularity"
        ),
        add_help=True,
    )

    parser.add_argument("dirs",
                        metavar="DIR",
                        help="Project directory to check",
                        nargs="+",
                        type=str)
    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="Path to config file (default: package-policy.yml in the project, then ~/.package-policy.yml)",
                        action="store",
                        type=str)
    parser.add_argument("--cache-dir",
                        dest="CACHE_DIR",
                        help="Path to cache directory",
                        action="store",
                        type=str,
                        default=Constants.DEFAULT_CACHE_DIR)
    parser.add_argument("--cache",
                        dest="CACHE",
                        help="Use the registry and download caches",
                        action=argparse.BooleanOptionalAction,
                        default=True)
    parser.add_argument("--check-node-version",
                        dest="CHECK_NODE_VERSION",
                        help="Check Node.js version against Node.js security-wg vulnerability list",
                        action=argparse.BooleanOptionalAction,
                        default=True)
    parser.add_argument("--ci",
                        dest="CI",
                        help=(
                            "CI mode will fail if the package policy is failing instead of "
                            "prompting for approval and saving a lockfile"
                        ),
                        action=argparse.BooleanOptionalAction,
                        default=_ci_default())
    parser.add_argument("--init",
                        dest="INIT",
                        help="Create a new package-policy.yml file",
                        action="store_true")
    parser.add_argument("--registry-url",
                        dest="REGISTRY_URL",
                        help=argparse.SUPPRESS,
                        action="store",
                        type=str,
                        default=Constants.REGISTRY_URL_NPM)
    parser.add_argument("--downloads-url",
                        dest="DOWNLOADS_URL",
                        help=argparse.SUPPRESS,
                        action="store",
                        type=str,
                        default=Constants.REGISTRY_URL_NPM_DOWNLOADS)
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str.upper,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'])
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)

    return parser.parse_args(argv)
