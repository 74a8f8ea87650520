"""package-policy - npm dependency supply-chain policy gate

Checks every installed dependency of one or more npm projects against a
policy (install scripts, license whitelist, package age, weekly downloads,
block and ignore lists) and keeps an approval record so accepted warnings do
not come back.

    Returns:
        int: Exit code, see constants.ExitCodes
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import sys
from typing import List, Optional, Sequence

import click

from analysis.approvals import (
    ApprovalOutcome,
    InteractiveApprover,
    UnattendedApprover,
    decide,
    load_approval_record,
    reconcile,
    save_approval_record,
)
from analysis.models import Dependency, PolicyConfig, PolicyWarning
from analysis.policy_runner import PolicyRunner
from args import parse_args
from cli_config import load_policy_config, write_default_config
from common.http_client import AsyncHttpClient
from common.logging_utils import Timer, configure_logging, extra_context, is_debug_enabled
from common.schema_validate import SchemaError
from constants import Constants, ExitCodes
from errors import PackagePolicyError, RegistryHttpError
from registry.nodejs import NodeAdvisoryCache, check_node_version, installed_node_version
from registry.npm.client import NpmRegistryClient
from registry.npm.downloads import PopularityCache
from registry.npm.lockfile_parser import read_installed_dependencies
from registry.npm.metadata_cache import RegistryMetadataCache
from summary import print_checked, print_summary, print_totals

logger = logging.getLogger(__name__)


async def run_policy(
    deps: Sequence[Dependency],
    config: PolicyConfig,
    cache_dir: str,
    use_cache: bool = True,
    registry_url: str = Constants.REGISTRY_URL_NPM,
    downloads_url: str = Constants.REGISTRY_URL_NPM_DOWNLOADS,
) -> List[PolicyWarning]:
    """Evaluate dependencies against the policy over one shared HTTP session."""
    async with AsyncHttpClient() as http:
        client = NpmRegistryClient(http, registry_url, downloads_url)
        metadata_cache = RegistryMetadataCache(client, cache_dir, enabled=use_cache)
        popularity_cache = PopularityCache(client, cache_dir, enabled=use_cache)
        popularity_cache.load()

        runner = PolicyRunner(config, metadata_cache, popularity_cache)
        warnings = await runner.run(deps)

        popularity_cache.save()
    return warnings


def load_advisories(advisory_cache: NodeAdvisoryCache) -> Optional[dict]:
    try:
        return advisory_cache.get()
    except (RegistryHttpError, SchemaError) as e:
        logger.error("Failed to load Node.js advisories, skipping Node.js checks: %s", e)
        return None


def check_installed_node(advisory_cache: NodeAdvisoryCache) -> bool:
    """Return False when the installed Node.js runtime has known vulnerabilities."""
    version = installed_node_version()
    if version is None:
        logger.debug("node is not installed, skipping runtime check")
        return True
    advisories = load_advisories(advisory_cache)
    if advisories is None:
        return True

    problems = check_node_version(version, advisories)
    if not problems:
        return True
    click.secho(f"Node.js vulnerabilities found in the current node version {version}", fg="red")
    for problem in problems:
        click.echo(problem)
    return False


def check_engines(dir_path: str, advisory_cache: NodeAdvisoryCache) -> None:
    """Report advisories that affect the project's ``engines.node`` range."""
    package_json = os.path.join(dir_path, Constants.PACKAGE_JSON_FILE)
    try:
        with open(package_json, "r", encoding="utf-8") as f:
            manifest = json.load(f)
    except FileNotFoundError:
        logger.debug("No %s in %s, skipping engines check", Constants.PACKAGE_JSON_FILE, dir_path)
        return
    except (OSError, ValueError) as e:
        logger.warning("Failed to read %s: %s", package_json, e)
        return

    engines = manifest.get("engines") if isinstance(manifest, dict) else None
    node_range = engines.get("node") if isinstance(engines, dict) else None
    if not isinstance(node_range, str) or not node_range:
        return

    advisories = load_advisories(advisory_cache)
    if advisories is None:
        return
    problems = check_node_version(node_range, advisories)
    if problems:
        logger.error("Node.js vulnerabilities found in package.json")
        for problem in problems:
            logger.error(problem)


def process_project(dir_path: str, args, advisory_cache: NodeAdvisoryCache) -> ExitCodes:
    """Check one project directory and handle approval of new warnings.

    Raises:
        PackagePolicyError: On fatal errors (config, lockfile, blocked package).
    """
    config = load_policy_config(dir_path, args.CONFIG)

    # Block list hits abort before anything is fetched
    deps = read_installed_dependencies(dir_path, config)

    if args.CHECK_NODE_VERSION and config.check_node_version:
        check_engines(dir_path, advisory_cache)

    approval_path = os.path.join(dir_path, Constants.APPROVAL_FILE)
    previous = load_approval_record(approval_path)

    click.echo(f"Processing {len(deps)} dependencies in {dir_path}")

    with Timer() as timer:
        warnings = asyncio.run(
            run_policy(
                deps,
                config,
                os.path.expanduser(args.CACHE_DIR),
                use_cache=args.CACHE,
                registry_url=args.REGISTRY_URL,
                downloads_url=args.DOWNLOADS_URL,
            )
        )
    print_checked(len(deps), timer.duration_ms())

    reconciliation = reconcile(warnings, previous)
    print_summary(reconciliation.unapproved, config)

    if reconciliation.unapproved:
        print_totals(len(reconciliation.total), len(reconciliation.unapproved))

    approver = UnattendedApprover() if args.CI else InteractiveApprover()
    outcome = decide(reconciliation, approver)

    if is_debug_enabled(logger):
        logger.debug(
            "Approval decided",
            extra=extra_context(
                event="decision",
                component="cli",
                action="approve",
                outcome=outcome.value,
                count=len(reconciliation.unapproved),
            ),
        )

    if outcome is ApprovalOutcome.NOTHING_TO_APPROVE:
        return ExitCodes.SUCCESS
    if outcome is ApprovalOutcome.REJECTED:
        return ExitCodes.EXIT_WARNINGS

    try:
        save_approval_record(approval_path, reconciliation.record)
    except OSError as e:
        logger.error("Failed to save %s: %s", approval_path, e)
        return ExitCodes.FILE_ERROR
    click.echo(f"Saved {approval_path}")
    return ExitCodes.SUCCESS


def main(argv=None):
    """Main function of the program."""
    args = parse_args(argv)
    configure_logging(args.LOG_LEVEL, args.LOG_FILE)

    advisory_cache = NodeAdvisoryCache()
    dirs = [os.path.abspath(d) for d in args.dirs]

    if args.INIT:
        for dir_path in dirs:
            try:
                created = write_default_config(dir_path)
            except OSError as e:
                logger.error("Failed to create config in %s: %s", dir_path, e)
                sys.exit(ExitCodes.FILE_ERROR.value)
            if created:
                click.echo(f"Created {created}")
        sys.exit(ExitCodes.SUCCESS.value)

    # Runtime check, once per invocation
    if args.CHECK_NODE_VERSION and not check_installed_node(advisory_cache):
        sys.exit(ExitCodes.NODE_VULNERABLE.value)

    for dir_path in dirs:
        try:
            code = process_project(dir_path, args, advisory_cache)
        except PackagePolicyError as e:
            logger.error("%s", e)
            sys.exit(e.exit_code.value)
        if code is not ExitCodes.SUCCESS:
            sys.exit(code.value)

    sys.exit(ExitCodes.SUCCESS.value)


if __name__ == "__main__":
    main()
