"""Console summary of unapproved warnings, grouped by kind."""

from __future__ import annotations

from typing import List, Sequence

import click

from analysis.models import PolicyConfig, PolicyWarning
from constants import WarningType

# (kind, failure headline, success line)
_SECTIONS = (
    (
        WarningType.SCRIPT,
        "{count} packages with installation scripts that needs to be approved",
        "All checked package scripts allowed",
    ),
    (
        WarningType.LICENSE,
        "{count} packages with a bad license or missing license",
        "All checked packages have a valid license",
    ),
    (
        WarningType.MIN_PACKAGE_AGE,
        "{count} packages violating the minPackageAge policy",
        "All checked packages are old enough",
    ),
    (
        WarningType.MIN_WEEKLY_DOWNLOADS,
        "{count} packages with very low usage:",
        "All checked packages have a decent amount of downloads",
    ),
)


def _by_type(warnings: Sequence[PolicyWarning], kind: WarningType) -> List[PolicyWarning]:
    return [w for w in warnings if w.type is kind]


def print_summary(unapproved: Sequence[PolicyWarning], config: PolicyConfig) -> None:
    """Print one section per warning kind.

    Clean kinds print a success line, except licenses when no whitelist is
    configured.
    """
    for kind, failure, success in _SECTIONS:
        problems = _by_type(unapproved, kind)
        if problems:
            click.secho("✘ " + failure.format(count=len(problems)), fg="red")
            for problem in problems:
                click.echo("  " + click.style(problem.package, bold=True) + " " + problem.message)
        elif kind is not WarningType.LICENSE or config.licenses:
            click.secho("✔ " + success, fg="green")


def print_totals(total: int, unapproved: int) -> None:
    click.echo(f"\n{total} package warnings, {unapproved} warnings to approve\n")


def print_checked(count: int, duration_ms: int) -> None:
    click.echo(f"Checked {count} dependencies in {duration_ms / 1000:.1f} s")
