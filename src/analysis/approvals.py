"""Approval record reconciliation.

The approval record (``package-policy.lock``) lists the identities of warnings
a human has accepted. Each run rebuilds it from the current warnings only, so
identities that no longer occur drop out instead of accumulating.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, List, Sequence, Set

import click
import yaml

from analysis.models import ApprovalEntry, PolicyWarning, WarningIdentity
from constants import Constants

logger = logging.getLogger(__name__)


class ApprovalDecision(Enum):
    """Answer from an approver."""
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class ApprovalOutcome(Enum):
    """Result of a reconciliation decision."""
    NOTHING_TO_APPROVE = "nothing_to_approve"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


@dataclass(frozen=True)
class Reconciliation:
    """Current warnings classified against the previous approval record.

    Attributes:
        total: Every warning found in this run.
        unapproved: Warnings whose identity is not in the previous record.
        record: The next approval record, covering exactly ``total``.
    """
    total: List[PolicyWarning]
    unapproved: List[PolicyWarning]
    record: List[ApprovalEntry]


def _parse_entry(raw: Any) -> ApprovalEntry:
    if not isinstance(raw, dict):
        raise ValueError(f"entry is not a mapping: {raw!r}")
    values = [raw.get("package"), raw.get("type"), raw.get("cacheKey")]
    if not all(isinstance(v, str) for v in values):
        raise ValueError(f"entry needs string package, type and cacheKey: {raw!r}")
    return ApprovalEntry(*values)


def load_approval_record(path: str) -> List[ApprovalEntry]:
    """Read an approval record, returning an empty one when it is unusable.

    A missing file, unreadable YAML, a missing or different ``version`` and
    malformed entries all mean the record is rebuilt from scratch.
    """
    if not os.path.isfile(path):
        logger.debug("No approval record at %s", path)
        return []
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Failed to read approval record %s: %s", path, e)
        return []

    if not isinstance(data, dict) or data.get("version") != Constants.APPROVAL_RECORD_VERSION:
        logger.warning("Ignoring approval record %s with unsupported version", path)
        return []

    packages = data.get("packages") or []
    if not isinstance(packages, list):
        logger.warning("Ignoring approval record %s: packages is not a list", path)
        return []
    try:
        return [_parse_entry(raw) for raw in packages]
    except ValueError as e:
        logger.warning("Ignoring approval record %s: %s", path, e)
        return []


def save_approval_record(path: str, record: Sequence[ApprovalEntry]) -> None:
    """Write the approval record as YAML.

    Raises:
        OSError: When the file cannot be written.
    """
    document = {
        "version": Constants.APPROVAL_RECORD_VERSION,
        "packages": [entry.to_dict() for entry in record],
    }
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(document, f, sort_keys=False, default_flow_style=False)
    logger.debug("Wrote %d approvals to %s", len(record), path)


def reconcile(warnings: Iterable[PolicyWarning], previous: Iterable[ApprovalEntry]) -> Reconciliation:
    """Classify warnings against the previous record and rebuild the next one."""
    approved: Set[WarningIdentity] = {entry.identity for entry in previous}

    total = list(warnings)
    unapproved = [w for w in total if w.identity not in approved]

    # Full replace: only identities seen in this run survive
    entries = {w.identity: ApprovalEntry.from_warning(w) for w in total}
    record = sorted(entries.values(), key=lambda e: e.identity)

    return Reconciliation(total=total, unapproved=unapproved, record=record)


class UnattendedApprover:
    """Approver for CI runs: new warnings are never accepted."""

    def request_approval(self, count: int) -> ApprovalDecision:
        logger.debug("Rejecting %d warnings in unattended mode", count)
        return ApprovalDecision.REJECTED


class InteractiveApprover:
    """Ask on the terminal whether new warnings should be approved."""

    def __init__(self, prompt: str = "Continue? [y/n]"):
        self._prompt = prompt

    def request_approval(self, count: int) -> ApprovalDecision:
        try:
            answer = click.prompt(self._prompt, default="y", show_default=False)
        except click.Abort:
            # EOF or Ctrl-C at the prompt
            click.echo()
            logger.debug("Approval prompt aborted, rejecting %d warnings", count)
            return ApprovalDecision.REJECTED
        if str(answer).strip().lower() in ("y", "yes"):
            return ApprovalDecision.ACCEPTED
        return ApprovalDecision.REJECTED


def decide(reconciliation: Reconciliation, approver) -> ApprovalOutcome:
    """Decide what happens to the rebuilt record.

    The approver is only consulted when unapproved warnings exist. On
    ``ACCEPTED`` the caller persists ``reconciliation.record``.
    """
    if not reconciliation.unapproved:
        return ApprovalOutcome.NOTHING_TO_APPROVE

    decision = approver.request_approval(len(reconciliation.unapproved))
    if decision is ApprovalDecision.ACCEPTED:
        return ApprovalOutcome.ACCEPTED
    return ApprovalOutcome.REJECTED
