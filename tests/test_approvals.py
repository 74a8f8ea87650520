"""Tests for approval record reconciliation."""

from unittest.mock import patch

import click
import yaml

from analysis.approvals import (
    ApprovalDecision,
    ApprovalOutcome,
    InteractiveApprover,
    UnattendedApprover,
    decide,
    load_approval_record,
    reconcile,
    save_approval_record,
)
from analysis.models import ApprovalEntry, PolicyWarning
from constants import WarningType


def _warning(package, kind=WarningType.SCRIPT, key="install: make", message="msg"):
    return PolicyWarning(package=package, type=kind, message=message, cache_key=key)


class StubApprover:
    """Approver returning a fixed decision and recording requests."""

    def __init__(self, decision):
        self.decision = decision
        self.requests = []

    def request_approval(self, count):
        self.requests.append(count)
        return self.decision


class TestLoadApprovalRecord:
    """Reading package-policy.lock."""

    def test_missing_file(self, tmp_path):
        assert load_approval_record(str(tmp_path / "package-policy.lock")) == []

    def test_valid(self, tmp_path):
        path = tmp_path / "package-policy.lock"
        path.write_text(
            "version: 1\n"
            "packages:\n"
            "  - package: left-pad@1.3.0\n"
            "    type: minPackageAge\n"
            "    cacheKey: 1.3.0\n"
        )
        assert load_approval_record(str(path)) == [ApprovalEntry("left-pad@1.3.0", "minPackageAge", "1.3.0")]

    def test_wrong_version_is_empty(self, tmp_path):
        path = tmp_path / "package-policy.lock"
        path.write_text("version: 2\npackages:\n  - {package: a, type: script, cacheKey: k}\n")
        assert load_approval_record(str(path)) == []

    def test_missing_version_is_empty(self, tmp_path):
        path = tmp_path / "package-policy.lock"
        path.write_text("packages:\n  - {package: a, type: script, cacheKey: k}\n")
        assert load_approval_record(str(path)) == []

    def test_corrupt_yaml_is_empty(self, tmp_path):
        path = tmp_path / "package-policy.lock"
        path.write_text("version: 1\npackages: [unclosed\n")
        assert load_approval_record(str(path)) == []

    def test_malformed_entry_is_empty(self, tmp_path):
        path = tmp_path / "package-policy.lock"
        path.write_text("version: 1\npackages:\n  - just-a-string\n")
        assert load_approval_record(str(path)) == []


class TestReconcile:
    """Classification and rebuilding."""

    def test_classifies_new_and_approved(self):
        approved = _warning("a@1.0.0")
        new = _warning("b@1.0.0")
        result = reconcile([approved, new], [ApprovalEntry.from_warning(approved)])
        assert result.unapproved == [new]
        assert result.total == [approved, new]

    def test_message_is_not_part_of_identity(self):
        previous = [ApprovalEntry.from_warning(_warning("a@1.0.0", message="old text"))]
        result = reconcile([_warning("a@1.0.0", message="new text")], previous)
        assert result.unapproved == []

    def test_changed_cache_key_is_new(self):
        previous = [ApprovalEntry.from_warning(_warning("a@1.0.0", key="install: make"))]
        result = reconcile([_warning("a@1.0.0", key="install: make all")], previous)
        assert len(result.unapproved) == 1

    def test_full_replace_drops_stale_entries(self):
        stale = ApprovalEntry("gone@1.0.0", "script", "install: x")
        current = _warning("a@1.0.0")
        result = reconcile([current], [stale, ApprovalEntry.from_warning(current)])
        assert stale not in result.record
        assert result.record == [ApprovalEntry.from_warning(current)]

    def test_record_sorted_and_deduplicated(self):
        warnings = [
            _warning("zeta", WarningType.MIN_WEEKLY_DOWNLOADS, "minWeeklyDownloads=100"),
            _warning("alpha@1.0.0", WarningType.SCRIPT, "postinstall: b"),
            _warning("alpha@1.0.0", WarningType.LICENSE, "GPL-3.0"),
            _warning("alpha@1.0.0", WarningType.SCRIPT, "install: a"),
            _warning("alpha@1.0.0", WarningType.SCRIPT, "install: a"),
        ]
        result = reconcile(warnings, [])
        assert [e.identity for e in result.record] == [
            ("alpha@1.0.0", "license", "GPL-3.0"),
            ("alpha@1.0.0", "script", "install: a"),
            ("alpha@1.0.0", "script", "postinstall: b"),
            ("zeta", "minWeeklyDownloads", "minWeeklyDownloads=100"),
        ]

    def test_idempotent_after_accepting(self, tmp_path):
        path = str(tmp_path / "package-policy.lock")
        warnings = [_warning("a@1.0.0"), _warning("b", WarningType.MIN_WEEKLY_DOWNLOADS, "minWeeklyDownloads=100")]

        first = reconcile(warnings, load_approval_record(path))
        assert decide(first, StubApprover(ApprovalDecision.ACCEPTED)) is ApprovalOutcome.ACCEPTED
        save_approval_record(path, first.record)

        second = reconcile(warnings, load_approval_record(path))
        assert second.unapproved == []
        assert decide(second, StubApprover(ApprovalDecision.REJECTED)) is ApprovalOutcome.NOTHING_TO_APPROVE


class TestSaveApprovalRecord:
    """Writing package-policy.lock."""

    def test_document_shape(self, tmp_path):
        path = tmp_path / "package-policy.lock"
        save_approval_record(str(path), [ApprovalEntry("a@1.0.0", "script", "install: make")])
        data = yaml.safe_load(path.read_text())
        assert data == {
            "version": 1,
            "packages": [{"package": "a@1.0.0", "type": "script", "cacheKey": "install: make"}],
        }

    def test_byte_stable(self, tmp_path):
        warnings = [_warning("b@1.0.0"), _warning("a@1.0.0")]
        first, second = tmp_path / "one.lock", tmp_path / "two.lock"
        save_approval_record(str(first), reconcile(warnings, []).record)
        save_approval_record(str(second), reconcile(list(reversed(warnings)), []).record)
        assert first.read_bytes() == second.read_bytes()


class TestDecide:
    """Approval decisions."""

    def test_nothing_to_approve_does_not_prompt(self):
        approver = StubApprover(ApprovalDecision.REJECTED)
        assert decide(reconcile([], []), approver) is ApprovalOutcome.NOTHING_TO_APPROVE
        assert approver.requests == []

    def test_unattended_rejects(self):
        result = reconcile([_warning("a@1.0.0")], [])
        assert decide(result, UnattendedApprover()) is ApprovalOutcome.REJECTED

    def test_approver_gets_unapproved_count(self):
        approver = StubApprover(ApprovalDecision.ACCEPTED)
        previous = [ApprovalEntry.from_warning(_warning("a@1.0.0"))]
        decide(reconcile([_warning("a@1.0.0"), _warning("b@1.0.0")], previous), approver)
        assert approver.requests == [1]


class TestInteractiveApprover:
    """Terminal prompt answers."""

    @patch("analysis.approvals.click.prompt", return_value="y")
    def test_yes(self, mock_prompt):
        assert InteractiveApprover().request_approval(2) is ApprovalDecision.ACCEPTED
        assert mock_prompt.call_args.kwargs["default"] == "y"

    @patch("analysis.approvals.click.prompt", return_value="YES")
    def test_yes_long(self, _mock_prompt):
        assert InteractiveApprover().request_approval(2) is ApprovalDecision.ACCEPTED

    @patch("analysis.approvals.click.prompt", return_value="n")
    def test_no(self, _mock_prompt):
        assert InteractiveApprover().request_approval(2) is ApprovalDecision.REJECTED

    @patch("analysis.approvals.click.prompt", return_value="maybe")
    def test_anything_else_rejects(self, _mock_prompt):
        assert InteractiveApprover().request_approval(2) is ApprovalDecision.REJECTED

    @patch("analysis.approvals.click.prompt", side_effect=click.Abort())
    def test_aborted_prompt_rejects(self, _mock_prompt):
        assert InteractiveApprover().request_approval(2) is ApprovalDecision.REJECTED
