"""Tests for the hash-chained audit log."""

import json

import pytest

from stagegate.core.workflow.audit import GENESIS_HASH, AuditLog
from stagegate.core.workflow.models import AuditKind, AuditOutcome


@pytest.fixture
def audit_log(tmp_path):
    return AuditLog(tmp_path)


def _append_three(audit_log, session_id="s1"):
    audit_log.append(session_id, "roadmap", AuditKind.START, AuditOutcome.STARTED)
    audit_log.append(
        session_id,
        "roadmap",
        AuditKind.TRANSITION,
        AuditOutcome.ADVANCED,
        payload={"notes": "done"},
        metadata={"from_stage": "roadmap", "to_stage": "design"},
    )
    return audit_log.append(
        session_id, "design", AuditKind.DIFF, AuditOutcome.APPLIED, metadata={"document": "a"}
    )


# =============================================================================
# Appending and history
# =============================================================================


class TestAppend:
    def test_sequences_and_chain(self, audit_log):
        _append_three(audit_log)
        entries = list(audit_log.history("s1"))

        assert [e.sequence for e in entries] == [1, 2, 3]
        assert entries[0].prev_hash == GENESIS_HASH
        assert entries[1].prev_hash == entries[0].entry_hash
        assert entries[2].prev_hash == entries[1].entry_hash

    def test_payload_is_stored_as_digest(self, audit_log):
        _append_three(audit_log)
        entry = list(audit_log.history("s1"))[1]
        assert entry.payload_digest is not None
        assert len(entry.payload_digest) == 64
        assert "notes" not in entry.metadata

    def test_ledgers_are_per_session(self, audit_log):
        _append_three(audit_log, "s1")
        audit_log.append("s2", "roadmap", AuditKind.START, AuditOutcome.STARTED)

        assert len(audit_log.history("s1")) == 3
        assert len(audit_log.history("s2")) == 1
        assert audit_log.list_ledgers() == ["s1", "s2"]

    def test_history_is_replayable_and_live(self, audit_log):
        history = audit_log.history("s1")
        assert list(history) == []
        _append_three(audit_log)
        assert len(list(history)) == 3
        assert len(list(history)) == 3
        assert history.latest(AuditKind.TRANSITION).sequence == 2

    def test_survives_new_instance(self, tmp_path):
        _append_three(AuditLog(tmp_path))
        assert len(AuditLog(tmp_path).history("s1")) == 3


# =============================================================================
# Verification
# =============================================================================


class TestVerify:
    def test_intact_chain(self, audit_log):
        _append_three(audit_log)
        result = audit_log.verify("s1")
        assert result.valid
        assert result.total_entries == 3

    def test_empty_ledger_is_valid(self, audit_log):
        result = audit_log.verify("nobody")
        assert result.valid
        assert result.total_entries == 0

    def test_tampered_metadata_is_detected(self, audit_log):
        _append_three(audit_log)
        path = audit_log.ledger_path("s1")
        lines = path.read_text().splitlines()
        entry = json.loads(lines[1])
        entry["metadata"]["to_stage"] = "commit"
        lines[1] = json.dumps(entry)
        path.write_text("\n".join(lines) + "\n")

        result = audit_log.verify("s1")
        assert not result.valid
        assert result.divergence_type == "hash_mismatch"
        assert result.divergence_point == 2

    def test_deleted_entry_is_a_sequence_gap(self, audit_log):
        _append_three(audit_log)
        path = audit_log.ledger_path("s1")
        lines = path.read_text().splitlines()
        path.write_text("\n".join([lines[0], lines[2]]) + "\n")

        result = audit_log.verify("s1")
        assert not result.valid
        assert result.divergence_type == "sequence_gap"

    def test_corrupted_line(self, audit_log):
        _append_three(audit_log)
        path = audit_log.ledger_path("s1")
        with open(path, "a", encoding="utf-8") as f:
            f.write("{broken\n")

        result = audit_log.verify("s1")
        assert result.divergence_type == "corrupted_entry"
        assert result.total_entries == 3
