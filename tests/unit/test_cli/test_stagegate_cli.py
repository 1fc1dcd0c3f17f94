"""Unit tests for the stagegate CLI.

Tests cover:
- One JSON envelope per command on stdout
- Exit codes: 0 success, 1 precondition, 2 diff rejected, 3 gate failure,
  4 fatal storage
- Diff, evidence and gate inputs given as literal, file or stdin
"""

import json

from stagegate.core.workflow.models import Stage

FULL_COVERAGE = {"coverage": {"core": 100, "integration": 85, "presentation": 70}}


class TestSessionCommands:
    """Tests for session start/advance/abort/show/list."""

    def test_start(self, invoke):
        """start prints the new session at stage 1."""
        result, data = invoke("session", "start")
        assert result.exit_code == 0, result.output
        assert data["success"] is True
        assert data["data"]["stage"] == "roadmap"
        assert data["data"]["stage_index"] == 1
        assert data["meta"]["version"] == "response-v2"

    def test_advance_with_evidence(self, invoke, engine):
        """advance moves to the next stage and logs the evidence."""
        session_id = engine.start_session()
        result, data = invoke(
            "session", "advance", session_id, "--notes", "agreed", "--reference", "ticket-1"
        )
        assert result.exit_code == 0, result.output
        assert data["data"]["stage"] == "design"

        entry = engine.get_history(session_id).latest()
        assert entry.metadata["evidence"] == {"notes": "agreed", "references": ["ticket-1"]}

    def test_skip_optional_stage(self, invoke, engine):
        """--skip bypasses the roadmap stage."""
        session_id = engine.start_session()
        result, data = invoke("session", "advance", session_id, "--skip")
        assert result.exit_code == 0
        assert data["data"]["skipped"] == ["roadmap"]

    def test_skip_mandatory_stage_exits_1(self, invoke, engine):
        """Skipping a mandatory stage is a precondition failure."""
        session_id = engine.start_session()
        engine.advance(session_id)
        result, data = invoke("session", "advance", session_id, "--skip")
        assert result.exit_code == 1
        assert data["success"] is False
        assert data["data"]["error_code"] == "PRECONDITION_FAILED"
        assert data["data"]["details"]["requirement"] == "skip_not_allowed"

    def test_missing_evidence_exits_1(self, invoke, engine, advance_to):
        """Leaving context without an impact record fails."""
        session_id = engine.start_session()
        advance_to(session_id, Stage.CONTEXT)
        result, data = invoke("session", "advance", session_id)
        assert result.exit_code == 1
        assert data["data"]["details"]["requirement"] == "dependency_impact"
        assert engine.get_session(session_id).stage is Stage.CONTEXT

    def test_unknown_session_exits_1(self, invoke):
        """An unknown id is reported as SESSION_NOT_FOUND."""
        result, data = invoke("session", "show", "01JDOESNOTEXIST")
        assert result.exit_code == 1
        assert data["data"]["error_code"] == "SESSION_NOT_FOUND"

    def test_invalid_evidence_exits_1(self, invoke, engine):
        """Evidence that is not a JSON object is a validation error."""
        session_id = engine.start_session()
        result, data = invoke("session", "advance", session_id, "--evidence", "[1, 2]")
        assert result.exit_code == 1
        assert data["data"]["error_code"] == "VALIDATION_ERROR"

    def test_show_reports_pending_requirement(self, invoke, engine, advance_to):
        """show includes the requirement blocking the next advance."""
        session_id = engine.start_session()
        advance_to(session_id, Stage.SPEC)
        result, data = invoke("session", "show", session_id)
        assert result.exit_code == 0
        assert data["data"]["pending_requirement"]["code"] == "test_knowledge_diff"
        assert data["data"]["session"]["id"] == session_id

    def test_abort_then_list(self, invoke, engine):
        """abort ends the session; list filters by status."""
        kept = engine.start_session()
        aborted = engine.start_session()
        result, data = invoke("session", "abort", aborted, "--reason", "superseded")
        assert result.exit_code == 0
        assert data["data"]["status"] == "aborted"
        assert data["data"]["abort_reason"] == "superseded"

        _, listing = invoke("session", "list", "--status", "active")
        assert [s["session_id"] for s in listing["data"]["sessions"]] == [kept]

    def test_abort_terminal_session_exits_1(self, invoke, engine):
        """A terminal session accepts no further operations."""
        session_id = engine.start_session()
        engine.abort(session_id, "done")
        result, data = invoke("session", "abort", session_id, "--reason", "again")
        assert result.exit_code == 1
        assert data["data"]["error_code"] == "SESSION_TERMINAL"


class TestEvidenceCommands:
    """Tests for attach-impact and signal."""

    def test_attach_impact(self, invoke, engine):
        session_id = engine.start_session()
        result, data = invoke(
            "session", "attach-impact", session_id,
            "--module", "app.core", "--affected", "app.api", "--severity", "high",
        )
        assert result.exit_code == 0, result.output
        assert data["data"]["sequence"] == 2

    def test_signal_in_wrong_stage_exits_1(self, invoke, engine):
        session_id = engine.start_session()
        result, data = invoke(
            "session", "signal", session_id, "tests_failing", "--test", "t::a"
        )
        assert result.exit_code == 1
        assert data["data"]["error_code"] == "OPERATION_NOT_ALLOWED"

    def test_signal_in_spec(self, invoke, engine, advance_to):
        session_id = engine.start_session()
        advance_to(session_id, Stage.SPEC)
        result, data = invoke(
            "session", "signal", session_id, "tests_failing",
            "--test", "t::b", "--test", "t::a", "--runner", "pytest",
        )
        assert result.exit_code == 0, result.output
        assert data["data"]["test_ids"] == ["t::a", "t::b"]


class TestDocsCommands:
    """Tests for docs submit/read/versions/validate/list."""

    def test_submit_literal_diff(self, invoke):
        """A sessionless diff is applied and audited in the store ledger."""
        diff = {"base_version": 0, "operations": [{"path": "a", "op": "insert", "value": 1}]}
        result, data = invoke("docs", "submit", "notes", "--diff", json.dumps(diff))
        assert result.exit_code == 0, result.output
        assert data["data"] == {
            "status": "applied",
            "document": "notes",
            "version": 1,
            "checksum": data["data"]["checksum"],
        }

        _, history = invoke("session", "history", "store")
        assert history["data"]["count"] == 1

    def test_submit_from_file_and_stdin(self, invoke, tmp_path):
        diff_file = tmp_path / "diff.json"
        diff_file.write_text(
            json.dumps({"base_version": 0, "operations": [{"path": "a", "op": "insert", "value": 1}]})
        )
        result, _ = invoke("docs", "submit", "notes", "--diff", str(diff_file))
        assert result.exit_code == 0

        stdin_diff = {"base_version": 1, "operations": [{"path": "b", "op": "insert", "value": 2}]}
        result, data = invoke("docs", "submit", "notes", "--diff", "-", input=json.dumps(stdin_diff))
        assert result.exit_code == 0
        assert data["data"]["version"] == 2

    def test_stale_diff_exits_2(self, invoke, engine):
        """A diff against an old version is rejected with StaleBase."""
        engine.submit_diff(
            "notes", {"base_version": 0, "operations": [{"path": "a", "op": "insert", "value": 1}]}
        )
        diff = {"base_version": 0, "operations": [{"path": "b", "op": "insert", "value": 2}]}
        result, data = invoke("docs", "submit", "notes", "--diff", json.dumps(diff))
        assert result.exit_code == 2
        assert data["success"] is False
        assert data["data"]["error_code"] == "STALE_BASE"
        assert data["data"]["reason"] == "StaleBase"
        assert data["data"]["current_version"] == 1

    def test_malformed_diff_exits_2(self, invoke):
        result, data = invoke("docs", "submit", "notes", "--diff", '{"operations": "nope"}')
        assert result.exit_code == 2
        assert data["data"]["error_code"] == "MALFORMED_DIFF"

    def test_invalid_json_diff_is_a_rejected_diff(self, invoke, tmp_path):
        """Text that is not JSON is rejected as MalformedDiff and audited."""
        result, data = invoke("docs", "submit", "notes", "--diff", '{"base_version": 0,')
        assert result.exit_code == 2
        assert data["data"]["error_code"] == "MALFORMED_DIFF"
        assert data["data"]["reason"] == "MalformedDiff"
        assert data["data"]["current_version"] == 0

        diff_file = tmp_path / "broken.json"
        diff_file.write_text("base_version: 0")
        result, data = invoke("docs", "submit", "notes", "--diff", str(diff_file))
        assert result.exit_code == 2
        assert data["data"]["error_code"] == "MALFORMED_DIFF"

        _, history = invoke("session", "history", "store")
        entries = history["data"]["entries"]
        assert [entry["outcome"] for entry in entries] == ["rejected", "rejected"]

    def test_unreadable_diff_source_exits_1(self, invoke, tmp_path):
        result, data = invoke("docs", "submit", "notes", "--diff", str(tmp_path / "missing.json"))
        assert result.exit_code == 1
        assert data["data"]["error_code"] == "VALIDATION_ERROR"

    def test_read_versions_and_list(self, invoke, engine):
        for base, key in ((0, "a"), (1, "b")):
            engine.submit_diff(
                "notes",
                {"base_version": base, "operations": [{"path": key, "op": "insert", "value": base}]},
            )

        _, latest = invoke("docs", "read", "notes")
        assert latest["data"]["version"] == 2
        assert latest["data"]["content"] == {"a": 0, "b": 1}

        _, first = invoke("docs", "read", "notes", "--version", "1")
        assert first["data"]["content"] == {"a": 0}

        _, versions = invoke("docs", "versions", "notes")
        assert [v["version"] for v in versions["data"]["versions"]] == [1, 2]

        _, listing = invoke("docs", "list")
        assert listing["data"]["documents"] == ["notes"]

    def test_validate_invalid_document_exits_3(self, invoke, engine):
        """A document violating its built-in schema fails validation."""
        engine.submit_diff(
            "codebase-index",
            {"base_version": 0, "operations": [{"path": "functions", "op": "insert", "value": "x"}]},
        )
        result, data = invoke("docs", "validate", "codebase-index")
        assert result.exit_code == 3
        assert data["data"]["error_code"] == "SCHEMA_VALIDATION_FAILED"


class TestGatesCommands:
    """Tests for gates run."""

    def test_passing_gates(self, invoke, engine, advance_to):
        session_id = engine.start_session()
        advance_to(session_id, Stage.AUDIT)
        result, data = invoke("gates", "run", session_id, "--inputs", json.dumps(FULL_COVERAGE))
        assert result.exit_code == 0, result.output
        assert data["data"]["outcome"] == "pass"
        assert [c["name"] for c in data["data"]["checks"]] == [
            "LayerBoundary",
            "ComplexityCeiling",
            "CoverageThreshold",
            "DocumentValidity",
        ]

    def test_failing_gates_exit_3(self, invoke, engine, advance_to):
        session_id = engine.start_session()
        advance_to(session_id, Stage.AUDIT)
        result, data = invoke("gates", "run", session_id, "--inputs", '{"coverage": {"core": 10}}')
        assert result.exit_code == 3
        assert data["data"]["error_code"] == "GATE_FAILURE"
        assert data["data"]["outcome"] == "fail"
        assert "CoverageThreshold" in data["error"]

        result, data = invoke("session", "advance", session_id)
        assert result.exit_code == 1
        assert data["data"]["details"]["requirement"] == "gate_passed"

    def test_gates_outside_audit_exit_1(self, invoke, engine):
        session_id = engine.start_session()
        result, data = invoke("gates", "run", session_id)
        assert result.exit_code == 1
        assert data["data"]["error_code"] == "OPERATION_NOT_ALLOWED"


class TestAuditCommands:
    """Tests for audit verify/list."""

    def test_verify_intact_chain(self, invoke, engine):
        session_id = engine.start_session()
        engine.advance(session_id)
        result, data = invoke("audit", "verify", session_id)
        assert result.exit_code == 0
        assert data["data"]["valid"] is True
        assert data["data"]["total_entries"] == 2

    def test_tampered_chain_exits_4(self, invoke, engine):
        session_id = engine.start_session()
        engine.advance(session_id)
        ledger = engine.audit.ledger_path(session_id)
        ledger.write_text(ledger.read_text().replace('"roadmap"', '"commit"', 1))

        result, data = invoke("audit", "verify", session_id)
        assert result.exit_code == 4
        assert data["data"]["error_code"] == "AUDIT_CHAIN_BROKEN"
        assert data["data"]["details"]["divergence_type"] == "hash_mismatch"

    def test_list_ledgers(self, invoke, engine):
        session_id = engine.start_session()
        _, data = invoke("audit", "list")
        assert data["data"]["ledgers"] == [session_id]
