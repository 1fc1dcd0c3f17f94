"""Tests for the step state machine."""

import pytest

from stagegate.core.errors.workflow import (
    OperationNotAllowed,
    PreconditionError,
    SessionTerminal,
)
from stagegate.core.errors.merge import RejectionReason
from stagegate.core.knowledge.models import Applied, Rejected
from stagegate.core.workflow.audit import AuditLog
from stagegate.core.workflow.machine import StepStateMachine
from stagegate.core.workflow.models import (
    STAGE_ORDER,
    AuditKind,
    AuditOutcome,
    DependencyImpact,
    RunnerSignal,
    SignalKind,
    Stage,
    StageEvidence,
)


@pytest.fixture
def audit_log(tmp_path):
    return AuditLog(tmp_path)


@pytest.fixture
def machine(audit_log):
    return StepStateMachine(audit_log)


def _at(machine, stage):
    """A fresh session forced to ``stage`` without recording evidence."""
    session = machine.create()
    session.stage = stage
    return session


# =============================================================================
# Stage model
# =============================================================================


class TestStageOrder:
    def test_nine_stages_then_completed(self):
        assert [stage.index for stage in STAGE_ORDER] == list(range(1, 11))
        assert STAGE_ORDER[-1] is Stage.COMPLETED
        assert Stage.ABORTED.index is None

    def test_next_stage(self):
        assert Stage.ROADMAP.next_stage() is Stage.DESIGN
        assert Stage.COMMIT.next_stage() is Stage.COMPLETED
        with pytest.raises(ValueError):
            Stage.ABORTED.next_stage()

    @pytest.mark.parametrize(
        "text,expected",
        [("spec", Stage.SPEC), ("4", Stage.SPEC), (" Audit ", Stage.AUDIT), ("10", Stage.COMPLETED)],
    )
    def test_parse(self, text, expected):
        assert Stage.parse(text) is expected

    def test_parse_rejects_unknown(self):
        with pytest.raises(ValueError):
            Stage.parse("11")
        with pytest.raises(ValueError):
            Stage.parse("deploy")


# =============================================================================
# Lifecycle
# =============================================================================


class TestCreate:
    def test_starts_at_roadmap_and_audits(self, machine, audit_log):
        session = machine.create()
        assert session.stage is Stage.ROADMAP
        assert len(session.id) == 26

        [entry] = list(audit_log.history(session.id))
        assert entry.kind == AuditKind.START
        assert entry.stage == "roadmap"


class TestAdvance:
    def test_free_stage_advances(self, machine, audit_log):
        session = machine.create()
        evidence = StageEvidence(notes="roadmap agreed", references=["ticket-7"])
        machine.advance(session, evidence)

        assert session.stage is Stage.DESIGN
        assert session.transitions[-1].from_stage is Stage.ROADMAP
        entry = audit_log.history(session.id).latest(AuditKind.TRANSITION)
        assert entry.outcome == AuditOutcome.ADVANCED
        assert entry.metadata["evidence"]["notes"] == "roadmap agreed"
        assert entry.payload_digest is not None

    def test_unmet_precondition_leaves_session_unchanged(self, machine, audit_log):
        session = _at(machine, Stage.CONTEXT)
        before = len(audit_log.history(session.id))

        with pytest.raises(PreconditionError) as exc_info:
            machine.advance(session)

        assert exc_info.value.requirement == "dependency_impact"
        assert session.stage is Stage.CONTEXT
        assert len(audit_log.history(session.id)) == before

    def test_commit_requires_gate_report(self, machine):
        session = _at(machine, Stage.COMMIT)
        with pytest.raises(PreconditionError) as exc_info:
            machine.advance(session)
        assert exc_info.value.requirement == "gate_report"


class TestSkip:
    @pytest.mark.parametrize("stage", [Stage.ROADMAP, Stage.DOCS])
    def test_optional_stages_skip(self, machine, audit_log, stage):
        session = _at(machine, stage)
        machine.advance(session, skip=True)

        assert session.stage is stage.next_stage()
        assert session.skipped == [stage]
        assert session.transitions[-1].skipped
        entry = audit_log.history(session.id).latest(AuditKind.TRANSITION)
        assert entry.outcome == AuditOutcome.SKIPPED

    @pytest.mark.parametrize(
        "stage",
        [Stage.DESIGN, Stage.CONTEXT, Stage.SPEC, Stage.BUILD, Stage.SYNC, Stage.AUDIT, Stage.COMMIT],
    )
    def test_mandatory_stages_refuse_skip(self, machine, stage):
        session = _at(machine, stage)
        with pytest.raises(PreconditionError) as exc_info:
            machine.advance(session, skip=True)
        assert exc_info.value.requirement == "skip_not_allowed"
        assert session.stage is stage


class TestAbort:
    def test_abort_from_any_active_stage(self, machine, audit_log):
        session = _at(machine, Stage.BUILD)
        machine.abort(session, "requirements changed")

        assert session.stage is Stage.ABORTED
        assert session.abort_reason == "requirements changed"
        entry = audit_log.history(session.id).latest()
        assert entry.kind == AuditKind.ABORT
        assert entry.metadata == {"reason": "requirements changed", "from_stage": "build"}

    @pytest.mark.parametrize("terminal", [Stage.COMPLETED, Stage.ABORTED])
    def test_terminal_sessions_accept_nothing(self, machine, terminal):
        session = _at(machine, terminal)
        with pytest.raises(SessionTerminal):
            machine.advance(session)
        with pytest.raises(SessionTerminal):
            machine.abort(session, "again")
        with pytest.raises(SessionTerminal):
            machine.ensure_diff_allowed(session)
        with pytest.raises(SessionTerminal):
            machine.record_impact(session, DependencyImpact(module="m"))
        assert machine.unmet_requirement(session) is None


# =============================================================================
# Per-stage operation validity
# =============================================================================


class TestOperationGuards:
    @pytest.mark.parametrize("stage", [Stage.ROADMAP, Stage.COMMIT])
    def test_diffs_refused(self, machine, stage):
        session = _at(machine, stage)
        with pytest.raises(OperationNotAllowed) as exc_info:
            machine.ensure_diff_allowed(session)
        assert exc_info.value.requirement == "diff_stage"

    def test_diffs_allowed_from_design_to_audit(self, machine):
        for stage in STAGE_ORDER[1:8]:
            machine.ensure_diff_allowed(_at(machine, stage))

    def test_gates_only_in_audit(self, machine):
        machine.ensure_gates_allowed(_at(machine, Stage.AUDIT))
        with pytest.raises(OperationNotAllowed) as exc_info:
            machine.ensure_gates_allowed(_at(machine, Stage.SYNC))
        assert exc_info.value.requirement == "gate_stage"

    def test_failing_signal_only_in_spec(self, machine):
        signal = RunnerSignal(kind=SignalKind.FAILING, test_ids=["t1"])
        machine.record_signal(_at(machine, Stage.SPEC), signal)
        with pytest.raises(OperationNotAllowed) as exc_info:
            machine.record_signal(_at(machine, Stage.BUILD), signal)
        assert exc_info.value.requirement == "signal_stage"

    def test_passing_signal_only_in_build(self, machine):
        signal = RunnerSignal(kind=SignalKind.PASSING, test_ids=["t1"])
        machine.record_signal(_at(machine, Stage.BUILD), signal)
        with pytest.raises(OperationNotAllowed):
            machine.record_signal(_at(machine, Stage.SPEC), signal)

    def test_impact_after_context_refused(self, machine):
        machine.record_impact(_at(machine, Stage.CONTEXT), DependencyImpact(module="m"))
        with pytest.raises(OperationNotAllowed) as exc_info:
            machine.record_impact(_at(machine, Stage.SPEC), DependencyImpact(module="m"))
        assert exc_info.value.requirement == "impact_stage"


class TestRecordDiff:
    def test_applied_diff_updates_write_set(self, machine, audit_log):
        session = _at(machine, Stage.SPEC)
        result = Applied(document="test-knowledge", version=3, checksum="c" * 64)
        entry = machine.record_diff(
            session, "test-knowledge", result, base_version=2, payload={"base_version": 2}
        )

        assert entry.outcome == AuditOutcome.APPLIED
        assert entry.payload_ref == "test-knowledge@3"
        assert session.write_count == 1
        assert [ref.version for ref in session.documents_written] == [3]
        assert [ref.version for ref in session.documents_read] == [2]

    def test_rejected_diff_only_audited(self, machine):
        session = _at(machine, Stage.SPEC)
        result = Rejected(
            document="test-knowledge",
            reason=RejectionReason.STALE_BASE,
            message="stale",
            current_version=4,
        )
        entry = machine.record_diff(
            session, "test-knowledge", result, base_version=2, payload={"base_version": 2}
        )

        assert entry.outcome == AuditOutcome.REJECTED
        assert entry.metadata["reason"] == "StaleBase"
        assert session.write_count == 0
        assert session.documents_written == []
