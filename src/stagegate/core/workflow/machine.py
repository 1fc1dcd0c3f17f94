"""Step state machine for workflow sessions.

The machine is the only code that changes a ``WorkflowSession``. Every
change is appended to the audit log first; the session object is updated
only after the append succeeded. Persisting the session is the caller's job.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from ulid import ULID

from stagegate.config.domains import DocumentNamesConfig
from stagegate.core.errors.workflow import (
    OperationNotAllowed,
    PreconditionError,
    SessionTerminal,
)
from stagegate.core.gates.models import GateReport
from stagegate.core.knowledge.models import Applied, MergeResult
from stagegate.core.workflow.audit import AuditEntry, AuditLog
from stagegate.core.workflow.models import (
    DIFF_STAGES,
    GATE_STAGE,
    IMPACT_STAGES,
    SKIPPABLE_STAGES,
    AuditKind,
    AuditOutcome,
    DependencyImpact,
    GateRecord,
    RunnerSignal,
    SignalKind,
    Stage,
    StageEvidence,
    StageTransition,
    WorkflowSession,
)
from stagegate.core.workflow.preconditions import Requirement, unmet_exit_requirement

logger = logging.getLogger(__name__)

# Stage in which each signal kind may be recorded
SIGNAL_STAGES = {
    SignalKind.FAILING: Stage.SPEC,
    SignalKind.PASSING: Stage.BUILD,
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def diff_audit_fields(
    document: str, result: MergeResult, base_version: Optional[int]
) -> Tuple[AuditOutcome, str, Dict[str, Any]]:
    """Outcome, payload reference and metadata recorded for a merge attempt."""
    if isinstance(result, Applied):
        return (
            AuditOutcome.APPLIED,
            f"{document}@{result.version}",
            {
                "document": document,
                "base_version": base_version,
                "version": result.version,
                "checksum": result.checksum,
            },
        )
    return (
        AuditOutcome.REJECTED,
        f"{document}@{base_version}",
        {
            "document": document,
            "base_version": base_version,
            "reason": result.reason.value,
            "message": result.message,
            "path": result.path,
            "op_index": result.op_index,
            "current_version": result.current_version,
        },
    )


class StepStateMachine:
    """Enforces stage order, skip rules and per-stage operation validity."""

    def __init__(self, audit: AuditLog, documents: Optional[DocumentNamesConfig] = None) -> None:
        self.audit = audit
        self.documents = documents or DocumentNamesConfig()

    # =========================================================================
    # Guards
    # =========================================================================

    def _ensure_active(self, session: WorkflowSession, action: str) -> None:
        if session.is_terminal:
            raise SessionTerminal(
                f"Cannot {action}: session {session.id} is {session.stage.value}",
                session_id=session.id,
                stage=session.stage.value,
                requirement="session_active",
            )

    def _not_allowed(self, session: WorkflowSession, message: str, requirement: str) -> None:
        raise OperationNotAllowed(
            message,
            session_id=session.id,
            stage=session.stage.value,
            requirement=requirement,
        )

    def ensure_diff_allowed(self, session: WorkflowSession) -> None:
        self._ensure_active(session, "submit a diff")
        if session.stage not in DIFF_STAGES:
            self._not_allowed(
                session,
                f"Diffs cannot be submitted in the {session.stage.value} stage",
                "diff_stage",
            )

    def ensure_gates_allowed(self, session: WorkflowSession) -> None:
        self._ensure_active(session, "run gates")
        if session.stage is not GATE_STAGE:
            self._not_allowed(
                session,
                f"Gates run only in the {GATE_STAGE.value} stage, "
                f"not {session.stage.value}",
                "gate_stage",
            )

    def unmet_requirement(self, session: WorkflowSession) -> Optional[Requirement]:
        """First unmet exit requirement of the current stage, or None."""
        if session.is_terminal:
            return None
        return unmet_exit_requirement(
            session, self.audit.history(session.id), self.documents
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def create(self, session_id: Optional[str] = None) -> WorkflowSession:
        """Start a new session at ROADMAP."""
        now = _now()
        session = WorkflowSession(
            id=session_id or str(ULID()),
            stage=Stage.ROADMAP,
            created_at=now,
            updated_at=now,
        )
        self.audit.append(
            session.id, session.stage.value, AuditKind.START, AuditOutcome.STARTED
        )
        logger.info("Started session %s", session.id)
        return session

    def advance(
        self,
        session: WorkflowSession,
        evidence: Optional[StageEvidence] = None,
        skip: bool = False,
    ) -> WorkflowSession:
        """Move the session to its next stage.

        Raises:
            SessionTerminal: If the session is COMPLETED or ABORTED.
            PreconditionError: If the stage's exit condition does not hold,
                or ``skip`` is requested at a stage that is not skippable.
        """
        self._ensure_active(session, "advance")
        current = session.stage

        if skip and current not in SKIPPABLE_STAGES:
            raise PreconditionError(
                f"Stage {current.value} is mandatory and cannot be skipped",
                session_id=session.id,
                stage=current.value,
                requirement="skip_not_allowed",
            )
        if not skip:
            unmet = self.unmet_requirement(session)
            if unmet is not None:
                raise PreconditionError(
                    unmet.message,
                    session_id=session.id,
                    stage=current.value,
                    requirement=unmet.code,
                    cause=unmet.cause,
                )

        target = current.next_stage()
        if skip:
            outcome = AuditOutcome.SKIPPED
        elif target is Stage.COMPLETED:
            outcome = AuditOutcome.COMPLETED
        else:
            outcome = AuditOutcome.ADVANCED

        evidence = evidence or StageEvidence()
        entry = self.audit.append(
            session.id,
            current.value,
            AuditKind.TRANSITION,
            outcome,
            payload_ref=f"{current.value}->{target.value}",
            payload=evidence.model_dump(mode="json"),
            metadata={
                "from_stage": current.value,
                "to_stage": target.value,
                "from_index": current.index,
                "to_index": target.index,
                "evidence": evidence.model_dump(mode="json", exclude_defaults=True),
            },
        )

        now = _now()
        session.stage = target
        session.updated_at = now
        session.transitions.append(
            StageTransition(
                from_stage=current,
                to_stage=target,
                at=now,
                skipped=skip,
                audit_sequence=entry.sequence,
            )
        )
        if skip and current not in session.skipped:
            session.skipped.append(current)

        logger.info(
            "Session %s %s %s -> %s", session.id, outcome.value, current.value, target.value
        )
        return session

    def abort(self, session: WorkflowSession, reason: str) -> WorkflowSession:
        """Move the session straight to ABORTED.

        Raises:
            SessionTerminal: If the session already ended.
        """
        self._ensure_active(session, "abort")
        current = session.stage
        entry = self.audit.append(
            session.id,
            current.value,
            AuditKind.ABORT,
            AuditOutcome.ABORTED,
            payload_ref=f"{current.value}->{Stage.ABORTED.value}",
            metadata={"reason": reason, "from_stage": current.value},
        )

        now = _now()
        session.stage = Stage.ABORTED
        session.abort_reason = reason
        session.updated_at = now
        session.transitions.append(
            StageTransition(
                from_stage=current,
                to_stage=Stage.ABORTED,
                at=now,
                reason=reason,
                audit_sequence=entry.sequence,
            )
        )
        logger.info("Session %s aborted at %s: %s", session.id, current.value, reason)
        return session

    # =========================================================================
    # Recorded actions
    # =========================================================================

    def record_read(self, session: WorkflowSession, name: str, version: int) -> None:
        session.note_read(name, version)
        session.updated_at = _now()

    def record_diff(
        self,
        session: WorkflowSession,
        document: str,
        result: MergeResult,
        *,
        base_version: Optional[int],
        payload: Dict[str, Any],
    ) -> AuditEntry:
        """Audit a merge attempt made on behalf of ``session``."""
        outcome, payload_ref, metadata = diff_audit_fields(document, result, base_version)
        entry = self.audit.append(
            session.id,
            session.stage.value,
            AuditKind.DIFF,
            outcome,
            payload_ref=payload_ref,
            payload=payload,
            metadata=metadata,
        )
        if isinstance(result, Applied):
            session.note_read(document, result.version - 1)
            session.note_written(document, result.version)
        session.updated_at = _now()
        return entry

    def record_gate(self, session: WorkflowSession, report: GateReport) -> AuditEntry:
        """Audit a gate report and remember it as the session's latest."""
        entry = self.audit.append(
            session.id,
            session.stage.value,
            AuditKind.GATE,
            AuditOutcome.PASS if report.passed else AuditOutcome.FAIL,
            payload_ref=f"gates:{report.input_digest[:16]}",
            payload=report.model_dump(mode="json"),
            metadata={"report": report.model_dump(mode="json")},
        )
        session.last_gate = GateRecord(
            passed=report.passed,
            input_digest=report.input_digest,
            failed_checks=report.failed_checks,
            audit_sequence=entry.sequence,
        )
        session.updated_at = _now()
        return entry

    def record_signal(self, session: WorkflowSession, signal: RunnerSignal) -> AuditEntry:
        """Audit an external test-runner verdict.

        Raises:
            OperationNotAllowed: If the signal kind is not accepted in the
                current stage.
        """
        self._ensure_active(session, "record a test signal")
        expected_stage = SIGNAL_STAGES[signal.kind]
        if session.stage is not expected_stage:
            self._not_allowed(
                session,
                f"{signal.kind.value} signals are recorded in the {expected_stage.value} "
                f"stage, not {session.stage.value}",
                "signal_stage",
            )
        outcome = (
            AuditOutcome.TESTS_FAILING
            if signal.kind is SignalKind.FAILING
            else AuditOutcome.TESTS_PASSING
        )
        entry = self.audit.append(
            session.id,
            session.stage.value,
            AuditKind.SIGNAL,
            outcome,
            payload_ref=signal.runner,
            payload=signal.model_dump(mode="json"),
            metadata={"test_ids": signal.test_ids, "runner": signal.runner},
        )
        session.updated_at = _now()
        return entry

    def record_impact(self, session: WorkflowSession, impact: DependencyImpact) -> AuditEntry:
        """Attach a dependency-impact record.

        Raises:
            OperationNotAllowed: After the context stage.
        """
        self._ensure_active(session, "attach an impact record")
        if session.stage not in IMPACT_STAGES:
            self._not_allowed(
                session,
                f"Dependency impacts are attached up to the {Stage.CONTEXT.value} stage, "
                f"not in {session.stage.value}",
                "impact_stage",
            )
        entry = self.audit.append(
            session.id,
            session.stage.value,
            AuditKind.IMPACT,
            AuditOutcome.ATTACHED,
            payload_ref=impact.module,
            payload=impact.model_dump(mode="json"),
            metadata=impact.model_dump(mode="json"),
        )
        session.updated_at = _now()
        return entry
