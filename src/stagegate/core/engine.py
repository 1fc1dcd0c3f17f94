"""Workflow engine: the operation set exposed to drivers.

``WorkflowEngine`` wires the knowledge store, diff merger, gate evaluator,
state machine, session storage and audit log together. Every operation that
touches a session holds that session's file lock for its whole
read-modify-write, so one session is never driven concurrently.

Usage:
    from stagegate.core.engine import WorkflowEngine

    engine = WorkflowEngine()
    session_id = engine.start_session()
    engine.advance(session_id, skip=True)
"""

import json
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Mapping, Optional, Union

from stagegate.config import EngineConfig, get_config, log_call, timed
from stagegate.core.errors.merge import DiffConflict
from stagegate.core.errors.schema import SchemaValidationError
from stagegate.core.errors.storage import SessionNotFound
from stagegate.core.gates.evaluator import QualityGateEvaluator, SuppliedInputs
from stagegate.core.gates.models import GateReport
from stagegate.core.knowledge.merger import DiffMerger
from stagegate.core.knowledge.models import Diff, Document, MergeResult, Rejected, parse_diff
from stagegate.core.knowledge.schemas import SchemaRegistry
from stagegate.core.knowledge.store import KnowledgeStore, document_name_problem
from stagegate.core.knowledge.tree import iter_wire_problems
from stagegate.core.workflow.audit import (
    STORE_LEDGER_ID,
    AuditEntry,
    AuditHistory,
    AuditLog,
    VerificationResult,
)
from stagegate.core.workflow.machine import StepStateMachine, diff_audit_fields
from stagegate.core.workflow.models import (
    AuditKind,
    DependencyImpact,
    RunnerSignal,
    SessionStatus,
    SessionSummary,
    StageEvidence,
    WorkflowSession,
)
from stagegate.core.workflow.preconditions import Requirement
from stagegate.core.workflow.storage import SessionStorage

logger = logging.getLogger(__name__)

IDLE_EXPIRED_REASON = "idle_expired"

DiffPayload = Union[Diff, Mapping[str, Any], str]


class WorkflowEngine:
    """Facade over the workflow components."""

    def __init__(self, config: Optional[EngineConfig] = None) -> None:
        self.config = config or get_config()
        root = self.config.state_dir
        lock_timeout = self.config.storage.lock_timeout

        self.store = KnowledgeStore(root, lock_timeout)
        self.merger = DiffMerger(self.store)
        self.audit = AuditLog(root, lock_timeout)
        self.sessions = SessionStorage(root, lock_timeout)
        self.schemas = SchemaRegistry(self.config.documents, self.config.schemas.schema_files)
        self.evaluator = QualityGateEvaluator(
            self.store,
            gate_config=self.config.gates,
            documents=self.config.documents,
            schemas=self.schemas,
        )
        self.machine = StepStateMachine(self.audit, self.config.documents)

    # =========================================================================
    # Session access
    # =========================================================================

    def _expire_if_idle(self, session: WorkflowSession) -> WorkflowSession:
        timeout = self.config.sessions.idle_timeout_seconds
        if timeout <= 0 or session.is_terminal:
            return session
        idle = (datetime.now(timezone.utc) - session.updated_at).total_seconds()
        if idle > timeout:
            logger.info("Session %s idle for %ds, aborting", session.id, int(idle))
            self.machine.abort(session, IDLE_EXPIRED_REASON)
            self.sessions.save(session)
        return session

    @contextmanager
    def _locked_session(self, session_id: str) -> Iterator[WorkflowSession]:
        """Load a session under its lock and save it if the block succeeds."""
        with self.sessions.session_lock(session_id):
            session = self._expire_if_idle(self.sessions.load(session_id))
            yield session
            self.sessions.save(session)

    @log_call()
    def get_session(self, session_id: str) -> WorkflowSession:
        with self.sessions.session_lock(session_id):
            return self._expire_if_idle(self.sessions.load(session_id))

    def list_sessions(self, status: Optional[SessionStatus] = None) -> List[SessionSummary]:
        return self.sessions.list_sessions(status)

    def pending_requirement(self, session_id: str) -> Optional[Requirement]:
        """The exit requirement that currently blocks ``advance``, if any."""
        session = self.get_session(session_id)
        return self.machine.unmet_requirement(session)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @log_call()
    @timed()
    def start_session(self) -> str:
        """Create a session at ROADMAP and return its id."""
        session = self.machine.create()
        with self.sessions.session_lock(session.id):
            self.sessions.save(session)
        return session.id

    @log_call()
    @timed()
    def advance(
        self,
        session_id: str,
        evidence: Optional[StageEvidence] = None,
        skip: bool = False,
    ) -> WorkflowSession:
        """Advance to the next stage.

        Raises:
            PreconditionError: If the stage's exit condition does not hold.
            SessionTerminal: If the session already ended.
        """
        with self._locked_session(session_id) as session:
            return self.machine.advance(session, evidence, skip=skip)

    @log_call()
    def abort(self, session_id: str, reason: str) -> WorkflowSession:
        """Abort a non-terminal session, recording ``reason``."""
        with self._locked_session(session_id) as session:
            return self.machine.abort(session, reason)

    # =========================================================================
    # Documents
    # =========================================================================

    @log_call()
    @timed()
    def submit_diff(
        self,
        document_name: str,
        diff: DiffPayload,
        session_id: Optional[str] = None,
    ) -> MergeResult:
        """Merge a diff into a document.

        ``diff`` may be a ``Diff``, its wire mapping, or raw JSON text.
        Rejections are returned, not raised, and are audited like successes;
        text that is not JSON is rejected as ``MalformedDiff``. Diffs without
        a session are audited in the store-level ledger.

        Raises:
            OperationNotAllowed: If the session's stage does not accept diffs.
            SessionTerminal: If the session already ended.
        """
        if isinstance(diff, str):
            try:
                diff = json.loads(diff)
            except ValueError:
                logger.info("Diff to %s is not valid JSON", document_name)
        if isinstance(diff, Diff):
            payload = diff.model_dump(mode="json")
        elif isinstance(diff, Mapping):
            payload = dict(diff)
        elif isinstance(diff, str):
            payload = {"raw": diff}
        else:
            payload = {}
        raw_base = payload.get("base_version")
        base_version = raw_base if isinstance(raw_base, int) else None

        if session_id is None:
            result = self._merge(document_name, diff, session_id=None)
            outcome, payload_ref, metadata = diff_audit_fields(
                document_name, result, base_version
            )
            self.audit.append(
                STORE_LEDGER_ID,
                None,
                AuditKind.DIFF,
                outcome,
                payload_ref=payload_ref,
                payload=payload,
                metadata=metadata,
            )
            return result

        with self._locked_session(session_id) as session:
            self.machine.ensure_diff_allowed(session)
            result = self._merge(document_name, diff, session_id=session.id)
            self.machine.record_diff(
                session, document_name, result, base_version=base_version, payload=payload
            )
            return result

    def _merge(
        self, document_name: str, diff: DiffPayload, session_id: Optional[str]
    ) -> MergeResult:
        try:
            parsed = parse_diff(diff)
        except DiffConflict as conflict:
            current = (
                self.store.current_version(document_name)
                if document_name_problem(document_name) is None
                else 0
            )
            logger.info("Rejected unparsable diff to %s: %s", document_name, conflict)
            return Rejected(
                document=document_name,
                reason=conflict.reason,
                message=conflict.message,
                current_version=current,
            )
        return self.merger.submit(document_name, parsed, session_id=session_id)

    @log_call()
    def read_document(
        self,
        name: str,
        session_id: Optional[str] = None,
        version: Optional[int] = None,
    ) -> Document:
        """Read a full snapshot, latest unless ``version`` is given.

        With a session id, the read is recorded in the session's read set so
        the gates validate the document.
        """
        if version is None:
            document, _ = self.store.read(name)
        else:
            document = self.store.read_version(name, version)

        if session_id is not None:
            with self._locked_session(session_id) as session:
                if not session.is_terminal:
                    self.machine.record_read(session, name, document.version)
        return document

    def document_history(self, name: str) -> List[Document]:
        return self.store.history(name)

    def list_documents(self) -> List[str]:
        return self.store.list_documents()

    def validate_document(self, name: str) -> Document:
        """Check the latest version against the wire format and its schema.

        Raises:
            SchemaValidationError: If the document is structurally invalid.
        """
        document, _ = self.store.read(name)
        problems = list(iter_wire_problems(document.content))
        problems.extend(self.schemas.validate(name, document.content))
        if problems:
            raise SchemaValidationError(name, problems)
        return document

    # =========================================================================
    # Evidence
    # =========================================================================

    @log_call()
    def attach_impact(self, session_id: str, impact: DependencyImpact) -> AuditEntry:
        with self._locked_session(session_id) as session:
            return self.machine.record_impact(session, impact)

    @log_call()
    def record_test_signal(self, session_id: str, signal: RunnerSignal) -> AuditEntry:
        with self._locked_session(session_id) as session:
            return self.machine.record_signal(session, signal)

    # =========================================================================
    # Gates
    # =========================================================================

    @log_call()
    @timed()
    def run_gates(
        self,
        session_id: str,
        supplied: Optional[Union[SuppliedInputs, Dict[str, Any]]] = None,
    ) -> GateReport:
        """Evaluate the quality gates for a session in the audit stage.

        A failing report is returned, not raised; it blocks ``advance`` out
        of the audit stage.
        """
        if isinstance(supplied, dict):
            supplied = SuppliedInputs.model_validate(supplied)
        with self._locked_session(session_id) as session:
            self.machine.ensure_gates_allowed(session)
            report = self.evaluator.run(session, supplied)
            self.machine.record_gate(session, report)
            return report

    # =========================================================================
    # Audit
    # =========================================================================

    def get_history(self, session_id: str) -> AuditHistory:
        """Ordered, replayable audit entries of a session.

        Raises:
            SessionNotFound: If the id names neither a session nor the
                store-level ledger.
        """
        if session_id != STORE_LEDGER_ID and not self.sessions.exists(session_id):
            raise SessionNotFound(session_id)
        return self.audit.history(session_id)

    def verify_history(self, session_id: str) -> VerificationResult:
        if session_id != STORE_LEDGER_ID and not self.sessions.exists(session_id):
            raise SessionNotFound(session_id)
        return self.audit.verify(session_id)

    def list_ledgers(self) -> List[str]:
        return self.audit.list_ledgers()
