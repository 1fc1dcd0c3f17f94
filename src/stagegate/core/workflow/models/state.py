"""Persisted workflow session state."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from stagegate.core.workflow.models.enums import SessionStatus, Stage

CURRENT_SCHEMA_VERSION = 1


class StageTransition(BaseModel):
    """One accepted stage change."""

    from_stage: Stage
    to_stage: Stage
    at: datetime
    skipped: bool = False
    reason: Optional[str] = Field(None, description="Abort reason, when aborting")
    audit_sequence: Optional[int] = Field(None, description="Ledger entry recording it")


class DocumentRef(BaseModel):
    """A document version a session read or wrote."""

    name: str
    version: int = Field(..., ge=0)


class GateRecord(BaseModel):
    """Summary of the most recent gate run."""

    passed: bool
    input_digest: str
    failed_checks: List[str] = Field(default_factory=list)
    audit_sequence: int


class WorkflowSession(BaseModel):
    """State of one pass through the nine-stage workflow."""

    id: str = Field(..., description="ULID session identifier")
    schema_version: int = Field(default=CURRENT_SCHEMA_VERSION)
    stage: Stage = Field(default=Stage.ROADMAP)
    created_at: datetime
    updated_at: datetime
    transitions: List[StageTransition] = Field(default_factory=list)
    skipped: List[Stage] = Field(default_factory=list, description="Stages bypassed with skip")
    documents_read: List[DocumentRef] = Field(default_factory=list)
    documents_written: List[DocumentRef] = Field(default_factory=list)
    write_count: int = Field(default=0, ge=0, description="Diffs this session merged")
    last_gate: Optional[GateRecord] = None
    abort_reason: Optional[str] = None

    @property
    def status(self) -> SessionStatus:
        return SessionStatus.of(self.stage)

    @property
    def is_terminal(self) -> bool:
        return self.stage.is_terminal

    @property
    def referenced_documents(self) -> List[str]:
        """Names of every document the session read or wrote."""
        return sorted(
            {ref.name for ref in self.documents_read}
            | {ref.name for ref in self.documents_written}
        )

    def note_read(self, name: str, version: int) -> None:
        ref = DocumentRef(name=name, version=version)
        if ref not in self.documents_read:
            self.documents_read.append(ref)

    def note_written(self, name: str, version: int) -> None:
        ref = DocumentRef(name=name, version=version)
        if ref not in self.documents_written:
            self.documents_written.append(ref)
        self.write_count += 1


class SessionSummary(BaseModel):
    """Compact listing row."""

    session_id: str
    stage: Stage
    status: SessionStatus
    created_at: datetime
    updated_at: datetime
    abort_reason: Optional[str] = None

    @classmethod
    def of(cls, session: WorkflowSession) -> "SessionSummary":
        return cls(
            session_id=session.id,
            stage=session.stage,
            status=session.status,
            created_at=session.created_at,
            updated_at=session.updated_at,
            abort_reason=session.abort_reason,
        )
