"""Workflow session models.

Sub-modules:
    enums    - Stage, SessionStatus, SignalKind, AuditKind, AuditOutcome
    evidence - DependencyImpact, RunnerSignal, StageEvidence
    state    - WorkflowSession, StageTransition, DocumentRef, GateRecord
"""

from stagegate.core.workflow.models.enums import (
    DIFF_STAGES,
    GATE_STAGE,
    IMPACT_STAGES,
    SKIPPABLE_STAGES,
    STAGE_ORDER,
    TERMINAL_STAGES,
    AuditKind,
    AuditOutcome,
    SessionStatus,
    SignalKind,
    Stage,
)
from stagegate.core.workflow.models.evidence import (
    DependencyImpact,
    ImpactSeverity,
    RunnerSignal,
    StageEvidence,
)
from stagegate.core.workflow.models.state import (
    CURRENT_SCHEMA_VERSION,
    DocumentRef,
    GateRecord,
    SessionSummary,
    StageTransition,
    WorkflowSession,
)

__all__ = [
    "CURRENT_SCHEMA_VERSION",
    "DIFF_STAGES",
    "GATE_STAGE",
    "IMPACT_STAGES",
    "SKIPPABLE_STAGES",
    "STAGE_ORDER",
    "TERMINAL_STAGES",
    "AuditKind",
    "AuditOutcome",
    "DependencyImpact",
    "DocumentRef",
    "GateRecord",
    "ImpactSeverity",
    "RunnerSignal",
    "SessionStatus",
    "SessionSummary",
    "SignalKind",
    "Stage",
    "StageEvidence",
    "StageTransition",
    "WorkflowSession",
]
