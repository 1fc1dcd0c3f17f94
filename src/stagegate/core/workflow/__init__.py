"""Workflow sessions: state machine, audit log and session storage.

Usage:
    from stagegate.core.workflow import AuditLog, SessionStorage, StepStateMachine
"""

from stagegate.core.workflow.audit import (
    GENESIS_HASH,
    STORE_LEDGER_ID,
    AuditEntry,
    AuditHistory,
    AuditLog,
    VerificationResult,
)
from stagegate.core.workflow.machine import SIGNAL_STAGES, StepStateMachine
from stagegate.core.workflow.preconditions import Requirement, unmet_exit_requirement
from stagegate.core.workflow.storage import SessionStorage

__all__ = [
    "GENESIS_HASH",
    "SIGNAL_STAGES",
    "STORE_LEDGER_ID",
    "AuditEntry",
    "AuditHistory",
    "AuditLog",
    "Requirement",
    "SessionStorage",
    "StepStateMachine",
    "VerificationResult",
    "unmet_exit_requirement",
]
