"""Enums for the workflow session subsystem."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class Stage(str, Enum):
    """Workflow stages in order, plus the two absorbing states."""

    ROADMAP = "roadmap"
    DESIGN = "design"
    CONTEXT = "context"
    SPEC = "spec"
    BUILD = "build"
    SYNC = "sync"
    DOCS = "docs"
    AUDIT = "audit"
    COMMIT = "commit"
    COMPLETED = "completed"
    ABORTED = "aborted"

    @property
    def index(self) -> Optional[int]:
        """1-based position of the stage; COMPLETED is 10, ABORTED has none."""
        if self is Stage.ABORTED:
            return None
        return STAGE_ORDER.index(self) + 1

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STAGES

    def next_stage(self) -> "Stage":
        """Stage entered by a successful advance."""
        if self.is_terminal:
            raise ValueError(f"{self.value} is terminal")
        return STAGE_ORDER[STAGE_ORDER.index(self) + 1]

    @classmethod
    def parse(cls, value: str) -> "Stage":
        """Accept a stage name or its 1-based number."""
        text = str(value).strip().lower()
        if text.isdigit():
            position = int(text)
            if 1 <= position <= len(STAGE_ORDER):
                return STAGE_ORDER[position - 1]
            raise ValueError(f"No stage number {position}")
        return cls(text)


STAGE_ORDER = (
    Stage.ROADMAP,
    Stage.DESIGN,
    Stage.CONTEXT,
    Stage.SPEC,
    Stage.BUILD,
    Stage.SYNC,
    Stage.DOCS,
    Stage.AUDIT,
    Stage.COMMIT,
    Stage.COMPLETED,
)

# Canonical set of terminal stages
TERMINAL_STAGES = frozenset({Stage.COMPLETED, Stage.ABORTED})

# Stages whose advance accepts skip=True
SKIPPABLE_STAGES = frozenset({Stage.ROADMAP, Stage.DOCS})

# Stages in which a session may submit diffs
DIFF_STAGES = frozenset(
    {
        Stage.DESIGN,
        Stage.CONTEXT,
        Stage.SPEC,
        Stage.BUILD,
        Stage.SYNC,
        Stage.DOCS,
        Stage.AUDIT,
    }
)

# Stages in which dependency-impact records may be attached
IMPACT_STAGES = frozenset({Stage.ROADMAP, Stage.DESIGN, Stage.CONTEXT})

GATE_STAGE = Stage.AUDIT


class SessionStatus(str, Enum):
    """Coarse lifecycle status derived from the stage."""

    ACTIVE = "active"
    COMPLETED = "completed"
    ABORTED = "aborted"

    @classmethod
    def of(cls, stage: Stage) -> "SessionStatus":
        if stage is Stage.COMPLETED:
            return cls.COMPLETED
        if stage is Stage.ABORTED:
            return cls.ABORTED
        return cls.ACTIVE


class SignalKind(str, Enum):
    """External test-runner verdicts."""

    FAILING = "tests_failing"
    PASSING = "tests_passing"


class AuditKind(str, Enum):
    """Kinds of audited actions."""

    START = "start"
    DIFF = "diff"
    GATE = "gate"
    SIGNAL = "signal"
    IMPACT = "impact"
    TRANSITION = "transition"
    ABORT = "abort"


class AuditOutcome(str, Enum):
    """Outcome recorded with an audit entry."""

    STARTED = "started"
    APPLIED = "applied"
    REJECTED = "rejected"
    PASS = "pass"
    FAIL = "fail"
    TESTS_FAILING = "tests_failing"
    TESTS_PASSING = "tests_passing"
    ATTACHED = "attached"
    ADVANCED = "advanced"
    SKIPPED = "skipped"
    COMPLETED = "completed"
    ABORTED = "aborted"
