"""Gate inputs, per-check results and reports.

Reports carry no timestamps: evaluating identical inputs yields an identical
report, digest included.
"""

from __future__ import annotations

import hashlib
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from stagegate.core.knowledge.checksum import canonical_json


class CheckOutcome(str, Enum):
    """Result of a single check or of a whole report."""

    PASS = "pass"
    FAIL = "fail"


class DependencyEdge(BaseModel):
    """A module-level import/dependency edge."""

    source: str = Field(..., description="Importing module")
    target: str = Field(..., description="Imported module")


class FunctionRecord(BaseModel):
    """Complexity record for one function or method."""

    name: str = Field(..., description="Qualified function name")
    complexity: float = Field(..., ge=0, description="Recorded complexity metric")
    module: Optional[str] = Field(None, description="Owning module, if recorded")


class DocumentSnapshot(BaseModel):
    """Latest state of one document referenced by the session."""

    name: str
    version: int = Field(0, ge=0)
    checksum: Optional[str] = None
    content: Optional[Dict[str, Any]] = None
    load_error: Optional[str] = Field(None, description="Why the document could not be read")


class GateInputs(BaseModel):
    """Everything the checks look at in one evaluation."""

    dependency_edges: List[DependencyEdge] = Field(default_factory=list)
    functions: List[FunctionRecord] = Field(default_factory=list)
    coverage: Dict[str, float] = Field(default_factory=dict)
    documents: List[DocumentSnapshot] = Field(default_factory=list)
    unreadable_edges: List[str] = Field(
        default_factory=list, description="Dependency records that could not be parsed"
    )
    unreadable_functions: List[str] = Field(
        default_factory=list, description="Complexity records that could not be parsed"
    )

    def digest(self) -> str:
        """SHA-256 over the canonical form of the inputs."""
        return hashlib.sha256(
            canonical_json(self.model_dump(mode="json")).encode("utf-8")
        ).hexdigest()


class GateCheckResult(BaseModel):
    """Outcome of one named check."""

    name: str = Field(..., description="Check name")
    outcome: CheckOutcome = Field(..., description="pass or fail")
    diagnostics: List[str] = Field(default_factory=list, description="Sorted messages")

    @property
    def passed(self) -> bool:
        return self.outcome == CheckOutcome.PASS

    @classmethod
    def from_diagnostics(cls, name: str, diagnostics: List[str]) -> "GateCheckResult":
        """Fail when there is any diagnostic, pass otherwise."""
        ordered = sorted(set(diagnostics))
        return cls(
            name=name,
            outcome=CheckOutcome.FAIL if ordered else CheckOutcome.PASS,
            diagnostics=ordered,
        )


class GateReport(BaseModel):
    """All check results from one invocation."""

    checks: List[GateCheckResult] = Field(default_factory=list)
    outcome: CheckOutcome = Field(..., description="Conjunction over all checks")
    input_digest: str = Field(..., description="Digest of the evaluated inputs")

    @property
    def passed(self) -> bool:
        return self.outcome == CheckOutcome.PASS

    @property
    def failed_checks(self) -> List[str]:
        return [check.name for check in self.checks if not check.passed]

    @classmethod
    def from_checks(cls, checks: List[GateCheckResult], input_digest: str) -> "GateReport":
        passed = all(check.passed for check in checks)
        return cls(
            checks=checks,
            outcome=CheckOutcome.PASS if passed else CheckOutcome.FAIL,
            input_digest=input_digest,
        )
