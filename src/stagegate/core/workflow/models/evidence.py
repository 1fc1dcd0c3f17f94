"""Evidence the driver hands to the state machine."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from stagegate.core.workflow.models.enums import SignalKind


class ImpactSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class DependencyImpact(BaseModel):
    """One dependency-impact record produced during context analysis."""

    module: str = Field(..., min_length=1, description="Module whose dependents were analyzed")
    summary: str = Field("", description="What the change affects")
    affected: List[str] = Field(default_factory=list, description="Dependent modules")
    severity: ImpactSeverity = Field(ImpactSeverity.LOW, description="Estimated blast radius")


class RunnerSignal(BaseModel):
    """Verdict reported by the external test runner."""

    kind: SignalKind = Field(..., description="tests_failing or tests_passing")
    test_ids: List[str] = Field(..., min_length=1, description="Test identifiers covered")
    runner: Optional[str] = Field(None, description="Runner that produced the verdict")
    summary: Optional[str] = Field(None, description="Free-form runner output excerpt")

    @field_validator("test_ids")
    @classmethod
    def validate_test_ids(cls, v: List[str]) -> List[str]:
        cleaned = sorted({item.strip() for item in v if item and item.strip()})
        if not cleaned:
            raise ValueError("test_ids must name at least one test")
        return cleaned


class StageEvidence(BaseModel):
    """Opaque evidence logged with a stage transition."""

    notes: Optional[str] = Field(None, description="Short description of the work done")
    references: List[str] = Field(default_factory=list, description="Links, paths, ticket ids")
    data: Dict[str, Any] = Field(default_factory=dict, description="Driver-defined payload")
