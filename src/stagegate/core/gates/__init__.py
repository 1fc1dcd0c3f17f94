"""Quality gates evaluated at the audit stage."""

from stagegate.core.gates.checks import (
    ComplexityCeilingCheck,
    CoverageThresholdCheck,
    DocumentValidityCheck,
    GateCheck,
    LayerBoundaryCheck,
    default_checks,
    module_matches,
)
from stagegate.core.gates.evaluator import QualityGateEvaluator, SuppliedInputs
from stagegate.core.gates.models import (
    CheckOutcome,
    DependencyEdge,
    DocumentSnapshot,
    FunctionRecord,
    GateCheckResult,
    GateInputs,
    GateReport,
)

__all__ = [
    "CheckOutcome",
    "ComplexityCeilingCheck",
    "CoverageThresholdCheck",
    "DependencyEdge",
    "DocumentSnapshot",
    "DocumentValidityCheck",
    "FunctionRecord",
    "GateCheck",
    "GateCheckResult",
    "GateInputs",
    "GateReport",
    "LayerBoundaryCheck",
    "QualityGateEvaluator",
    "SuppliedInputs",
    "default_checks",
    "module_matches",
]
